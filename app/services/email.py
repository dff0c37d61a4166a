"""
Templated email delivery via the external email function.

The function takes ``{to, templateKey, variables}``, resolves the stored
template by key, substitutes ``{{var}}`` placeholders and sends it. It answers
``{"success": true, "message": ...}`` or ``{"success": false, "error": ...}``.
Callers treat delivery as best-effort: ``send_templated_email`` never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass
class EmailResult:
    ok: bool
    error: str | None = None
    message: str | None = None


def render_template(text: str, variables: dict[str, str]) -> str:
    """Replace ``{{name}}`` placeholders; unknown placeholders are left as-is."""

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, text)


class EmailClient:
    def __init__(
        self,
        url: str | None,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def send_templated_email(
        self,
        to: str,
        template_key: str,
        variables: dict[str, str],
    ) -> EmailResult:
        if not self.url:
            logger.info("Email function not configured; skipped %s to %s", template_key, to)
            return EmailResult(ok=False, error="email function not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {"to": to, "templateKey": template_key, "variables": variables}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Email %s to %s failed: %s", template_key, to, exc)
            return EmailResult(ok=False, error=str(exc) or exc.__class__.__name__)

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code >= 400 or not data.get("success", False):
            error = data.get("error") or f"HTTP {resp.status_code}"
            logger.error("Email %s to %s rejected: %s", template_key, to, error)
            return EmailResult(ok=False, error=str(error))

        logger.info("Email %s sent to %s", template_key, to)
        return EmailResult(ok=True, message=data.get("message"))


def get_email_client() -> EmailClient:
    """FastAPI dependency — email client configured from settings."""
    return EmailClient(
        url=settings.EMAIL_FUNCTION_URL,
        api_key=settings.EMAIL_FUNCTION_KEY,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
