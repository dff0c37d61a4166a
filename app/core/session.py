"""
Session context and the partner approval gate.

A ``SessionContext`` is built once per request by ``get_session_context`` in
``app.api.v1.deps`` and handed to every workflow, which never re-reads the
current user on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.models.user import User

PARTNER_PENDING_PATH = "/dashboard/partner/pending"
PARTNER_REJECTED_PATH = "/dashboard/partner/rejected"


class GateDecision(str, Enum):
    PROCEED = "proceed"
    PENDING = "pending"
    REJECTED = "rejected"


class PartnerGateError(Exception):
    """Partner tried to use the dashboard before being approved."""

    def __init__(self, decision: GateDecision) -> None:
        self.decision = decision
        self.redirect = gate_redirect(decision)
        if decision is GateDecision.PENDING:
            msg = "Your partner application is pending review"
        else:
            msg = "Your partner application was not approved"
        super().__init__(msg)


def partner_gate(role: str, approved: bool | None) -> GateDecision:
    """Admission decision for the partner dashboard.

    Only partners are gated; every other role proceeds (role checks are a
    separate concern handled by the route dependencies).
    """
    if role != "partner":
        return GateDecision.PROCEED
    if approved is None:
        return GateDecision.PENDING
    if approved is False:
        return GateDecision.REJECTED
    return GateDecision.PROCEED


def gate_redirect(decision: GateDecision) -> str | None:
    if decision is GateDecision.PENDING:
        return PARTNER_PENDING_PATH
    if decision is GateDecision.REJECTED:
        return PARTNER_REJECTED_PATH
    return None


@dataclass(frozen=True)
class SessionContext:
    user: User

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def approved(self) -> bool | None:
        return self.user.approved

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def gate(self) -> GateDecision:
        return partner_gate(self.role, self.approved)

    @property
    def dashboard(self) -> str:
        """Where this user lands after login."""
        return gate_redirect(self.gate) or f"/dashboard/{self.role}"
