"""
FastAPI dependencies — database session, session context and role guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.security import decode_access_token
from app.core.session import GateDecision, PartnerGateError, SessionContext
from app.db.session import async_session_factory
from app.models.user import User
from app.services.email import EmailClient, get_email_client
from app.services.geocoding import Geocoder
from app.services.notifications import NotificationDispatcher
from app.services.storage import CloudinaryStorage

# auto_error=False so we can fall back to the HttpOnly cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for work that outlives the request, e.g. background tasks."""
    return async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Session context ─────────────────────────────────────────────────
def _extract_token(header_token: str | None, cookie_token: str | None) -> str | None:
    # Priority: Header > Cookie
    if header_token:
        return header_token
    if cookie_token:
        # Cookies are stored as "Bearer <token>"
        if cookie_token.startswith("Bearer "):
            return cookie_token.split(" ", 1)[1]
        return cookie_token
    return None


async def get_session_context(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    """Decode the JWT from header or cookie and load the user once per request."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    final_token = _extract_token(token, access_token)
    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None:
        raise credentials_exc

    user_id: str | None = payload.get("sub")
    if user_id is None or not user_id.isdigit():
        raise credentials_exc

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    if user.banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This account has been suspended",
        )
    return SessionContext(user=user)


# ── Role guards ─────────────────────────────────────────────────────
async def require_admin(
    ctx: SessionContext = Depends(get_session_context),
) -> SessionContext:
    """Only allow admin role to proceed."""
    if not ctx.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return ctx


async def require_donor(
    ctx: SessionContext = Depends(get_session_context),
) -> SessionContext:
    if ctx.role != "donor":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied. Please make sure you are logged in as a donor.",
        )
    return ctx


async def require_partner(
    ctx: SessionContext = Depends(get_session_context),
) -> SessionContext:
    """Any partner, whatever the approval state (profile, status pages)."""
    if ctx.role != "partner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Partner account required",
        )
    return ctx


async def require_approved_partner(
    ctx: SessionContext = Depends(require_partner),
) -> SessionContext:
    """Partner dashboard gate: pending / rejected partners are turned away."""
    decision = ctx.gate
    if decision is not GateDecision.PROCEED:
        raise PartnerGateError(decision)
    return ctx


# ── Collaborators ───────────────────────────────────────────────────
def get_notifier(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    email: EmailClient = Depends(get_email_client),
) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, email)


def get_storage() -> CloudinaryStorage:
    return CloudinaryStorage(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        max_bytes=settings.MAX_IMAGE_BYTES,
    )


def get_geocoder() -> Geocoder:
    return Geocoder(
        base_url=settings.GEOCODER_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=settings.GEOCODER_TIMEOUT_SECONDS,
    )
