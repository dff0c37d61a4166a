"""
Shared test fixtures for the Food Rescue API test suite.

Async throughout: aiosqlite in-memory database, httpx AsyncClient over
ASGITransport, external collaborators (email function, geocoder) behind
httpx.MockTransport.
"""

import json
import os
import sys
from typing import AsyncGenerator

import httpx
import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db, get_geocoder, get_session_factory, get_storage
from app.core.security import get_password_hash
from app.db.base import Base
from app.main import app
from app.models.profile import DonorProfile, PartnerProfile
from app.models.user import User
from app.services.email import EmailClient, get_email_client
from app.services.geocoding import Geocoder
from storage_double import DiskStorage

EMAIL_URL = "http://email.test/functions/v1/send-email"
GEOCODER_URL = "http://geo.test"
PASSWORD = "secret123"


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── External collaborators ──────────────────────────────────────────
class EmailOutbox:
    """Records every request the email function receives."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail_with: str | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.sent.append(body)
        if self.fail_with:
            return httpx.Response(500, json={"success": False, "error": self.fail_with})
        return httpx.Response(200, json={"success": True, "message": "Email sent"})

    def keys(self) -> list[str]:
        return [m["templateKey"] for m in self.sent]


@pytest.fixture
def email_outbox() -> EmailOutbox:
    return EmailOutbox()


def geocoder_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/search":
        q = request.url.params.get("q", "")
        if "nowhere" in q.lower():
            return httpx.Response(200, json=[])
        if "broken" in q.lower():
            return httpx.Response(503, text="unavailable")
        return httpx.Response(
            200,
            json=[{"lat": "51.5074", "lon": "-0.1278", "display_name": f"{q}, London"}],
        )
    if request.url.path == "/reverse":
        lat = float(request.url.params["lat"])
        if lat == 0.0:
            return httpx.Response(200, json={"error": "Unable to geocode"})
        return httpx.Response(200, json={"display_name": "10 Downing Street, London"})
    return httpx.Response(404)


@pytest.fixture
def geocoder() -> Geocoder:
    return Geocoder(
        base_url=GEOCODER_URL,
        user_agent="food-rescue-tests",
        timeout=2,
        transport=httpx.MockTransport(geocoder_handler),
    )


@pytest.fixture
def storage(tmp_path) -> DiskStorage:
    return DiskStorage(root=tmp_path, public_url="http://test/storage", max_bytes=1024)


# ── App / client ────────────────────────────────────────────────────
@pytest.fixture
async def async_client(
    session_factory, email_outbox, geocoder, storage
) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_email_client] = lambda: EmailClient(
        url=EMAIL_URL,
        api_key="test-key",
        timeout=2,
        transport=httpx.MockTransport(email_outbox.handler),
    )
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Users ───────────────────────────────────────────────────────────
@pytest.fixture
def make_user(session_factory):
    async def _make(
        email: str,
        role: str = "donor",
        approved: bool | None = True,
        name: str | None = None,
        org_name: str | None = None,
        banned: bool = False,
    ) -> User:
        async with session_factory() as session:
            user = User(
                email=email,
                hashed_password=get_password_hash(PASSWORD),
                name=name or email.split("@")[0].title(),
                role=role,
                approved=approved,
                banned=banned,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            if role == "donor":
                session.add(DonorProfile(user_id=user.id, business_name=org_name, address="1 Baker St"))
            elif role == "partner":
                session.add(PartnerProfile(user_id=user.id, org_name=org_name or f"{user.name} Org"))
            await session.commit()
            return user

    return _make


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user("admin@example.com", role="admin", name="Ada Admin")


@pytest.fixture
async def donor(make_user) -> User:
    return await make_user("donor@example.com", role="donor", name="Dana Donor", org_name="Dana's Bakery")


@pytest.fixture
async def partner(make_user) -> User:
    return await make_user("partner@example.com", role="partner", name="Pat Partner", org_name="City Food Bank")


@pytest.fixture
async def pending_partner(make_user) -> User:
    return await make_user("pending@example.com", role="partner", approved=None, org_name="Pending Pantry")


@pytest.fixture
async def rejected_partner(make_user) -> User:
    return await make_user("rejected@example.com", role="partner", approved=False, org_name="Rejected Relief")
