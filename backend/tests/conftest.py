"""Shared fixtures for backend tests."""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass

import pytest

# Settings are read once at import: point them at a throwaway database and a
# fixed signing secret before anything under ``app`` is imported.
_DB_PATH = os.path.join(tempfile.gettempdir(), f"tenantgate_test_{os.getpid()}.db")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_PATH}")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.auth.tokens import issue_token  # noqa: E402
from app.db.engine import async_session, engine  # noqa: E402
from app.db.models import ApiKey, Base, Organization, User  # noqa: E402
from app.main import app  # noqa: E402
from app.services.user_service import _hash_password  # noqa: E402
from app.utils import background  # noqa: E402
from app.utils.metrics import metrics  # noqa: E402

TEST_PASSWORD = "correct-horse"
OTHER_SECRET = "another-secret-key-fedcba9876543210fedcba9876543210"


def _uid() -> str:
    """Return a short unique suffix for test isolation."""
    return uuid.uuid4().hex[:8]


@dataclass
class Member:
    """A seeded user together with a bearer token for it."""

    user_id: str
    email: str
    role: str
    organization_id: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
async def db_schema():
    """Fresh tables for one test; pending detached writes are drained after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await background.drain()
    await engine.dispose()


@pytest.fixture
async def db(db_schema):
    async with async_session() as session:
        yield session


@pytest.fixture
async def client(db_schema):
    """Async test client; ASGITransport skips the lifespan so tables come from db_schema."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_org(name: str | None = None) -> str:
    async with async_session() as session:
        org = Organization(name=name or f"org-{_uid()}")
        session.add(org)
        await session.commit()
        return org.id


async def create_member(organization_id: str, role: str = "user", email: str | None = None) -> Member:
    async with async_session() as session:
        user = User(
            email=email or f"{role}-{_uid()}@example.com",
            hashed_password=_hash_password(TEST_PASSWORD),
            organization_id=organization_id,
            role=role,
        )
        session.add(user)
        await session.commit()
        return Member(
            user_id=user.id,
            email=user.email,
            role=role,
            organization_id=organization_id,
            token=issue_token(user.id, role, organization_id),
        )


async def create_key(organization_id: str, *, revoked: bool = False, key: str | None = None) -> ApiKey:
    async with async_session() as session:
        row = ApiKey(key=key or uuid.uuid4().hex * 2, organization_id=organization_id, revoked=revoked)
        session.add(row)
        await session.commit()
        return row


@pytest.fixture
async def org_a(db_schema) -> str:
    return await create_org("Acme")


@pytest.fixture
async def org_b(db_schema) -> str:
    return await create_org("Globex")


@pytest.fixture
async def admin_a(org_a) -> Member:
    return await create_member(org_a, "admin")


@pytest.fixture
async def manager_a(org_a) -> Member:
    return await create_member(org_a, "manager")


@pytest.fixture
async def user_a(org_a) -> Member:
    return await create_member(org_a, "user")


@pytest.fixture
async def admin_b(org_b) -> Member:
    return await create_member(org_b, "admin")
