"""Pytest configuration and shared fixtures.

Service tests run against the in-memory store; API tests drive the real
application in process through httpx's ASGI transport with a fake token
verifier.
"""

import uuid
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from lettertrack.api import create_app
from lettertrack.api.middleware.auth import AuthenticatedUser
from lettertrack.core.config import DatabaseSettings, Settings, StoreBackend
from lettertrack.db.models.base import AccountRole
from lettertrack.repositories.memory import MemoryDatabase, MemoryStore, memory_store_factory
from lettertrack.services.accounts import AccountStore
from lettertrack.services.couriers import CourierDirectory
from lettertrack.services.departments import DepartmentDirectory
from lettertrack.services.letters import LetterTrackingEngine

ADMIN_TOKEN = "admin-token"
RD_TOKEN = "rd-token"
DEPARTMENT_TOKEN = "department-token"


def plain_hasher(password: str) -> str:
    """Cheap stand-in for bcrypt; keeps digests distinguishable from passwords."""
    return f"digest:{password}"


# ---------------------------------------------------------------------------
# Store and service fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def memory_db() -> MemoryDatabase:
    """Fresh in-memory tables for each test."""
    return MemoryDatabase()


@pytest.fixture
def store(memory_db: MemoryDatabase) -> MemoryStore:
    return MemoryStore(memory_db)


@pytest.fixture
def accounts(store: MemoryStore) -> AccountStore:
    return AccountStore(store, plain_hasher)


@pytest.fixture
def departments(store: MemoryStore, accounts: AccountStore) -> DepartmentDirectory:
    return DepartmentDirectory(store, accounts)


@pytest.fixture
def couriers(store: MemoryStore) -> CourierDirectory:
    return CourierDirectory(store)


@pytest.fixture
def engine(store: MemoryStore) -> LetterTrackingEngine:
    return LetterTrackingEngine(store)


# ---------------------------------------------------------------------------
# API fixtures (in-process testing via ASGI transport)
# ---------------------------------------------------------------------------
@pytest.fixture
def tokens() -> dict[str, AuthenticatedUser]:
    """Bearer tokens known to the fake verifier; tests may add their own."""
    return {
        ADMIN_TOKEN: AuthenticatedUser(
            account_id=uuid.uuid4(), username="admin", role=AccountRole.SUPER_ADMIN
        ),
        RD_TOKEN: AuthenticatedUser(
            account_id=uuid.uuid4(), username="records", role=AccountRole.RD_DEPARTMENT
        ),
        DEPARTMENT_TOKEN: AuthenticatedUser(
            account_id=uuid.uuid4(),
            username="finance",
            role=AccountRole.OTHER_DEPARTMENT,
            department_id=uuid.uuid4(),
        ),
    }


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database=DatabaseSettings(backend=StoreBackend.MEMORY))


@pytest.fixture
def test_app(test_settings: Settings, memory_db: MemoryDatabase, tokens):
    """Create a test FastAPI application over the in-memory store."""

    async def verify_token(token: str) -> AuthenticatedUser | None:
        return tokens.get(token)

    return create_app(
        test_settings,
        store_factory=memory_store_factory(memory_db),
        token_verifier=verify_token,
        password_hasher=plain_hasher,
    )


@pytest.fixture
async def api_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def rd_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {RD_TOKEN}"}


@pytest.fixture
def department_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {DEPARTMENT_TOKEN}"}
