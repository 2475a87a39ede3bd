"""
Global pytest configuration and fixtures.
"""

import re
import uuid
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Sequence
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flux_api.config import Settings, get_settings
from flux_api.infrastructure import IdentityProviderClient, PostgresDatabase
from flux_api.main import create_app
from flux_api.models.auth import AuthUser
from flux_api.services import (
    AuthService,
    CategoryService,
    ExpenseService,
    GroupService,
    MigrationRunner,
    SettlementService,
    UserService,
)
from flux_api.utils.dependencies import (
    get_auth_service,
    get_category_service,
    get_current_user,
    get_expense_service,
    get_group_service,
    get_migration_runner,
    get_settlement_service,
    get_user_service,
)

TEST_ADMIN_KEY = "test-admin-key"
IDENTITY_URL = "http://identity.test"


def bound_columns(query: str, args: Sequence[Any]) -> Dict[str, Any]:
    """Map each ``column = $n`` in ``query`` to the value bound to ``$n``."""
    return {
        column: args[int(index) - 1]
        for column, index in re.findall(r"(\w+) = \$(\d+)", query)
    }


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's .env file."""
    values = dict(
        app_name="flux-backend-test",
        version="1.0.0-test",
        debug=True,
        environment="testing",
        api_prefix="/api/v1",
        admin_api_key=TEST_ADMIN_KEY,
        database_url=None,
        supabase_url=IDENTITY_URL,
        supabase_anon_key="test-anon-key",
        supabase_service_role_key="test-service-role-key",
        github_client_id="test-github-client-id",
        github_client_secret="test-github-secret",
        google_client_id="placeholder_google_client_id",
        google_client_secret="placeholder_google_secret",
        log_level="DEBUG",
        host="127.0.0.1",
        port=3001,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings configuration."""
    return make_settings()


@pytest.fixture
def app(test_settings) -> FastAPI:
    """FastAPI app with test settings."""
    application = create_app(test_settings)
    application.dependency_overrides[get_settings] = lambda: test_settings
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Synchronous test client."""
    return TestClient(app)


@pytest.fixture
def current_user() -> AuthUser:
    return AuthUser(
        id=str(uuid.uuid4()),
        email="traveller@example.com",
        email_confirmed=True,
        full_name="Test Traveller",
        identities=[
            {"id": "identity-email", "provider": "email"},
            {"id": "identity-github", "identity_id": "identity-github", "provider": "github"},
        ],
    )


@pytest.fixture
def authenticated(app, current_user) -> AuthUser:
    """Bypass the identity provider and act as ``current_user``."""
    app.dependency_overrides[get_current_user] = lambda: current_user
    return current_user


@pytest.fixture
def auth_service(app) -> MagicMock:
    service = MagicMock(spec=AuthService)
    app.dependency_overrides[get_auth_service] = lambda: service
    return service


@pytest.fixture
def user_service(app) -> MagicMock:
    service = MagicMock(spec=UserService)
    app.dependency_overrides[get_user_service] = lambda: service
    return service


@pytest.fixture
def expense_service(app) -> MagicMock:
    service = MagicMock(spec=ExpenseService)
    app.dependency_overrides[get_expense_service] = lambda: service
    return service


@pytest.fixture
def category_service(app) -> MagicMock:
    service = MagicMock(spec=CategoryService)
    app.dependency_overrides[get_category_service] = lambda: service
    return service


@pytest.fixture
def group_service(app) -> MagicMock:
    service = MagicMock(spec=GroupService)
    app.dependency_overrides[get_group_service] = lambda: service
    return service


@pytest.fixture
def settlement_service(app) -> MagicMock:
    service = MagicMock(spec=SettlementService)
    app.dependency_overrides[get_settlement_service] = lambda: service
    return service


@pytest.fixture
def migration_runner(app) -> MagicMock:
    runner = MagicMock(spec=MigrationRunner)
    app.dependency_overrides[get_migration_runner] = lambda: runner
    return runner


class IdentityStub:
    """
    Records requests sent to the identity provider and answers them from
    a ``(method, path) -> response`` table.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, method: str, path: str, status_code: int = 200, json=None) -> None:
        self.routes[(method, path)] = lambda request: httpx.Response(status_code, json=json)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"msg": f"No stub for {request.method} {request.url.path}"})
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def identity_stub() -> IdentityStub:
    return IdentityStub()


@pytest.fixture
def identity_client(identity_stub, test_settings) -> IdentityProviderClient:
    return IdentityProviderClient(transport=identity_stub.transport(), settings=test_settings)


@pytest.fixture
def synced_users() -> MagicMock:
    return MagicMock(spec=UserService)


@pytest.fixture
def real_auth_service(app, identity_client, synced_users, test_settings) -> AuthService:
    """AuthService talking to the stubbed identity provider."""
    service = AuthService(identity=identity_client, users=synced_users, settings=test_settings)
    app.dependency_overrides[get_auth_service] = lambda: service
    return service


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"X-API-Key": TEST_ADMIN_KEY}


class FakeConnection:
    """Stand-in for an asyncpg connection inside a transaction."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")
        self.executemany = AsyncMock(return_value=None)
        self.savepoints = 0

    def transaction(self):
        self.savepoints += 1
        return _NullTransaction()


class _NullTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeDatabase:
    """In-memory double for ``PostgresDatabase`` with scripted results."""

    def __init__(self):
        self.conn = FakeConnection()
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


class BrokenPool:
    """asyncpg pool whose connections fail every query with ``error``."""

    def __init__(self, error: Exception):
        self.conn = MagicMock()
        for method in ("fetch", "fetchrow", "fetchval", "execute"):
            setattr(self.conn, method, AsyncMock(side_effect=error))

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    def get_size(self) -> int:
        return 1

    def get_idle_size(self) -> int:
        return 1


@pytest.fixture
def broken_database() -> PostgresDatabase:
    """Configured database whose queries hit a missing relation on an internal host."""
    database = PostgresDatabase(settings=make_settings(database_url="postgresql://flux@db-internal-7:5432/flux"))
    database._pool = BrokenPool(
        asyncpg.exceptions.UndefinedTableError('relation "expenses" does not exist at host db-internal-7:5432')
    )
    return database
