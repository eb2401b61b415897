"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["SMTP_HOST"] = ""

import json
import re
from itertools import count
from typing import AsyncGenerator, Dict, List, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eduportal.api.dependencies import get_connection_manager
from eduportal.core.constants import AdminRole, SchoolStatus
from eduportal.core.security import create_access_token, get_password_hash
from eduportal.db import models  # noqa: F401
from eduportal.db.base import Base
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.main import app
from eduportal.services.connection_manager import TenantConnectionManager
from eduportal.services.remote_store import RemoteStoreClient
from eduportal.services.subscription_service import SubscriptionService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_CREATE_TABLE = re.compile(r"CREATE TABLE IF NOT EXISTS (\w+)", re.IGNORECASE)
_CREATE_POLICY = re.compile(r'CREATE POLICY "([^"]+)"', re.IGNORECASE)


class FakeRemoteBackend:
    """
    In-process stand-in for a school's hosted store (REST, storage, auth).

    Behaves like the real service where provisioning cares: duplicate
    buckets and policies answer "already exists", selects on unknown tables
    fail, and upserts with ignore-duplicates skip existing keys.
    """

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.buckets: Dict[str, dict] = {}
        self.policies: set = set()
        self.requests: List[httpx.Request] = []
        self.failing: set = set()  # path prefixes answering 500
        self.unreachable = False
        self._ids = count(1)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if any(path.startswith(prefix) for prefix in self.failing):
            return httpx.Response(500, json={"message": "internal error"})

        if path == "/rest/v1/rpc/exec_sql":
            return self._exec_sql(json.loads(request.content)["sql"])
        if path == "/storage/v1/bucket":
            return self._bucket(request)
        if path == "/auth/v1/health":
            return httpx.Response(200, json={"name": "GoTrue"})
        if path.startswith("/rest/v1/"):
            return self._table(request, path[len("/rest/v1/"):])
        return httpx.Response(404, json={"message": "not found"})

    def _exec_sql(self, sql: str) -> httpx.Response:
        table = _CREATE_TABLE.search(sql)
        if table:
            self.tables.setdefault(table.group(1), [])
        policy = _CREATE_POLICY.search(sql)
        if policy:
            if policy.group(1) in self.policies:
                return httpx.Response(400, json={"message": f'policy "{policy.group(1)}" already exists'})
            self.policies.add(policy.group(1))
        return httpx.Response(200, json=None)

    def _bucket(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=list(self.buckets.values()))
        payload = json.loads(request.content)
        if payload["name"] in self.buckets:
            return httpx.Response(400, json={"message": "The resource already exists"})
        self.buckets[payload["name"]] = payload
        return httpx.Response(200, json={"name": payload["name"]})

    def _table(self, request: httpx.Request, table: str) -> httpx.Response:
        if table not in self.tables:
            return httpx.Response(404, json={"message": f'relation "public.{table}" does not exist'})
        rows = self.tables[table]

        if request.method == "GET":
            limit = request.url.params.get("limit")
            return httpx.Response(200, json=rows[: int(limit)] if limit else rows)

        payload = json.loads(request.content)
        incoming = payload if isinstance(payload, list) else [payload]
        conflict_key = request.url.params.get("on_conflict")
        ignore = "resolution=ignore-duplicates" in request.headers.get("prefer", "")

        created = []
        for row in incoming:
            if conflict_key and any(r.get(conflict_key) == row.get(conflict_key) for r in rows):
                if ignore:
                    continue
                return httpx.Response(409, json={"message": "duplicate key value violates unique constraint"})
            stored = {"id": next(self._ids), **row}
            rows.append(stored)
            created.append(stored)
        return httpx.Response(201, json=created)


@pytest.fixture
def remote_backend() -> FakeRemoteBackend:
    return FakeRemoteBackend()


@pytest.fixture
def remote_client(remote_backend: FakeRemoteBackend):
    """Factory for clients wired to the fake backend"""

    def factory(url: str = "https://demo.supabase.co", api_key: str = "service-key") -> RemoteStoreClient:
        return RemoteStoreClient(url, api_key, transport=httpx.MockTransport(remote_backend.handler))

    return factory


@pytest.fixture
async def connections(remote_client) -> AsyncGenerator[TenantConnectionManager, None]:
    manager = TenantConnectionManager(client_factory=remote_client)
    yield manager
    await manager.close_all()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def plans(db_session: AsyncSession) -> int:
    """Seed the default subscription plans"""
    return await SubscriptionService(db_session).initialize_default_plans()


@pytest.fixture
async def client(db_session: AsyncSession, connections) -> AsyncGenerator[AsyncClient, None]:
    """API client with database and connection manager overrides"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_connection_manager] = lambda: connections

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


async def _make_admin(db_session: AsyncSession, email: str, role: str) -> PortalAdmin:
    admin = PortalAdmin(
        email=email,
        hashed_password=get_password_hash("AdminPassword123!"),
        full_name="Portal Admin",
        role=role,
        is_active=True,
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


@pytest.fixture
async def test_admin(db_session: AsyncSession) -> PortalAdmin:
    return await _make_admin(db_session, "admin@eduportal.example.com", AdminRole.SUPER_ADMIN.value)


@pytest.fixture
async def support_admin(db_session: AsyncSession) -> PortalAdmin:
    return await _make_admin(db_session, "support@eduportal.example.com", AdminRole.SUPPORT.value)


def headers_for(admin: PortalAdmin) -> dict:
    token = create_access_token({"sub": str(admin.id), "role": admin.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_admin: PortalAdmin) -> dict:
    """Bearer headers for the super admin"""
    return headers_for(test_admin)


@pytest.fixture
async def test_school(db_session: AsyncSession) -> SchoolInstance:
    """A trial school with the default 1000 trial credits"""
    return await SchoolInstanceRepository(db_session).create({
        "name": "Green Valley High School",
        "contact_email": "office@greenvalley.edu",
    })


@pytest.fixture
async def active_school(db_session: AsyncSession, test_school: SchoolInstance) -> SchoolInstance:
    return await SchoolInstanceRepository(db_session).update(
        test_school.id, {"status": SchoolStatus.ACTIVE.value}
    )


def school_headers(school: SchoolInstance, extra: Optional[dict] = None) -> dict:
    return {"x-api-key": school.api_key, **(extra or {})}


@pytest.fixture
def support_headers(support_admin: PortalAdmin) -> dict:
    return headers_for(support_admin)


@pytest.fixture
def api_key_headers(active_school: SchoolInstance) -> dict:
    return school_headers(active_school)
