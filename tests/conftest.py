"""
tests.conftest

Shared fixtures: an app bound to a temp SQLite file and an in-memory Redis.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import fakeredis
import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_api.api.app import create_app
from hrms_api.auth.models import Role
from hrms_api.auth.passwords import hash_password
from hrms_api.auth.sessions import SessionStore
from hrms_api.db.models import LegacyUser, TenantStatus
from hrms_api.db.repositories.leave import LeaveRepo
from hrms_api.db.repositories.super_admins import SuperAdminRepo
from hrms_api.db.repositories.tenants import TenantRepo
from hrms_api.db.repositories.users import UserRepo
from hrms_api.settings import Settings

ROOT_EMAIL = "root@platform.com"
ROOT_PASSWORD = "root-password"


def make_store() -> SessionStore:
    # A private server per store so no keys leak between tests.
    return SessionStore(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'hrms.db'}",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        super_admin_email=ROOT_EMAIL,
        super_admin_password=ROOT_PASSWORD,
    )


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings, session_store=make_store())
    # httpx ASGITransport does not manage lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    # raise_app_exceptions=False: let 500s come back as responses.
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sessionmaker(app: FastAPI) -> async_sessionmaker[AsyncSession]:
    return app.state.sessionmaker


@pytest.fixture
def store(app: FastAPI) -> SessionStore:
    return app.state.session_store


class Seeder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def tenant(self, slug: str, *, status: TenantStatus = TenantStatus.active) -> int:
        async with self._session_factory() as session:
            repo = TenantRepo(session)
            tenant = await repo.create(
                created_by=None, name=slug.title(), slug=slug, status=status
            )
            await repo.create_system_roles(tenant.id)
            await session.commit()
            return tenant.id

    async def user(
        self,
        tenant_id: int,
        email: str,
        password: str = "password123",
        *,
        role: Role = Role.employee,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> int:
        async with self._session_factory() as session:
            users = UserRepo(session)
            role_row = await users.get_role(tenant_id=tenant_id, code=role)
            user = await users.create(
                tenant_id=tenant_id,
                role_id=role_row.id,
                email=email,
                password_hash=hash_password(password, rounds=4),
                first_name=first_name,
                last_name=last_name,
            )
            await session.commit()
            return user.id

    async def super_admin(self, email: str, password: str) -> int:
        async with self._session_factory() as session:
            admin = await SuperAdminRepo(session).create(
                email=email, name="Ops", password_hash=hash_password(password, rounds=4)
            )
            await session.commit()
            return admin.id

    async def legacy_user(self, username: str, stored_password: str) -> int:
        async with self._session_factory() as session:
            # Stored as given: plain text simulates rows migrated from the old system.
            user = LegacyUser(username=username, password=stored_password, user_type="staff")
            session.add(user)
            await session.commit()
            return user.id

    async def leave_type(self, tenant_id: int, code: str = "CL") -> int:
        async with self._session_factory() as session:
            leave_type = await LeaveRepo(session).create_type(
                tenant_id=tenant_id, name=f"{code} leave", code=code
            )
            await session.commit()
            return leave_type.id

    async def balance(
        self, tenant_id: int, user_id: int, leave_type_id: int, *, year: int, total_days: float
    ) -> None:
        async with self._session_factory() as session:
            await LeaveRepo(session).upsert_balance(
                tenant_id=tenant_id,
                user_id=user_id,
                leave_type_id=leave_type_id,
                year=year,
                total_days=total_days,
            )
            await session.commit()


@pytest.fixture
def seed(sessionmaker: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(sessionmaker)


async def tenant_login(
    client: httpx.AsyncClient, slug: str, email: str, password: str = "password123"
) -> str:
    r = await client.post(
        "/v1/tenant/login", json={"tenant": slug, "email": email, "password": password}
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]["token"]


async def root_login(client: httpx.AsyncClient) -> str:
    r = await client.post(
        "/v1/super-admin/login", json={"email": ROOT_EMAIL, "password": ROOT_PASSWORD}
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]["token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
