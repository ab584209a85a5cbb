"""
hrms_api.db.seed

Startup bootstrap data.

Responsibilities:
- Create the configured platform super-admin when it does not exist yet.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.concurrency import run_in_threadpool

from hrms_api.auth.passwords import hash_password
from hrms_api.db.repositories.super_admins import SuperAdminRepo
from hrms_api.observability.logging import get_logger
from hrms_api.settings import Settings

log = get_logger(__name__)


async def ensure_super_admin(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> int | None:
    if not (settings.super_admin_email and settings.super_admin_password):
        return None

    async with session_factory() as session:
        admins = SuperAdminRepo(session)
        existing = await admins.get_by_email(settings.super_admin_email)
        if existing is not None:
            return existing.id

        password_hash = await run_in_threadpool(
            hash_password, settings.super_admin_password, rounds=settings.bcrypt_rounds
        )
        admin = await admins.create(
            email=settings.super_admin_email,
            name=settings.super_admin_name,
            password_hash=password_hash,
        )
        await session.commit()
        log.info("super_admin_bootstrapped", super_admin_id=admin.id)
        return admin.id
