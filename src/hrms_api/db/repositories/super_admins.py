from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.db.models import SuperAdmin


class SuperAdminRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_email(self, email: str) -> SuperAdmin | None:
        stmt = select(SuperAdmin).where(SuperAdmin.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(self, *, email: str, name: str, password_hash: str) -> SuperAdmin:
        admin = SuperAdmin(email=email, name=name, password=password_hash, is_active=True)
        self._session.add(admin)
        await self._session.flush()
        return admin

    async def set_password(self, admin_id: int, password_hash: str) -> None:
        await self._session.execute(
            update(SuperAdmin).where(SuperAdmin.id == admin_id).values(password=password_hash)
        )

    async def touch_last_login(self, admin_id: int, at: datetime) -> None:
        await self._session.execute(
            update(SuperAdmin).where(SuperAdmin.id == admin_id).values(last_login=at)
        )
