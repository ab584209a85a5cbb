from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.db.models import LegacyUser


class LegacyUserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> LegacyUser | None:
        return await self._session.get(LegacyUser, user_id)

    async def get_active_by_username(self, username: str) -> LegacyUser | None:
        stmt = select(LegacyUser).where(
            LegacyUser.username == username, LegacyUser.is_deleted.is_(False)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def username_taken(self, username: str, *, exclude_id: int) -> bool:
        stmt = select(LegacyUser.id).where(
            LegacyUser.username == username, LegacyUser.id != exclude_id
        )
        return (await self._session.execute(stmt)).first() is not None

    async def create(
        self, *, username: str, password: str, name: str | None = None, user_type: str | None = None
    ) -> LegacyUser:
        user = LegacyUser(username=username, password=password, name=name, user_type=user_type)
        self._session.add(user)
        await self._session.flush()
        return user

    async def set_password(self, user_id: int, password_hash: str) -> None:
        await self._session.execute(
            update(LegacyUser).where(LegacyUser.id == user_id).values(password=password_hash)
        )

    async def set_credentials(self, user_id: int, *, username: str, password_hash: str) -> None:
        await self._session.execute(
            update(LegacyUser)
            .where(LegacyUser.id == user_id)
            .values(username=username, password=password_hash)
        )

    async def touch_last_login(self, user_id: int, at: datetime) -> None:
        await self._session.execute(
            update(LegacyUser).where(LegacyUser.id == user_id).values(latest_login=at)
        )
