"""
hrms_api.db.repositories.users

Repository for tenant `User` entities.

Responsibilities:
- Look up, list and mutate employees, always filtered by tenant id.
- Resolve tenant role rows by role code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.auth.models import Role
from hrms_api.db.models import TenantRole, User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, *, tenant_id: int, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id, User.tenant_id == tenant_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_email(self, *, tenant_id: int, email: str) -> User | None:
        stmt = select(User).where(User.tenant_id == tenant_id, User.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_role(self, *, tenant_id: int, code: Role) -> TenantRole | None:
        stmt = select(TenantRole).where(TenantRole.tenant_id == tenant_id, TenantRole.code == code)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_page(
        self,
        *,
        tenant_id: int,
        search: str | None = None,
        role: Role | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[User], int]:
        conditions: list[Any] = [User.tenant_id == tenant_id]
        if role is not None:
            conditions.append(
                User.role_id.in_(select(TenantRole.id).where(TenantRole.code == role))
            )
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.employee_code).like(pattern),
                )
            )
        stmt = (
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(User).where(*conditions)
        users = list((await self._session.execute(stmt)).scalars().all())
        total = (await self._session.execute(count_stmt)).scalar_one()
        return users, total

    async def list_ids(self, *, tenant_id: int) -> list[int]:
        stmt = select(User.id).where(User.tenant_id == tenant_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(
        self,
        *,
        tenant_id: int,
        role_id: int,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str = "",
        employee_code: str | None = None,
        created_by: int | None = None,
    ) -> User:
        user = User(
            tenant_id=tenant_id,
            role_id=role_id,
            email=email,
            password=password_hash,
            first_name=first_name,
            last_name=last_name,
            employee_code=employee_code,
            is_active=True,
            created_by=created_by,
        )
        self._session.add(user)
        await self._session.flush()
        # Load the role relationship for callers that serialise the new user.
        await self._session.refresh(user, attribute_names=["role"])
        return user

    async def update_fields(self, user: User, fields: dict[str, Any]) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self._session.flush()
        if "role_id" in fields:
            await self._session.refresh(user, attribute_names=["role"])
        return user

    async def set_password(self, *, tenant_id: int, user_id: int, password_hash: str) -> None:
        await self._session.execute(
            update(User)
            .where(User.id == user_id, User.tenant_id == tenant_id)
            .values(password=password_hash)
        )

    async def touch_last_login(self, *, tenant_id: int, user_id: int, at: datetime) -> None:
        await self._session.execute(
            update(User).where(User.id == user_id, User.tenant_id == tenant_id).values(last_login=at)
        )


# --- Module Notes -----------------------------------------------------------
# There is deliberately no "get by id" without a tenant id.
