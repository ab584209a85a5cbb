from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.auth.models import Role
from hrms_api.db.models import Tenant, TenantRole, TenantStatus, User

SYSTEM_ROLES: tuple[tuple[str, Role], ...] = (
    ("Admin", Role.admin),
    ("HR", Role.hr),
    ("Manager", Role.manager),
    ("Employee", Role.employee),
)


class TenantRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, created_by: int | None, **fields: Any) -> Tenant:
        tenant = Tenant(created_by=created_by, **fields)
        self._session.add(tenant)
        await self._session.flush()
        return tenant

    async def create_system_roles(self, tenant_id: int) -> dict[Role, TenantRole]:
        roles = {
            code: TenantRole(tenant_id=tenant_id, name=name, code=code, is_system=True)
            for name, code in SYSTEM_ROLES
        }
        self._session.add_all(roles.values())
        await self._session.flush()
        return roles

    async def get(self, tenant_id: int) -> Tenant | None:
        return await self._session.get(Tenant, tenant_id)

    async def get_by_slug(self, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.slug == slug)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_page(
        self,
        *,
        status: TenantStatus | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[Tenant], int]:
        conditions = []
        if status is not None:
            conditions.append(Tenant.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Tenant.name).like(pattern),
                    func.lower(Tenant.email).like(pattern),
                    func.lower(Tenant.slug).like(pattern),
                )
            )
        stmt = (
            select(Tenant)
            .where(*conditions)
            .order_by(Tenant.created_at.desc(), Tenant.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Tenant).where(*conditions)
        tenants = list((await self._session.execute(stmt)).scalars().all())
        total = (await self._session.execute(count_stmt)).scalar_one()
        return tenants, total

    async def count_users(self, tenant_id: int) -> int:
        stmt = select(func.count()).select_from(User).where(User.tenant_id == tenant_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def stats(self) -> dict[str, int]:
        total = (await self._session.execute(select(func.count()).select_from(Tenant))).scalar_one()
        active = (
            await self._session.execute(
                select(func.count()).select_from(Tenant).where(Tenant.status == TenantStatus.active)
            )
        ).scalar_one()
        users = (await self._session.execute(select(func.count()).select_from(User))).scalar_one()
        return {"total_tenants": total, "active_tenants": active, "total_users": users}
