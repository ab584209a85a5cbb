"""
hrms_api.db.repositories.audit

Repository for `AuditLog` entities.

Responsibilities:
- Append audit entries (never update or delete).
- Query the audit trail per tenant for the audit console.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.db.models import AuditLog


@dataclass(frozen=True, slots=True)
class AuditFilter:
    entity: str | None = None
    entity_id: int | None = None
    action: str | None = None
    actor_id: int | None = None
    start: datetime | None = None
    end: datetime | None = None
    search: str | None = None


class AuditLogRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, **fields: Any) -> AuditLog:
        entry = AuditLog(**fields)
        self._session.add(entry)
        await self._session.flush()
        return entry

    def _conditions(self, tenant_id: int, flt: AuditFilter) -> list[Any]:
        conditions: list[Any] = [AuditLog.tenant_id == tenant_id]
        if flt.entity:
            conditions.append(AuditLog.entity == flt.entity)
        if flt.entity_id is not None:
            conditions.append(AuditLog.entity_id == flt.entity_id)
        if flt.action:
            conditions.append(AuditLog.action == flt.action)
        if flt.actor_id is not None:
            conditions.append(AuditLog.actor_id == flt.actor_id)
        if flt.start is not None:
            conditions.append(AuditLog.created_at >= flt.start)
        if flt.end is not None:
            conditions.append(AuditLog.created_at <= flt.end)
        if flt.search:
            pattern = f"%{flt.search.lower()}%"
            conditions.append(
                or_(
                    func.lower(AuditLog.entity_name).like(pattern),
                    func.lower(AuditLog.actor_email).like(pattern),
                )
            )
        return conditions

    async def list_page(
        self,
        *,
        tenant_id: int,
        flt: AuditFilter | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditLog], int]:
        # Newest-first for UI consumption.
        conditions = self._conditions(tenant_id, flt or AuditFilter())
        stmt = (
            select(AuditLog)
            .where(*conditions)
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(AuditLog).where(*conditions)
        entries = list((await self._session.execute(stmt)).scalars().all())
        total = (await self._session.execute(count_stmt)).scalar_one()
        return entries, total

    async def get(self, *, tenant_id: int, entry_id: int) -> AuditLog | None:
        stmt = select(AuditLog).where(AuditLog.id == entry_id, AuditLog.tenant_id == tenant_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def entity_types(self, *, tenant_id: int) -> list[str]:
        stmt = (
            select(AuditLog.entity)
            .where(AuditLog.tenant_id == tenant_id)
            .distinct()
            .order_by(AuditLog.entity)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _count_by(self, column: Any, conditions: list[Any]) -> list[tuple[str, int]]:
        stmt = (
            select(column, func.count(AuditLog.id))
            .where(*conditions)
            .group_by(column)
            .order_by(column)
        )
        return [(key, count) for key, count in (await self._session.execute(stmt)).all()]

    async def stats(
        self,
        *,
        tenant_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        now: datetime | None = None,
    ) -> dict[str, list[tuple[str, int]]]:
        conditions = self._conditions(tenant_id, AuditFilter(start=start, end=end))
        reference = now or datetime.now(tz=UTC).replace(tzinfo=None)
        recent = self._conditions(tenant_id, AuditFilter(start=reference - timedelta(days=7)))
        return {
            "by_action": await self._count_by(AuditLog.action, conditions),
            "by_entity": await self._count_by(AuditLog.entity, conditions),
            "recent_activity": await self._count_by(AuditLog.action, recent),
        }


# --- Module Notes -----------------------------------------------------------
# Writes go through `audit.sink.AuditSink`, which owns its own session/transaction.
