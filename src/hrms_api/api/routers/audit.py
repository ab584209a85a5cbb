"""
hrms_api.api.routers.audit

Read side of the audit trail (ADMIN/HR of the caller's tenant).

Responsibilities:
- Filtered, paginated listing and single-entry detail.
- Per-entity history and per-user activity.
- Entity-type catalogue and aggregate counters.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.api.deps import db_session
from hrms_api.api.schemas import ok, paged
from hrms_api.auth.deps import require_roles, require_tenant
from hrms_api.auth.models import Role
from hrms_api.db.repositories.audit import AuditFilter, AuditLogRepo
from hrms_api.errors import NotFoundError

router = APIRouter(
    prefix="/v1/audit",
    tags=["audit"],
    dependencies=[Depends(require_tenant), Depends(require_roles(Role.admin, Role.hr))],
)


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: int | None
    actor_email: str | None
    actor_type: str
    action: str
    entity: str
    entity_id: int | None
    entity_name: str | None
    old_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    changes: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


def _day_start(d: date | None) -> datetime | None:
    return datetime.combine(d, time.min) if d else None


def _day_end(d: date | None) -> datetime | None:
    # Inclusive end date.
    return datetime.combine(d, time.max) if d else None


async def _page(
    session: AsyncSession, *, tenant_id: int, flt: AuditFilter, page: int, limit: int
) -> dict[str, Any]:
    entries, total = await AuditLogRepo(session).list_page(
        tenant_id=tenant_id, flt=flt, offset=(page - 1) * limit, limit=limit
    )
    items = [AuditEntryOut.model_validate(e) for e in entries]
    return paged(items, total=total, page=page, limit=limit, key="logs")


@router.get("")
async def list_entries(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    entity: str | None = Query(default=None, max_length=64),
    entity_id: int | None = None,
    action: str | None = Query(default=None, max_length=32),
    actor_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = Query(default=None, max_length=100),
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    flt = AuditFilter(
        entity=entity,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        start=_day_start(start_date),
        end=_day_end(end_date),
        search=search,
    )
    return ok(await _page(session, tenant_id=tenant_id, flt=flt, page=page, limit=limit))


@router.get("/stats")
async def stats(
    start_date: date | None = None,
    end_date: date | None = None,
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    counts = await AuditLogRepo(session).stats(
        tenant_id=tenant_id, start=_day_start(start_date), end=_day_end(end_date)
    )
    return ok(
        {
            "by_action": [{"action": k, "count": n} for k, n in counts["by_action"]],
            "by_entity": [{"entity": k, "count": n} for k, n in counts["by_entity"]],
            "recent_activity": [{"action": k, "count": n} for k, n in counts["recent_activity"]],
        }
    )


@router.get("/entity-types")
async def entity_types(
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    return ok(await AuditLogRepo(session).entity_types(tenant_id=tenant_id))


@router.get("/entity/{entity}/{entity_id}")
async def entity_history(
    entity: str,
    entity_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    flt = AuditFilter(entity=entity, entity_id=entity_id)
    return ok(await _page(session, tenant_id=tenant_id, flt=flt, page=page, limit=limit))


@router.get("/user/{user_id}")
async def user_activity(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    flt = AuditFilter(actor_id=user_id)
    return ok(await _page(session, tenant_id=tenant_id, flt=flt, page=page, limit=limit))


# Declared last so the static paths above take precedence.
@router.get("/{entry_id}")
async def get_entry(
    entry_id: int,
    tenant_id: int = Depends(require_tenant),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    entry = await AuditLogRepo(session).get(tenant_id=tenant_id, entry_id=entry_id)
    if entry is None:
        raise NotFoundError("Audit log not found")
    return ok(AuditEntryOut.model_validate(entry))
