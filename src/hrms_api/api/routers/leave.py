"""
hrms_api.api.routers.leave

Leave management endpoints.

Responsibilities:
- Self-service: leave types, own balances, own requests, apply and cancel.
- Administration: leave types and balance allocation (ADMIN/HR).
- Review of pending requests (ADMIN/HR/MANAGER).
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from hrms_api.api.deps import audit_sink_dep, db_session, request_meta
from hrms_api.api.schemas import LeaveBalanceOut, LeaveRequestOut, LeaveTypeOut, ok, paged
from hrms_api.audit.sink import AuditSink, RequestMetadata
from hrms_api.auth.deps import current_principal, require_roles, require_tenant
from hrms_api.auth.models import Principal, Role
from hrms_api.db.models import LeaveStatus
from hrms_api.services.leave import LeaveService

router = APIRouter(prefix="/v1/leave", tags=["leave"], dependencies=[Depends(require_tenant)])

people_admins = require_roles(Role.admin, Role.hr)
reviewers = require_roles(Role.admin, Role.hr, Role.manager)


class LeaveTypeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    code: str = Field(min_length=1, max_length=20)
    is_paid: bool = True
    max_days_per_year: float | None = Field(default=None, ge=0)


class AllocateRequest(BaseModel):
    user_id: int
    leave_type_id: int
    year: int = Field(ge=2000, le=2100)
    total_days: float = Field(ge=0, le=366)


class ApplyRequest(BaseModel):
    leave_type_id: int
    from_date: date
    to_date: date
    total_days: float = Field(gt=0, le=366)
    reason: str = Field(min_length=1, max_length=1000)


class ReviewRequest(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    review_comments: str | None = Field(default=None, max_length=500)


def leave_service(
    session: AsyncSession = Depends(db_session),
    audit: AuditSink = Depends(audit_sink_dep),
) -> LeaveService:
    return LeaveService(session=session, audit=audit)


def _this_year() -> int:
    return datetime.now(tz=UTC).year


@router.get("/types")
async def list_types(
    tenant_id: int = Depends(require_tenant),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    types = await svc.list_types(tenant_id=tenant_id)
    return ok([LeaveTypeOut.model_validate(t) for t in types])


@router.post("/types", status_code=HTTP_201_CREATED, dependencies=[Depends(people_admins)])
async def create_type(
    body: LeaveTypeCreateRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    leave_type = await svc.create_type(
        actor=principal, tenant_id=tenant_id, fields=body.model_dump(), meta=meta
    )
    return ok(LeaveTypeOut.model_validate(leave_type))


@router.get("/my-balance")
async def my_balance(
    year: int | None = Query(default=None, ge=2000, le=2100),
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    balances = await svc.balances(
        tenant_id=tenant_id, user_id=principal.id, year=year or _this_year()
    )
    return ok([LeaveBalanceOut.from_balance(b) for b in balances])


@router.post("/balances/allocate", dependencies=[Depends(people_admins)])
async def allocate(
    body: AllocateRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    balance = await svc.allocate(
        actor=principal,
        tenant_id=tenant_id,
        user_id=body.user_id,
        leave_type_id=body.leave_type_id,
        year=body.year,
        total_days=body.total_days,
        meta=meta,
    )
    return ok(LeaveBalanceOut.from_balance(balance), message="Leave balance allocated")


@router.post("/apply", status_code=HTTP_201_CREATED)
async def apply(
    body: ApplyRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    request = await svc.apply(
        actor=principal,
        tenant_id=tenant_id,
        leave_type_id=body.leave_type_id,
        from_date=body.from_date,
        to_date=body.to_date,
        total_days=body.total_days,
        reason=body.reason,
        meta=meta,
    )
    return ok(
        LeaveRequestOut.from_request(request), message="Leave request submitted successfully"
    )


@router.get("/my-requests")
async def my_requests(
    status: LeaveStatus | None = None,
    year: int | None = Query(default=None, ge=2000, le=2100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    requests, total = await svc.list_requests(
        tenant_id=tenant_id, user_id=principal.id, status=status, year=year, page=page, limit=limit
    )
    items = [LeaveRequestOut.from_request(r) for r in requests]
    return ok(paged(items, total=total, page=page, limit=limit, key="requests"))


@router.get("/requests", dependencies=[Depends(reviewers)])
async def list_requests(
    status: LeaveStatus | None = None,
    user_id: int | None = None,
    year: int | None = Query(default=None, ge=2000, le=2100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    tenant_id: int = Depends(require_tenant),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    requests, total = await svc.list_requests(
        tenant_id=tenant_id, user_id=user_id, status=status, year=year, page=page, limit=limit
    )
    items = [LeaveRequestOut.from_request(r) for r in requests]
    return ok(paged(items, total=total, page=page, limit=limit, key="requests"))


@router.patch("/requests/{request_id}/review", dependencies=[Depends(reviewers)])
async def review(
    request_id: int,
    body: ReviewRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    status = LeaveStatus(body.status)
    request = await svc.review(
        actor=principal,
        tenant_id=tenant_id,
        request_id=request_id,
        status=status,
        comments=body.review_comments,
        meta=meta,
    )
    return ok(
        LeaveRequestOut.from_request(request),
        message=f"Leave request {status.value.lower()} successfully",
    )


@router.patch("/requests/{request_id}/cancel")
async def cancel(
    request_id: int,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: LeaveService = Depends(leave_service),
) -> dict[str, Any]:
    await svc.cancel(actor=principal, tenant_id=tenant_id, request_id=request_id, meta=meta)
    return ok(message="Leave request cancelled")
