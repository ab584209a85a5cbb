"""
hrms_api.services.leave

Leave bookkeeping.

Responsibilities:
- Keep balances consistent: apply moves days to pending, approval moves them to
  used, rejection and cancellation release them.
- Restrict review to PENDING requests of the caller's tenant.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.audit.sink import AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.models import Principal
from hrms_api.db.models import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType
from hrms_api.db.repositories.leave import LeaveRepo
from hrms_api.db.repositories.users import UserRepo
from hrms_api.errors import BadRequestError, NotFoundError

_REVIEW_ACTIONS = {
    LeaveStatus.approved: AuditAction.leave_approve,
    LeaveStatus.rejected: AuditAction.leave_reject,
}


class LeaveService:
    def __init__(self, *, session: AsyncSession, audit: AuditSink) -> None:
        self._session = session
        self._audit = audit
        self._leave = LeaveRepo(session)

    # Leave types

    async def list_types(self, *, tenant_id: int) -> list[LeaveType]:
        return await self._leave.list_types(tenant_id=tenant_id)

    async def create_type(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        fields: dict[str, Any],
        meta: RequestMetadata | None = None,
    ) -> LeaveType:
        if await self._leave.get_type_by_code(tenant_id=tenant_id, code=fields["code"]) is not None:
            raise BadRequestError("Leave type code already exists")
        leave_type = await self._leave.create_type(tenant_id=tenant_id, **fields)
        await self._session.commit()
        await self._audit.record_for(
            actor,
            action=AuditAction.create,
            entity="LeaveType",
            entity_id=leave_type.id,
            new_value=fields,
            meta=meta,
        )
        return leave_type

    # Balances

    async def balances(self, *, tenant_id: int, user_id: int, year: int) -> list[LeaveBalance]:
        return await self._leave.list_balances(tenant_id=tenant_id, user_id=user_id, year=year)

    async def allocate(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        user_id: int,
        leave_type_id: int,
        year: int,
        total_days: float,
        meta: RequestMetadata | None = None,
    ) -> LeaveBalance:
        if await UserRepo(self._session).get(tenant_id=tenant_id, user_id=user_id) is None:
            raise NotFoundError("User not found")
        if await self._leave.get_type(tenant_id=tenant_id, leave_type_id=leave_type_id) is None:
            raise NotFoundError("Leave type not found")

        balance = await self._leave.upsert_balance(
            tenant_id=tenant_id,
            user_id=user_id,
            leave_type_id=leave_type_id,
            year=year,
            total_days=total_days,
        )
        if balance.available_days < 0:
            await self._session.rollback()
            raise BadRequestError("Total days cannot be less than used and pending days")
        await self._session.commit()
        await self._audit.record_for(
            actor,
            action=AuditAction.update,
            entity="LeaveBalance",
            entity_id=balance.id,
            new_value={
                "user_id": user_id,
                "leave_type_id": leave_type_id,
                "year": year,
                "total_days": total_days,
            },
            meta=meta,
        )
        return balance

    # Requests

    async def apply(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        leave_type_id: int,
        from_date: date,
        to_date: date,
        total_days: float,
        reason: str,
        meta: RequestMetadata | None = None,
    ) -> LeaveRequest:
        if to_date < from_date:
            raise BadRequestError("End date must not be before start date")

        balance = await self._leave.get_balance(
            tenant_id=tenant_id,
            user_id=actor.id,
            leave_type_id=leave_type_id,
            year=from_date.year,
            for_update=True,
        )
        if balance is None or balance.available_days < total_days:
            raise BadRequestError("Insufficient leave balance")

        request = await self._leave.create_request(
            tenant_id=tenant_id,
            user_id=actor.id,
            leave_type_id=leave_type_id,
            from_date=from_date,
            to_date=to_date,
            total_days=total_days,
            reason=reason,
        )
        balance.pending_days += total_days
        await self._session.commit()

        await self._audit.record_for(
            actor,
            action=AuditAction.leave_apply,
            entity="LeaveRequest",
            entity_id=request.id,
            new_value={
                "leave_type_id": leave_type_id,
                "from_date": from_date,
                "to_date": to_date,
                "total_days": total_days,
                "reason": reason,
            },
            meta=meta,
        )
        return request

    async def list_requests(
        self,
        *,
        tenant_id: int,
        user_id: int | None = None,
        status: LeaveStatus | None = None,
        year: int | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[LeaveRequest], int]:
        return await self._leave.list_requests(
            tenant_id=tenant_id,
            user_id=user_id,
            status=status,
            year=year,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def review(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        request_id: int,
        status: LeaveStatus,
        comments: str | None = None,
        meta: RequestMetadata | None = None,
    ) -> LeaveRequest:
        if status not in _REVIEW_ACTIONS:
            raise BadRequestError("Invalid status")

        request = await self._leave.get_request(
            tenant_id=tenant_id,
            request_id=request_id,
            status=LeaveStatus.pending,
            for_update=True,
        )
        if request is None:
            raise NotFoundError("Leave request not found or already processed")

        request.status = status
        request.reviewed_by = actor.id
        request.reviewed_at = datetime.now(tz=UTC).replace(tzinfo=None)
        request.review_comments = comments

        balance = await self._balance_for(request)
        if balance is not None:
            balance.pending_days -= request.total_days
            if status is LeaveStatus.approved:
                balance.used_days += request.total_days
        await self._session.commit()

        await self._audit.record_for(
            actor,
            action=_REVIEW_ACTIONS[status],
            entity="LeaveRequest",
            entity_id=request.id,
            old_value={"status": LeaveStatus.pending.value},
            new_value={"status": status.value, "review_comments": comments},
            meta=meta,
        )
        return request

    async def cancel(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        request_id: int,
        meta: RequestMetadata | None = None,
    ) -> LeaveRequest:
        # Only the applicant can cancel, and only while the request is pending.
        request = await self._leave.get_request(
            tenant_id=tenant_id,
            request_id=request_id,
            user_id=actor.id,
            status=LeaveStatus.pending,
            for_update=True,
        )
        if request is None:
            raise NotFoundError("Leave request not found or cannot be cancelled")

        request.status = LeaveStatus.cancelled
        balance = await self._balance_for(request)
        if balance is not None:
            balance.pending_days -= request.total_days
        await self._session.commit()

        await self._audit.record_for(
            actor,
            action=AuditAction.leave_cancel,
            entity="LeaveRequest",
            entity_id=request.id,
            old_value={"status": LeaveStatus.pending.value},
            new_value={"status": LeaveStatus.cancelled.value},
            meta=meta,
        )
        return request

    async def _balance_for(self, request: LeaveRequest) -> LeaveBalance | None:
        return await self._leave.get_balance(
            tenant_id=request.tenant_id,
            user_id=request.user_id,
            leave_type_id=request.leave_type_id,
            year=request.from_date.year,
            for_update=True,
        )
