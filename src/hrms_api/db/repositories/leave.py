from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_api.db.models import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType


class LeaveRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # Leave types

    async def list_types(self, *, tenant_id: int) -> list[LeaveType]:
        stmt = (
            select(LeaveType)
            .where(LeaveType.tenant_id == tenant_id, LeaveType.is_active.is_(True))
            .order_by(LeaveType.name)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_type(self, *, tenant_id: int, leave_type_id: int) -> LeaveType | None:
        stmt = select(LeaveType).where(
            LeaveType.id == leave_type_id, LeaveType.tenant_id == tenant_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_type_by_code(self, *, tenant_id: int, code: str) -> LeaveType | None:
        stmt = select(LeaveType).where(LeaveType.tenant_id == tenant_id, LeaveType.code == code)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create_type(self, *, tenant_id: int, **fields: Any) -> LeaveType:
        leave_type = LeaveType(tenant_id=tenant_id, **fields)
        self._session.add(leave_type)
        await self._session.flush()
        return leave_type

    # Balances

    async def get_balance(
        self,
        *,
        tenant_id: int,
        user_id: int,
        leave_type_id: int,
        year: int,
        for_update: bool = False,
    ) -> LeaveBalance | None:
        stmt = select(LeaveBalance).where(
            LeaveBalance.tenant_id == tenant_id,
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_balances(self, *, tenant_id: int, user_id: int, year: int) -> list[LeaveBalance]:
        stmt = (
            select(LeaveBalance)
            .where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == year,
            )
            .order_by(LeaveBalance.leave_type_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def upsert_balance(
        self, *, tenant_id: int, user_id: int, leave_type_id: int, year: int, total_days: float
    ) -> LeaveBalance:
        balance = await self.get_balance(
            tenant_id=tenant_id,
            user_id=user_id,
            leave_type_id=leave_type_id,
            year=year,
            for_update=True,
        )
        if balance is None:
            balance = LeaveBalance(
                tenant_id=tenant_id,
                user_id=user_id,
                leave_type_id=leave_type_id,
                year=year,
                total_days=total_days,
                used_days=0.0,
                pending_days=0.0,
            )
            self._session.add(balance)
        else:
            # Used/pending are preserved; availability is derived from them.
            balance.total_days = total_days
        await self._session.flush()
        await self._session.refresh(balance, attribute_names=["leave_type"])
        return balance

    # Requests

    async def create_request(self, *, tenant_id: int, user_id: int, **fields: Any) -> LeaveRequest:
        request = LeaveRequest(
            tenant_id=tenant_id, user_id=user_id, status=LeaveStatus.pending, **fields
        )
        self._session.add(request)
        await self._session.flush()
        await self._session.refresh(request, attribute_names=["leave_type"])
        return request

    async def get_request(
        self,
        *,
        tenant_id: int,
        request_id: int,
        user_id: int | None = None,
        status: LeaveStatus | None = None,
        for_update: bool = False,
    ) -> LeaveRequest | None:
        stmt = select(LeaveRequest).where(
            LeaveRequest.id == request_id, LeaveRequest.tenant_id == tenant_id
        )
        if user_id is not None:
            stmt = stmt.where(LeaveRequest.user_id == user_id)
        if status is not None:
            stmt = stmt.where(LeaveRequest.status == status)
        if for_update:
            stmt = stmt.with_for_update()
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_requests(
        self,
        *,
        tenant_id: int,
        user_id: int | None = None,
        status: LeaveStatus | None = None,
        year: int | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[LeaveRequest], int]:
        conditions: list[Any] = [LeaveRequest.tenant_id == tenant_id]
        if user_id is not None:
            conditions.append(LeaveRequest.user_id == user_id)
        if status is not None:
            conditions.append(LeaveRequest.status == status)
        if year is not None:
            conditions.append(LeaveRequest.from_date >= date(year, 1, 1))
            conditions.append(LeaveRequest.from_date <= date(year, 12, 31))
        stmt = (
            select(LeaveRequest)
            .where(*conditions)
            .order_by(desc(LeaveRequest.created_at), desc(LeaveRequest.id))
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(LeaveRequest).where(*conditions)
        requests = list((await self._session.execute(stmt)).scalars().all())
        total = (await self._session.execute(count_stmt)).scalar_one()
        return requests, total
