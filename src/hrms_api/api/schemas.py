"""
hrms_api.api.schemas

Shared request/response models for the HTTP surface.

Responsibilities:
- Wrap payloads in the `{"success": true, "data": ...}` envelope.
- Define output models reused by several routers.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, ClassVar

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from hrms_api.auth.models import Role
from hrms_api.db.models import LeaveBalance, LeaveRequest, LeaveStatus, User


def ok(data: Any = None, *, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if message is not None:
        body["message"] = message
    return body


def paged(items: list[Any], *, total: int, page: int, limit: int, key: str) -> dict[str, Any]:
    return {key: items, "total": total, "page": page, "limit": limit}


class PartialUpdate(BaseModel):
    """
    Base for PATCH bodies. Omitted fields stay unchanged; an explicit `null` is
    accepted only for the fields listed in `nullable_fields`.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name not in cls.nullable_fields:
            raise ValueError("may not be null")
        return value


class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    employee_code: str | None
    role: Role
    is_active: bool
    last_login: datetime | None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserOut:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            employee_code=user.employee_code,
            role=user.role.code,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    is_paid: bool
    max_days_per_year: float | None


class LeaveBalanceOut(BaseModel):
    id: int
    user_id: int
    year: int
    leave_type: LeaveTypeOut
    total_days: float
    used_days: float
    pending_days: float
    available_days: float

    @classmethod
    def from_balance(cls, balance: LeaveBalance) -> LeaveBalanceOut:
        return cls(
            id=balance.id,
            user_id=balance.user_id,
            year=balance.year,
            leave_type=LeaveTypeOut.model_validate(balance.leave_type),
            total_days=balance.total_days,
            used_days=balance.used_days,
            pending_days=balance.pending_days,
            available_days=balance.available_days,
        )


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    leave_type: LeaveTypeOut
    from_date: date
    to_date: date
    total_days: float
    reason: str
    status: LeaveStatus
    reviewed_by: int | None
    reviewed_at: datetime | None
    review_comments: str | None
    created_at: datetime

    @classmethod
    def from_request(cls, request: LeaveRequest) -> LeaveRequestOut:
        return cls.model_validate(request)
