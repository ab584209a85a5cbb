"""
hrms_api.api.routers.tenant

Tenant-side authentication and employee management.

Responsibilities:
- Tenant user login/logout and profile.
- Employee CRUD within the caller's tenant, gated by role.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from hrms_api.api.deps import (
    audit_sink_dep,
    credential_issuer_dep,
    db_session,
    request_meta,
    session_store_dep,
    settings_dep,
)
from hrms_api.api.schemas import PartialUpdate, UserOut, ok, paged
from hrms_api.audit.sink import AuditSink, RequestMetadata
from hrms_api.auth.deps import current_principal, require_roles, require_tenant
from hrms_api.auth.issuer import CredentialIssuer
from hrms_api.auth.models import Principal, Role
from hrms_api.auth.sessions import SessionStore
from hrms_api.services.users import UserService
from hrms_api.settings import Settings

router = APIRouter(prefix="/v1/tenant", tags=["tenant"])

staff_only = require_roles(Role.admin, Role.hr, Role.manager)
people_admins = require_roles(Role.admin, Role.hr)
admins_only = require_roles(Role.admin)


class TenantLoginRequest(BaseModel):
    tenant: str = Field(min_length=1, max_length=100, description="Tenant slug")
    email: str = Field(min_length=3, max_length=256)
    password: str = Field(min_length=1, max_length=256)


class UserCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=256)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    employee_code: str | None = Field(default=None, max_length=32)
    role: Role = Role.employee


class UserUpdateRequest(PartialUpdate):
    nullable_fields = frozenset({"employee_code"})

    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=256)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    employee_code: str | None = Field(default=None, max_length=32)
    role: Role | None = None
    is_active: bool | None = None


def user_service(
    session: AsyncSession = Depends(db_session),
    store: SessionStore = Depends(session_store_dep),
    audit: AuditSink = Depends(audit_sink_dep),
    settings: Settings = Depends(settings_dep),
) -> UserService:
    return UserService(session=session, store=store, audit=audit, bcrypt_rounds=settings.bcrypt_rounds)


@router.post("/login")
async def login(
    body: TenantLoginRequest,
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    issued = await issuer.login_tenant_user(
        tenant_slug=body.tenant, email=body.email, password=body.password, meta=meta
    )
    principal = issued.principal
    return ok(
        {
            "token": issued.token,
            "expires_at": issued.expires_at,
            "user": {"id": principal.id, "email": principal.email, "role": principal.role},
            "tenant": {"id": principal.tenant_id, "slug": principal.tenant_slug},
        }
    )


@router.post("/logout", dependencies=[Depends(require_tenant)])
async def logout(
    request: Request,
    principal: Principal = Depends(current_principal),
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    await issuer.logout(principal, request.state.token, meta=meta)
    return ok(message="Logged out")


@router.get("/profile")
async def profile(
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    user = await svc.get(tenant_id=tenant_id, user_id=principal.id)
    return ok(UserOut.from_user(user))


@router.get("/users", dependencies=[Depends(require_tenant), Depends(staff_only)])
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None, max_length=100),
    role: Role | None = None,
    tenant_id: int = Depends(require_tenant),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    users, total = await svc.list_page(
        tenant_id=tenant_id, search=search, role=role, page=page, limit=limit
    )
    items = [UserOut.from_user(u) for u in users]
    return ok(paged(items, total=total, page=page, limit=limit, key="users"))


@router.get("/users/{user_id}", dependencies=[Depends(require_tenant), Depends(staff_only)])
async def get_user(
    user_id: int,
    tenant_id: int = Depends(require_tenant),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    return ok(UserOut.from_user(await svc.get(tenant_id=tenant_id, user_id=user_id)))


@router.post(
    "/users",
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_tenant), Depends(people_admins)],
)
async def create_user(
    body: UserCreateRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    user = await svc.create(
        actor=principal,
        tenant_id=tenant_id,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        employee_code=body.employee_code,
        meta=meta,
    )
    return ok(UserOut.from_user(user))


@router.patch("/users/{user_id}", dependencies=[Depends(require_tenant), Depends(people_admins)])
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    user = await svc.update(
        actor=principal,
        tenant_id=tenant_id,
        user_id=user_id,
        changes=body.model_dump(exclude_unset=True),
        meta=meta,
    )
    return ok(UserOut.from_user(user))


@router.delete("/users/{user_id}", dependencies=[Depends(require_tenant), Depends(admins_only)])
async def delete_user(
    user_id: int,
    principal: Principal = Depends(current_principal),
    tenant_id: int = Depends(require_tenant),
    meta: RequestMetadata = Depends(request_meta),
    svc: UserService = Depends(user_service),
) -> dict[str, Any]:
    await svc.deactivate(actor=principal, tenant_id=tenant_id, user_id=user_id, meta=meta)
    return ok(message="User deactivated")
