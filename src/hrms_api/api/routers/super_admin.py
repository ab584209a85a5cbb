"""
hrms_api.api.routers.super_admin

Platform console endpoints.

Responsibilities:
- Super-admin login/logout.
- Tenant provisioning, listing, detail, update and status changes.
- Platform dashboard counters.
"""

from __future__ import annotations

from datetime import datetime
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
from hrms_api.auth.deps import current_super_admin
from hrms_api.auth.issuer import CredentialIssuer
from hrms_api.auth.models import SuperAdminPrincipal
from hrms_api.auth.sessions import SessionStore
from hrms_api.db.models import Tenant, TenantStatus
from hrms_api.services.tenants import AdminAccount, TenantService
from hrms_api.settings import Settings

router = APIRouter(prefix="/v1/super-admin", tags=["super-admin"])


class SuperAdminLoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=256)
    password: str = Field(min_length=1, max_length=256)


class TenantCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=2, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=32)
    subscription_plan: str | None = Field(default=None, max_length=64)
    enabled_modules: list[str] = Field(default_factory=list)

    admin_email: EmailStr
    admin_password: str = Field(min_length=8, max_length=256)
    admin_first_name: str = Field(min_length=1, max_length=100)
    admin_last_name: str = Field(default="", max_length=100)


class TenantUpdateRequest(PartialUpdate):
    nullable_fields = frozenset({"email", "phone", "subscription_plan"})

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=32)
    subscription_plan: str | None = Field(default=None, max_length=64)
    enabled_modules: list[str] | None = None


class TenantStatusRequest(BaseModel):
    status: TenantStatus


class TenantOut(BaseModel):
    id: int
    name: str
    slug: str
    email: str | None
    phone: str | None
    status: TenantStatus
    subscription_plan: str | None
    enabled_modules: list[str]
    created_at: datetime
    user_count: int | None = None

    @classmethod
    def from_tenant(cls, tenant: Tenant, *, user_count: int | None = None) -> TenantOut:
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            email=tenant.email,
            phone=tenant.phone,
            status=tenant.status,
            subscription_plan=tenant.subscription_plan,
            enabled_modules=list(tenant.enabled_modules or []),
            created_at=tenant.created_at,
            user_count=user_count,
        )


def tenant_service(
    session: AsyncSession = Depends(db_session),
    store: SessionStore = Depends(session_store_dep),
    audit: AuditSink = Depends(audit_sink_dep),
    settings: Settings = Depends(settings_dep),
) -> TenantService:
    return TenantService(
        session=session, store=store, audit=audit, bcrypt_rounds=settings.bcrypt_rounds
    )


@router.post("/login")
async def login(
    body: SuperAdminLoginRequest,
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    issued = await issuer.login_super_admin(email=body.email, password=body.password, meta=meta)
    return ok(
        {
            "token": issued.token,
            "expires_at": issued.expires_at,
            "user": {"id": issued.principal.id, "email": issued.principal.email},
        }
    )


@router.post("/logout")
async def logout(
    request: Request,
    admin: SuperAdminPrincipal = Depends(current_super_admin),
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    await issuer.logout(admin, request.state.token, meta=meta)
    return ok(message="Logged out")


@router.get("/dashboard")
async def dashboard(
    _: SuperAdminPrincipal = Depends(current_super_admin),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    return ok(await svc.dashboard())


@router.post("/tenants", status_code=HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreateRequest,
    admin: SuperAdminPrincipal = Depends(current_super_admin),
    meta: RequestMetadata = Depends(request_meta),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    fields = body.model_dump(include={"name", "slug", "email", "phone", "subscription_plan"})
    fields["enabled_modules"] = list(body.enabled_modules)
    provisioned = await svc.provision(
        actor=admin,
        fields=fields,
        admin=AdminAccount(
            email=body.admin_email,
            password=body.admin_password,
            first_name=body.admin_first_name,
            last_name=body.admin_last_name,
        ),
        meta=meta,
    )
    tenant = provisioned.tenant
    return ok(
        {
            "tenant": TenantOut.from_tenant(tenant),
            "admin_user": UserOut.from_user(provisioned.admin),
            # The password is never echoed back; the operator already has it.
            "credentials": {"email": body.admin_email, "login_url": f"/{tenant.slug}/login"},
        }
    )


@router.get("/tenants")
async def list_tenants(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: TenantStatus | None = None,
    search: str | None = Query(default=None, max_length=100),
    _: SuperAdminPrincipal = Depends(current_super_admin),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    rows, total = await svc.list_page(status=status, search=search, page=page, limit=limit)
    items = [TenantOut.from_tenant(t, user_count=count) for t, count in rows]
    return ok(paged(items, total=total, page=page, limit=limit, key="tenants"))


@router.get("/tenants/{tenant_id}")
async def get_tenant(
    tenant_id: int,
    _: SuperAdminPrincipal = Depends(current_super_admin),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    tenant, user_count, admins = await svc.detail(tenant_id)
    return ok(
        {
            **TenantOut.from_tenant(tenant, user_count=user_count).model_dump(),
            "admin_users": [UserOut.from_user(u) for u in admins],
        }
    )


@router.patch("/tenants/{tenant_id}")
async def update_tenant(
    tenant_id: int,
    body: TenantUpdateRequest,
    admin: SuperAdminPrincipal = Depends(current_super_admin),
    meta: RequestMetadata = Depends(request_meta),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    tenant = await svc.update(
        actor=admin, tenant_id=tenant_id, fields=body.model_dump(exclude_unset=True), meta=meta
    )
    return ok(TenantOut.from_tenant(tenant))


@router.patch("/tenants/{tenant_id}/status")
async def change_tenant_status(
    tenant_id: int,
    body: TenantStatusRequest,
    admin: SuperAdminPrincipal = Depends(current_super_admin),
    meta: RequestMetadata = Depends(request_meta),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    tenant = await svc.change_status(
        actor=admin, tenant_id=tenant_id, status=body.status, meta=meta
    )
    return ok(TenantOut.from_tenant(tenant), message=f"Tenant {body.status.value.lower()}")


@router.delete("/tenants/{tenant_id}")
async def deactivate_tenant(
    tenant_id: int,
    admin: SuperAdminPrincipal = Depends(current_super_admin),
    meta: RequestMetadata = Depends(request_meta),
    svc: TenantService = Depends(tenant_service),
) -> dict[str, Any]:
    # Soft delete: the tenant and its data stay, its users can no longer log in.
    await svc.change_status(
        actor=admin, tenant_id=tenant_id, status=TenantStatus.inactive, meta=meta
    )
    return ok(message="Tenant deactivated")
