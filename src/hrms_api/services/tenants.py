"""
hrms_api.services.tenants

Platform-side tenant management (super-admin only).

Responsibilities:
- Provision a tenant, its system roles and its first admin user atomically.
- Change tenant status, revoking every user session when a tenant stops being active.
- Provide the listing/detail/dashboard reads used by the super-admin console.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hrms_api.audit.sink import ActorType, AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.models import PrincipalKind, Role, SuperAdminPrincipal
from hrms_api.auth.passwords import hash_password
from hrms_api.auth.sessions import SessionStore, namespace_for
from hrms_api.db.models import Tenant, TenantStatus, User
from hrms_api.db.repositories.tenants import TenantRepo
from hrms_api.db.repositories.users import UserRepo
from hrms_api.errors import BadRequestError, ConflictError, NotFoundError
from hrms_api.observability.logging import get_logger

log = get_logger(__name__)

ADMIN_EMPLOYEE_CODE = "ADMIN001"


@dataclass(frozen=True, slots=True)
class AdminAccount:
    email: str
    password: str
    first_name: str
    last_name: str = ""


@dataclass(frozen=True, slots=True)
class ProvisionedTenant:
    tenant: Tenant
    admin: User


class TenantService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        store: SessionStore,
        audit: AuditSink,
        bcrypt_rounds: int,
    ) -> None:
        self._session = session
        self._store = store
        self._audit = audit
        self._rounds = bcrypt_rounds
        self._tenants = TenantRepo(session)
        self._users = UserRepo(session)

    async def provision(
        self,
        *,
        actor: SuperAdminPrincipal,
        fields: dict[str, Any],
        admin: AdminAccount,
        meta: RequestMetadata | None = None,
    ) -> ProvisionedTenant:
        if await self._tenants.get_by_slug(fields["slug"]) is not None:
            raise BadRequestError("Slug already exists")

        password_hash = await run_in_threadpool(hash_password, admin.password, rounds=self._rounds)

        # One transaction: either the tenant, its roles and its admin all exist, or none do.
        try:
            tenant = await self._tenants.create(created_by=actor.id, **fields)
            roles = await self._tenants.create_system_roles(tenant.id)
            admin_user = await self._users.create(
                tenant_id=tenant.id,
                role_id=roles[Role.admin].id,
                email=admin.email,
                password_hash=password_hash,
                first_name=admin.first_name,
                last_name=admin.last_name,
                employee_code=ADMIN_EMPLOYEE_CODE,
                created_by=None,
            )
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("Tenant already exists") from e
        except Exception:
            await self._session.rollback()
            raise

        log.info("tenant_provisioned", tenant_id=tenant.id, slug=tenant.slug)
        await self._audit.record(
            action=AuditAction.create,
            entity="Tenant",
            tenant_id=tenant.id,
            actor_id=actor.id,
            actor_email=actor.email,
            actor_type=ActorType.super_admin,
            entity_id=tenant.id,
            new_value=tenant_snapshot(tenant),
            meta=meta,
        )
        return ProvisionedTenant(tenant=tenant, admin=admin_user)

    async def list_page(
        self,
        *,
        status: TenantStatus | None,
        search: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[tuple[Tenant, int]], int]:
        tenants, total = await self._tenants.list_page(
            status=status, search=search, offset=(page - 1) * limit, limit=limit
        )
        rows = [(t, await self._tenants.count_users(t.id)) for t in tenants]
        return rows, total

    async def get(self, tenant_id: int) -> Tenant:
        tenant = await self._tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    async def detail(self, tenant_id: int) -> tuple[Tenant, int, list[User]]:
        tenant = await self.get(tenant_id)
        admins, _ = await self._users.list_page(tenant_id=tenant_id, role=Role.admin, limit=100)
        return tenant, await self._tenants.count_users(tenant_id), admins

    async def update(
        self,
        *,
        actor: SuperAdminPrincipal,
        tenant_id: int,
        fields: dict[str, Any],
        meta: RequestMetadata | None = None,
    ) -> Tenant:
        tenant = await self.get(tenant_id)
        before = tenant_snapshot(tenant)
        for name, value in fields.items():
            setattr(tenant, name, value)
        await self._session.commit()
        await self._audit.record(
            action=AuditAction.update,
            entity="Tenant",
            tenant_id=tenant.id,
            actor_id=actor.id,
            actor_email=actor.email,
            actor_type=ActorType.super_admin,
            entity_id=tenant.id,
            old_value=before,
            new_value=tenant_snapshot(tenant),
            meta=meta,
        )
        return tenant

    async def change_status(
        self,
        *,
        actor: SuperAdminPrincipal,
        tenant_id: int,
        status: TenantStatus,
        meta: RequestMetadata | None = None,
    ) -> Tenant:
        tenant = await self.get(tenant_id)
        previous = tenant.status
        tenant.status = status
        await self._session.commit()

        if status is not TenantStatus.active:
            revoked = await self.revoke_user_sessions(tenant_id)
            log.info("tenant_sessions_revoked", tenant_id=tenant_id, count=revoked)

        await self._audit.record(
            action=AuditAction.status_change,
            entity="Tenant",
            tenant_id=tenant.id,
            actor_id=actor.id,
            actor_email=actor.email,
            actor_type=ActorType.super_admin,
            entity_id=tenant.id,
            old_value={"name": tenant.name, "status": previous.value},
            new_value={"name": tenant.name, "status": status.value},
            meta=meta,
        )
        return tenant

    async def revoke_user_sessions(self, tenant_id: int) -> int:
        namespace = namespace_for(PrincipalKind.tenant_user)
        revoked = 0
        for user_id in await self._users.list_ids(tenant_id=tenant_id):
            revoked += await self._store.revoke_all(namespace=namespace, principal_id=user_id)
        return revoked

    async def dashboard(self) -> dict[str, int]:
        return await self._tenants.stats()


def tenant_snapshot(tenant: Tenant) -> dict[str, Any]:
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "email": tenant.email,
        "phone": tenant.phone,
        "status": tenant.status.value,
        "subscription_plan": tenant.subscription_plan,
        "enabled_modules": list(tenant.enabled_modules or []),
    }
