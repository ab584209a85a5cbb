"""
hrms_api.services.users

Tenant employee management.

Responsibilities:
- Create, update and deactivate users inside the caller's tenant.
- Revoke a user's sessions on deactivation or password change.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hrms_api.audit.sink import AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.models import Principal, PrincipalKind, Role
from hrms_api.auth.passwords import hash_password
from hrms_api.auth.sessions import SessionStore, namespace_for
from hrms_api.db.models import User
from hrms_api.db.repositories.users import UserRepo
from hrms_api.errors import BadRequestError, NotFoundError


class UserService:
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
        self._users = UserRepo(session)

    async def get(self, *, tenant_id: int, user_id: int) -> User:
        user = await self._users.get(tenant_id=tenant_id, user_id=user_id)
        if user is None:
            # Users of other tenants are indistinguishable from missing ones.
            raise NotFoundError("User not found")
        return user

    async def list_page(
        self,
        *,
        tenant_id: int,
        search: str | None,
        role: Role | None,
        page: int,
        limit: int,
    ) -> tuple[list[User], int]:
        return await self._users.list_page(
            tenant_id=tenant_id,
            search=search,
            role=role,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def create(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role,
        employee_code: str | None,
        meta: RequestMetadata | None = None,
    ) -> User:
        if await self._users.get_by_email(tenant_id=tenant_id, email=email) is not None:
            raise BadRequestError("Email already exists")
        role_row = await self._resolve_role(tenant_id, role)
        password_hash = await run_in_threadpool(hash_password, password, rounds=self._rounds)

        try:
            user = await self._users.create(
                tenant_id=tenant_id,
                role_id=role_row.id,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                employee_code=employee_code,
                created_by=actor.id,
            )
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise BadRequestError("Email already exists") from e

        await self._audit.record_for(
            actor,
            action=AuditAction.create,
            entity="User",
            entity_id=user.id,
            new_value=user_snapshot(user),
            meta=meta,
        )
        return user

    async def update(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        user_id: int,
        changes: dict[str, Any],
        meta: RequestMetadata | None = None,
    ) -> User:
        user = await self.get(tenant_id=tenant_id, user_id=user_id)
        before = user_snapshot(user)
        fields = dict(changes)

        email = fields.pop("email", None)
        if email and email != user.email:
            if await self._users.get_by_email(tenant_id=tenant_id, email=email) is not None:
                raise BadRequestError("Email already exists")
            fields["email"] = email

        role = fields.pop("role", None)
        if role is not None:
            fields["role_id"] = (await self._resolve_role(tenant_id, role)).id

        password = fields.pop("password", None)
        if password:
            fields["password"] = await run_in_threadpool(
                hash_password, password, rounds=self._rounds
            )

        await self._users.update_fields(user, fields)
        await self._session.commit()

        if password or fields.get("is_active") is False:
            await self._revoke_sessions(user.id)

        await self._audit.record_for(
            actor,
            action=AuditAction.update,
            entity="User",
            entity_id=user.id,
            old_value=before,
            new_value={**user_snapshot(user), **({"password": password} if password else {})},
            meta=meta,
        )
        if password:
            await self._audit.record_for(
                actor, action=AuditAction.password_change, entity="User", entity_id=user.id, meta=meta
            )
        return user

    async def deactivate(
        self,
        *,
        actor: Principal,
        tenant_id: int,
        user_id: int,
        meta: RequestMetadata | None = None,
    ) -> None:
        user = await self.get(tenant_id=tenant_id, user_id=user_id)
        snapshot = user_snapshot(user)
        await self._users.update_fields(user, {"is_active": False})
        await self._session.commit()
        await self._revoke_sessions(user.id)
        await self._audit.record_for(
            actor,
            action=AuditAction.delete,
            entity="User",
            entity_id=user.id,
            old_value=snapshot,
            meta=meta,
        )

    async def _resolve_role(self, tenant_id: int, role: Role):
        role_row = await self._users.get_role(tenant_id=tenant_id, code=role)
        if role_row is None:
            raise BadRequestError("Invalid role")
        return role_row

    async def _revoke_sessions(self, user_id: int) -> int:
        return await self._store.revoke_all(
            namespace=namespace_for(PrincipalKind.tenant_user), principal_id=user_id
        )


def user_snapshot(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "employee_code": user.employee_code,
        "role": user.role.code.value,
        "is_active": user.is_active,
    }
