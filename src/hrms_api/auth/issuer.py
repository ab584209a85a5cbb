"""
hrms_api.auth.issuer

Credential verification and session issuing.

Responsibilities:
- Verify passwords for tenant users, super-admins and legacy accounts.
- Upgrade legacy plain-text passwords to bcrypt on first successful login.
- Mint a session token and record it as "valid" in the session store.
- End sessions (logout) and revoke every session of a principal.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hrms_api.audit.sink import ActorType, AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.jwt import JwtConfig, issue_token
from hrms_api.auth.models import (
    LegacyPrincipal,
    Principal,
    PrincipalKind,
    SuperAdminPrincipal,
    TenantUserPrincipal,
)
from hrms_api.auth.passwords import (
    DEFAULT_ROUNDS,
    hash_password,
    is_password_hashed,
    verify_legacy_plaintext,
    verify_password,
)
from hrms_api.auth.sessions import SessionStore, namespace_for
from hrms_api.db.models import TenantStatus
from hrms_api.db.repositories.legacy_users import LegacyUserRepo
from hrms_api.db.repositories.super_admins import SuperAdminRepo
from hrms_api.db.repositories.tenants import TenantRepo
from hrms_api.db.repositories.users import UserRepo
from hrms_api.errors import InvalidCredentialsError
from hrms_api.observability.logging import get_logger

log = get_logger(__name__)

# Audit entity name for each kind of account.
ENTITY_BY_KIND: dict[PrincipalKind, str] = {
    PrincipalKind.tenant_user: "User",
    PrincipalKind.super_admin: "SuperAdmin",
    PrincipalKind.legacy: "LegacyUser",
}


@dataclass(frozen=True, slots=True)
class IssuedSession:
    token: str
    principal: Principal
    expires_at: datetime


class CredentialIssuer:
    def __init__(
        self,
        *,
        session: AsyncSession,
        store: SessionStore,
        jwt_cfg: JwtConfig,
        audit: AuditSink,
        ttl: timedelta = timedelta(hours=8),
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._session = session
        self._store = store
        self._jwt_cfg = jwt_cfg
        self._audit = audit
        self._ttl = ttl
        self._rounds = bcrypt_rounds

    # Login flows

    async def login_tenant_user(
        self,
        *,
        tenant_slug: str,
        email: str,
        password: str,
        meta: RequestMetadata | None = None,
    ) -> IssuedSession:
        try:
            tenant = await TenantRepo(self._session).get_by_slug(tenant_slug)
            if tenant is None or tenant.status is not TenantStatus.active:
                raise InvalidCredentialsError("tenant missing or inactive")

            users = UserRepo(self._session)
            user = await users.get_by_email(tenant_id=tenant.id, email=email)
            if user is None or not user.is_active:
                raise InvalidCredentialsError("user missing or inactive", tenant_id=tenant.id)

            # Capture everything needed before any best-effort write can roll back
            # and expire the loaded rows.
            principal = TenantUserPrincipal(
                id=user.id,
                tenant_id=tenant.id,
                tenant_slug=tenant.slug,
                email=user.email,
                role=user.role.code,
            )
            await self._check_password(
                password,
                user.password,
                upgrade=lambda h: users.set_password(
                    tenant_id=principal.tenant_id, user_id=principal.id, password_hash=h
                ),
                failure=InvalidCredentialsError("wrong password", tenant_id=tenant.id),
            )
        except InvalidCredentialsError as e:
            await self._audit.record(
                action=AuditAction.login_failed,
                entity="User",
                tenant_id=e.tenant_id,
                actor_email=email,
                new_value={"reason": e.reason},
                meta=meta,
            )
            raise

        await self._best_effort(
            "last_login_update",
            lambda: users.touch_last_login(
                tenant_id=principal.tenant_id, user_id=principal.id, at=_utcnow()
            ),
        )
        issued = await self._open_session(principal)
        await self._audit.record_for(
            principal, action=AuditAction.login, entity="User", entity_id=principal.id, meta=meta
        )
        return issued

    async def login_super_admin(
        self, *, email: str, password: str, meta: RequestMetadata | None = None
    ) -> IssuedSession:
        admins = SuperAdminRepo(self._session)
        try:
            admin = await admins.get_by_email(email)
            if admin is None or not admin.is_active:
                raise InvalidCredentialsError("super admin missing or inactive")
            principal = SuperAdminPrincipal(id=admin.id, email=admin.email)
            await self._check_password(
                password,
                admin.password,
                upgrade=lambda h: admins.set_password(principal.id, h),
                failure=InvalidCredentialsError("wrong password"),
            )
        except InvalidCredentialsError as e:
            await self._audit.record(
                action=AuditAction.login_failed,
                entity="SuperAdmin",
                actor_email=email,
                actor_type=ActorType.super_admin,
                new_value={"reason": e.reason},
                meta=meta,
            )
            raise

        await self._best_effort(
            "last_login_update", lambda: admins.touch_last_login(principal.id, _utcnow())
        )
        issued = await self._open_session(principal)
        await self._audit.record_for(
            principal,
            action=AuditAction.login,
            entity="SuperAdmin",
            entity_id=principal.id,
            meta=meta,
        )
        return issued

    async def login_legacy(
        self, *, username: str, password: str, meta: RequestMetadata | None = None
    ) -> IssuedSession:
        users = LegacyUserRepo(self._session)
        try:
            user = await users.get_active_by_username(username)
            if user is None:
                raise InvalidCredentialsError("legacy user missing")
            principal = LegacyPrincipal(
                id=user.id, username=user.username, user_type=user.user_type
            )
            await self._check_password(
                password,
                user.password,
                upgrade=lambda h: users.set_password(principal.id, h),
                failure=InvalidCredentialsError("wrong password"),
            )
        except InvalidCredentialsError as e:
            await self._audit.record(
                action=AuditAction.login_failed,
                entity=ENTITY_BY_KIND[PrincipalKind.legacy],
                actor_type=ActorType.legacy,
                new_value={"username": username, "reason": e.reason},
                meta=meta,
            )
            raise

        await self._best_effort(
            "last_login_update", lambda: users.touch_last_login(principal.id, _utcnow())
        )
        issued = await self._open_session(principal)
        await self._audit.record_for(
            principal,
            action=AuditAction.login,
            entity=ENTITY_BY_KIND[PrincipalKind.legacy],
            entity_id=principal.id,
            new_value={"username": principal.username},
            meta=meta,
        )
        return issued

    # Session lifecycle

    async def logout(
        self, principal: Principal, token: str, *, meta: RequestMetadata | None = None
    ) -> None:
        await self._store.revoke(namespace=namespace_for(principal.kind), token=token)
        await self._audit.record_for(
            principal,
            action=AuditAction.logout,
            entity=ENTITY_BY_KIND[principal.kind],
            entity_id=principal.id,
            meta=meta,
        )

    async def revoke_all(self, kind: PrincipalKind, principal_id: int) -> int:
        revoked = await self._store.revoke_all(
            namespace=namespace_for(kind), principal_id=principal_id
        )
        log.info("sessions_revoked", kind=kind.value, principal_id=principal_id, count=revoked)
        return revoked

    # Internals

    async def _check_password(
        self,
        password: str,
        stored: str,
        *,
        upgrade: Callable[[str], Awaitable[None]],
        failure: InvalidCredentialsError,
    ) -> None:
        if is_password_hashed(stored):
            if not await run_in_threadpool(verify_password, password, stored):
                raise failure
            return

        if not verify_legacy_plaintext(password, stored):
            raise failure

        hashed = await run_in_threadpool(hash_password, password, rounds=self._rounds)
        await self._best_effort("password_upgrade", lambda: upgrade(hashed))

    async def _best_effort(self, what: str, op: Callable[[], Awaitable[None]]) -> None:
        """
        Run a write that must not fail the login. Failures are rolled back and
        logged instead of being ignored silently.
        """

        try:
            await op()
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            log.warning(f"{what}_failed", exc_info=True)

    async def _open_session(self, principal: Principal) -> IssuedSession:
        token, expires_at = issue_token(cfg=self._jwt_cfg, principal=principal, ttl=self._ttl)
        await self._store.open(
            namespace=namespace_for(principal.kind),
            token=token,
            principal_id=principal.id,
            ttl=self._ttl,
        )
        log.info("session_opened", kind=principal.kind.value, principal_id=principal.id)
        return IssuedSession(token=token, principal=principal, expires_at=expires_at)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC).replace(tzinfo=None)


# --- Module Notes -----------------------------------------------------------
# Every failure path raises the same InvalidCredentialsError; the precise reason only
# reaches the audit trail (LOGIN_FAILED), never the response.
