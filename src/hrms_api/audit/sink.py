"""
hrms_api.audit.sink

Write-only audit side channel.

Responsibilities:
- Persist one immutable entry per mutating action.
- Run in its own transaction, after the business change has committed.
- Never raise: a failed audit write is logged, not surfaced to the caller.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import Request

from hrms_api.audit.diff import compute_changes, entity_name, normalize, sanitize
from hrms_api.auth.models import Principal, PrincipalKind
from hrms_api.db.repositories.audit import AuditLogRepo
from hrms_api.observability.logging import get_logger

log = get_logger(__name__)


class AuditAction(enum.StrEnum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"
    login = "LOGIN"
    login_failed = "LOGIN_FAILED"
    logout = "LOGOUT"
    password_change = "PASSWORD_CHANGE"
    status_change = "STATUS_CHANGE"
    leave_apply = "LEAVE_APPLY"
    leave_approve = "LEAVE_APPROVE"
    leave_reject = "LEAVE_REJECT"
    leave_cancel = "LEAVE_CANCEL"


class ActorType(enum.StrEnum):
    tenant_user = "TENANT_USER"
    super_admin = "SUPER_ADMIN"
    legacy = "LEGACY"


_ACTOR_BY_KIND: dict[PrincipalKind, ActorType] = {
    PrincipalKind.tenant_user: ActorType.tenant_user,
    PrincipalKind.super_admin: ActorType.super_admin,
    PrincipalKind.legacy: ActorType.legacy,
}


@dataclass(frozen=True, slots=True)
class RequestMetadata:
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestMetadata:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else None
        return cls(ip_address=ip, user_agent=request.headers.get("user-agent"))


class AuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        *,
        action: AuditAction,
        entity: str,
        tenant_id: int | None = None,
        actor_id: int | None = None,
        actor_email: str | None = None,
        actor_type: ActorType = ActorType.tenant_user,
        entity_id: int | None = None,
        old_value: Any = None,
        new_value: Any = None,
        meta: RequestMetadata | None = None,
    ) -> int | None:
        """
        Returns the new entry id, or None when the write failed.
        """

        try:
            old = sanitize(normalize(old_value))
            new = sanitize(normalize(new_value))
            meta = meta or RequestMetadata()
            async with self._session_factory() as session:
                entry = await AuditLogRepo(session).add(
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    actor_email=actor_email,
                    actor_type=actor_type.value,
                    action=action.value,
                    entity=entity,
                    entity_id=entity_id,
                    entity_name=entity_name(entity, new or old),
                    old_value=old,
                    new_value=new,
                    changes=compute_changes(old, new),
                    ip_address=meta.ip_address,
                    user_agent=meta.user_agent,
                )
                await session.commit()
                entry_id = entry.id
        except Exception:
            # The business change is already committed; audit failures never propagate.
            log.exception(
                "audit_write_failed",
                action=action.value,
                entity=entity,
                entity_id=entity_id,
                tenant_id=tenant_id,
            )
            return None

        log.debug("audit_recorded", audit_id=entry_id, action=action.value, entity=entity)
        return entry_id

    async def record_for(
        self,
        principal: Principal,
        *,
        action: AuditAction,
        entity: str,
        entity_id: int | None = None,
        old_value: Any = None,
        new_value: Any = None,
        meta: RequestMetadata | None = None,
    ) -> int | None:
        # Actor fields come from the authenticated principal.
        return await self.record(
            action=action,
            entity=entity,
            tenant_id=principal.tenant_id,
            actor_id=principal.id,
            actor_email=getattr(principal, "email", None),
            actor_type=_ACTOR_BY_KIND[principal.kind],
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value,
            meta=meta,
        )


# --- Module Notes -----------------------------------------------------------
# No hashing/chaining is attempted: entries are trusted application records, not a
# tamper-evident ledger.
