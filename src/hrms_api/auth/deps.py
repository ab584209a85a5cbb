"""
hrms_api.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Turn the Authorization header into a typed `Principal` (or a 401).
- Derive the tenant scope from the principal.
- Enforce role allow-lists via a reusable dependency factory.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hrms_api.api.deps import session_validator_dep
from hrms_api.auth.models import (
    Principal,
    PrincipalKind,
    Rejected,
    Role,
    TenantScope,
)
from hrms_api.auth.scoping import RoleGate, require_tenant_id, resolve_tenant_scope
from hrms_api.auth.validator import SessionValidator
from hrms_api.errors import ForbiddenError, UnauthorizedError
from hrms_api.observability.logging import get_logger

log = get_logger(__name__)

ACCESS_DENIED = "Access denied"

# Declares the scheme in OpenAPI. The raw header is still validated below so a
# missing token and a malformed one stay distinguishable in the logs.
_bearer = HTTPBearer(auto_error=False)


class Authenticator:
    """
    Dependency accepting only the given principal kinds.

    Instances are module-level so FastAPI resolves each one once per request, no
    matter how many other dependencies ask for it.
    """

    def __init__(self, *kinds: PrincipalKind) -> None:
        self.kinds = frozenset(kinds)

    async def __call__(
        self,
        request: Request,
        validator: SessionValidator = Depends(session_validator_dep),
        _creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    ) -> Principal:
        result = await validator.validate(request.headers.get("authorization"))
        if isinstance(result, Rejected):
            # The reason is logged, never returned.
            log.info("auth_rejected", reason=result.error.value)
            raise UnauthorizedError()

        principal = result.principal
        if principal.kind not in self.kinds:
            log.info("auth_wrong_kind", kind=principal.kind.value)
            raise ForbiddenError(ACCESS_DENIED)

        request.state.principal = principal
        request.state.token = result.token
        structlog.contextvars.bind_contextvars(
            principal_kind=principal.kind.value,
            principal_id=principal.id,
            tenant_id=principal.tenant_id,
        )
        return principal


current_principal = Authenticator(PrincipalKind.tenant_user, PrincipalKind.super_admin)
current_super_admin = Authenticator(PrincipalKind.super_admin)
current_legacy_user = Authenticator(PrincipalKind.legacy)


def extract_tenant_scope(principal: Principal = Depends(current_principal)) -> TenantScope:
    return resolve_tenant_scope(principal)


def require_tenant(scope: TenantScope = Depends(extract_tenant_scope)) -> int:
    return require_tenant_id(scope)


def require_roles(*roles: Role):
    gate = RoleGate.of(*roles)

    def _dep(
        principal: Principal = Depends(current_principal),
        _scope: TenantScope = Depends(extract_tenant_scope),
    ) -> Principal:
        # Declared after the scope dependency so the gate only sees scoped principals.
        return gate.enforce(principal)

    return _dep


# --- Module Notes -----------------------------------------------------------
# Route declarations compose as: authentication -> tenant scope -> role gate.
# Each step depends on the previous one, so FastAPI cannot reorder them.
