"""
hrms_api.auth.scoping

Tenant-scope extraction and role gating.

Responsibilities:
- Resolve the tenant a request acts on from the authenticated principal.
- Check a principal's role against a literal allow-list.
"""

from __future__ import annotations

from dataclasses import dataclass

from hrms_api.auth.models import Principal, Role, SuperAdminPrincipal, TenantScope
from hrms_api.errors import ForbiddenError

NO_ORGANIZATION_ACCESS = "No organization access"
ORGANIZATION_REQUIRED = "Organization context required"
INSUFFICIENT_PERMISSIONS = "Insufficient permissions"


def resolve_tenant_scope(principal: Principal) -> TenantScope:
    if isinstance(principal, SuperAdminPrincipal):
        return TenantScope(tenant_id=None)
    if principal.tenant_id is None:
        raise ForbiddenError(NO_ORGANIZATION_ACCESS)
    return TenantScope(tenant_id=principal.tenant_id)


def require_tenant_id(scope: TenantScope) -> int:
    if scope.tenant_id is None:
        raise ForbiddenError(ORGANIZATION_REQUIRED)
    return scope.tenant_id


@dataclass(frozen=True, slots=True)
class RoleGate:
    """
    Exact-match allow-list. `ADMIN` does not inherit `MANAGER`'s routes unless
    both are listed.
    """

    allowed: frozenset[Role]

    @classmethod
    def of(cls, *roles: Role) -> RoleGate:
        if not roles:
            raise ValueError("a role gate needs at least one role")
        return cls(allowed=frozenset(roles))

    def allows(self, principal: Principal) -> bool:
        return principal.role is not None and principal.role in self.allowed

    def enforce(self, principal: Principal) -> Principal:
        if not self.allows(principal):
            raise ForbiddenError(INSUFFICIENT_PERMISSIONS)
        return principal
