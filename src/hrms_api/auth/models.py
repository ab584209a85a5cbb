"""
hrms_api.auth.models

Auth domain models.

Responsibilities:
- Define the closed set of principal variants injected into endpoints.
- Define role codes, tenant scope and the validator's result type.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar


class PrincipalKind(enum.StrEnum):
    # Stored in the `kind` token claim; treat values as a stable wire contract.
    super_admin = "super_admin"
    tenant_user = "tenant_user"
    legacy = "legacy"


class Role(enum.StrEnum):
    # Flat role set: no role implies another.
    admin = "ADMIN"
    hr = "HR"
    manager = "MANAGER"
    employee = "EMPLOYEE"


@dataclass(frozen=True, slots=True)
class SuperAdminPrincipal:
    """
    Platform operator. Never carries a tenant id or a tenant role.
    """

    kind: ClassVar[PrincipalKind] = PrincipalKind.super_admin

    id: int
    email: str

    @property
    def tenant_id(self) -> None:
        return None

    @property
    def role(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class TenantUserPrincipal:
    """
    Employee of exactly one tenant.
    """

    kind: ClassVar[PrincipalKind] = PrincipalKind.tenant_user

    id: int
    tenant_id: int
    tenant_slug: str
    email: str
    role: Role

    def __post_init__(self) -> None:
        if self.tenant_id is None:
            raise ValueError("tenant user principal requires a tenant id")


@dataclass(frozen=True, slots=True)
class LegacyPrincipal:
    """
    Account from the general (pre-tenancy) user table.
    """

    kind: ClassVar[PrincipalKind] = PrincipalKind.legacy

    id: int
    username: str
    user_type: str | None = None

    @property
    def tenant_id(self) -> None:
        return None

    @property
    def role(self) -> None:
        return None


Principal = SuperAdminPrincipal | TenantUserPrincipal | LegacyPrincipal


@dataclass(frozen=True, slots=True)
class TenantScope:
    # None only for super-admins, who operate across tenants.
    tenant_id: int | None

    @property
    def is_platform(self) -> bool:
        return self.tenant_id is None


class AuthError(enum.StrEnum):
    missing_token = "MissingToken"
    malformed_token = "MalformedToken"
    expired_token = "ExpiredToken"
    revoked_token = "RevokedToken"
    signature_invalid = "SignatureInvalid"


@dataclass(frozen=True, slots=True)
class Authenticated:
    principal: Principal
    token: str


@dataclass(frozen=True, slots=True)
class Rejected:
    error: AuthError


AuthResult = Authenticated | Rejected


# --- Module Notes -----------------------------------------------------------
# Keep these types free of framework imports; they are shared by the validator,
# the issuer, services and tests.
