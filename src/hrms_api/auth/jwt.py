"""
hrms_api.auth.jwt

JWT issuing and validation helpers.

Responsibilities:
- Issue session tokens for each principal kind.
- Decode and validate tokens with strict claim requirements (iss/aud/exp/iat/sub/jti).
- Convert validated claims back into a typed principal.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from hrms_api.auth.models import (
    LegacyPrincipal,
    Principal,
    PrincipalKind,
    Role,
    SuperAdminPrincipal,
    TenantUserPrincipal,
)


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str


class JwtValidationError(Exception):
    def __init__(self, message: str, *, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


def principal_claims(principal: Principal) -> dict[str, Any]:
    if isinstance(principal, TenantUserPrincipal):
        return {
            "tenant_id": principal.tenant_id,
            "tenant_slug": principal.tenant_slug,
            "email": principal.email,
            "role": principal.role.value,
        }
    if isinstance(principal, SuperAdminPrincipal):
        return {"email": principal.email}
    return {"username": principal.username, "user_type": principal.user_type}


def issue_token(
    *,
    cfg: JwtConfig,
    principal: Principal,
    ttl: timedelta = timedelta(hours=8),
) -> tuple[str, datetime]:
    now = datetime.now(tz=UTC)
    expires_at = now + ttl
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": str(principal.id),
        "jti": uuid.uuid4().hex,
        "kind": principal.kind.value,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
        **principal_claims(principal),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg), expires_at


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub", "jti"],
            },
        )
    except ExpiredSignatureError as e:
        raise JwtValidationError(str(e), expired=True) from e
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    """
    Rebuild the principal from a validated payload.
    Raises ValueError when the claims do not describe a known principal.
    """

    try:
        kind = PrincipalKind(claims.get("kind"))
        subject = int(claims["sub"])
        if kind is PrincipalKind.tenant_user:
            tenant_id = claims.get("tenant_id")
            if tenant_id is None:
                raise ValueError("tenant token without tenant_id")
            return TenantUserPrincipal(
                id=subject,
                tenant_id=int(tenant_id),
                tenant_slug=str(claims["tenant_slug"]),
                email=str(claims["email"]),
                role=Role(claims["role"]),
            )
        if kind is PrincipalKind.super_admin:
            return SuperAdminPrincipal(id=subject, email=str(claims["email"]))
        return LegacyPrincipal(
            id=subject,
            username=str(claims["username"]),
            user_type=claims.get("user_type"),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"incomplete claims: {e}") from e


# --- Module Notes -----------------------------------------------------------
# `jti` makes every login a distinct token, so logging out one device does not
# revoke another device's session.
