"""
hrms_api.auth.validator

Per-request session validation.

Responsibilities:
- Extract the bearer token from the Authorization header.
- Verify signature/expiry, then confirm the session record is still "valid".
- Report the outcome as an `AuthResult` instead of raising.
"""

from __future__ import annotations

from hrms_api.auth.jwt import (
    JwtConfig,
    JwtValidationError,
    decode_and_validate,
    principal_from_claims,
)
from hrms_api.auth.models import Authenticated, AuthError, AuthResult, Rejected
from hrms_api.auth.sessions import SessionState, SessionStore, namespace_for

BEARER_PREFIX = "bearer "


def parse_bearer(authorization: str | None) -> str | AuthError:
    if not authorization:
        return AuthError.missing_token
    if not authorization.lower().startswith(BEARER_PREFIX):
        return AuthError.malformed_token
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token or " " in token:
        return AuthError.malformed_token
    return token


class SessionValidator:
    """
    NoToken -> TokenPresent -> SignatureValid -> StoreConfirmed -> Authorized.
    Each step short-circuits with a precise `AuthError`.
    """

    def __init__(self, *, cfg: JwtConfig, store: SessionStore) -> None:
        self._cfg = cfg
        self._store = store

    async def validate(self, authorization: str | None) -> AuthResult:
        token = parse_bearer(authorization)
        if isinstance(token, AuthError):
            return Rejected(token)

        try:
            claims = decode_and_validate(cfg=self._cfg, token=token)
        except JwtValidationError as e:
            return Rejected(AuthError.expired_token if e.expired else AuthError.signature_invalid)

        try:
            principal = principal_from_claims(claims)
        except ValueError:
            return Rejected(AuthError.malformed_token)

        # The store is consulted only after the signature checks out, so an expired
        # token is rejected regardless of what the store says.
        state = await self._store.state(namespace=namespace_for(principal.kind), token=token)
        if state is not SessionState.valid:
            return Rejected(AuthError.revoked_token)

        return Authenticated(principal=principal, token=token)


# --- Module Notes -----------------------------------------------------------
# The HTTP boundary (`auth.deps.Authenticator`) collapses every Rejected into one
# generic 401 so callers cannot tell forged, expired and revoked tokens apart.
