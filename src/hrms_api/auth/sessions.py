"""
hrms_api.auth.sessions

Server-side session records in Redis.

Responsibilities:
- Record a token as "valid" at login, with a TTL matching token expiry.
- Revoke a single token ("Invalid") or every live token of a principal.
- Answer whether a token is still honoured, independently of its signature.
"""

from __future__ import annotations

import enum
from datetime import timedelta
from typing import Any

import redis.asyncio as aioredis

from hrms_api.auth.models import PrincipalKind
from hrms_api.observability.logging import get_logger

log = get_logger(__name__)

SESSION_VALID = "valid"
SESSION_INVALID = "Invalid"


class SessionNamespace(enum.StrEnum):
    # Disjoint key prefixes: revoking one principal kind never touches another.
    tenant_user = "tenant"
    super_admin = "superadmin"
    legacy = "jwt"


_NAMESPACE_BY_KIND: dict[PrincipalKind, SessionNamespace] = {
    PrincipalKind.tenant_user: SessionNamespace.tenant_user,
    PrincipalKind.super_admin: SessionNamespace.super_admin,
    PrincipalKind.legacy: SessionNamespace.legacy,
}


def namespace_for(kind: PrincipalKind) -> SessionNamespace:
    return _NAMESPACE_BY_KIND[kind]


class SessionState(enum.StrEnum):
    valid = "valid"
    revoked = "revoked"
    missing = "missing"


class SessionStore:
    """
    Explicitly constructed and injected (see `api.app.create_app`), so tests can
    hand in a client backed by fakeredis.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> SessionStore:
        client = aioredis.from_url(url, decode_responses=True, **kwargs)
        return cls(client)

    @staticmethod
    def token_key(namespace: SessionNamespace, token: str) -> str:
        return f"{namespace.value}:{token}"

    @staticmethod
    def principal_key(namespace: SessionNamespace, principal_id: int) -> str:
        return f"{namespace.value}:principal:{principal_id}"

    async def connect(self) -> None:
        await self._client.ping()
        log.info("session_store_connected")

    async def disconnect(self) -> None:
        await self._client.aclose()
        log.info("session_store_disconnected")

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def open(
        self,
        *,
        namespace: SessionNamespace,
        token: str,
        principal_id: int,
        ttl: timedelta,
    ) -> None:
        seconds = max(int(ttl.total_seconds()), 1)
        index_key = self.principal_key(namespace, principal_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self.token_key(namespace, token), SESSION_VALID, ex=seconds)
            pipe.sadd(index_key, token)
            # The index lives as long as the newest session it lists.
            pipe.expire(index_key, seconds)
            await pipe.execute()

    async def revoke(self, *, namespace: SessionNamespace, token: str) -> bool:
        # xx: an absent record is already unusable; keepttl: it still expires with the token.
        result = await self._client.set(
            self.token_key(namespace, token), SESSION_INVALID, xx=True, keepttl=True
        )
        return bool(result)

    async def revoke_all(self, *, namespace: SessionNamespace, principal_id: int) -> int:
        index_key = self.principal_key(namespace, principal_id)
        tokens = await self._client.smembers(index_key)
        revoked = 0
        for token in tokens:
            if await self.revoke(namespace=namespace, token=_as_str(token)):
                revoked += 1
        await self._client.delete(index_key)
        return revoked

    async def state(self, *, namespace: SessionNamespace, token: str) -> SessionState:
        raw = await self._client.get(self.token_key(namespace, token))
        if raw is None:
            return SessionState.missing
        if _as_str(raw) == SESSION_VALID:
            return SessionState.valid
        return SessionState.revoked


def _as_str(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


# --- Module Notes -----------------------------------------------------------
# Concurrent login/logout for the same token is serialised by Redis itself (last
# writer wins on the sentinel); no application-level locking is added.
