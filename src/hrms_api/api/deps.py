"""
hrms_api.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the session store.
- Build the per-request collaborators (validator, audit sink, credential issuer).
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_api.audit.sink import AuditSink, RequestMetadata
from hrms_api.auth.issuer import CredentialIssuer
from hrms_api.auth.jwt import JwtConfig
from hrms_api.auth.sessions import SessionStore
from hrms_api.auth.validator import SessionValidator
from hrms_api.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The factory's settings, so tests can run apps with different configuration.
    return request.app.state.settings  # type: ignore[attr-defined]


def jwt_config(settings: Settings) -> JwtConfig:
    return JwtConfig(
        alg=settings.jwt_alg,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        secret=settings.jwt_secret,
    )


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created in the lifespan of `hrms_api.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by services/routers.
    async with session_factory() as session:
        yield session


def session_store_dep(request: Request) -> SessionStore:
    return request.app.state.session_store  # type: ignore[attr-defined]


def session_validator_dep(
    store: SessionStore = Depends(session_store_dep),
    settings: Settings = Depends(settings_dep),
) -> SessionValidator:
    return SessionValidator(cfg=jwt_config(settings), store=store)


def audit_sink_dep(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AuditSink:
    return AuditSink(session_factory)


def request_meta(request: Request) -> RequestMetadata:
    return RequestMetadata.from_request(request)


def credential_issuer_dep(
    session: AsyncSession = Depends(db_session),
    store: SessionStore = Depends(session_store_dep),
    audit: AuditSink = Depends(audit_sink_dep),
    settings: Settings = Depends(settings_dep),
) -> CredentialIssuer:
    return CredentialIssuer(
        session=session,
        store=store,
        jwt_cfg=jwt_config(settings),
        audit=audit,
        ttl=settings.session_ttl,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


# --- Module Notes -----------------------------------------------------------
# The audit sink shares the sessionmaker but never the request session: its writes
# commit independently of the business transaction.
