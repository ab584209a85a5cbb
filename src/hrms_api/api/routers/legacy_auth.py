"""
hrms_api.api.routers.legacy_auth

Login for the general (pre-tenancy) user table.

Responsibilities:
- Username/password login issuing a session in the legacy namespace.
- Credential change and logout for legacy principals.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hrms_api.api.deps import (
    audit_sink_dep,
    credential_issuer_dep,
    db_session,
    request_meta,
    settings_dep,
)
from hrms_api.api.schemas import ok
from hrms_api.audit.sink import AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.deps import current_legacy_user
from hrms_api.auth.issuer import ENTITY_BY_KIND, CredentialIssuer
from hrms_api.auth.models import LegacyPrincipal
from hrms_api.auth.passwords import hash_password
from hrms_api.db.repositories.legacy_users import LegacyUserRepo
from hrms_api.errors import ConflictError, NotFoundError
from hrms_api.settings import Settings

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class LegacyLoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=256)


class CredentialsUpdateRequest(BaseModel):
    new_username: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=256)


@router.post("/login")
async def login(
    body: LegacyLoginRequest,
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    issued = await issuer.login_legacy(username=body.username, password=body.password, meta=meta)
    principal = issued.principal
    return ok(
        {
            "token": issued.token,
            "expires_at": issued.expires_at,
            "user": {
                "id": principal.id,
                "username": principal.username,
                "user_type": principal.user_type,
            },
        },
        message="Login successful",
    )


@router.patch("/credentials")
async def update_credentials(
    body: CredentialsUpdateRequest,
    principal: LegacyPrincipal = Depends(current_legacy_user),
    session: AsyncSession = Depends(db_session),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
    audit: AuditSink = Depends(audit_sink_dep),
    meta: RequestMetadata = Depends(request_meta),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    users = LegacyUserRepo(session)
    user = await users.get(principal.id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    if await users.username_taken(body.new_username, exclude_id=principal.id):
        raise ConflictError("Username already taken")

    password_hash = await run_in_threadpool(
        hash_password, body.new_password, rounds=settings.bcrypt_rounds
    )
    await users.set_credentials(principal.id, username=body.new_username, password_hash=password_hash)
    await session.commit()

    # New credentials end every existing session, including this one.
    await issuer.revoke_all(principal.kind, principal.id)
    await audit.record_for(
        principal,
        action=AuditAction.password_change,
        entity=ENTITY_BY_KIND[principal.kind],
        entity_id=principal.id,
        old_value={"username": principal.username},
        new_value={"username": body.new_username, "password": body.new_password},
        meta=meta,
    )
    return ok(
        {"id": principal.id, "username": body.new_username, "user_type": principal.user_type},
        message="Login credentials updated successfully",
    )


@router.post("/logout")
async def logout(
    request: Request,
    principal: LegacyPrincipal = Depends(current_legacy_user),
    meta: RequestMetadata = Depends(request_meta),
    issuer: CredentialIssuer = Depends(credential_issuer_dep),
) -> dict[str, Any]:
    await issuer.logout(principal, request.state.token, meta=meta)
    return ok(message="Logged out")
