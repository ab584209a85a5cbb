from __future__ import annotations

from datetime import timedelta

import jwt as pyjwt
import pytest

from conftest import make_store
from hrms_api.auth.jwt import JwtConfig, issue_token
from hrms_api.auth.models import (
    Authenticated,
    AuthError,
    Rejected,
    Role,
    SuperAdminPrincipal,
    TenantUserPrincipal,
)
from hrms_api.auth.sessions import SessionNamespace
from hrms_api.auth.validator import SessionValidator, parse_bearer

CFG = JwtConfig(alg="HS256", issuer="hrms-api", audience="hrms-console", secret="s3cret")
TTL = timedelta(hours=8)
ALICE = TenantUserPrincipal(id=5, tenant_id=1, tenant_slug="acme", email="a@acme.com", role=Role.employee)


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, AuthError.missing_token),
        ("", AuthError.missing_token),
        ("Token abc", AuthError.malformed_token),
        ("Bearer", AuthError.malformed_token),
        ("Bearer ", AuthError.malformed_token),
        ("Bearer a b", AuthError.malformed_token),
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
    ],
)
def test_parse_bearer(header: str | None, expected: object) -> None:
    assert parse_bearer(header) == expected


async def _issue(store, principal, *, ttl: timedelta = TTL, namespace=SessionNamespace.tenant_user) -> str:
    token, _ = issue_token(cfg=CFG, principal=principal, ttl=ttl)
    await store.open(namespace=namespace, token=token, principal_id=principal.id, ttl=TTL)
    return token


@pytest.mark.asyncio
async def test_valid_session_authenticates() -> None:
    store = make_store()
    token = await _issue(store, ALICE)
    result = await SessionValidator(cfg=CFG, store=store).validate(f"Bearer {token}")
    assert result == Authenticated(principal=ALICE, token=token)


@pytest.mark.asyncio
async def test_missing_header() -> None:
    result = await SessionValidator(cfg=CFG, store=make_store()).validate(None)
    assert result == Rejected(AuthError.missing_token)


@pytest.mark.asyncio
async def test_expired_token_rejected_even_with_valid_store_record() -> None:
    store = make_store()
    # The store still says "valid"; expiry must win.
    token = await _issue(store, ALICE, ttl=timedelta(seconds=-1))
    result = await SessionValidator(cfg=CFG, store=store).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.expired_token)


@pytest.mark.asyncio
async def test_revoked_token_rejected_while_signature_still_valid() -> None:
    store = make_store()
    token = await _issue(store, ALICE)
    await store.revoke(namespace=SessionNamespace.tenant_user, token=token)
    result = await SessionValidator(cfg=CFG, store=store).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.revoked_token)


@pytest.mark.asyncio
async def test_token_without_session_record_is_revoked() -> None:
    token, _ = issue_token(cfg=CFG, principal=ALICE)
    result = await SessionValidator(cfg=CFG, store=make_store()).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.revoked_token)


@pytest.mark.asyncio
async def test_record_in_another_namespace_does_not_count() -> None:
    store = make_store()
    admin = SuperAdminPrincipal(id=5, email="root@platform.com")
    # Recorded under the tenant namespace, but the token says super_admin.
    token = await _issue(store, admin, namespace=SessionNamespace.tenant_user)
    result = await SessionValidator(cfg=CFG, store=store).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.revoked_token)


@pytest.mark.asyncio
async def test_forged_signature() -> None:
    store = make_store()
    forger = JwtConfig(alg="HS256", issuer="hrms-api", audience="hrms-console", secret="guess")
    token, _ = issue_token(cfg=forger, principal=ALICE)
    await store.open(namespace=SessionNamespace.tenant_user, token=token, principal_id=5, ttl=TTL)
    result = await SessionValidator(cfg=CFG, store=store).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.signature_invalid)


@pytest.mark.asyncio
async def test_garbage_token() -> None:
    result = await SessionValidator(cfg=CFG, store=make_store()).validate("Bearer not.a.jwt")
    assert result == Rejected(AuthError.signature_invalid)


@pytest.mark.asyncio
async def test_signed_token_with_unknown_kind_is_malformed() -> None:
    token = pyjwt.encode(
        {
            "iss": "hrms-api",
            "aud": "hrms-console",
            "sub": "1",
            "jti": "x",
            "iat": 0,
            "exp": 4102444800,
            "kind": "robot",
        },
        "s3cret",
        algorithm="HS256",
    )
    result = await SessionValidator(cfg=CFG, store=make_store()).validate(f"Bearer {token}")
    assert result == Rejected(AuthError.malformed_token)
