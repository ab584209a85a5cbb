from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from hrms_api.api.deps import jwt_config
from hrms_api.audit.sink import AuditAction, AuditSink
from hrms_api.auth.issuer import CredentialIssuer
from hrms_api.auth.models import PrincipalKind, Role, TenantUserPrincipal
from hrms_api.auth.passwords import is_password_hashed
from hrms_api.auth.sessions import SessionNamespace, SessionState
from hrms_api.db.models import AuditLog, LegacyUser, TenantStatus
from hrms_api.db.repositories.legacy_users import LegacyUserRepo
from hrms_api.errors import InvalidCredentialsError


def _issuer(session, store, sessionmaker, settings) -> CredentialIssuer:
    return CredentialIssuer(
        session=session,
        store=store,
        jwt_cfg=jwt_config(settings),
        audit=AuditSink(sessionmaker),
        ttl=settings.session_ttl,
        bcrypt_rounds=4,
    )


@pytest.mark.asyncio
async def test_tenant_login_records_valid_session(sessionmaker, store, settings, seed) -> None:
    tenant_id = await seed.tenant("acme")
    user_id = await seed.user(tenant_id, "hr@acme.com", role=Role.hr)

    async with sessionmaker() as session:
        issued = await _issuer(session, store, sessionmaker, settings).login_tenant_user(
            tenant_slug="acme", email="hr@acme.com", password="password123"
        )

    assert issued.principal == TenantUserPrincipal(
        id=user_id, tenant_id=tenant_id, tenant_slug="acme", email="hr@acme.com", role=Role.hr
    )
    state = await store.state(namespace=SessionNamespace.tenant_user, token=issued.token)
    assert state is SessionState.valid


@pytest.mark.asyncio
async def test_every_failure_is_the_same_error(sessionmaker, store, settings, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "hr@acme.com")
    await seed.tenant("frozen", status=TenantStatus.suspended)

    attempts = [
        ("nope", "hr@acme.com", "password123"),
        ("frozen", "hr@acme.com", "password123"),
        ("acme", "ghost@acme.com", "password123"),
        ("acme", "hr@acme.com", "wrong"),
    ]
    async with sessionmaker() as session:
        issuer = _issuer(session, store, sessionmaker, settings)
        messages = set()
        for slug, email, password in attempts:
            with pytest.raises(InvalidCredentialsError) as e:
                await issuer.login_tenant_user(tenant_slug=slug, email=email, password=password)
            messages.add(e.value.message)
    assert messages == {"Invalid credentials"}

    async with sessionmaker() as session:
        failures = (
            await session.execute(
                select(AuditLog).where(AuditLog.action == AuditAction.login_failed.value)
            )
        ).scalars().all()
    assert len(failures) == len(attempts)
    wrong_password = [f for f in failures if f.new_value == {"reason": "wrong password"}]
    assert wrong_password[0].tenant_id == tenant_id


@pytest.mark.asyncio
async def test_legacy_plaintext_password_is_upgraded(sessionmaker, store, settings, seed) -> None:
    user_id = await seed.legacy_user("alice", "correct")

    async with sessionmaker() as session:
        issued = await _issuer(session, store, sessionmaker, settings).login_legacy(
            username="alice", password="correct"
        )
    assert issued.principal.kind is PrincipalKind.legacy

    async with sessionmaker() as session:
        stored = await session.get(LegacyUser, user_id)
        assert is_password_hashed(stored.password)
        assert stored.latest_login is not None

    # Second login goes through the bcrypt path.
    async with sessionmaker() as session:
        again = await _issuer(session, store, sessionmaker, settings).login_legacy(
            username="alice", password="correct"
        )
    assert again.token != issued.token


@pytest.mark.asyncio
async def test_last_login_failure_does_not_fail_login(
    sessionmaker, store, settings, seed, monkeypatch
) -> None:
    await seed.legacy_user("bob", "secret-pass")

    async def broken(self, user_id, at):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(LegacyUserRepo, "touch_last_login", broken)
    async with sessionmaker() as session:
        issued = await _issuer(session, store, sessionmaker, settings).login_legacy(
            username="bob", password="secret-pass"
        )
    assert issued.principal.username == "bob"


@pytest.mark.asyncio
async def test_logout_invalidates_only_that_token(sessionmaker, store, settings, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "e@acme.com")

    async with sessionmaker() as session:
        issuer = _issuer(session, store, sessionmaker, settings)
        first = await issuer.login_tenant_user(
            tenant_slug="acme", email="e@acme.com", password="password123"
        )
        second = await issuer.login_tenant_user(
            tenant_slug="acme", email="e@acme.com", password="password123"
        )
        await issuer.logout(first.principal, first.token)

    ns = SessionNamespace.tenant_user
    assert await store.state(namespace=ns, token=first.token) is SessionState.revoked
    assert await store.state(namespace=ns, token=second.token) is SessionState.valid


@pytest.mark.asyncio
async def test_revoke_all_ends_every_session(sessionmaker, store, settings, seed) -> None:
    tenant_id = await seed.tenant("acme")
    user_id = await seed.user(tenant_id, "e@acme.com")

    async with sessionmaker() as session:
        issuer = _issuer(session, store, sessionmaker, settings)
        tokens = [
            (await issuer.login_tenant_user(
                tenant_slug="acme", email="e@acme.com", password="password123"
            )).token
            for _ in range(2)
        ]
        assert await issuer.revoke_all(PrincipalKind.tenant_user, user_id) == 2

    for token in tokens:
        state = await store.state(namespace=SessionNamespace.tenant_user, token=token)
        assert state is SessionState.revoked
