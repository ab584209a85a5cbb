"""
tests.test_api_auth

End-to-end checks of the request pipeline: authentication, tenant scope, role gate.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import bearer, root_login, tenant_login
from hrms_api.api.deps import jwt_config
from hrms_api.auth.jwt import issue_token
from hrms_api.auth.models import Role, TenantUserPrincipal
from hrms_api.auth.passwords import is_password_hashed
from hrms_api.auth.sessions import SESSION_INVALID, SessionNamespace, SessionStore
from hrms_api.audit.diff import REDACTED
from hrms_api.db.models import AuditLog, LegacyUser

UNAUTHORIZED = {"success": False, "message": "Unauthorized"}


@pytest.mark.asyncio
async def test_missing_and_malformed_headers_are_401(client) -> None:
    r = await client.get("/v1/tenant/profile")
    assert r.status_code == 401
    assert r.json() == UNAUTHORIZED

    r = await client.get("/v1/tenant/profile", headers={"Authorization": "Token abc"})
    assert r.status_code == 401
    assert r.json() == UNAUTHORIZED


@pytest.mark.asyncio
async def test_login_and_profile(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "ann@acme.com", first_name="Ann", last_name="Lee")
    token = await tenant_login(client, "acme", "ann@acme.com")

    r = await client.get("/v1/tenant/profile", headers=bearer(token))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["email"] == "ann@acme.com"
    assert data["role"] == Role.employee.value
    assert data["last_login"] is not None


@pytest.mark.asyncio
async def test_wrong_credentials_share_one_message(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "ann@acme.com")

    wrong_password = await client.post(
        "/v1/tenant/login", json={"tenant": "acme", "email": "ann@acme.com", "password": "nope"}
    )
    unknown_tenant = await client.post(
        "/v1/tenant/login", json={"tenant": "nope", "email": "ann@acme.com", "password": "nope"}
    )
    assert wrong_password.status_code == unknown_tenant.status_code == 401
    assert wrong_password.json() == unknown_tenant.json() == {
        "success": False,
        "message": "Invalid credentials",
    }


@pytest.mark.asyncio
async def test_manually_invalidated_session_is_rejected(client, seed, store) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "ann@acme.com")
    token = await tenant_login(client, "acme", "ann@acme.com")
    assert (await client.get("/v1/tenant/profile", headers=bearer(token))).status_code == 200

    key = SessionStore.token_key(SessionNamespace.tenant_user, token)
    await store._client.set(key, SESSION_INVALID)

    r = await client.get("/v1/tenant/profile", headers=bearer(token))
    assert r.status_code == 401
    assert r.json() == UNAUTHORIZED


@pytest.mark.asyncio
async def test_logout_revokes_the_token(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "ann@acme.com")
    token = await tenant_login(client, "acme", "ann@acme.com")

    assert (await client.post("/v1/tenant/logout", headers=bearer(token))).status_code == 200
    assert (await client.get("/v1/tenant/profile", headers=bearer(token))).status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_401_even_with_valid_store_record(client, seed, store, settings) -> None:
    tenant_id = await seed.tenant("acme")
    user_id = await seed.user(tenant_id, "ann@acme.com")
    principal = TenantUserPrincipal(
        id=user_id, tenant_id=tenant_id, tenant_slug="acme", email="ann@acme.com", role=Role.employee
    )
    token, _ = issue_token(cfg=jwt_config(settings), principal=principal, ttl=timedelta(seconds=-1))
    await store.open(
        namespace=SessionNamespace.tenant_user, token=token, principal_id=user_id, ttl=timedelta(hours=1)
    )

    r = await client.get("/v1/tenant/profile", headers=bearer(token))
    assert r.status_code == 401
    assert r.json() == UNAUTHORIZED


@pytest.mark.asyncio
async def test_employee_is_denied_admin_hr_routes(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "emp@acme.com", role=Role.employee)
    token = await tenant_login(client, "acme", "emp@acme.com")

    for method, path in [
        ("GET", "/v1/audit"),
        ("POST", "/v1/leave/types"),
        ("GET", "/v1/tenant/users"),
    ]:
        r = await client.request(method, path, headers=bearer(token), json={"name": "x", "code": "x"})
        assert r.status_code == 403, path
        assert r.json() == {"success": False, "message": "Insufficient permissions"}


@pytest.mark.asyncio
async def test_manager_can_list_but_not_create_users(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "mgr@acme.com", role=Role.manager)
    token = await tenant_login(client, "acme", "mgr@acme.com")

    assert (await client.get("/v1/tenant/users", headers=bearer(token))).status_code == 200
    r = await client.post(
        "/v1/tenant/users",
        headers=bearer(token),
        json={"email": "new@acme.com", "password": "password123", "first_name": "New"},
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_tenant_data_never_crosses_tenants(client, seed) -> None:
    acme = await seed.tenant("acme")
    globex = await seed.tenant("globex")
    await seed.user(acme, "admin@acme.com", role=Role.admin)
    await seed.user(acme, "ann@acme.com")
    outsider = await seed.user(globex, "gus@globex.com")
    token = await tenant_login(client, "acme", "admin@acme.com")

    r = await client.get("/v1/tenant/users", headers=bearer(token))
    assert r.status_code == 200
    emails = {u["email"] for u in r.json()["data"]["users"]}
    assert emails == {"admin@acme.com", "ann@acme.com"}

    r = await client.get(f"/v1/tenant/users/{outsider}", headers=bearer(token))
    assert r.status_code == 404

    r = await client.patch(
        f"/v1/tenant/users/{outsider}", headers=bearer(token), json={"first_name": "Hacked"}
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_same_email_in_two_tenants_logs_into_the_right_one(client, seed) -> None:
    acme = await seed.tenant("acme")
    globex = await seed.tenant("globex")
    await seed.user(acme, "sam@mail.com", "acme-pass-1")
    await seed.user(globex, "sam@mail.com", "globex-pass-1")

    token = await tenant_login(client, "globex", "sam@mail.com", "globex-pass-1")
    r = await client.get("/v1/tenant/profile", headers=bearer(token))
    assert r.status_code == 200

    bad = await client.post(
        "/v1/tenant/login",
        json={"tenant": "globex", "email": "sam@mail.com", "password": "acme-pass-1"},
    )
    assert bad.status_code == 401


@pytest.mark.asyncio
async def test_super_admin_has_no_tenant_scope(client) -> None:
    token = await root_login(client)

    # Accepted as authenticated, but tenant-bound handlers need an organization.
    r = await client.get("/v1/leave/types", headers=bearer(token))
    assert r.status_code == 403
    assert r.json()["message"] == "Organization context required"

    assert (await client.get("/v1/super-admin/dashboard", headers=bearer(token))).status_code == 200


@pytest.mark.asyncio
async def test_tenant_token_cannot_reach_platform_routes(client, seed) -> None:
    tenant_id = await seed.tenant("acme")
    await seed.user(tenant_id, "admin@acme.com", role=Role.admin)
    token = await tenant_login(client, "acme", "admin@acme.com")

    r = await client.get("/v1/super-admin/dashboard", headers=bearer(token))
    assert r.status_code == 403
    assert r.json() == {"success": False, "message": "Access denied"}


@pytest.mark.asyncio
async def test_legacy_login_upgrades_plaintext_password(client, seed, sessionmaker) -> None:
    user_id = await seed.legacy_user("alice", "correct")

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    assert r.status_code == 200
    assert r.json()["data"]["token"]

    async with sessionmaker() as session:
        stored = (
            await session.execute(select(LegacyUser.password).where(LegacyUser.id == user_id))
        ).scalar_one()
    assert stored != "correct"
    assert is_password_hashed(stored)

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    assert r.status_code == 200

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "wrong"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_legacy_credentials_change_revokes_sessions(client, seed) -> None:
    await seed.legacy_user("alice", "correct")
    await seed.legacy_user("bob", "builder")
    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    token = r.json()["data"]["token"]

    taken = await client.patch(
        "/v1/auth/credentials",
        headers=bearer(token),
        json={"new_username": "bob", "new_password": "long-enough"},
    )
    assert taken.status_code == 409

    r = await client.patch(
        "/v1/auth/credentials",
        headers=bearer(token),
        json={"new_username": "alice2", "new_password": "long-enough"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["username"] == "alice2"

    again = await client.post("/v1/auth/logout", headers=bearer(token))
    assert again.status_code == 401

    r = await client.post("/v1/auth/login", json={"username": "alice2", "password": "long-enough"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_legacy_token_is_not_a_tenant_token(client, seed) -> None:
    await seed.legacy_user("alice", "correct")
    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    token = r.json()["data"]["token"]

    r = await client.get("/v1/tenant/profile", headers=bearer(token))
    assert r.status_code == 403
    assert r.json()["message"] == "Access denied"


@pytest.mark.asyncio
async def test_legacy_account_activity_is_audited(client, seed, sessionmaker) -> None:
    user_id = await seed.legacy_user("alice", "correct")

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    token = r.json()["data"]["token"]
    assert (await client.post("/v1/auth/logout", headers=bearer(token))).status_code == 200

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "wrong"})
    assert r.status_code == 401

    r = await client.post("/v1/auth/login", json={"username": "alice", "password": "correct"})
    r = await client.patch(
        "/v1/auth/credentials",
        headers=bearer(r.json()["data"]["token"]),
        json={"new_username": "alice2", "new_password": "long-enough"},
    )
    assert r.status_code == 200

    async with sessionmaker() as session:
        entries = (
            await session.execute(
                select(AuditLog).where(AuditLog.entity == "LegacyUser").order_by(AuditLog.id)
            )
        ).scalars().all()

    assert [e.action for e in entries] == [
        "LOGIN",
        "LOGOUT",
        "LOGIN_FAILED",
        "LOGIN",
        "PASSWORD_CHANGE",
    ]
    assert {e.actor_type for e in entries} == {"LEGACY"}
    assert entries[2].new_value == {"username": "alice", "reason": "wrong password"}
    change = entries[-1]
    assert change.entity_id == user_id
    assert change.actor_id == user_id
    assert change.entity_name == "alice2"
    assert change.new_value["password"] == REDACTED
    assert change.changes == {"username": {"from": "alice", "to": "alice2"}}
    assert all(e.tenant_id is None for e in entries)
