"""
tests.test_audit_api

Reading the audit trail back over HTTP.
"""

from __future__ import annotations

import pytest

from conftest import bearer, tenant_login
from hrms_api.audit.diff import REDACTED
from hrms_api.auth.models import Role


async def _tenant_with_activity(client, seed, slug: str = "acme") -> tuple[str, int]:
    tenant_id = await seed.tenant(slug)
    await seed.user(tenant_id, f"admin@{slug}.com", role=Role.admin)
    user_id = await seed.user(tenant_id, f"ann@{slug}.com", first_name="Ann", last_name="Lee")
    admin = await tenant_login(client, slug, f"admin@{slug}.com")
    r = await client.patch(
        f"/v1/tenant/users/{user_id}",
        headers=bearer(admin),
        json={"first_name": "Anna", "password": "another-pass"},
    )
    assert r.status_code == 200
    return admin, user_id


@pytest.mark.asyncio
async def test_list_and_filter(client, seed) -> None:
    admin, user_id = await _tenant_with_activity(client, seed)

    r = await client.get("/v1/audit", headers=bearer(admin))
    assert r.status_code == 200
    actions = {e["action"] for e in r.json()["data"]["logs"]}
    assert {"LOGIN", "UPDATE", "PASSWORD_CHANGE"} <= actions

    r = await client.get("/v1/audit", headers=bearer(admin), params={"action": "UPDATE"})
    (entry,) = r.json()["data"]["logs"]
    assert entry["entity"] == "User"
    assert entry["entity_id"] == user_id
    assert entry["actor_email"] == "admin@acme.com"
    assert entry["changes"]["first_name"] == {"from": "Ann", "to": "Anna"}
    assert entry["new_value"]["password"] == REDACTED


@pytest.mark.asyncio
async def test_entity_history_and_detail(client, seed) -> None:
    admin, user_id = await _tenant_with_activity(client, seed)

    r = await client.get(f"/v1/audit/entity/User/{user_id}", headers=bearer(admin))
    logs = r.json()["data"]["logs"]
    assert logs
    assert all(e["entity_id"] == user_id for e in logs)

    r = await client.get(f"/v1/audit/{logs[0]['id']}", headers=bearer(admin))
    assert r.status_code == 200
    assert r.json()["data"]["id"] == logs[0]["id"]

    r = await client.get("/v1/audit/entity-types", headers=bearer(admin))
    assert "User" in r.json()["data"]


@pytest.mark.asyncio
async def test_stats(client, seed) -> None:
    admin, _ = await _tenant_with_activity(client, seed)

    r = await client.get("/v1/audit/stats", headers=bearer(admin))
    assert r.status_code == 200
    data = r.json()["data"]
    by_action = {row["action"]: row["count"] for row in data["by_action"]}
    assert by_action["UPDATE"] == 1
    assert by_action["PASSWORD_CHANGE"] == 1
    assert {row["entity"] for row in data["by_entity"]} >= {"User"}
    assert data["recent_activity"]


@pytest.mark.asyncio
async def test_entries_of_other_tenants_are_invisible(client, seed) -> None:
    acme, _ = await _tenant_with_activity(client, seed, "acme")
    globex, _ = await _tenant_with_activity(client, seed, "globex")

    r = await client.get("/v1/audit", headers=bearer(globex))
    globex_ids = [e["id"] for e in r.json()["data"]["logs"]]
    assert globex_ids

    r = await client.get(f"/v1/audit/{globex_ids[0]}", headers=bearer(acme))
    assert r.status_code == 404
    assert r.json()["message"] == "Audit log not found"

    r = await client.get("/v1/audit", headers=bearer(acme))
    assert not set(globex_ids) & {e["id"] for e in r.json()["data"]["logs"]}
