from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from hrms_api.audit.diff import REDACTED
from hrms_api.audit.sink import ActorType, AuditAction, AuditSink, RequestMetadata
from hrms_api.auth.models import Role, TenantUserPrincipal
from hrms_api.db.repositories.audit import AuditLogRepo


@pytest.mark.asyncio
async def test_record_persists_sanitised_entry_with_changes(sessionmaker) -> None:
    sink = AuditSink(sessionmaker)
    entry_id = await sink.record(
        action=AuditAction.update,
        entity="User",
        tenant_id=1,
        actor_id=9,
        actor_email="hr@acme.com",
        entity_id=4,
        old_value={"first_name": "Ann", "last_name": "Lee", "password": "old"},
        new_value={"first_name": "Ann", "last_name": "Park", "password": "new"},
        meta=RequestMetadata(ip_address="10.0.0.1", user_agent="pytest"),
    )
    assert entry_id is not None

    async with sessionmaker() as session:
        entry = await AuditLogRepo(session).get(tenant_id=1, entry_id=entry_id)
    assert entry.action == "UPDATE"
    assert entry.actor_type == ActorType.tenant_user.value
    assert entry.entity_name == "Ann Park"
    assert entry.old_value["password"] == REDACTED
    assert entry.new_value["password"] == REDACTED
    assert entry.changes == {"last_name": {"from": "Lee", "to": "Park"}}
    assert entry.ip_address == "10.0.0.1"


@pytest.mark.asyncio
async def test_record_for_takes_actor_from_principal(sessionmaker) -> None:
    principal = TenantUserPrincipal(
        id=3, tenant_id=2, tenant_slug="globex", email="m@globex.com", role=Role.manager
    )
    entry_id = await AuditSink(sessionmaker).record_for(
        principal, action=AuditAction.leave_approve, entity="LeaveRequest", entity_id=1
    )
    async with sessionmaker() as session:
        entry = await AuditLogRepo(session).get(tenant_id=2, entry_id=entry_id)
    assert (entry.actor_id, entry.actor_email, entry.tenant_id) == (3, "m@globex.com", 2)


@pytest.mark.asyncio
async def test_write_failure_is_swallowed_and_reported_as_none(sessionmaker, monkeypatch) -> None:
    async def broken_add(self, **fields):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(AuditLogRepo, "add", broken_add)
    result = await AuditSink(sessionmaker).record(action=AuditAction.create, entity="User")
    assert result is None
