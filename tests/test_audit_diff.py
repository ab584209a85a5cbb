from __future__ import annotations

from datetime import date

from hrms_api.audit.diff import REDACTED, compute_changes, entity_name, normalize, sanitize
from hrms_api.db.models import LeaveStatus


def test_sanitize_redacts_sensitive_fields_only() -> None:
    data = {"email": "a@acme.com", "password": "hunter2", "token": "t", "first_name": "Ann"}
    assert sanitize(data) == {
        "email": "a@acme.com",
        "password": REDACTED,
        "token": REDACTED,
        "first_name": "Ann",
    }
    assert sanitize(None) is None


def test_normalize_makes_values_json_safe() -> None:
    assert normalize({"from_date": date(2026, 1, 2), "status": LeaveStatus.approved}) == {
        "from_date": "2026-01-02",
        "status": "APPROVED",
    }
    assert normalize(5) == {"value": 5}
    assert normalize(None) is None


def test_compute_changes_lists_only_changed_fields() -> None:
    old = {"first_name": "Ann", "last_name": "Lee", "is_active": True}
    new = {"first_name": "Ann", "last_name": "Park", "is_active": True, "employee_code": "E1"}
    assert compute_changes(old, new) == {
        "employee_code": {"from": None, "to": "E1"},
        "last_name": {"from": "Lee", "to": "Park"},
    }


def test_compute_changes_none_when_nothing_changed_or_one_side_missing() -> None:
    assert compute_changes({"a": 1}, {"a": 1}) is None
    assert compute_changes(None, {"a": 1}) is None
    assert compute_changes({"a": 1}, None) is None


def test_compute_changes_skips_secrets() -> None:
    assert compute_changes({"password": REDACTED}, {"password": "new"}) is None


def test_entity_name() -> None:
    assert entity_name("User", {"first_name": "Ann", "last_name": "Lee"}) == "Ann Lee"
    assert entity_name("User", {"email": "a@acme.com"}) == "a@acme.com"
    assert entity_name("LeaveRequest", {"reason": "x" * 80}) == "x" * 50
    assert entity_name("LegacyUser", {"username": "alice"}) == "alice"
    assert entity_name("Tenant", {"name": "Acme"}) == "Acme"
    assert entity_name("Tenant", {}) is None
