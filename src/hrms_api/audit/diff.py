"""
hrms_api.audit.diff

Pure helpers that shape audit payloads.

Responsibilities:
- Redact sensitive fields.
- Compute a field-level `{field: {"from", "to"}}` diff.
- Derive a human-readable entity name for the audit console.
"""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder

REDACTED = "[REDACTED]"
SENSITIVE_FIELDS = frozenset(
    {"password", "plain_password", "password_hash", "token", "refresh_token", "secret"}
)


def normalize(value: Any) -> dict[str, Any] | None:
    """
    JSON-normalise a payload (dates, enums, decimals) so it can be stored in a
    JSON column and compared by value.
    """

    if value is None:
        return None
    encoded = jsonable_encoder(value)
    if not isinstance(encoded, dict):
        return {"value": encoded}
    return encoded


def sanitize(data: dict[str, Any] | None) -> dict[str, Any] | None:
    if data is None:
        return None
    return {key: (REDACTED if key in SENSITIVE_FIELDS else value) for key, value in data.items()}


def compute_changes(
    old: dict[str, Any] | None, new: dict[str, Any] | None
) -> dict[str, dict[str, Any]] | None:
    if old is None or new is None:
        return None

    changes: dict[str, dict[str, Any]] = {}
    for key in sorted(old.keys() | new.keys()):
        if key in SENSITIVE_FIELDS:
            continue
        before, after = old.get(key), new.get(key)
        if before == after:
            continue
        changes[key] = {"from": before, "to": after}
    return changes or None


def entity_name(entity: str, data: dict[str, Any] | None) -> str | None:
    if not data:
        return None
    if entity == "User":
        first, last = data.get("first_name"), data.get("last_name")
        if first and last:
            return f"{first} {last}"
        return data.get("email")
    if entity == "LegacyUser":
        return data.get("username")
    if entity == "LeaveRequest":
        reason = data.get("reason")
        return reason[:50] if isinstance(reason, str) else None
    name = data.get("name") or data.get("title") or data.get("email")
    return str(name) if name is not None else None
