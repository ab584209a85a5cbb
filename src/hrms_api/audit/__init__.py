"""
hrms_api.audit

Audit trail package.

Responsibilities:
- Normalise, redact and diff audit payloads.
- Persist append-only audit entries without ever failing the caller.
"""

from hrms_api.audit.sink import ActorType, AuditAction, AuditSink, RequestMetadata

__all__ = ["ActorType", "AuditAction", "AuditSink", "RequestMetadata"]
