"""
hrms_api.auth

Authentication/authorization package.

Responsibilities:
- Credential checks, session tokens and the Redis session store.
- Per-request validation, tenant scoping and role gating.
"""

# Package marker.
