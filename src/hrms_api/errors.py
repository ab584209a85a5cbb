"""
hrms_api.errors

Application error taxonomy.

Responsibilities:
- Define operational errors that carry an HTTP status and a user-safe message.
- Keep services and auth code free of FastAPI/HTTP types.
"""

from __future__ import annotations


class AppError(Exception):
    """
    Operational error: the message is safe to show to the caller.
    Anything that is not an AppError is treated as a bug and mapped to 500.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidCredentialsError(UnauthorizedError):
    """
    Raised for every login failure. `reason` is for audit/logging only and is
    never part of the response, so callers cannot enumerate accounts.
    """

    default_message = "Invalid credentials"

    def __init__(self, reason: str, *, tenant_id: int | None = None) -> None:
        super().__init__()
        self.reason = reason
        self.tenant_id = tenant_id


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"
