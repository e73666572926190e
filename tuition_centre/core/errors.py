"""Application error taxonomy.

Services raise these; the API layer turns them into JSON responses
(see tuition_centre.api.errors).  Nothing below the API layer imports
FastAPI or knows about HTTP beyond the status code each kind maps to.
"""

from __future__ import annotations


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class DuplicateKeyError(ValueError):
    """A write hit a uniqueness constraint.

    Raised by repositories (in-memory or Postgres) and translated into a
    ConflictError by the service that issued the write.
    """

    def __init__(self, constraint: str) -> None:
        self.constraint = constraint
        super().__init__(f"duplicate key violates {constraint}")
