"""
backend/errors.py

Error taxonomy raised by the access-control layer and the resource services.

Services never build HTTP responses themselves; main.py maps each class to its
status code and the {success: false, message} envelope.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map to a client-facing HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    """Missing/invalid token or bad credentials (never says which)."""
    status_code = 401
    default_message = "Invalid credentials"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    """Also raised for cross-tenant references so existence never leaks."""
    status_code = 404
    default_message = "Not found"


class TenantNotFoundError(NotFoundError):
    default_message = "Tenant not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class AlreadyClaimedError(ConflictError):
    default_message = "Task has already been claimed"


class QuotaExceededError(AppError):
    status_code = 402  # Payment Required, same as usage limits on plans
    default_message = "Plan limit reached"
