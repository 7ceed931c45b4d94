"""
Service-layer exceptions.

Services and repositories raise these; the exception handlers registered in
``eventease.main`` render them as ``{"success": false, "message": ...}`` with
the status code carried by the exception class.
"""
from typing import Optional


class AppError(Exception):
    """Base exception for service layer errors."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when a requested event, RSVP or account does not exist."""
    status_code = 404
    default_message = "Resource not found"


class ForbiddenError(AppError):
    """Raised when the caller is not the owner of the resource."""
    status_code = 403
    default_message = "Not authorized to modify this resource"


class InvalidInputError(AppError):
    """Raised when a field fails validation."""
    status_code = 400
    default_message = "Invalid input"


class InvalidStateError(AppError):
    """Raised when an action is not allowed in the current lifecycle state."""
    status_code = 400
    default_message = "Action not allowed in the current state"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Could not validate credentials"
