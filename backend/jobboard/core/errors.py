"""
Domain errors raised by the service layer.

Services never raise HTTPException; the API maps each subclass to a status
code and error code (see `jobboard.main`).
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    status_code: int = 400
    code: str = "BAD_REQUEST"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class ForbiddenError(DomainError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Not allowed"


class InvalidStateError(DomainError):
    status_code = 400
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


class InvalidTransitionError(InvalidStateError):
    code = "INVALID_TRANSITION"
    default_message = "Status transition not allowed"


class ConflictError(DomainError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Already exists"


class QuotaExceededError(DomainError):
    status_code = 400
    code = "QUOTA_EXCEEDED"
    default_message = "Subscription limit reached"
