"""Domain errors surfaced by the service layer.

Every error carries the HTTP status and machine readable code used by the
exception handlers in :mod:`mssp.main`, so services never import FastAPI.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ServiceError(Exception):
    """Base error for failures reported to API callers."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def details(self) -> list[dict[str, Any]] | None:
        return None


class NotFoundError(ServiceError):
    """Raised when a requested record does not exist."""

    status_code = 404
    code = "RESOURCE_NOT_FOUND"


class ConflictError(ServiceError):
    """Raised when a write would violate a uniqueness or usage constraint."""

    status_code = 409
    code = "CONFLICT"


class AuthenticationError(ServiceError):
    """Raised when the caller could not be identified."""

    status_code = 401
    code = "UNAUTHENTICATED"


class ForbiddenError(ServiceError):
    """Raised when the caller lacks the role required for an operation."""

    status_code = 403
    code = "FORBIDDEN"


@dataclass(frozen=True)
class FieldError:
    """A single problem found while validating custom field data."""

    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class CustomFieldValidationError(ServiceError):
    """Aggregated validation failure listing every offending field."""

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        summary = "; ".join(str(error) for error in self.errors)
        super().__init__(f"Custom field validation failed: {summary}")

    @property
    def fields(self) -> set[str]:
        return {error.field for error in self.errors}

    def details(self) -> list[dict[str, Any]]:
        return [error.as_dict() for error in self.errors]
