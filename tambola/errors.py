"""Custom exceptions for centralized error handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppError(Exception):
    """Base application error."""

    code: str
    message: str
    status_code: int
    details: Any | None = None


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(self, message: str = "Not found", details: Any | None = None) -> None:
        super().__init__(code="not_found", message=message, status_code=404, details=details)


class ValidationError(AppError):
    """Input validation error."""

    def __init__(self, message: str = "Validation error", details: Any | None = None) -> None:
        super().__init__(code="validation_error", message=message, status_code=400, details=details)


class ConflictError(AppError):
    """Conflict (e.g., unique constraint)."""

    def __init__(self, message: str = "Conflict", details: Any | None = None) -> None:
        super().__init__(code="conflict", message=message, status_code=409, details=details)


class ForbiddenError(AppError):
    """Caller may not act on this resource (e.g. not the room host)."""

    def __init__(self, message: str = "Forbidden", details: Any | None = None) -> None:
        super().__init__(code="forbidden", message=message, status_code=403, details=details)


class GenerationError(AppError):
    """A ticket could not be built within the retry bound.

    Fatal to that ticket only; callers generate a fresh one.
    """

    def __init__(self, message: str = "Ticket generation failed", details: Any | None = None) -> None:
        super().__init__(code="generation_failed", message=message, status_code=503, details=details)


class InvalidCellError(AppError):
    """Out-of-bounds or empty ticket cell."""

    def __init__(self, message: str = "Invalid cell", details: Any | None = None) -> None:
        super().__init__(code="invalid_cell", message=message, status_code=400, details=details)


class NumberAlreadyCalledError(ConflictError):
    def __init__(self, number: int) -> None:
        super().__init__(message=f"Number {number} was already called", details={"number": number})
        self.code = "number_already_called"


class NumbersExhaustedError(AppError):
    def __init__(self, message: str = "All 90 numbers have been called") -> None:
        super().__init__(code="numbers_exhausted", message=message, status_code=409)


class ExternalServiceError(AppError):
    """Failure reported by one of the hosted collaborators."""

    def __init__(
        self,
        message: str = "External service error",
        details: Any | None = None,
        *,
        code: str = "external_service_error",
        status_code: int = 502,
    ) -> None:
        super().__init__(code=code, message=message, status_code=status_code, details=details)


class AuthError(ExternalServiceError):
    """Invalid credentials, duplicate account or rate limiting."""

    def __init__(self, message: str = "Authentication failed", details: Any | None = None) -> None:
        super().__init__(message, details, code="auth_error", status_code=401)


class StoreError(ExternalServiceError):
    """Record store unreachable or rejected the operation."""

    def __init__(self, message: str = "Record store unavailable", details: Any | None = None) -> None:
        super().__init__(message, details, code="store_error", status_code=503)


class UploadError(ExternalServiceError):
    """Upload rejected (type, size) or the file store failed."""

    def __init__(self, message: str = "Upload rejected", details: Any | None = None, status_code: int = 400) -> None:
        super().__init__(message, details, code="upload_error", status_code=status_code)


class PaymentError(ExternalServiceError):
    """Order creation or payment verification failed."""

    def __init__(self, message: str = "Payment failed", details: Any | None = None) -> None:
        super().__init__(message, details, code="payment_error", status_code=402)
