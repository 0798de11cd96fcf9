"""Exception hierarchy for Easy Genomics file services.

Each exception carries the HTTP status code and machine-readable error code
used when it crosses a request boundary (Lambda handler or FastAPI app).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EasyGenomicsException(Exception):
    """Base exception for all Easy Genomics errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code (e.g., "INVALID_REQUEST")
        status_code: HTTP status code to return
        details: Additional error context
    """

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidRequestError(EasyGenomicsException):
    """Request body could not be parsed or failed schema validation."""

    status_code = 400
    default_code = "INVALID_REQUEST"
    default_message = "Invalid request"


class AuthenticationError(EasyGenomicsException):
    """Bearer token missing or rejected."""

    status_code = 401
    default_code = "AUTHENTICATION_REQUIRED"
    default_message = "Authentication required"


class UnauthorizedAccessError(EasyGenomicsException):
    """Caller lacks the capability required for this action."""

    status_code = 403
    default_code = "UNAUTHORIZED_ACCESS"
    default_message = "Unauthorized access"


class NotFoundError(EasyGenomicsException):
    """Requested resource not found."""

    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class LaboratoryNotFoundError(NotFoundError):
    """Laboratory id did not resolve to a record."""

    default_code = "LABORATORY_NOT_FOUND"
    default_message = "Laboratory not found"


class ApiClientError(EasyGenomicsException):
    """The file listing API answered with a non-success status."""

    status_code = 502
    default_code = "API_ERROR"
    default_message = "File listing request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message=message, code=code, details=details)
        self.http_status = http_status
