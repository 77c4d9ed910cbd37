"""
Custom exception classes for FlashQuery Backend.
"""
from typing import Any, Dict, Optional


class FlashQueryException(Exception):
    """Base exception class for FlashQuery application."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(FlashQueryException):
    """Raised for malformed or missing input."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=400, details=details)


class AuthenticationError(FlashQueryException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "AUTHENTICATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=401, details=details)


class AuthorizationError(FlashQueryException):
    """Raised when a user doesn't have permission."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "AUTHORIZATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=403, details=details)


class NotFoundError(FlashQueryException):
    """Raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=404, details=details)


class ConflictError(FlashQueryException):
    """Raised when a unique field would be duplicated."""

    def __init__(
        self,
        message: str = "Resource already exists",
        code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=409, details=details)


class DownstreamServiceError(FlashQueryException):
    """Raised when a database server, the object store, the vector store or the query engine fails."""

    def __init__(
        self,
        message: str = "Downstream service error",
        code: str = "DOWNSTREAM_ERROR",
        details: Optional[Dict[str, Any]] = None,
        service: Optional[str] = None,
    ):
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message=message, code=code, status_code=500, details=details)
