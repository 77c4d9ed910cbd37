"""
Utilities for the uniform response envelope used across API endpoints.
"""
from typing import Any, Dict, Optional, Tuple, Union
import logging

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from flashquery.core.exceptions import (
    FlashQueryException,
    ValidationError,
    NotFoundError,
    AuthenticationError,
    AuthorizationError,
)

logger = logging.getLogger("flashquery.errors")


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Wrap a payload in the success envelope.

    Args:
        data: Response payload
        message: Optional human-readable message
        status_code: HTTP status code

    Returns:
        JSONResponse: ``{"success": true, "data": ..., "message"?: ...}``
    """
    content: Dict[str, Any] = {"success": True, "data": jsonable_encoder(data)}
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


class ErrorResponse:
    """Standard error response format."""

    @staticmethod
    def model(message: str) -> Dict[str, Any]:
        """
        Create a standardized error envelope.

        Args:
            message: Error message

        Returns:
            Dict: ``{"success": false, "error": message}``
        """
        return {"success": False, "error": message}

    @staticmethod
    def status_and_message(exception: Union[Exception, FlashQueryException]) -> Tuple[int, str]:
        """
        Map an exception to its HTTP status and client-facing message.

        Args:
            exception: Exception to process

        Returns:
            tuple: (status_code, message)
        """
        if isinstance(exception, FlashQueryException):
            return exception.status_code, exception.message
        if isinstance(exception, HTTPException):
            return exception.status_code, str(exception.detail)
        if isinstance(exception, RequestValidationError):
            return status.HTTP_400_BAD_REQUEST, format_validation_errors(exception)
        if isinstance(exception, IntegrityError):
            return status.HTTP_409_CONFLICT, "Duplicate entry: Resource already exists"
        return status.HTTP_500_INTERNAL_SERVER_ERROR, str(exception) or "Internal server error"


def format_validation_errors(exc: RequestValidationError) -> str:
    """Join request validation errors as ``field: message`` pairs."""
    parts = []
    for error in exc.errors():
        location = [str(item) for item in error.get("loc", ()) if item not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{'.'.join(location)}: {message}" if location else message)
    return ", ".join(parts) or "Validation error"


def handle_exception(exception: Exception) -> JSONResponse:
    """
    Convert any exception to the error envelope.

    Args:
        exception: Exception to handle

    Returns:
        JSONResponse: Error envelope with the mapped status code
    """
    status_code, message = ErrorResponse.status_and_message(exception)

    # Log all exceptions
    if isinstance(exception, (ValidationError, NotFoundError, AuthenticationError, AuthorizationError)):
        logger.info(f"Expected exception: {exception}")
    elif status_code >= 500:
        logger.error(f"Exception: {exception}", exc_info=exception)
    else:
        logger.info(f"Request rejected ({status_code}): {message}")

    headers = None
    if isinstance(exception, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.model(message),
        headers=headers,
    )
