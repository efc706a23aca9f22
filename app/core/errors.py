"""
Standardized error response system.

Provides consistent error responses across all API endpoints.
"""
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class ErrorCode:
    """Standard error codes."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authentication/Authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TWO_FACTOR_REQUIRED = "TWO_FACTOR_REQUIRED"
    RATE_LIMITED = "RATE_LIMITED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorResponse:
    """Standard error response format."""

    @staticmethod
    def create(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JSONResponse:
        """
        Create a standardized error response.

        Args:
            code: Machine-readable error code
            message: Human-readable error message
            status_code: HTTP status code
            details: Additional error details (optional)
            request_id: Request correlation ID (optional)
            headers: Extra response headers such as Retry-After (optional)

        Returns:
            JSONResponse with standard error format
        """
        error_data: Dict[str, Any] = {
            "error": {
                "code": code,
                "message": message,
            }
        }

        if details:
            error_data["error"]["details"] = details

        if request_id:
            error_data["error"]["request_id"] = request_id

        return JSONResponse(status_code=status_code, content=error_data, headers=headers)


class HTTPError(HTTPException):
    """
    Enhanced HTTPException with standard error response format.

    Usage:
        raise HTTPError(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            message="User not found",
            details={"user_id": "..."}
        )
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message, headers=headers)


async def http_error_handler(request: Request, exc: HTTPError) -> JSONResponse:
    """
    Handle HTTPError exceptions and return standardized error response.

    Registered on the FastAPI app in app.main.
    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    return ErrorResponse.create(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=request_id,
        headers=exc.headers,
    )


# Convenience functions for common errors

def not_found(resource: str, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 404 NOT_FOUND error."""
    return HTTPError(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


def unauthorized(message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 401 UNAUTHORIZED error."""
    return HTTPError(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.UNAUTHORIZED,
        message=message,
        details=details,
    )


def forbidden(message: str = "Forbidden", details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 403 FORBIDDEN error."""
    return HTTPError(
        status_code=status.HTTP_403_FORBIDDEN,
        code=ErrorCode.FORBIDDEN,
        message=message,
        details=details,
    )


def validation_error(message: str, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 400 VALIDATION_ERROR error."""
    return HTTPError(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        details=details,
    )


def conflict(message: str, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 409 CONFLICT error."""
    return HTTPError(
        status_code=status.HTTP_409_CONFLICT,
        code=ErrorCode.CONFLICT,
        message=message,
        details=details,
    )


def too_many_requests(message: str, retry_after: int, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """Create a 429 RATE_LIMITED error with a Retry-After header."""
    return HTTPError(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        code=ErrorCode.RATE_LIMITED,
        message=message,
        details=details,
        headers={"Retry-After": str(retry_after)},
    )


def service_unavailable(message: str = "Service temporarily unavailable") -> HTTPError:
    """Create a 503 SERVICE_UNAVAILABLE error."""
    return HTTPError(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        code=ErrorCode.SERVICE_UNAVAILABLE,
        message=message,
    )
