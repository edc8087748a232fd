"""
Unified Error Handling Middleware.

Provides consistent error handling across the application with
custom exceptions, error codes, and formatted responses.

Unexpected errors never leak details: the client gets an opaque 500 with
an error id that is also written to the log.
"""
import os
import logging
from typing import Dict, Any, Optional
from datetime import datetime
from enum import Enum
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Application error codes."""
    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"

    # External service errors (6xxx)
    SESSION_STORE_ERROR = "E6002"


# Error code to HTTP status mapping
ERROR_STATUS_MAP = {
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.SESSION_STORE_ERROR: 503,
}


@dataclass
class ErrorResponse:
    """Standardized error response."""
    error_id: str
    code: str
    message: str
    status_code: int
    timestamp: str
    path: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "error": {
                "id": self.error_id,
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }
        if self.path:
            result["error"]["path"] = self.path
        if self.details:
            result["error"]["details"] = self.details
        if self.suggestion:
            result["error"]["suggestion"] = self.suggestion
        return result


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.suggestion = suggestion
        self.original_error = original_error
        self.status_code = ERROR_STATUS_MAP.get(code, 500)
        super().__init__(message)


class ExternalServiceException(AppException):
    """External service exception."""

    def __init__(
        self,
        service_name: str,
        message: str,
        code: ErrorCode,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            code=code,
            message=f"{service_name}: {message}",
            details={"service": service_name},
            suggestion="Please try again later",
            original_error=original_error
        )


class ErrorTracker:
    """Tracks errors for monitoring and alerting."""

    def __init__(self):
        self._error_counts: Dict[str, int] = {}

    def track(
        self,
        error_id: str,
        error_code: ErrorCode,
        message: str,
        request_path: Optional[str] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """Track an error occurrence."""
        code_key = error_code.value
        self._error_counts[code_key] = self._error_counts.get(code_key, 0) + 1

        logger.error(
            f"Error tracked: {error_id} - {error_code.value}: {message}",
            exc_info=exc_info,
            extra={"extra_fields": {"error_id": error_id, "error_code": error_code.value, "path": request_path}}
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get error counts by code."""
        return {
            "total_errors": sum(self._error_counts.values()),
            "by_code": dict(self._error_counts),
        }


# Global error tracker
error_tracker = ErrorTracker()


def create_error_response(
    error: AppException,
    request: Optional[Request] = None
) -> ErrorResponse:
    """Create a standardized error response."""
    error_id = str(uuid4())

    error_tracker.track(
        error_id=error_id,
        error_code=error.code,
        message=error.message,
        request_path=str(request.url.path) if request else None,
        exc_info=error.original_error
    )

    return ErrorResponse(
        error_id=error_id,
        code=error.code.value,
        message=error.message,
        status_code=error.status_code,
        timestamp=datetime.utcnow().isoformat(),
        path=str(request.url.path) if request else None,
        details=error.details,
        suggestion=error.suggestion
    )


def internal_error_response(request: Request, exc: Exception) -> JSONResponse:
    """Opaque 500 for anything the application did not anticipate."""
    error_id = str(uuid4())
    logger.exception(f"Unhandled exception {error_id}: {type(exc).__name__}", exc_info=exc)

    error_tracker.track(
        error_id=error_id,
        error_code=ErrorCode.INTERNAL_ERROR,
        message=str(exc),
        request_path=str(request.url.path)
    )

    # Don't expose internal details in production
    is_debug = os.getenv("DEBUG", "false").lower() == "true"

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "id": error_id,
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": str(exc) if is_debug else "Internal server error",
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling."""

    async def dispatch(self, request: Request, call_next):
        """Handle request with error catching."""
        try:
            return await call_next(request)

        except AppException as e:
            error_response = create_error_response(e, request)
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.to_dict()
            )

        except HTTPException as e:
            error_response = ErrorResponse(
                error_id=str(uuid4()),
                code=f"HTTP_{e.status_code}",
                message=str(e.detail),
                status_code=e.status_code,
                timestamp=datetime.utcnow().isoformat(),
                path=str(request.url.path)
            )
            return JSONResponse(
                status_code=e.status_code,
                content=error_response.to_dict()
            )

        except Exception as e:
            return internal_error_response(request, e)


def setup_error_handling(app):
    """Setup error handling for FastAPI app."""
    app.add_middleware(ErrorHandlingMiddleware)

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        error_response = create_error_response(exc, request)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return internal_error_response(request, exc)

    logger.info("Error handling middleware configured")
