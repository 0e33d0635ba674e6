"""
Error taxonomy and HTTP error responses for the lab order API
"""

import uuid
import traceback
import logging
from contextlib import contextmanager
from typing import Optional
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorContext:
    """Context object for tracking error information across the request lifecycle"""

    def __init__(self, request: Request):
        self.request_id = str(uuid.uuid4())
        self.request = request
        self.endpoint = str(request.url.path)
        self.method = request.method
        self.client_ip = self._get_client_ip()
        self.user_agent = request.headers.get("user-agent")
        self.timestamp = datetime.utcnow()

    def _get_client_ip(self) -> Optional[str]:
        """Extract client IP from request headers"""
        if "x-forwarded-for" in self.request.headers:
            return self.request.headers["x-forwarded-for"].split(",")[0].strip()
        elif "x-real-ip" in self.request.headers:
            return self.request.headers["x-real-ip"]
        elif self.request.client:
            return self.request.client.host
        return None


class LabOrderError(Exception):
    """Base class for failures raised by the auth and order engines"""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidInputError(LabOrderError):
    """Malformed request or one that violates an order invariant"""
    status_code = 400


class UnauthorizedError(LabOrderError):
    """Missing, invalid or expired credentials"""
    status_code = 401


class NotFoundError(LabOrderError):
    """Referenced record does not exist"""
    status_code = 404


class ConflictError(LabOrderError):
    """State-machine violation or duplicate registration"""
    status_code = 409


class InternalError(LabOrderError):
    """Unexpected store or infrastructure failure"""
    status_code = 500


class DatabaseError(InternalError):
    """Custom exception for database-related errors"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


@contextmanager
def database_operation(db: Session, action: str):
    """Roll back and wrap SQLAlchemy failures raised inside the block"""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while trying to {action}: {e}")
        raise DatabaseError(f"Failed to {action}", e) from e


class ErrorHandler:
    """Centralized error response builder"""

    @staticmethod
    def create_error_response(
        error_context: ErrorContext,
        error: Exception,
        status_code: int = 500,
        message: Optional[str] = None,
        include_details: Optional[bool] = None
    ) -> JSONResponse:
        """Create a standardized error response"""
        if include_details is None:
            include_details = not settings.is_production

        if message is None:
            message = ErrorHandler._get_user_friendly_message(error, status_code)

        error_data = {"error": message}

        # Stack traces are only exposed outside production
        if include_details:
            error_data["stack"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        ErrorHandler._log_error(error_context, error, status_code)

        return JSONResponse(
            status_code=status_code,
            content=error_data,
            headers=ErrorHandler._get_headers(error_context, status_code)
        )

    @staticmethod
    def _get_user_friendly_message(error: Exception, status_code: int) -> str:
        """Never leak internal detail for server errors in production"""
        if status_code >= 500 and settings.is_production:
            return INTERNAL_ERROR_MESSAGE
        if isinstance(error, LabOrderError):
            return error.message
        return INTERNAL_ERROR_MESSAGE

    @staticmethod
    def _get_headers(error_context: ErrorContext, status_code: int) -> dict:
        headers = {"X-Request-ID": error_context.request_id}
        if status_code == 401:
            headers["WWW-Authenticate"] = "Bearer"
        return headers

    @staticmethod
    def _log_error(error_context: ErrorContext, error: Exception, status_code: int):
        """Log error with request context; server errors carry the traceback"""
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Error {error_context.request_id}: {type(error).__name__} in {error_context.method} {error_context.endpoint}: {error}",
            extra={
                "request_id": error_context.request_id,
                "endpoint": error_context.endpoint,
                "method": error_context.method,
                "status_code": status_code,
                "client_ip": error_context.client_ip,
                "user_agent": error_context.user_agent,
                "error_type": type(error).__name__,
            },
            exc_info=status_code >= 500
        )


def _format_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    if location:
        return f"{location}: {first.get('msg')}"
    return str(first.get("msg"))


def register_exception_handlers(app: FastAPI):
    """Map the error taxonomy onto HTTP responses"""

    @app.exception_handler(LabOrderError)
    async def lab_order_error_handler(request: Request, exc: LabOrderError):
        return ErrorHandler.create_error_response(ErrorContext(request), exc, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return ErrorHandler.create_error_response(
            ErrorContext(request), exc, 400, message=_format_validation_error(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return ErrorHandler.create_error_response(
            ErrorContext(request), exc, exc.status_code, message=str(exc.detail), include_details=False
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return ErrorHandler.create_error_response(ErrorContext(request), exc, 500)
