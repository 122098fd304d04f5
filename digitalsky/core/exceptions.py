import uuid
import traceback
from typing import Any, Dict, List, Optional
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from digitalsky.core.config import settings
from digitalsky.core.logging import get_logger
from digitalsky.models.application import Errors

logger = get_logger(__name__)


class DigitalSkyError(Exception):
    """Base exception for the Digital Sky application."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class ApplicationNotFoundError(DigitalSkyError):
    """Application does not exist."""

    def __init__(
        self, message: str = "Application not found", application_id: Optional[str] = None
    ):
        details = {"application_id": application_id} if application_id else None
        super().__init__(message, "APPLICATION_NOT_FOUND", details)


class ApplicationNotEditableError(DigitalSkyError):
    """Application is past the draft stage and can no longer be changed."""

    def __init__(
        self,
        message: str = "Application is not editable",
        application_id: Optional[str] = None,
    ):
        details = {"application_id": application_id} if application_id else None
        super().__init__(message, "APPLICATION_NOT_EDITABLE", details)


class UnAuthorizedAccessError(DigitalSkyError):
    """Caller is not allowed to access the application."""

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(message, "UNAUTHORIZED_ACCESS")


class StorageError(DigitalSkyError):
    """Document storage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORAGE_ERROR", details)


class StorageFileNotFoundError(StorageError):
    """Requested document is not in storage."""

    def __init__(self, message: str = "File not found", filename: Optional[str] = None):
        details = {"filename": filename} if filename else None
        super().__init__(message, details)
        self.error_code = "STORAGE_FILE_NOT_FOUND"


class ValidationError(DigitalSkyError):
    """Validation related errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message, "VALIDATION_ERROR", {"errors": self.errors})


STATUS_CODE_MAP = {
    "APPLICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "APPLICATION_NOT_EDITABLE": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "UNAUTHORIZED_ACCESS": status.HTTP_401_UNAUTHORIZED,
    "STORAGE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "STORAGE_FILE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
}


def errors_response(status_code: int, *messages: str) -> JSONResponse:
    """Build the plain ``{"errors": [...]}`` envelope returned by the routers."""
    return JSONResponse(
        status_code=status_code,
        content=Errors(errors=list(messages)).model_dump(),
    )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "INTERNAL_ERROR",
    details: Optional[Dict[str, Any]] = None,
    error_id: Optional[str] = None,
    request_path: Optional[str] = None,
) -> JSONResponse:
    """Create standardized error response."""

    error_id = error_id or str(uuid.uuid4())[:8]

    error_response: Dict[str, Any] = {
        "errors": [message],
        "code": error_code,
        "errorId": error_id,
    }

    if details:
        error_response["details"] = details

    if request_path:
        error_response["path"] = request_path

    return JSONResponse(status_code=status_code, content=error_response)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    error_id = str(uuid.uuid4())[:8]

    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code="HTTP_ERROR",
        error_id=error_id,
        request_path=str(request.url.path),
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    error_id = str(uuid.uuid4())[:8]

    logger.warning(
        "Validation exception occurred",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    formatted_errors = []
    for error in exc.errors():
        formatted_errors.append(
            {
                "field": ".".join(str(x) for x in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Request validation failed",
        error_code="VALIDATION_ERROR",
        details={"validation_errors": formatted_errors},
        error_id=error_id,
        request_path=str(request.url.path),
    )


async def digitalsky_exception_handler(
    request: Request, exc: DigitalSkyError
) -> JSONResponse:
    """Handle application exceptions that escaped a router."""
    error_id = str(uuid.uuid4())[:8]

    status_code = STATUS_CODE_MAP.get(
        exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    logger.error(
        "Application exception occurred",
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    return create_error_response(
        status_code=status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        error_id=error_id,
        request_path=str(request.url.path),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    error_id = str(uuid.uuid4())[:8]

    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
        exc_info=True,
    )

    if settings.is_development:
        details = {
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc().split("\n"),
        }
        message = str(exc)
    else:
        details = None
        message = "An unexpected error occurred"

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=message,
        error_code="INTERNAL_ERROR",
        details=details,
        error_id=error_id,
        request_path=str(request.url.path),
    )


def setup_exception_handlers(app):
    """Setup all exception handlers for the FastAPI app."""

    app.add_exception_handler(DigitalSkyError, digitalsky_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Catch-all
    app.add_exception_handler(Exception, general_exception_handler)
