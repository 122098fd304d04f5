"""
Shared utilities for application API endpoints.

Error helpers log the failure and build the ``{"errors": [...]}`` body with
the status code each exception kind maps to.
"""

from typing import List
from urllib.parse import quote

import pydantic
from fastapi import status
from fastapi.responses import JSONResponse

from digitalsky.core.exceptions import errors_response
from digitalsky.core.logging import get_api_logger

logger = get_api_logger()


def error_response(
    status_code: int, e: Exception, operation: str, **context
) -> JSONResponse:
    """Log a failed operation and build its error body."""
    message = getattr(e, "message", None) or str(e)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            f"{operation} failed",
            error=message,
            error_type=type(e).__name__,
            **context,
        )
    else:
        logger.warning(
            f"{operation} failed",
            error=message,
            error_type=type(e).__name__,
            status_code=status_code,
            **context,
        )

    errors = getattr(e, "errors", None)
    if isinstance(errors, list) and errors:
        return errors_response(status_code, *errors)
    return errors_response(status_code, message)


def log_operation_start(operation: str, **context) -> None:
    """Log the start of an operation consistently."""
    logger.info(f"{operation} started", **context)


def log_operation_success(operation: str, **context) -> None:
    """Log successful operation completion consistently."""
    logger.info(f"{operation} completed successfully", **context)


def validation_messages(e: pydantic.ValidationError) -> List[str]:
    """One ``field: message`` entry per error, naming fields as sent."""
    return [
        f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
        for error in e.errors()
    ]


def content_disposition(filename: str) -> str:
    """Build an attachment header that survives non-ASCII file names.

    Header values are latin-1 on the wire, so names outside plain ASCII get an
    ASCII ``filename`` fallback plus the RFC 6266 ``filename*`` form.
    """
    if filename.isascii() and filename.isprintable() and not any(
        c in filename for c in '"\\'
    ):
        return f'attachment; filename="{filename}"'

    fallback = "".join(
        c if c.isascii() and c.isprintable() and c not in '"\\' else "_"
        for c in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
