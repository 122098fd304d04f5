import asyncio
import logging
import logging.config
from typing import Any, Dict

import structlog

from digitalsky.core.config import settings

HEALTH_ENDPOINTS = ["/health", "/ready", "/live"]

# Path segments under the application base path that are not application ids
COLLECTION_SEGMENTS = {"list", "getAll", "approve"}

LOGGED_HEADERS = [b"user-agent", b"content-type", b"authorization", b"content-length"]


def configure_logging() -> None:
    """Configure structlog and the stdlib handlers it renders through."""
    json_output = settings.LOG_FORMAT == "json"

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            (
                structlog.processors.JSONRenderer()
                if json_output
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter: Dict[str, Any] = (
        {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(name)s %(levelname)s %(message)s",
        }
        if json_output
        else {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"}
    )

    def quiet(level: str = "WARNING") -> Dict[str, Any]:
        return {"level": level, "handlers": ["default"], "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "health_check_filter": {
                    "()": "digitalsky.core.logging.HealthCheckFilter",
                },
            },
            "formatters": {"default": formatter},
            "handlers": {
                "default": {
                    "formatter": "default",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                },
                "access": {
                    "formatter": "default",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "filters": ["health_check_filter"],
                },
            },
            "loggers": {
                "": {
                    "level": settings.LOG_LEVEL,
                    "handlers": ["default"],
                    "propagate": False,
                },
                "uvicorn.error": quiet("INFO"),
                "uvicorn.access": {
                    "level": "INFO",
                    "handlers": ["access"],
                    "propagate": False,
                },
                # SQL statements only when DB_ECHO is on
                "sqlalchemy.engine": quiet("INFO" if settings.DB_ECHO else "WARNING"),
                "aiosqlite": quiet(),
                "google": quiet(),
                "urllib3": quiet(),
                "multipart": quiet(),
            },
        }
    )

    if not settings.DEBUG:
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def application_context(path: str) -> Dict[str, Any]:
    """Extract the application id and document name a request path refers to."""
    base = settings.application_base_path
    if not path.startswith(base):
        return {}

    segments = [s for s in path[len(base):].split("/") if s]
    if not segments:
        return {}

    if segments[0] == "approve":
        return {"application_id": segments[1]} if len(segments) > 1 else {}
    if segments[0] in COLLECTION_SEGMENTS:
        return {}

    context = {"application_id": segments[0]}
    if len(segments) > 2 and segments[1] == "document":
        context["document_name"] = "/".join(segments[2:])
    return context


class RequestLoggingMiddleware:
    """ASGI middleware logging each request with the application it touches."""

    def __init__(self, app):
        self.app = app
        self.logger = structlog.get_logger("request")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"] in HEALTH_ENDPOINTS:
            await self.app(scope, receive, send)
            return

        headers = {
            key.decode(): value.decode()
            for key, value in scope.get("headers", [])
            if key.lower() in LOGGED_HEADERS
        }
        # Never log bearer tokens
        if "authorization" in headers:
            headers["authorization"] = "***"

        log = self.logger.bind(
            method=scope["method"],
            path=scope["path"],
            **application_context(scope["path"]),
        )
        log.info(
            "Request started",
            query_string=scope.get("query_string", b"").decode(),
            headers=headers,
            is_file_upload="multipart/form-data" in headers.get("content-type", ""),
        )

        start_time = asyncio.get_running_loop().time()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                log.info("Response started", status_code=message["status"])
            elif message["type"] == "http.response.body" and not message.get(
                "more_body", False
            ):
                duration = asyncio.get_running_loop().time() - start_time
                log.info("Request completed", duration=round(duration, 4))

            await send(message)

        await self.app(scope, receive, send_wrapper)


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access log lines for probe endpoints."""

    def filter(self, record):
        message = record.getMessage()
        return not any(endpoint in message for endpoint in HEALTH_ENDPOINTS)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def setup_request_logging(app):
    """Log every request in DEBUG mode."""
    if settings.DEBUG:
        app.add_middleware(RequestLoggingMiddleware)


def get_api_logger() -> structlog.BoundLogger:
    return get_logger("api")


def get_auth_logger() -> structlog.BoundLogger:
    return get_logger("auth")


def get_service_logger(service_name: str) -> structlog.BoundLogger:
    """Get service-specific logger."""
    return get_logger(f"service.{service_name}")
