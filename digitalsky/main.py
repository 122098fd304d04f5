"""FastAPI Application Entry Point.

Drone import application service built with FastAPI, featuring:
- Draft, submit and approval workflow for drone import applications
- Security clearance document storage (local filesystem or Google Cloud Storage)
- Bearer token authentication with an administrator role
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from digitalsky.core.config import settings
from digitalsky.core.logging import configure_logging, setup_request_logging, get_logger
from digitalsky.core.exceptions import setup_exception_handlers
from digitalsky.core.db_client import db
from digitalsky.core.middleware import setup_all_middleware

# Configure logging first
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info(
        "Starting application",
        project_name=settings.PROJECT_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        storage_backend=settings.STORAGE_BACKEND,
    )

    try:
        await db.create_tables()
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        if settings.is_production:
            raise

    yield

    logger.info("Shutting down application")
    await db.close()


API_DESCRIPTION = """# Digital Sky Drone Import API

Applicants save drone import applications as drafts, attach a security
clearance document and submit them; administrators approve or reject
submitted applications.

## Authentication
`Authorization: Bearer <access_token>`. Approving and listing all
applications require the `ADMIN` role.
"""

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=API_DESCRIPTION,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS first, then timing
setup_all_middleware(app)

# Setup exception handlers AFTER CORS middleware
setup_exception_handlers(app)

setup_request_logging(app)


from digitalsky.api.health import router as health_router  # noqa: E402
from digitalsky.api.v1.import_drone_application import (  # noqa: E402
    router as import_drone_application_router,
)

app.include_router(health_router)

app.include_router(
    import_drone_application_router,
    prefix=settings.application_base_path,
    tags=["Import Drone Applications"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "digitalsky.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
