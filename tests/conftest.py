"""
Pytest configuration and fixtures for the test suite.

This module provides shared fixtures for unit and integration tests.
"""

import os
import uuid
from typing import Dict, Any, AsyncGenerator
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport

# Set test environment before importing application modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-purposes-only-32chars")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORAGE_BACKEND", "local")

fake = Faker()

BASE_PATH = "/api/applicationForm/importDroneApplication"


# =============================================================================
# Test Data Generators
# =============================================================================

@pytest.fixture
def user_data() -> Dict[str, Any]:
    """Generate random applicant data for testing."""
    return {
        "id": str(uuid.uuid4()),
        "email": fake.email(),
        "full_name": fake.name(),
        "role": "USER",
    }


@pytest.fixture
def admin_data() -> Dict[str, Any]:
    """Generate random administrator data for testing."""
    return {
        "id": str(uuid.uuid4()),
        "email": fake.email(),
        "full_name": fake.name(),
        "role": "ADMIN",
    }


@pytest.fixture
def application_payload() -> Dict[str, Any]:
    """A complete application as sent by a client (camelCase JSON)."""
    return {
        "applicantName": fake.name(),
        "applicantAddress": fake.address().replace("\n", ", "),
        "applicantEmail": "applicant@example.com",
        "applicantPhone": "9876543210",
        "applicantNationality": "Indian",
        "applicantTypeId": 1,
        "modelName": "Phantom 4",
        "modelNo": "P4-2024",
        "manufacturer": "DJI",
        "manufacturerAddress": "Shenzhen",
        "manufacturerNationality": "Chinese",
        "purposeOfOperation": "Aerial survey",
        "maxTakeOffWeight": 1.38,
        "hasCameras": True,
        "quantity": 2,
    }


# =============================================================================
# Authentication Fixtures
# =============================================================================

@pytest.fixture
def current_user(user_data):
    """Applicant identity as produced by get_current_user."""
    from digitalsky.core.security import CurrentUser

    return CurrentUser(
        user_id=user_data["id"],
        email=user_data["email"],
        role=user_data["role"],
        full_name=user_data["full_name"],
    )


@pytest.fixture
def admin_user(admin_data):
    """Administrator identity as produced by get_current_user."""
    from digitalsky.core.security import CurrentUser

    return CurrentUser(
        user_id=admin_data["id"],
        email=admin_data["email"],
        role=admin_data["role"],
        full_name=admin_data["full_name"],
    )


@pytest.fixture
def user_token(user_data) -> str:
    from digitalsky.core.security import create_access_token

    return create_access_token(
        user_data["id"], user_data["email"], user_data["role"], user_data["full_name"]
    )


@pytest.fixture
def admin_token(admin_data) -> str:
    from digitalsky.core.security import create_access_token

    return create_access_token(
        admin_data["id"], admin_data["email"], admin_data["role"], admin_data["full_name"]
    )


@pytest.fixture
def user_headers(user_token) -> Dict[str, str]:
    return create_auth_header(user_token)


@pytest.fixture
def admin_headers(admin_token) -> Dict[str, str]:
    return create_auth_header(admin_token)


# =============================================================================
# Mock Objects
# =============================================================================

@pytest.fixture
def mock_application_service():
    """Create a mock ImportDroneApplicationService."""
    service = Mock()
    service.create_application = AsyncMock()
    service.update_application = AsyncMock()
    service.approve_application = AsyncMock()
    service.get_applications_of_applicant = AsyncMock(return_value=[])
    service.get_all_applications = AsyncMock(return_value=[])
    service.get = AsyncMock()
    service.get_file = AsyncMock()
    return service


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Create a test FastAPI application instance."""
    # Import here to ensure test environment is set
    from digitalsky.main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest_asyncio.fixture
async def api_client(app, mock_application_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose routes talk to mock_application_service."""
    from digitalsky.services.import_drone_application_service import (
        get_application_service,
    )

    app.dependency_overrides[get_application_service] = lambda: mock_application_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


# =============================================================================
# Database and Storage Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def database():
    """A fresh in-memory database with tables created."""
    from digitalsky.core.db_client import DatabaseManager

    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def local_storage(tmp_path):
    from digitalsky.core.storage import LocalFileStorage

    return LocalFileStorage(str(tmp_path / "storage"))


@pytest.fixture
def application_service(database, local_storage):
    """Real service backed by the in-memory database and a temp directory."""
    from digitalsky.services.import_drone_application_service import (
        ImportDroneApplicationService,
    )

    return ImportDroneApplicationService(database=database, storage=local_storage)


# =============================================================================
# Helper Functions
# =============================================================================

def create_auth_header(token: str) -> Dict[str, str]:
    """Create an authorization header with a bearer token."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_upload():
    """Factory for mock UploadFile objects."""

    def factory(filename: str, content: bytes, content_type: str = "application/pdf"):
        upload = Mock()
        upload.filename = filename
        upload.content_type = content_type
        upload.size = len(content)
        upload.read = AsyncMock(return_value=content)
        return upload

    return factory


__all__ = [
    "fake",
    "BASE_PATH",
    "create_auth_header",
]
