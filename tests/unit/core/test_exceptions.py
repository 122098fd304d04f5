"""
Unit tests for the exception taxonomy and error responses.
"""

import json

import pytest

from digitalsky.core.exceptions import (
    STATUS_CODE_MAP,
    ApplicationNotEditableError,
    ApplicationNotFoundError,
    StorageError,
    StorageFileNotFoundError,
    UnAuthorizedAccessError,
    ValidationError,
    create_error_response,
    errors_response,
)


class TestExceptionTypes:
    """Tests for error codes and details carried by each exception."""

    @pytest.mark.unit
    def test_not_found_carries_application_id(self):
        exc = ApplicationNotFoundError(application_id="app-1")

        assert exc.message == "Application not found"
        assert exc.error_code == "APPLICATION_NOT_FOUND"
        assert exc.details == {"application_id": "app-1"}

    @pytest.mark.unit
    def test_storage_file_not_found_is_storage_error(self):
        exc = StorageFileNotFoundError(filename="clearance.pdf")

        assert isinstance(exc, StorageError)
        assert exc.error_code == "STORAGE_FILE_NOT_FOUND"
        assert exc.details == {"filename": "clearance.pdf"}

    @pytest.mark.unit
    def test_validation_error_defaults_errors_to_message(self):
        exc = ValidationError("Application is not in submitted status")

        assert exc.errors == ["Application is not in submitted status"]
        assert exc.details == {"errors": exc.errors}

    @pytest.mark.unit
    def test_validation_error_keeps_field_errors(self):
        exc = ValidationError("failed", errors=["applicantName: required", "quantity: >= 1"])

        assert exc.errors == ["applicantName: required", "quantity: >= 1"]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "exc, status_code",
        [
            (ApplicationNotFoundError(), 404),
            (ApplicationNotEditableError(), 422),
            (UnAuthorizedAccessError(), 401),
            (StorageError("disk full"), 500),
            (StorageFileNotFoundError(), 404),
            (ValidationError("bad"), 400),
        ],
    )
    def test_status_code_map(self, exc, status_code):
        assert STATUS_CODE_MAP[exc.error_code] == status_code


class TestErrorResponses:
    """Tests for the JSON error bodies."""

    @pytest.mark.unit
    def test_errors_response_envelope(self):
        response = errors_response(404, "Application not found")

        assert response.status_code == 404
        assert json.loads(response.body) == {"errors": ["Application not found"]}

    @pytest.mark.unit
    def test_create_error_response_fields(self):
        response = create_error_response(
            400,
            "bad input",
            error_code="VALIDATION_ERROR",
            details={"field": "quantity"},
            error_id="abc12345",
            request_path="/api/x",
        )
        body = json.loads(response.body)

        assert body == {
            "errors": ["bad input"],
            "code": "VALIDATION_ERROR",
            "errorId": "abc12345",
            "details": {"field": "quantity"},
            "path": "/api/x",
        }
