"""
Unit tests for document storage.

Tests the local filesystem backend against a temporary directory and the
GCS backend against a mocked client.
"""

from unittest.mock import Mock

import pytest
from google.api_core.exceptions import Forbidden, NotFound

from digitalsky.core.exceptions import StorageError, StorageFileNotFoundError
from digitalsky.core.storage import (
    FileStorage,
    GCSFileStorage,
    LocalFileStorage,
    guess_content_type,
    sanitize_filename,
)


class TestSanitizeFilename:
    """Tests for client-supplied file names."""

    @pytest.mark.unit
    def test_plain_name_is_kept(self):
        assert sanitize_filename("clearance.pdf") == "clearance.pdf"

    @pytest.mark.unit
    def test_directories_are_stripped(self):
        assert sanitize_filename("C:\\docs\\clearance.pdf") == "clearance.pdf"
        assert sanitize_filename("/tmp/docs/clearance.pdf") == "clearance.pdf"

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["", None, "..", "docs/..", "a..b"])
    def test_unusable_names_raise(self, name):
        with pytest.raises(StorageError):
            sanitize_filename(name)

    @pytest.mark.unit
    def test_guess_content_type(self):
        assert guess_content_type("clearance.pdf") == "application/pdf"
        assert guess_content_type("clearance") == "application/octet-stream"


class TestLocalFileStorage:
    """Tests for LocalFileStorage."""

    @pytest.mark.unit
    def test_store_and_load(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))

        name = storage.store("app-1", "clearance.pdf", b"%PDF-1.4 content")
        stored = storage.load("app-1", name)

        assert name == "clearance.pdf"
        assert (tmp_path / "app-1" / "clearance.pdf").read_bytes() == b"%PDF-1.4 content"
        assert stored.content == b"%PDF-1.4 content"
        assert stored.content_type == "application/pdf"
        assert stored.size == len(b"%PDF-1.4 content")

    @pytest.mark.unit
    def test_store_replaces_existing_file(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))

        storage.store("app-1", "clearance.pdf", b"first")
        storage.store("app-1", "clearance.pdf", b"second")

        assert storage.load("app-1", "clearance.pdf").content == b"second"

    @pytest.mark.unit
    def test_store_empty_file_raises(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))

        with pytest.raises(StorageError):
            storage.store("app-1", "clearance.pdf", b"")

    @pytest.mark.unit
    def test_files_are_scoped_per_application(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        storage.store("app-1", "clearance.pdf", b"content")

        with pytest.raises(StorageFileNotFoundError):
            storage.load("app-2", "clearance.pdf")

    @pytest.mark.unit
    def test_load_missing_file_raises_not_found(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))

        with pytest.raises(StorageFileNotFoundError) as exc_info:
            storage.load("app-1", "missing.pdf")

        assert exc_info.value.message == "Could not read file: missing.pdf"

    @pytest.mark.unit
    def test_load_traversal_name_raises_not_found(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path))

        with pytest.raises(StorageFileNotFoundError):
            storage.load("app-1", "..")

    @pytest.mark.unit
    def test_health_check_creates_root(self, tmp_path):
        storage = LocalFileStorage(str(tmp_path / "nested" / "root"))

        assert storage.health_check() is True
        assert (tmp_path / "nested" / "root").is_dir()


class TestGCSFileStorage:
    """Tests for GCSFileStorage with a mocked client."""

    @pytest.fixture
    def blob(self):
        blob = Mock()
        blob.content_type = "application/pdf"
        blob.download_as_bytes.return_value = b"%PDF"
        return blob

    @pytest.fixture
    def client(self, blob):
        client = Mock()
        client.bucket.return_value.blob.return_value = blob
        return client

    @pytest.mark.unit
    def test_store_uploads_under_application_prefix(self, client, blob):
        storage = GCSFileStorage(bucket_name="documents", client=client)

        name = storage.store("app-1", "clearance.pdf", b"%PDF")

        assert name == "clearance.pdf"
        client.bucket.assert_called_once_with("documents")
        client.bucket.return_value.blob.assert_called_once_with("app-1/clearance.pdf")
        blob.upload_from_string.assert_called_once_with(
            b"%PDF", content_type="application/pdf"
        )

    @pytest.mark.unit
    def test_store_api_error_raises_storage_error(self, client, blob):
        blob.upload_from_string.side_effect = Forbidden("denied")
        storage = GCSFileStorage(bucket_name="documents", client=client)

        with pytest.raises(StorageError):
            storage.store("app-1", "clearance.pdf", b"%PDF")

    @pytest.mark.unit
    def test_load_returns_blob_content(self, client):
        storage = GCSFileStorage(bucket_name="documents", client=client)

        stored = storage.load("app-1", "clearance.pdf")

        assert stored.filename == "clearance.pdf"
        assert stored.content == b"%PDF"
        assert stored.content_type == "application/pdf"

    @pytest.mark.unit
    def test_load_missing_blob_raises_not_found(self, client, blob):
        blob.download_as_bytes.side_effect = NotFound("no such object")
        storage = GCSFileStorage(bucket_name="documents", client=client)

        with pytest.raises(StorageFileNotFoundError):
            storage.load("app-1", "clearance.pdf")

    @pytest.mark.unit
    def test_health_check_reports_bucket_errors(self, client):
        client.bucket.return_value.reload.side_effect = NotFound("no bucket")
        storage = GCSFileStorage(bucket_name="documents", client=client)

        assert storage.health_check() is False


class TestFileStorageInterface:
    """Tests for the FileStorage base class."""

    @pytest.mark.unit
    def test_backend_without_load_cannot_be_instantiated(self):
        class WriteOnlyStorage(FileStorage):
            def store(self, application_id, filename, content, content_type=None):
                return filename

        with pytest.raises(TypeError):
            WriteOnlyStorage()

    @pytest.mark.unit
    def test_interface_itself_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            FileStorage()
