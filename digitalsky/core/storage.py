"""
Document storage for application attachments.

Files live under a per-application prefix:
- LocalFileStorage: ``<STORAGE_ROOT>/<application_id>/<filename>``
- GCSFileStorage: ``gs://<GCS_BUCKET_NAME>/<application_id>/<filename>``
"""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

from digitalsky.core.config import settings
from digitalsky.core.exceptions import StorageError, StorageFileNotFoundError
from digitalsky.core.logging import get_service_logger

logger = get_service_logger("storage")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StoredFile:
    """A document loaded from storage."""

    filename: str
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)


def sanitize_filename(filename: Optional[str]) -> str:
    """Reduce a client-supplied name to a bare filename.

    Raises:
        StorageError: If nothing usable is left or the name walks up the tree
    """
    if not filename:
        raise StorageError("Failed to store empty file name")

    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    if not name or name in (".", "..") or ".." in name:
        raise StorageError(
            f"Cannot store file with relative path outside current directory {filename}"
        )
    return name


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE


class FileStorage(ABC):
    """Interface shared by storage backends."""

    @abstractmethod
    def store(
        self,
        application_id: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Store a file and return the sanitized name it was stored under."""

    @abstractmethod
    def load(self, application_id: str, filename: str) -> StoredFile:
        """Load a stored file, raising StorageFileNotFoundError if missing."""

    def health_check(self) -> bool:
        return True


class LocalFileStorage(FileStorage):
    """Stores documents on the local filesystem."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.STORAGE_ROOT)

    def _path_for(self, application_id: str, filename: str) -> Path:
        return self.root / sanitize_filename(application_id) / sanitize_filename(filename)

    def store(
        self,
        application_id: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        if not content:
            raise StorageError(f"Failed to store empty file {filename}")

        path = self._path_for(application_id, filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error(
                "Failed to store document",
                application_id=application_id,
                filename=filename,
                error=str(e),
            )
            raise StorageError(f"Failed to store file {filename}: {e}")

        logger.info(
            "Stored document",
            application_id=application_id,
            filename=path.name,
            size=len(content),
        )
        return path.name

    def load(self, application_id: str, filename: str) -> StoredFile:
        try:
            path = self._path_for(application_id, filename)
        except StorageError:
            raise StorageFileNotFoundError(
                f"Could not read file: {filename}", filename=filename
            )

        if not path.is_file():
            raise StorageFileNotFoundError(
                f"Could not read file: {filename}", filename=filename
            )

        try:
            content = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read file {filename}: {e}")

        return StoredFile(
            filename=path.name,
            content=content,
            content_type=guess_content_type(path.name),
        )

    def health_check(self) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error("Local storage health check failed", error=str(e))
            return False


class GCSFileStorage(FileStorage):
    """Stores documents in a Google Cloud Storage bucket."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        client: Optional[storage.Client] = None,
    ):
        self.bucket_name = bucket_name or settings.GCS_BUCKET_NAME
        self._client = client
        self._bucket = None

    @property
    def bucket(self):
        if self._bucket is None:
            if self._client is None:
                self._client = storage.Client(project=settings.GCP_PROJECT_ID)
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def _blob_path(self, application_id: str, filename: str) -> str:
        return f"{sanitize_filename(application_id)}/{sanitize_filename(filename)}"

    def store(
        self,
        application_id: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        if not content:
            raise StorageError(f"Failed to store empty file {filename}")

        blob_path = self._blob_path(application_id, filename)
        try:
            blob = self.bucket.blob(blob_path)
            blob.upload_from_string(
                content, content_type=content_type or guess_content_type(blob_path)
            )
        except GoogleAPIError as e:
            logger.error(
                "Failed to upload document to GCS",
                bucket=self.bucket_name,
                blob_path=blob_path,
                error=str(e),
            )
            raise StorageError(f"Failed to store file {filename}: {e}")

        logger.info(
            "Uploaded document to GCS",
            bucket=self.bucket_name,
            blob_path=blob_path,
            size=len(content),
        )
        return PurePosixPath(blob_path).name

    def load(self, application_id: str, filename: str) -> StoredFile:
        try:
            blob_path = self._blob_path(application_id, filename)
        except StorageError:
            raise StorageFileNotFoundError(
                f"Could not read file: {filename}", filename=filename
            )

        try:
            blob = self.bucket.blob(blob_path)
            content = blob.download_as_bytes()
        except NotFound:
            raise StorageFileNotFoundError(
                f"Could not read file: {filename}", filename=filename
            )
        except GoogleAPIError as e:
            logger.error(
                "Failed to download document from GCS",
                bucket=self.bucket_name,
                blob_path=blob_path,
                error=str(e),
            )
            raise StorageError(f"Failed to read file {filename}: {e}")

        name = PurePosixPath(blob_path).name
        return StoredFile(
            filename=name,
            content=content,
            content_type=blob.content_type or guess_content_type(name),
        )

    def health_check(self) -> bool:
        try:
            self.bucket.reload()
            return True
        except Exception as e:
            logger.error("GCS health check failed", error=str(e))
            return False


@lru_cache()
def get_file_storage() -> FileStorage:
    """Get the storage backend selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "gcs":
        return GCSFileStorage()
    return LocalFileStorage()
