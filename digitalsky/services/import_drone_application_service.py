"""
Import Drone Application Service - lifecycle of drone import applications.

Applications move DRAFT -> SUBMITTED -> APPROVED | REJECTED:
- applicants create drafts and edit them until they submit
- an optional security clearance document is stored with each update
- administrators approve or reject submitted applications
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from fastapi import UploadFile
from sqlalchemy import select

from digitalsky.core.config import settings
from digitalsky.core.db_client import DatabaseManager, db
from digitalsky.core.exceptions import (
    ApplicationNotEditableError,
    ApplicationNotFoundError,
    StorageError,
    UnAuthorizedAccessError,
    ValidationError,
)
from digitalsky.core.logging import get_service_logger
from digitalsky.core.security import CurrentUser
from digitalsky.core.storage import FileStorage, StoredFile, get_file_storage
from digitalsky.models.application import (
    APPLICANT_EDITABLE_FIELDS,
    ApplicationStatus,
    ApproveRequestBody,
    ImportDroneApplication,
)
from digitalsky.models.db import ImportDroneApplicationModel

DECISION_STATUSES = {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}


class ImportDroneApplicationService:
    """Service for drone import application operations."""

    def __init__(
        self,
        database: Optional[DatabaseManager] = None,
        storage: Optional[FileStorage] = None,
    ):
        self.logger = get_service_logger("import_drone_application")
        self.database = database or db
        self._storage = storage

    @property
    def storage(self) -> FileStorage:
        if self._storage is None:
            self._storage = get_file_storage()
        return self._storage

    def _model_to_pydantic(
        self, model: ImportDroneApplicationModel
    ) -> ImportDroneApplication:
        """Convert SQLAlchemy model to Pydantic model."""
        return ImportDroneApplication.model_validate(model.document)

    def _apply(
        self, model: ImportDroneApplicationModel, application: ImportDroneApplication
    ) -> None:
        model.status = application.status.value if application.status else None
        model.document = application.model_dump(mode="json")

    async def _get_model(self, session, application_id: str) -> ImportDroneApplicationModel:
        model = await session.get(ImportDroneApplicationModel, application_id)
        if model is None:
            raise ApplicationNotFoundError(
                f"Application with id {application_id} not found",
                application_id=application_id,
            )
        return model

    def _check_owner_or_admin(
        self, application: ImportDroneApplication, user: CurrentUser
    ) -> None:
        if application.applicant_id != user.user_id and not user.is_admin:
            raise UnAuthorizedAccessError(
                "You are not authorized to access this application"
            )

    async def create_application(
        self, application: ImportDroneApplication, user: CurrentUser
    ) -> ImportDroneApplication:
        """
        Create a new draft application owned by ``user``.

        Client-supplied identity, status and approval fields are discarded.
        """
        now = datetime.now(timezone.utc)
        created = ImportDroneApplication(
            **application.model_dump(include=APPLICANT_EDITABLE_FIELDS),
            id=str(uuid4()),
            applicant_id=user.user_id,
            status=ApplicationStatus.DRAFT,
            submitted=False,
            created_date=now,
            last_modified_date=now,
        )

        async with self.database.session() as session:
            model = ImportDroneApplicationModel(
                id=created.id, applicant_id=user.user_id, created_at=now
            )
            self._apply(model, created)
            session.add(model)

        self.logger.info(
            "Application created", application_id=created.id, applicant_id=user.user_id
        )
        return created

    async def update_application(
        self,
        application_id: str,
        application: ImportDroneApplication,
        security_clearance_doc: Optional[UploadFile],
        user: CurrentUser,
    ) -> ImportDroneApplication:
        """
        Update a draft application, optionally attaching a document.

        Raises:
            ApplicationNotFoundError: Unknown id
            UnAuthorizedAccessError: Caller does not own the application
            ApplicationNotEditableError: Application is no longer a draft
            StorageError: Document could not be stored
            OSError: Uploaded document could not be read
        """
        async with self.database.session() as session:
            model = await self._get_model(session, application_id)
            existing = self._model_to_pydantic(model)

            if existing.applicant_id != user.user_id:
                raise UnAuthorizedAccessError(
                    "You are not authorized to update this application"
                )
            if existing.status not in (None, ApplicationStatus.DRAFT):
                raise ApplicationNotEditableError(
                    f"Application is in {existing.status.value} status and cannot be edited",
                    application_id=application_id,
                )

            now = datetime.now(timezone.utc)
            updated = existing.model_copy(
                update={
                    **application.model_dump(include=APPLICANT_EDITABLE_FIELDS),
                    "last_modified_date": now,
                }
            )

            if security_clearance_doc is not None and security_clearance_doc.filename:
                updated.security_clearance_doc_name = await self._store_document(
                    application_id, security_clearance_doc
                )

            if application.submitted:
                updated.submitted = True
                updated.status = ApplicationStatus.SUBMITTED
                updated.submitted_date = now

            self._apply(model, updated)

        self.logger.info(
            "Application updated",
            application_id=application_id,
            status=updated.status.value if updated.status else None,
            document=updated.security_clearance_doc_name,
        )
        return updated

    async def _store_document(self, application_id: str, upload: UploadFile) -> str:
        content = await upload.read()
        if len(content) > settings.MAX_DOCUMENT_SIZE:
            raise StorageError(
                f"File {upload.filename} exceeds maximum size of "
                f"{settings.MAX_DOCUMENT_SIZE} bytes"
            )
        return await asyncio.to_thread(
            self.storage.store,
            application_id,
            upload.filename,
            content,
            upload.content_type,
        )

    async def approve_application(
        self, approve_request: ApproveRequestBody, user: CurrentUser
    ) -> ImportDroneApplication:
        """
        Record an administrator's decision on a submitted application.

        Raises:
            ApplicationNotFoundError: Unknown id
            UnAuthorizedAccessError: Administrator is deciding their own application
            ValidationError: Application is not submitted or the decision is invalid
        """
        if approve_request.status not in DECISION_STATUSES:
            raise ValidationError(
                f"Invalid status {approve_request.status.value}, "
                "expected APPROVED or REJECTED"
            )

        application_id = approve_request.application_form_id
        async with self.database.session() as session:
            model = await self._get_model(session, application_id)
            existing = self._model_to_pydantic(model)

            if existing.applicant_id == user.user_id:
                raise UnAuthorizedAccessError(
                    "You are not authorized to approve your own application"
                )
            if existing.status != ApplicationStatus.SUBMITTED:
                raise ValidationError(
                    "Application is not in submitted status",
                )

            now = datetime.now(timezone.utc)
            updated = existing.model_copy(
                update={
                    "status": approve_request.status,
                    "approver": user.display_name,
                    "approver_id": user.user_id,
                    "approved_date": now,
                    "approver_comments": approve_request.comments,
                    "last_modified_date": now,
                }
            )
            self._apply(model, updated)

        self.logger.info(
            "Application decided",
            application_id=application_id,
            status=updated.status.value,
            approver_id=user.user_id,
        )
        return updated

    async def get_applications_of_applicant(
        self, user: CurrentUser
    ) -> List[ImportDroneApplication]:
        """List the caller's applications, newest first."""
        async with self.database.session() as session:
            result = await session.execute(
                select(ImportDroneApplicationModel)
                .where(ImportDroneApplicationModel.applicant_id == user.user_id)
                .order_by(ImportDroneApplicationModel.created_at.desc())
            )
            return [self._model_to_pydantic(m) for m in result.scalars().all()]

    async def get_all_applications(self) -> List[ImportDroneApplication]:
        """List every application, newest first."""
        async with self.database.session() as session:
            result = await session.execute(
                select(ImportDroneApplicationModel).order_by(
                    ImportDroneApplicationModel.created_at.desc()
                )
            )
            return [self._model_to_pydantic(m) for m in result.scalars().all()]

    async def get(self, application_id: str, user: CurrentUser) -> ImportDroneApplication:
        """Fetch one application visible to the caller."""
        async with self.database.session() as session:
            model = await self._get_model(session, application_id)
            application = self._model_to_pydantic(model)

        self._check_owner_or_admin(application, user)
        return application

    async def get_file(
        self, application_id: str, document_name: str, user: CurrentUser
    ) -> StoredFile:
        """
        Load a document attached to an application.

        Raises:
            UnAuthorizedAccessError: Caller is neither owner nor administrator
            StorageFileNotFoundError: No such document
        """
        application = await self.get(application_id, user)
        return await asyncio.to_thread(self.storage.load, application.id, document_name)


# Global service instance
import_drone_application_service = ImportDroneApplicationService()


def get_application_service() -> ImportDroneApplicationService:
    """Dependency provider for the application service."""
    return import_drone_application_service
