"""
Import drone application endpoints.

Translates HTTP requests into calls on the application service and maps
service exceptions onto status codes:

- ApplicationNotFoundError / StorageFileNotFoundError -> 404
- ApplicationNotEditableError -> 422
- UnAuthorizedAccessError -> 401
- StorageError -> 500
- OSError or an unparseable form -> 422
- ValidationError -> 400
"""

import io
from typing import Any, Dict, List, Optional

import pydantic
from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse

from digitalsky.api.v1.common import (
    content_disposition,
    error_response,
    log_operation_start,
    log_operation_success,
    validation_messages,
)
from digitalsky.core.exceptions import (
    ApplicationNotEditableError,
    ApplicationNotFoundError,
    StorageError,
    StorageFileNotFoundError,
    UnAuthorizedAccessError,
    ValidationError,
)
from digitalsky.core.security import CurrentUser, get_current_user, require_admin
from digitalsky.models.application import (
    ApplicationStatus,
    ApproveRequestBody,
    Errors,
    ImportDroneApplication,
)
from digitalsky.services.import_drone_application_service import (
    ImportDroneApplicationService,
    get_application_service,
)
from digitalsky.services.validator import CustomValidator, validator

router = APIRouter()


def get_validator() -> CustomValidator:
    return validator


ERROR_RESPONSES = {
    400: {"model": Errors, "description": "Validation failed"},
    401: {"model": Errors, "description": "Not authorized for this application"},
    404: {"model": Errors, "description": "Application or document not found"},
    422: {"model": Errors, "description": "Application not editable or malformed input"},
    500: {"model": Errors, "description": "Storage or unexpected error"},
}


@router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    response_model=ImportDroneApplication,
    include_in_schema=False,
)
@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ImportDroneApplication,
    summary="Create Application",
    operation_id="createImportDroneApplication",
    responses={500: ERROR_RESPONSES[500]},
)
async def create_acquisition_form(
    acquisition_form: ImportDroneApplication,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    """Create a draft application owned by the caller."""
    try:
        created = await service.create_application(acquisition_form, current_user)
        log_operation_success(
            "Application creation",
            application_id=created.id,
            user_id=current_user.user_id,
        )
        return created
    except Exception as e:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            e,
            "Application creation",
            user_id=current_user.user_id,
        )


@router.patch(
    "/approve/{id}",
    response_model=ImportDroneApplication,
    summary="Approve or Reject Application",
    operation_id="approveImportDroneApplication",
    responses={
        code: ERROR_RESPONSES[code] for code in (400, 401, 404, 422)
    },
)
async def approve_acquisition_form(
    id: str,
    approve_request_body: Dict[str, Any] = Body(
        ..., description="ApproveRequestBody: applicationFormId, status, comments"
    ),
    current_user: CurrentUser = Depends(require_admin),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    """Record an administrator's decision on a submitted application.

    The body is validated here so that a malformed decision is a 400 like
    every other validation failure. The path id is authoritative: a body
    without ``applicationFormId`` is completed with it, a body naming a
    different application is rejected.
    """
    context = {"application_id": id, "user_id": current_user.user_id}
    log_operation_start(
        "Application approval", status=approve_request_body.get("status"), **context
    )

    try:
        try:
            approve_request = ApproveRequestBody.model_validate(approve_request_body)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid approval request", errors=validation_messages(e)
            )

        if approve_request.application_form_id is None:
            approve_request.application_form_id = id
        elif approve_request.application_form_id != id:
            raise ValidationError(
                "Application id in path does not match applicationFormId in body"
            )

        updated = await service.approve_application(approve_request, current_user)
        log_operation_success("Application approval", **context)
        return updated
    except ApplicationNotFoundError as e:
        return error_response(status.HTTP_404_NOT_FOUND, e, "Application approval", **context)
    except UnAuthorizedAccessError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e, "Application approval", **context)
    except OSError as e:
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, e, "Application approval", **context
        )
    except ValidationError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e, "Application approval", **context)


@router.patch(
    "/{id}",
    response_model=ImportDroneApplication,
    summary="Update Application",
    operation_id="updateImportDroneApplication",
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 404, 422, 500)},
)
async def update_acquisition_form(
    id: str,
    drone_acquisition_form: str = Form(
        ..., alias="droneAcquisitionForm", description="Application as a JSON string"
    ),
    security_clearance_doc: Optional[UploadFile] = File(
        None, alias="securityClearanceDoc", description="Security clearance document"
    ),
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportDroneApplicationService = Depends(get_application_service),
    application_validator: CustomValidator = Depends(get_validator),
):
    """
    Save changes to a draft application, optionally submitting it.

    The form arrives as a JSON string next to the file part, so it is parsed
    here rather than bound by the framework. Only a submitted form is
    validated; drafts may be saved incomplete.
    """
    context = {"application_id": id, "user_id": current_user.user_id}
    log_operation_start(
        "Application update",
        has_document=security_clearance_doc is not None,
        **context,
    )

    try:
        acquisition_form = ImportDroneApplication.model_validate_json(
            drone_acquisition_form
        )
        if acquisition_form.submitted:
            application_validator.validate(acquisition_form)

        updated = await service.update_application(
            id, acquisition_form, security_clearance_doc, current_user
        )
        log_operation_success(
            "Application update",
            status=updated.status.value if updated.status else None,
            **context,
        )
        return updated
    except ApplicationNotFoundError as e:
        return error_response(status.HTTP_404_NOT_FOUND, e, "Application update", **context)
    except ApplicationNotEditableError as e:
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, e, "Application update", **context
        )
    except UnAuthorizedAccessError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e, "Application update", **context)
    except StorageError as e:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, e, "Application update", **context
        )
    except (OSError, pydantic.ValidationError) as e:
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, e, "Application update", **context
        )
    except ValidationError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e, "Application update", **context)


@router.get(
    "/list",
    response_model=List[ImportDroneApplication],
    summary="List My Applications",
    operation_id="listMyImportDroneApplications",
)
async def list_applications(
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    """List the caller's own applications."""
    return await service.get_applications_of_applicant(current_user)


@router.get(
    "/getAll",
    response_model=List[ImportDroneApplication],
    summary="List Submitted Applications",
    operation_id="listAllImportDroneApplications",
)
async def list_all(
    current_user: CurrentUser = Depends(require_admin),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    """List every application that has left the draft stage."""
    applications = await service.get_all_applications()
    return [
        application
        for application in applications
        if application.status is not None
        and application.status != ApplicationStatus.DRAFT
    ]


@router.get(
    "/{id}",
    response_model=ImportDroneApplication,
    summary="Get Application",
    operation_id="getImportDroneApplication",
    responses={code: ERROR_RESPONSES[code] for code in (401, 404)},
)
async def get_acquisition_form(
    id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    context = {"application_id": id, "user_id": current_user.user_id}
    try:
        return await service.get(id, current_user)
    except UnAuthorizedAccessError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e, "Application fetch", **context)
    except ApplicationNotFoundError as e:
        return error_response(status.HTTP_404_NOT_FOUND, e, "Application fetch", **context)


@router.get(
    "/{id}/document/{document_name:path}",
    summary="Download Application Document",
    operation_id="getImportDroneApplicationDocument",
    responses={
        200: {"content": {"application/octet-stream": {}}},
        **{code: ERROR_RESPONSES[code] for code in (401, 404)},
    },
)
async def get_file(
    id: str,
    document_name: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportDroneApplicationService = Depends(get_application_service),
):
    """Stream a document attached to the application as a download."""
    context = {
        "application_id": id,
        "document_name": document_name,
        "user_id": current_user.user_id,
    }
    try:
        stored = await service.get_file(id, document_name, current_user)
        log_operation_success("Document download", size=stored.size, **context)
        return StreamingResponse(
            io.BytesIO(stored.content),
            media_type=stored.content_type,
            headers={
                "Content-Disposition": content_disposition(stored.filename),
                "Content-Length": str(stored.size),
            },
        )
    except (StorageFileNotFoundError, ApplicationNotFoundError) as e:
        return error_response(status.HTTP_404_NOT_FOUND, e, "Document download", **context)
    except UnAuthorizedAccessError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e, "Document download", **context)
