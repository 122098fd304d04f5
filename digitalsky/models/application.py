from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApplicationStatus(str, Enum):
    """Lifecycle status of an application."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # "model_" fields collide with pydantic's protected namespace
        protected_namespaces=(),
    )


class ImportDroneApplication(CamelModel):
    """Application to import drones, tracked from draft to approval."""

    id: Optional[str] = Field(None, description="Unique application identifier")
    applicant_id: Optional[str] = Field(None, description="User ID of the applicant")
    status: Optional[ApplicationStatus] = Field(
        None, description="Lifecycle status of the application"
    )
    submitted: bool = Field(
        False, description="Whether the applicant is submitting (vs saving a draft)"
    )

    # Applicant
    applicant_name: Optional[str] = None
    applicant_address: Optional[str] = None
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    applicant_nationality: Optional[str] = None
    applicant_type_id: Optional[int] = None
    applicant_company: Optional[str] = None

    # Drone
    model_name: Optional[str] = None
    model_no: Optional[str] = None
    serial_no: Optional[str] = None
    manufacturer: Optional[str] = None
    manufacturer_address: Optional[str] = None
    manufacturer_nationality: Optional[str] = None
    color: Optional[str] = None
    max_take_off_weight: Optional[float] = None
    max_height_attainable: Optional[float] = None
    compatible_payload: Optional[str] = None
    drone_category_type: Optional[str] = None
    purpose_of_operation: Optional[str] = None
    engine_type: Optional[str] = None
    engine_power: Optional[float] = None
    engine_count: Optional[int] = None
    fuel_capacity: Optional[float] = None
    propeller_details: Optional[str] = None
    max_endurance: Optional[float] = None
    max_range: Optional[float] = None
    max_speed: Optional[float] = None
    dimensions: Optional[str] = None
    has_cameras: Optional[bool] = None
    quantity: Optional[int] = None

    # Attached documents
    security_clearance_doc_name: Optional[str] = None

    # Approval
    approver: Optional[str] = None
    approver_id: Optional[str] = None
    approved_date: Optional[datetime] = None
    approver_comments: Optional[str] = None

    # Timestamps
    created_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None
    submitted_date: Optional[datetime] = None


# Fields an applicant may change; identity, lifecycle and approval fields
# are owned by the service.
APPLICANT_EDITABLE_FIELDS = frozenset(
    name
    for name in ImportDroneApplication.model_fields
    if name
    not in {
        "id",
        "applicant_id",
        "status",
        "submitted",
        "security_clearance_doc_name",
        "approver",
        "approver_id",
        "approved_date",
        "approver_comments",
        "created_date",
        "last_modified_date",
        "submitted_date",
    }
)


class ApproveRequestBody(CamelModel):
    """Approval decision made by an administrator."""

    application_form_id: Optional[str] = Field(
        None, description="ID of the application being decided"
    )
    status: ApplicationStatus = Field(..., description="APPROVED or REJECTED")
    comments: Optional[str] = Field(None, max_length=1000)


class Errors(BaseModel):
    """Error envelope returned to clients."""

    errors: List[str] = Field(default_factory=list)
