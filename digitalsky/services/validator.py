"""
Field validation for applications being submitted.

Drafts are stored as they come; only an application flagged as submitted
has to carry the complete set of applicant and drone details.
"""

import re
from typing import List

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from digitalsky.core.exceptions import ValidationError
from digitalsky.core.logging import get_service_logger
from digitalsky.models.application import ImportDroneApplication

logger = get_service_logger("validator")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?\d{10,13}$")


class SubmittedImportDroneApplication(BaseModel):
    """Shape an application must have once it is submitted."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    applicant_name: str = Field(..., min_length=1, max_length=100)
    applicant_address: str = Field(..., min_length=1, max_length=500)
    applicant_email: str
    applicant_phone: str
    applicant_nationality: str = Field(..., min_length=1)
    model_name: str = Field(..., min_length=1)
    manufacturer: str = Field(..., min_length=1)
    manufacturer_nationality: str = Field(..., min_length=1)
    purpose_of_operation: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)

    @field_validator(
        "applicant_name",
        "applicant_address",
        "applicant_nationality",
        "model_name",
        "manufacturer",
        "manufacturer_nationality",
        "purpose_of_operation",
        mode="before",
    )
    @classmethod
    def not_blank(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v

    @field_validator("applicant_email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("not a well-formed email address")
        return v

    @field_validator("applicant_phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        if not PHONE_PATTERN.match(v.replace(" ", "")):
            raise ValueError("must be 10 to 13 digits")
        return v


def _field_label(loc) -> str:
    name = str(loc[0]) if loc else "application"
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class CustomValidator:
    """Validates submitted applications field by field."""

    def validate(self, application: ImportDroneApplication) -> None:
        """
        Check every required field of a submitted application.

        Raises:
            ValidationError: Listing one message per failing field
        """
        try:
            SubmittedImportDroneApplication.model_validate(application.model_dump())
        except pydantic.ValidationError as e:
            errors: List[str] = [
                f"{_field_label(error['loc'])}: {error['msg']}" for error in e.errors()
            ]
            logger.info(
                "Application failed validation",
                application_id=application.id,
                errors=errors,
            )
            raise ValidationError("Application validation failed", errors=errors)


validator = CustomValidator()
