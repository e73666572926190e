"""Response projections shared by several routers.

Field names are the camelCase keys the dashboard consumes.  No projection
has a password or password hash field.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, EmailStr, Field

from tuition_centre.models.organization import Organization
from tuition_centre.models.profile import Gender, Student
from tuition_centre.models.user import User


def lower_email(value: Any) -> Any:
    """Lowercase and strip an email before EmailStr validation."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


Email = Annotated[EmailStr, BeforeValidator(lower_email)]

# Widths of the matching columns in db/tables.py.
Phone = Annotated[str, Field(max_length=64)]
Country = Annotated[str, Field(max_length=128)]


class OrganizationOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None
    address: str | None
    country: str | None
    slug: str
    plan: str
    planStatus: str
    trialEndsAt: datetime | None
    isActive: bool
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(org: Organization) -> OrganizationOut:
        return OrganizationOut(
            id=str(org.id),
            name=org.name,
            email=org.email,
            phone=org.phone,
            address=org.address,
            country=org.country,
            slug=org.slug,
            plan=org.plan.value,
            planStatus=org.plan_status.value,
            trialEndsAt=org.trial_ends_at,
            isActive=org.is_active,
            createdAt=org.created_at,
            updatedAt=org.updated_at,
        )


class OrganizationSummary(BaseModel):
    id: str
    slug: str
    name: str
    planStatus: str
    isActive: bool

    @staticmethod
    def from_model(org: Organization) -> OrganizationSummary:
        return OrganizationSummary(
            id=str(org.id),
            slug=org.slug,
            name=org.name,
            planStatus=org.plan_status.value,
            isActive=org.is_active,
        )


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: str
    organizationId: str
    branchId: str | None
    phone: str | None
    address: str | None
    isActive: bool
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(user: User) -> UserOut:
        return UserOut(
            id=str(user.id),
            email=user.email,
            name=user.name,
            role=user.role.value,
            organizationId=str(user.organization_id),
            branchId=str(user.branch_id) if user.branch_id else None,
            phone=user.phone,
            address=user.address,
            isActive=user.is_active,
            createdAt=user.created_at,
            updatedAt=user.updated_at,
        )


class StudentProfileOut(BaseModel):
    id: str
    userId: str
    studentCode: str
    dateOfBirth: date
    gender: Gender
    grade: str
    schoolName: str
    medicalInfo: str | None
    specialNeeds: str | None
    previousTuitionCentre: str | None
    referralSource: str | None
    createdAt: datetime

    @staticmethod
    def from_model(s: Student) -> StudentProfileOut:
        return StudentProfileOut(
            id=str(s.id),
            userId=str(s.user_id),
            studentCode=s.student_code,
            dateOfBirth=s.date_of_birth,
            gender=s.gender,
            grade=s.grade,
            schoolName=s.school_name,
            medicalInfo=s.medical_info,
            specialNeeds=s.special_needs,
            previousTuitionCentre=s.previous_tuition_centre,
            referralSource=s.referral_source,
            createdAt=s.created_at,
        )


class MessageOut(BaseModel):
    message: str


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_changes(
    payload: BaseModel,
    *,
    required: tuple[str, ...] = (),
    only_sent: bool = True,
) -> dict[str, Any]:
    """Payload fields keyed by snake_case model field name.

    With ``only_sent`` (the PATCH case) fields the client left out are
    omitted; otherwise defaults are included too.

    An explicit null for a field in ``required`` is dropped rather than
    written, since the column cannot be null.
    """
    changes = {
        _CAMEL_BOUNDARY.sub("_", key).lower(): value
        for key, value in payload.model_dump(exclude_unset=only_sent).items()
    }
    for name in required:
        if name in changes and changes[name] is None:
            del changes[name]
    return changes
