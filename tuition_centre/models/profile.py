"""Role-specific profiles attached to a User.

The User row carries login, role and branch; these carry what the centre
records about a teacher, student or parent.  Each profile belongs to
exactly one user.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from uuid import UUID


class Gender(StrEnum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class ContactMethod(StrEnum):
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"


@dataclass(frozen=True, slots=True)
class Teacher:
    id: UUID
    organization_id: UUID
    user_id: UUID
    teacher_code: str  # unique per organization
    created_at: datetime
    employee_id: str | None = None
    employment_start_date: date | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None


@dataclass(frozen=True, slots=True)
class Student:
    id: UUID
    organization_id: UUID
    user_id: UUID
    student_code: str  # unique per organization
    date_of_birth: date
    gender: Gender
    grade: str
    school_name: str
    created_at: datetime
    medical_info: str | None = None
    special_needs: str | None = None
    previous_tuition_centre: str | None = None
    referral_source: str | None = None


@dataclass(frozen=True, slots=True)
class Parent:
    id: UUID
    organization_id: UUID
    user_id: UUID
    created_at: datetime
    occupation: str | None = None
    office_phone: str | None = None
    preferred_contact_method: ContactMethod | None = None


@dataclass(frozen=True, slots=True)
class ParentStudent:
    parent_id: UUID
    student_id: UUID
    relationship: str
    is_primary: bool
    created_at: datetime
