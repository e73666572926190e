from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class CourseCategory(StrEnum):
    UPSR = "UPSR"
    PT3 = "PT3"
    SPM = "SPM"
    STPM = "STPM"
    MATRICULATION = "MATRICULATION"
    IGCSE = "IGCSE"
    O_LEVEL = "O_LEVEL"
    A_LEVEL = "A_LEVEL"
    ACADEMIC = "ACADEMIC"
    ENRICHMENT = "ENRICHMENT"
    LANGUAGE = "LANGUAGE"
    SPECIAL_PROGRAM = "SPECIAL_PROGRAM"


class CourseLevel(StrEnum):
    STANDARD_1 = "STANDARD_1"
    STANDARD_2 = "STANDARD_2"
    STANDARD_3 = "STANDARD_3"
    STANDARD_4 = "STANDARD_4"
    STANDARD_5 = "STANDARD_5"
    STANDARD_6 = "STANDARD_6"
    FORM_1 = "FORM_1"
    FORM_2 = "FORM_2"
    FORM_3 = "FORM_3"
    FORM_4 = "FORM_4"
    FORM_5 = "FORM_5"
    FORM_6_LOWER = "FORM_6_LOWER"
    FORM_6_UPPER = "FORM_6_UPPER"
    MIXED = "MIXED"


class DifficultyLevel(StrEnum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    MIXED = "MIXED"


class SessionDuration(StrEnum):
    THIRTY_MIN = "THIRTY_MIN"
    FORTY_FIVE_MIN = "FORTY_FIVE_MIN"
    SIXTY_MIN = "SIXTY_MIN"
    NINETY_MIN = "NINETY_MIN"
    ONE_TWENTY_MIN = "ONE_TWENTY_MIN"


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    organization_id: UUID
    name: str
    code: str  # unique per organization
    category: CourseCategory
    difficulty_level: DifficultyLevel
    grade_levels: tuple[CourseLevel, ...]
    session_duration: SessionDuration
    max_class_size: int
    min_class_size: int
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    prerequisites: str | None = None
    total_weeks: int | None = None
    is_ongoing: bool = True
    base_fee_per_session: float | None = None
    base_fee_per_month: float | None = None
    base_fee_per_term: float | None = None
    material_fee: float | None = None
    registration_fee: float | None = None
    is_active: bool = True
    enrollment_open: bool = True
    is_template: bool = False


@dataclass(frozen=True, slots=True)
class CourseBranch:
    """A course offered at a branch, with optional per-branch overrides."""

    course_id: UUID
    branch_id: UUID
    is_offered: bool
    created_at: datetime
    updated_at: datetime
    custom_fee_per_session: float | None = None
    custom_fee_per_month: float | None = None
    custom_fee_per_term: float | None = None
    custom_max_class_size: int | None = None
    custom_min_class_size: int | None = None
    branch_notes: str | None = None
