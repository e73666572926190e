from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from uuid import UUID


class ClassType(StrEnum):
    REGULAR_GROUP = "REGULAR_GROUP"
    SMALL_GROUP = "SMALL_GROUP"
    ONE_ON_ONE = "ONE_ON_ONE"
    ONLINE = "ONLINE"
    HYBRID = "HYBRID"
    INTENSIVE = "INTENSIVE"
    WORKSHOP = "WORKSHOP"


class ClassStatus(StrEnum):
    DRAFT = "DRAFT"
    OPEN_FOR_ENROLLMENT = "OPEN_FOR_ENROLLMENT"
    FULL = "FULL"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class Weekday(StrEnum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class EnrollmentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"


class WaitlistStatus(StrEnum):
    WAITING = "WAITING"
    ENROLLED = "ENROLLED"


@dataclass(frozen=True, slots=True)
class ScheduleSlot:
    day: Weekday
    start_time: time
    end_time: time


@dataclass(frozen=True, slots=True)
class TuitionClass:
    id: UUID
    organization_id: UUID
    branch_id: UUID
    course_id: UUID
    teacher_id: UUID  # Teacher profile id, not user id
    name: str
    class_code: str  # unique per organization
    class_type: ClassType
    start_date: date
    end_date: date
    schedule: tuple[ScheduleSlot, ...]
    max_capacity: int
    min_capacity: int
    created_at: datetime
    updated_at: datetime
    co_teacher_id: UUID | None = None
    class_level: str | None = None
    term_name: str | None = None
    academic_year: int | None = None
    total_weeks: int | None = None
    schedule_notes: str | None = None
    fee_per_session: float | None = None
    fee_per_month: float | None = None
    fee_per_term: float | None = None
    material_fee: float | None = None
    allow_late_enrollment: bool = True
    late_enrollment_cutoff_date: date | None = None
    allow_mid_term_withdrawal: bool = True
    waitlist_enabled: bool = True
    auto_enroll_from_waitlist: bool = False
    status: ClassStatus = ClassStatus.DRAFT
    current_enrollment: int = 0
    syllabus: str | None = None
    is_active: bool = True

    def is_taught_by(self, teacher_id: UUID) -> bool:
        return teacher_id in (self.teacher_id, self.co_teacher_id)


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    class_id: UUID
    student_id: UUID  # Student profile id
    status: EnrollmentStatus
    enrolled_at: datetime
    updated_at: datetime
    agreed_fee_per_month: float | None = None
    discount_applied: float | None = None
    enrollment_notes: str | None = None
    withdrawn_at: datetime | None = None
    withdrawal_reason: str | None = None


@dataclass(frozen=True, slots=True)
class WaitlistEntry:
    id: UUID
    class_id: UUID
    student_id: UUID
    position: int
    status: WaitlistStatus
    created_at: datetime
    updated_at: datetime
    is_priority: bool = False
    priority_notes: str | None = None
    notes: str | None = None
    enrolled_at: datetime | None = None
