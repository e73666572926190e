"""Classes, their enrolment and their waitlist (/classes).

Admins run classes; a TEACHER can read the classes they teach along with
the roster and the waitlist.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from tuition_centre.api.dependencies import AdminUser, ContainerDep, require_roles
from tuition_centre.api.schemas import StudentProfileOut, UserOut, to_changes
from tuition_centre.models.principal import Principal
from tuition_centre.models.tuition_class import (
    ClassStatus,
    ClassType,
    Enrollment,
    EnrollmentStatus,
    ScheduleSlot,
    TuitionClass,
    WaitlistEntry,
    WaitlistStatus,
    Weekday,
)
from tuition_centre.models.user import Role
from tuition_centre.services.class_service import RosterEntry, WaitingStudent

router = APIRouter(prefix="/classes", tags=["classes"])

StaffUser = Annotated[
    Principal,
    Depends(require_roles(Role.SUPER_ADMIN, Role.BRANCH_ADMIN, Role.TEACHER)),
]

_REQUIRED = (
    "course_id",
    "teacher_id",
    "name",
    "class_code",
    "class_type",
    "start_date",
    "end_date",
    "schedule",
    "max_capacity",
    "min_capacity",
    "allow_late_enrollment",
    "allow_mid_term_withdrawal",
    "waitlist_enabled",
    "auto_enroll_from_waitlist",
    "status",
    "is_active",
)

Fee = Annotated[float, Field(ge=0)]
Capacity = Annotated[int, Field(ge=1, le=500)]


class ScheduleSlotIn(BaseModel):
    day: Weekday
    startTime: time
    endTime: time


class ScheduleSlotOut(BaseModel):
    day: Weekday
    startTime: time
    endTime: time


def _slots(changes: dict[str, Any]) -> dict[str, Any]:
    """Turn the dumped schedule back into ScheduleSlot values."""
    if changes.get("schedule") is not None:
        changes["schedule"] = [
            ScheduleSlot(day=s["day"], start_time=s["startTime"], end_time=s["endTime"])
            for s in changes["schedule"]
        ]
    return changes


class ClassIn(BaseModel):
    courseId: UUID
    teacherId: UUID
    branchId: UUID | None = None
    coTeacherId: UUID | None = None
    name: str = Field(min_length=1, max_length=255)
    classCode: str | None = Field(default=None, min_length=1, max_length=100)
    classType: ClassType = ClassType.REGULAR_GROUP
    classLevel: str | None = Field(default=None, max_length=64)
    termName: str | None = Field(default=None, max_length=64)
    academicYear: int | None = Field(default=None, ge=2000, le=2100)
    startDate: date
    endDate: date
    totalWeeks: int | None = Field(default=None, ge=1)
    schedule: list[ScheduleSlotIn] = Field(min_length=1)
    scheduleNotes: str | None = None
    maxCapacity: Capacity = 20
    minCapacity: Capacity = 1
    feePerSession: Fee | None = None
    feePerMonth: Fee | None = None
    feePerTerm: Fee | None = None
    materialFee: Fee | None = None
    allowLateEnrollment: bool = True
    lateEnrollmentCutoffDate: date | None = None
    allowMidTermWithdrawal: bool = True
    waitlistEnabled: bool = True
    autoEnrollFromWaitlist: bool = False
    status: ClassStatus = ClassStatus.DRAFT
    syllabus: str | None = None


class ClassPatch(BaseModel):
    courseId: UUID | None = None
    teacherId: UUID | None = None
    coTeacherId: UUID | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    classCode: str | None = Field(default=None, min_length=1, max_length=100)
    classType: ClassType | None = None
    classLevel: str | None = Field(default=None, max_length=64)
    termName: str | None = Field(default=None, max_length=64)
    academicYear: int | None = Field(default=None, ge=2000, le=2100)
    startDate: date | None = None
    endDate: date | None = None
    totalWeeks: int | None = Field(default=None, ge=1)
    schedule: list[ScheduleSlotIn] | None = Field(default=None, min_length=1)
    scheduleNotes: str | None = None
    maxCapacity: Capacity | None = None
    minCapacity: Capacity | None = None
    feePerSession: Fee | None = None
    feePerMonth: Fee | None = None
    feePerTerm: Fee | None = None
    materialFee: Fee | None = None
    allowLateEnrollment: bool | None = None
    lateEnrollmentCutoffDate: date | None = None
    allowMidTermWithdrawal: bool | None = None
    waitlistEnabled: bool | None = None
    autoEnrollFromWaitlist: bool | None = None
    status: ClassStatus | None = None
    syllabus: str | None = None
    isActive: bool | None = None


class ClassOut(BaseModel):
    id: str
    organizationId: str
    branchId: str
    courseId: str
    teacherId: str
    coTeacherId: str | None
    name: str
    classCode: str
    classType: ClassType
    classLevel: str | None
    termName: str | None
    academicYear: int | None
    startDate: date
    endDate: date
    totalWeeks: int | None
    schedule: list[ScheduleSlotOut]
    scheduleNotes: str | None
    maxCapacity: int
    minCapacity: int
    currentEnrollment: int
    feePerSession: float | None
    feePerMonth: float | None
    feePerTerm: float | None
    materialFee: float | None
    allowLateEnrollment: bool
    lateEnrollmentCutoffDate: date | None
    allowMidTermWithdrawal: bool
    waitlistEnabled: bool
    autoEnrollFromWaitlist: bool
    status: ClassStatus
    syllabus: str | None
    isActive: bool
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(c: TuitionClass) -> ClassOut:
        return ClassOut(
            id=str(c.id),
            organizationId=str(c.organization_id),
            branchId=str(c.branch_id),
            courseId=str(c.course_id),
            teacherId=str(c.teacher_id),
            coTeacherId=str(c.co_teacher_id) if c.co_teacher_id else None,
            name=c.name,
            classCode=c.class_code,
            classType=c.class_type,
            classLevel=c.class_level,
            termName=c.term_name,
            academicYear=c.academic_year,
            startDate=c.start_date,
            endDate=c.end_date,
            totalWeeks=c.total_weeks,
            schedule=[
                ScheduleSlotOut(day=s.day, startTime=s.start_time, endTime=s.end_time)
                for s in c.schedule
            ],
            scheduleNotes=c.schedule_notes,
            maxCapacity=c.max_capacity,
            minCapacity=c.min_capacity,
            currentEnrollment=c.current_enrollment,
            feePerSession=c.fee_per_session,
            feePerMonth=c.fee_per_month,
            feePerTerm=c.fee_per_term,
            materialFee=c.material_fee,
            allowLateEnrollment=c.allow_late_enrollment,
            lateEnrollmentCutoffDate=c.late_enrollment_cutoff_date,
            allowMidTermWithdrawal=c.allow_mid_term_withdrawal,
            waitlistEnabled=c.waitlist_enabled,
            autoEnrollFromWaitlist=c.auto_enroll_from_waitlist,
            status=c.status,
            syllabus=c.syllabus,
            isActive=c.is_active,
            createdAt=c.created_at,
            updatedAt=c.updated_at,
        )


class EnrollIn(BaseModel):
    studentId: UUID
    agreedFeePerMonth: Fee | None = None
    discountApplied: Fee | None = None
    enrollmentNotes: str | None = None


class WithdrawIn(BaseModel):
    reason: str | None = None


class WaitlistIn(BaseModel):
    studentId: UUID
    isPriority: bool = False
    priorityNotes: str | None = None
    notes: str | None = None


class EnrollmentOut(BaseModel):
    id: str
    classId: str
    studentId: str
    status: EnrollmentStatus
    enrolledAt: datetime
    agreedFeePerMonth: float | None
    discountApplied: float | None
    enrollmentNotes: str | None
    withdrawnAt: datetime | None
    withdrawalReason: str | None

    @staticmethod
    def from_model(e: Enrollment) -> EnrollmentOut:
        return EnrollmentOut(
            id=str(e.id),
            classId=str(e.class_id),
            studentId=str(e.student_id),
            status=e.status,
            enrolledAt=e.enrolled_at,
            agreedFeePerMonth=e.agreed_fee_per_month,
            discountApplied=e.discount_applied,
            enrollmentNotes=e.enrollment_notes,
            withdrawnAt=e.withdrawn_at,
            withdrawalReason=e.withdrawal_reason,
        )


class WithdrawOut(BaseModel):
    message: str
    promotedStudentId: str | None


class WaitlistEntryOut(BaseModel):
    id: str
    classId: str
    studentId: str
    position: int
    status: WaitlistStatus
    isPriority: bool
    priorityNotes: str | None
    notes: str | None
    createdAt: datetime
    enrolledAt: datetime | None

    @staticmethod
    def from_model(w: WaitlistEntry) -> WaitlistEntryOut:
        return WaitlistEntryOut(
            id=str(w.id),
            classId=str(w.class_id),
            studentId=str(w.student_id),
            position=w.position,
            status=w.status,
            isPriority=w.is_priority,
            priorityNotes=w.priority_notes,
            notes=w.notes,
            createdAt=w.created_at,
            enrolledAt=w.enrolled_at,
        )


class RosterOut(BaseModel):
    enrollment: EnrollmentOut
    student: StudentProfileOut
    user: UserOut

    @staticmethod
    def from_model(r: RosterEntry) -> RosterOut:
        return RosterOut(
            enrollment=EnrollmentOut.from_model(r.enrollment),
            student=StudentProfileOut.from_model(r.student),
            user=UserOut.from_model(r.user),
        )


class WaitingOut(BaseModel):
    entry: WaitlistEntryOut
    student: StudentProfileOut
    user: UserOut

    @staticmethod
    def from_model(w: WaitingStudent) -> WaitingOut:
        return WaitingOut(
            entry=WaitlistEntryOut.from_model(w.entry),
            student=StudentProfileOut.from_model(w.student),
            user=UserOut.from_model(w.user),
        )


@router.post("", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassIn, principal: AdminUser, container: ContainerDep
) -> ClassOut:
    data = _slots(to_changes(payload, only_sent=False))
    cls = await container.classes.create(principal, data)
    return ClassOut.from_model(cls)


@router.get("", response_model=list[ClassOut])
async def list_classes(
    principal: StaffUser,
    container: ContainerDep,
    branch_id: Annotated[UUID | None, Query(alias="branchId")] = None,
    course_id: Annotated[UUID | None, Query(alias="courseId")] = None,
    teacher_id: Annotated[UUID | None, Query(alias="teacherId")] = None,
    class_status: Annotated[ClassStatus | None, Query(alias="status")] = None,
    term_name: Annotated[str | None, Query(alias="termName")] = None,
    academic_year: Annotated[int | None, Query(alias="academicYear")] = None,
) -> list[ClassOut]:
    classes = await container.classes.list(
        principal,
        branch_id=branch_id,
        course_id=course_id,
        teacher_id=teacher_id,
        status=class_status,
        term_name=term_name,
        academic_year=academic_year,
    )
    return [ClassOut.from_model(c) for c in classes]


@router.get("/{class_id}", response_model=ClassOut)
async def get_class(
    class_id: UUID, principal: StaffUser, container: ContainerDep
) -> ClassOut:
    return ClassOut.from_model(await container.classes.get(principal, class_id))


@router.patch("/{class_id}", response_model=ClassOut)
async def update_class(
    class_id: UUID,
    payload: ClassPatch,
    principal: AdminUser,
    container: ContainerDep,
) -> ClassOut:
    changes = _slots(to_changes(payload, required=_REQUIRED))
    cls = await container.classes.update(principal, class_id, changes)
    return ClassOut.from_model(cls)


@router.delete("/{class_id}", response_model=ClassOut)
async def cancel_class(
    class_id: UUID, principal: AdminUser, container: ContainerDep
) -> ClassOut:
    return ClassOut.from_model(await container.classes.cancel(principal, class_id))


@router.post(
    "/{class_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    class_id: UUID,
    payload: EnrollIn,
    principal: AdminUser,
    container: ContainerDep,
) -> EnrollmentOut:
    enrollment = await container.classes.enroll(
        principal,
        class_id,
        payload.studentId,
        agreed_fee_per_month=payload.agreedFeePerMonth,
        discount_applied=payload.discountApplied,
        enrollment_notes=payload.enrollmentNotes,
    )
    return EnrollmentOut.from_model(enrollment)


@router.post("/{class_id}/students/{student_id}/withdraw", response_model=WithdrawOut)
async def withdraw_student(
    class_id: UUID,
    student_id: UUID,
    principal: AdminUser,
    container: ContainerDep,
    payload: WithdrawIn | None = None,
) -> WithdrawOut:
    reason = payload.reason if payload is not None else None
    promoted = await container.classes.withdraw(principal, class_id, student_id, reason)
    return WithdrawOut(
        message="Student withdrawn successfully",
        promotedStudentId=str(promoted.student_id) if promoted else None,
    )


@router.post(
    "/{class_id}/waitlist",
    response_model=WaitlistEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_waitlist(
    class_id: UUID,
    payload: WaitlistIn,
    principal: AdminUser,
    container: ContainerDep,
) -> WaitlistEntryOut:
    entry = await container.classes.add_to_waitlist(
        principal,
        class_id,
        payload.studentId,
        is_priority=payload.isPriority,
        priority_notes=payload.priorityNotes,
        notes=payload.notes,
    )
    return WaitlistEntryOut.from_model(entry)


@router.get("/{class_id}/roster", response_model=list[RosterOut])
async def class_roster(
    class_id: UUID, principal: StaffUser, container: ContainerDep
) -> list[RosterOut]:
    roster = await container.classes.roster(principal, class_id)
    return [RosterOut.from_model(r) for r in roster]


@router.get("/{class_id}/waitlist", response_model=list[WaitingOut])
async def class_waitlist(
    class_id: UUID, principal: StaffUser, container: ContainerDep
) -> list[WaitingOut]:
    waiting = await container.classes.waitlist(principal, class_id)
    return [WaitingOut.from_model(w) for w in waiting]
