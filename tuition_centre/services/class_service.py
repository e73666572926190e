"""Classes: scheduled runs of a course, with enrolment and a waitlist.

A BRANCH_ADMIN sees the classes of their own branch and a TEACHER the
classes they teach or co-teach; to them every other class does not exist
(404).

``current_enrollment`` always equals the number of ACTIVE enrolments.
Every operation that changes one changes the other in the same unit of
work, so a crash in between cannot leave them apart.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from tuition_centre.core.errors import (
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from tuition_centre.core.metrics import CLASS_ENROLLMENTS
from tuition_centre.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from tuition_centre.models.course import Course
from tuition_centre.models.principal import Principal
from tuition_centre.models.profile import Student, Teacher
from tuition_centre.models.tuition_class import (
    ClassStatus,
    Enrollment,
    EnrollmentStatus,
    TuitionClass,
    WaitlistEntry,
    WaitlistStatus,
)
from tuition_centre.models.user import Role, User

logger = logging.getLogger(__name__)

CLASS_NOT_FOUND = "Class not found"
COURSE_NOT_FOUND = "Course not found"
BRANCH_NOT_FOUND = "Branch not found in this organization"
TEACHER_NOT_FOUND = "Teacher not found"
CO_TEACHER_NOT_FOUND = "Co-teacher not found"
STUDENT_NOT_FOUND = "Student not found"
ALREADY_ENROLLED = "Student is already enrolled in this class"
CLASS_FULL = "Class is full"
NOT_OPEN = "Class enrollment is not open"
FOREIGN_BRANCH = "Branch admins can only create classes in their own branch"
WAITLIST_NOTE = "Auto-enrolled from waitlist"

_CLOSED = frozenset({ClassStatus.FULL, ClassStatus.CANCELLED, ClassStatus.COMPLETED})
_FIXED = frozenset(
    {"id", "organization_id", "branch_id", "created_at", "updated_at", "current_enrollment"}
)
_UPDATABLE = frozenset(f.name for f in fields(TuitionClass)) - _FIXED
_CREATABLE = _UPDATABLE | {"branch_id"}


@dataclass(frozen=True, slots=True)
class RosterEntry:
    enrollment: Enrollment
    student: Student
    user: User


@dataclass(frozen=True, slots=True)
class WaitingStudent:
    entry: WaitlistEntry
    student: Student
    user: User


def _duplicate_code(code: str) -> ConflictError:
    return ConflictError(f"Class with code '{code}' already exists in this organization")


def _sequence_label(n: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA, like spreadsheet columns."""
    label = ""
    n += 1
    while n:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def _check_shape(cls: TuitionClass) -> None:
    if cls.min_capacity > cls.max_capacity:
        raise ValidationError("minCapacity cannot be greater than maxCapacity")
    if cls.max_capacity < cls.current_enrollment:
        raise ValidationError("maxCapacity cannot be below the current enrollment")
    if cls.end_date < cls.start_date:
        raise ValidationError("endDate cannot be before startDate")
    if not cls.schedule:
        raise ValidationError("schedule needs at least one slot")
    if any(slot.end_time <= slot.start_time for slot in cls.schedule):
        raise ValidationError("schedule slots must end after they start")
    if cls.co_teacher_id is not None and cls.co_teacher_id == cls.teacher_id:
        raise ValidationError("Co-teacher must be different from the teacher")


def _sync_fullness(cls: TuitionClass) -> TuitionClass:
    # Only the two enrolment states follow the headcount.
    at_capacity = cls.current_enrollment >= cls.max_capacity
    if cls.status == ClassStatus.OPEN_FOR_ENROLLMENT and at_capacity:
        return replace(cls, status=ClassStatus.FULL)
    if cls.status == ClassStatus.FULL and not at_capacity:
        return replace(cls, status=ClassStatus.OPEN_FOR_ENROLLMENT)
    return cls


class ClassService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create(self, principal: Principal, data: dict[str, Any]) -> TuitionClass:
        """Create a class from values keyed by TuitionClass field name.

        ``branch_id`` defaults to the teacher's branch and ``class_code`` to
        ``<COURSE>-<year>-<letter>``.
        """
        unknown = set(data) - _CREATABLE
        if unknown:
            raise ValueError(f"unknown class fields: {sorted(unknown)}")
        data = {**data, "schedule": tuple(data.get("schedule", ()))}
        org_id = principal.organization_id
        branch_id = data.pop("branch_id", None)
        code = data.pop("class_code", None)
        now = self._clock()

        try:
            async with self._uow_factory() as uow:
                course = await self._require_course(uow, principal, data["course_id"])
                teacher = await self._require_teacher(uow, principal, data["teacher_id"])
                if data.get("co_teacher_id") is not None:
                    await self._require_teacher(
                        uow, principal, data["co_teacher_id"], CO_TEACHER_NOT_FOUND
                    )

                if principal.role == Role.BRANCH_ADMIN:
                    if branch_id is not None and branch_id != principal.branch_id:
                        raise ForbiddenError(FOREIGN_BRANCH)
                    branch_id = principal.branch_id
                if branch_id is None:
                    teacher_user = await uow.users.get_by_id(org_id, teacher.user_id)
                    branch_id = teacher_user.branch_id if teacher_user else None
                if branch_id is None:
                    raise ValidationError("Branch is required")
                if await uow.branches.get_by_id(org_id, branch_id) is None:
                    raise NotFoundError(BRANCH_NOT_FOUND)

                if code is None:
                    year = data.get("academic_year") or now.year
                    code = await self._next_code(uow, org_id, f"{course.code}-{year}-")
                cls = TuitionClass(
                    id=uuid4(),
                    organization_id=org_id,
                    branch_id=branch_id,
                    class_code=code,
                    created_at=now,
                    updated_at=now,
                    **data,
                )
                _check_shape(cls)
                await uow.classes.add(cls)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(code or "") from None

        logger.info("Created class %s (%s) in branch %s", cls.id, cls.class_code, branch_id)
        return cls

    async def list(
        self,
        principal: Principal,
        *,
        branch_id: UUID | None = None,
        course_id: UUID | None = None,
        teacher_id: UUID | None = None,
        status: ClassStatus | None = None,
        term_name: str | None = None,
        academic_year: int | None = None,
    ) -> list[TuitionClass]:
        async with self._uow_factory() as uow:
            if principal.role == Role.BRANCH_ADMIN:
                if principal.branch_id is None:
                    return []
                if branch_id is not None and branch_id != principal.branch_id:
                    return []
                branch_id = principal.branch_id
            elif principal.role == Role.TEACHER:
                own = await uow.profiles.get_teacher_by_user(
                    principal.organization_id, principal.user_id
                )
                if own is None:
                    return []
                if teacher_id is not None and teacher_id != own.id:
                    return []
                teacher_id = own.id
            return await uow.classes.list(
                principal.organization_id,
                branch_id=branch_id,
                course_id=course_id,
                teacher_id=teacher_id,
                status=status,
                term_name=term_name,
                academic_year=academic_year,
            )

    async def get(self, principal: Principal, class_id: UUID) -> TuitionClass:
        async with self._uow_factory() as uow:
            return await self._require_visible(uow, principal, class_id)

    async def update(
        self, principal: Principal, class_id: UUID, changes: dict[str, Any]
    ) -> TuitionClass:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        if "schedule" in changes:
            changes = {**changes, "schedule": tuple(changes["schedule"])}
        try:
            async with self._uow_factory() as uow:
                cls = await self._require_visible(uow, principal, class_id)
                if "course_id" in changes:
                    await self._require_course(uow, principal, changes["course_id"])
                if "teacher_id" in changes:
                    await self._require_teacher(uow, principal, changes["teacher_id"])
                if changes.get("co_teacher_id") is not None:
                    await self._require_teacher(
                        uow, principal, changes["co_teacher_id"], CO_TEACHER_NOT_FOUND
                    )
                updated = replace(cls, **changes, updated_at=self._clock())
                _check_shape(updated)
                if "status" not in changes:
                    updated = _sync_fullness(updated)
                await uow.classes.update(updated)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(changes.get("class_code", "")) from None
        return updated

    async def cancel(self, principal: Principal, class_id: UUID) -> TuitionClass:
        """Soft delete: refused while any student is actively enrolled."""
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            active = await uow.classes.list_enrollments(cls.id, EnrollmentStatus.ACTIVE)
            if active:
                raise ConflictError(
                    f"Cannot delete class with {len(active)} active enrollments"
                )
            updated = replace(
                cls,
                is_active=False,
                status=ClassStatus.CANCELLED,
                updated_at=self._clock(),
            )
            await uow.classes.update(updated)
            await uow.commit()
        logger.info("Cancelled class %s (%s)", cls.id, cls.class_code)
        return updated

    async def enroll(
        self,
        principal: Principal,
        class_id: UUID,
        student_id: UUID,
        *,
        agreed_fee_per_month: float | None = None,
        discount_applied: float | None = None,
        enrollment_notes: str | None = None,
    ) -> Enrollment:
        now = self._clock()
        today = now.date()
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            await self._require_student(uow, principal, student_id)
            existing = await uow.classes.get_enrollment(cls.id, student_id)
            if existing is not None and existing.status == EnrollmentStatus.ACTIVE:
                raise ConflictError(ALREADY_ENROLLED)
            if cls.current_enrollment >= cls.max_capacity:
                raise ConflictError(CLASS_FULL)
            if not cls.is_active or cls.status in _CLOSED:
                raise ValidationError(NOT_OPEN)
            cutoff = cls.late_enrollment_cutoff_date
            if cutoff is not None and today > cutoff:
                raise ValidationError("Late enrollment cutoff has passed")
            if not cls.allow_late_enrollment and today > cls.start_date:
                raise ValidationError("Late enrollment is not allowed for this class")

            enrollment, _ = await self._admit(
                uow,
                cls,
                student_id,
                existing,
                now,
                agreed_fee_per_month=agreed_fee_per_month,
                discount_applied=discount_applied,
                enrollment_notes=enrollment_notes,
            )
            await uow.commit()

        CLASS_ENROLLMENTS.labels(source="manual").inc()
        logger.info("Enrolled student %s in class %s", student_id, class_id)
        return enrollment

    async def withdraw(
        self,
        principal: Principal,
        class_id: UUID,
        student_id: UUID,
        reason: str | None = None,
    ) -> Enrollment | None:
        """Withdraw a student; return the waitlist enrolment that took the seat, if any."""
        now = self._clock()
        promoted: Enrollment | None = None
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            enrollment = await uow.classes.get_enrollment(cls.id, student_id)
            if enrollment is None:
                raise NotFoundError("Enrollment not found")
            if enrollment.status != EnrollmentStatus.ACTIVE:
                raise ValidationError("Student is not actively enrolled in this class")
            if not cls.allow_mid_term_withdrawal and cls.status == ClassStatus.IN_PROGRESS:
                raise ValidationError("Mid-term withdrawal is not allowed for this class")

            await uow.classes.save_enrollment(
                replace(
                    enrollment,
                    status=EnrollmentStatus.WITHDRAWN,
                    withdrawn_at=now,
                    withdrawal_reason=reason,
                    updated_at=now,
                )
            )
            cls = _sync_fullness(
                replace(cls, current_enrollment=cls.current_enrollment - 1, updated_at=now)
            )
            await uow.classes.update(cls)

            if cls.auto_enroll_from_waitlist and cls.is_active and cls.status not in _CLOSED:
                waiting = await uow.classes.list_waitlist(cls.id)
                if waiting:
                    nxt = waiting[0].student_id
                    previous = await uow.classes.get_enrollment(cls.id, nxt)
                    promoted, cls = await self._admit(
                        uow, cls, nxt, previous, now, enrollment_notes=WAITLIST_NOTE
                    )
            await uow.commit()

        logger.info("Withdrew student %s from class %s", student_id, class_id)
        if promoted is not None:
            CLASS_ENROLLMENTS.labels(source="waitlist").inc()
            logger.info(
                "Promoted student %s from the waitlist of class %s",
                promoted.student_id,
                class_id,
            )
        return promoted

    async def add_to_waitlist(
        self,
        principal: Principal,
        class_id: UUID,
        student_id: UUID,
        *,
        is_priority: bool = False,
        priority_notes: str | None = None,
        notes: str | None = None,
    ) -> WaitlistEntry:
        now = self._clock()
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            if not cls.waitlist_enabled:
                raise ValidationError("Waitlist is not enabled for this class")
            await self._require_student(uow, principal, student_id)
            entry = await uow.classes.get_waitlist_entry(cls.id, student_id)
            if entry is not None and entry.status == WaitlistStatus.WAITING:
                raise ConflictError("Student is already on the waitlist")
            enrollment = await uow.classes.get_enrollment(cls.id, student_id)
            if enrollment is not None and enrollment.status == EnrollmentStatus.ACTIVE:
                raise ConflictError(ALREADY_ENROLLED)

            position = await uow.classes.max_waitlist_position(cls.id) + 1
            if entry is None:
                entry = WaitlistEntry(
                    id=uuid4(),
                    class_id=cls.id,
                    student_id=student_id,
                    position=position,
                    status=WaitlistStatus.WAITING,
                    created_at=now,
                    updated_at=now,
                    is_priority=is_priority,
                    priority_notes=priority_notes,
                    notes=notes,
                )
            else:
                entry = replace(
                    entry,
                    position=position,
                    status=WaitlistStatus.WAITING,
                    is_priority=is_priority,
                    priority_notes=priority_notes,
                    notes=notes,
                    enrolled_at=None,
                    updated_at=now,
                )
            await uow.classes.save_waitlist_entry(entry)
            await uow.commit()
        logger.info(
            "Student %s waitlisted for class %s at position %d", student_id, class_id, position
        )
        return entry

    async def roster(self, principal: Principal, class_id: UUID) -> list[RosterEntry]:
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            entries = []
            for e in await uow.classes.list_enrollments(cls.id, EnrollmentStatus.ACTIVE):
                student, user = await self._student_and_user(uow, principal, e.student_id)
                entries.append(RosterEntry(enrollment=e, student=student, user=user))
            return entries

    async def waitlist(self, principal: Principal, class_id: UUID) -> list[WaitingStudent]:
        async with self._uow_factory() as uow:
            cls = await self._require_visible(uow, principal, class_id)
            waiting = []
            for w in await uow.classes.list_waitlist(cls.id):
                student, user = await self._student_and_user(uow, principal, w.student_id)
                waiting.append(WaitingStudent(entry=w, student=student, user=user))
            return waiting

    async def _admit(
        self,
        uow: UnitOfWork,
        cls: TuitionClass,
        student_id: UUID,
        existing: Enrollment | None,
        now: datetime,
        **terms: Any,
    ) -> tuple[Enrollment, TuitionClass]:
        """Take a seat: write the enrolment, bump the headcount, close out the waitlist entry."""
        if existing is None:
            enrollment = Enrollment(
                id=uuid4(),
                class_id=cls.id,
                student_id=student_id,
                status=EnrollmentStatus.ACTIVE,
                enrolled_at=now,
                updated_at=now,
                **terms,
            )
        else:
            enrollment = replace(
                existing,
                status=EnrollmentStatus.ACTIVE,
                enrolled_at=now,
                updated_at=now,
                withdrawn_at=None,
                withdrawal_reason=None,
                **terms,
            )
        await uow.classes.save_enrollment(enrollment)

        entry = await uow.classes.get_waitlist_entry(cls.id, student_id)
        if entry is not None and entry.status == WaitlistStatus.WAITING:
            await uow.classes.save_waitlist_entry(
                replace(entry, status=WaitlistStatus.ENROLLED, enrolled_at=now, updated_at=now)
            )

        cls = _sync_fullness(
            replace(cls, current_enrollment=cls.current_enrollment + 1, updated_at=now)
        )
        await uow.classes.update(cls)
        return enrollment, cls

    @staticmethod
    async def _next_code(uow: UnitOfWork, org_id: UUID, prefix: str) -> str:
        n = await uow.classes.count_codes(org_id, prefix)
        while True:
            code = prefix + _sequence_label(n)
            if await uow.classes.get_by_code(org_id, code) is None:
                return code
            n += 1

    @staticmethod
    async def _require_visible(
        uow: UnitOfWork, principal: Principal, class_id: UUID
    ) -> TuitionClass:
        cls = await uow.classes.get_by_id(principal.organization_id, class_id)
        if cls is None:
            raise NotFoundError(CLASS_NOT_FOUND)
        if principal.role == Role.BRANCH_ADMIN and cls.branch_id != principal.branch_id:
            raise NotFoundError(CLASS_NOT_FOUND)
        if principal.role == Role.TEACHER:
            own = await uow.profiles.get_teacher_by_user(
                principal.organization_id, principal.user_id
            )
            if own is None or not cls.is_taught_by(own.id):
                raise NotFoundError(CLASS_NOT_FOUND)
        return cls

    @staticmethod
    async def _require_course(
        uow: UnitOfWork, principal: Principal, course_id: UUID
    ) -> Course:
        course = await uow.courses.get_by_id(principal.organization_id, course_id)
        if course is None:
            raise NotFoundError(COURSE_NOT_FOUND)
        return course

    @staticmethod
    async def _require_teacher(
        uow: UnitOfWork,
        principal: Principal,
        teacher_id: UUID,
        message: str = TEACHER_NOT_FOUND,
    ) -> Teacher:
        teacher = await uow.profiles.get_teacher(principal.organization_id, teacher_id)
        if teacher is None:
            raise NotFoundError(message)
        return teacher

    @staticmethod
    async def _require_student(
        uow: UnitOfWork, principal: Principal, student_id: UUID
    ) -> Student:
        student = await uow.profiles.get_student(principal.organization_id, student_id)
        if student is None:
            raise NotFoundError(STUDENT_NOT_FOUND)
        return student

    async def _student_and_user(
        self, uow: UnitOfWork, principal: Principal, student_id: UUID
    ) -> tuple[Student, User]:
        student = await self._require_student(uow, principal, student_id)
        user = await uow.users.get_by_id(principal.organization_id, student.user_id)
        if user is None:
            raise NotFoundError(STUDENT_NOT_FOUND)
        return student, user
