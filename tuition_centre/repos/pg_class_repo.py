"""PostgreSQL implementation of ClassRepo."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique, unique_violations
from tuition_centre.db.tables import ClassRow, EnrollmentRow, WaitlistRow
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

_ENROLLMENT_FIELDS = (
    "status",
    "agreed_fee_per_month",
    "discount_applied",
    "enrollment_notes",
    "enrolled_at",
    "withdrawn_at",
    "withdrawal_reason",
    "updated_at",
)
_WAITLIST_FIELDS = (
    "position",
    "status",
    "is_priority",
    "priority_notes",
    "notes",
    "enrolled_at",
    "updated_at",
)


class PgClassRepo:
    """Satisfies the ClassRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID, class_id: UUID) -> TuitionClass | None:
        stmt = select(ClassRow).where(
            ClassRow.id == class_id, ClassRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_class(row) if row is not None else None

    async def get_by_code(self, org_id: UUID, code: str) -> TuitionClass | None:
        stmt = select(ClassRow).where(
            ClassRow.class_code == code, ClassRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_class(row) if row is not None else None

    async def count_codes(self, org_id: UUID, prefix: str) -> int:
        stmt = (
            select(func.count())
            .select_from(ClassRow)
            .where(
                ClassRow.organization_id == org_id,
                ClassRow.class_code.startswith(prefix, autoescape=True),
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list(
        self,
        org_id: UUID,
        *,
        branch_id: UUID | None = None,
        course_id: UUID | None = None,
        teacher_id: UUID | None = None,
        status: ClassStatus | None = None,
        term_name: str | None = None,
        academic_year: int | None = None,
    ) -> list[TuitionClass]:
        stmt = select(ClassRow).where(ClassRow.organization_id == org_id)
        if branch_id is not None:
            stmt = stmt.where(ClassRow.branch_id == branch_id)
        if course_id is not None:
            stmt = stmt.where(ClassRow.course_id == course_id)
        if teacher_id is not None:
            stmt = stmt.where(
                or_(ClassRow.teacher_id == teacher_id, ClassRow.co_teacher_id == teacher_id)
            )
        if status is not None:
            stmt = stmt.where(ClassRow.status == status.value)
        if term_name is not None:
            stmt = stmt.where(ClassRow.term_name == term_name)
        if academic_year is not None:
            stmt = stmt.where(ClassRow.academic_year == academic_year)
        stmt = stmt.order_by(ClassRow.start_date.desc(), ClassRow.created_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_class(r) for r in rows]

    async def add(self, cls: TuitionClass) -> None:
        self._session.add(ClassRow(**_class_values(cls), id=cls.id))
        await flush_unique(self._session)

    async def update(self, cls: TuitionClass) -> None:
        values = _class_values(cls)
        del values["organization_id"], values["created_at"]
        stmt = update(ClassRow).where(ClassRow.id == cls.id).values(**values)
        with unique_violations():
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("class not found")

    async def exists_for_branch(self, branch_id: UUID) -> bool:
        stmt = select(ClassRow.id).where(ClassRow.branch_id == branch_id).limit(1)
        return (await self._session.execute(stmt)).first() is not None

    async def exists_for_course(self, course_id: UUID) -> bool:
        stmt = select(ClassRow.id).where(ClassRow.course_id == course_id).limit(1)
        return (await self._session.execute(stmt)).first() is not None

    async def get_enrollment(self, class_id: UUID, student_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.class_id == class_id, EnrollmentRow.student_id == student_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def save_enrollment(self, enrollment: Enrollment) -> None:
        stmt = insert(EnrollmentRow).values(
            id=enrollment.id,
            class_id=enrollment.class_id,
            student_id=enrollment.student_id,
            status=enrollment.status.value,
            agreed_fee_per_month=enrollment.agreed_fee_per_month,
            discount_applied=enrollment.discount_applied,
            enrollment_notes=enrollment.enrollment_notes,
            enrolled_at=enrollment.enrolled_at,
            withdrawn_at=enrollment.withdrawn_at,
            withdrawal_reason=enrollment.withdrawal_reason,
            updated_at=enrollment.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[EnrollmentRow.class_id, EnrollmentRow.student_id],
            set_={name: stmt.excluded[name] for name in _ENROLLMENT_FIELDS},
        )
        await self._session.execute(stmt)

    async def list_enrollments(
        self, class_id: UUID, status: EnrollmentStatus | None = None
    ) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.class_id == class_id)
        if status is not None:
            stmt = stmt.where(EnrollmentRow.status == status.value)
        stmt = stmt.order_by(EnrollmentRow.enrolled_at)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def get_waitlist_entry(
        self, class_id: UUID, student_id: UUID
    ) -> WaitlistEntry | None:
        stmt = select(WaitlistRow).where(
            WaitlistRow.class_id == class_id, WaitlistRow.student_id == student_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_waitlist(row) if row is not None else None

    async def save_waitlist_entry(self, entry: WaitlistEntry) -> None:
        stmt = insert(WaitlistRow).values(
            id=entry.id,
            class_id=entry.class_id,
            student_id=entry.student_id,
            position=entry.position,
            status=entry.status.value,
            is_priority=entry.is_priority,
            priority_notes=entry.priority_notes,
            notes=entry.notes,
            enrolled_at=entry.enrolled_at,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[WaitlistRow.class_id, WaitlistRow.student_id],
            set_={name: stmt.excluded[name] for name in _WAITLIST_FIELDS},
        )
        await self._session.execute(stmt)

    async def list_waitlist(
        self, class_id: UUID, status: WaitlistStatus = WaitlistStatus.WAITING
    ) -> list[WaitlistEntry]:
        stmt = (
            select(WaitlistRow)
            .where(WaitlistRow.class_id == class_id, WaitlistRow.status == status.value)
            .order_by(WaitlistRow.is_priority.desc(), WaitlistRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_waitlist(r) for r in rows]

    async def max_waitlist_position(self, class_id: UUID) -> int:
        stmt = select(func.coalesce(func.max(WaitlistRow.position), 0)).where(
            WaitlistRow.class_id == class_id
        )
        return (await self._session.execute(stmt)).scalar_one()


def _class_values(cls: TuitionClass) -> dict:
    return {
        "organization_id": cls.organization_id,
        "branch_id": cls.branch_id,
        "course_id": cls.course_id,
        "teacher_id": cls.teacher_id,
        "co_teacher_id": cls.co_teacher_id,
        "name": cls.name,
        "class_code": cls.class_code,
        "class_type": cls.class_type.value,
        "class_level": cls.class_level,
        "term_name": cls.term_name,
        "academic_year": cls.academic_year,
        "start_date": cls.start_date,
        "end_date": cls.end_date,
        "total_weeks": cls.total_weeks,
        "schedule": [
            {
                "day": slot.day.value,
                "startTime": slot.start_time.isoformat(timespec="minutes"),
                "endTime": slot.end_time.isoformat(timespec="minutes"),
            }
            for slot in cls.schedule
        ],
        "schedule_notes": cls.schedule_notes,
        "max_capacity": cls.max_capacity,
        "min_capacity": cls.min_capacity,
        "fee_per_session": cls.fee_per_session,
        "fee_per_month": cls.fee_per_month,
        "fee_per_term": cls.fee_per_term,
        "material_fee": cls.material_fee,
        "allow_late_enrollment": cls.allow_late_enrollment,
        "late_enrollment_cutoff_date": cls.late_enrollment_cutoff_date,
        "allow_mid_term_withdrawal": cls.allow_mid_term_withdrawal,
        "waitlist_enabled": cls.waitlist_enabled,
        "auto_enroll_from_waitlist": cls.auto_enroll_from_waitlist,
        "status": cls.status.value,
        "current_enrollment": cls.current_enrollment,
        "syllabus": cls.syllabus,
        "is_active": cls.is_active,
        "created_at": cls.created_at,
        "updated_at": cls.updated_at,
    }


def _row_to_class(row: ClassRow) -> TuitionClass:
    return TuitionClass(
        id=row.id,
        organization_id=row.organization_id,
        branch_id=row.branch_id,
        course_id=row.course_id,
        teacher_id=row.teacher_id,
        name=row.name,
        class_code=row.class_code,
        class_type=ClassType(row.class_type),
        start_date=row.start_date,
        end_date=row.end_date,
        schedule=tuple(
            ScheduleSlot(
                day=Weekday(slot["day"]),
                start_time=time.fromisoformat(slot["startTime"]),
                end_time=time.fromisoformat(slot["endTime"]),
            )
            for slot in row.schedule or ()
        ),
        max_capacity=row.max_capacity,
        min_capacity=row.min_capacity,
        created_at=row.created_at,
        updated_at=row.updated_at,
        co_teacher_id=row.co_teacher_id,
        class_level=row.class_level,
        term_name=row.term_name,
        academic_year=row.academic_year,
        total_weeks=row.total_weeks,
        schedule_notes=row.schedule_notes,
        fee_per_session=row.fee_per_session,
        fee_per_month=row.fee_per_month,
        fee_per_term=row.fee_per_term,
        material_fee=row.material_fee,
        allow_late_enrollment=row.allow_late_enrollment,
        late_enrollment_cutoff_date=row.late_enrollment_cutoff_date,
        allow_mid_term_withdrawal=row.allow_mid_term_withdrawal,
        waitlist_enabled=row.waitlist_enabled,
        auto_enroll_from_waitlist=row.auto_enroll_from_waitlist,
        status=ClassStatus(row.status),
        current_enrollment=row.current_enrollment,
        syllabus=row.syllabus,
        is_active=row.is_active,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        class_id=row.class_id,
        student_id=row.student_id,
        status=EnrollmentStatus(row.status),
        enrolled_at=row.enrolled_at,
        updated_at=row.updated_at,
        agreed_fee_per_month=row.agreed_fee_per_month,
        discount_applied=row.discount_applied,
        enrollment_notes=row.enrollment_notes,
        withdrawn_at=row.withdrawn_at,
        withdrawal_reason=row.withdrawal_reason,
    )


def _row_to_waitlist(row: WaitlistRow) -> WaitlistEntry:
    return WaitlistEntry(
        id=row.id,
        class_id=row.class_id,
        student_id=row.student_id,
        position=row.position,
        status=WaitlistStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_priority=row.is_priority,
        priority_notes=row.priority_notes,
        notes=row.notes,
        enrolled_at=row.enrolled_at,
    )
