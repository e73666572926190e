"""PostgreSQL implementation of ProfileRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique
from tuition_centre.db.tables import ParentRow, ParentStudentRow, StudentRow, TeacherRow
from tuition_centre.models.profile import (
    ContactMethod,
    Gender,
    Parent,
    ParentStudent,
    Student,
    Teacher,
)


class PgProfileRepo:
    """Satisfies the ProfileRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_teacher(self, org_id: UUID, teacher_id: UUID) -> Teacher | None:
        stmt = select(TeacherRow).where(
            TeacherRow.id == teacher_id, TeacherRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_teacher(row) if row is not None else None

    async def get_teacher_by_user(self, org_id: UUID, user_id: UUID) -> Teacher | None:
        stmt = select(TeacherRow).where(
            TeacherRow.user_id == user_id, TeacherRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_teacher(row) if row is not None else None

    async def count_teacher_codes(self, org_id: UUID, prefix: str) -> int:
        stmt = select(func.count()).select_from(TeacherRow).where(
            TeacherRow.organization_id == org_id,
            TeacherRow.teacher_code.startswith(prefix, autoescape=True),
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def add_teacher(self, teacher: Teacher) -> None:
        self._session.add(
            TeacherRow(
                id=teacher.id,
                organization_id=teacher.organization_id,
                user_id=teacher.user_id,
                teacher_code=teacher.teacher_code,
                employee_id=teacher.employee_id,
                employment_start_date=teacher.employment_start_date,
                date_of_birth=teacher.date_of_birth,
                gender=teacher.gender.value if teacher.gender else None,
                emergency_contact_name=teacher.emergency_contact_name,
                emergency_contact_phone=teacher.emergency_contact_phone,
                created_at=teacher.created_at,
            )
        )
        await flush_unique(self._session)

    async def list_teachers(self, org_id: UUID) -> list[Teacher]:
        stmt = (
            select(TeacherRow)
            .where(TeacherRow.organization_id == org_id)
            .order_by(TeacherRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_teacher(r) for r in rows]

    async def get_student(self, org_id: UUID, student_id: UUID) -> Student | None:
        stmt = select(StudentRow).where(
            StudentRow.id == student_id, StudentRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_student(row) if row is not None else None

    async def count_student_codes(self, org_id: UUID, prefix: str) -> int:
        stmt = select(func.count()).select_from(StudentRow).where(
            StudentRow.organization_id == org_id,
            StudentRow.student_code.startswith(prefix, autoescape=True),
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def add_student(self, student: Student) -> None:
        self._session.add(
            StudentRow(
                id=student.id,
                organization_id=student.organization_id,
                user_id=student.user_id,
                student_code=student.student_code,
                date_of_birth=student.date_of_birth,
                gender=student.gender.value,
                grade=student.grade,
                school_name=student.school_name,
                medical_info=student.medical_info,
                special_needs=student.special_needs,
                previous_tuition_centre=student.previous_tuition_centre,
                referral_source=student.referral_source,
                created_at=student.created_at,
            )
        )
        await flush_unique(self._session)

    async def list_students(self, org_id: UUID) -> list[Student]:
        stmt = (
            select(StudentRow)
            .where(StudentRow.organization_id == org_id)
            .order_by(StudentRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_student(r) for r in rows]

    async def get_parent_by_user(self, org_id: UUID, user_id: UUID) -> Parent | None:
        stmt = select(ParentRow).where(
            ParentRow.user_id == user_id, ParentRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Parent(
            id=row.id,
            organization_id=row.organization_id,
            user_id=row.user_id,
            created_at=row.created_at,
            occupation=row.occupation,
            office_phone=row.office_phone,
            preferred_contact_method=(
                ContactMethod(row.preferred_contact_method)
                if row.preferred_contact_method
                else None
            ),
        )

    async def add_parent(self, parent: Parent) -> None:
        self._session.add(
            ParentRow(
                id=parent.id,
                organization_id=parent.organization_id,
                user_id=parent.user_id,
                occupation=parent.occupation,
                office_phone=parent.office_phone,
                preferred_contact_method=(
                    parent.preferred_contact_method.value
                    if parent.preferred_contact_method
                    else None
                ),
                created_at=parent.created_at,
            )
        )
        await flush_unique(self._session)

    async def add_parent_link(self, link: ParentStudent) -> None:
        self._session.add(
            ParentStudentRow(
                parent_id=link.parent_id,
                student_id=link.student_id,
                relationship=link.relationship,
                is_primary=link.is_primary,
                created_at=link.created_at,
            )
        )
        await flush_unique(self._session)


def _row_to_teacher(row: TeacherRow) -> Teacher:
    return Teacher(
        id=row.id,
        organization_id=row.organization_id,
        user_id=row.user_id,
        teacher_code=row.teacher_code,
        created_at=row.created_at,
        employee_id=row.employee_id,
        employment_start_date=row.employment_start_date,
        date_of_birth=row.date_of_birth,
        gender=Gender(row.gender) if row.gender else None,
        emergency_contact_name=row.emergency_contact_name,
        emergency_contact_phone=row.emergency_contact_phone,
    )


def _row_to_student(row: StudentRow) -> Student:
    return Student(
        id=row.id,
        organization_id=row.organization_id,
        user_id=row.user_id,
        student_code=row.student_code,
        date_of_birth=row.date_of_birth,
        gender=Gender(row.gender),
        grade=row.grade,
        school_name=row.school_name,
        created_at=row.created_at,
        medical_info=row.medical_info,
        special_needs=row.special_needs,
        previous_tuition_centre=row.previous_tuition_centre,
        referral_source=row.referral_source,
    )
