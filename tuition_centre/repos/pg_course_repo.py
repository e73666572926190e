"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique, unique_violations
from tuition_centre.db.tables import CourseBranchRow, CourseRow
from tuition_centre.models.course import (
    Course,
    CourseBranch,
    CourseCategory,
    CourseLevel,
    DifficultyLevel,
    SessionDuration,
)

_ASSIGNMENT_FIELDS = (
    "is_offered",
    "custom_fee_per_session",
    "custom_fee_per_month",
    "custom_fee_per_term",
    "custom_max_class_size",
    "custom_min_class_size",
    "branch_notes",
    "updated_at",
)


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(
            CourseRow.id == course_id, CourseRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_course(row) if row is not None else None

    async def get_by_code(self, org_id: UUID, code: str) -> Course | None:
        stmt = select(CourseRow).where(
            CourseRow.code == code, CourseRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_course(row) if row is not None else None

    async def list(
        self,
        org_id: UUID,
        *,
        category: CourseCategory | None = None,
        is_active: bool | None = None,
        is_template: bool | None = None,
        branch_id: UUID | None = None,
    ) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.organization_id == org_id)
        if category is not None:
            stmt = stmt.where(CourseRow.category == category.value)
        if is_active is not None:
            stmt = stmt.where(CourseRow.is_active == is_active)
        if is_template is not None:
            stmt = stmt.where(CourseRow.is_template == is_template)
        if branch_id is not None:
            stmt = stmt.join(
                CourseBranchRow, CourseBranchRow.course_id == CourseRow.id
            ).where(
                CourseBranchRow.branch_id == branch_id,
                CourseBranchRow.is_offered.is_(True),
            )
        stmt = stmt.order_by(CourseRow.created_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add(self, course: Course) -> None:
        self._session.add(CourseRow(**_course_values(course), id=course.id))
        await flush_unique(self._session)

    async def update(self, course: Course) -> None:
        values = _course_values(course)
        del values["organization_id"], values["created_at"]
        stmt = update(CourseRow).where(CourseRow.id == course.id).values(**values)
        with unique_violations():
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")

    async def delete(self, course_id: UUID) -> None:
        await self._session.execute(delete(CourseRow).where(CourseRow.id == course_id))

    async def get_assignment(
        self, course_id: UUID, branch_id: UUID
    ) -> CourseBranch | None:
        row = await self._session.get(CourseBranchRow, (course_id, branch_id))
        return _row_to_assignment(row) if row is not None else None

    async def save_assignment(self, assignment: CourseBranch) -> None:
        values = asdict(assignment)
        stmt = insert(CourseBranchRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CourseBranchRow.course_id, CourseBranchRow.branch_id],
            set_={name: stmt.excluded[name] for name in _ASSIGNMENT_FIELDS},
        )
        await self._session.execute(stmt)

    async def remove_assignment(self, course_id: UUID, branch_id: UUID) -> bool:
        stmt = delete(CourseBranchRow).where(
            CourseBranchRow.course_id == course_id,
            CourseBranchRow.branch_id == branch_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_assignments(self, course_id: UUID) -> list[CourseBranch]:
        stmt = (
            select(CourseBranchRow)
            .where(CourseBranchRow.course_id == course_id)
            .order_by(CourseBranchRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]


def _course_values(course: Course) -> dict:
    return {
        "organization_id": course.organization_id,
        "name": course.name,
        "code": course.code,
        "category": course.category.value,
        "difficulty_level": course.difficulty_level.value,
        "grade_levels": [level.value for level in course.grade_levels],
        "session_duration": course.session_duration.value,
        "max_class_size": course.max_class_size,
        "min_class_size": course.min_class_size,
        "description": course.description,
        "prerequisites": course.prerequisites,
        "total_weeks": course.total_weeks,
        "is_ongoing": course.is_ongoing,
        "base_fee_per_session": course.base_fee_per_session,
        "base_fee_per_month": course.base_fee_per_month,
        "base_fee_per_term": course.base_fee_per_term,
        "material_fee": course.material_fee,
        "registration_fee": course.registration_fee,
        "is_active": course.is_active,
        "enrollment_open": course.enrollment_open,
        "is_template": course.is_template,
        "created_at": course.created_at,
        "updated_at": course.updated_at,
    }


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        code=row.code,
        category=CourseCategory(row.category),
        difficulty_level=DifficultyLevel(row.difficulty_level),
        grade_levels=tuple(CourseLevel(g) for g in row.grade_levels or ()),
        session_duration=SessionDuration(row.session_duration),
        max_class_size=row.max_class_size,
        min_class_size=row.min_class_size,
        created_at=row.created_at,
        updated_at=row.updated_at,
        description=row.description,
        prerequisites=row.prerequisites,
        total_weeks=row.total_weeks,
        is_ongoing=row.is_ongoing,
        base_fee_per_session=row.base_fee_per_session,
        base_fee_per_month=row.base_fee_per_month,
        base_fee_per_term=row.base_fee_per_term,
        material_fee=row.material_fee,
        registration_fee=row.registration_fee,
        is_active=row.is_active,
        enrollment_open=row.enrollment_open,
        is_template=row.is_template,
    )


def _row_to_assignment(row: CourseBranchRow) -> CourseBranch:
    return CourseBranch(
        course_id=row.course_id,
        branch_id=row.branch_id,
        is_offered=row.is_offered,
        created_at=row.created_at,
        updated_at=row.updated_at,
        custom_fee_per_session=row.custom_fee_per_session,
        custom_fee_per_month=row.custom_fee_per_month,
        custom_fee_per_term=row.custom_fee_per_term,
        custom_max_class_size=row.custom_max_class_size,
        custom_min_class_size=row.custom_min_class_size,
        branch_notes=row.branch_notes,
    )
