"""Course catalogue and per-branch course offerings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import fields, replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from tuition_centre.core.errors import (
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from tuition_centre.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from tuition_centre.models.course import Course, CourseBranch, CourseCategory
from tuition_centre.models.principal import Principal

logger = logging.getLogger(__name__)

COURSE_NOT_FOUND = "Course not found"
BRANCH_NOT_FOUND = "Branch not found in this organization"

_FIXED = frozenset({"id", "organization_id", "created_at", "updated_at"})
_UPDATABLE = frozenset(f.name for f in fields(Course)) - _FIXED
_ASSIGNMENT_FIELDS = frozenset(
    {
        "is_offered",
        "custom_fee_per_session",
        "custom_fee_per_month",
        "custom_fee_per_term",
        "custom_max_class_size",
        "custom_min_class_size",
        "branch_notes",
    }
)


def _duplicate_code(code: str) -> ConflictError:
    return ConflictError(f"Course with code '{code}' already exists in this organization")


def _check_class_sizes(min_size: int | None, max_size: int | None) -> None:
    if min_size is not None and max_size is not None and min_size > max_size:
        raise ValidationError("minClassSize cannot be greater than maxClassSize")


class CourseService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create(self, principal: Principal, data: dict[str, Any]) -> Course:
        """Create a course from field values keyed by Course field name."""
        unknown = set(data) - _UPDATABLE
        if unknown:
            raise ValueError(f"unknown course fields: {sorted(unknown)}")
        _check_class_sizes(data.get("min_class_size"), data.get("max_class_size"))
        now = self._clock()
        course = Course(
            id=uuid4(),
            organization_id=principal.organization_id,
            created_at=now,
            updated_at=now,
            **{**data, "grade_levels": tuple(data.get("grade_levels", ()))},
        )
        try:
            async with self._uow_factory() as uow:
                await uow.courses.add(course)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(course.code) from None
        logger.info("Created course %s (%s)", course.id, course.code)
        return course

    async def list(
        self,
        principal: Principal,
        *,
        category: CourseCategory | None = None,
        is_active: bool | None = None,
        is_template: bool | None = None,
        branch_id: UUID | None = None,
    ) -> list[Course]:
        async with self._uow_factory() as uow:
            return await uow.courses.list(
                principal.organization_id,
                category=category,
                is_active=is_active,
                is_template=is_template,
                branch_id=branch_id,
            )

    async def get(self, principal: Principal, course_id: UUID) -> Course:
        async with self._uow_factory() as uow:
            return await self._require_course(uow, principal, course_id)

    async def update(
        self, principal: Principal, course_id: UUID, changes: dict[str, Any]
    ) -> Course:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        if "grade_levels" in changes:
            changes = {**changes, "grade_levels": tuple(changes["grade_levels"])}
        try:
            async with self._uow_factory() as uow:
                course = await self._require_course(uow, principal, course_id)
                updated = replace(course, **changes, updated_at=self._clock())
                _check_class_sizes(updated.min_class_size, updated.max_class_size)
                await uow.courses.update(updated)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(changes.get("code", "")) from None
        return updated

    async def deactivate(self, principal: Principal, course_id: UUID) -> Course:
        """Soft delete: the course stays but is no longer active."""
        async with self._uow_factory() as uow:
            course = await self._require_course(uow, principal, course_id)
            updated = replace(course, is_active=False, updated_at=self._clock())
            await uow.courses.update(updated)
            await uow.commit()
        logger.info("Deactivated course %s", course_id)
        return updated

    async def delete(self, principal: Principal, course_id: UUID) -> None:
        """Permanent delete, including all branch assignments."""
        async with self._uow_factory() as uow:
            course = await self._require_course(uow, principal, course_id)
            if await uow.classes.exists_for_course(course.id):
                raise ConflictError("Cannot delete a course that has classes")
            await uow.courses.delete(course.id)
            await uow.commit()
        logger.info("Deleted course %s (%s)", course.id, course.code)

    async def assign_branch(
        self,
        principal: Principal,
        course_id: UUID,
        branch_id: UUID,
        options: dict[str, Any],
    ) -> CourseBranch:
        """Offer a course at a branch, or update an existing offering."""
        unknown = set(options) - _ASSIGNMENT_FIELDS
        if unknown:
            raise ValueError(f"unknown assignment fields: {sorted(unknown)}")
        _check_class_sizes(
            options.get("custom_min_class_size"), options.get("custom_max_class_size")
        )
        now = self._clock()
        async with self._uow_factory() as uow:
            await self._require_course(uow, principal, course_id)
            if await uow.branches.get_by_id(principal.organization_id, branch_id) is None:
                raise NotFoundError(BRANCH_NOT_FOUND)
            existing = await uow.courses.get_assignment(course_id, branch_id)
            if existing is None:
                assignment = CourseBranch(
                    course_id=course_id,
                    branch_id=branch_id,
                    is_offered=options.get("is_offered", True),
                    created_at=now,
                    updated_at=now,
                    **{k: v for k, v in options.items() if k != "is_offered"},
                )
            else:
                assignment = replace(existing, **options, updated_at=now)
            await uow.courses.save_assignment(assignment)
            await uow.commit()
        return assignment

    async def unassign_branch(
        self, principal: Principal, course_id: UUID, branch_id: UUID
    ) -> None:
        async with self._uow_factory() as uow:
            await self._require_course(uow, principal, course_id)
            if await uow.branches.get_by_id(principal.organization_id, branch_id) is None:
                raise NotFoundError(BRANCH_NOT_FOUND)
            if not await uow.courses.remove_assignment(course_id, branch_id):
                raise NotFoundError("Course is not assigned to this branch")
            await uow.commit()

    async def list_branches(
        self, principal: Principal, course_id: UUID
    ) -> list[CourseBranch]:
        async with self._uow_factory() as uow:
            await self._require_course(uow, principal, course_id)
            return await uow.courses.list_assignments(course_id)

    @staticmethod
    async def _require_course(
        uow: UnitOfWork, principal: Principal, course_id: UUID
    ) -> Course:
        course = await uow.courses.get_by_id(principal.organization_id, course_id)
        if course is None:
            raise NotFoundError(COURSE_NOT_FOUND)
        return course
