from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import UQ_COURSE_ORG_CODE
from tuition_centre.models.course import Course, CourseBranch, CourseCategory


class CourseRepo(Protocol):
    async def get_by_id(self, org_id: UUID, course_id: UUID) -> Course | None: ...
    async def get_by_code(self, org_id: UUID, code: str) -> Course | None: ...
    async def list(
        self,
        org_id: UUID,
        *,
        category: CourseCategory | None = None,
        is_active: bool | None = None,
        is_template: bool | None = None,
        branch_id: UUID | None = None,
    ) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def update(self, course: Course) -> None: ...
    async def delete(self, course_id: UUID) -> None: ...

    async def get_assignment(
        self, course_id: UUID, branch_id: UUID
    ) -> CourseBranch | None: ...
    async def save_assignment(self, assignment: CourseBranch) -> None: ...
    async def remove_assignment(self, course_id: UUID, branch_id: UUID) -> bool: ...
    async def list_assignments(self, course_id: UUID) -> list[CourseBranch]: ...


class InMemoryCourseRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, org_id: UUID, course_id: UUID) -> Course | None:
        course = self._store.courses.get(course_id)
        if course is None or course.organization_id != org_id:
            return None
        return course

    async def get_by_code(self, org_id: UUID, code: str) -> Course | None:
        for course in self._store.courses.values():
            if course.organization_id == org_id and course.code == code:
                return course
        return None

    async def list(
        self,
        org_id: UUID,
        *,
        category: CourseCategory | None = None,
        is_active: bool | None = None,
        is_template: bool | None = None,
        branch_id: UUID | None = None,
    ) -> list[Course]:
        offered: set[UUID] | None = None
        if branch_id is not None:
            offered = {
                cb.course_id
                for cb in self._store.course_branches.values()
                if cb.branch_id == branch_id and cb.is_offered
            }
        courses = [
            c
            for c in self._store.courses.values()
            if c.organization_id == org_id
            and (category is None or c.category == category)
            and (is_active is None or c.is_active == is_active)
            and (is_template is None or c.is_template == is_template)
            and (offered is None or c.id in offered)
        ]
        courses.sort(key=lambda c: c.created_at, reverse=True)
        return courses

    async def add(self, course: Course) -> None:
        self._check_code(course)
        self._store.courses[course.id] = course

    async def update(self, course: Course) -> None:
        if course.id not in self._store.courses:
            raise KeyError("course not found")
        self._check_code(course)
        self._store.courses[course.id] = course

    async def delete(self, course_id: UUID) -> None:
        self._store.courses.pop(course_id, None)
        for key in [k for k in self._store.course_branches if k[0] == course_id]:
            del self._store.course_branches[key]

    async def get_assignment(
        self, course_id: UUID, branch_id: UUID
    ) -> CourseBranch | None:
        return self._store.course_branches.get((course_id, branch_id))

    async def save_assignment(self, assignment: CourseBranch) -> None:
        key = (assignment.course_id, assignment.branch_id)
        self._store.course_branches[key] = assignment

    async def remove_assignment(self, course_id: UUID, branch_id: UUID) -> bool:
        return self._store.course_branches.pop((course_id, branch_id), None) is not None

    async def list_assignments(self, course_id: UUID) -> list[CourseBranch]:
        found = [
            cb for cb in self._store.course_branches.values() if cb.course_id == course_id
        ]
        found.sort(key=lambda cb: cb.created_at)
        return found

    def _check_code(self, course: Course) -> None:
        for other in self._store.courses.values():
            if (
                other.id != course.id
                and other.organization_id == course.organization_id
                and other.code == course.code
            ):
                raise DuplicateKeyError(UQ_COURSE_ORG_CODE)
