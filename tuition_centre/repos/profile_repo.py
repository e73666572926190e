from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import (
    PK_PARENT_STUDENT,
    UQ_PARENT_USER,
    UQ_STUDENT_ORG_CODE,
    UQ_STUDENT_USER,
    UQ_TEACHER_ORG_CODE,
    UQ_TEACHER_USER,
)
from tuition_centre.models.profile import Parent, ParentStudent, Student, Teacher


class ProfileRepo(Protocol):
    async def get_teacher(self, org_id: UUID, teacher_id: UUID) -> Teacher | None: ...
    async def get_teacher_by_user(
        self, org_id: UUID, user_id: UUID
    ) -> Teacher | None: ...
    async def count_teacher_codes(self, org_id: UUID, prefix: str) -> int: ...
    async def add_teacher(self, teacher: Teacher) -> None: ...
    async def list_teachers(self, org_id: UUID) -> list[Teacher]: ...

    async def get_student(self, org_id: UUID, student_id: UUID) -> Student | None: ...
    async def count_student_codes(self, org_id: UUID, prefix: str) -> int: ...
    async def add_student(self, student: Student) -> None: ...
    async def list_students(self, org_id: UUID) -> list[Student]: ...

    async def get_parent_by_user(self, org_id: UUID, user_id: UUID) -> Parent | None: ...
    async def add_parent(self, parent: Parent) -> None: ...
    async def add_parent_link(self, link: ParentStudent) -> None: ...


class InMemoryProfileRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_teacher(self, org_id: UUID, teacher_id: UUID) -> Teacher | None:
        teacher = self._store.teachers.get(teacher_id)
        if teacher is None or teacher.organization_id != org_id:
            return None
        return teacher

    async def get_teacher_by_user(self, org_id: UUID, user_id: UUID) -> Teacher | None:
        for teacher in self._store.teachers.values():
            if teacher.organization_id == org_id and teacher.user_id == user_id:
                return teacher
        return None

    async def count_teacher_codes(self, org_id: UUID, prefix: str) -> int:
        return sum(
            1
            for t in self._store.teachers.values()
            if t.organization_id == org_id and t.teacher_code.startswith(prefix)
        )

    async def add_teacher(self, teacher: Teacher) -> None:
        for other in self._store.teachers.values():
            if other.user_id == teacher.user_id:
                raise DuplicateKeyError(UQ_TEACHER_USER)
            if (
                other.organization_id == teacher.organization_id
                and other.teacher_code == teacher.teacher_code
            ):
                raise DuplicateKeyError(UQ_TEACHER_ORG_CODE)
        self._store.teachers[teacher.id] = teacher

    async def list_teachers(self, org_id: UUID) -> list[Teacher]:
        found = [t for t in self._store.teachers.values() if t.organization_id == org_id]
        found.sort(key=lambda t: t.created_at, reverse=True)
        return found

    async def get_student(self, org_id: UUID, student_id: UUID) -> Student | None:
        student = self._store.students.get(student_id)
        if student is None or student.organization_id != org_id:
            return None
        return student

    async def count_student_codes(self, org_id: UUID, prefix: str) -> int:
        return sum(
            1
            for s in self._store.students.values()
            if s.organization_id == org_id and s.student_code.startswith(prefix)
        )

    async def add_student(self, student: Student) -> None:
        for other in self._store.students.values():
            if other.user_id == student.user_id:
                raise DuplicateKeyError(UQ_STUDENT_USER)
            if (
                other.organization_id == student.organization_id
                and other.student_code == student.student_code
            ):
                raise DuplicateKeyError(UQ_STUDENT_ORG_CODE)
        self._store.students[student.id] = student

    async def list_students(self, org_id: UUID) -> list[Student]:
        found = [s for s in self._store.students.values() if s.organization_id == org_id]
        found.sort(key=lambda s: s.created_at, reverse=True)
        return found

    async def get_parent_by_user(self, org_id: UUID, user_id: UUID) -> Parent | None:
        for parent in self._store.parents.values():
            if parent.organization_id == org_id and parent.user_id == user_id:
                return parent
        return None

    async def add_parent(self, parent: Parent) -> None:
        if any(p.user_id == parent.user_id for p in self._store.parents.values()):
            raise DuplicateKeyError(UQ_PARENT_USER)
        self._store.parents[parent.id] = parent

    async def add_parent_link(self, link: ParentStudent) -> None:
        key = (link.parent_id, link.student_id)
        if key in self._store.parent_students:
            raise DuplicateKeyError(PK_PARENT_STUDENT)
        self._store.parent_students[key] = link
