from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import UQ_CLASS_ORG_CODE
from tuition_centre.models.tuition_class import (
    ClassStatus,
    Enrollment,
    EnrollmentStatus,
    TuitionClass,
    WaitlistEntry,
    WaitlistStatus,
)


class ClassRepo(Protocol):
    async def get_by_id(self, org_id: UUID, class_id: UUID) -> TuitionClass | None: ...
    async def get_by_code(self, org_id: UUID, code: str) -> TuitionClass | None: ...
    async def count_codes(self, org_id: UUID, prefix: str) -> int: ...
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
    ) -> list[TuitionClass]: ...
    async def add(self, cls: TuitionClass) -> None: ...
    async def update(self, cls: TuitionClass) -> None: ...
    async def exists_for_branch(self, branch_id: UUID) -> bool: ...
    async def exists_for_course(self, course_id: UUID) -> bool: ...

    async def get_enrollment(
        self, class_id: UUID, student_id: UUID
    ) -> Enrollment | None: ...
    async def save_enrollment(self, enrollment: Enrollment) -> None: ...
    async def list_enrollments(
        self, class_id: UUID, status: EnrollmentStatus | None = None
    ) -> list[Enrollment]: ...

    async def get_waitlist_entry(
        self, class_id: UUID, student_id: UUID
    ) -> WaitlistEntry | None: ...
    async def save_waitlist_entry(self, entry: WaitlistEntry) -> None: ...
    async def list_waitlist(
        self, class_id: UUID, status: WaitlistStatus = WaitlistStatus.WAITING
    ) -> list[WaitlistEntry]: ...
    async def max_waitlist_position(self, class_id: UUID) -> int: ...


class InMemoryClassRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, org_id: UUID, class_id: UUID) -> TuitionClass | None:
        cls = self._store.classes.get(class_id)
        if cls is None or cls.organization_id != org_id:
            return None
        return cls

    async def get_by_code(self, org_id: UUID, code: str) -> TuitionClass | None:
        for cls in self._store.classes.values():
            if cls.organization_id == org_id and cls.class_code == code:
                return cls
        return None

    async def count_codes(self, org_id: UUID, prefix: str) -> int:
        return sum(
            1
            for c in self._store.classes.values()
            if c.organization_id == org_id and c.class_code.startswith(prefix)
        )

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
        found = [
            c
            for c in self._store.classes.values()
            if c.organization_id == org_id
            and (branch_id is None or c.branch_id == branch_id)
            and (course_id is None or c.course_id == course_id)
            and (teacher_id is None or c.is_taught_by(teacher_id))
            and (status is None or c.status == status)
            and (term_name is None or c.term_name == term_name)
            and (academic_year is None or c.academic_year == academic_year)
        ]
        found.sort(key=lambda c: (c.start_date, c.created_at), reverse=True)
        return found

    async def add(self, cls: TuitionClass) -> None:
        self._check_code(cls)
        self._store.classes[cls.id] = cls

    async def update(self, cls: TuitionClass) -> None:
        if cls.id not in self._store.classes:
            raise KeyError("class not found")
        self._check_code(cls)
        self._store.classes[cls.id] = cls

    async def exists_for_branch(self, branch_id: UUID) -> bool:
        return any(c.branch_id == branch_id for c in self._store.classes.values())

    async def exists_for_course(self, course_id: UUID) -> bool:
        return any(c.course_id == course_id for c in self._store.classes.values())

    async def get_enrollment(self, class_id: UUID, student_id: UUID) -> Enrollment | None:
        return self._store.enrollments.get((class_id, student_id))

    async def save_enrollment(self, enrollment: Enrollment) -> None:
        self._store.enrollments[(enrollment.class_id, enrollment.student_id)] = enrollment

    async def list_enrollments(
        self, class_id: UUID, status: EnrollmentStatus | None = None
    ) -> list[Enrollment]:
        found = [
            e
            for e in self._store.enrollments.values()
            if e.class_id == class_id and (status is None or e.status == status)
        ]
        found.sort(key=lambda e: e.enrolled_at)
        return found

    async def get_waitlist_entry(
        self, class_id: UUID, student_id: UUID
    ) -> WaitlistEntry | None:
        return self._store.waitlist.get((class_id, student_id))

    async def save_waitlist_entry(self, entry: WaitlistEntry) -> None:
        self._store.waitlist[(entry.class_id, entry.student_id)] = entry

    async def list_waitlist(
        self, class_id: UUID, status: WaitlistStatus = WaitlistStatus.WAITING
    ) -> list[WaitlistEntry]:
        found = [
            w
            for w in self._store.waitlist.values()
            if w.class_id == class_id and w.status == status
        ]
        found.sort(key=lambda w: (not w.is_priority, w.position))
        return found

    async def max_waitlist_position(self, class_id: UUID) -> int:
        return max(
            (w.position for w in self._store.waitlist.values() if w.class_id == class_id),
            default=0,
        )

    def _check_code(self, cls: TuitionClass) -> None:
        for other in self._store.classes.values():
            if (
                other.id != cls.id
                and other.organization_id == cls.organization_id
                and other.class_code == cls.class_code
            ):
                raise DuplicateKeyError(UQ_CLASS_ORG_CODE)
