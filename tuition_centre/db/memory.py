"""Process-local storage backing the in-memory repositories.

Used in dev (no DATABASE_URL) and in tests.  Rows are frozen dataclasses,
so a snapshot is a shallow copy of each dict.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, fields
from uuid import UUID

from tuition_centre.models.branch import Branch
from tuition_centre.models.course import Course, CourseBranch
from tuition_centre.models.organization import Organization
from tuition_centre.models.profile import Parent, ParentStudent, Student, Teacher
from tuition_centre.models.tuition_class import Enrollment, TuitionClass, WaitlistEntry
from tuition_centre.models.user import User


@dataclass(frozen=True, slots=True)
class Snapshot:
    orgs: dict[UUID, Organization]
    users: dict[UUID, User]
    branches: dict[UUID, Branch]
    courses: dict[UUID, Course]
    course_branches: dict[tuple[UUID, UUID], CourseBranch]
    teachers: dict[UUID, Teacher]
    students: dict[UUID, Student]
    parents: dict[UUID, Parent]
    parent_students: dict[tuple[UUID, UUID], ParentStudent]
    classes: dict[UUID, TuitionClass]
    # Keyed by (class_id, student_id).
    enrollments: dict[tuple[UUID, UUID], Enrollment]
    waitlist: dict[tuple[UUID, UUID], WaitlistEntry]


@dataclass
class InMemoryStore:
    orgs: dict[UUID, Organization] = field(default_factory=dict)
    users: dict[UUID, User] = field(default_factory=dict)
    branches: dict[UUID, Branch] = field(default_factory=dict)
    courses: dict[UUID, Course] = field(default_factory=dict)
    course_branches: dict[tuple[UUID, UUID], CourseBranch] = field(
        default_factory=dict
    )
    teachers: dict[UUID, Teacher] = field(default_factory=dict)
    students: dict[UUID, Student] = field(default_factory=dict)
    parents: dict[UUID, Parent] = field(default_factory=dict)
    parent_students: dict[tuple[UUID, UUID], ParentStudent] = field(
        default_factory=dict
    )
    classes: dict[UUID, TuitionClass] = field(default_factory=dict)
    enrollments: dict[tuple[UUID, UUID], Enrollment] = field(default_factory=dict)
    waitlist: dict[tuple[UUID, UUID], WaitlistEntry] = field(default_factory=dict)
    # One unit of work at a time; stands in for database transaction isolation.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def snapshot(self) -> Snapshot:
        return Snapshot(**{f.name: dict(getattr(self, f.name)) for f in fields(Snapshot)})

    def restore(self, snap: Snapshot) -> None:
        for f in fields(Snapshot):
            setattr(self, f.name, dict(getattr(snap, f.name)))
