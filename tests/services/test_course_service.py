from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from tuition_centre.core.errors import ConflictError, NotFoundError, ValidationError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import InMemoryUnitOfWork
from tuition_centre.models.course import (
    CourseCategory,
    CourseLevel,
    DifficultyLevel,
    SessionDuration,
)
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import Role
from tuition_centre.services.branch_service import BranchService
from tuition_centre.services.course_service import CourseService


def _principal() -> Principal:
    return Principal(
        user_id=uuid4(),
        email="admin@abc.com",
        name="Admin",
        role=Role.SUPER_ADMIN,
        organization_id=uuid4(),
        organization_slug="abc",
    )


def _course_data(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "name": "SPM Mathematics",
        "code": "SPM-MATH",
        "category": CourseCategory.SPM,
        "difficulty_level": DifficultyLevel.MIXED,
        "grade_levels": [CourseLevel.FORM_4, CourseLevel.FORM_5],
        "session_duration": SessionDuration.SIXTY_MIN,
        "max_class_size": 20,
        "min_class_size": 1,
    }
    data.update(overrides)
    return data


class Env:
    def __init__(self) -> None:
        self.store = InMemoryStore()
        factory = lambda: InMemoryUnitOfWork(self.store)  # noqa: E731
        self.admin = _principal()
        self.courses = CourseService(factory)
        self.branches = BranchService(factory)

    def course(self, **overrides: object):  # type: ignore[no-untyped-def]
        return asyncio.run(self.courses.create(self.admin, _course_data(**overrides)))

    def branch(self, code: str = "HQ"):  # type: ignore[no-untyped-def]
        return asyncio.run(self.branches.create(self.admin, name=code, code=code))


@pytest.fixture
def env() -> Env:
    return Env()


def test_create_course(env: Env) -> None:
    course = env.course(base_fee_per_month=150.0)
    assert course.organization_id == env.admin.organization_id
    assert course.grade_levels == (CourseLevel.FORM_4, CourseLevel.FORM_5)
    assert course.base_fee_per_month == 150.0
    assert course.is_active and not course.is_template


def test_duplicate_code_is_conflict(env: Env) -> None:
    env.course()
    with pytest.raises(ConflictError, match="SPM-MATH"):
        env.course(name="Another")


def test_same_code_in_another_org_is_fine(env: Env) -> None:
    env.course()
    other = _principal()
    asyncio.run(env.courses.create(other, _course_data()))
    assert len(env.store.courses) == 2


def test_min_class_size_above_max_is_rejected(env: Env) -> None:
    with pytest.raises(ValidationError, match="minClassSize"):
        env.course(min_class_size=30, max_class_size=10)


def test_update_checks_merged_class_sizes(env: Env) -> None:
    course = env.course()
    with pytest.raises(ValidationError):
        asyncio.run(env.courses.update(env.admin, course.id, {"min_class_size": 25}))
    updated = asyncio.run(env.courses.update(env.admin, course.id, {"name": "Add Maths"}))
    assert updated.name == "Add Maths"


def test_list_filters(env: Env) -> None:
    spm = env.course()
    env.course(code="IG-ENG", category=CourseCategory.IGCSE, is_template=True)

    by_category = asyncio.run(env.courses.list(env.admin, category=CourseCategory.SPM))
    assert [c.id for c in by_category] == [spm.id]
    templates = asyncio.run(env.courses.list(env.admin, is_template=True))
    assert [c.code for c in templates] == ["IG-ENG"]


def test_deactivate_is_soft(env: Env) -> None:
    course = env.course()
    result = asyncio.run(env.courses.deactivate(env.admin, course.id))
    assert result.is_active is False
    assert env.store.courses[course.id].is_active is False


def test_branch_assignment_lifecycle(env: Env) -> None:
    course = env.course()
    hq = env.branch()

    assignment = asyncio.run(
        env.courses.assign_branch(env.admin, course.id, hq.id, {"custom_fee_per_month": 120.0})
    )
    assert assignment.is_offered is True
    assert assignment.custom_fee_per_month == 120.0

    # Assigning again updates the same offering.
    again = asyncio.run(
        env.courses.assign_branch(env.admin, course.id, hq.id, {"branch_notes": "Sat only"})
    )
    assert again.custom_fee_per_month == 120.0
    assert again.branch_notes == "Sat only"
    assert again.created_at == assignment.created_at
    assert len(asyncio.run(env.courses.list_branches(env.admin, course.id))) == 1

    offered = asyncio.run(env.courses.list(env.admin, branch_id=hq.id))
    assert [c.id for c in offered] == [course.id]

    asyncio.run(env.courses.unassign_branch(env.admin, course.id, hq.id))
    with pytest.raises(NotFoundError, match="Course is not assigned to this branch"):
        asyncio.run(env.courses.unassign_branch(env.admin, course.id, hq.id))


def test_assign_to_unknown_branch_is_not_found(env: Env) -> None:
    course = env.course()
    with pytest.raises(NotFoundError, match="Branch not found"):
        asyncio.run(env.courses.assign_branch(env.admin, course.id, uuid4(), {}))


def test_hard_delete_removes_assignments(env: Env) -> None:
    course = env.course()
    hq = env.branch()
    asyncio.run(env.courses.assign_branch(env.admin, course.id, hq.id, {}))

    asyncio.run(env.courses.delete(env.admin, course.id))

    assert env.store.courses == {}
    assert env.store.course_branches == {}
    with pytest.raises(NotFoundError, match="Course not found"):
        asyncio.run(env.courses.get(env.admin, course.id))


def test_deleting_branch_removes_its_offerings(env: Env) -> None:
    course = env.course()
    hq = env.branch()
    asyncio.run(env.courses.assign_branch(env.admin, course.id, hq.id, {}))

    asyncio.run(env.branches.delete(env.admin, hq.id))

    assert asyncio.run(env.courses.list_branches(env.admin, course.id)) == []


def test_branch_codes_are_unique_per_org(env: Env) -> None:
    env.branch("HQ")
    with pytest.raises(ConflictError, match="Branch with code 'HQ' already exists"):
        env.branch("HQ")
