from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from tuition_centre.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import InMemoryUnitOfWork
from tuition_centre.models.principal import Principal
from tuition_centre.models.profile import Gender
from tuition_centre.models.user import Role, User
from tuition_centre.services.branch_service import BranchService
from tuition_centre.services.password_service import PASSWORD_POLICY, PasswordService
from tuition_centre.services.profile_service import (
    PARENT_EMAIL_TAKEN,
    ParentSignup,
    ProfileService,
    StudentSignup,
    TeacherSignup,
)
from tuition_centre.services.registration_service import RegistrationService, TenantSignup
from tuition_centre.services.user_service import UserService
from tests.conftest import ADMIN_PASSWORD, FAST_HASH

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class World:
    """One tenant with two branches and a ProfileService over it."""

    def __init__(self) -> None:
        self.store = InMemoryStore()
        factory = lambda: InMemoryUnitOfWork(self.store)  # noqa: E731
        self.passwords = PasswordService(**FAST_HASH)
        reg = asyncio.run(
            RegistrationService(factory, self.passwords).register(
                TenantSignup(
                    organization_name="ABC",
                    organization_email="hello@abc.com",
                    admin_name="Admin",
                    admin_email="admin@abc.com",
                    admin_password=ADMIN_PASSWORD,
                )
            )
        )
        self.org = reg.organization
        self.super_admin = self.principal_for(reg.admin)
        branches = BranchService(factory)
        self.hq = asyncio.run(branches.create(self.super_admin, name="HQ", code="HQ"))
        self.east = asyncio.run(branches.create(self.super_admin, name="East", code="E1"))
        self.users = UserService(factory, self.passwords)
        self.profiles = ProfileService(factory, self.passwords, clock=lambda: NOW)

    def principal_for(self, user: User) -> Principal:
        return Principal(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            organization_id=user.organization_id,
            organization_slug=self.org.slug,
            branch_id=user.branch_id,
        )

    def branch_admin(self) -> Principal:
        user = asyncio.run(
            self.users.create(
                self.super_admin,
                email="ba@abc.com",
                password=ADMIN_PASSWORD,
                name="Branch Admin",
                role=Role.BRANCH_ADMIN,
                branch_id=self.hq.id,
            )
        )
        return self.principal_for(user)

    def teacher(  # type: ignore[no-untyped-def]
        self, email: str = "tina@abc.com", principal: Principal | None = None
    ):
        signup = TeacherSignup(email=email, name="Tina", branch_id=self.hq.id)
        return asyncio.run(self.profiles.create_teacher(principal or self.super_admin, signup))

    def student(  # type: ignore[no-untyped-def]
        self,
        name: str = "Sam",
        *,
        email: str | None = None,
        parent_email: str = "pat@abc.com",
        principal: Principal | None = None,
        branch_id=None,
    ):
        signup = StudentSignup(
            name=name,
            branch_id=branch_id or self.hq.id,
            date_of_birth=date(2012, 5, 1),
            gender=Gender.MALE,
            grade="Form 1",
            school_name="SMK Taman",
            email=email,
        )
        parent = ParentSignup(name="Pat", email=parent_email, relationship="Father")
        return asyncio.run(
            self.profiles.create_student(principal or self.super_admin, signup, parent)
        )


@pytest.fixture
def world() -> World:
    return World()


def test_create_teacher_writes_user_and_profile(world: World) -> None:
    account = world.teacher()
    assert account.user.role == Role.TEACHER
    assert account.user.branch_id == world.hq.id
    assert account.teacher.user_id == account.user.id
    assert account.teacher.teacher_code == "TCH-2026-0001"
    assert PASSWORD_POLICY.match(account.temporary_password)
    stored = world.store.users[account.user.id]
    assert world.passwords.verify_sync(account.temporary_password, stored.password_hash)
    assert account.temporary_password not in stored.password_hash


def test_teacher_codes_count_up(world: World) -> None:
    world.teacher()
    second = world.teacher("tom@abc.com")
    assert second.teacher.teacher_code == "TCH-2026-0002"


def test_teacher_duplicate_email_is_conflict_and_writes_nothing(world: World) -> None:
    world.teacher()
    with pytest.raises(ConflictError):
        world.teacher()
    assert len(world.store.teachers) == 1


def test_teacher_unknown_branch_is_not_found(world: World) -> None:
    signup = TeacherSignup(email="x@abc.com", name="X", branch_id=world.org.id)
    with pytest.raises(NotFoundError):
        asyncio.run(world.profiles.create_teacher(world.super_admin, signup))


def test_branch_admin_onboards_only_into_own_branch(world: World) -> None:
    ba = world.branch_admin()
    signup = TeacherSignup(email="x@abc.com", name="X", branch_id=world.east.id)
    with pytest.raises(ForbiddenError):
        asyncio.run(world.profiles.create_teacher(ba, signup))
    with pytest.raises(ForbiddenError):
        world.student(principal=ba, branch_id=world.east.id)
    assert world.teacher(principal=ba).user.branch_id == world.hq.id


def test_create_student_with_new_parent(world: World) -> None:
    account = world.student()
    assert account.student.student_code == "2026-HQ-0001"
    assert account.user.role == Role.STUDENT
    assert account.user.email == "2026-hq-0001@student.temp"
    assert account.is_new_parent
    assert account.parent_user.role == Role.PARENT
    assert account.parent_user.branch_id is None
    assert PASSWORD_POLICY.match(account.parent_temporary_password or "")

    (parent,) = world.store.parents.values()
    assert parent.user_id == account.parent_user.id
    link = world.store.parent_students[(parent.id, account.student.id)]
    assert link.is_primary and link.relationship == "Father"


def test_second_child_reuses_parent(world: World) -> None:
    first = world.student()
    second = world.student("Sue")
    assert second.student.student_code == "2026-HQ-0002"
    assert not second.is_new_parent
    assert second.parent_temporary_password is None
    assert second.parent_user.id == first.parent_user.id
    assert len(world.store.parents) == 1
    assert len(world.store.parent_students) == 2


def test_student_codes_are_numbered_per_branch(world: World) -> None:
    world.student()
    east = world.student("Eve", branch_id=world.east.id)
    assert east.student.student_code == "2026-E1-0001"


def test_parent_email_of_non_parent_is_conflict(world: World) -> None:
    world.teacher("pat@abc.com")
    users_before = len(world.store.users)
    with pytest.raises(ConflictError, match=PARENT_EMAIL_TAKEN):
        world.student()
    assert len(world.store.users) == users_before
    assert not world.store.students


def test_student_email_taken_is_conflict(world: World) -> None:
    with pytest.raises(ConflictError):
        world.student(email="admin@abc.com")


def test_student_and_parent_emails_must_differ(world: World) -> None:
    with pytest.raises(ValidationError):
        world.student(email="pat@abc.com")


def test_lists_are_scoped_for_branch_admins(world: World) -> None:
    world.student()
    world.student("Eve", branch_id=world.east.id)
    world.teacher()

    everyone = asyncio.run(world.profiles.list_students(world.super_admin))
    assert {s.student_code for s, _ in everyone} == {"2026-E1-0001", "2026-HQ-0001"}

    ba = world.branch_admin()
    mine = asyncio.run(world.profiles.list_students(ba))
    assert [s.student_code for s, _ in mine] == ["2026-HQ-0001"]
    teachers = asyncio.run(world.profiles.list_teachers(ba))
    assert [u.email for _, u in teachers] == ["tina@abc.com"]
