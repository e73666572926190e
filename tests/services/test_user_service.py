from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from tuition_centre.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import InMemoryUnitOfWork
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import Role, User
from tuition_centre.services.branch_service import BranchService
from tuition_centre.services.password_service import PASSWORD_POLICY, PasswordService
from tuition_centre.services.registration_service import RegistrationService, TenantSignup
from tuition_centre.services.user_service import UserService
from tests.conftest import ADMIN_PASSWORD, FAST_HASH

PASSWORD = "Teach3r#Pass"


class World:
    """One tenant with two branches and a UserService over it."""

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

    def create(self, principal: Principal | None = None, **kwargs: object) -> User:
        values: dict[str, object] = {
            "email": "teacher@abc.com",
            "password": PASSWORD,
            "name": "Tina Teacher",
            "role": Role.TEACHER,
            "branch_id": self.hq.id,
        }
        values.update(kwargs)
        return asyncio.run(self.users.create(principal or self.super_admin, **values))  # type: ignore[arg-type]


@pytest.fixture
def world() -> World:
    return World()


def test_create_teacher(world: World) -> None:
    user = world.create()
    assert user.role == Role.TEACHER
    assert user.branch_id == world.hq.id
    assert user.organization_id == world.org.id
    assert world.passwords.verify_sync(PASSWORD, user.password_hash)


@pytest.mark.parametrize("role", [Role.BRANCH_ADMIN, Role.TEACHER, Role.STUDENT])
def test_branch_bound_roles_need_a_branch(world: World, role: Role) -> None:
    with pytest.raises(ValidationError, match=f"Branch is required for {role} role"):
        world.create(role=role, branch_id=None)


def test_parent_needs_no_branch(world: World) -> None:
    assert world.create(email="p@abc.com", role=Role.PARENT, branch_id=None).branch_id is None


def test_unknown_branch_is_not_found(world: World) -> None:
    with pytest.raises(NotFoundError, match="Branch not found in this organization"):
        world.create(branch_id=uuid4())


def test_duplicate_email_in_org_is_conflict(world: World) -> None:
    world.create()
    with pytest.raises(ConflictError):
        world.create(name="Other")


def test_branch_admin_cannot_create_super_admin(world: World) -> None:
    ba = world.create(email="ba@abc.com", role=Role.BRANCH_ADMIN)
    with pytest.raises(ForbiddenError):
        world.create(world.principal_for(ba), email="x@abc.com", role=Role.SUPER_ADMIN, branch_id=None)


def test_list_is_newest_first_and_filters(world: World) -> None:
    first = world.create(email="t1@abc.com")
    second = world.create(email="t2@abc.com", branch_id=world.east.id)
    world.create(email="s1@abc.com", role=Role.STUDENT)

    teachers = asyncio.run(world.users.list(world.super_admin, role=Role.TEACHER))
    assert [u.id for u in teachers] == [second.id, first.id]

    east = asyncio.run(world.users.list(world.super_admin, branch_id=world.east.id))
    assert [u.id for u in east] == [second.id]


def test_branch_admin_sees_only_own_branch(world: World) -> None:
    ba = world.principal_for(world.create(email="ba@abc.com", role=Role.BRANCH_ADMIN))
    mine = world.create(email="mine@abc.com")
    theirs = world.create(email="theirs@abc.com", branch_id=world.east.id)

    visible = asyncio.run(world.users.list(ba))
    assert theirs.id not in {u.id for u in visible}
    assert mine.id in {u.id for u in visible}
    assert asyncio.run(world.users.list(ba, branch_id=world.east.id)) == []

    with pytest.raises(NotFoundError, match="User not found"):
        asyncio.run(world.users.get(ba, theirs.id))


def test_update_rehashes_password_and_checks_email(world: World) -> None:
    user = world.create()
    world.create(email="taken@abc.com")

    updated = asyncio.run(
        world.users.update(world.super_admin, user.id, {"name": "Renamed", "password": "N3w#Password"})
    )
    assert updated.name == "Renamed"
    assert world.passwords.verify_sync("N3w#Password", updated.password_hash)

    with pytest.raises(ConflictError, match="Email already exists"):
        asyncio.run(world.users.update(world.super_admin, user.id, {"email": "taken@abc.com"}))


def test_branch_admin_cannot_touch_super_admin(world: World) -> None:
    ba = world.principal_for(world.create(email="ba@abc.com", role=Role.BRANCH_ADMIN))
    with pytest.raises(NotFoundError):
        asyncio.run(world.users.update(ba, world.super_admin.user_id, {"name": "x"}))


def test_super_admin_cannot_be_deactivated(world: World) -> None:
    with pytest.raises(ForbiddenError, match="Cannot delete Super Admin users"):
        asyncio.run(world.users.deactivate(world.super_admin, world.super_admin.user_id))


def test_super_admin_cannot_be_deactivated_through_update(world: World) -> None:
    second = world.create(email="boss@abc.com", role=Role.SUPER_ADMIN, branch_id=None)
    for target in (second.id, world.super_admin.user_id):
        with pytest.raises(ForbiddenError, match="Cannot deactivate Super Admin users"):
            asyncio.run(world.users.update(world.super_admin, target, {"is_active": False}))
        assert world.store.users[target].is_active is True


def test_super_admin_role_cannot_be_changed(world: World) -> None:
    with pytest.raises(ForbiddenError, match="Cannot change the role"):
        asyncio.run(
            world.users.update(
                world.super_admin,
                world.super_admin.user_id,
                {"role": Role.BRANCH_ADMIN, "branch_id": world.hq.id},
            )
        )


def test_branch_admin_cannot_move_users_out_of_their_branch(world: World) -> None:
    ba = world.principal_for(world.create(email="ba@abc.com", role=Role.BRANCH_ADMIN))
    user = world.create()
    for target_branch in (world.east.id, None):
        with pytest.raises(ForbiddenError, match="their own branch"):
            asyncio.run(world.users.update(ba, user.id, {"branch_id": target_branch}))
    assert world.store.users[user.id].branch_id == world.hq.id

    # Naming their own branch is fine.
    asyncio.run(world.users.update(ba, user.id, {"branch_id": world.hq.id, "name": "Same"}))


def test_branch_admin_cannot_create_users_in_other_branches(world: World) -> None:
    ba = world.principal_for(world.create(email="ba@abc.com", role=Role.BRANCH_ADMIN))
    with pytest.raises(ForbiddenError, match="their own branch"):
        world.create(ba, email="x@abc.com", branch_id=world.east.id)


def test_deactivate_then_reactivate(world: World) -> None:
    user = world.create()
    asyncio.run(world.users.deactivate(world.super_admin, user.id))
    assert world.store.users[user.id].is_active is False
    asyncio.run(world.users.reactivate(world.super_admin, user.id))
    assert world.store.users[user.id].is_active is True


def test_change_password_requires_current_password(world: World) -> None:
    user = world.create()
    me = world.principal_for(user)
    with pytest.raises(UnauthorizedError, match="Current password is incorrect"):
        asyncio.run(world.users.change_password(me, "Wr0ng#Pass", "N3w#Password"))

    asyncio.run(world.users.change_password(me, PASSWORD, "N3w#Password"))
    assert world.passwords.verify_sync("N3w#Password", world.store.users[user.id].password_hash)


def test_reset_password_returns_working_temporary_password(world: World) -> None:
    user = world.create()
    temporary = asyncio.run(world.users.reset_password(world.super_admin, user.id))
    assert PASSWORD_POLICY.match(temporary)
    assert world.passwords.verify_sync(temporary, world.store.users[user.id].password_hash)

