from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import UQ_USER_ORG_EMAIL
from tuition_centre.models.user import Role, User


class UserRepo(Protocol):
    """Users are always looked up inside one organization."""

    async def get_by_id(self, org_id: UUID, user_id: UUID) -> User | None: ...
    async def get_by_email(self, org_id: UUID, email: str) -> User | None: ...
    async def list(
        self,
        org_id: UUID,
        *,
        role: Role | None = None,
        branch_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[User]: ...
    async def add(self, user: User) -> None: ...
    async def update(self, user: User) -> None: ...
    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...


class InMemoryUserRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, org_id: UUID, user_id: UUID) -> User | None:
        user = self._store.users.get(user_id)
        if user is None or user.organization_id != org_id:
            return None
        return user

    async def get_by_email(self, org_id: UUID, email: str) -> User | None:
        for user in self._store.users.values():
            if user.organization_id == org_id and user.email == email:
                return user
        return None

    async def list(
        self,
        org_id: UUID,
        *,
        role: Role | None = None,
        branch_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        users = [
            u
            for u in self._store.users.values()
            if u.organization_id == org_id
            and (role is None or u.role == role)
            and (branch_id is None or u.branch_id == branch_id)
            and (is_active is None or u.is_active == is_active)
        ]
        users.sort(key=lambda u: u.created_at, reverse=True)
        return users

    async def add(self, user: User) -> None:
        self._check_email(user)
        self._store.users[user.id] = user

    async def update(self, user: User) -> None:
        if user.id not in self._store.users:
            raise KeyError("user not found")
        self._check_email(user)
        self._store.users[user.id] = user

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        u = self._store.users.get(user_id)
        if u is None:
            raise KeyError("user not found")
        self._store.users[user_id] = replace(u, password_hash=password_hash)

    def _check_email(self, user: User) -> None:
        for other in self._store.users.values():
            if (
                other.id != user.id
                and other.organization_id == user.organization_id
                and other.email == user.email
            ):
                raise DuplicateKeyError(UQ_USER_ORG_EMAIL)
