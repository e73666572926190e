from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import UQ_BRANCH_ORG_CODE
from tuition_centre.models.branch import Branch


class BranchRepo(Protocol):
    async def get_by_id(self, org_id: UUID, branch_id: UUID) -> Branch | None: ...
    async def get_by_code(self, org_id: UUID, code: str) -> Branch | None: ...
    async def list_by_org(self, org_id: UUID) -> list[Branch]: ...
    async def add(self, branch: Branch) -> None: ...
    async def update(self, branch: Branch) -> None: ...
    async def delete(self, branch_id: UUID) -> None: ...


class InMemoryBranchRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, org_id: UUID, branch_id: UUID) -> Branch | None:
        branch = self._store.branches.get(branch_id)
        if branch is None or branch.organization_id != org_id:
            return None
        return branch

    async def get_by_code(self, org_id: UUID, code: str) -> Branch | None:
        for branch in self._store.branches.values():
            if branch.organization_id == org_id and branch.code == code:
                return branch
        return None

    async def list_by_org(self, org_id: UUID) -> list[Branch]:
        branches = [
            b for b in self._store.branches.values() if b.organization_id == org_id
        ]
        branches.sort(key=lambda b: b.created_at, reverse=True)
        return branches

    async def add(self, branch: Branch) -> None:
        self._check_code(branch)
        self._store.branches[branch.id] = branch

    async def update(self, branch: Branch) -> None:
        if branch.id not in self._store.branches:
            raise KeyError("branch not found")
        self._check_code(branch)
        self._store.branches[branch.id] = branch

    async def delete(self, branch_id: UUID) -> None:
        # Mirrors the foreign keys: assignments cascade, users are detached.
        self._store.branches.pop(branch_id, None)
        for key in [k for k in self._store.course_branches if k[1] == branch_id]:
            del self._store.course_branches[key]
        for user in list(self._store.users.values()):
            if user.branch_id == branch_id:
                self._store.users[user.id] = replace(user, branch_id=None)

    def _check_code(self, branch: Branch) -> None:
        for other in self._store.branches.values():
            if (
                other.id != branch.id
                and other.organization_id == branch.organization_id
                and other.code == branch.code
            ):
                raise DuplicateKeyError(UQ_BRANCH_ORG_CODE)
