from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from tuition_centre.core.errors import ConflictError, DuplicateKeyError, NotFoundError
from tuition_centre.db.unit_of_work import UnitOfWorkFactory
from tuition_centre.models.branch import Branch
from tuition_centre.models.principal import Principal

logger = logging.getLogger(__name__)

BRANCH_NOT_FOUND = "Branch not found"

_UPDATABLE = frozenset({"name", "code", "address", "phone", "email", "is_active"})


def _duplicate_code(code: str) -> ConflictError:
    return ConflictError(f"Branch with code '{code}' already exists in this organization")


class BranchService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create(
        self,
        principal: Principal,
        *,
        name: str,
        code: str,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Branch:
        branch = Branch.new(
            organization_id=principal.organization_id,
            name=name,
            code=code,
            now=self._clock(),
            address=address,
            phone=phone,
            email=email,
        )
        try:
            async with self._uow_factory() as uow:
                await uow.branches.add(branch)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(code) from None
        logger.info("Created branch %s (%s)", branch.id, branch.code)
        return branch

    async def list(self, principal: Principal) -> list[Branch]:
        async with self._uow_factory() as uow:
            return await uow.branches.list_by_org(principal.organization_id)

    async def get(self, principal: Principal, branch_id: UUID) -> Branch:
        async with self._uow_factory() as uow:
            branch = await uow.branches.get_by_id(principal.organization_id, branch_id)
        if branch is None:
            raise NotFoundError(BRANCH_NOT_FOUND)
        return branch

    async def update(
        self, principal: Principal, branch_id: UUID, changes: dict[str, Any]
    ) -> Branch:
        """Apply a partial update.  Keys are Branch field names."""
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        try:
            async with self._uow_factory() as uow:
                branch = await uow.branches.get_by_id(principal.organization_id, branch_id)
                if branch is None:
                    raise NotFoundError(BRANCH_NOT_FOUND)
                updated = replace(branch, **changes, updated_at=self._clock())
                await uow.branches.update(updated)
                await uow.commit()
        except DuplicateKeyError:
            raise _duplicate_code(changes.get("code", "")) from None
        return updated

    async def delete(self, principal: Principal, branch_id: UUID) -> None:
        async with self._uow_factory() as uow:
            branch = await uow.branches.get_by_id(principal.organization_id, branch_id)
            if branch is None:
                raise NotFoundError(BRANCH_NOT_FOUND)
            if await uow.classes.exists_for_branch(branch.id):
                raise ConflictError("Cannot delete a branch that has classes")
            await uow.branches.delete(branch.id)
            await uow.commit()
        logger.info("Deleted branch %s (%s)", branch.id, branch.code)
