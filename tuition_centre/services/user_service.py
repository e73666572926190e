"""Staff, student and parent accounts inside one organization.

A BRANCH_ADMIN only ever sees users of their own branch; to them, users of
other branches do not exist (404).  SUPER_ADMIN accounts can only be
changed by another SUPER_ADMIN and can never be deactivated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from tuition_centre.core.errors import (
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from tuition_centre.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import BRANCH_BOUND_ROLES, Role, User
from tuition_centre.services.password_service import (
    PasswordService,
    generate_temporary_password,
)

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"
BRANCH_NOT_FOUND = "Branch not found in this organization"
DUPLICATE_EMAIL = "User with this email already exists in this organization"
FOREIGN_BRANCH = "Branch admins can only assign users to their own branch"

_UPDATABLE = frozenset(
    {"email", "password", "name", "role", "branch_id", "phone", "address", "is_active"}
)


class UserService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        passwords: PasswordService,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._passwords = passwords
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create(
        self,
        principal: Principal,
        *,
        email: str,
        password: str,
        name: str,
        role: Role,
        branch_id: UUID | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> User:
        if role == Role.SUPER_ADMIN and not principal.is_super_admin():
            raise ForbiddenError("Only a Super Admin can create Super Admin users")
        if role in BRANCH_BOUND_ROLES and branch_id is None:
            raise ValidationError(f"Branch is required for {role} role")
        if branch_id is not None:
            _check_branch_scope(principal, branch_id)

        async with self._uow_factory() as uow:
            if await uow.users.get_by_email(principal.organization_id, email) is not None:
                raise ConflictError(DUPLICATE_EMAIL)
            if branch_id is not None:
                await self._require_branch(uow, principal, branch_id)

        user = User.new(
            organization_id=principal.organization_id,
            email=email,
            password_hash=await self._passwords.hash(password),
            name=name,
            role=role,
            now=self._clock(),
            branch_id=branch_id,
            phone=phone,
            address=address,
        )
        try:
            async with self._uow_factory() as uow:
                await uow.users.add(user)
                await uow.commit()
        except DuplicateKeyError:
            raise ConflictError(DUPLICATE_EMAIL) from None

        logger.info("Created %s user %s", role, user.id)
        return user

    async def list(
        self,
        principal: Principal,
        *,
        role: Role | None = None,
        branch_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        if principal.role == Role.BRANCH_ADMIN:
            if branch_id is not None and branch_id != principal.branch_id:
                return []
            branch_id = principal.branch_id
            if branch_id is None:
                return []
        async with self._uow_factory() as uow:
            return await uow.users.list(
                principal.organization_id,
                role=role,
                branch_id=branch_id,
                is_active=is_active,
            )

    async def get(self, principal: Principal, user_id: UUID) -> User:
        async with self._uow_factory() as uow:
            return await self._require_visible(uow, principal, user_id)

    async def update(
        self, principal: Principal, user_id: UUID, changes: dict[str, Any]
    ) -> User:
        """Partial update.  ``password`` is re-hashed; other keys are User fields."""
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        changes = dict(changes)
        if "password" in changes:
            changes["password_hash"] = await self._passwords.hash(changes.pop("password"))

        try:
            async with self._uow_factory() as uow:
                user = await self._require_visible(uow, principal, user_id)
                if user.role == Role.SUPER_ADMIN and not principal.is_super_admin():
                    raise ForbiddenError("Cannot update Super Admin users")
                if changes.get("role") == Role.SUPER_ADMIN and not principal.is_super_admin():
                    raise ForbiddenError("Only a Super Admin can grant the Super Admin role")
                if user.role == Role.SUPER_ADMIN and changes.get("is_active") is False:
                    raise ForbiddenError("Cannot deactivate Super Admin users")
                if user.role == Role.SUPER_ADMIN and changes.get("role", user.role) != user.role:
                    raise ForbiddenError("Cannot change the role of Super Admin users")
                if "branch_id" in changes:
                    _check_branch_scope(principal, changes["branch_id"])
                if "email" in changes and changes["email"] != user.email:
                    clash = await uow.users.get_by_email(
                        principal.organization_id, changes["email"]
                    )
                    if clash is not None:
                        raise ConflictError("Email already exists in this organization")
                if changes.get("branch_id") is not None:
                    await self._require_branch(uow, principal, changes["branch_id"])

                updated = replace(user, **changes, updated_at=self._clock())
                if updated.role in BRANCH_BOUND_ROLES and updated.branch_id is None:
                    raise ValidationError(f"Branch is required for {updated.role} role")
                await uow.users.update(updated)
                await uow.commit()
        except DuplicateKeyError:
            raise ConflictError("Email already exists in this organization") from None
        return updated

    async def deactivate(self, principal: Principal, user_id: UUID) -> None:
        async with self._uow_factory() as uow:
            user = await self._require_visible(uow, principal, user_id)
            if user.role == Role.SUPER_ADMIN:
                raise ForbiddenError("Cannot delete Super Admin users")
            await uow.users.update(
                replace(user, is_active=False, updated_at=self._clock())
            )
            await uow.commit()
        logger.info("Deactivated user %s", user_id)

    async def reactivate(self, principal: Principal, user_id: UUID) -> None:
        async with self._uow_factory() as uow:
            user = await self._require_visible(uow, principal, user_id)
            await uow.users.update(replace(user, is_active=True, updated_at=self._clock()))
            await uow.commit()
        logger.info("Reactivated user %s", user_id)

    async def change_password(
        self, principal: Principal, old_password: str, new_password: str
    ) -> None:
        async with self._uow_factory() as uow:
            user = await uow.users.get_by_id(principal.organization_id, principal.user_id)
        if user is None or not await self._passwords.verify(old_password, user.password_hash):
            logger.warning("Password change rejected for user=%s", principal.user_id)
            raise UnauthorizedError("Current password is incorrect")

        new_hash = await self._passwords.hash(new_password)
        async with self._uow_factory() as uow:
            await uow.users.update_password_hash(user.id, new_hash)
            await uow.commit()
        logger.info("Password changed for user=%s", user.id)

    async def reset_password(self, principal: Principal, user_id: UUID) -> str:
        """Give the user a fresh temporary password and return it once."""
        async with self._uow_factory() as uow:
            user = await self._require_visible(uow, principal, user_id)
            if user.role == Role.SUPER_ADMIN and not principal.is_super_admin():
                raise ForbiddenError("Cannot reset Super Admin passwords")

        temporary = generate_temporary_password()
        new_hash = await self._passwords.hash(temporary)
        async with self._uow_factory() as uow:
            await uow.users.update_password_hash(user.id, new_hash)
            await uow.commit()
        logger.info("Password reset for user=%s by user=%s", user.id, principal.user_id)
        return temporary

    @staticmethod
    async def _require_visible(
        uow: UnitOfWork, principal: Principal, user_id: UUID
    ) -> User:
        user = await uow.users.get_by_id(principal.organization_id, user_id)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        if principal.role == Role.BRANCH_ADMIN and user.branch_id != principal.branch_id:
            raise NotFoundError(USER_NOT_FOUND)
        return user

    @staticmethod
    async def _require_branch(
        uow: UnitOfWork, principal: Principal, branch_id: UUID
    ) -> None:
        if await uow.branches.get_by_id(principal.organization_id, branch_id) is None:
            raise NotFoundError(BRANCH_NOT_FOUND)


def _check_branch_scope(principal: Principal, branch_id: UUID | None) -> None:
    if not principal.may_use_branch(branch_id):
        raise ForbiddenError(FOREIGN_BRANCH)
