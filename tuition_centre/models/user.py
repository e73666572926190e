from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4


class Role(StrEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    BRANCH_ADMIN = "BRANCH_ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


# Roles that only make sense when attached to a branch.
BRANCH_BOUND_ROLES = frozenset({Role.BRANCH_ADMIN, Role.TEACHER, Role.STUDENT})


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    organization_id: UUID
    email: str  # unique per organization, not globally
    password_hash: str
    name: str
    role: Role
    created_at: datetime
    updated_at: datetime
    branch_id: UUID | None = None
    phone: str | None = None
    address: str | None = None
    is_active: bool = True

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        email: str,
        password_hash: str,
        name: str,
        role: Role,
        now: datetime,
        branch_id: UUID | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> User:
        return User(
            id=uuid4(),
            organization_id=organization_id,
            email=email,
            password_hash=password_hash,
            name=name,
            role=role,
            created_at=now,
            updated_at=now,
            branch_id=branch_id,
            phone=phone,
            address=address,
            is_active=True,
        )
