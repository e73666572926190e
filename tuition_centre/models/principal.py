from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from tuition_centre.models.user import Role


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller, rebuilt per request from a verified token.

    The token carries user id, email, role and tenant; ``branch_id`` and
    ``name`` come from the user row, which require_user re-reads so that a
    deactivated account stops working before its token expires.
    """

    user_id: UUID
    email: str
    name: str
    role: Role
    organization_id: UUID
    organization_slug: str
    branch_id: UUID | None = None

    def has_role(self, role: Role) -> bool:
        return self.role == role

    def has_any_role(self, roles: set[Role] | frozenset[Role]) -> bool:
        return self.role in roles

    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def may_use_branch(self, branch_id: UUID | None) -> bool:
        """A BRANCH_ADMIN is confined to their own branch; other roles are not."""
        return self.role != Role.BRANCH_ADMIN or branch_id == self.branch_id
