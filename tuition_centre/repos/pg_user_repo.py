"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique, unique_violations
from tuition_centre.db.tables import UserRow
from tuition_centre.models.user import Role, User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(
            UserRow.id == user_id, UserRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_email(self, org_id: UUID, email: str) -> User | None:
        stmt = select(UserRow).where(
            UserRow.email == email, UserRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def list(
        self,
        org_id: UUID,
        *,
        role: Role | None = None,
        branch_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        stmt = select(UserRow).where(UserRow.organization_id == org_id)
        if role is not None:
            stmt = stmt.where(UserRow.role == role.value)
        if branch_id is not None:
            stmt = stmt.where(UserRow.branch_id == branch_id)
        if is_active is not None:
            stmt = stmt.where(UserRow.is_active == is_active)
        stmt = stmt.order_by(UserRow.created_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user(r) for r in rows]

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            organization_id=user.organization_id,
            branch_id=user.branch_id,
            email=user.email,
            password_hash=user.password_hash,
            name=user.name,
            role=user.role.value,
            phone=user.phone,
            address=user.address,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
        self._session.add(row)
        await flush_unique(self._session)

    async def update(self, user: User) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user.id)
            .values(
                branch_id=user.branch_id,
                email=user.email,
                password_hash=user.password_hash,
                name=user.name,
                role=user.role.value,
                phone=user.phone,
                address=user.address,
                is_active=user.is_active,
                updated_at=user.updated_at,
            )
        )
        with unique_violations():
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("user not found")

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(password_hash=password_hash)
        )
        await self._session.execute(stmt)


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        organization_id=row.organization_id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        role=Role(row.role),
        created_at=row.created_at,
        updated_at=row.updated_at,
        branch_id=row.branch_id,
        phone=row.phone,
        address=row.address,
        is_active=row.is_active,
    )
