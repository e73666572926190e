"""PostgreSQL implementation of BranchRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique, unique_violations
from tuition_centre.db.tables import BranchRow
from tuition_centre.models.branch import Branch


class PgBranchRepo:
    """Satisfies the BranchRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID, branch_id: UUID) -> Branch | None:
        stmt = select(BranchRow).where(
            BranchRow.id == branch_id, BranchRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_branch(row) if row is not None else None

    async def get_by_code(self, org_id: UUID, code: str) -> Branch | None:
        stmt = select(BranchRow).where(
            BranchRow.code == code, BranchRow.organization_id == org_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_branch(row) if row is not None else None

    async def list_by_org(self, org_id: UUID) -> list[Branch]:
        stmt = (
            select(BranchRow)
            .where(BranchRow.organization_id == org_id)
            .order_by(BranchRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_branch(r) for r in rows]

    async def add(self, branch: Branch) -> None:
        self._session.add(
            BranchRow(
                id=branch.id,
                organization_id=branch.organization_id,
                name=branch.name,
                code=branch.code,
                address=branch.address,
                phone=branch.phone,
                email=branch.email,
                is_active=branch.is_active,
                created_at=branch.created_at,
                updated_at=branch.updated_at,
            )
        )
        await flush_unique(self._session)

    async def update(self, branch: Branch) -> None:
        stmt = (
            update(BranchRow)
            .where(BranchRow.id == branch.id)
            .values(
                name=branch.name,
                code=branch.code,
                address=branch.address,
                phone=branch.phone,
                email=branch.email,
                is_active=branch.is_active,
                updated_at=branch.updated_at,
            )
        )
        with unique_violations():
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("branch not found")

    async def delete(self, branch_id: UUID) -> None:
        # course_branches cascade and users.branch_id is nulled by the FKs.
        await self._session.execute(delete(BranchRow).where(BranchRow.id == branch_id))


def _row_to_branch(row: BranchRow) -> Branch:
    return Branch(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        code=row.code,
        created_at=row.created_at,
        updated_at=row.updated_at,
        address=row.address,
        phone=row.phone,
        email=row.email,
        is_active=row.is_active,
    )
