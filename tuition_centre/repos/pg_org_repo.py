"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.db.integrity import flush_unique
from tuition_centre.db.tables import OrganizationRow
from tuition_centre.models.organization import (
    Organization,
    PlanStatus,
    SubscriptionPlan,
)


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        row = await self._session.get(OrganizationRow, org_id)
        return _row_to_org(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def get_by_email(self, email: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.email == email)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def add(self, org: Organization) -> None:
        row = OrganizationRow(
            id=org.id,
            name=org.name,
            email=org.email,
            slug=org.slug,
            phone=org.phone,
            address=org.address,
            country=org.country,
            plan=org.plan.value,
            plan_status=org.plan_status.value,
            trial_ends_at=org.trial_ends_at,
            is_active=org.is_active,
            created_at=org.created_at,
            updated_at=org.updated_at,
        )
        self._session.add(row)
        await flush_unique(self._session)


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        email=row.email,
        slug=row.slug,
        plan=SubscriptionPlan(row.plan),
        plan_status=PlanStatus(row.plan_status),
        trial_ends_at=row.trial_ends_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        phone=row.phone,
        address=row.address,
        country=row.country,
        is_active=row.is_active,
    )
