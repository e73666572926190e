from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.tables import UQ_ORG_EMAIL, UQ_ORG_SLUG
from tuition_centre.models.organization import Organization


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def get_by_email(self, email: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...


class InMemoryOrgRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._store.orgs.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        for org in self._store.orgs.values():
            if org.slug == slug:
                return org
        return None

    async def get_by_email(self, email: str) -> Organization | None:
        for org in self._store.orgs.values():
            if org.email == email:
                return org
        return None

    async def add(self, org: Organization) -> None:
        # Same rules as the uq_organizations_* constraints in Postgres.
        if await self.get_by_email(org.email) is not None:
            raise DuplicateKeyError(UQ_ORG_EMAIL)
        if await self.get_by_slug(org.slug) is not None:
            raise DuplicateKeyError(UQ_ORG_SLUG)
        self._store.orgs[org.id] = org
