"""Unit of work: one atomic scope over all repositories.

Usage::

    async with uow_factory() as uow:
        await uow.orgs.add(org)
        await uow.users.add(admin)
        await uow.commit()

Leaving the block without ``commit()`` (including by exception) rolls
back every write made through the unit.  Units must not be nested: the
in-memory implementation holds the store lock for the whole block.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tuition_centre.db.memory import InMemoryStore, Snapshot
from tuition_centre.repos.branch_repo import BranchRepo, InMemoryBranchRepo
from tuition_centre.repos.class_repo import ClassRepo, InMemoryClassRepo
from tuition_centre.repos.course_repo import CourseRepo, InMemoryCourseRepo
from tuition_centre.repos.org_repo import InMemoryOrgRepo, OrgRepo
from tuition_centre.repos.pg_branch_repo import PgBranchRepo
from tuition_centre.repos.pg_class_repo import PgClassRepo
from tuition_centre.repos.pg_course_repo import PgCourseRepo
from tuition_centre.repos.pg_org_repo import PgOrgRepo
from tuition_centre.repos.pg_profile_repo import PgProfileRepo
from tuition_centre.repos.pg_user_repo import PgUserRepo
from tuition_centre.repos.profile_repo import InMemoryProfileRepo, ProfileRepo
from tuition_centre.repos.user_repo import InMemoryUserRepo, UserRepo

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    orgs: OrgRepo
    users: UserRepo
    branches: BranchRepo
    courses: CourseRepo
    profiles: ProfileRepo
    classes: ClassRepo

    async def __aenter__(self) -> UnitOfWork: ...
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class SqlAlchemyUnitOfWork:
    """One AsyncSession (and so one transaction) per unit, on the primary."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._committed = False

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self._session_factory()
        self._committed = False
        self.orgs = PgOrgRepo(self._session)
        self.users = PgUserRepo(self._session)
        self.branches = PgBranchRepo(self._session)
        self.courses = PgCourseRepo(self._session)
        self.profiles = PgProfileRepo(self._session)
        self.classes = PgClassRepo(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        assert self._session is not None
        try:
            if not self._committed:
                await self._session.rollback()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        assert self._session is not None
        await self._session.commit()
        self._committed = True

    async def rollback(self) -> None:
        assert self._session is not None
        await self._session.rollback()


class InMemoryUnitOfWork:
    """Snapshot/restore over an InMemoryStore, serialized by the store lock."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._snapshot: Snapshot | None = None
        self.orgs = InMemoryOrgRepo(store)
        self.users = InMemoryUserRepo(store)
        self.branches = InMemoryBranchRepo(store)
        self.courses = InMemoryCourseRepo(store)
        self.profiles = InMemoryProfileRepo(store)
        self.classes = InMemoryClassRepo(store)

    async def __aenter__(self) -> InMemoryUnitOfWork:
        await self._store.lock.acquire()
        self._snapshot = self._store.snapshot()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if self._snapshot is not None:
                self._store.restore(self._snapshot)
                if exc_type is not None:
                    logger.debug("Rolled back in-memory unit after %s", exc_type.__name__)
        finally:
            self._snapshot = None
            self._store.lock.release()

    async def commit(self) -> None:
        # Later writes in the same unit roll back to this point.
        self._snapshot = self._store.snapshot()

    async def rollback(self) -> None:
        if self._snapshot is not None:
            self._store.restore(self._snapshot)
