"""Explicit wiring of settings, storage and services.

``create_app`` builds one Container and stores it on ``app.state``; route
handlers reach services through the ``get_container`` dependency.  Nothing
is created at import time, so tests can build as many isolated apps as
they like.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tuition_centre.core.config import Settings
from tuition_centre.db.engine import Database
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import (
    InMemoryUnitOfWork,
    SqlAlchemyUnitOfWork,
    UnitOfWorkFactory,
)
from tuition_centre.services.auth_service import AuthService
from tuition_centre.services.branch_service import BranchService
from tuition_centre.services.class_service import ClassService
from tuition_centre.services.course_service import CourseService
from tuition_centre.services.password_service import PasswordService
from tuition_centre.services.profile_service import ProfileService
from tuition_centre.services.registration_service import RegistrationService
from tuition_centre.services.token_service import TokenService
from tuition_centre.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    database: Database | None
    uow_factory: UnitOfWorkFactory
    passwords: PasswordService
    tokens: TokenService
    registration: RegistrationService
    auth: AuthService
    branches: BranchService
    courses: CourseService
    users: UserService
    profiles: ProfileService
    classes: ClassService


def build_container(
    settings: Settings, uow_factory: UnitOfWorkFactory | None = None
) -> Container:
    """Wire every component from ``settings``.

    With no ``uow_factory`` and no DATABASE_URL the service runs on an
    in-memory store, which is lost on restart.
    """
    database: Database | None = None
    if uow_factory is None:
        if settings.database_url:
            database = Database(settings.database_url)
            session_factory = database.session_factory
            uow_factory = lambda: SqlAlchemyUnitOfWork(session_factory)  # noqa: E731
            logger.info("Using PostgreSQL storage")
        else:
            store = InMemoryStore()
            uow_factory = lambda: InMemoryUnitOfWork(store)  # noqa: E731
            logger.warning("DATABASE_URL not set, using in-memory storage")

    passwords = PasswordService(
        time_cost=settings.password_time_cost,
        memory_cost=settings.password_memory_cost,
    )
    tokens = TokenService(settings.jwt_secret, settings.jwt_expires_in)

    return Container(
        settings=settings,
        database=database,
        uow_factory=uow_factory,
        passwords=passwords,
        tokens=tokens,
        registration=RegistrationService(uow_factory, passwords),
        auth=AuthService(uow_factory, passwords, tokens),
        branches=BranchService(uow_factory),
        courses=CourseService(uow_factory),
        users=UserService(uow_factory, passwords),
        profiles=ProfileService(uow_factory, passwords),
        classes=ClassService(uow_factory),
    )
