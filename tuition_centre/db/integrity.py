"""Translate Postgres uniqueness violations into DuplicateKeyError."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_centre.core.errors import DuplicateKeyError
from tuition_centre.db.tables import (
    PK_COURSE_BRANCH,
    PK_PARENT_STUDENT,
    UQ_BRANCH_ORG_CODE,
    UQ_CLASS_ORG_CODE,
    UQ_COURSE_ORG_CODE,
    UQ_ENROLLMENT_CLASS_STUDENT,
    UQ_ORG_EMAIL,
    UQ_ORG_SLUG,
    UQ_PARENT_USER,
    UQ_STUDENT_ORG_CODE,
    UQ_STUDENT_USER,
    UQ_TEACHER_ORG_CODE,
    UQ_TEACHER_USER,
    UQ_USER_ORG_EMAIL,
    UQ_WAITLIST_CLASS_STUDENT,
)

UNIQUE_CONSTRAINTS = (
    UQ_ORG_EMAIL,
    UQ_ORG_SLUG,
    UQ_USER_ORG_EMAIL,
    UQ_BRANCH_ORG_CODE,
    UQ_COURSE_ORG_CODE,
    PK_COURSE_BRANCH,
    UQ_TEACHER_USER,
    UQ_TEACHER_ORG_CODE,
    UQ_STUDENT_USER,
    UQ_STUDENT_ORG_CODE,
    UQ_PARENT_USER,
    PK_PARENT_STUDENT,
    UQ_CLASS_ORG_CODE,
    UQ_ENROLLMENT_CLASS_STUDENT,
    UQ_WAITLIST_CLASS_STUDENT,
)


def violated_constraint(exc: IntegrityError) -> str | None:
    """Name of the unique constraint behind ``exc``, or None.

    asyncpg exposes ``constraint_name`` on the driver exception, which
    SQLAlchemy's adapter keeps as ``__cause__`` of ``exc.orig``.  Fall back
    to scanning the message for the names we declared.
    """
    for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name in UNIQUE_CONSTRAINTS:
            return name
    message = str(exc.orig)
    for name in UNIQUE_CONSTRAINTS:
        if name in message:
            return name
    return None


@contextmanager
def unique_violations() -> Iterator[None]:
    """Re-raise unique violations inside the block as DuplicateKeyError.

    Other integrity errors (foreign keys, not-null) propagate unchanged.
    """
    try:
        yield
    except IntegrityError as exc:
        constraint = violated_constraint(exc)
        if constraint is None:
            raise
        raise DuplicateKeyError(constraint) from exc


async def flush_unique(session: AsyncSession) -> None:
    with unique_violations():
        await session.flush()
