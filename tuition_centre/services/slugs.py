"""Tenant slug normalization and uniqueness resolution."""

from __future__ import annotations

import logging
import re

from tuition_centre.core.errors import ConflictError, ValidationError
from tuition_centre.repos.org_repo import OrgRepo

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
# Width of organizations.slug.
SLUG_MAX_LENGTH = 255

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_HYPHEN_RUN = re.compile(r"-{2,}")


def normalize_slug(raw: str) -> str:
    """Turn a display name or slug candidate into canonical slug form.

    >>> normalize_slug("ABC Tuition Centre!!")
    'abc-tuition-centre'
    """
    slug = _NON_ALNUM_RUN.sub("-", raw.lower())
    slug = _HYPHEN_RUN.sub("-", slug).strip("-")
    slug = slug[:SLUG_MAX_LENGTH].rstrip("-")
    if not slug:
        raise ValidationError("invalid organization name or slug")
    return slug


async def resolve_slug(orgs: OrgRepo, candidate: str, *, explicit: bool) -> str:
    """Return a slug that no organization uses yet.

    An explicit (user-chosen) slug is never renamed: if it is taken the
    caller gets a ConflictError.  A slug derived from the organization name
    is suffixed ``-2``, ``-3``, ... until a free one is found.
    """
    base = normalize_slug(candidate)
    if await orgs.get_by_slug(base) is None:
        return base
    if explicit:
        raise ConflictError("slug already in use")

    n = 2
    while await orgs.get_by_slug(_suffixed(base, n)) is not None:
        n += 1
    slug = _suffixed(base, n)
    logger.debug("Slug %s taken, resolved to %s", base, slug)
    return slug


def _suffixed(base: str, n: int) -> str:
    # Trim the base so the suffixed slug still fits the column.
    suffix = f"-{n}"
    return base[: SLUG_MAX_LENGTH - len(suffix)].rstrip("-") + suffix
