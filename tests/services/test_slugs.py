from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from tuition_centre.core.errors import ConflictError, ValidationError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.models.organization import Organization
from tuition_centre.repos.org_repo import InMemoryOrgRepo
from tuition_centre.services.slugs import (
    SLUG_MAX_LENGTH,
    SLUG_PATTERN,
    normalize_slug,
    resolve_slug,
)


def _seed(store: InMemoryStore, *slugs: str) -> InMemoryOrgRepo:
    repo = InMemoryOrgRepo(store)
    now = datetime.now(UTC)
    for i, slug in enumerate(slugs):
        asyncio.run(
            repo.add(
                Organization.new_trial(
                    name=slug, email=f"org{i}@example.com", slug=slug, now=now
                )
            )
        )
    return repo


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("ABC Tuition Centre!!", "abc-tuition-centre"),
        ("  Bright   Minds  ", "bright-minds"),
        ("Kids_&_Co", "kids-co"),
        ("already-a-slug", "already-a-slug"),
        ("--Edge--Case--", "edge-case"),
        ("Centre 2", "centre-2"),
    ],
)
def test_normalize_slug(raw: str, expected: str) -> None:
    slug = normalize_slug(raw)
    assert slug == expected
    assert SLUG_PATTERN.match(slug)


@pytest.mark.parametrize(
    "raw",
    [
        "Café Ünïcode 123",
        "2024",
        "007 Tutors",
        "9",
        "Ｆｕｌｌ width ABC",
        "emoji 🎓 centre",
        "tab\tand\nnewline",
        "Mixed_CASE__Name",
        "-leading and trailing-",
        "a" * 300,
        "x-" * 200,
        "ab " * 120,
    ],
)
def test_normalized_slugs_are_valid_for_any_usable_name(raw: str) -> None:
    slug = normalize_slug(raw)
    assert SLUG_PATTERN.match(slug)
    assert len(slug) <= SLUG_MAX_LENGTH
    assert normalize_slug(slug) == slug


@pytest.mark.parametrize("raw", ["", "   ", "!!!", "---", "日本語"])
def test_normalize_slug_rejects_names_without_alphanumerics(raw: str) -> None:
    with pytest.raises(ValidationError, match="invalid organization name or slug"):
        normalize_slug(raw)


def test_resolve_slug_returns_base_when_free() -> None:
    repo = _seed(InMemoryStore())
    assert asyncio.run(resolve_slug(repo, "ABC Tuition", explicit=False)) == "abc-tuition"


def test_resolve_slug_appends_first_free_suffix() -> None:
    repo = _seed(InMemoryStore(), "abc-tuition")
    assert asyncio.run(resolve_slug(repo, "ABC Tuition", explicit=False)) == "abc-tuition-2"


def test_resolve_slug_skips_taken_suffixes() -> None:
    repo = _seed(InMemoryStore(), "abc", "abc-2", "abc-3")
    assert asyncio.run(resolve_slug(repo, "abc", explicit=False)) == "abc-4"


def test_resolve_slug_explicit_conflict_is_not_renamed() -> None:
    repo = _seed(InMemoryStore(), "abc")
    with pytest.raises(ConflictError, match="slug already in use"):
        asyncio.run(resolve_slug(repo, "abc", explicit=True))


def test_resolve_slug_explicit_free_slug_is_kept() -> None:
    repo = _seed(InMemoryStore(), "abc")
    assert asyncio.run(resolve_slug(repo, "my-centre", explicit=True)) == "my-centre"


def test_resolve_slug_trims_long_base_to_fit_suffix() -> None:
    base = "b" * SLUG_MAX_LENGTH
    repo = _seed(InMemoryStore(), base, "b" * (SLUG_MAX_LENGTH - 2) + "-2")
    slug = asyncio.run(resolve_slug(repo, base, explicit=False))
    assert slug == "b" * (SLUG_MAX_LENGTH - 2) + "-3"
    assert SLUG_PATTERN.match(slug)
