from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from argon2 import PasswordHasher

from tuition_centre.core.errors import UnauthorizedError
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import InMemoryUnitOfWork
from tuition_centre.services.auth_service import INVALID_CREDENTIALS, AuthService
from tuition_centre.services.password_service import PasswordService
from tuition_centre.services.registration_service import (
    Registration,
    RegistrationService,
    TenantSignup,
)
from tuition_centre.services.token_service import TokenService
from tests.conftest import ADMIN_PASSWORD, FAST_HASH, TEST_JWT_SECRET

SLUG = "abc"
EMAIL = "admin@abc.com"


def _setup(store: InMemoryStore) -> tuple[AuthService, Registration]:
    factory = lambda: InMemoryUnitOfWork(store)  # noqa: E731
    passwords = PasswordService(**FAST_HASH)
    reg = asyncio.run(
        RegistrationService(factory, passwords).register(
            TenantSignup(
                organization_name="ABC",
                organization_email="hello@abc.com",
                organization_slug=SLUG,
                admin_name="Admin",
                admin_email=EMAIL,
                admin_password=ADMIN_PASSWORD,
            )
        )
    )
    tokens = TokenService(TEST_JWT_SECRET, timedelta(hours=24))
    return AuthService(factory, passwords, tokens), reg


def test_login_returns_token_user_and_org() -> None:
    svc, reg = _setup(InMemoryStore())
    result = asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD))
    assert result.user.id == reg.admin.id
    assert result.organization.id == reg.organization.id
    assert result.access_token.count(".") == 2


@pytest.mark.parametrize(
    ("slug", "email", "password"),
    [
        ("no-such-org", EMAIL, ADMIN_PASSWORD),
        (SLUG, "nobody@abc.com", ADMIN_PASSWORD),
        (SLUG, EMAIL, "Wr0ng-password!"),
    ],
)
def test_login_failures_are_indistinguishable(slug: str, email: str, password: str) -> None:
    svc, _ = _setup(InMemoryStore())
    with pytest.raises(UnauthorizedError) as exc_info:
        asyncio.run(svc.login(slug, email, password))
    assert exc_info.value.message == INVALID_CREDENTIALS


def test_login_rejects_inactive_user() -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    store.users[reg.admin.id] = replace(reg.admin, is_active=False)
    with pytest.raises(UnauthorizedError, match=INVALID_CREDENTIALS):
        asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD))


def test_login_rejects_inactive_org() -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    store.orgs[reg.organization.id] = replace(reg.organization, is_active=False)
    with pytest.raises(UnauthorizedError, match=INVALID_CREDENTIALS):
        asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD))


@pytest.mark.parametrize(
    "failure", ["no_org", "no_user", "wrong_password", "inactive_user", "inactive_org"]
)
def test_every_login_failure_runs_one_verification(
    monkeypatch: pytest.MonkeyPatch, failure: str
) -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    slug, email, password = SLUG, EMAIL, ADMIN_PASSWORD
    if failure == "no_org":
        slug = "no-such-org"
    elif failure == "no_user":
        email = "nobody@abc.com"
    elif failure == "wrong_password":
        password = "Wr0ng-password!"
    elif failure == "inactive_user":
        store.users[reg.admin.id] = replace(reg.admin, is_active=False)
    else:
        store.orgs[reg.organization.id] = replace(reg.organization, is_active=False)

    calls: list[str] = []
    real_verify = PasswordService.verify

    async def counting_verify(self: PasswordService, plain: str, password_hash: str) -> bool:
        calls.append(password_hash)
        return await real_verify(self, plain, password_hash)

    monkeypatch.setattr(PasswordService, "verify", counting_verify)

    with pytest.raises(UnauthorizedError, match=INVALID_CREDENTIALS):
        asyncio.run(svc.login(slug, email, password))
    assert len(calls) == 1


def test_login_rehashes_outdated_hash() -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    old_hash = PasswordHasher(time_cost=2, memory_cost=8192, parallelism=1).hash(
        ADMIN_PASSWORD
    )
    store.users[reg.admin.id] = replace(reg.admin, password_hash=old_hash)

    asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD))

    stored = store.users[reg.admin.id]
    assert stored.password_hash != old_hash
    assert PasswordService(**FAST_HASH).verify_sync(ADMIN_PASSWORD, stored.password_hash)


def test_authenticate_token_builds_principal_from_storage() -> None:
    svc, reg = _setup(InMemoryStore())
    token = asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD)).access_token

    principal = asyncio.run(svc.authenticate_token(token))

    assert principal.user_id == reg.admin.id
    assert principal.organization_id == reg.organization.id
    assert principal.organization_slug == SLUG
    assert principal.is_super_admin()


def test_authenticate_token_rejects_garbage() -> None:
    svc, _ = _setup(InMemoryStore())
    with pytest.raises(UnauthorizedError, match="Invalid token"):
        asyncio.run(svc.authenticate_token("not.a.jwt"))


def test_authenticate_token_rejects_expired() -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    stale = TokenService(
        TEST_JWT_SECRET,
        timedelta(hours=1),
        clock=lambda: datetime.now(UTC) - timedelta(hours=3),
    ).create_access_token(reg.admin, reg.organization)
    with pytest.raises(UnauthorizedError, match="Token expired"):
        asyncio.run(svc.authenticate_token(stale))


def test_authenticate_token_rejects_deactivated_user() -> None:
    store = InMemoryStore()
    svc, reg = _setup(store)
    token = asyncio.run(svc.login(SLUG, EMAIL, ADMIN_PASSWORD)).access_token
    store.users[reg.admin.id] = replace(reg.admin, is_active=False)
    with pytest.raises(UnauthorizedError, match="Invalid token"):
        asyncio.run(svc.authenticate_token(token))
