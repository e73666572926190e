from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tuition_centre.core.config import Settings
from tuition_centre.db.memory import InMemoryStore
from tuition_centre.db.unit_of_work import InMemoryUnitOfWork, UnitOfWorkFactory
from tuition_centre.main import create_app
from tuition_centre.services.password_service import PasswordService

TEST_JWT_SECRET = "test-secret-that-is-long-enough-for-hs256-0123"

# Cheapest argon2 settings argon2-cffi accepts; production keeps its defaults.
FAST_HASH = {"time_cost": 1, "memory_cost": 8192}

ADMIN_PASSWORD = "Str0ngP@ssword!"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "app_env": "test",
        "log_level": "info",
        "port": 8000,
        "database_url": None,
        "jwt_secret": TEST_JWT_SECRET,
        "password_time_cost": FAST_HASH["time_cost"],
        "password_memory_cost": FAST_HASH["memory_cost"],
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store: InMemoryStore) -> UnitOfWorkFactory:
    return lambda: InMemoryUnitOfWork(store)


@pytest.fixture
def passwords() -> PasswordService:
    return PasswordService(**FAST_HASH)


@pytest.fixture
def app(settings: Settings, uow_factory: UnitOfWorkFactory) -> FastAPI:
    return create_app(settings, uow_factory)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Tenant helpers
# ---------------------------------------------------------------------------


def signup_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "organizationName": "ABC Tuition Centre",
        "organizationEmail": "hello@abctuition.com",
        "adminName": "Alice Admin",
        "adminEmail": "admin@abctuition.com",
        "adminPassword": ADMIN_PASSWORD,
    }
    payload.update(overrides)
    return payload


def register_tenant(client: TestClient, **overrides: Any) -> dict[str, Any]:
    resp = client.post("/auth/register", json=signup_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def login(
    client: TestClient,
    slug: str,
    email: str = "admin@abctuition.com",
    password: str = ADMIN_PASSWORD,
) -> str:
    resp = client.post(
        "/auth/login",
        json={"email": email, "password": password, "organizationSlug": slug},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["accessToken"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tenant(client: TestClient) -> dict[str, Any]:
    """A registered tenant plus its SUPER_ADMIN's auth headers."""
    body = register_tenant(client)
    token = login(client, body["organization"]["slug"])
    return {**body, "token": token, "headers": bearer(token)}


def create_branch(
    client: TestClient, headers: dict[str, str], code: str = "HQ", name: str = "Main"
) -> dict[str, Any]:
    resp = client.post("/branches", json={"name": name, "code": code}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_user(
    client: TestClient,
    headers: dict[str, str],
    *,
    email: str,
    role: str,
    branch_id: str | None = None,
    password: str = ADMIN_PASSWORD,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "email": email,
        "password": password,
        "name": email.split("@")[0].title(),
        "role": role,
    }
    if branch_id is not None:
        payload["branchId"] = branch_id
    resp = client.post("/users", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
