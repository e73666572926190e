from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from tests.conftest import register_tenant, signup_payload


def test_register_creates_org_and_super_admin(client: TestClient) -> None:
    resp = client.post("/auth/register", json=signup_payload())
    assert resp.status_code == 201
    body = resp.json()

    org = body["organization"]
    assert org["slug"] == "abc-tuition-centre"
    assert org["email"] == "hello@abctuition.com"
    assert org["plan"] == "FREE_TRIAL"
    assert org["planStatus"] == "TRIAL"
    assert org["isActive"] is True
    trial_ends = datetime.fromisoformat(org["trialEndsAt"])
    created = datetime.fromisoformat(org["createdAt"])
    assert trial_ends - created == timedelta(days=14)

    admin = body["adminUser"]
    assert admin["role"] == "SUPER_ADMIN"
    assert admin["organizationId"] == org["id"]
    assert admin["branchId"] is None
    assert "password" not in admin
    assert "passwordHash" not in admin


def test_register_lowercases_emails(client: TestClient) -> None:
    body = register_tenant(
        client,
        organizationEmail="  Hello@ABCTuition.com ",
        adminEmail="Admin@ABCTuition.com",
    )
    assert body["organization"]["email"] == "hello@abctuition.com"
    assert body["adminUser"]["email"] == "admin@abctuition.com"


def test_register_with_explicit_slug_and_optional_fields(client: TestClient) -> None:
    body = register_tenant(
        client,
        organizationSlug="abc-kl",
        organizationPhone="+60 3-1234 5678",
        organizationCountry="Malaysia",
        plan="STARTER",
    )
    org = body["organization"]
    assert org["slug"] == "abc-kl"
    assert org["phone"] == "+60 3-1234 5678"
    assert org["country"] == "Malaysia"
    assert org["plan"] == "STARTER"
    assert org["planStatus"] == "TRIAL"


def test_same_name_gets_next_free_slug(client: TestClient) -> None:
    register_tenant(client)
    second = register_tenant(client, organizationEmail="two@abctuition.com")
    third = register_tenant(client, organizationEmail="three@abctuition.com")
    assert second["organization"]["slug"] == "abc-tuition-centre-2"
    assert third["organization"]["slug"] == "abc-tuition-centre-3"


def test_suffixed_slug_of_longest_name_fits_column(client: TestClient) -> None:
    name = "a" * 255
    first = register_tenant(client, organizationName=name)
    second = register_tenant(
        client, organizationName=name, organizationEmail="two@abctuition.com"
    )
    assert first["organization"]["slug"] == name
    slug = second["organization"]["slug"]
    assert len(slug) == 255
    assert slug == "a" * 253 + "-2"


def test_duplicate_org_email_is_409(client: TestClient) -> None:
    register_tenant(client)
    resp = client.post(
        "/auth/register", json=signup_payload(organizationName="Another Centre")
    )
    assert resp.status_code == 409
    assert resp.json()["message"] == "organization email already registered"


def test_taken_explicit_slug_is_409(client: TestClient) -> None:
    register_tenant(client, organizationSlug="abc")
    resp = client.post(
        "/auth/register",
        json=signup_payload(organizationEmail="x@abctuition.com", organizationSlug="abc"),
    )
    assert resp.status_code == 409
    assert resp.json()["message"] == "slug already in use"


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"adminPassword": "weakpass"}, "adminPassword"),
        ({"adminEmail": "not-an-email"}, "adminEmail"),
        ({"organizationEmail": ""}, "organizationEmail"),
        ({"organizationName": "   "}, "organizationName"),
        ({"adminName": ""}, "adminName"),
        ({"organizationSlug": "Bad Slug!"}, "organizationSlug"),
        ({"plan": "PLATINUM"}, "plan"),
        ({"organizationPhone": "1" * 65}, "organizationPhone"),
        ({"organizationCountry": "x" * 129}, "organizationCountry"),
    ],
)
def test_invalid_payload_is_400(
    client: TestClient, overrides: dict[str, str], field: str
) -> None:
    resp = client.post("/auth/register", json=signup_payload(**overrides))
    assert resp.status_code == 400
    messages = resp.json()["message"]
    assert isinstance(messages, list)
    assert any(m.startswith(f"{field}:") for m in messages), messages


def test_name_without_alphanumerics_is_400(client: TestClient) -> None:
    resp = client.post("/auth/register", json=signup_payload(organizationName="!!!"))
    assert resp.status_code == 400
    assert resp.json()["message"] == "invalid organization name or slug"


def test_missing_fields_are_all_reported(client: TestClient) -> None:
    resp = client.post("/auth/register", json={})
    assert resp.status_code == 400
    fields = {m.split(":")[0] for m in resp.json()["message"]}
    assert {
        "organizationName",
        "organizationEmail",
        "adminName",
        "adminEmail",
        "adminPassword",
    } <= fields
