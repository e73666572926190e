from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient

from tests.conftest import bearer, create_branch, create_user, login


def _student_payload(branch_id: str, **student: Any) -> dict[str, Any]:
    details: dict[str, Any] = {
        "name": "Sam Student",
        "branchId": branch_id,
        "dateOfBirth": "2012-05-01",
        "gender": "MALE",
        "grade": "Form 1",
        "schoolName": "SMK Taman",
    }
    details.update(student)
    return {
        "student": details,
        "parent": {
            "name": "Pat Parent",
            "email": "Pat@ParentMail.com",
            "relationship": "Father",
            "preferredContactMethod": "WHATSAPP",
        },
    }


def test_create_teacher_returns_temporary_password(
    client: TestClient, tenant: dict[str, Any]
) -> None:
    branch = create_branch(client, tenant["headers"])
    resp = client.post(
        "/users/teachers",
        json={
            "email": "tina@abc.com",
            "name": "Tina",
            "branchId": branch["id"],
            "gender": "FEMALE",
        },
        headers=tenant["headers"],
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["message"] == "Teacher created successfully"
    assert body["user"]["role"] == "TEACHER"
    assert body["teacher"]["teacherCode"].startswith("TCH-")
    assert body["teacher"]["gender"] == "FEMALE"
    assert "passwordHash" not in body["user"]

    # The temporary password logs the teacher in.
    login(client, tenant["organization"]["slug"], "tina@abc.com", body["temporaryPassword"])

    listed = client.get("/users/teachers", headers=tenant["headers"])
    assert listed.status_code == 200
    assert [t["user"]["email"] for t in listed.json()] == ["tina@abc.com"]


def test_create_student_with_parent(client: TestClient, tenant: dict[str, Any]) -> None:
    branch = create_branch(client, tenant["headers"], code="KL")
    resp = client.post(
        "/users/students", json=_student_payload(branch["id"]), headers=tenant["headers"]
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["message"] == "Student created successfully"
    code = body["student"]["details"]["studentCode"]
    assert code.endswith("-KL-0001")
    assert body["student"]["user"]["email"] == f"{code.lower()}@student.temp"
    assert body["parent"]["user"]["email"] == "pat@parentmail.com"
    assert body["parent"]["user"]["role"] == "PARENT"
    assert body["parent"]["isNewParent"] is True
    assert body["parent"]["temporaryPassword"]

    again = client.post(
        "/users/students",
        json=_student_payload(branch["id"], name="Sue Student"),
        headers=tenant["headers"],
    )
    assert again.status_code == 201, again.text
    assert again.json()["parent"]["isNewParent"] is False
    assert again.json()["parent"]["temporaryPassword"] is None

    listed = client.get("/users/students", headers=tenant["headers"])
    assert len(listed.json()) == 2


def test_parent_email_of_staff_account_is_409(
    client: TestClient, tenant: dict[str, Any]
) -> None:
    branch = create_branch(client, tenant["headers"])
    resp = client.post(
        "/users/students",
        json={
            **_student_payload(branch["id"]),
            "parent": {"name": "X", "email": "admin@abctuition.com", "relationship": "Other"},
        },
        headers=tenant["headers"],
    )
    assert resp.status_code == 409
    assert client.get("/users/students", headers=tenant["headers"]).json() == []


def test_invalid_student_is_400(client: TestClient, tenant: dict[str, Any]) -> None:
    branch = create_branch(client, tenant["headers"])
    resp = client.post(
        "/users/students",
        json=_student_payload(branch["id"], gender="UNKNOWN"),
        headers=tenant["headers"],
    )
    assert resp.status_code == 400


def test_onboarding_needs_an_admin(client: TestClient, tenant: dict[str, Any]) -> None:
    branch = create_branch(client, tenant["headers"])
    create_user(
        client, tenant["headers"], email="t@abctuition.com", role="TEACHER", branch_id=branch["id"]
    )
    token = login(client, tenant["organization"]["slug"], "t@abctuition.com")
    resp = client.get("/users/students", headers=bearer(token))
    assert resp.status_code == 403


def test_branch_admin_cannot_onboard_into_other_branch(
    client: TestClient, tenant: dict[str, Any]
) -> None:
    hq = create_branch(client, tenant["headers"], code="HQ")
    east = create_branch(client, tenant["headers"], code="E1", name="East")
    create_user(
        client,
        tenant["headers"],
        email="ba@abctuition.com",
        role="BRANCH_ADMIN",
        branch_id=hq["id"],
    )
    token = login(client, tenant["organization"]["slug"], "ba@abctuition.com")
    resp = client.post(
        "/users/teachers",
        json={"email": "x@abc.com", "name": "X", "branchId": east["id"]},
        headers=bearer(token),
    )
    assert resp.status_code == 403
