from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import ADMIN_PASSWORD, bearer, create_branch, create_user, login


def _branch_admin(client: TestClient, tenant: dict[str, Any], branch_id: str) -> dict[str, str]:
    create_user(client, tenant["headers"], email="ba@abctuition.com", role="BRANCH_ADMIN", branch_id=branch_id)
    return bearer(login(client, tenant["organization"]["slug"], "ba@abctuition.com"))


def test_create_user(client: TestClient, tenant: dict[str, Any]) -> None:
    branch = create_branch(client, tenant["headers"])
    user = create_user(
        client, tenant["headers"], email="Tina@ABCtuition.com", role="TEACHER", branch_id=branch["id"]
    )
    assert user["email"] == "tina@abctuition.com"
    assert user["role"] == "TEACHER"
    assert user["branchId"] == branch["id"]
    assert user["organizationId"] == tenant["organization"]["id"]
    assert "passwordHash" not in user


def test_branch_bound_role_without_branch_is_400(client: TestClient, tenant: dict[str, Any]) -> None:
    resp = client.post(
        "/users",
        json={"email": "s@abctuition.com", "password": ADMIN_PASSWORD, "name": "S", "role": "STUDENT"},
        headers=tenant["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Branch is required for STUDENT role"


def test_branch_from_elsewhere_is_404(client: TestClient, tenant: dict[str, Any]) -> None:
    resp = client.post(
        "/users",
        json={
            "email": "t@abctuition.com",
            "password": ADMIN_PASSWORD,
            "name": "T",
            "role": "TEACHER",
            "branchId": str(uuid4()),
        },
        headers=tenant["headers"],
    )
    assert resp.status_code == 404
    assert resp.json()["message"] == "Branch not found in this organization"


def test_duplicate_email_is_409(client: TestClient, tenant: dict[str, Any]) -> None:
    resp = client.post(
        "/users",
        json={"email": "admin@abctuition.com", "password": ADMIN_PASSWORD, "name": "Dup", "role": "PARENT"},
        headers=tenant["headers"],
    )
    assert resp.status_code == 409


def test_weak_password_is_400(client: TestClient, tenant: dict[str, Any]) -> None:
    resp = client.post(
        "/users",
        json={"email": "p@abctuition.com", "password": "password", "name": "P", "role": "PARENT"},
        headers=tenant["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["message"][0].startswith("password:")


def test_list_filters(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    branch = create_branch(client, headers)
    teacher = create_user(client, headers, email="t@abctuition.com", role="TEACHER", branch_id=branch["id"])
    parent = create_user(client, headers, email="p@abctuition.com", role="PARENT")

    everyone = client.get("/users", headers=headers).json()
    assert [u["id"] for u in everyone] == [parent["id"], teacher["id"], tenant["adminUser"]["id"]]

    teachers = client.get("/users", params={"role": "TEACHER"}, headers=headers).json()
    assert [u["id"] for u in teachers] == [teacher["id"]]

    in_branch = client.get("/users", params={"branchId": branch["id"]}, headers=headers).json()
    assert [u["id"] for u in in_branch] == [teacher["id"]]


def test_branch_admin_is_scoped_to_own_branch(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    hq = create_branch(client, headers, code="HQ")
    east = create_branch(client, headers, code="EAST")
    ba = _branch_admin(client, tenant, hq["id"])
    mine = create_user(client, headers, email="mine@abctuition.com", role="TEACHER", branch_id=hq["id"])
    theirs = create_user(client, headers, email="theirs@abctuition.com", role="TEACHER", branch_id=east["id"])

    visible = {u["id"] for u in client.get("/users", headers=ba).json()}
    assert mine["id"] in visible
    assert theirs["id"] not in visible
    assert tenant["adminUser"]["id"] not in visible

    assert client.get(f"/users/{theirs['id']}", headers=ba).status_code == 404
    assert client.delete(f"/users/{theirs['id']}", headers=ba).status_code == 404


def test_branch_admin_cannot_create_super_admin(client: TestClient, tenant: dict[str, Any]) -> None:
    hq = create_branch(client, tenant["headers"])
    ba = _branch_admin(client, tenant, hq["id"])
    resp = client.post(
        "/users",
        json={"email": "boss@abctuition.com", "password": ADMIN_PASSWORD, "name": "Boss", "role": "SUPER_ADMIN"},
        headers=ba,
    )
    assert resp.status_code == 403


def test_teacher_cannot_manage_users(client: TestClient, tenant: dict[str, Any]) -> None:
    hq = create_branch(client, tenant["headers"])
    create_user(client, tenant["headers"], email="t@abctuition.com", role="TEACHER", branch_id=hq["id"])
    teacher = bearer(login(client, tenant["organization"]["slug"], "t@abctuition.com"))
    assert client.get("/users", headers=teacher).status_code == 403


def test_patch_user(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    hq = create_branch(client, headers, code="HQ")
    east = create_branch(client, headers, code="EAST")
    user = create_user(client, headers, email="t@abctuition.com", role="TEACHER", branch_id=hq["id"])

    resp = client.patch(
        f"/users/{user['id']}",
        json={"name": "Tina Tan", "branchId": east["id"], "phone": "012-345"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Tina Tan"
    assert body["branchId"] == east["id"]
    assert body["phone"] == "012-345"


def test_patch_email_clash_is_409(client: TestClient, tenant: dict[str, Any]) -> None:
    user = create_user(client, tenant["headers"], email="p@abctuition.com", role="PARENT")
    resp = client.patch(
        f"/users/{user['id']}", json={"email": "admin@abctuition.com"}, headers=tenant["headers"]
    )
    assert resp.status_code == 409


def test_deactivate_and_reactivate(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    user = create_user(client, headers, email="p@abctuition.com", role="PARENT")

    resp = client.delete(f"/users/{user['id']}", headers=headers)
    assert resp.json() == {"message": "User deactivated successfully"}
    assert client.get(f"/users/{user['id']}", headers=headers).json()["isActive"] is False

    resp = client.post(f"/users/{user['id']}/reactivate", headers=headers)
    assert resp.json() == {"message": "User reactivated successfully"}
    login(client, tenant["organization"]["slug"], "p@abctuition.com")


def test_super_admin_cannot_be_deleted(client: TestClient, tenant: dict[str, Any]) -> None:
    resp = client.delete(f"/users/{tenant['adminUser']['id']}", headers=tenant["headers"])
    assert resp.status_code == 403
    assert resp.json()["message"] == "Cannot delete Super Admin users"


def test_patch_cannot_deactivate_super_admins(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    second = create_user(client, headers, email="boss@abctuition.com", role="SUPER_ADMIN")

    for user_id in (second["id"], tenant["adminUser"]["id"]):
        resp = client.patch(f"/users/{user_id}", json={"isActive": False}, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["message"] == "Cannot deactivate Super Admin users"
        assert client.get(f"/users/{user_id}", headers=headers).json()["isActive"] is True


def test_branch_admin_cannot_reassign_branch(client: TestClient, tenant: dict[str, Any]) -> None:
    headers = tenant["headers"]
    hq = create_branch(client, headers, code="HQ")
    east = create_branch(client, headers, code="EAST")
    ba = _branch_admin(client, tenant, hq["id"])
    user = create_user(client, headers, email="t@abctuition.com", role="TEACHER", branch_id=hq["id"])

    resp = client.patch(f"/users/{user['id']}", json={"branchId": east["id"]}, headers=ba)
    assert resp.status_code == 403
    assert client.get(f"/users/{user['id']}", headers=ba).json()["branchId"] == hq["id"]


def test_change_own_password(client: TestClient, tenant: dict[str, Any]) -> None:
    slug = tenant["organization"]["slug"]
    resp = client.post(
        "/users/change-password",
        json={"oldPassword": "Wr0ng-password!", "newPassword": "N3w#Password"},
        headers=tenant["headers"],
    )
    assert resp.status_code == 401
    assert resp.json()["message"] == "Current password is incorrect"

    resp = client.post(
        "/users/change-password",
        json={"oldPassword": ADMIN_PASSWORD, "newPassword": "N3w#Password"},
        headers=tenant["headers"],
    )
    assert resp.status_code == 200
    assert resp.json() == {"message": "Password changed successfully"}
    login(client, slug, password="N3w#Password")


def test_any_signed_in_user_can_change_password(client: TestClient, tenant: dict[str, Any]) -> None:
    user = create_user(client, tenant["headers"], email="p@abctuition.com", role="PARENT")
    parent = bearer(login(client, tenant["organization"]["slug"], user["email"]))
    resp = client.post(
        "/users/change-password",
        json={"oldPassword": ADMIN_PASSWORD, "newPassword": "Par3nt#Pass"},
        headers=parent,
    )
    assert resp.status_code == 200


def test_reset_password(client: TestClient, tenant: dict[str, Any]) -> None:
    user = create_user(client, tenant["headers"], email="p@abctuition.com", role="PARENT")
    resp = client.post(f"/users/{user['id']}/reset-password", headers=tenant["headers"])
    assert resp.status_code == 200
    temporary = resp.json()["temporaryPassword"]
    login(client, tenant["organization"]["slug"], "p@abctuition.com", temporary)
