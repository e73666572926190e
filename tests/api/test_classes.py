from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from tests.conftest import bearer, create_branch, login


class School:
    """A tenant with a branch, a course, a teacher and two students, driven over HTTP."""

    def __init__(self, client: TestClient, tenant: dict[str, Any]) -> None:
        self.client = client
        self.slug = tenant["organization"]["slug"]
        self.headers = tenant["headers"]
        self.branch = create_branch(client, self.headers)
        resp = client.post(
            "/courses",
            json={
                "name": "SPM Mathematics",
                "code": "SPM-MATH",
                "category": "SPM",
                "gradeLevels": ["FORM_4"],
            },
            headers=self.headers,
        )
        assert resp.status_code == 201, resp.text
        self.course = resp.json()
        resp = client.post(
            "/users/teachers",
            json={"email": "tina@abc.com", "name": "Tina", "branchId": self.branch["id"]},
            headers=self.headers,
        )
        assert resp.status_code == 201, resp.text
        self.teacher = resp.json()
        self.students = [self._student(name) for name in ("Amy", "Ben")]

    def _student(self, name: str) -> dict[str, Any]:
        resp = self.client.post(
            "/users/students",
            json={
                "student": {
                    "name": name,
                    "branchId": self.branch["id"],
                    "dateOfBirth": "2010-01-01",
                    "gender": "FEMALE",
                    "grade": "Form 4",
                    "schoolName": "SMK Taman",
                },
                "parent": {"name": "Pat", "email": "pat@abc.com", "relationship": "Mother"},
            },
            headers=self.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["student"]["details"]

    def payload(self, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "courseId": self.course["id"],
            "teacherId": self.teacher["teacher"]["id"],
            "name": "Form 4 Maths",
            "startDate": "2030-01-07",
            "endDate": "2030-04-26",
            "schedule": [{"day": "MONDAY", "startTime": "16:00", "endTime": "17:30"}],
            "maxCapacity": 1,
            "status": "OPEN_FOR_ENROLLMENT",
        }
        payload.update(overrides)
        return payload

    def create(self, **overrides: Any) -> dict[str, Any]:
        resp = self.client.post("/classes", json=self.payload(**overrides), headers=self.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    def enroll(self, cls: dict[str, Any], n: int) -> Any:
        return self.client.post(
            f"/classes/{cls['id']}/enroll",
            json={"studentId": self.students[n]["id"]},
            headers=self.headers,
        )


@pytest.fixture
def school(client: TestClient, tenant: dict[str, Any]) -> School:
    return School(client, tenant)


def test_create_class_fills_defaults(school: School) -> None:
    cls = school.create(feePerMonth=200)
    assert cls["branchId"] == school.branch["id"]
    assert cls["classCode"].startswith("SPM-MATH-")
    assert cls["classCode"].endswith("-A")
    assert cls["classType"] == "REGULAR_GROUP"
    assert cls["currentEnrollment"] == 0
    assert cls["feePerMonth"] == 200
    assert cls["schedule"] == [{"day": "MONDAY", "startTime": "16:00:00", "endTime": "17:30:00"}]


@pytest.mark.parametrize(
    "overrides",
    [
        {"schedule": []},
        {"schedule": [{"day": "FUNDAY", "startTime": "16:00", "endTime": "17:00"}]},
        {"maxCapacity": 0},
        {"classType": "LECTURE"},
        {"endDate": "2029-12-31"},
        {"minCapacity": 5},
    ],
)
def test_invalid_class_is_400(school: School, overrides: dict[str, Any]) -> None:
    resp = school.client.post("/classes", json=school.payload(**overrides), headers=school.headers)
    assert resp.status_code == 400


def test_unknown_teacher_is_404(school: School) -> None:
    resp = school.client.post(
        "/classes",
        json=school.payload(teacherId=school.students[0]["id"]),
        headers=school.headers,
    )
    assert resp.status_code == 404


def test_enrol_waitlist_withdraw_flow(school: School) -> None:
    cls = school.create(autoEnrollFromWaitlist=True)
    client, headers = school.client, school.headers

    first = school.enroll(cls, 0)
    assert first.status_code == 201, first.text
    assert first.json()["status"] == "ACTIVE"
    assert client.get(f"/classes/{cls['id']}", headers=headers).json()["status"] == "FULL"

    full = school.enroll(cls, 1)
    assert full.status_code == 409
    assert full.json()["message"] == "Class is full"

    waiting = client.post(
        f"/classes/{cls['id']}/waitlist",
        json={"studentId": school.students[1]["id"], "notes": "Prefers Mondays"},
        headers=headers,
    )
    assert waiting.status_code == 201, waiting.text
    assert waiting.json()["position"] == 1
    listed = client.get(f"/classes/{cls['id']}/waitlist", headers=headers).json()
    assert [w["student"]["id"] for w in listed] == [school.students[1]["id"]]

    withdrawn = client.post(
        f"/classes/{cls['id']}/students/{school.students[0]['id']}/withdraw",
        json={"reason": "Moving away"},
        headers=headers,
    )
    assert withdrawn.status_code == 200, withdrawn.text
    assert withdrawn.json() == {
        "message": "Student withdrawn successfully",
        "promotedStudentId": school.students[1]["id"],
    }

    roster = client.get(f"/classes/{cls['id']}/roster", headers=headers).json()
    assert [r["student"]["id"] for r in roster] == [school.students[1]["id"]]
    assert roster[0]["user"]["role"] == "STUDENT"
    assert client.get(f"/classes/{cls['id']}/waitlist", headers=headers).json() == []


def test_withdraw_body_is_optional(school: School) -> None:
    cls = school.create()
    school.enroll(cls, 0)
    resp = school.client.post(
        f"/classes/{cls['id']}/students/{school.students[0]['id']}/withdraw",
        headers=school.headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["promotedStudentId"] is None


def test_patch_and_cancel(school: School) -> None:
    cls = school.create(maxCapacity=2)
    client, headers = school.client, school.headers
    school.enroll(cls, 0)

    patched = client.patch(
        f"/classes/{cls['id']}", json={"maxCapacity": 1, "termName": "Term 1"}, headers=headers
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["status"] == "FULL"
    assert patched.json()["termName"] == "Term 1"

    refused = client.delete(f"/classes/{cls['id']}", headers=headers)
    assert refused.status_code == 409

    client.post(
        f"/classes/{cls['id']}/students/{school.students[0]['id']}/withdraw",
        json={},
        headers=headers,
    )
    cancelled = client.delete(f"/classes/{cls['id']}", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["isActive"] is False

    enroll = school.enroll(cls, 1)
    assert enroll.status_code == 400


def test_list_filters(school: School) -> None:
    spring = school.create(termName="Spring")
    school.create(termName="Autumn", startDate="2030-09-02", endDate="2030-12-20")

    resp = school.client.get("/classes", params={"termName": "Spring"}, headers=school.headers)
    assert [c["id"] for c in resp.json()] == [spring["id"]]
    by_status = school.client.get(
        "/classes", params={"status": "CANCELLED"}, headers=school.headers
    )
    assert by_status.json() == []
    everything = school.client.get("/classes", headers=school.headers).json()
    assert [c["termName"] for c in everything] == ["Autumn", "Spring"]


def test_teacher_reads_own_classes_only(school: School) -> None:
    own = school.create()
    other_teacher = school.client.post(
        "/users/teachers",
        json={"email": "tom@abc.com", "name": "Tom", "branchId": school.branch["id"]},
        headers=school.headers,
    ).json()
    other = school.create(teacherId=other_teacher["teacher"]["id"])

    password = school.teacher["temporaryPassword"]
    token = login(school.client, school.slug, "tina@abc.com", password)
    tina = bearer(token)

    listed = school.client.get("/classes", headers=tina).json()
    assert [c["id"] for c in listed] == [own["id"]]
    assert school.client.get(f"/classes/{other['id']}", headers=tina).status_code == 404
    assert school.client.get(f"/classes/{own['id']}/roster", headers=tina).status_code == 200
    # Reading is allowed, running the class is not.
    waitlisted = school.client.post(
        f"/classes/{own['id']}/waitlist",
        json={"studentId": school.students[1]["id"]},
        headers=tina,
    )
    assert waitlisted.status_code == 403


def test_branch_with_classes_cannot_be_deleted(school: School) -> None:
    school.create()
    resp = school.client.delete(f"/branches/{school.branch['id']}", headers=school.headers)
    assert resp.status_code == 409
    resp = school.client.delete(f"/courses/{school.course['id']}/hard", headers=school.headers)
    assert resp.status_code == 409
