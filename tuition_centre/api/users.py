"""User management inside the caller's organization (/users).

SUPER_ADMIN and BRANCH_ADMIN manage accounts and onboard teachers and
students; any signed-in user may change their own password.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field, field_validator

from tuition_centre.api.dependencies import AdminUser, ContainerDep, CurrentUser
from tuition_centre.api.schemas import (
    Email,
    MessageOut,
    Phone,
    StudentProfileOut,
    UserOut,
    to_changes,
)
from tuition_centre.models.profile import ContactMethod, Gender, Teacher
from tuition_centre.models.user import Role
from tuition_centre.services.password_service import check_password_policy
from tuition_centre.services.profile_service import (
    ParentSignup,
    StudentSignup,
    TeacherSignup,
)

router = APIRouter(prefix="/users", tags=["users"])


class UserIn(BaseModel):
    email: Email
    password: str
    name: str = Field(min_length=1, max_length=255)
    role: Role
    branchId: UUID | None = None
    phone: Phone | None = None
    address: str | None = None

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        return check_password_policy(value)


class UserPatch(BaseModel):
    email: Email | None = None
    password: str | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: Role | None = None
    branchId: UUID | None = None
    phone: Phone | None = None
    address: str | None = None
    isActive: bool | None = None

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: str | None) -> str | None:
        return check_password_policy(value) if value is not None else None


class ChangePasswordIn(BaseModel):
    oldPassword: str = Field(min_length=1)
    newPassword: str

    @field_validator("newPassword")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        return check_password_policy(value)


class TemporaryPasswordOut(BaseModel):
    message: str
    temporaryPassword: str


class TeacherIn(BaseModel):
    email: Email
    name: str = Field(min_length=1, max_length=255)
    branchId: UUID
    phone: Phone | None = None
    address: str | None = None
    employeeId: str | None = Field(default=None, max_length=64)
    employmentStartDate: date | None = None
    dateOfBirth: date | None = None
    gender: Gender | None = None
    emergencyContactName: str | None = Field(default=None, max_length=255)
    emergencyContactPhone: Phone | None = None


class StudentDetailsIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    branchId: UUID
    email: Email | None = None
    phone: Phone | None = None
    address: str | None = None
    dateOfBirth: date
    gender: Gender
    grade: str = Field(min_length=1, max_length=64)
    schoolName: str = Field(min_length=1, max_length=255)
    medicalInfo: str | None = None
    specialNeeds: str | None = None
    previousTuitionCentre: str | None = Field(default=None, max_length=255)
    referralSource: str | None = Field(default=None, max_length=255)


class ParentIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: Email
    relationship: str = Field(min_length=1, max_length=64)
    phone: Phone | None = None
    address: str | None = None
    occupation: str | None = Field(default=None, max_length=255)
    officePhone: Phone | None = None
    preferredContactMethod: ContactMethod | None = None


class StudentSignupIn(BaseModel):
    student: StudentDetailsIn
    parent: ParentIn


class TeacherProfileOut(BaseModel):
    id: str
    userId: str
    teacherCode: str
    employeeId: str | None
    employmentStartDate: date | None
    dateOfBirth: date | None
    gender: Gender | None
    emergencyContactName: str | None
    emergencyContactPhone: str | None
    createdAt: datetime

    @staticmethod
    def from_model(t: Teacher) -> TeacherProfileOut:
        return TeacherProfileOut(
            id=str(t.id),
            userId=str(t.user_id),
            teacherCode=t.teacher_code,
            employeeId=t.employee_id,
            employmentStartDate=t.employment_start_date,
            dateOfBirth=t.date_of_birth,
            gender=t.gender,
            emergencyContactName=t.emergency_contact_name,
            emergencyContactPhone=t.emergency_contact_phone,
            createdAt=t.created_at,
        )


class TeacherOut(BaseModel):
    user: UserOut
    teacher: TeacherProfileOut


class CreatedTeacherOut(TeacherOut):
    temporaryPassword: str
    message: str


class StudentOut(BaseModel):
    user: UserOut
    details: StudentProfileOut


class CreatedStudentOut(StudentOut):
    temporaryPassword: str


class CreatedParentOut(BaseModel):
    user: UserOut
    # Null when an existing parent account was reused.
    temporaryPassword: str | None
    isNewParent: bool


class StudentSignupOut(BaseModel):
    student: CreatedStudentOut
    parent: CreatedParentOut
    message: str


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserIn, principal: AdminUser, container: ContainerDep
) -> UserOut:
    user = await container.users.create(
        principal,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
        branch_id=payload.branchId,
        phone=payload.phone,
        address=payload.address,
    )
    return UserOut.from_model(user)


@router.get("", response_model=list[UserOut])
async def list_users(
    principal: AdminUser,
    container: ContainerDep,
    role: Role | None = None,
    branch_id: Annotated[UUID | None, Query(alias="branchId")] = None,
    is_active: Annotated[bool | None, Query(alias="isActive")] = None,
) -> list[UserOut]:
    users = await container.users.list(
        principal, role=role, branch_id=branch_id, is_active=is_active
    )
    return [UserOut.from_model(u) for u in users]


@router.post(
    "/teachers", response_model=CreatedTeacherOut, status_code=status.HTTP_201_CREATED
)
async def create_teacher(
    payload: TeacherIn, principal: AdminUser, container: ContainerDep
) -> CreatedTeacherOut:
    signup = TeacherSignup(**to_changes(payload, only_sent=False))
    account = await container.profiles.create_teacher(principal, signup)
    return CreatedTeacherOut(
        user=UserOut.from_model(account.user),
        teacher=TeacherProfileOut.from_model(account.teacher),
        temporaryPassword=account.temporary_password,
        message="Teacher created successfully",
    )


@router.get("/teachers", response_model=list[TeacherOut])
async def list_teachers(principal: AdminUser, container: ContainerDep) -> list[TeacherOut]:
    rows = await container.profiles.list_teachers(principal)
    return [
        TeacherOut(user=UserOut.from_model(u), teacher=TeacherProfileOut.from_model(t))
        for t, u in rows
    ]


@router.post(
    "/students", response_model=StudentSignupOut, status_code=status.HTTP_201_CREATED
)
async def create_student(
    payload: StudentSignupIn, principal: AdminUser, container: ContainerDep
) -> StudentSignupOut:
    account = await container.profiles.create_student(
        principal,
        StudentSignup(**to_changes(payload.student, only_sent=False)),
        ParentSignup(**to_changes(payload.parent, only_sent=False)),
    )
    return StudentSignupOut(
        student=CreatedStudentOut(
            user=UserOut.from_model(account.user),
            details=StudentProfileOut.from_model(account.student),
            temporaryPassword=account.temporary_password,
        ),
        parent=CreatedParentOut(
            user=UserOut.from_model(account.parent_user),
            temporaryPassword=account.parent_temporary_password,
            isNewParent=account.is_new_parent,
        ),
        message="Student created successfully",
    )


@router.get("/students", response_model=list[StudentOut])
async def list_students(principal: AdminUser, container: ContainerDep) -> list[StudentOut]:
    rows = await container.profiles.list_students(principal)
    return [
        StudentOut(user=UserOut.from_model(u), details=StudentProfileOut.from_model(s))
        for s, u in rows
    ]


# Declared before /{user_id} routes so "change-password" is never read as an id,
# like "teachers" and "students" above.
@router.post("/change-password", response_model=MessageOut)
async def change_password(
    payload: ChangePasswordIn, principal: CurrentUser, container: ContainerDep
) -> MessageOut:
    await container.users.change_password(
        principal, payload.oldPassword, payload.newPassword
    )
    return MessageOut(message="Password changed successfully")


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: UUID, principal: AdminUser, container: ContainerDep
) -> UserOut:
    return UserOut.from_model(await container.users.get(principal, user_id))


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: UUID,
    payload: UserPatch,
    principal: AdminUser,
    container: ContainerDep,
) -> UserOut:
    changes = to_changes(
        payload, required=("email", "password", "name", "role", "is_active")
    )
    user = await container.users.update(principal, user_id, changes)
    return UserOut.from_model(user)


@router.delete("/{user_id}", response_model=MessageOut)
async def deactivate_user(
    user_id: UUID, principal: AdminUser, container: ContainerDep
) -> MessageOut:
    await container.users.deactivate(principal, user_id)
    return MessageOut(message="User deactivated successfully")


@router.post("/{user_id}/reactivate", response_model=MessageOut)
async def reactivate_user(
    user_id: UUID, principal: AdminUser, container: ContainerDep
) -> MessageOut:
    await container.users.reactivate(principal, user_id)
    return MessageOut(message="User reactivated successfully")


@router.post("/{user_id}/reset-password", response_model=TemporaryPasswordOut)
async def reset_password(
    user_id: UUID, principal: AdminUser, container: ContainerDep
) -> TemporaryPasswordOut:
    temporary = await container.users.reset_password(principal, user_id)
    return TemporaryPasswordOut(
        message="Password reset successfully", temporaryPassword=temporary
    )
