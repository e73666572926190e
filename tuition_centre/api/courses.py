from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from tuition_centre.api.dependencies import (
    AdminUser,
    ContainerDep,
    SuperAdmin,
    require_roles,
)
from tuition_centre.api.schemas import to_changes
from tuition_centre.models.course import (
    Course,
    CourseBranch,
    CourseCategory,
    CourseLevel,
    DifficultyLevel,
    SessionDuration,
)
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import Role

router = APIRouter(prefix="/courses", tags=["courses"])

StaffUser = Annotated[
    Principal,
    Depends(require_roles(Role.SUPER_ADMIN, Role.BRANCH_ADMIN, Role.TEACHER)),
]

_REQUIRED = (
    "name",
    "code",
    "category",
    "difficulty_level",
    "grade_levels",
    "session_duration",
    "max_class_size",
    "min_class_size",
    "is_ongoing",
    "is_active",
    "enrollment_open",
    "is_template",
)

Fee = Annotated[float, Field(ge=0)]
ClassSize = Annotated[int, Field(ge=1, le=500)]


class CourseIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=64)
    category: CourseCategory
    difficultyLevel: DifficultyLevel = DifficultyLevel.MIXED
    gradeLevels: list[CourseLevel] = Field(min_length=1)
    sessionDuration: SessionDuration = SessionDuration.SIXTY_MIN
    maxClassSize: ClassSize = 20
    minClassSize: ClassSize = 1
    description: str | None = None
    prerequisites: str | None = None
    totalWeeks: int | None = Field(default=None, ge=1)
    isOngoing: bool = True
    baseFeePerSession: Fee | None = None
    baseFeePerMonth: Fee | None = None
    baseFeePerTerm: Fee | None = None
    materialFee: Fee | None = None
    registrationFee: Fee | None = None
    isActive: bool = True
    enrollmentOpen: bool = True
    isTemplate: bool = False


class CoursePatch(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=64)
    category: CourseCategory | None = None
    difficultyLevel: DifficultyLevel | None = None
    gradeLevels: list[CourseLevel] | None = Field(default=None, min_length=1)
    sessionDuration: SessionDuration | None = None
    maxClassSize: ClassSize | None = None
    minClassSize: ClassSize | None = None
    description: str | None = None
    prerequisites: str | None = None
    totalWeeks: int | None = Field(default=None, ge=1)
    isOngoing: bool | None = None
    baseFeePerSession: Fee | None = None
    baseFeePerMonth: Fee | None = None
    baseFeePerTerm: Fee | None = None
    materialFee: Fee | None = None
    registrationFee: Fee | None = None
    isActive: bool | None = None
    enrollmentOpen: bool | None = None
    isTemplate: bool | None = None


class CourseOut(BaseModel):
    id: str
    organizationId: str
    name: str
    code: str
    category: CourseCategory
    difficultyLevel: DifficultyLevel
    gradeLevels: list[CourseLevel]
    sessionDuration: SessionDuration
    maxClassSize: int
    minClassSize: int
    description: str | None
    prerequisites: str | None
    totalWeeks: int | None
    isOngoing: bool
    baseFeePerSession: float | None
    baseFeePerMonth: float | None
    baseFeePerTerm: float | None
    materialFee: float | None
    registrationFee: float | None
    isActive: bool
    enrollmentOpen: bool
    isTemplate: bool
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(c: Course) -> CourseOut:
        return CourseOut(
            id=str(c.id),
            organizationId=str(c.organization_id),
            name=c.name,
            code=c.code,
            category=c.category,
            difficultyLevel=c.difficulty_level,
            gradeLevels=list(c.grade_levels),
            sessionDuration=c.session_duration,
            maxClassSize=c.max_class_size,
            minClassSize=c.min_class_size,
            description=c.description,
            prerequisites=c.prerequisites,
            totalWeeks=c.total_weeks,
            isOngoing=c.is_ongoing,
            baseFeePerSession=c.base_fee_per_session,
            baseFeePerMonth=c.base_fee_per_month,
            baseFeePerTerm=c.base_fee_per_term,
            materialFee=c.material_fee,
            registrationFee=c.registration_fee,
            isActive=c.is_active,
            enrollmentOpen=c.enrollment_open,
            isTemplate=c.is_template,
            createdAt=c.created_at,
            updatedAt=c.updated_at,
        )


class AssignBranchIn(BaseModel):
    branchId: UUID
    isOffered: bool = True
    customFeePerSession: Fee | None = None
    customFeePerMonth: Fee | None = None
    customFeePerTerm: Fee | None = None
    customMaxClassSize: ClassSize | None = None
    customMinClassSize: ClassSize | None = None
    branchNotes: str | None = None


class CourseBranchOut(BaseModel):
    courseId: str
    branchId: str
    isOffered: bool
    customFeePerSession: float | None
    customFeePerMonth: float | None
    customFeePerTerm: float | None
    customMaxClassSize: int | None
    customMinClassSize: int | None
    branchNotes: str | None
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(cb: CourseBranch) -> CourseBranchOut:
        return CourseBranchOut(
            courseId=str(cb.course_id),
            branchId=str(cb.branch_id),
            isOffered=cb.is_offered,
            customFeePerSession=cb.custom_fee_per_session,
            customFeePerMonth=cb.custom_fee_per_month,
            customFeePerTerm=cb.custom_fee_per_term,
            customMaxClassSize=cb.custom_max_class_size,
            customMinClassSize=cb.custom_min_class_size,
            branchNotes=cb.branch_notes,
            createdAt=cb.created_at,
            updatedAt=cb.updated_at,
        )


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseIn, principal: AdminUser, container: ContainerDep
) -> CourseOut:
    data = to_changes(payload, only_sent=False)
    course = await container.courses.create(principal, data)
    return CourseOut.from_model(course)


@router.get("", response_model=list[CourseOut])
async def list_courses(
    principal: StaffUser,
    container: ContainerDep,
    category: CourseCategory | None = None,
    is_active: Annotated[bool | None, Query(alias="isActive")] = None,
    is_template: Annotated[bool | None, Query(alias="isTemplate")] = None,
    branch_id: Annotated[UUID | None, Query(alias="branchId")] = None,
) -> list[CourseOut]:
    courses = await container.courses.list(
        principal,
        category=category,
        is_active=is_active,
        is_template=is_template,
        branch_id=branch_id,
    )
    return [CourseOut.from_model(c) for c in courses]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: UUID, principal: StaffUser, container: ContainerDep
) -> CourseOut:
    return CourseOut.from_model(await container.courses.get(principal, course_id))


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: UUID,
    payload: CoursePatch,
    principal: AdminUser,
    container: ContainerDep,
) -> CourseOut:
    changes = to_changes(payload, required=_REQUIRED)
    course = await container.courses.update(principal, course_id, changes)
    return CourseOut.from_model(course)


@router.delete("/{course_id}", response_model=CourseOut)
async def deactivate_course(
    course_id: UUID, principal: SuperAdmin, container: ContainerDep
) -> CourseOut:
    return CourseOut.from_model(await container.courses.deactivate(principal, course_id))


@router.delete("/{course_id}/hard", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID, principal: SuperAdmin, container: ContainerDep
) -> Response:
    await container.courses.delete(principal, course_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{course_id}/branches",
    response_model=CourseBranchOut,
    status_code=status.HTTP_201_CREATED,
)
async def assign_branch(
    course_id: UUID,
    payload: AssignBranchIn,
    principal: AdminUser,
    container: ContainerDep,
) -> CourseBranchOut:
    options = to_changes(payload, required=("is_offered",))
    branch_id = options.pop("branch_id")
    assignment = await container.courses.assign_branch(
        principal, course_id, branch_id, options
    )
    return CourseBranchOut.from_model(assignment)


@router.delete("/{course_id}/branches/{branch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_branch(
    course_id: UUID,
    branch_id: UUID,
    principal: AdminUser,
    container: ContainerDep,
) -> Response:
    await container.courses.unassign_branch(principal, course_id, branch_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{course_id}/branches", response_model=list[CourseBranchOut])
async def list_course_branches(
    course_id: UUID, principal: StaffUser, container: ContainerDep
) -> list[CourseBranchOut]:
    assignments = await container.courses.list_branches(principal, course_id)
    return [CourseBranchOut.from_model(cb) for cb in assignments]
