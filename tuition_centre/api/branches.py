from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from tuition_centre.api.dependencies import AdminUser, ContainerDep, CurrentUser
from tuition_centre.api.schemas import Email, Phone, to_changes
from tuition_centre.models.branch import Branch

router = APIRouter(prefix="/branches", tags=["branches"])


class BranchIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=64)
    address: str | None = None
    phone: Phone | None = None
    email: Email | None = None


class BranchPatch(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=64)
    address: str | None = None
    phone: Phone | None = None
    email: Email | None = None
    isActive: bool | None = None


class BranchOut(BaseModel):
    id: str
    organizationId: str
    name: str
    code: str
    address: str | None
    phone: str | None
    email: str | None
    isActive: bool
    createdAt: datetime
    updatedAt: datetime

    @staticmethod
    def from_model(branch: Branch) -> BranchOut:
        return BranchOut(
            id=str(branch.id),
            organizationId=str(branch.organization_id),
            name=branch.name,
            code=branch.code,
            address=branch.address,
            phone=branch.phone,
            email=branch.email,
            isActive=branch.is_active,
            createdAt=branch.created_at,
            updatedAt=branch.updated_at,
        )


@router.post("", response_model=BranchOut, status_code=status.HTTP_201_CREATED)
async def create_branch(
    payload: BranchIn, principal: AdminUser, container: ContainerDep
) -> BranchOut:
    branch = await container.branches.create(
        principal,
        name=payload.name,
        code=payload.code,
        address=payload.address,
        phone=payload.phone,
        email=payload.email,
    )
    return BranchOut.from_model(branch)


@router.get("", response_model=list[BranchOut])
async def list_branches(principal: CurrentUser, container: ContainerDep) -> list[BranchOut]:
    return [BranchOut.from_model(b) for b in await container.branches.list(principal)]


@router.get("/{branch_id}", response_model=BranchOut)
async def get_branch(
    branch_id: UUID, principal: CurrentUser, container: ContainerDep
) -> BranchOut:
    return BranchOut.from_model(await container.branches.get(principal, branch_id))


@router.patch("/{branch_id}", response_model=BranchOut)
async def update_branch(
    branch_id: UUID,
    payload: BranchPatch,
    principal: AdminUser,
    container: ContainerDep,
) -> BranchOut:
    changes = to_changes(payload, required=("name", "code", "is_active"))
    branch = await container.branches.update(principal, branch_id, changes)
    return BranchOut.from_model(branch)


@router.delete("/{branch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_branch(
    branch_id: UUID, principal: AdminUser, container: ContainerDep
) -> Response:
    await container.branches.delete(principal, branch_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
