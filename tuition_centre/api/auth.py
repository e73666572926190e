"""Tenant auth endpoints: /auth/register, /auth/login, /auth/logout, /auth/me.

Tokens are stateless HS256 JWTs.  Logout only acknowledges; the client
discards its token, which stays valid until it expires.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field, field_validator

from tuition_centre.api.dependencies import ContainerDep, CurrentUser
from tuition_centre.api.schemas import (
    Country,
    Email,
    MessageOut,
    OrganizationOut,
    OrganizationSummary,
    Phone,
    UserOut,
)
from tuition_centre.models.organization import SubscriptionPlan
from tuition_centre.services.password_service import check_password_policy
from tuition_centre.services.registration_service import TenantSignup
from tuition_centre.services.slugs import SLUG_PATTERN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# --- Request / Response schemas -------------------------------------------


class RegisterIn(BaseModel):
    organizationName: str = Field(min_length=1, max_length=255)
    organizationSlug: str | None = Field(default=None, max_length=100)
    organizationEmail: Email
    organizationPhone: Phone | None = None
    organizationAddress: str | None = None
    organizationCountry: Country | None = None
    plan: SubscriptionPlan | None = None
    adminName: str = Field(min_length=1, max_length=255)
    adminEmail: Email
    adminPassword: str

    @field_validator("organizationName", "adminName")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("organizationSlug")
    @classmethod
    def _slug_shape(cls, value: str | None) -> str | None:
        if value is not None and not SLUG_PATTERN.match(value):
            raise ValueError(
                "organizationSlug must contain only lowercase letters, numbers, "
                "and hyphens"
            )
        return value

    @field_validator("adminPassword")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        return check_password_policy(value)


class RegisterOut(BaseModel):
    organization: OrganizationOut
    adminUser: UserOut


class LoginIn(BaseModel):
    email: Email
    password: str = Field(min_length=1)
    organizationSlug: str = Field(min_length=1)


class LoginOut(BaseModel):
    accessToken: str
    user: UserOut
    organization: OrganizationSummary


class MeOut(BaseModel):
    user: UserOut
    organization: OrganizationOut


# --- Endpoints --------------------------------------------------------------


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, container: ContainerDep) -> RegisterOut:
    result = await container.registration.register(
        TenantSignup(
            organization_name=payload.organizationName,
            organization_email=payload.organizationEmail,
            admin_name=payload.adminName,
            admin_email=payload.adminEmail,
            admin_password=payload.adminPassword,
            organization_slug=payload.organizationSlug,
            organization_phone=payload.organizationPhone,
            organization_address=payload.organizationAddress,
            organization_country=payload.organizationCountry,
            plan=payload.plan or SubscriptionPlan.FREE_TRIAL,
        )
    )
    return RegisterOut(
        organization=OrganizationOut.from_model(result.organization),
        adminUser=UserOut.from_model(result.admin),
    )


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, container: ContainerDep) -> LoginOut:
    result = await container.auth.login(
        payload.organizationSlug.strip().lower(), payload.email, payload.password
    )
    return LoginOut(
        accessToken=result.access_token,
        user=UserOut.from_model(result.user),
        organization=OrganizationSummary.from_model(result.organization),
    )


@router.post("/logout", response_model=MessageOut)
async def logout() -> MessageOut:
    # No server-side session exists, so there is nothing to revoke.
    return MessageOut(message="Logged out")


@router.get("/me", response_model=MeOut)
async def me(principal: CurrentUser, container: ContainerDep) -> MeOut:
    user, org = await container.auth.current_account(principal)
    return MeOut(user=UserOut.from_model(user), organization=OrganizationOut.from_model(org))
