"""Tenant self-registration: one organization plus its first SUPER_ADMIN.

The org-email and slug pre-checks run before the unit of work opens, so
two concurrent identical signups can both pass them.  The database unique
constraints decide that race; the loser's DuplicateKeyError is reported
as the same ConflictError the pre-check would have raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from tuition_centre.core.errors import ConflictError, DuplicateKeyError
from tuition_centre.core.metrics import REGISTRATIONS
from tuition_centre.db.tables import UQ_ORG_EMAIL, UQ_ORG_SLUG
from tuition_centre.db.unit_of_work import UnitOfWorkFactory
from tuition_centre.models.organization import Organization, SubscriptionPlan
from tuition_centre.models.user import Role, User
from tuition_centre.services.password_service import PasswordService
from tuition_centre.services.slugs import resolve_slug

logger = logging.getLogger(__name__)

_CONFLICT_MESSAGES = {
    UQ_ORG_EMAIL: "organization email already registered",
    UQ_ORG_SLUG: "slug already in use",
}


@dataclass(frozen=True, slots=True)
class TenantSignup:
    """Validated signup payload.  Emails are already lowercased."""

    organization_name: str
    organization_email: str
    admin_name: str
    admin_email: str
    admin_password: str
    organization_slug: str | None = None
    organization_phone: str | None = None
    organization_address: str | None = None
    organization_country: str | None = None
    plan: SubscriptionPlan = SubscriptionPlan.FREE_TRIAL


@dataclass(frozen=True, slots=True)
class Registration:
    organization: Organization
    admin: User


class RegistrationService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        passwords: PasswordService,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._passwords = passwords
        self._clock = clock or (lambda: datetime.now(UTC))

    async def register(self, signup: TenantSignup) -> Registration:
        explicit = signup.organization_slug is not None
        candidate = signup.organization_slug or signup.organization_name

        async with self._uow_factory() as uow:
            if await uow.orgs.get_by_email(signup.organization_email) is not None:
                REGISTRATIONS.labels(result="conflict").inc()
                logger.warning(
                    "Registration rejected: org email %s already registered",
                    signup.organization_email,
                )
                raise ConflictError(_CONFLICT_MESSAGES[UQ_ORG_EMAIL])
            try:
                slug = await resolve_slug(uow.orgs, candidate, explicit=explicit)
            except ConflictError:
                REGISTRATIONS.labels(result="conflict").inc()
                logger.warning("Registration rejected: slug %s in use", candidate)
                raise

        # Hash outside any unit of work: it is the slow step.
        password_hash = await self._passwords.hash(signup.admin_password)
        now = self._clock()

        org = Organization.new_trial(
            name=signup.organization_name,
            email=signup.organization_email,
            slug=slug,
            now=now,
            plan=signup.plan,
            phone=signup.organization_phone,
            address=signup.organization_address,
            country=signup.organization_country,
        )
        admin = User.new(
            organization_id=org.id,
            email=signup.admin_email,
            password_hash=password_hash,
            name=signup.admin_name,
            role=Role.SUPER_ADMIN,
            now=now,
        )

        try:
            async with self._uow_factory() as uow:
                await uow.orgs.add(org)
                await uow.users.add(admin)
                await uow.commit()
        except DuplicateKeyError as exc:
            REGISTRATIONS.labels(result="conflict").inc()
            logger.warning(
                "Registration lost a uniqueness race on %s (slug=%s)",
                exc.constraint,
                slug,
            )
            raise ConflictError(
                _CONFLICT_MESSAGES.get(exc.constraint, "organization already exists")
            ) from exc

        REGISTRATIONS.labels(result="created").inc()
        logger.info(
            "Registered organization %s (slug=%s plan=%s)",
            org.id,
            org.slug,
            org.plan,
            extra={"organization_id": str(org.id), "user_id": str(admin.id)},
        )
        return Registration(organization=org, admin=admin)
