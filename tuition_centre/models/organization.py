from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4

TRIAL_PERIOD = timedelta(days=14)


class SubscriptionPlan(StrEnum):
    FREE_TRIAL = "FREE_TRIAL"
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class PlanStatus(StrEnum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True, slots=True)
class Organization:
    """A tenant.  ``slug`` is globally unique and never changes once assigned."""

    id: UUID
    name: str
    email: str
    slug: str
    plan: SubscriptionPlan
    plan_status: PlanStatus
    trial_ends_at: datetime | None
    created_at: datetime
    updated_at: datetime
    phone: str | None = None
    address: str | None = None
    country: str | None = None
    is_active: bool = True

    @staticmethod
    def new_trial(
        *,
        name: str,
        email: str,
        slug: str,
        now: datetime,
        plan: SubscriptionPlan = SubscriptionPlan.FREE_TRIAL,
        phone: str | None = None,
        address: str | None = None,
        country: str | None = None,
    ) -> Organization:
        # Every self-registered tenant starts in TRIAL, whatever plan it picked.
        return Organization(
            id=uuid4(),
            name=name,
            email=email,
            slug=slug,
            plan=plan,
            plan_status=PlanStatus.TRIAL,
            trial_ends_at=now + TRIAL_PERIOD,
            created_at=now,
            updated_at=now,
            phone=phone,
            address=address,
            country=country,
            is_active=True,
        )
