from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Branch:
    id: UUID
    organization_id: UUID
    name: str
    code: str  # unique per organization
    created_at: datetime
    updated_at: datetime
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool = True

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        name: str,
        code: str,
        now: datetime,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Branch:
        return Branch(
            id=uuid4(),
            organization_id=organization_id,
            name=name,
            code=code,
            created_at=now,
            updated_at=now,
            address=address,
            phone=phone,
            email=email,
        )
