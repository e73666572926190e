"""JWT access token creation and validation (HS256).

Tokens are stateless: nothing is stored server-side, so logout cannot
revoke one and a token stays valid until ``exp``.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from tuition_centre.models.organization import Organization
from tuition_centre.models.user import Role, User

ALGORITHM = "HS256"
ISSUER = "tuition-centre-api"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    user_id: UUID
    email: str
    organization_id: UUID
    organization_slug: str
    role: Role


class TokenService:
    def __init__(
        self,
        secret: str,
        expires_in: timedelta,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret = secret
        self._expires_in = expires_in
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def expires_in(self) -> timedelta:
        return self._expires_in

    def create_access_token(self, user: User, org: Organization) -> str:
        """Sign the tenant-scoped claim set for ``user``.

        Claims: sub (user id), email, organizationId, organizationSlug,
        role, plus iss/iat/exp/jti.
        """
        now = self._clock()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "organizationId": str(org.id),
            "organizationSlug": org.slug,
            "role": user.role.value,
            "iss": ISSUER,
            "iat": now,
            "exp": now + self._expires_in,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode_access_token(self, token: str) -> TokenClaims:
        """Verify signature and claims.

        Pins the algorithm to prevent alg:none and alg-switching attacks.
        Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
        """
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            options={
                "require": [
                    "sub",
                    "exp",
                    "iat",
                    "email",
                    "organizationId",
                    "organizationSlug",
                    "role",
                ]
            },
        )
        try:
            return TokenClaims(
                user_id=UUID(payload["sub"]),
                email=payload["email"],
                organization_id=UUID(payload["organizationId"]),
                organization_slug=payload["organizationSlug"],
                role=Role(payload["role"]),
            )
        except (TypeError, ValueError) as exc:
            raise jwt.InvalidTokenError(f"malformed claims: {exc}") from exc
