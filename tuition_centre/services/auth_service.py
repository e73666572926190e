from __future__ import annotations

import logging
from dataclasses import dataclass

import jwt

from tuition_centre.core.errors import UnauthorizedError
from tuition_centre.core.metrics import LOGIN_ATTEMPTS
from tuition_centre.db.unit_of_work import UnitOfWorkFactory
from tuition_centre.models.organization import Organization
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import User
from tuition_centre.services.password_service import PasswordService
from tuition_centre.services.token_service import TokenService

logger = logging.getLogger(__name__)

# One message for every login failure so callers cannot tell which
# organizations or accounts exist.
INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True, slots=True)
class LoginResult:
    access_token: str
    user: User
    organization: Organization


class AuthService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        passwords: PasswordService,
        tokens: TokenService,
    ) -> None:
        self._uow_factory = uow_factory
        self._passwords = passwords
        self._tokens = tokens

    async def login(self, organization_slug: str, email: str, password: str) -> LoginResult:
        """Verify an (organization, email, password) triple and mint a token.

        Missing or inactive organization, missing or inactive user and a
        wrong password all raise the same UnauthorizedError, and each of
        them costs exactly one argon2 verification.
        """
        async with self._uow_factory() as uow:
            org = await uow.orgs.get_by_slug(organization_slug)
            user = None
            if org is not None and org.is_active:
                user = await uow.users.get_by_email(org.id, email)

        if user is None or not user.is_active:
            await self._passwords.verify(password, self._passwords.dummy_hash)
            verified = False
        else:
            verified = await self._passwords.verify(password, user.password_hash)

        if not verified:
            LOGIN_ATTEMPTS.labels(result="failure").inc()
            logger.warning("Failed login for %s in org %s", email, organization_slug)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        await self._maybe_rehash(user, password)

        LOGIN_ATTEMPTS.labels(result="success").inc()
        logger.info(
            "User %s logged in to org %s",
            user.id,
            org.slug,
            extra={"organization_id": str(org.id), "user_id": str(user.id)},
        )
        return LoginResult(
            access_token=self._tokens.create_access_token(user, org),
            user=user,
            organization=org,
        )

    async def _maybe_rehash(self, user: User, password: str) -> None:
        # Upgrade stored hashes when the argon2 parameters have changed.
        if not self._passwords.needs_rehash(user.password_hash):
            return
        new_hash = await self._passwords.hash(password)
        async with self._uow_factory() as uow:
            await uow.users.update_password_hash(user.id, new_hash)
            await uow.commit()
        logger.info("Rehashed password for user=%s", user.id)

    async def authenticate_token(self, raw_token: str) -> Principal:
        """Turn a bearer token into a Principal, re-checking storage.

        A token for a user or organization that has since been deactivated
        (or removed) is rejected even though its signature is still valid.
        """
        try:
            claims = self._tokens.decode_access_token(raw_token)
        except jwt.ExpiredSignatureError:
            logger.warning("Expired token rejected")
            raise UnauthorizedError("Token expired") from None
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token rejected: %s", e)
            raise UnauthorizedError("Invalid token") from None

        async with self._uow_factory() as uow:
            org = await uow.orgs.get_by_id(claims.organization_id)
            user = await uow.users.get_by_id(claims.organization_id, claims.user_id)

        if org is None or not org.is_active or user is None or not user.is_active:
            logger.warning(
                "Token rejected: user=%s org=%s no longer active",
                claims.user_id,
                claims.organization_id,
            )
            raise UnauthorizedError("Invalid token")

        return Principal(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            organization_id=org.id,
            organization_slug=org.slug,
            branch_id=user.branch_id,
        )

    async def current_account(self, principal: Principal) -> tuple[User, Organization]:
        async with self._uow_factory() as uow:
            user = await uow.users.get_by_id(principal.organization_id, principal.user_id)
            org = await uow.orgs.get_by_id(principal.organization_id)
        if user is None or org is None:
            raise UnauthorizedError("Invalid token")
        return user, org
