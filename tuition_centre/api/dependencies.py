from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tuition_centre.container import Container
from tuition_centre.core.errors import ForbiddenError, UnauthorizedError
from tuition_centre.middleware.request_context import organization_id_var, user_id_var
from tuition_centre.models.principal import Principal
from tuition_centre.models.user import Role

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    return request.app.state.container


ContainerDep = Annotated[Container, Depends(get_container)]


async def require_user(
    container: ContainerDep,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Validate the bearer token and return the caller's Principal.

    Used as a FastAPI dependency on every tenant-scoped endpoint.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authenticated")

    principal = await container.auth.authenticate_token(credentials.credentials)
    organization_id_var.set(str(principal.organization_id))
    user_id_var.set(str(principal.user_id))
    logger.debug("Token validated for user=%s role=%s", principal.user_id, principal.role)
    return principal


CurrentUser = Annotated[Principal, Depends(require_user)]


def require_roles(*roles: Role) -> Callable[..., Awaitable[Principal]]:
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_roles(Role.SUPER_ADMIN, Role.BRANCH_ADMIN))
    """
    allowed = frozenset(roles)

    async def _guard(principal: CurrentUser) -> Principal:
        if not principal.has_any_role(allowed):
            logger.warning(
                "Access denied: user=%s role=%s required_any=%s",
                principal.user_id,
                principal.role,
                sorted(allowed),
            )
            raise ForbiddenError()
        return principal

    return _guard


AdminUser = Annotated[
    Principal, Depends(require_roles(Role.SUPER_ADMIN, Role.BRANCH_ADMIN))
]
SuperAdmin = Annotated[Principal, Depends(require_roles(Role.SUPER_ADMIN))]
