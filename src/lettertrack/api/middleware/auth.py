"""Bearer token authentication.

Token issuance lives outside this service. The application is given a
token verifier, an async callable that resolves a bearer token to an
AuthenticatedUser (or None for an unknown token), and this module:
- BearerAuthMiddleware: resolves the token and sets the user context
- require_authenticated_user: dependency for protected routes
- require_role: factory for role-restricted dependencies
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from lettertrack.api.middleware.errors import AuthenticationError, AuthorizationError
from lettertrack.db.models.base import AccountRole

if TYPE_CHECKING:
    from uuid import UUID

    from starlette.responses import Response

logger = logging.getLogger(__name__)

# Context variable for the current authenticated user
current_user_ctx: ContextVar[AuthenticatedUser | None] = ContextVar("current_user", default=None)

# Bearer token security scheme for OpenAPI docs
bearer_scheme = HTTPBearer(auto_error=False)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """The caller of the current request.

    Attributes:
        account_id: Login account of the caller.
        username: Login name.
        role: Account role.
        department_id: Department bound to the account, for department users.
    """

    account_id: UUID
    username: str
    role: AccountRole
    department_id: UUID | None = None

    def has_role(self, *roles: AccountRole) -> bool:
        """Check if the user holds one of ``roles``."""
        return self.role in roles


# Resolves a bearer token to its user; None means the token is not valid
TokenVerifier = Callable[[str], Awaitable[AuthenticatedUser | None]]


def get_current_user() -> AuthenticatedUser | None:
    """Get the current authenticated user from context.

    Returns:
        The authenticated user, or None if not authenticated.
    """
    return current_user_ctx.get()


def set_current_user(user: AuthenticatedUser | None) -> None:
    """Set the current authenticated user in context."""
    current_user_ctx.set(user)


def load_token_verifier(path: str) -> TokenVerifier:
    """Import a token verifier from a ``module:attribute`` path.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        msg = f"Token verifier must be given as module:attribute, got {path!r}"
        raise ValueError(msg)
    verifier = getattr(importlib.import_module(module_name), attribute, None)
    if not callable(verifier):
        msg = f"Token verifier {path!r} is not callable"
        raise ValueError(msg)
    return verifier


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves bearer tokens and sets user context.

    The middleware does NOT block unauthenticated requests; that is handled
    by route-level dependencies, so public routes work unchanged.
    """

    def __init__(self, app: Any, *, token_verifier: TokenVerifier | None) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            token_verifier: Resolver for bearer tokens. Without one no
                request is ever authenticated.
        """
        super().__init__(app)
        self._token_verifier = token_verifier

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process the request and resolve the bearer token if present.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The response from the handler.
        """
        # Clear any previous user context
        set_current_user(None)

        token = self._extract_token(request)
        if token and self._token_verifier is not None:
            try:
                user = await self._token_verifier(token)
                if user:
                    set_current_user(user)
                    request.state.user = user
            except Exception:
                # Log but don't fail the request - let route dependencies handle auth
                logger.exception("Error validating bearer token")

        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        if header.lower().startswith(BEARER_PREFIX):
            return header[len(BEARER_PREFIX) :].strip() or None
        return None


async def require_authenticated_user(
    request: Request,
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ] = None,
) -> AuthenticatedUser:
    """Dependency that requires an authenticated user.

    The _credentials parameter is used for OpenAPI documentation but the
    actual authentication is handled by the middleware and context.

    Raises:
        AuthenticationError: If the user is not authenticated.
    """
    user = get_current_user()

    # Also check request state in case middleware set it there
    if not user:
        user = getattr(request.state, "user", None)

    if not user:
        raise AuthenticationError()
    return user


def require_role(*roles: AccountRole) -> Callable:
    """Factory for creating role-checking dependencies.

    Usage:
        @router.post("")
        async def create_courier(
            user: AuthenticatedUser = Depends(require_role(AccountRole.SUPER_ADMIN))
        ):
            ...

    Args:
        roles: Roles allowed through; holding any one of them is enough.

    Returns:
        A FastAPI dependency function.
    """

    async def _check_role(
        user: Annotated[AuthenticatedUser, Depends(require_authenticated_user)],
    ) -> AuthenticatedUser:
        if not user.has_role(*roles):
            logger.info(
                "Role check failed",
                extra={"account_id": str(user.account_id), "role": user.role.value},
            )
            raise AuthorizationError()
        return user

    return _check_role


# Roles allowed to manage departments and couriers
require_manager = require_role(AccountRole.SUPER_ADMIN, AccountRole.RD_DEPARTMENT)
