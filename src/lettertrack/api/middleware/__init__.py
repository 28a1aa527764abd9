"""API middleware components.

- request_id: X-Request-ID correlation
- errors: error envelope and exception handlers
- auth: bearer token authentication and role checks
"""

from lettertrack.api.middleware.auth import (
    AuthenticatedUser,
    BearerAuthMiddleware,
    TokenVerifier,
    get_current_user,
    load_token_verifier,
    require_authenticated_user,
    require_manager,
    require_role,
)
from lettertrack.api.middleware.errors import (
    AuthenticationError,
    AuthorizationError,
    ErrorHandlerMiddleware,
    build_error_response,
    register_exception_handlers,
)
from lettertrack.api.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    get_request_id,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "AuthenticatedUser",
    "AuthenticationError",
    "AuthorizationError",
    "BearerAuthMiddleware",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "TokenVerifier",
    "build_error_response",
    "get_current_user",
    "get_request_id",
    "load_token_verifier",
    "register_exception_handlers",
    "require_authenticated_user",
    "require_manager",
    "require_role",
]
