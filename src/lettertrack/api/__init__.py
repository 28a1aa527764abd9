"""Letter tracking API service.

FastAPI application providing:
- Department and courier directories
- Outgoing letter registration, QR code lookup and status tracking
- Courier tracking and statistics

This module provides the app factory pattern for creating configured
FastAPI instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from lettertrack.api.middleware import (
    REQUEST_ID_HEADER,
    BearerAuthMiddleware,
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
    load_token_verifier,
    register_exception_handlers,
)
from lettertrack.api.routers import couriers, departments, health, letters
from lettertrack.core.config import Settings, StoreBackend
from lettertrack.core.errors import UnavailableError
from lettertrack.db import create_engine_from_settings, create_session_factory
from lettertrack.repositories.memory import memory_store_factory
from lettertrack.repositories.postgres import sqlalchemy_store_factory
from lettertrack.services.passwords import bcrypt_hasher
from lettertrack.services.storage import ImageStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from lettertrack.api.middleware import TokenVerifier
    from lettertrack.repositories.base import Store
    from lettertrack.services.letters import StatusListener
    from lettertrack.services.passwords import PasswordHasher

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Outgoing letter tracking.

## Resources

- **/departments** - Departments and their login accounts
- **/couriers** - Courier services
- **/outgoing** - Outgoing letters, QR lookups, status changes and stats

## Documentation

- OpenAPI spec: `/api/openapi.json`
- Swagger UI: `/api/docs`
"""


def create_app(
    settings: Settings | None = None,
    *,
    store_factory: Callable[[], Store] | None = None,
    token_verifier: TokenVerifier | None = None,
    image_store: ImageStore | None = None,
    status_listeners: Iterable[StatusListener] = (),
    password_hasher: PasswordHasher | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Collaborators not passed in are built from ``settings``: the store from
    the database settings, the image store from the storage settings and
    the token verifier from its configured import path.

    Args:
        settings: Settings instance; defaults to ``Settings()``.
        store_factory: Callable opening one store per request.
        token_verifier: Resolver from bearer token to user.
        image_store: Store for letter images; None disables uploads unless
            storage is enabled in settings.
        status_listeners: Callables notified of every letter status change.
        password_hasher: Digest function for account passwords.

    Returns:
        Configured FastAPI application ready to serve requests.

    Example:
        app = create_app(
            Settings(database={"backend": "memory"}),
            token_verifier=verify_token,
        )
    """
    settings = settings or Settings()
    engine: AsyncEngine | None = None

    if store_factory is None:
        if settings.database.backend == StoreBackend.MEMORY:
            logger.warning("Using the in-memory store; data is lost on restart")
            store_factory = memory_store_factory()
        else:
            engine = create_engine_from_settings(settings)
            store_factory = sqlalchemy_store_factory(
                create_session_factory(engine),
                operation_timeout=settings.database.operation_timeout,
            )

    if image_store is None and settings.storage.enabled:
        image_store = ImageStore.from_settings(settings.storage)

    if token_verifier is None and settings.security.token_verifier:
        token_verifier = load_token_verifier(settings.security.token_verifier)
    if token_verifier is None:
        logger.warning("No token verifier configured; protected routes will answer 401")

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if image_store is not None:
            try:
                await run_in_threadpool(image_store.ensure_bucket)
            except UnavailableError:
                logger.warning("Image bucket %s is not reachable at startup", image_store.bucket)
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description=API_DESCRIPTION,
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Collaborators read by the request dependencies
    app.state.settings = settings
    app.state.store_factory = store_factory
    app.state.image_store = image_store
    app.state.status_listeners = tuple(status_listeners)
    app.state.password_hasher = password_hasher or bcrypt_hasher(settings.security.bcrypt_rounds)

    register_exception_handlers(app)
    _add_middleware(app, settings, token_verifier)
    _include_routers(app)

    logger.info("Letter tracking API created (version=%s)", settings.app_version)
    return app


def _add_middleware(
    app: FastAPI, settings: Settings, token_verifier: TokenVerifier | None
) -> None:
    """Add middleware to the application.

    The last middleware added is the outermost, so a request passes CORS,
    request ID, error handling and authentication in that order.
    """
    app.add_middleware(BearerAuthMiddleware, token_verifier=token_verifier)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


def _include_routers(app: FastAPI) -> None:
    app.include_router(health.router)
    app.include_router(departments.router)
    app.include_router(couriers.router)
    app.include_router(letters.router)
