"""FastAPI dependencies wiring the services to the application state.

``create_app`` puts the collaborators on ``app.state``; the dependencies
below build one store per request and the services on top of it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request

# NOTE: service types must remain at runtime for dependency injection
from lettertrack.repositories.base import Store  # noqa: TC001
from lettertrack.services.accounts import AccountStore
from lettertrack.services.couriers import CourierDirectory
from lettertrack.services.departments import DepartmentDirectory
from lettertrack.services.letters import LetterTrackingEngine
from lettertrack.services.storage import ImageStore  # noqa: TC001


async def get_store(request: Request) -> AsyncIterator[Store]:
    """Open a store for the duration of the request."""
    store = request.app.state.store_factory()
    try:
        yield store
    finally:
        await store.close()


RequestStore = Annotated[Store, Depends(get_store)]


def get_letter_engine(request: Request, store: RequestStore) -> LetterTrackingEngine:
    return LetterTrackingEngine(store, listeners=request.app.state.status_listeners)


def get_department_directory(request: Request, store: RequestStore) -> DepartmentDirectory:
    accounts = AccountStore(store, request.app.state.password_hasher)
    return DepartmentDirectory(store, accounts)


def get_courier_directory(store: RequestStore) -> CourierDirectory:
    return CourierDirectory(store)


def get_image_store(request: Request) -> ImageStore | None:
    """Image store, or None when image uploads are disabled."""
    return request.app.state.image_store


Letters = Annotated[LetterTrackingEngine, Depends(get_letter_engine)]
Departments = Annotated[DepartmentDirectory, Depends(get_department_directory)]
Couriers = Annotated[CourierDirectory, Depends(get_courier_directory)]
Images = Annotated[ImageStore | None, Depends(get_image_store)]
