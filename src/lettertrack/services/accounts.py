"""Login account store.

Accounts hold a username, a password digest and a role. The digest never
leaves this module: every operation returns an ``AccountView``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from lettertrack.core.errors import ConflictError, NotFoundError
from lettertrack.db.models.base import AccountRole
from lettertrack.services.fields import UNSET, FieldErrors
from lettertrack.services.passwords import MAX_PASSWORD_BYTES

if TYPE_CHECKING:
    import uuid

    from lettertrack.repositories.base import Store
    from lettertrack.repositories.records import AccountView
    from lettertrack.services.fields import Unset
    from lettertrack.services.passwords import PasswordHasher

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6


def check_credentials(
    errors: FieldErrors,
    *,
    username: str | Unset = UNSET,
    password: str | Unset = UNSET,
) -> None:
    """Record credential rule violations for the provided fields."""
    if username is not UNSET:
        errors.require_text("username", username, min_length=USERNAME_MIN_LENGTH)
    if password is not UNSET:
        errors.require_text("password", password, min_length=PASSWORD_MIN_LENGTH)
        if isinstance(password, str) and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            errors.add("password", f"password must be at most {MAX_PASSWORD_BYTES} bytes")


class AccountStore:
    """Create, read, update and delete login accounts.

    Args:
        store: Unit of work holding the account repository.
        hasher: ``hash(secret) -> digest`` capability.
    """

    def __init__(self, store: Store, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop
        return await asyncio.to_thread(self._hasher, password)

    async def create(self, username: str, password: str, role: AccountRole) -> AccountView:
        """Create an account.

        Raises:
            ValidationError: If the username or password breaks the length rules.
            ConflictError: If the username is taken.
        """
        errors = FieldErrors()
        check_credentials(errors, username=username, password=password)
        errors.raise_if_any()

        if await self._store.accounts.get_by_username(username) is not None:
            raise ConflictError("Username already exists", field="username")

        digest = await self._hash(password)
        async with self._store.atomic():
            record = await self._store.accounts.add(
                username=username, password_digest=digest, role=role
            )

        logger.info(
            "Account created",
            extra={"account_id": str(record.account_id), "role": role.value},
        )
        return record.view()

    async def get(self, account_id: uuid.UUID) -> AccountView | None:
        record = await self._store.accounts.get(account_id)
        return record.view() if record else None

    async def get_by_username(self, username: str) -> AccountView | None:
        record = await self._store.accounts.get_by_username(username)
        return record.view() if record else None

    async def update(
        self,
        account_id: uuid.UUID,
        *,
        username: str | Unset = UNSET,
        password: str | Unset = UNSET,
    ) -> AccountView:
        """Update only the provided credential fields.

        Raises:
            ValidationError: If a provided field breaks the length rules.
            NotFoundError: If the account does not exist.
            ConflictError: If the new username is taken by another account.
        """
        errors = FieldErrors()
        check_credentials(errors, username=username, password=password)
        errors.raise_if_any()

        current = await self._store.accounts.get(account_id)
        if current is None:
            raise NotFoundError("Account", account_id)

        values: dict[str, str] = {}
        if username is not UNSET and username != current.username:
            existing = await self._store.accounts.get_by_username(username)
            if existing is not None and existing.account_id != account_id:
                raise ConflictError("Username already exists", field="username")
            values["username"] = username
        if password is not UNSET:
            values["password_digest"] = await self._hash(password)

        if not values:
            return current.view()

        async with self._store.atomic():
            record = await self._store.accounts.update(account_id, values)
        if record is None:
            raise NotFoundError("Account", account_id)

        logger.info(
            "Account updated",
            extra={"account_id": str(account_id), "fields": sorted(values)},
        )
        return record.view()

    async def delete(self, account_id: uuid.UUID) -> None:
        """Delete an account.

        Raises:
            NotFoundError: If the account does not exist.
        """
        async with self._store.atomic():
            deleted = await self._store.accounts.delete(account_id)
        if not deleted:
            raise NotFoundError("Account", account_id)
        logger.info("Account deleted", extra={"account_id": str(account_id)})
