"""Field presence and field-level validation helpers shared by the services.

Partial updates are dataclasses whose fields default to ``UNSET``. A field
left at ``UNSET`` was not provided; any other value, including ``None``,
was.
"""

from __future__ import annotations

import enum
from dataclasses import fields
from typing import Any, Final, TypeVar

from lettertrack.core.errors import ValidationError

E = TypeVar("E", bound=enum.Enum)


class Unset(enum.Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = Unset.UNSET


def provided(partial: Any) -> dict[str, Any]:
    """Return the fields of a partial-update dataclass that were provided."""
    return {
        f.name: getattr(partial, f.name)
        for f in fields(partial)
        if getattr(partial, f.name) is not UNSET
    }


class FieldErrors:
    """Collects per-field messages and raises them as one ValidationError."""

    def __init__(self) -> None:
        self.errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def require_text(self, field: str, value: Any, *, min_length: int = 1) -> None:
        """Check that ``value`` is a string of at least ``min_length`` characters."""
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add(field, f"{field} is required")
        elif not isinstance(value, str):
            self.add(field, f"{field} must be a string")
        elif len(value.strip()) < min_length:
            self.add(field, f"{field} must be at least {min_length} characters")

    def choice(self, field: str, value: Any, enum_cls: type[E]) -> E | None:
        """Coerce ``value`` to a member of ``enum_cls`` or record an error."""
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in enum_cls)
            self.add(field, f"{field} must be one of: {allowed}")
            return None

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(message, fields=self.errors)
