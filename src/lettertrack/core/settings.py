"""Cached settings accessor.

Usage:
    from lettertrack.core.settings import get_settings

    settings = get_settings()

Settings are read from the environment once. Tests reset them with
clear_settings_cache().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from lettertrack.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)


def _describe(error: ValidationError) -> str:
    """One line per failing setting, e.g. ``  - database.pool_size: ...``."""
    return "\n".join(
        f"  - {'.'.join(str(part) for part in item['loc']) or '<root>'}: {item['msg']}"
        for item in error.errors()
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, validate and cache the application settings.

    Raises:
        SystemExit: If the configuration is invalid; the service must not
            start half-configured.
    """
    try:
        settings = Settings()
        validate_settings(settings)
    except ValidationError as e:
        logger.critical("Invalid configuration:\n%s", _describe(e))
        raise SystemExit(1) from e
    except ConfigValidationError as e:
        logger.critical("Invalid configuration: %s (setting: %s)", e.message, e.field or "?")
        raise SystemExit(1) from e
    return settings


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


def get_settings_safe() -> Settings | None:
    """Like get_settings(), but None instead of exiting."""
    try:
        return get_settings()
    except SystemExit:
        return None
