"""Letter tracking core module.

Shared components used across the service:
- Configuration management
- Logging setup
- Error taxonomy
"""

from lettertrack.core.config import (
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    SecuritySettings,
    Settings,
    StorageSettings,
    StoreBackend,
)
from lettertrack.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "SecuritySettings",
    "Settings",
    "StorageSettings",
    "StoreBackend",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
