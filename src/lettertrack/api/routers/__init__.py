"""API routers, one per resource."""

from lettertrack.api.routers import couriers, departments, health, letters

__all__ = ["couriers", "departments", "health", "letters"]
