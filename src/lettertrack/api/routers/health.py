"""Health check router."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    """Liveness check; needs no authentication and touches no store."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": request.app.version,
    }
