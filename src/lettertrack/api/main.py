"""Letter tracking API entry point.

This module provides the application instance for ASGI servers (uvicorn)
and a run() function for direct execution.
"""

import logging

from lettertrack.api import create_app
from lettertrack.core.logging import configure_logging
from lettertrack.core.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

# This is what uvicorn references: lettertrack.api.main:app
app = create_app(settings)


def run() -> None:
    """Run the API server using uvicorn.

    This function is called by the lettertrack-api console script
    defined in pyproject.toml.
    """
    import uvicorn

    logger.info("Starting letter tracking API on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        "lettertrack.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


if __name__ == "__main__":
    run()
