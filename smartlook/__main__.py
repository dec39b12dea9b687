"""Entrypoint serving the SmartLook HTTP API."""

from __future__ import annotations

import logging

import uvicorn

from smartlook.config.settings import get_settings
from smartlook.monitoring.logging import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Configure logging and start the API server."""

    configure_logging()
    settings = get_settings()
    if not settings.api_key:
        logger.warning("No API key configured; oracle calls will fail until one is set.")

    logger.info("Starting SmartLook API (%s).", settings.environment)
    uvicorn.run("smartlook.server.main:app", host="0.0.0.0", port=8080, reload=False)


if __name__ == "__main__":
    main()
