"""Main entry point for running the Kanban API with uvicorn."""

import os

import uvicorn
from loguru import logger

from src.core.config import get_settings
from src.core.logging import setup_logging

UVICORN_LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "default": {
            "class": "src.core.logging.InterceptHandler",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def main() -> None:
    """Run the API server for a long-running (non-serverless) deployment."""
    settings = get_settings()
    setup_logging(settings)

    # Hosting platforms pass the port to listen on through PORT
    port = int(os.environ.get("PORT", settings.api_port))

    logger.info(
        "Server running on http://{}:{} ({})",
        settings.api_host,
        port,
        "development mode with auto-reload" if settings.debug else "production mode",
    )
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=UVICORN_LOG_CONFIG,
    )


if __name__ == "__main__":
    main()
