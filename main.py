"""Main entry point for running the restrpc application with uvicorn."""

import os

import uvicorn
from loguru import logger

from restrpc.core.config import get_settings
from restrpc.core.logging import setup_logging


def main() -> None:
    """Run the application factory with uvicorn."""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    # Container platforms set PORT to the port the container should listen on
    port = int(os.environ.get("PORT", settings.api_port))

    # Configure uvicorn to use our logging
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {
                "class": "restrpc.core.logging.InterceptHandler",
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

    mode = "development mode with auto-reload" if settings.debug else "production mode"
    logger.info("Starting Uvicorn on http://{}:{} ({})", settings.api_host, port, mode)
    uvicorn.run(
        "restrpc.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
