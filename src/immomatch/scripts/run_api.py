"""
Levanta la API HTTP con uvicorn.

Uso:
    python -m immomatch.scripts.run_api
"""

import sys

import structlog
import uvicorn

from immomatch.config import get_settings
from immomatch.logging_config import configure_logging

configure_logging()

logger = structlog.get_logger()


def main():
    """Entry point del script."""
    settings = get_settings()
    logger.info("Iniciando API", host=settings.api_host, port=settings.api_port)

    try:
        uvicorn.run(
            "immomatch.api.app:app",
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("API detenida por usuario")
        sys.exit(130)


if __name__ == "__main__":
    main()
