"""
Script para recalcular la popularidad de los listings.

Pensado para correr desde cron (por ejemplo cada hora).

Uso:
    python -m immomatch.scripts.run_popularity [--window-days 7]
"""

import argparse
import asyncio
import sys

import structlog

from immomatch.errors import ImmomatchError
from immomatch.logging_config import configure_logging
from immomatch.popularity import PopularityAggregator, RecomputeSummary

configure_logging()

logger = structlog.get_logger()


async def run_popularity(window_days: int = None) -> RecomputeSummary:
    aggregator = PopularityAggregator()
    return await aggregator.recompute(window_days=window_days)


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Recompute de popularidad de listings")
    parser.add_argument(
        "--window-days",
        type=int,
        default=None,
        help="Ventana de conteo en días (1-90, default de settings)",
    )
    args = parser.parse_args()

    logger.info("Iniciando recompute de popularidad...")

    try:
        summary = asyncio.run(run_popularity(args.window_days))
        logger.info("Recompute terminado", **summary.to_api_dict())
        sys.exit(0 if not summary.failures and not summary.aborted else 1)

    except KeyboardInterrupt:
        logger.info("Recompute interrumpido por usuario")
        sys.exit(130)
    except ImmomatchError as e:
        logger.error("Recompute falló", code=e.code, error=e.message)
        sys.exit(1)
    except Exception as e:
        logger.error("Error fatal en recompute", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
