"""
Script para re-embeber listings en el índice de búsqueda.

Uso:
    python -m immomatch.scripts.run_reindex                 # todos los publicados
    python -m immomatch.scripts.run_reindex --listing-id <uuid>
"""

import argparse
import asyncio
import sys

import structlog

from immomatch.analysis import ListingIndexer, ReindexStats
from immomatch.logging_config import configure_logging

configure_logging()

logger = structlog.get_logger()


async def run_reindex(listing_id: str = None) -> ReindexStats:
    indexer = ListingIndexer()
    return await indexer.reindex_all([listing_id] if listing_id else None)


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Re-indexado semántico de listings")
    parser.add_argument(
        "--listing-id",
        type=str,
        default=None,
        help="Re-indexar sólo este listing",
    )
    args = parser.parse_args()

    try:
        stats = asyncio.run(run_reindex(args.listing_id))
        sys.exit(0 if not stats.failures else 1)

    except KeyboardInterrupt:
        logger.info("Re-indexado interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en re-indexado", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
