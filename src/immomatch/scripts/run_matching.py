"""
Script para recalcular los matches de un lead.

Con `--reprofile` corre el pipeline completo (extracción, embedding,
perfil y matching); sin él, rankea con el perfil ya guardado.

Uso:
    python -m immomatch.scripts.run_matching --lead-id <uuid> [--top-k 10] [--reprofile]
"""

import argparse
import asyncio
import sys

import structlog

from immomatch.errors import ImmomatchError
from immomatch.logging_config import configure_logging
from immomatch.matching import InquiryPipeline, MatchingEngine

configure_logging()

logger = structlog.get_logger()


async def run_matching(lead_id: str, top_k: int = None, reprofile: bool = False) -> dict:
    """Ejecuta el matching (o el pipeline) para un lead."""
    engine = MatchingEngine()
    if reprofile:
        pipeline = InquiryPipeline(engine=engine)
        report = await pipeline.process_lead(lead_id, top_k=top_k)
        return report.to_api_dict()

    run = await engine.match_lead(lead_id, top_k=top_k)
    return run.to_api_dict()


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Matching de un lead contra el índice")
    parser.add_argument("--lead-id", type=str, required=True, help="ID del lead")
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Cantidad de resultados (default de settings)",
    )
    parser.add_argument(
        "--reprofile",
        action="store_true",
        help="Re-extraer el perfil desde el mensaje antes de matchear",
    )
    args = parser.parse_args()

    logger.info("Iniciando matching...", lead_id=args.lead_id)

    try:
        result = asyncio.run(run_matching(args.lead_id, args.top_k, args.reprofile))
        matches = result.get("matches") if args.reprofile else result
        logger.info(
            "Matching completado",
            lead_id=args.lead_id,
            matched=(matches or {}).get("matched", 0),
            degraded=result.get("degraded"),
        )
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Matching interrumpido por usuario")
        sys.exit(130)
    except ImmomatchError as e:
        logger.error("Matching falló", code=e.code, error=e.message)
        sys.exit(1)
    except Exception as e:
        logger.error("Error fatal en matching", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
