"""
Re-indexado semántico de listings.

Arma el texto de búsqueda de cada listing, lo embebe y escribe texto y
vector en `listing_search_index`.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from immomatch.analysis.embeddings import EmbeddingGenerator
from immomatch.analysis.listing_text import build_listing_search_text
from immomatch.database import ListingIndexRepository, ListingRepository
from immomatch.errors import ImmomatchError, NotFound, UpstreamDegraded

logger = structlog.get_logger()


@dataclass
class ReindexStats:
    processed: int = 0
    updated: int = 0
    failures: list[dict] = field(default_factory=list)


class ListingIndexer:
    """Mantiene el embedding de cada listing en el índice."""

    def __init__(
        self,
        listing_repo: Optional[ListingRepository] = None,
        index_repo: Optional[ListingIndexRepository] = None,
        embedder: Optional[EmbeddingGenerator] = None,
    ):
        self.listing_repo = listing_repo or ListingRepository()
        self.index_repo = index_repo or ListingIndexRepository()
        self._embedder = embedder

    def _get_embedder(self) -> EmbeddingGenerator:
        if self._embedder is None:
            try:
                self._embedder = EmbeddingGenerator()
            except ValueError as e:
                raise UpstreamDegraded(str(e)) from e
        return self._embedder

    async def reindex_listing(self, listing_id: str) -> bool:
        """
        Re-embebe un listing.

        Returns:
            True si la fila del índice fue actualizada

        Raises:
            NotFound: el listing no existe
            UpstreamDegraded: el servicio de embeddings no respondió
            PersistenceFailure: falló la escritura en el índice
        """
        listing = self.listing_repo.get_by_id(listing_id)
        if not listing:
            raise NotFound("Listing no encontrado", listing_id=listing_id)

        search_text = build_listing_search_text(listing)
        embedding = await self._get_embedder().embed_text(search_text)
        updated = self.index_repo.update_embedding(listing_id, embedding, search_text)

        logger.debug("Listing re-indexado", listing_id=listing_id, updated=updated)
        return updated

    async def reindex_all(self, listing_ids: Optional[list[str]] = None) -> ReindexStats:
        """Re-indexa los listings dados (o todos los publicados), aislando fallos."""
        if listing_ids is None:
            listing_ids = self.listing_repo.get_published_ids()

        stats = ReindexStats()
        for listing_id in listing_ids:
            stats.processed += 1
            try:
                if await self.reindex_listing(listing_id):
                    stats.updated += 1
            except ImmomatchError as e:
                stats.failures.append({"listingId": listing_id, "error": e.code})
                logger.warning(
                    "No se pudo re-indexar listing",
                    listing_id=listing_id,
                    error=e.message,
                )

        logger.info(
            "Re-indexado completado",
            processed=stats.processed,
            updated=stats.updated,
            failed=len(stats.failures),
        )
        return stats
