"""
Repositorios para operaciones en Supabase.

Cada repositorio maneja una tabla/entidad específica. Las escrituras que
fallan se reportan como PersistenceFailure con el contexto de la etapa.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from immomatch.config import get_settings
from immomatch.database.supabase_client import get_supabase_client, SupabaseClient
from immomatch.errors import PersistenceFailure
from immomatch.models import (
    Badge,
    BuyerProfile,
    Candidate,
    CandidateQuery,
    EngagementCounts,
    MatchResult,
    MatchScope,
    PopularityListing,
    PopularityRecord,
)

logger = structlog.get_logger()


class BaseRepository:
    """
    Sin cliente explícito usa el compartido del proceso.

    `page_size` no puede superar el `max-rows` de PostgREST: una página
    corta se toma como la última.
    """

    TABLE: str = ""

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        page_size: Optional[int] = None,
    ):
        self._client = client or get_supabase_client()
        self.page_size = page_size or get_settings().supabase_page_size

    @property
    def client(self) -> SupabaseClient:
        return self._client

    def _fetch_one(self, column: str, value: str, columns: str = "*") -> Optional[dict]:
        rows = (
            self.client.table(self.TABLE)
            .select(columns)
            .eq(column, value)
            .limit(1)
            .execute()
            .data
        )
        return rows[0] if rows else None

    def _fetch_all(self, build_query: Callable[[], Any]) -> list[dict]:
        """Lee todas las filas de un query (tabla o RPC) paginando con `range`."""
        rows: list[dict] = []
        start = 0
        while True:
            page = build_query().range(start, start + self.page_size - 1).execute().data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            start += self.page_size


class LeadRepository(BaseRepository):
    """Repositorio de leads (consultas entrantes). Sólo lectura."""

    TABLE = "leads"
    COLUMNS = "id, agency_id, message, listings(title, commune, price, kind, property_type)"

    def get_by_id(self, lead_id: str) -> Optional[dict]:
        """Lead con el listing sobre el que consultó (join embebido)."""
        return self._fetch_one("id", lead_id, columns=self.COLUMNS)


class BuyerProfileRepository(BaseRepository):
    """Repositorio de perfiles de comprador (uno por lead)."""

    TABLE = "buyer_profiles"

    def upsert(self, profile: BuyerProfile) -> dict:
        """
        Reemplaza el perfil completo del lead.

        Raises:
            PersistenceFailure: si la escritura falla
        """
        try:
            response = (
                self.client.table(self.TABLE)
                .upsert(profile.to_db_dict(), on_conflict="lead_id")
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(
                f"No se pudo guardar el perfil: {e}",
                stage="profile_upsert",
                subject_id=profile.subject_id,
            ) from e

        logger.info(
            "Perfil de comprador guardado",
            lead_id=profile.subject_id,
            source=profile.source.value,
            has_embedding=profile.embedding is not None,
        )
        return response.data[0] if response.data else {}

    def get_by_lead_id(self, lead_id: str) -> Optional[BuyerProfile]:
        """None si el lead todavía no se perfiló."""
        row = self._fetch_one("lead_id", lead_id)
        return BuyerProfile.from_db_row(row) if row else None


class ListingIndexRepository(BaseRepository):
    """Repositorio del índice de búsqueda (proyección de listings + embedding)."""

    TABLE = "listing_search_index"

    def fetch_candidates(self, query: CandidateQuery, limit: int = 500) -> list[Candidate]:
        """
        Lee candidatos publicados que cumplen los filtros SQL.

        Args:
            query: Filtros a aplicar
            limit: Máximo de filas

        Returns:
            Lista de Candidate ordenada por listing_id
        """
        builder = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("status", "PUBLISHED")
        )

        if query.agency_id:
            builder = builder.eq("agency_id", query.agency_id)
        if query.kind:
            builder = builder.eq("kind", query.kind)
        if query.property_type:
            builder = builder.eq("property_type", query.property_type)
        if query.price_min is not None:
            builder = builder.gte("price", query.price_min)
        if query.price_max is not None:
            builder = builder.lte("price", query.price_max)
        if query.size_min is not None:
            builder = builder.gte("size_sqm", query.size_min)
        if query.size_max is not None:
            builder = builder.lte("size_sqm", query.size_max)
        if query.bedrooms_min is not None:
            builder = builder.gte("bedrooms", query.bedrooms_min)
        if query.bathrooms_min is not None:
            builder = builder.gte("bathrooms", query.bathrooms_min)
        if query.locations:
            builder = builder.in_("commune", query.locations)

        response = builder.order("listing_id").limit(limit).execute()
        return [Candidate.from_index_row(row) for row in response.data]

    def update_embedding(self, listing_id: str, embedding: list[float], search_text: str) -> bool:
        """Actualiza el texto y el vector de un listing en el índice."""
        try:
            response = (
                self.client.table(self.TABLE)
                .update({
                    "search_text": search_text,
                    "embedding": embedding,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                })
                .eq("listing_id", listing_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(
                f"No se pudo actualizar el embedding: {e}",
                stage="index_embedding",
                listing_id=listing_id,
            ) from e
        return len(response.data) > 0


class ListingRepository(BaseRepository):
    """Repositorio de listings (dueño: el workflow de publicación)."""

    TABLE = "listings"

    def get_by_id(self, listing_id: str) -> Optional[dict]:
        return self._fetch_one("id", listing_id)

    def get_published_ids(self) -> list[str]:
        """IDs de listings publicados (para re-indexar)."""
        rows = self._fetch_all(
            lambda: self.client.table(self.TABLE).select("id").eq("is_published", True).order("id")
        )
        return [row["id"] for row in rows]

    def get_popularity_listings(self) -> list[PopularityListing]:
        """Proyección de todos los listings para el agregador."""
        rows = self._fetch_all(
            lambda: self.client.table(self.TABLE)
            .select("id, created_at, kind, property_type, commune, is_published, status")
            .order("id")
        )
        return [
            PopularityListing(
                id=row["id"],
                created_at=row["created_at"],
                kind=row.get("kind"),
                property_type=row.get("property_type"),
                location=row.get("commune"),
                is_published=bool(row.get("is_published")),
                status=row.get("status") or "ACTIVE",
            )
            for row in rows
        ]


class MatchResultRepository(BaseRepository):
    """Repositorio de snapshots de matching (`lead_matches`)."""

    TABLE = "lead_matches"
    REPLACE_RPC = "replace_lead_matches"

    def replace_snapshot(
        self,
        subject_id: str,
        scope: MatchScope,
        results: list[MatchResult],
    ) -> int:
        """
        Reemplaza atómicamente el snapshot del subject para el scope.

        Borra e inserta dentro de una misma función de PostgreSQL, así que
        dos corridas concurrentes nunca intercalan filas.

        Raises:
            PersistenceFailure: si la función falla
        """
        try:
            self.client.execute_rpc(
                self.REPLACE_RPC,
                {
                    "p_lead_id": subject_id,
                    "p_scope": scope.value,
                    "p_rows": [r.to_db_dict() for r in results],
                },
            )
        except Exception as e:
            raise PersistenceFailure(
                f"No se pudo guardar el snapshot de matches: {e}",
                stage="match_snapshot",
                subject_id=subject_id,
            ) from e

        logger.info(
            "Matches persistidos",
            lead_id=subject_id,
            scope=scope.value,
            total=len(results),
        )
        return len(results)

    def get_snapshot(self, subject_id: str, scope: MatchScope) -> list[dict]:
        """Último snapshot guardado, en orden de ranking."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("lead_id", subject_id)
            .eq("scope", scope.value)
            .order("rank")
            .execute()
        )
        return response.data


class EngagementRepository(BaseRepository):
    """Conteos de saves (wishlist) y views por listing."""

    COUNT_RPC = "count_listing_engagement"

    def count_since(self, since: datetime) -> dict[str, EngagementCounts]:
        """
        Cuenta saves y views con timestamp >= since.

        Returns:
            Dict listing_id -> EngagementCounts
        """
        params = {"p_since": since.isoformat()}
        rows = self._fetch_all(lambda: self.client.rpc(self.COUNT_RPC, params))
        return {
            row["listing_id"]: EngagementCounts(
                listing_id=row["listing_id"],
                saves=row.get("saves") or 0,
                views=row.get("views") or 0,
            )
            for row in rows
        }


class PopularityRepository(BaseRepository):
    """Repositorio de `listing_popularity` (dueño: el agregador)."""

    TABLE = "listing_popularity"
    # Cada lote viaja como `listing_id=in.(...)` en la URL
    RESET_BATCH = 200

    def reset_badges(self, listing_ids: list[str]) -> int:
        """
        Resetea badge y contadores de listings que dejaron de ser elegibles.

        Sólo toca filas con badge distinto de NONE.
        """
        reset = 0
        for start in range(0, len(listing_ids), self.RESET_BATCH):
            batch = listing_ids[start:start + self.RESET_BATCH]
            try:
                response = (
                    self.client.table(self.TABLE)
                    .update({
                        "badge": Badge.NONE.value,
                        "score_7d": 0,
                        "views_7d": 0,
                        "saves_7d": 0,
                        "leads_7d": 0,
                    })
                    .in_("listing_id", batch)
                    .neq("badge", Badge.NONE.value)
                    .execute()
                )
            except Exception as e:
                raise PersistenceFailure(
                    f"No se pudieron resetear badges: {e}", stage="popularity_invalidate"
                ) from e
            reset += len(response.data or [])
        return reset

    def upsert(self, record: PopularityRecord) -> None:
        """
        Crea o actualiza el registro de un listing.

        Raises:
            PersistenceFailure: si la escritura falla
        """
        try:
            (
                self.client.table(self.TABLE)
                .upsert(record.to_db_dict(), on_conflict="listing_id")
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(
                f"No se pudo guardar popularidad: {e}",
                stage="popularity_upsert",
                listing_id=record.listing_id,
            ) from e
