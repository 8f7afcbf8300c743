"""
Agregador de popularidad de listings.

Corrida programada (o manual) que:
1. Resetea badges de listings que dejaron de estar publicados/activos
2. Cuenta saves y views de la ventana
3. Calcula score, segmento y badge de cada listing elegible
4. Hace upsert de un registro por listing, aislando fallos
"""

import asyncio
import math
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from immomatch.config import Settings, get_settings
from immomatch.database import (
    EngagementRepository,
    ListingRepository,
    PopularityRepository,
)
from immomatch.errors import PersistenceFailure, ValidationError
from immomatch.models import EngagementCounts, PopularityListing, PopularityRecord
from immomatch.popularity.rules import (
    PopularityThresholds,
    ScoredListing,
    SegmentContext,
    assign_badge,
)

logger = structlog.get_logger()


def segment_key(
    kind: Optional[str],
    property_type: Optional[str],
    location: Optional[str],
) -> str:
    """`kind|property_type|location` en minúsculas; los vacíos quedan como ''."""
    parts = [kind or "", property_type or "", location or ""]
    return "|".join(str(p) for p in parts).lower()


def age_in_days(created_at: datetime, now: datetime) -> int:
    """Días enteros desde la creación (floor, nunca negativo)."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = (now - created_at).total_seconds()
    return max(0, math.floor(seconds / 86400))


def recency_bonus(age_days: int, window_days: int, step: float = 0.5) -> float:
    return max(0, window_days - age_days) * step


def popularity_score(
    saves: int,
    views: int,
    age_days: int,
    window_days: int,
    settings: Settings,
) -> float:
    """saves*5 + views + bonus de recencia (pesos de settings)."""
    return (
        saves * settings.popularity_weight_save
        + views * settings.popularity_weight_view
        + recency_bonus(age_days, window_days, settings.popularity_recency_step)
    )


def compute_records(
    listings: list[PopularityListing],
    counts: dict[str, EngagementCounts],
    now: datetime,
    window_days: int,
    settings: Optional[Settings] = None,
) -> list[PopularityRecord]:
    """
    Calcula los registros de popularidad de los listings elegibles.

    Función pura: mismo input, mismo output. Los registros salen
    ordenados por listing_id.
    """
    settings = settings or get_settings()
    thresholds = PopularityThresholds.from_settings(settings)

    segments: dict[str, list[ScoredListing]] = defaultdict(list)
    for listing in listings:
        if not listing.eligible:
            continue
        c = counts.get(listing.id)
        saves = c.saves if c else 0
        views = c.views if c else 0
        score = popularity_score(
            saves, views, age_in_days(listing.created_at, now), window_days, settings
        )
        key = segment_key(listing.kind, listing.property_type, listing.location)
        segments[key].append(
            ScoredListing(
                listing_id=listing.id,
                saves=saves,
                views=views,
                score=score,
                segment_key=key,
            )
        )

    records = []
    for key, rows in segments.items():
        ctx = SegmentContext.build(rows, thresholds)
        for row in rows:
            records.append(
                PopularityRecord(
                    listing_id=row.listing_id,
                    saves_7d=row.saves,
                    views_7d=row.views,
                    score_7d=row.score,
                    segment_key=key,
                    badge=assign_badge(row, ctx, thresholds),
                )
            )

    records.sort(key=lambda r: r.listing_id)
    return records


@dataclass
class RecomputeSummary:
    """
    Resumen de una corrida del agregador.

    `records` sólo lleva lo que quedó escrito; `computed` cuenta todo lo
    que se calculó, aunque la corrida se haya cortado.
    """

    window_days: int
    records: list[PopularityRecord] = field(default_factory=list)
    computed: int = 0
    updated: int = 0
    reset: int = 0
    failures: list[dict] = field(default_factory=list)
    aborted: bool = False
    skipped: bool = False

    @property
    def segments(self) -> int:
        return len({r.segment_key for r in self.records})

    def to_api_dict(self) -> dict:
        return {
            "ok": not self.failures and not self.aborted,
            "windowDays": self.window_days,
            "listings": len(self.records),
            "computed": self.computed,
            "segments": self.segments,
            "updated": self.updated,
            "reset": self.reset,
            "failed": len(self.failures),
            "failures": self.failures,
            "aborted": self.aborted,
            "skipped": self.skipped,
        }


class PopularityAggregator:
    """
    Recalcula la popularidad de todos los listings.

    Una sola corrida a la vez por proceso: si ya hay una en curso, la
    nueva vuelve inmediatamente con `skipped=True`.
    """

    _run_lock = asyncio.Lock()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        listing_repo: Optional[ListingRepository] = None,
        engagement_repo: Optional[EngagementRepository] = None,
        popularity_repo: Optional[PopularityRepository] = None,
    ):
        self.settings = settings or get_settings()
        self.listing_repo = listing_repo or ListingRepository()
        self.engagement_repo = engagement_repo or EngagementRepository()
        self.popularity_repo = popularity_repo or PopularityRepository()

    async def recompute(
        self,
        window_days: Optional[int] = None,
        deadline: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> RecomputeSummary:
        """
        Corre el recompute completo.

        Args:
            window_days: Ventana de conteo en días (1 a 90)
            deadline: Instante límite en `time.monotonic()`; al vencer se
                deja de escribir y el resumen vuelve con `aborted=True`
            now: Instante de referencia

        Raises:
            ValidationError: ventana fuera de rango
            PersistenceFailure: falló el reset de badges
        """
        window_days = window_days if window_days is not None else self.settings.popularity_window_days
        if not 1 <= window_days <= 90:
            raise ValidationError(
                "windowDays debe estar entre 1 y 90", window_days=window_days
            )

        if self._run_lock.locked():
            logger.warning("Recompute de popularidad ya en curso, se omite")
            return RecomputeSummary(window_days=window_days, skipped=True)

        async with self._run_lock:
            return await self._run(window_days, deadline, now or datetime.now(timezone.utc))

    async def _run(
        self,
        window_days: int,
        deadline: Optional[float],
        now: datetime,
    ) -> RecomputeSummary:
        summary = RecomputeSummary(window_days=window_days)
        since = now - timedelta(days=window_days)

        listings = self.listing_repo.get_popularity_listings()

        ineligible = [l.id for l in listings if not l.eligible]
        summary.reset = self.popularity_repo.reset_badges(ineligible)

        counts = self.engagement_repo.count_since(since)
        computed = compute_records(listings, counts, now, window_days, self.settings)
        summary.computed = len(computed)

        for record in computed:
            if deadline is not None and time.monotonic() > deadline:
                summary.aborted = True
                logger.warning(
                    "Deadline vencido, recompute abortado",
                    updated=summary.updated,
                    pending=summary.computed - summary.updated - len(summary.failures),
                )
                break
            try:
                self.popularity_repo.upsert(record)
                summary.records.append(record)
                summary.updated += 1
            except PersistenceFailure as e:
                summary.failures.append({"listingId": record.listing_id, "error": e.message})
                logger.error(
                    "Error guardando popularidad",
                    listing_id=record.listing_id,
                    error=e.message,
                )

        logger.info(
            "Popularidad recalculada",
            window_days=window_days,
            listings=summary.computed,
            segments=summary.segments,
            updated=summary.updated,
            reset=summary.reset,
            failed=len(summary.failures),
            aborted=summary.aborted,
        )
        return summary
