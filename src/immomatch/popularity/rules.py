"""
Reglas de badges de popularidad.

Lista ordenada de reglas con nombre; cada una es un predicado puro sobre
un listing dentro del contexto de su segmento. Se evalúan en orden y gana
la primera que aplica (la más específica primero).
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from immomatch.config import Settings
from immomatch.models import Badge


@dataclass(frozen=True)
class PopularityThresholds:
    """Mínimos para cada badge."""

    min_most_saved: int = 5
    min_most_viewed: int = 60
    min_trending_saves: int = 3
    min_trending_views: int = 25
    trending_fraction: float = 0.1

    @classmethod
    def from_settings(cls, settings: Settings) -> "PopularityThresholds":
        return cls(
            min_most_saved=settings.popularity_min_most_saved,
            min_most_viewed=settings.popularity_min_most_viewed,
            min_trending_saves=settings.popularity_min_trending_saves,
            min_trending_views=settings.popularity_min_trending_views,
            trending_fraction=settings.popularity_trending_fraction,
        )


@dataclass(frozen=True)
class ScoredListing:
    """Listing con sus contadores y score de la ventana."""

    listing_id: str
    saves: int
    views: int
    score: float
    segment_key: str


def trending_cutoff_index(n: int, fraction: float = 0.1) -> int:
    """
    Índice del corte de top-decil en un segmento ordenado por score desc.

    `floor(n * fraction)`, acotado a `n - 1`: un segmento de 1 a 9
    listings deja al menos el primero como candidato a TRENDING.
    """
    if n <= 0:
        return 0
    return min(int(math.floor(n * fraction)), n - 1)


@dataclass(frozen=True)
class SegmentContext:
    """Ganadores y corte de un segmento, calculados una sola vez."""

    size: int
    most_saved_id: Optional[str]
    most_viewed_id: Optional[str]
    trending_cutoff: float

    @classmethod
    def build(
        cls, rows: list[ScoredListing], thresholds: PopularityThresholds
    ) -> "SegmentContext":
        if not rows:
            return cls(size=0, most_saved_id=None, most_viewed_id=None, trending_cutoff=math.inf)

        by_score = sorted(rows, key=lambda r: (-r.score, r.listing_id))
        by_saves = sorted(rows, key=lambda r: (-r.saves, -r.score, r.listing_id))
        by_views = sorted(rows, key=lambda r: (-r.views, -r.score, r.listing_id))

        most_saved_id = None
        if by_saves[0].saves >= thresholds.min_most_saved:
            most_saved_id = by_saves[0].listing_id

        # Si el más visto ya es MOST_SAVED, el segmento se queda sin MOST_VIEWED
        most_viewed_id = None
        top_viewed = by_views[0]
        if top_viewed.views >= thresholds.min_most_viewed and top_viewed.listing_id != most_saved_id:
            most_viewed_id = top_viewed.listing_id

        cutoff_index = trending_cutoff_index(len(by_score), thresholds.trending_fraction)
        return cls(
            size=len(rows),
            most_saved_id=most_saved_id,
            most_viewed_id=most_viewed_id,
            trending_cutoff=by_score[cutoff_index].score,
        )


BadgePredicate = Callable[[ScoredListing, SegmentContext, PopularityThresholds], bool]


@dataclass(frozen=True)
class BadgeRule:
    name: str
    badge: Badge
    applies: BadgePredicate


def is_most_saved(row: ScoredListing, ctx: SegmentContext, thresholds: PopularityThresholds) -> bool:
    return ctx.most_saved_id is not None and row.listing_id == ctx.most_saved_id


def is_most_viewed(row: ScoredListing, ctx: SegmentContext, thresholds: PopularityThresholds) -> bool:
    return ctx.most_viewed_id is not None and row.listing_id == ctx.most_viewed_id


def is_trending(row: ScoredListing, ctx: SegmentContext, thresholds: PopularityThresholds) -> bool:
    meets_floor = (
        row.saves >= thresholds.min_trending_saves
        or row.views >= thresholds.min_trending_views
    )
    return row.score > 0 and meets_floor and row.score >= ctx.trending_cutoff


BADGE_RULES: list[BadgeRule] = [
    BadgeRule("most_saved", Badge.MOST_SAVED, is_most_saved),
    BadgeRule("most_viewed", Badge.MOST_VIEWED, is_most_viewed),
    BadgeRule("trending", Badge.TRENDING, is_trending),
]


def assign_badge(
    row: ScoredListing,
    ctx: SegmentContext,
    thresholds: PopularityThresholds,
    rules: Optional[list[BadgeRule]] = None,
) -> Badge:
    """Primera regla que aplica; NONE si ninguna."""
    for rule in rules if rules is not None else BADGE_RULES:
        if rule.applies(row, ctx, thresholds):
            return rule.badge
    return Badge.NONE
