"""
Popularidad de listings: score de la ventana y badges por segmento.
"""

from immomatch.popularity.aggregator import (
    PopularityAggregator,
    RecomputeSummary,
    compute_records,
    recency_bonus,
    segment_key,
)
from immomatch.popularity.rules import (
    BADGE_RULES,
    BadgeRule,
    PopularityThresholds,
    SegmentContext,
    assign_badge,
    trending_cutoff_index,
)

__all__ = [
    "PopularityAggregator",
    "RecomputeSummary",
    "compute_records",
    "recency_bonus",
    "segment_key",
    "BADGE_RULES",
    "BadgeRule",
    "PopularityThresholds",
    "SegmentContext",
    "assign_badge",
    "trending_cutoff_index",
]
