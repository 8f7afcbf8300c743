"""
Utilidades de scoring compartidas por matching y popularidad.
"""

from immomatch.scoring.normalize import (
    blend,
    clamp01,
    cosine_similarity,
    freshness_score,
    semantic_score,
    validate_vector,
)
from immomatch.scoring.reasons import freshness_chip, order_reasons, semantic_chip

__all__ = [
    "blend",
    "clamp01",
    "cosine_similarity",
    "freshness_score",
    "semantic_score",
    "validate_vector",
    "freshness_chip",
    "order_reasons",
    "semantic_chip",
]
