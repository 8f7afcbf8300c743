"""
Chips de explicación: deduplicación, orden estable y tope.

Orden de salida:
1. Negativos, los que más score restaron primero
2. Positivos, los que más score aportaron primero
3. Neutrales (contexto)

Dentro de un mismo impacto se conserva el orden de evaluación, así que
inputs idénticos producen siempre la misma lista.
"""

from typing import Optional

from immomatch.models import ReasonChip, ReasonTone

STRONG_MATCH_THRESHOLD = 0.85
PARTIAL_MATCH_THRESHOLD = 0.70

_TONE_ORDER = {
    ReasonTone.NEGATIVE: 0,
    ReasonTone.POSITIVE: 1,
    ReasonTone.NEUTRAL: 2,
}


def order_reasons(chips: list[ReasonChip], max_reasons: int = 12) -> list[ReasonChip]:
    """Deduplica por label, ordena por tono e impacto y recorta."""
    by_label: dict[str, ReasonChip] = {}
    for chip in chips:
        current = by_label.get(chip.label)
        if current is None or chip.impact > current.impact:
            by_label[chip.label] = chip

    # dict conserva el orden de primera aparición
    ordered = sorted(
        by_label.values(),
        key=lambda c: (_TONE_ORDER[c.tone], -c.impact),
    )
    return ordered[:max_reasons]


def semantic_chip(score: Optional[float]) -> Optional[ReasonChip]:
    """Bucket grueso de similitud semántica."""
    if score is None:
        return ReasonChip(
            label="Semantic match unavailable",
            tone=ReasonTone.NEUTRAL,
            key="semantic",
        )
    if score >= STRONG_MATCH_THRESHOLD:
        return ReasonChip(
            label="Strong overall match",
            tone=ReasonTone.POSITIVE,
            key="semantic",
            impact=score,
        )
    if score >= PARTIAL_MATCH_THRESHOLD:
        return ReasonChip(
            label="Partial match",
            tone=ReasonTone.NEUTRAL,
            key="semantic",
            impact=score,
        )
    return None


def freshness_chip(score: Optional[float]) -> Optional[ReasonChip]:
    if score is not None and score >= 0.9:
        return ReasonChip(
            label="Recently updated",
            tone=ReasonTone.NEUTRAL,
            key="freshness",
            impact=score,
        )
    return None
