"""
Matemática de scoring compartida: clamps, similitud de coseno,
frescura y combinación ponderada de señales.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from immomatch.errors import ValidationError


def clamp01(value: float) -> float:
    """Recorta a [0, 1]; valores no finitos se tratan como 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def cosine_similarity(vec1: list[float], vec2: list[float]) -> float:
    """
    Calcula la similitud de coseno entre dos vectores.

    Returns:
        Similitud en [-1, 1]; 0.0 si alguno tiene norma cero
    """
    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    norm1 = math.sqrt(sum(a * a for a in vec1))
    norm2 = math.sqrt(sum(b * b for b in vec2))

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return dot_product / (norm1 * norm2)


def semantic_score(
    profile_vector: Optional[list[float]],
    candidate_vector: Optional[list[float]],
) -> Optional[float]:
    """
    Similitud de coseno reescalada de [-1, 1] a [0, 1].

    None si falta alguno de los dos vectores.
    """
    if not profile_vector or not candidate_vector:
        return None
    similarity = cosine_similarity(profile_vector, candidate_vector)
    return clamp01((similarity + 1) / 2)


def freshness_score(
    updated_at: Optional[datetime],
    now: datetime,
    half_life_days: float,
) -> Optional[float]:
    """
    Decaimiento exponencial sobre el tiempo desde la última actualización.

    1.0 para un listing recién actualizado, 0.5 a la vida media.
    """
    if updated_at is None:
        return None
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    age_days = max(0.0, (now - updated_at).total_seconds() / 86400.0)
    return clamp01(0.5 ** (age_days / half_life_days))


def blend(
    components: dict[str, Optional[float]],
    weights: dict[str, float],
) -> tuple[float, dict[str, float]]:
    """
    Suma ponderada sobre las señales presentes.

    Los pesos se renormalizan sobre los componentes que no son None.

    Returns:
        (score combinado en [0, 1], pesos efectivamente usados)
    """
    present = {
        name: weights.get(name, 0.0)
        for name, value in components.items()
        if value is not None and weights.get(name, 0.0) > 0
    }
    total = sum(present.values())
    if total <= 0:
        return 0.0, {}

    used = {name: weight / total for name, weight in present.items()}
    score = sum(components[name] * weight for name, weight in used.items())
    return clamp01(score), used


def validate_vector(vector: Optional[list[float]], dim: int, what: str) -> None:
    """
    Valida dimensión y finitud de un embedding.

    Raises:
        ValidationError: dimensión distinta a la configurada o valores no finitos
    """
    if vector is None:
        return
    if len(vector) != dim:
        raise ValidationError(
            f"Embedding de {what} con dimensión {len(vector)}, se esperaba {dim}",
            what=what,
            expected=dim,
            got=len(vector),
        )
    if any(not math.isfinite(x) for x in vector):
        raise ValidationError(
            f"Embedding de {what} contiene valores no finitos", what=what
        )
