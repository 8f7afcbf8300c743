"""
Selección del pool de candidatos.

Se consulta el índice con filtros estrictos y, si no vuelve nada, se van
relajando en orden: ubicación -> tipo de operación/propiedad -> sólo
presupuesto. El modo usado queda en la metadata de cada resultado.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from immomatch.models import BuyerProfile, CandidateQuery, MatchScope


class PoolMode(str, Enum):
    STRICT = "strict"
    RELAXED_LOCATION = "relaxed_location"
    RELAXED_TYPE = "relaxed_type"
    BUDGET_ONLY = "budget_only"


@dataclass(frozen=True)
class CandidatePoolSelector:
    """Qué parte del índice puede ver el subject."""

    scope: MatchScope
    agency_id: Optional[str] = None

    @property
    def tenant_filter(self) -> Optional[str]:
        return self.agency_id if self.scope == MatchScope.AGENCY else None


def _widen(value: Optional[int], tolerance: float, up: bool) -> Optional[int]:
    """Ensancha un límite para que entren los casi-matches con crédito parcial."""
    if value is None:
        return None
    if up:
        return int(value * (1 + tolerance))
    return max(0, int(value * (1 - tolerance)))


def build_pool_queries(
    profile: BuyerProfile,
    selector: CandidatePoolSelector,
    tolerance: float = 0.1,
) -> list[tuple[PoolMode, CandidateQuery]]:
    """
    Escalera de consultas, de la más estricta a la más laxa.

    Los pasos que no cambian nada respecto del anterior se omiten.
    """
    f = profile.filters
    strict = CandidateQuery(
        agency_id=selector.tenant_filter,
        kind=f.kind.value if f.kind else None,
        property_type=f.property_type.value if f.property_type else None,
        price_min=_widen(f.budget_min, tolerance, up=False),
        price_max=_widen(f.budget_max, tolerance, up=True),
        size_min=_widen(f.size_min_sqm, tolerance, up=False),
        size_max=_widen(f.size_max_sqm, tolerance, up=True),
        bedrooms_min=f.bedrooms_min,
        bathrooms_min=f.bathrooms_min,
        locations=list(f.locations),
    )
    relaxed_location = strict.model_copy(update={"locations": []})
    relaxed_type = relaxed_location.model_copy(update={"kind": None, "property_type": None})
    budget_only = CandidateQuery(
        agency_id=strict.agency_id,
        price_min=strict.price_min,
        price_max=strict.price_max,
    )

    ladder: list[tuple[PoolMode, CandidateQuery]] = []
    for mode, query in (
        (PoolMode.STRICT, strict),
        (PoolMode.RELAXED_LOCATION, relaxed_location),
        (PoolMode.RELAXED_TYPE, relaxed_type),
        (PoolMode.BUDGET_ONLY, budget_only),
    ):
        if ladder and ladder[-1][1] == query:
            continue
        ladder.append((mode, query))
    return ladder
