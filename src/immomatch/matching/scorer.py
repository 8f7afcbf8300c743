"""
Scorer de matching: perfil de comprador vs pool de candidatos.

Señales:
- Estructurada: fracción ponderada de restricciones satisfechas
- Semántica: coseno entre embeddings, reescalado a [0, 1]
- Frescura: decaimiento por antigüedad de la última actualización

El resultado es puro: mismos inputs (incluido `now`) -> misma lista.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from immomatch.config import Settings, get_settings
from immomatch.errors import Forbidden, ValidationError
from immomatch.models import (
    BuyerProfile,
    Candidate,
    MatchResult,
    MatchScope,
    ReasonChip,
    ReasonTone,
)
from immomatch.scoring import (
    blend,
    freshness_chip,
    freshness_score,
    order_reasons,
    semantic_chip,
    semantic_score,
    validate_vector,
)

logger = structlog.get_logger()

# Peso relativo de cada restricción dentro del score estructurado
CONSTRAINT_WEIGHTS = {
    "budget": 20.0,
    "location": 20.0,
    "bedrooms": 15.0,
    "kind": 10.0,
    "property_type": 10.0,
    "size": 10.0,
    "bathrooms": 10.0,
    "parking": 5.0,
    "amenity": 3.0,
}

AMENITY_LABELS = {
    "balcony": "balcony",
    "terrace": "terrace",
    "garden": "garden",
    "cellar": "cellar",
    "elevator": "elevator",
    "pets_allowed": "pets allowed",
    "furnished": "furnished",
}


@dataclass
class ConstraintOutcome:
    """Evaluación de una restricción del perfil contra un candidato."""

    key: str
    weight: float
    credit: Optional[float]  # None = dato desconocido en el candidato
    label: str
    tone: ReasonTone


@dataclass
class StructuredEvaluation:
    score: Optional[float]
    chips: list[ReasonChip] = field(default_factory=list)
    applicable: int = 0


def range_credit(
    value: float,
    low: Optional[float],
    high: Optional[float],
    tolerance: float,
) -> tuple[float, str]:
    """
    Crédito de un valor contra un rango [low, high].

    Dentro del rango vale 1.0; fuera pero a menos de `tolerance` (relativa
    al límite) vale 0.5; más lejos, 0.0.

    Returns:
        (crédito, lado) con lado en "in", "below", "above"
    """
    if low is not None and value < low:
        near = low > 0 and (low - value) / low <= tolerance
        return (0.5 if near else 0.0), "below"
    if high is not None and value > high:
        near = high > 0 and (value - high) / high <= tolerance
        return (0.5 if near else 0.0), "above"
    return 1.0, "in"


class MatchScorer:
    """
    Rankea candidatos contra un perfil y genera explicaciones.

    Los pesos de combinación salen de settings y se renormalizan sobre
    las señales presentes en cada candidato.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.weights = {
            "structured": self.settings.match_weight_structured,
            "semantic": self.settings.match_weight_semantic,
            "freshness": self.settings.match_weight_freshness,
        }

    def validate_top_k(self, top_k: int) -> int:
        low = self.settings.match_top_k_min
        high = self.settings.match_top_k_max
        if not isinstance(top_k, int) or isinstance(top_k, bool) or not low <= top_k <= high:
            raise ValidationError(
                f"top_k debe ser un entero entre {low} y {high}", top_k=top_k
            )
        return top_k

    def validate_inputs(
        self, profile: BuyerProfile, candidates: list[Candidate]
    ) -> None:
        """Errores de cableado: se rechazan antes de cualquier cómputo."""
        if not profile.subject_id.strip():
            raise ValidationError("subject_id vacío")
        dim = self.settings.embedding_dim
        validate_vector(profile.embedding, dim, "perfil")
        for candidate in candidates:
            validate_vector(candidate.embedding, dim, f"listing {candidate.id}")

    def match(
        self,
        profile: Optional[BuyerProfile],
        candidates: list[Candidate],
        top_k: int,
        now: Optional[datetime] = None,
        metadata: Optional[dict] = None,
    ) -> list[MatchResult]:
        """
        Rankea el pool y devuelve el top-K explicado.

        Args:
            profile: Perfil del comprador (None -> lista vacía)
            candidates: Pool de candidatos elegibles
            top_k: Cantidad de resultados (acotado por settings)
            now: Instante de referencia para frescura
            metadata: Contexto extra a guardar en cada resultado

        Returns:
            Lista de MatchResult ordenada por score

        Raises:
            ValidationError: top_k fuera de rango o embedding mal dimensionado
            Forbidden: candidato de otro tenant en un pool AGENCY
        """
        top_k = self.validate_top_k(top_k)
        if profile is None or not candidates:
            return []

        self.validate_inputs(profile, candidates)
        self._check_scope(profile, candidates)

        now = now or datetime.now(timezone.utc)
        pool = [c for c in candidates if c.eligible]

        scored = []
        for candidate in pool:
            scored.append(self._score_candidate(profile, candidate, now, metadata or {}))

        scored.sort(
            key=lambda r: (
                -r.overall_score,
                -(r.freshness_score if r.freshness_score is not None else -1.0),
                r.candidate_id,
            )
        )

        results = []
        for rank, result in enumerate(scored[:top_k], start=1):
            result.rank = rank
            results.append(result)

        logger.debug(
            "Candidatos rankeados",
            subject_id=profile.subject_id,
            pool=len(pool),
            returned=len(results),
        )
        return results

    def _check_scope(self, profile: BuyerProfile, candidates: list[Candidate]) -> None:
        if profile.scope != MatchScope.AGENCY:
            return
        for candidate in candidates:
            if candidate.agency_id != profile.agency_id:
                raise Forbidden(
                    "Candidato fuera del tenant del perfil",
                    subject_id=profile.subject_id,
                    listing_id=candidate.id,
                )

    def _score_candidate(
        self,
        profile: BuyerProfile,
        candidate: Candidate,
        now: datetime,
        metadata: dict,
    ) -> MatchResult:
        structured = self.evaluate_structured(profile, candidate)
        semantic = semantic_score(profile.embedding, candidate.embedding)
        freshness = freshness_score(
            candidate.updated_at, now, self.settings.freshness_half_life_days
        )

        overall, used_weights = blend(
            {
                "structured": structured.score,
                "semantic": semantic,
                "freshness": freshness,
            },
            self.weights,
        )

        chips = list(structured.chips)
        for extra in (semantic_chip(semantic), freshness_chip(freshness)):
            if extra is not None:
                chips.append(extra)

        return MatchResult(
            subject_id=profile.subject_id,
            candidate_id=candidate.id,
            rank=1,
            overall_score=overall,
            structured_score=structured.score or 0.0,
            semantic_score=semantic or 0.0,
            freshness_score=freshness,
            reasons=order_reasons(chips, self.settings.match_max_reasons),
            scope=profile.scope,
            degraded=semantic is None or profile.degraded,
            metadata={
                **metadata,
                "weights": used_weights,
                "semantic_used": semantic is not None,
                "constraints": structured.applicable,
                "profile_source": profile.source.value,
            },
            created_at=now,
        )

    def evaluate_structured(
        self, profile: BuyerProfile, candidate: Candidate
    ) -> StructuredEvaluation:
        """
        Score estructurado + chips de cada restricción.

        Restricciones ausentes en el perfil o desconocidas en el candidato
        no entran en el denominador.
        """
        outcomes = self._constraint_outcomes(profile, candidate)

        known = [o for o in outcomes if o.credit is not None]
        total = sum(o.weight for o in known)

        chips = []
        for outcome in outcomes:
            if outcome.credit is None:
                impact = 0.0
            elif outcome.tone == ReasonTone.NEGATIVE:
                impact = outcome.weight * (1 - outcome.credit) / total
            else:
                impact = outcome.weight * outcome.credit / total
            chips.append(
                ReasonChip(
                    label=outcome.label,
                    tone=outcome.tone,
                    key=outcome.key,
                    impact=min(1.0, impact),
                )
            )

        if total <= 0:
            return StructuredEvaluation(score=None, chips=chips, applicable=0)

        score = sum(o.weight * o.credit for o in known) / total
        return StructuredEvaluation(
            score=max(0.0, min(1.0, score)),
            chips=chips,
            applicable=len(known),
        )

    def _constraint_outcomes(
        self, profile: BuyerProfile, candidate: Candidate
    ) -> list[ConstraintOutcome]:
        f = profile.filters
        w = CONSTRAINT_WEIGHTS
        tolerance = self.settings.range_tolerance
        out: list[ConstraintOutcome] = []

        # Presupuesto
        if f.budget_min is not None or f.budget_max is not None:
            if candidate.price is None:
                out.append(ConstraintOutcome("budget", w["budget"], None, "Price on request", ReasonTone.NEUTRAL))
            else:
                credit, side = range_credit(candidate.price, f.budget_min, f.budget_max, tolerance)
                if side == "in":
                    out.append(ConstraintOutcome("budget", w["budget"], credit, "Within budget", ReasonTone.POSITIVE))
                elif side == "above":
                    label = "Slightly over budget" if credit > 0 else "Over budget"
                    out.append(ConstraintOutcome("budget", w["budget"], credit, label, ReasonTone.NEGATIVE))
                else:
                    out.append(ConstraintOutcome("budget", w["budget"], credit, "Below budget range", ReasonTone.NEGATIVE))

        # Ubicación
        if f.locations:
            wanted = {loc.lower() for loc in f.locations}
            if not candidate.location:
                out.append(ConstraintOutcome("location", w["location"], None, "Location not specified", ReasonTone.NEUTRAL))
            elif candidate.location.strip().lower() in wanted:
                out.append(ConstraintOutcome("location", w["location"], 1.0, f"In {candidate.location.strip()}", ReasonTone.POSITIVE))
            else:
                out.append(ConstraintOutcome("location", w["location"], 0.0, "Outside preferred areas", ReasonTone.NEGATIVE))

        # Dormitorios
        if f.bedrooms_min is not None or f.bedrooms_max is not None:
            if candidate.bedrooms is None:
                out.append(ConstraintOutcome("bedrooms", w["bedrooms"], None, "Bedrooms not specified", ReasonTone.NEUTRAL))
            else:
                credit, side = range_credit(candidate.bedrooms, f.bedrooms_min, f.bedrooms_max, 0.0)
                if side == "in":
                    out.append(ConstraintOutcome("bedrooms", w["bedrooms"], 1.0, "Enough bedrooms", ReasonTone.POSITIVE))
                elif side == "below":
                    out.append(ConstraintOutcome("bedrooms", w["bedrooms"], 0.0, "Too few bedrooms", ReasonTone.NEGATIVE))
                else:
                    out.append(ConstraintOutcome("bedrooms", w["bedrooms"], 0.0, "More bedrooms than wanted", ReasonTone.NEGATIVE))

        # Tipo de operación y de propiedad
        if f.kind is not None:
            if candidate.kind is None:
                out.append(ConstraintOutcome("kind", w["kind"], None, "Listing type not specified", ReasonTone.NEUTRAL))
            elif candidate.kind == f.kind:
                label = "For sale" if f.kind.value == "SALE" else "For rent"
                out.append(ConstraintOutcome("kind", w["kind"], 1.0, label, ReasonTone.POSITIVE))
            else:
                label = "Not for sale" if f.kind.value == "SALE" else "Not for rent"
                out.append(ConstraintOutcome("kind", w["kind"], 0.0, label, ReasonTone.NEGATIVE))

        if f.property_type is not None:
            if candidate.property_type is None:
                out.append(ConstraintOutcome("property_type", w["property_type"], None, "Property type not specified", ReasonTone.NEUTRAL))
            elif candidate.property_type == f.property_type:
                label = f"Property type: {f.property_type.value.lower()}"
                out.append(ConstraintOutcome("property_type", w["property_type"], 1.0, label, ReasonTone.POSITIVE))
            else:
                out.append(ConstraintOutcome("property_type", w["property_type"], 0.0, "Different property type", ReasonTone.NEGATIVE))

        # Superficie
        if f.size_min_sqm is not None or f.size_max_sqm is not None:
            if candidate.size_sqm is None:
                out.append(ConstraintOutcome("size", w["size"], None, "Size not specified", ReasonTone.NEUTRAL))
            else:
                credit, side = range_credit(candidate.size_sqm, f.size_min_sqm, f.size_max_sqm, tolerance)
                if side == "in":
                    out.append(ConstraintOutcome("size", w["size"], credit, "Size in range", ReasonTone.POSITIVE))
                elif side == "below":
                    label = "Slightly below minimum size" if credit > 0 else "Below minimum size"
                    out.append(ConstraintOutcome("size", w["size"], credit, label, ReasonTone.NEGATIVE))
                else:
                    label = "Slightly above maximum size" if credit > 0 else "Above maximum size"
                    out.append(ConstraintOutcome("size", w["size"], credit, label, ReasonTone.NEGATIVE))

        # Baños y cocheras
        if f.bathrooms_min is not None:
            if candidate.bathrooms is None:
                out.append(ConstraintOutcome("bathrooms", w["bathrooms"], None, "Bathrooms not specified", ReasonTone.NEUTRAL))
            elif candidate.bathrooms >= f.bathrooms_min:
                out.append(ConstraintOutcome("bathrooms", w["bathrooms"], 1.0, "Enough bathrooms", ReasonTone.POSITIVE))
            else:
                out.append(ConstraintOutcome("bathrooms", w["bathrooms"], 0.0, "Too few bathrooms", ReasonTone.NEGATIVE))

        if f.parking_min is not None and f.parking_min > 0:
            if candidate.parking_spaces is None:
                out.append(ConstraintOutcome("parking", w["parking"], None, "Parking not specified", ReasonTone.NEUTRAL))
            elif candidate.parking_spaces >= f.parking_min:
                out.append(ConstraintOutcome("parking", w["parking"], 1.0, "Parking available", ReasonTone.POSITIVE))
            else:
                out.append(ConstraintOutcome("parking", w["parking"], 0.0, "Not enough parking", ReasonTone.NEGATIVE))

        # Amenities pedidas
        for amenity in f.wanted_amenities():
            name = AMENITY_LABELS[amenity]
            has = getattr(candidate, amenity)
            if has is None:
                out.append(ConstraintOutcome(amenity, w["amenity"], None, f"{name.capitalize()} not specified", ReasonTone.NEUTRAL))
            elif has:
                label = "Pets allowed" if amenity == "pets_allowed" else (
                    "Furnished" if amenity == "furnished" else f"Has {name}"
                )
                out.append(ConstraintOutcome(amenity, w["amenity"], 1.0, label, ReasonTone.POSITIVE))
            else:
                label = "No pets allowed" if amenity == "pets_allowed" else (
                    "Unfurnished" if amenity == "furnished" else f"No {name}"
                )
                out.append(ConstraintOutcome(amenity, w["amenity"], 0.0, label, ReasonTone.NEGATIVE))

        return out
