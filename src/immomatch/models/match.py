"""
Resultados de matching y chips de explicación.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from immomatch.models.profile import MatchScope


class ReasonTone(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ReasonChip(BaseModel):
    """Chip de explicación mostrado junto a un match."""

    label: str
    tone: ReasonTone
    key: str = Field(..., description="Señal que originó el chip (budget, location, ...)")
    impact: float = Field(
        0.0, ge=0.0, le=1.0,
        description="Fracción del score estructurado ganada o perdida",
    )


class MatchResult(BaseModel):
    """Una fila por (subject, candidato, scope); se sobreescribe en cada corrida."""

    subject_id: str
    candidate_id: str
    rank: int = Field(..., ge=1)
    overall_score: float = Field(..., ge=0.0, le=1.0)
    structured_score: float = Field(..., ge=0.0, le=1.0)
    semantic_score: float = Field(..., ge=0.0, le=1.0)
    freshness_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    reasons: list[ReasonChip] = Field(default_factory=list)
    scope: MatchScope = MatchScope.AGENCY
    degraded: bool = False
    metadata: dict = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_db_dict(self) -> dict:
        """Fila para `lead_matches`."""
        return {
            "lead_id": self.subject_id,
            "listing_id": self.candidate_id,
            "rank": self.rank,
            "scope": self.scope.value,
            "score": self.overall_score,
            "structured_score": self.structured_score,
            "semantic_score": self.semantic_score,
            "freshness_score": self.freshness_score,
            "reasons": [chip.model_dump(mode="json") for chip in self.reasons],
            "degraded": self.degraded,
            "meta": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

    def to_api_dict(self) -> dict:
        """Payload para callers externos."""
        return {
            "candidateId": self.candidate_id,
            "rank": self.rank,
            "overallScore": self.overall_score,
            "structuredScore": self.structured_score,
            "semanticScore": self.semantic_score,
            "freshnessScore": self.freshness_score,
            "reasons": [
                {"label": chip.label, "tone": chip.tone.value} for chip in self.reasons
            ],
            "scope": self.scope.value,
            "degraded": self.degraded,
        }
