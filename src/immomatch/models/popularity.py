"""
Registros de popularidad y badges.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Badge(str, Enum):
    NONE = "NONE"
    TRENDING = "TRENDING"
    MOST_SAVED = "MOST_SAVED"
    MOST_VIEWED = "MOST_VIEWED"


class EngagementCounts(BaseModel):
    """Saves y views de un listing dentro de la ventana."""

    listing_id: str
    saves: int = Field(0, ge=0)
    views: int = Field(0, ge=0)


class PopularityRecord(BaseModel):
    """Un registro por listing, recalculado completo en cada corrida."""

    model_config = ConfigDict(frozen=True)

    listing_id: str
    saves_7d: int = Field(0, ge=0)
    views_7d: int = Field(0, ge=0)
    score_7d: float = Field(0.0, ge=0.0)
    segment_key: str = ""
    badge: Badge = Badge.NONE

    def to_db_dict(self) -> dict:
        """Fila para `listing_popularity`."""
        return {
            "listing_id": self.listing_id,
            "saves_7d": self.saves_7d,
            "views_7d": self.views_7d,
            "score_7d": self.score_7d,
            "segment_key": self.segment_key,
            "badge": self.badge.value,
        }
