"""
Proyecciones de listing que consume el motor.

El índice de listings es dueño de estos datos; acá sólo se leen.
"""

import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from immomatch.models.filters import ListingKind, PropertyType


def parse_vector(value) -> Optional[list[float]]:
    """
    Parsea un vector que puede venir como lista o como texto pgvector
    ('[0.1,0.2,...]').
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, list):
        return None
    return [float(x) for x in value]


class Candidate(BaseModel):
    """Snapshot de sólo lectura de un listing elegible para scoring."""

    id: str
    agency_id: Optional[str] = None

    kind: Optional[ListingKind] = None
    property_type: Optional[PropertyType] = None
    price: Optional[int] = None
    size_sqm: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    parking_spaces: Optional[int] = None
    location: Optional[str] = None

    balcony: Optional[bool] = None
    terrace: Optional[bool] = None
    garden: Optional[bool] = None
    cellar: Optional[bool] = None
    elevator: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    furnished: Optional[bool] = None

    is_published: bool = True
    is_active: bool = True
    embedding: Optional[list[float]] = None
    updated_at: Optional[datetime] = None

    @property
    def eligible(self) -> bool:
        return self.is_published and self.is_active

    @classmethod
    def from_index_row(cls, row: dict) -> "Candidate":
        """Construye un Candidate desde una fila de `listing_search_index`."""
        return cls(
            id=row["listing_id"],
            agency_id=row.get("agency_id"),
            kind=row.get("kind"),
            property_type=row.get("property_type"),
            price=row.get("price"),
            size_sqm=row.get("size_sqm"),
            bedrooms=row.get("bedrooms"),
            bathrooms=row.get("bathrooms"),
            parking_spaces=row.get("parking_spaces"),
            location=row.get("commune"),
            balcony=row.get("has_balcony"),
            terrace=row.get("has_terrace"),
            garden=row.get("has_garden"),
            cellar=row.get("has_cellar"),
            elevator=row.get("has_elevator"),
            pets_allowed=row.get("pets_allowed"),
            furnished=row.get("furnished"),
            is_published=(row.get("status") or "PUBLISHED") == "PUBLISHED",
            is_active=(row.get("listing_status") or "ACTIVE") == "ACTIVE",
            embedding=parse_vector(row.get("embedding")),
            updated_at=row.get("updated_at"),
        )


class PopularityListing(BaseModel):
    """Proyección mínima de listing para el agregador de popularidad."""

    id: str
    created_at: datetime
    kind: Optional[str] = None
    property_type: Optional[str] = None
    location: Optional[str] = None
    is_published: bool = True
    status: str = Field("ACTIVE", description="ACTIVE, SOLD, UNAVAILABLE, ARCHIVED")

    @property
    def eligible(self) -> bool:
        return self.is_published and self.status == "ACTIVE"


class CandidateQuery(BaseModel):
    """
    Filtros SQL con los que se lee el pool de candidatos del índice.

    Siempre incluye publicados; el resto es opcional.
    """

    agency_id: Optional[str] = None
    kind: Optional[str] = None
    property_type: Optional[str] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    size_min: Optional[int] = None
    size_max: Optional[int] = None
    bedrooms_min: Optional[int] = None
    bathrooms_min: Optional[int] = None
    locations: list[str] = Field(default_factory=list)
