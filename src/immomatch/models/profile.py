"""
Perfil de comprador e inquiry de origen.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from immomatch.models.filters import ListingKind, PropertyType, StructuredFilters
from immomatch.models.listing import parse_vector


class ProfileSource(str, Enum):
    """Procedencia de los filtros del perfil."""

    EXTRACTED = "EXTRACTED"  # Extractor de intención OK
    FALLBACK = "FALLBACK"  # Extractor falló, filtros desde el contexto
    MANUAL = "MANUAL"


class MatchScope(str, Enum):
    """Alcance del pool de candidatos."""

    AGENCY = "AGENCY"
    NETWORK = "NETWORK"
    PUBLIC = "PUBLIC"


class ListingContext(BaseModel):
    """Listing sobre el que se hizo la consulta (si existe)."""

    title: Optional[str] = None
    location: Optional[str] = None
    price: Optional[int] = None
    kind: Optional[ListingKind] = None
    property_type: Optional[PropertyType] = None


class Inquiry(BaseModel):
    """Consulta entrante de un comprador (lead)."""

    subject_id: str = Field(..., min_length=1, description="ID del lead")
    agency_id: Optional[str] = Field(None, description="Tenant dueño del lead")
    message: str = Field("", description="Texto libre del comprador")
    listing_context: Optional[ListingContext] = None


class BuyerProfile(BaseModel):
    """
    Intención del comprador: filtros + texto normalizado + embedding.

    Se reemplaza completo (upsert) con cada inquiry nueva del mismo subject.
    La dimensión del embedding se valida contra settings en el motor.
    """

    subject_id: str = Field(..., min_length=1)
    agency_id: Optional[str] = None
    scope: MatchScope = MatchScope.AGENCY
    filters: StructuredFilters = Field(default_factory=StructuredFilters)
    query_text: str = ""
    embedding: Optional[list[float]] = None
    source: ProfileSource = ProfileSource.EXTRACTED
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("embedding")
    @classmethod
    def _empty_embedding_is_absent(cls, value):
        if value is not None and len(value) == 0:
            return None
        return value

    @property
    def degraded(self) -> bool:
        return self.source == ProfileSource.FALLBACK or self.embedding is None

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para upsert en Supabase."""
        return {
            "lead_id": self.subject_id,
            "agency_id": self.agency_id,
            "scope": self.scope.value,
            "filters": self.filters.model_dump(mode="json"),
            "query_text": self.query_text,
            "embedding": self.embedding,
            "source": self.source.value,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict) -> "BuyerProfile":
        """Reconstruye el perfil desde una fila de `buyer_profiles`."""
        embedding = row.get("embedding")
        if isinstance(embedding, str):
            embedding = parse_vector(embedding)
        return cls(
            subject_id=row["lead_id"],
            agency_id=row.get("agency_id"),
            scope=row.get("scope") or MatchScope.AGENCY,
            filters=StructuredFilters(**(row.get("filters") or {})),
            query_text=row.get("query_text") or "",
            embedding=embedding,
            source=row.get("source") or ProfileSource.EXTRACTED,
            updated_at=row.get("updated_at") or datetime.now(timezone.utc),
        )
