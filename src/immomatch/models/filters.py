"""
Filtros estructurados de un perfil de comprador.

Tipo cerrado y validado: todo payload de extracción pasa por acá antes de
entrar al pipeline de scoring.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from immomatch.config import AMENITIES


class ListingKind(str, Enum):
    """Tipo de operación."""

    SALE = "SALE"
    RENT = "RENT"


class PropertyType(str, Enum):
    """Tipo de propiedad."""

    APARTMENT = "APARTMENT"
    HOUSE = "HOUSE"
    STUDIO = "STUDIO"
    DUPLEX = "DUPLEX"
    PENTHOUSE = "PENTHOUSE"
    TOWNHOUSE = "TOWNHOUSE"
    ROOM = "ROOM"
    OFFICE = "OFFICE"
    RETAIL = "RETAIL"
    WAREHOUSE = "WAREHOUSE"
    LAND = "LAND"
    OTHER = "OTHER"


class StructuredFilters(BaseModel):
    """
    Intención estructurada del comprador.

    Todos los campos son opcionales: un filtro ausente no penaliza
    a ningún candidato. Las amenities sólo cuentan cuando valen True.
    """

    model_config = ConfigDict(extra="forbid")

    kind: Optional[ListingKind] = None
    property_type: Optional[PropertyType] = None

    # Presupuesto (EUR)
    budget_min: Optional[int] = Field(None, ge=0)
    budget_max: Optional[int] = Field(None, ge=0)

    # Superficie (m²)
    size_min_sqm: Optional[int] = Field(None, ge=0)
    size_max_sqm: Optional[int] = Field(None, ge=0)

    bedrooms_min: Optional[int] = Field(None, ge=0)
    bedrooms_max: Optional[int] = Field(None, ge=0)
    bathrooms_min: Optional[int] = Field(None, ge=0)
    parking_min: Optional[int] = Field(None, ge=0)

    locations: list[str] = Field(
        default_factory=list, description="Comunas aceptables"
    )

    # Amenities deseadas
    balcony: Optional[bool] = None
    terrace: Optional[bool] = None
    garden: Optional[bool] = None
    cellar: Optional[bool] = None
    elevator: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    furnished: Optional[bool] = None

    @field_validator("locations")
    @classmethod
    def _normalize_locations(cls, value: list[str]) -> list[str]:
        seen = set()
        out = []
        for raw in value:
            name = raw.strip()
            if name and name.lower() not in seen:
                seen.add(name.lower())
                out.append(name)
        return out

    @model_validator(mode="after")
    def _check_ranges(self) -> "StructuredFilters":
        for low, high in (
            ("budget_min", "budget_max"),
            ("size_min_sqm", "size_max_sqm"),
            ("bedrooms_min", "bedrooms_max"),
        ):
            lo = getattr(self, low)
            hi = getattr(self, high)
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"{low} ({lo}) no puede ser mayor que {high} ({hi})")
        return self

    def wanted_amenities(self) -> list[str]:
        """Amenities pedidas explícitamente (valor True)."""
        return [name for name in AMENITIES if getattr(self, name) is True]

    def is_empty(self) -> bool:
        """True si no hay ninguna restricción aplicable."""
        data = self.model_dump(exclude={"locations"})
        return not self.locations and all(
            v is None or v is False for v in data.values()
        )
