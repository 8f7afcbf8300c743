"""
Modelos de datos del sistema.

- Perfil: BuyerProfile, StructuredFilters, Inquiry
- Índice: Candidate, PopularityListing
- Salidas: MatchResult, PopularityRecord
"""

from immomatch.models.filters import ListingKind, PropertyType, StructuredFilters
from immomatch.models.profile import (
    BuyerProfile,
    Inquiry,
    ListingContext,
    MatchScope,
    ProfileSource,
)
from immomatch.models.listing import (
    Candidate,
    CandidateQuery,
    PopularityListing,
    parse_vector,
)
from immomatch.models.match import MatchResult, ReasonChip, ReasonTone
from immomatch.models.popularity import Badge, EngagementCounts, PopularityRecord

__all__ = [
    # Filtros
    "ListingKind",
    "PropertyType",
    "StructuredFilters",
    # Perfil
    "BuyerProfile",
    "Inquiry",
    "ListingContext",
    "MatchScope",
    "ProfileSource",
    # Índice
    "Candidate",
    "CandidateQuery",
    "PopularityListing",
    "parse_vector",
    # Matching
    "MatchResult",
    "ReasonChip",
    "ReasonTone",
    # Popularidad
    "Badge",
    "EngagementCounts",
    "PopularityRecord",
]
