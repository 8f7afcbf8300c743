"""
Módulo de base de datos.

Provee acceso a Supabase y a las tablas que lee y escribe el motor.
"""

from immomatch.database.supabase_client import get_supabase_client, SupabaseClient
from immomatch.database.repositories import (
    BuyerProfileRepository,
    EngagementRepository,
    LeadRepository,
    ListingIndexRepository,
    ListingRepository,
    MatchResultRepository,
    PopularityRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "BuyerProfileRepository",
    "EngagementRepository",
    "LeadRepository",
    "ListingIndexRepository",
    "ListingRepository",
    "MatchResultRepository",
    "PopularityRepository",
]
