"""
Texto de búsqueda de un listing para el índice semántico.

Formato de líneas `CLAVE: valor`, determinístico para que re-indexar un
listing sin cambios produzca el mismo texto (y el mismo embedding).
"""

import re
from typing import Optional

# Anclas multilingües (Luxemburgo: EN/FR/DE)
SYNONYM_LINES = [
    "SYNONYMS: balcony terrasse loggia patio",
    "SYNONYMS: cave cellar storage basement",
    "SYNONYMS: lift elevator ascenseur aufzug",
    "SYNONYMS: parking garage carport",
    "SYNONYMS: furnished meublé möbliert",
    "SYNONYMS: pet friendly animaux haustiere",
    "SYNONYMS: sale vente verkauf rent location miete",
]

_AMENITY_FIELDS = [
    ("FURNISHED", "furnished"),
    ("PETS_ALLOWED", "pets_allowed"),
    ("ELEVATOR", "has_elevator"),
    ("BALCONY", "has_balcony"),
    ("TERRACE", "has_terrace"),
    ("GARDEN", "has_garden"),
    ("CELLAR", "has_cellar"),
]

_SPEC_FIELDS = [
    ("PRICE_EUR", "price"),
    ("SIZE_SQM", "size_sqm"),
    ("BEDROOMS", "bedrooms"),
    ("BATHROOMS", "bathrooms"),
    ("YEAR_BUILT", "year_built"),
    ("FLOOR", "floor"),
    ("TOTAL_FLOORS", "total_floors"),
    ("CONDITION", "condition"),
    ("ENERGY_CLASS", "energy_class"),
    ("HEATING_TYPE", "heating_type"),
    ("MONTHLY_CHARGES_EUR", "charges_monthly"),
    ("DEPOSIT_EUR", "deposit"),
    ("AGENCY_FEES_EUR", "fees_agency"),
]


def _clean(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def build_listing_search_text(listing: dict) -> str:
    """
    Construye el texto a embeber para un listing.

    Args:
        listing: Fila de `listings` (claves snake_case)

    Returns:
        Texto multilínea con identidad, specs, amenities y sinónimos
    """
    lines = [
        f"TITLE: {_clean(listing.get('title'))}",
        f"COMMUNE: {_clean(listing.get('commune'))}",
    ]

    if listing.get("kind"):
        lines.append(f"LISTING_TYPE: {listing['kind']}")
    if listing.get("property_type"):
        lines.append(f"PROPERTY_TYPE: {listing['property_type']}")
    if listing.get("address_hint"):
        lines.append(f"AREA: {_clean(listing['address_hint'])}")
    if listing.get("description"):
        lines.append(f"DESCRIPTION: {_clean(listing['description'])}")

    for label, key in _SPEC_FIELDS:
        if listing.get(key) is not None:
            lines.append(f"{label}: {listing[key]}")

    if listing.get("available_from"):
        lines.append(f"AVAILABLE_FROM: {listing['available_from']}")

    for label, key in _AMENITY_FIELDS:
        value = listing.get(key)
        if value is True:
            lines.append(f"{label}: yes")
        elif value is False:
            lines.append(f"{label}: no")

    parking = listing.get("parking_spaces")
    if parking is not None and parking > 0:
        lines.append(f"PARKING_SPACES: {parking}")

    if listing.get("agency_name"):
        lines.append(f"AGENCY: {_clean(listing['agency_name'])}")

    lines.extend(SYNONYM_LINES)
    return "\n".join(lines)
