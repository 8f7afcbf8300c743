"""
Extractor de intención del comprador.

Convierte el mensaje libre de una consulta en filtros estructurados y un
texto de búsqueda normalizado. Best-effort: cualquier fallo se reporta como
UpstreamDegraded y el pipeline arma un perfil de respaldo.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from immomatch.analysis.llm_providers import (
    BaseLLMProvider,
    get_llm_provider,
    strip_code_fence,
)
from immomatch.errors import UpstreamDegraded
from immomatch.models import (
    ListingContext,
    ListingKind,
    PropertyType,
    StructuredFilters,
)

logger = structlog.get_logger()

PROMPT_VERSION = "bp_v1"
MAX_MESSAGE_CHARS = 12000
MAX_QUERY_CHARS = 500
MAX_LOCATIONS = 20

EXTRACTION_SYSTEM_PROMPT = """You extract buyer intent/preferences for Luxembourg real estate.
Return ONLY valid JSON matching the schema. No markdown.

Rules:
- If unknown, use null (not empty string).
- communes: array of commune names (Luxembourg). If none, [].
- budgetMin/budgetMax in EUR as integers if present.
- sizes in sqm as integers if present.
- bedrooms/bathrooms as integers if present.
- parkingMin integer if present.
- Infer kind SALE vs RENT only if message strongly indicates. Otherwise null.
- propertyType only if explicit or strongly implied; else null.
- queryText: a short single-sentence summary of intent for embedding (English is fine)."""

SCHEMA_EXAMPLE = {
    "kind": "SALE",
    "propertyType": "APARTMENT",
    "budgetMin": 0,
    "budgetMax": 900000,
    "sizeMinSqm": 70,
    "sizeMaxSqm": None,
    "bedroomsMin": 2,
    "bedroomsMax": None,
    "bathroomsMin": 1,
    "communes": ["Strassen", "Bertrange"],
    "furnished": None,
    "petsAllowed": None,
    "hasElevator": None,
    "hasBalcony": True,
    "hasTerrace": None,
    "hasGarden": None,
    "hasCellar": None,
    "parkingMin": 1,
    "queryText": (
        "Looking to buy a 2-bedroom apartment in Strassen or Bertrange "
        "under 900k EUR with balcony and parking."
    ),
}


def normalize_text(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    """Colapsa espacios y recorta."""
    return re.sub(r"\s+", " ", text or "").strip()[:limit]


def clamp_int(value, low: int, high: int) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(low, min(high, int(math.floor(value))))


def to_bool_or_none(value) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def to_string_list(value, max_len: int = MAX_LOCATIONS) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            name = item.strip()[:80]
            if name not in out:
                out.append(name)
        if len(out) >= max_len:
            break
    return out


def to_enum_or_none(enum_cls, value):
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


def _ordered(low: Optional[int], high: Optional[int]) -> tuple[Optional[int], Optional[int]]:
    if low is not None and high is not None and low > high:
        return high, low
    return low, high


@dataclass
class ExtractionResult:
    """Salida del extractor."""

    filters: StructuredFilters
    query_text: str
    model: str
    prompt_version: str = PROMPT_VERSION


def sanitize_extraction(parsed: dict) -> tuple[StructuredFilters, Optional[str]]:
    """
    Normaliza el JSON crudo del LLM a un StructuredFilters válido.

    Enteros acotados, enums validados, rangos invertidos se intercambian.
    """
    budget_min, budget_max = _ordered(
        clamp_int(parsed.get("budgetMin"), 0, 50_000_000),
        clamp_int(parsed.get("budgetMax"), 0, 50_000_000),
    )
    size_min, size_max = _ordered(
        clamp_int(parsed.get("sizeMinSqm"), 0, 100_000),
        clamp_int(parsed.get("sizeMaxSqm"), 0, 100_000),
    )
    bedrooms_min, bedrooms_max = _ordered(
        clamp_int(parsed.get("bedroomsMin"), 0, 100),
        clamp_int(parsed.get("bedroomsMax"), 0, 100),
    )

    filters = StructuredFilters(
        kind=to_enum_or_none(ListingKind, parsed.get("kind")),
        property_type=to_enum_or_none(PropertyType, parsed.get("propertyType")),
        budget_min=budget_min,
        budget_max=budget_max,
        size_min_sqm=size_min,
        size_max_sqm=size_max,
        bedrooms_min=bedrooms_min,
        bedrooms_max=bedrooms_max,
        bathrooms_min=clamp_int(parsed.get("bathroomsMin"), 0, 100),
        parking_min=clamp_int(parsed.get("parkingMin"), 0, 100),
        locations=to_string_list(parsed.get("communes")),
        furnished=to_bool_or_none(parsed.get("furnished")),
        pets_allowed=to_bool_or_none(parsed.get("petsAllowed")),
        elevator=to_bool_or_none(parsed.get("hasElevator")),
        balcony=to_bool_or_none(parsed.get("hasBalcony")),
        terrace=to_bool_or_none(parsed.get("hasTerrace")),
        garden=to_bool_or_none(parsed.get("hasGarden")),
        cellar=to_bool_or_none(parsed.get("hasCellar")),
    )

    query_text = parsed.get("queryText")
    if isinstance(query_text, str) and query_text.strip():
        query_text = query_text.strip()[:MAX_QUERY_CHARS]
    else:
        query_text = None
    return filters, query_text


def fallback_filters(context: Optional[ListingContext]) -> StructuredFilters:
    """Filtros mínimos derivados del listing consultado."""
    if context is None:
        return StructuredFilters()
    return StructuredFilters(
        kind=context.kind,
        property_type=context.property_type,
        locations=[context.location] if context.location else [],
    )


class IntentExtractor:
    """
    Extrae intención estructurada de una consulta usando el LLM configurado.
    """

    def __init__(self, provider: Optional[BaseLLMProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> BaseLLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    def _build_user_prompt(
        self, message: str, context: Optional[ListingContext]
    ) -> str:
        payload = {
            "listingContext": context.model_dump(mode="json") if context else None,
            "leadMessage": message,
            "outputSchemaExample": SCHEMA_EXAMPLE,
        }
        return json.dumps(payload, ensure_ascii=False)

    async def extract(
        self,
        message: str,
        context: Optional[ListingContext] = None,
    ) -> ExtractionResult:
        """
        Extrae filtros y query text de un mensaje libre.

        Raises:
            UpstreamDegraded: el proveedor falló o devolvió algo no parseable
        """
        message = normalize_text(message)
        if not message:
            raise UpstreamDegraded("Mensaje vacío, no hay nada que extraer")

        try:
            response = await self.provider.generate_json(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=self._build_user_prompt(message, context),
            )
        except Exception as e:
            logger.warning("Error del proveedor LLM en extracción", error=str(e))
            raise UpstreamDegraded(f"Extractor no disponible: {e}") from e

        try:
            parsed = json.loads(strip_code_fence(response.text))
        except json.JSONDecodeError as e:
            raise UpstreamDegraded("El extractor devolvió JSON inválido") from e
        if not isinstance(parsed, dict):
            raise UpstreamDegraded("El extractor no devolvió un objeto JSON")

        try:
            filters, query_text = sanitize_extraction(parsed)
        except PydanticValidationError as e:
            raise UpstreamDegraded(f"Extracción inconsistente: {e}") from e

        logger.debug(
            "Intención extraída",
            model=response.model,
            locations=len(filters.locations),
        )
        return ExtractionResult(
            filters=filters,
            query_text=normalize_text(query_text or message, MAX_QUERY_CHARS),
            model=response.model,
        )
