"""
Colaboradores de IA: extracción de intención y embeddings.
"""

from immomatch.analysis.embeddings import EmbeddingGenerator, normalize_for_embedding
from immomatch.analysis.intent_extractor import (
    ExtractionResult,
    IntentExtractor,
    fallback_filters,
    sanitize_extraction,
)
from immomatch.analysis.listing_text import build_listing_search_text
from immomatch.analysis.listing_indexer import ListingIndexer, ReindexStats
from immomatch.analysis.llm_providers import (
    get_llm_provider,
    BaseLLMProvider,
    GeminiProvider,
    GroqProvider,
    LLMCompletion,
)

__all__ = [
    # Embeddings
    "EmbeddingGenerator",
    "normalize_for_embedding",
    "build_listing_search_text",
    "ListingIndexer",
    "ReindexStats",
    # Extracción
    "ExtractionResult",
    "IntentExtractor",
    "fallback_filters",
    "sanitize_extraction",
    # Proveedores LLM
    "get_llm_provider",
    "BaseLLMProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMCompletion",
]
