"""
Embeddings de texto para el score semántico.

Perfiles de comprador y listings comparten modelo y dimensión
(`EMBEDDING_MODEL`, `EMBEDDING_DIM`), si no el coseno no tiene sentido.
Groq no ofrece embeddings, así que esto siempre va contra Gemini.
"""

import math
import re
from typing import Optional

import structlog
from google import genai
from google.genai import types

from immomatch.config import Settings, get_settings
from immomatch.errors import UpstreamDegraded

logger = structlog.get_logger()

MAX_EMBED_CHARS = 12000


def normalize_for_embedding(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()[:MAX_EMBED_CHARS]


class EmbeddingGenerator:
    """
    Texto -> vector de `embedding_dim` floats.

    Cualquier problema (texto vacío, error de red, vector con otra
    dimensión o con NaN) sale como UpstreamDegraded. Quien llama decide si
    sigue sin señal semántica.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client=None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.model_name = settings.embedding_model
        self.output_dim = settings.embedding_dim

        if client is None:
            key = api_key or settings.gemini_api_key
            if not key:
                raise ValueError("GEMINI_API_KEY no configurada (requerida para embeddings)")
            client = genai.Client(api_key=key)
        self.client = client

    def _validate(self, values) -> list[float]:
        vector = [float(v) for v in values]
        if len(vector) != self.output_dim:
            raise UpstreamDegraded(
                f"El modelo devolvió {len(vector)} dimensiones, se esperaban {self.output_dim}"
            )
        if not all(math.isfinite(v) for v in vector):
            raise UpstreamDegraded("El modelo devolvió valores no finitos")
        return vector

    async def embed_text(self, text: str) -> list[float]:
        text = normalize_for_embedding(text)
        if not text:
            raise UpstreamDegraded("No hay texto para embeber")

        try:
            response = await self.client.aio.models.embed_content(
                model=self.model_name,
                contents=text,
                config=types.EmbedContentConfig(output_dimensionality=self.output_dim),
            )
            values = response.embeddings[0].values
        except Exception as e:
            logger.warning("Embeddings no disponibles", model=self.model_name, error=str(e))
            raise UpstreamDegraded(f"Servicio de embeddings no disponible: {e}") from e

        vector = self._validate(values)
        logger.debug("Embedding generado", chars=len(text), dim=len(vector))
        return vector
