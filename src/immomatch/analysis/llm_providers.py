"""
Backends de LLM para la extracción de intención.

Cada backend sabe pedir un único objeto JSON a su API. El corte por
timeout y el log de latencia viven en la base, así el extractor no
conoce ningún SDK. No hay reintentos: un error sube tal cual.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from immomatch.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass
class LLMCompletion:
    text: str
    model: str
    provider: str
    tokens_used: Optional[int] = None


def strip_code_fence(text: str) -> str:
    """Devuelve el contenido de un bloque ```json``` o el texto tal cual."""
    text = (text or "").strip()
    if not text.startswith("```"):
        return text
    body = text[3:]
    if body.endswith("```"):
        body = body[:-3]
    if body.lower().startswith("json"):
        body = body[4:]
    return body.strip()


class BaseLLMProvider(ABC):
    """
    Backend con modo JSON.

    Las subclases implementan `_complete` y devuelven el texto crudo
    junto con los tokens consumidos si la API los informa.
    """

    provider_name: str = "base"
    model: str = "unknown"
    timeout_seconds: Optional[float] = None

    @abstractmethod
    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> tuple[str, Optional[int]]:
        ...

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> LLMCompletion:
        started = time.monotonic()
        text, tokens = await asyncio.wait_for(
            self._complete(system_prompt, user_prompt, temperature, max_tokens),
            timeout=self.timeout_seconds,
        )
        logger.debug(
            "Completion recibida",
            provider=self.provider_name,
            model=self.model,
            tokens=tokens,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )
        return LLMCompletion(
            text=(text or "").strip(),
            model=self.model,
            provider=self.provider_name,
            tokens_used=tokens,
        )


def _require_key(value: Optional[str], env_name: str) -> str:
    if not value:
        raise ValueError(f"{env_name} no configurada")
    return value


class GeminiProvider(BaseLLMProvider):
    provider_name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        from google import genai

        settings = settings or get_settings()
        self.model = model or settings.gemini_model
        self.timeout_seconds = settings.llm_timeout_seconds
        self._client = genai.Client(
            api_key=_require_key(api_key or settings.gemini_api_key, "GEMINI_API_KEY")
        )

    async def _complete(self, system_prompt, user_prompt, temperature, max_tokens):
        from google.genai import types

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json",
        )
        response = await self._client.aio.models.generate_content(
            model=self.model, contents=user_prompt, config=config
        )
        usage = getattr(response, "usage_metadata", None)
        return response.text, getattr(usage, "total_token_count", None)


class GroqProvider(BaseLLMProvider):
    """Groq en JSON mode (`response_format=json_object`)."""

    provider_name = "groq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        from groq import AsyncGroq

        settings = settings or get_settings()
        self.model = model or settings.groq_model
        self.timeout_seconds = settings.llm_timeout_seconds
        self._client = AsyncGroq(
            api_key=_require_key(api_key or settings.groq_api_key, "GROQ_API_KEY")
        )

    async def _complete(self, system_prompt, user_prompt, temperature, max_tokens):
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
        usage = completion.usage
        return completion.choices[0].message.content, usage.total_tokens if usage else None


PROVIDERS: dict[str, type[BaseLLMProvider]] = {
    GroqProvider.provider_name: GroqProvider,
    GeminiProvider.provider_name: GeminiProvider,
}


def get_llm_provider(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> BaseLLMProvider:
    """
    Instancia el backend pedido, o el de `LLM_PROVIDER` si no se indica.

    Raises:
        ValueError: backend desconocido o sin API key
    """
    settings = get_settings()
    name = (provider or settings.llm_provider).lower()
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Proveedor LLM desconocido: {name} (opciones: {', '.join(sorted(PROVIDERS))})"
        ) from None

    instance = provider_cls(api_key=api_key, model=model, settings=settings)
    logger.info("Proveedor LLM listo", provider=name, model=instance.model)
    return instance
