"""
Settings de immomatch.

Todo se lee de variables de entorno (o de un `.env` en la raíz del
repo). Los pesos y umbrales del matching y de la popularidad también
viven acá para poder ajustarlos sin tocar código.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# src/immomatch/config.py -> raíz del repo
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Base de datos
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_service_key: Optional[str] = Field(
        None, description="Preferida sobre la anon key: el recompute escribe en todos los tenants"
    )
    supabase_page_size: int = Field(
        1000, ge=1, description="Filas por página; no mayor que el max-rows de PostgREST"
    )

    # Extracción de intención
    llm_provider: str = Field("groq", description="Backend de extracción: groq | gemini")
    llm_timeout_seconds: float = Field(20.0, gt=0.0)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.1-8b-instant"

    # Embeddings
    embedding_model: str = Field(
        "gemini-embedding-001", description="Modelo de embeddings de Google"
    )
    embedding_dim: int = Field(
        1536, ge=1, description="Dimensión fija de los vectores (perfil y listing)"
    )

    # Matching: pesos de combinación (se renormalizan sobre las señales presentes)
    match_weight_structured: float = Field(0.5, ge=0.0, le=1.0)
    match_weight_semantic: float = Field(0.4, ge=0.0, le=1.0)
    match_weight_freshness: float = Field(0.1, ge=0.0, le=1.0)

    match_top_k_default: int = Field(10, ge=1, description="Top-K por defecto")
    match_top_k_min: int = Field(1, ge=1)
    match_top_k_max: int = Field(50, ge=1)
    match_max_reasons: int = Field(12, ge=1, description="Máximo de chips por resultado")
    match_candidate_limit: int = Field(
        500, ge=1, description="Máximo de candidatos leídos del índice por corrida"
    )
    freshness_half_life_days: float = Field(
        30.0, gt=0.0, description="Vida media (días) del score de frescura"
    )
    range_tolerance: float = Field(
        0.1, ge=0.0, le=1.0,
        description="Tolerancia relativa para crédito parcial en presupuesto/superficie",
    )

    # Popularidad
    popularity_window_days: int = Field(7, ge=1, le=90)
    popularity_weight_save: float = Field(5.0, ge=0.0)
    popularity_weight_view: float = Field(1.0, ge=0.0)
    popularity_recency_step: float = Field(0.5, ge=0.0)
    popularity_min_most_saved: int = Field(5, ge=0)
    popularity_min_most_viewed: int = Field(60, ge=0)
    popularity_min_trending_saves: int = Field(3, ge=0)
    popularity_min_trending_views: int = Field(25, ge=0)
    popularity_trending_fraction: float = Field(0.1, gt=0.0, le=1.0)

    # Trigger programado
    cron_secret: Optional[str] = Field(
        None, description="Secreto compartido para el recompute de popularidad"
    )

    # API
    api_host: str = Field("0.0.0.0", description="Host de escucha de la API")
    api_port: int = Field(8000, description="Puerto de la API")

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")
    log_json: bool = Field(False, description="Emitir eventos como JSON (una línea cada uno)")

    @model_validator(mode="after")
    def _check_top_k_bounds(self) -> "Settings":
        if not self.match_top_k_min <= self.match_top_k_default <= self.match_top_k_max:
            raise ValueError(
                "Se requiere MATCH_TOP_K_MIN <= MATCH_TOP_K_DEFAULT <= MATCH_TOP_K_MAX"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Orden en el que se listan los amenities pedidos (chips y razones)
AMENITIES = [
    "balcony",
    "terrace",
    "garden",
    "cellar",
    "elevator",
    "pets_allowed",
    "furnished",
]
