"""
Acceso a Postgres vía Supabase.

Un único cliente por proceso. Las escrituras que necesitan transacción
(reemplazo de snapshots de matches) o agregación (conteo de engagement)
van por funciones SQL definidas en `sql/schema.sql`.
"""

from functools import lru_cache
from typing import Any, Optional

import structlog
from supabase import Client, create_client

from immomatch.config import Settings, get_settings

logger = structlog.get_logger()


class SupabaseClient:
    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseClient":
        """
        Raises:
            ValueError: falta la URL o no hay ninguna key
        """
        key = settings.supabase_service_key or settings.supabase_key
        if not settings.supabase_url or not key:
            raise ValueError(
                "Faltan SUPABASE_URL y SUPABASE_KEY (o SUPABASE_SERVICE_KEY) en el entorno"
            )
        logger.info(
            "Conectando a Supabase",
            url=settings.supabase_url,
            service_role=bool(settings.supabase_service_key),
        )
        return cls(create_client(settings.supabase_url, key))

    @property
    def client(self) -> Client:
        return self._client

    def table(self, name: str):
        return self._client.table(name)

    def execute_rpc(self, function_name: str, params: Optional[dict[str, Any]] = None) -> list:
        """Llama a una función SQL y devuelve sus filas (lista vacía si no hay)."""
        try:
            data = self._client.rpc(function_name, params or {}).execute().data
        except Exception as e:
            logger.error("Falló la función SQL", function=function_name, error=str(e))
            raise
        return data or []

    def rpc(self, function_name: str, params: Optional[dict[str, Any]] = None):
        """Builder de una función SQL, para paginar con `range` antes de ejecutar."""
        return self._client.rpc(function_name, params or {})


@lru_cache
def get_supabase_client() -> SupabaseClient:
    return SupabaseClient.from_settings(get_settings())
