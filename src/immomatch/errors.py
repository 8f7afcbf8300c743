"""
Taxonomía de errores del motor.

Cada error lleva un código legible por máquina y el status HTTP con el que
la API lo expone. Las degradaciones de señal no son errores fatales: se
registran en el resultado y el cómputo sigue.
"""

from typing import Optional


class ImmomatchError(Exception):
    """Error base del motor de matching y popularidad."""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        """Payload de error para la API."""
        payload = {"error": self.code, "detail": self.message}
        if self.context:
            payload["context"] = self.context
        return payload


class ValidationError(ImmomatchError):
    """Input mal formado (dimensión de embedding, top_k, subject vacío)."""

    code = "VALIDATION_ERROR"
    http_status = 400


class UpstreamDegraded(ImmomatchError):
    """Extractor de intención o servicio de embeddings no disponible."""

    code = "UPSTREAM_DEGRADED"
    http_status = 503


class NotFound(ImmomatchError):
    """Subject o listing requerido inexistente."""

    code = "NOT_FOUND"
    http_status = 404


class Forbidden(ImmomatchError):
    """Acceso cruzado entre tenants o trigger sin secreto válido."""

    code = "FORBIDDEN"
    http_status = 403


class PersistenceFailure(ImmomatchError):
    """Falló una escritura en el store."""

    code = "PERSISTENCE_FAILURE"
    http_status = 500

    def __init__(
        self,
        message: str,
        stage: str,
        listing_id: Optional[str] = None,
        subject_id: Optional[str] = None,
    ):
        context = {"stage": stage}
        if listing_id is not None:
            context["listing_id"] = listing_id
        if subject_id is not None:
            context["subject_id"] = subject_id
        super().__init__(message, **context)
        self.stage = stage
        self.listing_id = listing_id
        self.subject_id = subject_id


class DeadlineExceeded(ImmomatchError):
    """El deadline impuesto por el caller venció antes de terminar."""

    code = "DEADLINE_EXCEEDED"
    http_status = 504
