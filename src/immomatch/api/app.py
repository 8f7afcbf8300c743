"""
API HTTP del motor.

Rutas:
- POST /agency/leads/{lead_id}/match      matching de un lead ya perfilado
- POST /agency/leads/{lead_id}/profile    pipeline completo de la inquiry
- POST /cron/listings/popularity          recompute de popularidad (con secreto)
"""

import hmac
from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from immomatch.config import Settings, get_settings
from immomatch.errors import Forbidden, ImmomatchError
from immomatch.matching import InquiryPipeline, MatchingEngine
from immomatch.popularity import PopularityAggregator

logger = structlog.get_logger()

app = FastAPI(title="immomatch")


class MatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    top_k: Optional[int] = Field(None, alias="topK")


class PopularityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    window_days: Optional[int] = Field(None, alias="windowDays")


@lru_cache
def get_matching_engine() -> MatchingEngine:
    return MatchingEngine()


@lru_cache
def get_inquiry_pipeline() -> InquiryPipeline:
    return InquiryPipeline(engine=get_matching_engine())


@lru_cache
def get_popularity_aggregator() -> PopularityAggregator:
    return PopularityAggregator()


@app.exception_handler(ImmomatchError)
async def immomatch_error_handler(request: Request, exc: ImmomatchError):
    if exc.http_status >= 500:
        logger.error("Error en request", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("Request rechazado", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "VALIDATION_ERROR", "detail": "Request inválido"},
    )


def _require_agency(agency_id: Optional[str]) -> str:
    if not agency_id or not agency_id.strip():
        raise Forbidden("Falta el header x-agency-id")
    return agency_id.strip()


def check_cron_secret(
    settings: Settings,
    cron_secret: Optional[str],
    authorization: Optional[str],
) -> None:
    """
    Valida el secreto del trigger programado.

    Acepta `x-cron-secret` o `Authorization: Bearer <secreto>`. Sin
    secreto configurado no se acepta ningún trigger.
    """
    expected = settings.cron_secret
    if not expected:
        raise Forbidden("CRON_SECRET no configurado")

    provided = cron_secret
    if not provided and authorization and authorization.lower().startswith("bearer "):
        provided = authorization[7:].strip()

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise Forbidden("Secreto de cron inválido")


@app.post("/agency/leads/{lead_id}/match")
async def match_lead(
    lead_id: str,
    body: Optional[MatchRequest] = None,
    x_agency_id: Optional[str] = Header(None),
    engine: MatchingEngine = Depends(get_matching_engine),
):
    agency_id = _require_agency(x_agency_id)
    run = await engine.match_lead(
        lead_id,
        top_k=body.top_k if body else None,
        agency_id=agency_id,
    )
    return run.to_api_dict()


@app.post("/agency/leads/{lead_id}/profile")
async def profile_lead(
    lead_id: str,
    body: Optional[MatchRequest] = None,
    x_agency_id: Optional[str] = Header(None),
    pipeline: InquiryPipeline = Depends(get_inquiry_pipeline),
):
    agency_id = _require_agency(x_agency_id)
    report = await pipeline.process_lead(
        lead_id,
        top_k=body.top_k if body else None,
        agency_id=agency_id,
    )
    return report.to_api_dict()


@app.post("/cron/listings/popularity")
async def recompute_popularity(
    body: Optional[PopularityRequest] = None,
    x_cron_secret: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    aggregator: PopularityAggregator = Depends(get_popularity_aggregator),
):
    check_cron_secret(settings, x_cron_secret, authorization)
    summary = await aggregator.recompute(window_days=body.window_days if body else None)
    return summary.to_api_dict()
