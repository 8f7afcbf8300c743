"""
Pipeline de una inquiry: extracción -> embedding -> perfil -> matching.

Cada etapa devuelve un StageResult explícito. El orquestador decide qué es
fatal: sólo la persistencia del perfil corta el pipeline; extracción y
embedding degradan, y un fallo de matching queda como advertencia.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from immomatch.analysis import (
    EmbeddingGenerator,
    IntentExtractor,
    fallback_filters,
)
from immomatch.analysis.intent_extractor import MAX_QUERY_CHARS, normalize_text
from immomatch.config import Settings, get_settings
from immomatch.database import BuyerProfileRepository, LeadRepository
from immomatch.errors import (
    DeadlineExceeded,
    Forbidden,
    NotFound,
    PersistenceFailure,
    UpstreamDegraded,
    ValidationError,
)
from immomatch.matching.engine import MatchingEngine, MatchRun
from immomatch.models import (
    BuyerProfile,
    Inquiry,
    ListingContext,
    MatchScope,
    ProfileSource,
)

logger = structlog.get_logger()


class StageStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    name: str
    status: StageStatus
    detail: Optional[str] = None


@dataclass
class PipelineReport:
    """Reporte por etapa de una inquiry procesada."""

    subject_id: str
    stages: list[StageResult] = field(default_factory=list)
    profile: Optional[BuyerProfile] = None
    match_run: Optional[MatchRun] = None

    @property
    def degraded(self) -> bool:
        return any(s.status != StageStatus.SUCCESS for s in self.stages)

    @property
    def failed(self) -> bool:
        return any(s.status == StageStatus.FAILED for s in self.stages)

    def stage(self, name: str) -> Optional[StageResult]:
        for s in self.stages:
            if s.name == name:
                return s
        return None

    def to_api_dict(self) -> dict:
        return {
            "ok": not self.failed,
            "leadId": self.subject_id,
            "degraded": self.degraded,
            "profileSource": self.profile.source.value if self.profile else None,
            "stages": [
                {"name": s.name, "status": s.status.value, "detail": s.detail}
                for s in self.stages
            ],
            "matches": self.match_run.to_api_dict() if self.match_run else None,
        }


def inquiry_from_lead(lead: dict) -> Inquiry:
    """Arma la Inquiry desde la fila del lead (con su listing embebido)."""
    listing = lead.get("listings") or None
    context = None
    if listing:
        context = ListingContext(
            title=listing.get("title"),
            location=listing.get("commune"),
            price=listing.get("price"),
            kind=listing.get("kind"),
            property_type=listing.get("property_type"),
        )
    return Inquiry(
        subject_id=lead["id"],
        agency_id=lead.get("agency_id"),
        message=lead.get("message") or "",
        listing_context=context,
    )


class InquiryPipeline:
    """Procesa una consulta entrante de punta a punta."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        lead_repo: Optional[LeadRepository] = None,
        profile_repo: Optional[BuyerProfileRepository] = None,
        extractor: Optional[IntentExtractor] = None,
        embedder: Optional[EmbeddingGenerator] = None,
        engine: Optional[MatchingEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.lead_repo = lead_repo or LeadRepository()
        self.profile_repo = profile_repo or BuyerProfileRepository()
        self.extractor = extractor or IntentExtractor()
        self._embedder = embedder
        self.engine = engine or MatchingEngine(
            settings=self.settings,
            lead_repo=self.lead_repo,
            profile_repo=self.profile_repo,
        )

    def _resolve_top_k(self, top_k: Optional[int]) -> int:
        if top_k is None:
            top_k = self.settings.match_top_k_default
        return self.engine.scorer.validate_top_k(top_k)

    def _get_embedder(self) -> EmbeddingGenerator:
        if self._embedder is None:
            try:
                self._embedder = EmbeddingGenerator(settings=self.settings)
            except ValueError as e:
                raise UpstreamDegraded(str(e)) from e
        return self._embedder

    async def process_lead(
        self,
        lead_id: str,
        top_k: Optional[int] = None,
        agency_id: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> PipelineReport:
        """
        Procesa el lead guardado en la base.

        Raises:
            NotFound: el lead no existe
            Forbidden: el lead pertenece a otro tenant
            ValidationError: top_k fuera de rango (antes de tocar nada)
        """
        top_k = self._resolve_top_k(top_k)
        if not lead_id or not lead_id.strip():
            raise ValidationError("lead_id vacío")
        lead = self.lead_repo.get_by_id(lead_id)
        if not lead:
            raise NotFound("Lead no encontrado", lead_id=lead_id)
        if agency_id is not None and lead.get("agency_id") != agency_id:
            raise Forbidden("El lead pertenece a otro tenant", lead_id=lead_id)

        return await self.process(inquiry_from_lead(lead), top_k=top_k, deadline=deadline)

    async def process(
        self,
        inquiry: Inquiry,
        top_k: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> PipelineReport:
        """
        Corre las cuatro etapas sobre una inquiry.

        Raises:
            PersistenceFailure: no se pudo guardar el perfil (fatal)
            ValidationError: top_k fuera de rango o vector inválido
        """
        top_k = self._resolve_top_k(top_k)
        report = PipelineReport(subject_id=inquiry.subject_id)
        message = normalize_text(inquiry.message)

        # 1) Extracción de intención
        try:
            extraction = await self.extractor.extract(message, inquiry.listing_context)
            filters = extraction.filters
            query_text = extraction.query_text
            source = ProfileSource.EXTRACTED
            report.stages.append(StageResult("extract", StageStatus.SUCCESS, extraction.model))
        except UpstreamDegraded as e:
            filters = fallback_filters(inquiry.listing_context)
            query_text = normalize_text(message, MAX_QUERY_CHARS)
            source = ProfileSource.FALLBACK
            report.stages.append(StageResult("extract", StageStatus.DEGRADED, e.message))
            logger.warning(
                "Extracción degradada, usando perfil de respaldo",
                lead_id=inquiry.subject_id,
                error=e.message,
            )

        # 2) Embedding del query text
        embedding = None
        try:
            embedding = await self._get_embedder().embed_text(query_text)
            report.stages.append(StageResult("embed", StageStatus.SUCCESS))
        except UpstreamDegraded as e:
            report.stages.append(StageResult("embed", StageStatus.DEGRADED, e.message))
            logger.warning(
                "Embedding no disponible, matching sólo estructurado",
                lead_id=inquiry.subject_id,
                error=e.message,
            )

        # 3) Persistir perfil (fatal si falla)
        profile = BuyerProfile(
            subject_id=inquiry.subject_id,
            agency_id=inquiry.agency_id,
            scope=MatchScope.AGENCY if inquiry.agency_id else MatchScope.PUBLIC,
            filters=filters,
            query_text=query_text,
            embedding=embedding,
            source=source,
        )
        self.profile_repo.upsert(profile)
        report.profile = profile
        report.stages.append(StageResult("persist_profile", StageStatus.SUCCESS))

        # 4) Matching: una falla de store o de deadline no invalida el perfil
        try:
            report.match_run = await self.engine.match_profile(
                profile,
                top_k=top_k,
                agency_id=inquiry.agency_id,
                deadline=deadline,
            )
            status = StageStatus.DEGRADED if report.match_run.degraded else StageStatus.SUCCESS
            report.stages.append(StageResult("match", status, report.match_run.reason))
        except (PersistenceFailure, DeadlineExceeded) as e:
            report.stages.append(StageResult("match", StageStatus.FAILED, e.code))
            logger.error(
                "Matching falló tras guardar el perfil",
                lead_id=inquiry.subject_id,
                error=e.message,
                code=e.code,
            )

        logger.info(
            "Inquiry procesada",
            lead_id=inquiry.subject_id,
            source=source.value,
            stages={s.name: s.status.value for s in report.stages},
        )
        return report
