"""
Motor de matching entre leads y listings.

Implementa:
- Lectura del perfil y chequeo de tenant
- Pool de candidatos con escalera de relajación
- Scoring estructurado + semántico + frescura (MatchScorer)
- Snapshot atómico del top-K por (lead, scope)
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from immomatch.config import Settings, get_settings
from immomatch.database import (
    BuyerProfileRepository,
    LeadRepository,
    ListingIndexRepository,
    MatchResultRepository,
)
from immomatch.errors import DeadlineExceeded, Forbidden, NotFound, ValidationError
from immomatch.matching.pool import CandidatePoolSelector, PoolMode, build_pool_queries
from immomatch.matching.scorer import MatchScorer
from immomatch.models import BuyerProfile, Candidate, MatchResult, MatchScope
from immomatch.scoring import validate_vector

logger = structlog.get_logger()


@dataclass
class MatchRun:
    """Resultado de una corrida de matching para un lead."""

    subject_id: str
    scope: MatchScope
    results: list[MatchResult] = field(default_factory=list)
    pool_mode: Optional[PoolMode] = None
    candidate_count: int = 0
    reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return any(r.degraded for r in self.results)

    def to_api_dict(self) -> dict:
        return {
            "ok": True,
            "leadId": self.subject_id,
            "scope": self.scope.value,
            "matched": len(self.results),
            "degraded": self.degraded,
            "poolMode": self.pool_mode.value if self.pool_mode else None,
            "candidateCount": self.candidate_count,
            "reason": self.reason,
            "results": [r.to_api_dict() for r in self.results],
        }


class MatchingEngine:
    """
    Orquesta una corrida de matching para un lead.

    Flujo:
    1. Validar top_k y leer el lead (NotFound / Forbidden)
    2. Leer el perfil (sin perfil -> resultado vacío)
    3. Traer el pool con la escalera strict -> budget_only
    4. Rankear con MatchScorer
    5. Reemplazar el snapshot del lead para el scope
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        lead_repo: Optional[LeadRepository] = None,
        profile_repo: Optional[BuyerProfileRepository] = None,
        index_repo: Optional[ListingIndexRepository] = None,
        match_repo: Optional[MatchResultRepository] = None,
        scorer: Optional[MatchScorer] = None,
    ):
        self.settings = settings or get_settings()
        self.lead_repo = lead_repo or LeadRepository()
        self.profile_repo = profile_repo or BuyerProfileRepository()
        self.index_repo = index_repo or ListingIndexRepository()
        self.match_repo = match_repo or MatchResultRepository()
        self.scorer = scorer or MatchScorer(self.settings)

    async def match_lead(
        self,
        lead_id: str,
        top_k: Optional[int] = None,
        agency_id: Optional[str] = None,
        deadline: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> MatchRun:
        """
        Calcula y persiste los matches de un lead.

        Args:
            lead_id: ID del lead (subject)
            top_k: Cantidad de resultados (default de settings)
            agency_id: Tenant del caller; si viene, debe coincidir con el del lead
            deadline: Instante límite en `time.monotonic()`
            now: Instante de referencia para frescura

        Returns:
            MatchRun con los resultados en orden de ranking

        Raises:
            ValidationError: lead_id vacío, top_k fuera de rango, embedding mal dimensionado
            NotFound: el lead no existe
            Forbidden: tenant del caller o del perfil distinto al del lead
            PersistenceFailure: falló la escritura del snapshot
            DeadlineExceeded: venció el deadline antes de escribir
        """
        if not lead_id or not lead_id.strip():
            raise ValidationError("lead_id vacío")
        top_k = self.scorer.validate_top_k(
            top_k if top_k is not None else self.settings.match_top_k_default
        )

        lead = self.lead_repo.get_by_id(lead_id)
        if not lead:
            raise NotFound("Lead no encontrado", lead_id=lead_id)

        lead_agency = lead.get("agency_id")
        if agency_id is not None and lead_agency != agency_id:
            raise Forbidden("El lead pertenece a otro tenant", lead_id=lead_id)

        profile = self.profile_repo.get_by_lead_id(lead_id)
        if profile is None:
            logger.info("Lead sin perfil, no hay nada que matchear", lead_id=lead_id)
            scope = MatchScope.AGENCY if lead_agency else MatchScope.PUBLIC
            return MatchRun(subject_id=lead_id, scope=scope, reason="no_profile")

        return await self.match_profile(
            profile,
            top_k=top_k,
            agency_id=lead_agency,
            deadline=deadline,
            now=now,
        )

    async def match_profile(
        self,
        profile: BuyerProfile,
        top_k: int,
        agency_id: Optional[str] = None,
        deadline: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> MatchRun:
        """Matching de un perfil ya cargado (usado también por el pipeline de inquiries)."""
        top_k = self.scorer.validate_top_k(top_k)
        validate_vector(profile.embedding, self.settings.embedding_dim, "perfil")

        if profile.scope == MatchScope.AGENCY and profile.agency_id != agency_id:
            raise Forbidden(
                "El scope del perfil no coincide con el pool pedido",
                lead_id=profile.subject_id,
            )

        selector = CandidatePoolSelector(scope=profile.scope, agency_id=agency_id)
        mode, candidates = self._load_pool(profile, selector)

        run = MatchRun(
            subject_id=profile.subject_id,
            scope=profile.scope,
            pool_mode=mode,
            candidate_count=len(candidates),
        )

        run.results = self.scorer.match(
            profile,
            candidates,
            top_k,
            now=now or datetime.now(timezone.utc),
            metadata={
                "pool_mode": mode.value if mode else None,
                "candidate_count": len(candidates),
            },
        )
        if not candidates:
            run.reason = "no_candidates"

        if deadline is not None and time.monotonic() > deadline:
            raise DeadlineExceeded(
                "Deadline vencido antes de persistir matches",
                lead_id=profile.subject_id,
            )

        self.match_repo.replace_snapshot(profile.subject_id, profile.scope, run.results)

        logger.info(
            "Matching completado",
            lead_id=profile.subject_id,
            pool_mode=run.pool_mode.value if run.pool_mode else None,
            candidates=run.candidate_count,
            matched=len(run.results),
            degraded=run.degraded,
        )
        return run

    def _load_pool(
        self,
        profile: BuyerProfile,
        selector: CandidatePoolSelector,
    ) -> tuple[Optional[PoolMode], list[Candidate]]:
        limit = self.settings.match_candidate_limit
        mode = None
        for mode, query in build_pool_queries(
            profile, selector, self.settings.range_tolerance
        ):
            candidates = self.index_repo.fetch_candidates(query, limit=limit)
            if candidates:
                return mode, candidates
        return mode, []
