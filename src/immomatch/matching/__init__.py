"""
Motor de matching.

Combina restricciones estructuradas, similitud semántica y frescura para
rankear listings contra la intención de cada comprador.
"""

from immomatch.matching.engine import MatchingEngine, MatchRun
from immomatch.matching.pipeline import (
    InquiryPipeline,
    PipelineReport,
    StageResult,
    StageStatus,
)
from immomatch.matching.pool import CandidatePoolSelector, PoolMode, build_pool_queries
from immomatch.matching.scorer import MatchScorer, range_credit

__all__ = [
    "MatchingEngine",
    "MatchRun",
    "InquiryPipeline",
    "PipelineReport",
    "StageResult",
    "StageStatus",
    "CandidatePoolSelector",
    "PoolMode",
    "build_pool_queries",
    "MatchScorer",
    "range_credit",
]
