"""
Fixtures y fakes en memoria para los tests.

Los fakes imitan la interfaz de los repositorios y colaboradores reales
sin tocar Supabase ni los proveedores de IA.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from immomatch.analysis.llm_providers import BaseLLMProvider
from immomatch.config import Settings
from immomatch.errors import PersistenceFailure, UpstreamDegraded
from immomatch.models import (
    Badge,
    BuyerProfile,
    Candidate,
    CandidateQuery,
    EngagementCounts,
    MatchResult,
    MatchScope,
    PopularityListing,
    PopularityRecord,
    StructuredFilters,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
DIM = 4


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_key=None,
        embedding_dim=DIM,
        cron_secret="s3cret",
    )


def make_candidate(id: str = "l1", **overrides) -> Candidate:
    data = {
        "id": id,
        "agency_id": "ag1",
        "kind": "SALE",
        "property_type": "APARTMENT",
        "price": 350_000,
        "size_sqm": 80,
        "bedrooms": 2,
        "bathrooms": 1,
        "location": "Kirchberg",
    }
    data.update(overrides)
    return Candidate(**data)


def make_profile(subject_id: str = "lead-1", **overrides) -> BuyerProfile:
    filters = overrides.pop("filters", None)
    if isinstance(filters, dict):
        filters = StructuredFilters(**filters)
    data = {
        "subject_id": subject_id,
        "agency_id": "ag1",
        "scope": MatchScope.AGENCY,
        "filters": filters or StructuredFilters(),
        "query_text": "2 bedroom apartment in Kirchberg",
    }
    data.update(overrides)
    return BuyerProfile(**data)


# ----------------------------------------------------------------------
# Repositorios
# ----------------------------------------------------------------------

class FakeLeadRepository:
    def __init__(self, leads: Optional[dict] = None):
        self.leads = leads or {}

    def get_by_id(self, lead_id: str) -> Optional[dict]:
        return self.leads.get(lead_id)


class FakeBuyerProfileRepository:
    def __init__(self, fail: bool = False):
        self.profiles: dict[str, BuyerProfile] = {}
        self.fail = fail

    def upsert(self, profile: BuyerProfile) -> dict:
        if self.fail:
            raise PersistenceFailure(
                "store caído", stage="profile_upsert", subject_id=profile.subject_id
            )
        self.profiles[profile.subject_id] = profile
        return profile.to_db_dict()

    def get_by_lead_id(self, lead_id: str) -> Optional[BuyerProfile]:
        return self.profiles.get(lead_id)


class FakeListingIndexRepository:
    """Aplica en memoria los mismos filtros que la consulta SQL."""

    def __init__(self, candidates: Optional[list[Candidate]] = None):
        self.candidates = candidates or []
        self.queries: list[CandidateQuery] = []
        self.embeddings: dict[str, tuple[list[float], str]] = {}

    def fetch_candidates(self, query: CandidateQuery, limit: int = 500) -> list[Candidate]:
        self.queries.append(query)
        out = []
        for c in sorted(self.candidates, key=lambda c: c.id):
            if query.agency_id and c.agency_id != query.agency_id:
                continue
            if query.kind and (c.kind is None or c.kind.value != query.kind):
                continue
            if query.property_type and (
                c.property_type is None or c.property_type.value != query.property_type
            ):
                continue
            if query.price_min is not None and (c.price is None or c.price < query.price_min):
                continue
            if query.price_max is not None and (c.price is None or c.price > query.price_max):
                continue
            if query.locations and c.location not in query.locations:
                continue
            out.append(c)
        return out[:limit]

    def update_embedding(self, listing_id: str, embedding: list[float], search_text: str) -> bool:
        self.embeddings[listing_id] = (embedding, search_text)
        return True


class FakeMatchResultRepository:
    def __init__(self, fail: bool = False):
        self.snapshots: dict[tuple[str, MatchScope], list[MatchResult]] = {}
        self.writes = 0
        self.fail = fail

    def replace_snapshot(self, subject_id: str, scope: MatchScope, results: list[MatchResult]) -> int:
        if self.fail:
            raise PersistenceFailure(
                "store caído", stage="match_snapshot", subject_id=subject_id
            )
        self.writes += 1
        self.snapshots[(subject_id, scope)] = list(results)
        return len(results)


class FakeListingRepository:
    def __init__(
        self,
        listings: Optional[list[PopularityListing]] = None,
        rows: Optional[dict[str, dict]] = None,
    ):
        self.listings = listings or []
        self.rows = rows or {}

    def get_popularity_listings(self) -> list[PopularityListing]:
        return list(self.listings)

    def get_by_id(self, listing_id: str) -> Optional[dict]:
        return self.rows.get(listing_id)

    def get_published_ids(self) -> list[str]:
        return sorted(self.rows)


class FakeEngagementRepository:
    def __init__(self, counts: Optional[dict[str, tuple[int, int]]] = None):
        self.counts = counts or {}
        self.since: Optional[datetime] = None

    def count_since(self, since: datetime) -> dict[str, EngagementCounts]:
        self.since = since
        return {
            listing_id: EngagementCounts(listing_id=listing_id, saves=saves, views=views)
            for listing_id, (saves, views) in self.counts.items()
        }


class FakePopularityRepository:
    def __init__(self, fail_ids: Optional[set] = None):
        self.records: dict[str, PopularityRecord] = {}
        self.fail_ids = fail_ids or set()

    def reset_badges(self, listing_ids: list[str]) -> int:
        reset = 0
        for listing_id in listing_ids:
            current = self.records.get(listing_id)
            if current is not None and current.badge != Badge.NONE:
                self.records[listing_id] = PopularityRecord(
                    listing_id=listing_id,
                    segment_key=current.segment_key,
                )
                reset += 1
        return reset

    def upsert(self, record: PopularityRecord) -> None:
        if record.listing_id in self.fail_ids:
            raise PersistenceFailure(
                "store caído", stage="popularity_upsert", listing_id=record.listing_id
            )
        self.records[record.listing_id] = record


# ----------------------------------------------------------------------
# Colaboradores de IA
# ----------------------------------------------------------------------

class FakeLLMProvider(BaseLLMProvider):
    provider_name = "fake"
    model = "fake-model"

    def __init__(self, text: str = "{}", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def _complete(self, system_prompt, user_prompt, temperature, max_tokens):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text, None


class FakeEmbedder:
    def __init__(self, vector: Optional[list[float]] = None, fail: bool = False):
        self.vector = vector if vector is not None else [1.0, 0.0, 0.0, 0.0]
        self.fail = fail
        self.texts: list[str] = []

    async def embed_text(self, text: str) -> list[float]:
        self.texts.append(text)
        if self.fail:
            raise UpstreamDegraded("embeddings caídos")
        return list(self.vector)


# ----------------------------------------------------------------------
# Fixtures de repositorios
# ----------------------------------------------------------------------

@pytest.fixture
def lead_repo() -> FakeLeadRepository:
    return FakeLeadRepository(
        {
            "lead-1": {
                "id": "lead-1",
                "agency_id": "ag1",
                "message": "Looking for a 2 bedroom apartment in Kirchberg, max 400k",
                "listings": {
                    "title": "Bright flat",
                    "commune": "Kirchberg",
                    "price": 380_000,
                    "kind": "SALE",
                    "property_type": "APARTMENT",
                },
            },
        }
    )


@pytest.fixture
def profile_repo() -> FakeBuyerProfileRepository:
    return FakeBuyerProfileRepository()


@pytest.fixture
def index_repo() -> FakeListingIndexRepository:
    return FakeListingIndexRepository(
        [
            make_candidate("l1", price=350_000, embedding=[1.0, 0.0, 0.0, 0.0], updated_at=NOW),
            make_candidate("l2", price=390_000, embedding=[0.0, 1.0, 0.0, 0.0], updated_at=NOW - timedelta(days=30)),
            make_candidate("l3", price=500_000, location="Strassen"),
            make_candidate("l4", agency_id="ag2", price=350_000),
        ]
    )


@pytest.fixture
def match_repo() -> FakeMatchResultRepository:
    return FakeMatchResultRepository()
