"""Tests de las rutas HTTP."""

import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import (
    NOW,
    FakeEmbedder,
    FakeEngagementRepository,
    FakeListingRepository,
    FakeLLMProvider,
    FakePopularityRepository,
    make_profile,
)
from immomatch.analysis import IntentExtractor
from immomatch.api.app import (
    app,
    get_inquiry_pipeline,
    get_matching_engine,
    get_popularity_aggregator,
)
from immomatch.config import get_settings
from immomatch.matching import InquiryPipeline, MatchingEngine
from immomatch.models import PopularityListing
from immomatch.popularity import PopularityAggregator


@pytest.fixture
def engine(settings, lead_repo, profile_repo, index_repo, match_repo):
    return MatchingEngine(
        settings=settings,
        lead_repo=lead_repo,
        profile_repo=profile_repo,
        index_repo=index_repo,
        match_repo=match_repo,
    )


@pytest.fixture
def popularity_repo():
    return FakePopularityRepository()


@pytest.fixture
def client(settings, engine, lead_repo, profile_repo, popularity_repo):
    pipeline = InquiryPipeline(
        settings=settings,
        lead_repo=lead_repo,
        profile_repo=profile_repo,
        extractor=IntentExtractor(FakeLLMProvider(json.dumps({"kind": "SALE"}))),
        embedder=FakeEmbedder(),
        engine=engine,
    )
    aggregator = PopularityAggregator(
        settings=settings,
        listing_repo=FakeListingRepository(
            [
                PopularityListing(
                    id="l1",
                    created_at=NOW - timedelta(days=1),
                    kind="SALE",
                    property_type="APARTMENT",
                    location="Kirchberg",
                )
            ]
        ),
        engagement_repo=FakeEngagementRepository({"l1": (5, 12)}),
        popularity_repo=popularity_repo,
    )

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_matching_engine] = lambda: engine
    app.dependency_overrides[get_inquiry_pipeline] = lambda: pipeline
    app.dependency_overrides[get_popularity_aggregator] = lambda: aggregator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMatchRoute:
    def test_match(self, client, profile_repo):
        profile_repo.upsert(
            make_profile(filters={"budget_max": 400_000}, embedding=[1.0, 0.0, 0.0, 0.0])
        )

        response = client.post(
            "/agency/leads/lead-1/match", json={"topK": 1}, headers={"x-agency-id": "ag1"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["leadId"] == "lead-1"
        assert body["scope"] == "AGENCY"
        assert len(body["results"]) == 1
        assert body["results"][0]["candidateId"] == "l1"
        assert 0 <= body["results"][0]["overallScore"] <= 1

    def test_default_top_k_without_body(self, client, profile_repo):
        profile_repo.upsert(make_profile(filters={"budget_max": 400_000}))
        response = client.post("/agency/leads/lead-1/match", headers={"x-agency-id": "ag1"})
        assert response.status_code == 200
        assert response.json()["degraded"] is True

    def test_missing_agency_header(self, client):
        response = client.post("/agency/leads/lead-1/match")
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    def test_other_tenant(self, client):
        response = client.post("/agency/leads/lead-1/match", headers={"x-agency-id": "ag2"})
        assert response.status_code == 403

    def test_unknown_lead(self, client):
        response = client.post("/agency/leads/missing/match", headers={"x-agency-id": "ag1"})
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_top_k_out_of_range(self, client):
        response = client.post(
            "/agency/leads/lead-1/match", json={"topK": 500}, headers={"x-agency-id": "ag1"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_malformed_body(self, client):
        response = client.post(
            "/agency/leads/lead-1/match", json={"topK": "many"}, headers={"x-agency-id": "ag1"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_wrong_dimension(self, client, profile_repo, match_repo):
        profile_repo.upsert(make_profile(embedding=[1.0, 2.0]))
        response = client.post("/agency/leads/lead-1/match", headers={"x-agency-id": "ag1"})

        assert response.status_code == 400
        assert match_repo.writes == 0


class TestProfileRoute:
    def test_runs_pipeline(self, client, profile_repo):
        response = client.post("/agency/leads/lead-1/profile", headers={"x-agency-id": "ag1"})

        assert response.status_code == 200
        body = response.json()
        assert [s["name"] for s in body["stages"]] == ["extract", "embed", "persist_profile", "match"]
        assert body["profileSource"] == "EXTRACTED"
        assert profile_repo.get_by_lead_id("lead-1") is not None

    def test_top_k_out_of_range_writes_nothing(self, client, profile_repo, match_repo):
        response = client.post(
            "/agency/leads/lead-1/profile", json={"topK": 999}, headers={"x-agency-id": "ag1"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert profile_repo.get_by_lead_id("lead-1") is None
        assert match_repo.writes == 0


class TestPopularityRoute:
    def test_requires_secret(self, client):
        response = client.post("/cron/listings/popularity")
        assert response.status_code == 403

    def test_wrong_secret(self, client):
        response = client.post("/cron/listings/popularity", headers={"x-cron-secret": "nope"})
        assert response.status_code == 403

    def test_header_secret(self, client, popularity_repo):
        response = client.post(
            "/cron/listings/popularity",
            json={"windowDays": 7},
            headers={"x-cron-secret": "s3cret"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["listings"] == 1
        assert popularity_repo.records["l1"].badge.value == "MOST_SAVED"

    def test_bearer_secret(self, client):
        response = client.post(
            "/cron/listings/popularity", headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200
        assert response.json()["windowDays"] == 7

    def test_window_out_of_range(self, client):
        response = client.post(
            "/cron/listings/popularity",
            json={"windowDays": 120},
            headers={"x-cron-secret": "s3cret"},
        )
        assert response.status_code == 400

    def test_unconfigured_secret_rejects_everything(self, client, settings):
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"cron_secret": None}
        )
        response = client.post(
            "/cron/listings/popularity", headers={"x-cron-secret": "s3cret"}
        )
        assert response.status_code == 403
