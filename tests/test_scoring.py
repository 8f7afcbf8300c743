"""Tests de la matemática de scoring y de los chips de explicación."""

import math
from datetime import timedelta

import pytest

from immomatch.errors import ValidationError
from immomatch.models import ReasonChip, ReasonTone
from immomatch.scoring import (
    blend,
    clamp01,
    cosine_similarity,
    freshness_chip,
    freshness_score,
    order_reasons,
    semantic_chip,
    semantic_score,
    validate_vector,
)


class TestNormalize:
    def test_clamp01(self):
        assert clamp01(-0.2) == 0.0
        assert clamp01(1.7) == 1.0
        assert clamp01(0.42) == 0.42
        assert clamp01(float("nan")) == 0.0

    def test_cosine_zero_norm(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_semantic_score_rescales_to_unit_interval(self):
        assert semantic_score([1.0, 0.0], [1.0, 0.0]) == 1.0
        assert semantic_score([1.0, 0.0], [-1.0, 0.0]) == 0.0
        assert semantic_score([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.5)

    def test_semantic_score_missing_vector(self):
        assert semantic_score(None, [1.0, 0.0]) is None
        assert semantic_score([1.0, 0.0], None) is None

    def test_freshness_half_life(self, now):
        assert freshness_score(now, now, 30) == 1.0
        assert freshness_score(now - timedelta(days=30), now, 30) == pytest.approx(0.5)
        assert freshness_score(now - timedelta(days=60), now, 30) == pytest.approx(0.25)
        assert freshness_score(None, now, 30) is None

    def test_freshness_future_timestamp_is_fresh(self, now):
        assert freshness_score(now + timedelta(days=2), now, 30) == 1.0

    def test_blend_renormalizes_over_present_signals(self):
        weights = {"structured": 0.5, "semantic": 0.4, "freshness": 0.1}
        score, used = blend({"structured": 1.0, "semantic": None, "freshness": 0.0}, weights)

        assert set(used) == {"structured", "freshness"}
        assert sum(used.values()) == pytest.approx(1.0)
        assert score == pytest.approx(0.5 / 0.6)

    def test_blend_without_signals(self):
        score, used = blend({"structured": None}, {"structured": 0.5})
        assert score == 0.0
        assert used == {}

    def test_validate_vector(self):
        validate_vector(None, 4, "perfil")
        validate_vector([0.1, 0.2, 0.3, 0.4], 4, "perfil")

        with pytest.raises(ValidationError) as exc:
            validate_vector([0.1, 0.2], 4, "perfil")
        assert exc.value.context["got"] == 2

        with pytest.raises(ValidationError):
            validate_vector([0.1, math.inf, 0.3, 0.4], 4, "perfil")


class TestReasons:
    def _chip(self, label, tone, impact):
        return ReasonChip(label=label, tone=tone, key="k", impact=impact)

    def test_order_negatives_positives_neutrals(self):
        chips = [
            self._chip("In Kirchberg", ReasonTone.POSITIVE, 0.2),
            self._chip("Semantic match unavailable", ReasonTone.NEUTRAL, 0.0),
            self._chip("Over budget", ReasonTone.NEGATIVE, 0.3),
            self._chip("Within budget", ReasonTone.POSITIVE, 0.4),
            self._chip("No balcony", ReasonTone.NEGATIVE, 0.05),
        ]

        labels = [c.label for c in order_reasons(chips)]

        assert labels == [
            "Over budget",
            "No balcony",
            "Within budget",
            "In Kirchberg",
            "Semantic match unavailable",
        ]

    def test_dedupe_keeps_highest_impact(self):
        chips = [
            self._chip("Has balcony", ReasonTone.POSITIVE, 0.1),
            self._chip("Has balcony", ReasonTone.POSITIVE, 0.3),
        ]
        out = order_reasons(chips)
        assert len(out) == 1
        assert out[0].impact == 0.3

    def test_cap(self):
        chips = [self._chip(f"chip {i}", ReasonTone.POSITIVE, 0.01 * i) for i in range(20)]
        assert len(order_reasons(chips, max_reasons=12)) == 12

    def test_stable_for_equal_impact(self):
        chips = [self._chip(name, ReasonTone.POSITIVE, 0.1) for name in ("b", "a", "c")]
        assert [c.label for c in order_reasons(chips)] == ["b", "a", "c"]

    def test_semantic_buckets(self):
        assert semantic_chip(0.9).label == "Strong overall match"
        assert semantic_chip(0.9).tone == ReasonTone.POSITIVE
        assert semantic_chip(0.75).label == "Partial match"
        assert semantic_chip(0.5) is None
        assert semantic_chip(None).label == "Semantic match unavailable"

    def test_freshness_chip(self):
        assert freshness_chip(0.95).label == "Recently updated"
        assert freshness_chip(0.5) is None
        assert freshness_chip(None) is None
