"""Tests del extractor de intención y de la sanitización de su salida."""

import asyncio
import json

import pytest

from conftest import FakeLLMProvider
from immomatch.analysis import IntentExtractor, fallback_filters, sanitize_extraction
from immomatch.analysis.intent_extractor import MAX_LOCATIONS, MAX_QUERY_CHARS, normalize_text
from immomatch.analysis.llm_providers import PROVIDERS, get_llm_provider, strip_code_fence
from immomatch.errors import UpstreamDegraded
from immomatch.models import ListingContext, ListingKind, PropertyType


class TestSanitizeExtraction:
    def test_enums_are_upper_cased_and_validated(self):
        filters, _ = sanitize_extraction({"kind": "rent", "propertyType": "castle"})
        assert filters.kind == ListingKind.RENT
        assert filters.property_type is None

    def test_integers_are_clamped(self):
        filters, _ = sanitize_extraction(
            {"budgetMax": 9e12, "bedroomsMin": -2, "bathroomsMin": "two", "parkingMin": 1.7}
        )
        assert filters.budget_max == 50_000_000
        assert filters.bedrooms_min == 0
        assert filters.bathrooms_min is None
        assert filters.parking_min == 1

    def test_inverted_ranges_are_swapped(self):
        filters, _ = sanitize_extraction(
            {"budgetMin": 500000, "budgetMax": 300000, "sizeMinSqm": 120, "sizeMaxSqm": 80}
        )
        assert (filters.budget_min, filters.budget_max) == (300_000, 500_000)
        assert (filters.size_min_sqm, filters.size_max_sqm) == (80, 120)

    def test_locations_trimmed_deduped_and_capped(self):
        communes = ["  Kirchberg ", "Kirchberg", "", 42] + [f"Commune {i}" for i in range(30)]
        filters, _ = sanitize_extraction({"communes": communes})

        assert filters.locations[0] == "Kirchberg"
        assert filters.locations.count("Kirchberg") == 1
        assert len(filters.locations) == MAX_LOCATIONS

    def test_amenities_only_accept_booleans(self):
        filters, _ = sanitize_extraction({"hasBalcony": True, "petsAllowed": "yes"})
        assert filters.balcony is True
        assert filters.pets_allowed is None
        assert filters.wanted_amenities() == ["balcony"]

    def test_query_text_truncated(self):
        _, query_text = sanitize_extraction({"queryText": "x" * 2000})
        assert len(query_text) == MAX_QUERY_CHARS

    def test_blank_query_text(self):
        _, query_text = sanitize_extraction({"queryText": "   "})
        assert query_text is None


class TestFallbackFilters:
    def test_from_listing_context(self):
        filters = fallback_filters(
            ListingContext(location="Strassen", kind="RENT", property_type="HOUSE")
        )
        assert filters.kind == ListingKind.RENT
        assert filters.property_type == PropertyType.HOUSE
        assert filters.locations == ["Strassen"]

    def test_without_context(self):
        assert fallback_filters(None).is_empty()


class TestIntentExtractor:
    async def test_extracts_filters(self):
        payload = {"kind": "SALE", "communes": ["Bertrange"], "queryText": "Buy in Bertrange"}
        extractor = IntentExtractor(FakeLLMProvider(json.dumps(payload)))

        result = await extractor.extract("I want to buy something in Bertrange")

        assert result.filters.kind == ListingKind.SALE
        assert result.filters.locations == ["Bertrange"]
        assert result.query_text == "Buy in Bertrange"
        assert result.model == "fake-model"
        assert result.prompt_version == "bp_v1"

    async def test_code_fenced_json(self):
        text = "```json\n" + json.dumps({"kind": "RENT"}) + "\n```"
        result = await IntentExtractor(FakeLLMProvider(text)).extract("rent please")

        assert result.filters.kind == ListingKind.RENT
        assert result.query_text == "rent please"

    async def test_empty_message_does_not_call_provider(self):
        provider = FakeLLMProvider("{}")
        with pytest.raises(UpstreamDegraded):
            await IntentExtractor(provider).extract("   ")
        assert provider.calls == 0

    async def test_provider_error(self):
        extractor = IntentExtractor(FakeLLMProvider(error=TimeoutError("timeout")))
        with pytest.raises(UpstreamDegraded):
            await extractor.extract("hello")

    @pytest.mark.parametrize("text", ["nope", "[1, 2]", ""])
    async def test_unparseable_output(self, text):
        with pytest.raises(UpstreamDegraded):
            await IntentExtractor(FakeLLMProvider(text)).extract("hello")


class TestHelpers:
    def test_normalize_text(self):
        assert normalize_text("  a \n\n b\t c ") == "a b c"
        assert normalize_text(None) == ""
        assert normalize_text("abcdef", limit=3) == "abc"

    def test_strip_code_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'


class SlowProvider(FakeLLMProvider):
    timeout_seconds = 0.01

    async def _complete(self, system_prompt, user_prompt, temperature, max_tokens):
        await asyncio.sleep(1)
        return "{}", None


class TestProviders:
    async def test_completion_is_stripped_and_tagged(self):
        completion = await FakeLLMProvider('  {"kind": "SALE"}\n').generate_json("sys", "user")

        assert completion.text == '{"kind": "SALE"}'
        assert completion.provider == "fake"
        assert completion.model == "fake-model"

    async def test_timeout(self):
        with pytest.raises(asyncio.TimeoutError):
            await SlowProvider().generate_json("sys", "user")

    async def test_timeout_degrades_extraction(self):
        with pytest.raises(UpstreamDegraded):
            await IntentExtractor(SlowProvider()).extract("hello")

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_llm_provider("openai")

    def test_registry(self):
        assert set(PROVIDERS) == {"groq", "gemini"}
