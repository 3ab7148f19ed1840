"""Tests for local estimation, fuzzy matching and the Claude client."""

import asyncio
import json

import httpx
import pytest

from mealcart.config import Settings
from mealcart.estimation import (
    ClaudeClient,
    FuzzyIngredientMatcher,
    IngredientAssistantService,
    IngredientInfo,
    LocalEstimator,
    UnitEstimationRequest,
)
from mealcart.estimation.claude import strip_code_fences
from mealcart.estimation.weights import GRAMS_PER_EACH, find_best_weight_match
from mealcart.exceptions import AssistantError, OperationCancelledError
from mealcart.normalize.units import MeasurementUnit, UnitCategory

U = MeasurementUnit


def claude_response(payload: dict, fenced: bool = False) -> httpx.Response:
    text = json.dumps(payload)
    if fenced:
        text = f"```json\n{text}\n```"
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def make_client(handler, **kwargs) -> ClaudeClient:
    return ClaudeClient(api_key="test-key", transport=httpx.MockTransport(handler), **kwargs)


def infos(*entries: tuple[str, str]) -> list[IngredientInfo]:
    return [IngredientInfo(name=name, recipe_id=rid, recipe_name=f"Recipe {rid}") for name, rid in entries]


# =============================================================================
# Local Estimation
# =============================================================================


class TestLocalEstimator:
    """Tests for LocalEstimator."""

    def test_count_to_weight(self):
        result = LocalEstimator().estimate(
            UnitEstimationRequest("chicken breast", 3, U.EACH, UnitCategory.WEIGHT)
        )

        assert result.estimated_quantity_in_grams == pytest.approx(510)
        assert result.estimated_display_unit == U.LB
        assert result.estimated_display_quantity == 1.12
        assert result.confidence == 0.85
        assert result.is_local
        assert result.display_note == "~6 oz each"

    def test_volume_to_weight(self):
        result = LocalEstimator().estimate(
            UnitEstimationRequest("flour", 2, U.CUP, UnitCategory.WEIGHT)
        )

        assert result.estimated_quantity_in_grams == pytest.approx(250)
        assert result.confidence == 0.8
        assert result.display_note == "~125g per cup"

    def test_weight_to_count(self):
        result = LocalEstimator().estimate(
            UnitEstimationRequest("egg", 200, U.G, UnitCategory.COUNT)
        )

        assert result.estimated_display_quantity == 4
        assert result.estimated_display_unit == U.EACH

    def test_unknown_ingredient(self):
        request = UnitEstimationRequest("dragonfruit", 2, U.EACH, UnitCategory.WEIGHT)
        assert LocalEstimator().estimate(request) is None

    def test_longest_table_key_wins(self):
        assert find_best_weight_match("boneless chicken breast", GRAMS_PER_EACH) == "chicken breast"


# =============================================================================
# Fuzzy Matching
# =============================================================================


class TestFuzzyIngredientMatcher:
    """Tests for FuzzyIngredientMatcher."""

    def test_near_duplicates_are_grouped(self):
        items = infos(("jalapeno pepper", "r1"), ("jalapeño pepper", "r2"), ("carrot", "r3"))

        matches = FuzzyIngredientMatcher(threshold=85).find_matches(items)

        assert len(matches) == 1
        match = matches[0]
        assert sorted(match.ingredient_names) == ["jalapeno pepper", "jalapeño pepper"]
        assert match.suggested_canonical_name == "Jalapeno pepper"
        assert 0.85 <= match.confidence <= 1.0
        assert {r.recipe_id for r in match.affected_recipes} == {"r1", "r2"}

    def test_unrelated_names(self):
        items = infos(("carrot", "r1"), ("onion", "r2"), ("celery", "r3"))
        assert FuzzyIngredientMatcher().find_matches(items) == []


# =============================================================================
# Claude Client
# =============================================================================


class TestClaudeClient:
    """Tests for ClaudeClient against a mocked Messages API."""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_estimate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["api_key"] = request.headers["x-api-key"]
            seen["path"] = request.url.path
            return claude_response(
                {
                    "estimations": [
                        {
                            "ingredientName": "dragonfruit",
                            "estimatedQuantity": 1.2,
                            "estimatedUnit": "lb",
                            "confidence": 0.75,
                            "displayNote": "~9 oz each",
                        },
                        {"ingredientName": "broken"},
                    ]
                },
                fenced=True,
            )

        client = make_client(handler)
        results = await client.estimate(
            [UnitEstimationRequest("dragonfruit", 2, U.EACH, UnitCategory.WEIGHT)]
        )
        await client.close()

        assert seen == {"api_key": "test-key", "path": "/v1/messages"}
        assert len(results) == 1
        assert results[0].estimated_quantity_in_grams == pytest.approx(1.2 * 453.592)
        assert results[0].confidence == 0.75
        assert not results[0].is_local

    def test_non_weight_estimates_are_dropped(self):
        content = json.dumps(
            {
                "estimations": [
                    {"ingredientName": "basil", "estimatedQuantity": 2, "estimatedUnit": "cup"},
                    {"ingredientName": "basil", "estimatedQuantity": 0, "estimatedUnit": "oz"},
                    {"ingredientName": "basil", "estimatedQuantity": 3, "estimatedUnit": "oz"},
                ]
            }
        )

        (result,) = ClaudeClient.parse_estimation_response(content)

        assert result.estimated_display_unit == U.OZ
        assert result.estimated_quantity_in_grams == pytest.approx(3 * 28.3495, rel=1e-3)

    @pytest.mark.asyncio
    async def test_estimate_batches(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return claude_response({"estimations": []})

        client = make_client(handler, batch_size=2)
        requests = [
            UnitEstimationRequest(f"item {i}", 1, U.EACH, UnitCategory.WEIGHT) for i in range(5)
        ]
        await client.estimate(requests)
        await client.close()

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_find_matches_drops_low_confidence(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return claude_response(
                {
                    "matches": [
                        {
                            "ingredientNames": ["scallion", "green onion"],
                            "suggestedCanonicalName": "Green onion",
                            "confidence": 0.92,
                        },
                        {
                            "ingredientNames": ["milk", "buttermilk"],
                            "suggestedCanonicalName": "Milk",
                            "confidence": 0.4,
                        },
                    ]
                }
            )

        client = make_client(handler)
        items = infos(("scallion", "r1"), ("green onion", "r2"), ("milk", "r3"), ("buttermilk", "r4"))
        matches = await client.find_matches(items)
        await client.close()

        assert len(matches) == 1
        assert matches[0].suggested_canonical_name == "Green onion"
        assert len(matches[0].affected_recipes) == 2

    @pytest.mark.asyncio
    async def test_invalid_match_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": [{"type": "text", "text": "not json"}]})

        client = make_client(handler)
        with pytest.raises(AssistantError, match="Failed to parse"):
            await client.find_matches(infos(("a", "r1"), ("b", "r2")))
        await client.close()

    @pytest.mark.asyncio
    async def test_auth_error(self):
        client = make_client(lambda request: httpx.Response(401, json={"error": "unauthorized"}))

        with pytest.raises(AssistantError) as exc_info:
            await client.find_matches(infos(("a", "r1"), ("b", "r2")))
        await client.close()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_cancelled_before_sending(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return claude_response({"matches": []})

        signal = asyncio.Event()
        signal.set()
        client = make_client(handler)

        with pytest.raises(OperationCancelledError):
            await client.find_matches(infos(("a", "r1"), ("b", "r2")), signal)
        await client.close()

        assert calls == []

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        client = ClaudeClient(api_key="")

        assert not client.configured
        with pytest.raises(AssistantError, match="No API key"):
            await client.find_matches(infos(("a", "r1"), ("b", "r2")))


# =============================================================================
# Composite Service
# =============================================================================


class TestIngredientAssistantService:
    """Tests for IngredientAssistantService."""

    @pytest.mark.asyncio
    async def test_local_first_then_fallback_without_ai(self):
        service = IngredientAssistantService(
            Settings(anthropic_api_key=""), client=ClaudeClient(api_key="")
        )

        results = await service.estimate_unit_conversion(
            [
                UnitEstimationRequest("egg", 3, U.EACH, UnitCategory.WEIGHT),
                UnitEstimationRequest("dragonfruit", 2, U.EACH, UnitCategory.WEIGHT),
            ]
        )

        assert not service.is_ai_available()
        assert results[0].is_local and results[0].confidence == 0.85
        assert results[1].confidence == 0
        assert results[1].display_note == "Could not estimate conversion"

    @pytest.mark.asyncio
    async def test_api_error_falls_back(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        service = IngredientAssistantService(Settings(), client=client)

        results = await service.estimate_unit_conversion(
            [UnitEstimationRequest("dragonfruit", 2, U.EACH, UnitCategory.WEIGHT)]
        )
        await service.close()

        assert results[0].confidence == 0
        assert results[0].display_note == "API error - could not estimate"

    @pytest.mark.asyncio
    async def test_matching_without_ai_uses_fuzzy_matcher(self):
        service = IngredientAssistantService(
            Settings(anthropic_api_key=""), client=ClaudeClient(api_key="")
        )

        result = await service.identify_potential_matches(
            infos(("jalapeno pepper", "r1"), ("jalapeño pepper", "r2"))
        )

        assert len(result.matches) == 1
        assert not result.used_ai
        assert result.error is None

    @pytest.mark.asyncio
    async def test_matching_disabled_without_ai(self):
        service = IngredientAssistantService(
            Settings(anthropic_api_key="", local_matching_enabled=False),
            client=ClaudeClient(api_key=""),
        )

        result = await service.identify_potential_matches(infos(("a", "r1"), ("b", "r2")))

        assert result.matches == []
        assert result.error == "No API key configured"

    @pytest.mark.asyncio
    async def test_ai_failure_falls_back_to_fuzzy(self):
        client = make_client(lambda request: httpx.Response(429, text="slow down"))
        service = IngredientAssistantService(Settings(), client=client)

        result = await service.identify_potential_matches(
            infos(("jalapeno pepper", "r1"), ("jalapeño pepper", "r2"))
        )
        await service.close()

        assert len(result.matches) == 1
        assert result.error == "Rate limit exceeded"
        assert not result.used_ai

    @pytest.mark.asyncio
    async def test_ai_matching_cancelled(self):
        client = make_client(lambda request: claude_response({"matches": []}))
        service = IngredientAssistantService(Settings(), client=client)
        signal = asyncio.Event()
        signal.set()

        result = await service.identify_potential_matches(
            infos(("scallion", "r1"), ("green onion", "r2")), signal
        )
        await service.close()

        assert result.cancelled
        assert result.matches == []

    @pytest.mark.asyncio
    async def test_single_name_needs_no_matching(self):
        service = IngredientAssistantService(Settings(), client=ClaudeClient(api_key=""))

        result = await service.identify_potential_matches(infos(("egg", "r1"), ("Egg", "r2")))

        assert result.matches == []
        assert result.error is None
