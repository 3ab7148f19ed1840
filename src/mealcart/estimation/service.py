"""Composite assistant: local reference data first, remote model as fallback."""

import asyncio

from mealcart.config import Settings, get_settings
from mealcart.estimation.base import (
    IngredientAssistant,
    IngredientInfo,
    MatchResult,
    UnitEstimationRequest,
    UnitEstimationResult,
    group_by_lowercase_name,
)
from mealcart.estimation.claude import ClaudeClient
from mealcart.estimation.local import FuzzyIngredientMatcher, LocalEstimator
from mealcart.exceptions import AssistantError, OperationCancelledError
from mealcart.logging_config import get_logger

logger = get_logger(__name__)


class IngredientAssistantService(IngredientAssistant):
    """
    Default IngredientAssistant.

    Estimation tries the local reference tables before the remote model;
    anything neither can answer comes back as a zero-confidence fallback.
    Duplicate matching uses the remote model when configured and the local
    fuzzy matcher otherwise.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: ClaudeClient | None = None,
        local_estimator: LocalEstimator | None = None,
        matcher: FuzzyIngredientMatcher | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client if client is not None else ClaudeClient()
        self.local_estimator = local_estimator or LocalEstimator()
        self.matcher = matcher or FuzzyIngredientMatcher(self.settings.fuzzy_match_threshold)

    def is_ai_available(self) -> bool:
        return self.client.configured

    async def close(self) -> None:
        await self.client.close()

    async def estimate_unit_conversion(
        self,
        requests: list[UnitEstimationRequest],
        signal: asyncio.Event | None = None,
    ) -> list[UnitEstimationResult]:
        results: list[UnitEstimationResult] = []
        needs_ai: list[UnitEstimationRequest] = []

        for request in requests:
            local_result = self.local_estimator.estimate(request)
            if local_result is not None:
                results.append(local_result)
            else:
                needs_ai.append(request)

        logger.debug(f"Estimated {len(results)} conversions locally, {len(needs_ai)} remaining")

        if not needs_ai:
            return results

        if not self.is_ai_available():
            results.extend(
                UnitEstimationResult.fallback(r, "Could not estimate conversion") for r in needs_ai
            )
            return results

        try:
            results.extend(await self.client.estimate(needs_ai, signal))
        except AssistantError as e:
            logger.warning(f"AI estimation unavailable: {e}")
            results.extend(
                UnitEstimationResult.fallback(r, "API error - could not estimate") for r in needs_ai
            )

        return results

    async def identify_potential_matches(
        self,
        items: list[IngredientInfo],
        signal: asyncio.Event | None = None,
    ) -> MatchResult:
        if len(group_by_lowercase_name(items)) < 2:
            return MatchResult()

        if self.is_ai_available():
            try:
                matches = await self.client.find_matches(items, signal)
                return MatchResult(matches=matches, used_ai=True)
            except OperationCancelledError:
                logger.info("Ingredient matching cancelled")
                return MatchResult(cancelled=True)
            except AssistantError as e:
                logger.warning(f"AI matching failed, falling back to local matching: {e}")
                if self.settings.local_matching_enabled:
                    return MatchResult(matches=self.matcher.find_matches(items), error=str(e))
                return MatchResult(error=str(e))

        if self.settings.local_matching_enabled:
            return MatchResult(matches=self.matcher.find_matches(items))

        return MatchResult(error="No API key configured")
