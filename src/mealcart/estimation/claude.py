"""Anthropic Messages API client for unit estimation and duplicate matching."""

import asyncio
import contextlib
import json
import re
from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mealcart.config import get_settings
from mealcart.estimation.base import (
    IngredientInfo,
    UnitEstimationRequest,
    UnitEstimationResult,
    build_pending_match,
    group_by_lowercase_name,
)
from mealcart.exceptions import AssistantError, OperationCancelledError
from mealcart.logging_config import get_logger
from mealcart.normalize.units import (
    UNIT_INFO,
    MeasurementUnit,
    UnitCategory,
    parse_unit,
    round_to_reasonable_precision,
)
from mealcart.schemas import PendingIngredientMatch

logger = get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# Prompts
# =============================================================================

INGREDIENT_MATCHING_PROMPT = """Analyze this list of ingredients from multiple recipes and identify which ones are likely the same ingredient with different names or descriptions.

Ingredients:
{ingredient_list}

For each group of equivalent ingredients, return:
1. The ingredient names that should be merged
2. A suggested canonical (standard) name to use
3. A confidence score (0-1) for how certain you are they're the same

IMPORTANT RULES:
- Only group ingredients that are truly the same item
- "chicken breast" and "chicken thighs" are DIFFERENT ingredients - do NOT merge
- "garlic" and "garlic cloves" ARE the same - merge them
- "boneless skinless chicken breast" and "chicken breast" ARE the same - merge them
- Different quantities or preparations don't make ingredients different
- If units are incompatible (e.g., "1 cup shredded cheese" vs "8 oz block cheese"), still merge if same ingredient
- Be conservative - when in doubt, don't merge

Return ONLY valid JSON with no markdown code blocks:
{{
  "matches": [
    {{
      "ingredientNames": ["boneless, skinless chicken breast", "chicken breast"],
      "suggestedCanonicalName": "chicken breast",
      "confidence": 0.95
    }}
  ]
}}

If no ingredients should be merged, return: {{"matches": []}}"""

UNIT_ESTIMATION_PROMPT = """For each ingredient, estimate the unit conversion based on typical weights/measures.

Ingredients to convert:
{ingredient_list}

For each ingredient, provide your best estimate of the conversion. Consider:
- Average weights for count-based items (e.g., chicken breast ~6 oz)
- Standard densities for volume-to-weight (e.g., flour ~125g per cup)
- Common packaging sizes

Return ONLY valid JSON with no markdown code blocks:
{{
  "estimations": [
    {{
      "ingredientName": "chicken breast",
      "fromQuantity": 2,
      "fromUnit": "each",
      "estimatedQuantity": 0.75,
      "estimatedUnit": "lb",
      "confidence": 0.8,
      "displayNote": "~6 oz per breast"
    }}
  ]
}}"""

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*")
_CODE_FENCE_END = re.compile(r"\s*```$")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code block, if the model added one."""
    text = content.strip()
    if text.startswith("```"):
        text = _CODE_FENCE_END.sub("", _CODE_FENCE_START.sub("", text))
    return text


class ClaudeClient:
    """Client for the Anthropic Messages API."""

    MAX_RETRIES = 3
    BACKOFF_BASE = 1
    BACKOFF_MAX = 30

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        batch_size: int | None = None,
        match_confidence_threshold: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self.base_url = (base_url or settings.anthropic_base_url).rstrip("/")
        self.api_version = settings.anthropic_version
        self.max_tokens = settings.ai_max_tokens
        self.timeout = timeout or settings.ai_timeout
        self.max_retries = settings.ai_max_retries or self.MAX_RETRIES
        self.batch_size = batch_size or settings.ai_batch_size
        self.match_confidence_threshold = (
            match_confidence_threshold
            if match_confidence_threshold is not None
            else settings.match_confidence_threshold
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        """Check if an API key is present."""
        return bool(self.api_key and self.api_key.strip())

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "content-type": "application/json",
                    "x-api-key": self.api_key,
                    "anthropic-version": self.api_version,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Transport
    # =========================================================================

    async def _until_cancelled(self, awaitable: Awaitable[T], signal: asyncio.Event | None) -> T:
        """Await `awaitable`, abandoning it as soon as `signal` is set."""
        if signal is None:
            return await awaitable

        request_task = asyncio.ensure_future(awaitable)
        if signal.is_set():
            request_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await request_task
            raise OperationCancelledError("Request cancelled before it was sent")

        signal_task = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, signal_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            signal_task.cancel()

        if request_task in done:
            return request_task.result()

        request_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await request_task
        raise OperationCancelledError("Request cancelled")

    async def _send_prompt(self, prompt: str, signal: asyncio.Event | None = None) -> str:
        """Send a single-turn prompt and return the model's text."""
        if not self.configured:
            raise AssistantError("No API key configured")

        client = await self._get_client()
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        @retry(
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.BACKOFF_BASE, max=self.BACKOFF_MAX),
            reraise=True,
        )
        async def _do_request() -> httpx.Response:
            return await client.post("/messages", json=payload)

        try:
            response = await self._until_cancelled(_do_request(), signal)
        except (httpx.TimeoutException, httpx.NetworkError, RetryError) as e:
            logger.error(f"Anthropic request failed after {self.max_retries} attempts: {e}")
            raise AssistantError(f"Network error: {e}") from e

        if response.status_code == 401:
            raise AssistantError("Invalid API key", status_code=401)
        if response.status_code == 429:
            raise AssistantError("Rate limit exceeded", status_code=429)
        if response.status_code >= 400:
            error_detail = response.text[:500] if response.text else "No details"
            logger.error(f"Anthropic API error {response.status_code}: {error_detail}")
            raise AssistantError(
                f"API request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            text = data["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AssistantError("No response from API") from e

        if not text:
            raise AssistantError("No response from API")
        return text

    # =========================================================================
    # Unit estimation
    # =========================================================================

    async def estimate(
        self,
        requests: list[UnitEstimationRequest],
        signal: asyncio.Event | None = None,
    ) -> list[UnitEstimationResult]:
        """Estimate conversions in batches of `batch_size` requests."""
        results: list[UnitEstimationResult] = []

        for start in range(0, len(requests), self.batch_size):
            batch = requests[start : start + self.batch_size]
            ingredient_list = "\n".join(
                f"- {r.ingredient_name}: {r.from_quantity:g} "
                f"{(r.from_unit or MeasurementUnit.EACH).value} → convert to {r.to_category.value}"
                for r in batch
            )
            prompt = UNIT_ESTIMATION_PROMPT.format(ingredient_list=ingredient_list)

            content = await self._send_prompt(prompt, signal)
            parsed = self.parse_estimation_response(content)
            logger.info(f"AI estimated {len(parsed)}/{len(batch)} conversions")
            results.extend(parsed)

            # Let other tasks run between round-trips
            await asyncio.sleep(0)

        return results

    @staticmethod
    def parse_estimation_response(content: str) -> list[UnitEstimationResult]:
        """Parse the model's estimation JSON, dropping malformed entries."""
        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError:
            logger.warning("Failed to parse AI estimation response")
            return []

        estimations = parsed.get("estimations") if isinstance(parsed, dict) else None
        if not isinstance(estimations, list):
            return []

        results: list[UnitEstimationResult] = []
        for est in estimations:
            if not isinstance(est, dict):
                continue
            name = est.get("ingredientName")
            quantity = est.get("estimatedQuantity")
            unit = parse_unit(est.get("estimatedUnit")) if isinstance(est.get("estimatedUnit"), str) else None
            if not isinstance(name, str) or not isinstance(quantity, (int, float)) or unit is None:
                continue

            # Only weight answers can be folded into a total
            info = UNIT_INFO[unit]
            if info.category != UnitCategory.WEIGHT or not info.base_unit_factor or quantity <= 0:
                continue
            grams = quantity * info.base_unit_factor

            confidence = est.get("confidence")
            results.append(
                UnitEstimationResult(
                    ingredient_name=name,
                    estimated_quantity_in_grams=grams,
                    estimated_display_quantity=round_to_reasonable_precision(quantity),
                    estimated_display_unit=unit,
                    confidence=float(confidence) if isinstance(confidence, (int, float)) else 0.7,
                    is_local=False,
                    display_note=est.get("displayNote") or "AI estimate",
                )
            )
        return results

    # =========================================================================
    # Duplicate matching
    # =========================================================================

    async def find_matches(
        self,
        items: list[IngredientInfo],
        signal: asyncio.Event | None = None,
    ) -> list[PendingIngredientMatch]:
        """Ask the model which ingredient names denote the same item."""
        unique_names = group_by_lowercase_name(items)
        if len(unique_names) < 2:
            return []

        ingredient_list = "\n".join(f"- {name}" for name in unique_names)
        prompt = INGREDIENT_MATCHING_PROMPT.format(ingredient_list=ingredient_list)

        content = await self._send_prompt(prompt, signal)
        raw_matches = self.parse_match_response(content)
        if raw_matches is None:
            raise AssistantError("Failed to parse AI response")

        pending: list[PendingIngredientMatch] = []
        for raw in raw_matches:
            if raw["confidence"] < self.match_confidence_threshold:
                continue
            match = build_pending_match(
                raw["ingredientNames"],
                raw["suggestedCanonicalName"],
                raw["confidence"],
                unique_names,
            )
            if match is not None:
                pending.append(match)

        logger.info(f"AI proposed {len(pending)} ingredient matches")
        return pending

    @staticmethod
    def parse_match_response(content: str) -> list[dict[str, Any]] | None:
        """
        Parse the model's match JSON.

        Returns None if the content is not JSON at all; entries missing a
        name list, canonical name or numeric confidence are dropped.
        """
        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError:
            return None

        matches = parsed.get("matches") if isinstance(parsed, dict) else None
        if not isinstance(matches, list):
            return []

        return [
            m
            for m in matches
            if isinstance(m, dict)
            and isinstance(m.get("ingredientNames"), list)
            and all(isinstance(n, str) for n in m["ingredientNames"])
            and isinstance(m.get("suggestedCanonicalName"), str)
            and isinstance(m.get("confidence"), (int, float))
        ]
