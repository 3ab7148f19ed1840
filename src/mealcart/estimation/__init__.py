"""Cross-category estimation and duplicate ingredient matching."""

from mealcart.estimation.base import (
    IngredientAssistant,
    IngredientInfo,
    MatchResult,
    UnitEstimationRequest,
    UnitEstimationResult,
)
from mealcart.estimation.claude import ClaudeClient
from mealcart.estimation.local import FuzzyIngredientMatcher, LocalEstimator
from mealcart.estimation.service import IngredientAssistantService

__all__ = [
    "ClaudeClient",
    "FuzzyIngredientMatcher",
    "IngredientAssistant",
    "IngredientAssistantService",
    "IngredientInfo",
    "LocalEstimator",
    "MatchResult",
    "UnitEstimationRequest",
    "UnitEstimationResult",
]
