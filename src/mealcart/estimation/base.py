"""Interface for cross-category estimation and duplicate matching."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from mealcart.normalize.units import MeasurementUnit, UnitCategory
from mealcart.schemas import AffectedRecipe, PendingIngredientMatch


@dataclass
class UnitEstimationRequest:
    """Ask for `from_quantity from_unit` of an ingredient expressed in `to_category`."""

    ingredient_name: str
    from_quantity: float
    from_unit: MeasurementUnit | None
    to_category: UnitCategory


@dataclass
class UnitEstimationResult:
    """An estimated conversion. Only results above the confidence threshold are applied."""

    ingredient_name: str
    estimated_quantity_in_grams: float
    estimated_display_quantity: float
    estimated_display_unit: MeasurementUnit
    confidence: float
    is_local: bool
    display_note: str

    @classmethod
    def fallback(cls, request: UnitEstimationRequest, note: str) -> "UnitEstimationResult":
        """Zero-confidence placeholder for a request that could not be estimated."""
        return cls(
            ingredient_name=request.ingredient_name,
            estimated_quantity_in_grams=0.0,
            estimated_display_quantity=request.from_quantity,
            estimated_display_unit=request.from_unit or MeasurementUnit.EACH,
            confidence=0.0,
            is_local=False,
            display_note=note,
        )


@dataclass
class IngredientInfo:
    """An ingredient line sent for duplicate detection."""

    name: str
    recipe_id: str
    recipe_name: str
    quantity: float | None = None
    unit: MeasurementUnit | None = None


@dataclass
class MatchResult:
    """Outcome of a duplicate-matching call."""

    matches: list[PendingIngredientMatch] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None
    used_ai: bool = False


def group_by_lowercase_name(items: list[IngredientInfo]) -> dict[str, list[IngredientInfo]]:
    """Unique lowercase names, in first-seen order, with every line using them."""
    unique: dict[str, list[IngredientInfo]] = {}
    for item in items:
        unique.setdefault(item.name.lower(), []).append(item)
    return unique


def build_pending_match(
    names: list[str],
    canonical_name: str,
    confidence: float,
    unique_names: dict[str, list[IngredientInfo]],
) -> PendingIngredientMatch | None:
    """Build a pending match, or None when no known ingredient line is affected."""
    affected = [
        AffectedRecipe(
            recipe_id=info.recipe_id,
            recipe_name=info.recipe_name,
            ingredient_name=info.name,
        )
        for name in names
        for info in unique_names.get(name.lower(), [])
    ]
    if not affected:
        return None

    return PendingIngredientMatch(
        ingredient_names=names,
        suggested_canonical_name=canonical_name,
        confidence=min(max(confidence, 0.0), 1.0),
        affected_recipes=affected,
    )


class IngredientAssistant(ABC):
    """
    Capability used by the shopping list builder for work that needs
    outside knowledge: typical weights and duplicate ingredient names.

    Implementations must honor `signal`: once it is set they stop issuing
    requests and report cancellation instead of results.
    """

    @abstractmethod
    def is_ai_available(self) -> bool:
        """Whether a remote model is configured for this process."""
        pass

    @abstractmethod
    async def estimate_unit_conversion(
        self,
        requests: list[UnitEstimationRequest],
        signal: asyncio.Event | None = None,
    ) -> list[UnitEstimationResult]:
        """
        Estimate cross-category conversions.

        Returns one result per request that could be answered; fallback
        results carry confidence 0.
        """
        pass

    @abstractmethod
    async def identify_potential_matches(
        self,
        items: list[IngredientInfo],
        signal: asyncio.Event | None = None,
    ) -> MatchResult:
        """Propose groups of ingredient names that denote the same item."""
        pass
