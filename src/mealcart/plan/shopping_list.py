"""Shopping list generation from planned meals."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Protocol

from mealcart.estimation.base import (
    IngredientAssistant,
    IngredientInfo,
    UnitEstimationRequest,
    UnitEstimationResult,
)
from mealcart.exceptions import OperationCancelledError
from mealcart.logging_config import LoggingContext, get_logger
from mealcart.normalize.aggregation import (
    AggregatedAmounts,
    OriginalAmount,
    aggregate_amounts,
    sum_base_quantity,
)
from mealcart.normalize.names import normalize_ingredient_name, select_canonical_name
from mealcart.normalize.units import (
    UNIT_INFO,
    MeasurementUnit,
    UnitCategory,
    generate_alternate_units,
    get_unit_category,
)
from mealcart.plan.staples import apply_staple_checking
from mealcart.schemas import (
    PendingIngredientMatch,
    PlannedMeal,
    Recipe,
    ShoppingItem,
    ShoppingList,
    ShoppingListGenerationResult,
    SourceRecipeDetail,
)

logger = get_logger(__name__)

Phase = Literal["gathering", "analyzing"]
ProgressCallback = Callable[[Phase], None]

GRAMS_PER_LB = UNIT_INFO[MeasurementUnit.LB].base_unit_factor


# =============================================================================
# Collaborator interfaces
# =============================================================================


class RecipeStore(Protocol):
    async def get_by_ids(self, ids: list[str]) -> list[Recipe]: ...


class MealPlanStore(Protocol):
    async def get_meals_for_date_range(self, start: date, end: date) -> list[PlannedMeal]: ...


class ShoppingListStore(Protocol):
    async def create_list(
        self,
        name: str,
        date_range_start: date | None = None,
        date_range_end: date | None = None,
        items: list[ShoppingItem] | None = None,
    ) -> ShoppingList: ...


# =============================================================================
# Working types
# =============================================================================


@dataclass
class ScaledIngredient:
    """An ingredient line scaled to the planned servings."""

    name: str  # after applying confirmed mappings
    original_name: str
    quantity: float | None
    unit: MeasurementUnit | None
    store_section: str
    recipe_id: str
    recipe_name: str

    def as_amount(self) -> OriginalAmount:
        return OriginalAmount(
            quantity=self.quantity,
            unit=self.unit,
            recipe_id=self.recipe_id,
            recipe_name=self.recipe_name,
        )


@dataclass
class IngredientGroup:
    """Ingredients sharing a normalized name."""

    normalized_name: str
    store_section: str
    ingredients: list[ScaledIngredient] = field(default_factory=list)


@dataclass
class AggregatedEntry:
    """An aggregated group on its way to becoming a ShoppingItem."""

    normalized_name: str
    display_name: str
    store_section: str
    aggregated: AggregatedAmounts
    source_recipe_details: list[SourceRecipeDetail]

    def to_item(self) -> ShoppingItem:
        details = self.source_recipe_details
        return ShoppingItem(
            name=self.display_name,
            quantity=self.aggregated.display_quantity,
            unit=self.aggregated.display_unit,
            store_section=self.store_section,
            source_recipe_ids=list(dict.fromkeys(d.recipe_id for d in details if d.recipe_id)),
            source_recipe_details=details,
            alternate_units=self.aggregated.alternate_units,
            is_estimated=self.aggregated.is_estimated,
            estimation_note=self.aggregated.estimation_note,
            original_amounts=self.aggregated.original_amounts,
        )


def scale_quantity(quantity: float | None, meal_servings: int, recipe_servings: int) -> float | None:
    """Scale to the planned servings. Missing or zero quantities stay None."""
    if not quantity:
        return None
    return quantity * meal_servings / max(recipe_servings, 1)


def build_estimation_requests(entry: AggregatedEntry) -> list[UnitEstimationRequest]:
    """
    Requests needed to fold an entry's non-primary amounts into weight.

    With weight amounts present, every count or volume amount becomes its
    own request. Without any, count amounts are estimated as one summed
    request and each volume amount gets its own.
    """
    amounts = [a for a in entry.aggregated.original_amounts if a.quantity]
    by_category: dict[UnitCategory, list[OriginalAmount]] = {}
    for amount in amounts:
        by_category.setdefault(get_unit_category(amount.unit), []).append(amount)

    count_amounts = by_category.get(UnitCategory.COUNT, [])
    volume_amounts = by_category.get(UnitCategory.VOLUME, [])

    def to_weight(quantity: float, unit: MeasurementUnit | None) -> UnitEstimationRequest:
        return UnitEstimationRequest(
            ingredient_name=entry.normalized_name,
            from_quantity=quantity,
            from_unit=unit,
            to_category=UnitCategory.WEIGHT,
        )

    if UnitCategory.WEIGHT in by_category:
        return [to_weight(a.quantity, a.unit) for a in count_amounts + volume_amounts]

    requests = []
    if count_amounts:
        requests.append(to_weight(sum(a.quantity for a in count_amounts), MeasurementUnit.EACH))
    requests.extend(to_weight(a.quantity, a.unit) for a in volume_amounts)
    return requests


def apply_estimates(
    entry: AggregatedEntry,
    results: list[UnitEstimationResult],
    confidence_threshold: float = 0.5,
) -> bool:
    """
    Fold confident estimates into the entry's weight total, in pounds.

    An entry without weight amounts is only converted when every one of its
    requests has a confident answer.

    Returns:
        True if the entry was updated.
    """
    confident = [
        r
        for r in results
        if r.confidence > confidence_threshold and r.estimated_quantity_in_grams > 0
    ]
    if not confident:
        return False

    existing_grams = sum_base_quantity(entry.aggregated.original_amounts, UnitCategory.WEIGHT)
    if not existing_grams and len(confident) < len(build_estimation_requests(entry)):
        return False

    total_grams = existing_grams + sum(r.estimated_quantity_in_grams for r in confident)
    pounds = round(total_grams / GRAMS_PER_LB, 2)

    aggregated = entry.aggregated
    aggregated.display_quantity = pounds
    aggregated.display_unit = MeasurementUnit.LB
    aggregated.is_estimated = True
    aggregated.estimation_note = "; ".join(dict.fromkeys(r.display_note for r in confident))
    aggregated.alternate_units = generate_alternate_units(
        pounds, MeasurementUnit.LB, UnitCategory.WEIGHT
    )
    return True


class ShoppingListBuilder:
    """
    Builds a shopping list from the meals planned in a date range:
    - Servings scaling per planned meal
    - Name normalization and grouping across unit families
    - Unit-aware aggregation with provenance back to each recipe
    - Optional cross-category estimation and duplicate detection
    """

    def __init__(
        self,
        recipe_store: RecipeStore,
        meal_plan_store: MealPlanStore,
        list_store: ShoppingListStore,
        assistant: IngredientAssistant | None = None,
        estimation_confidence_threshold: float = 0.5,
    ):
        self.recipe_store = recipe_store
        self.meal_plan_store = meal_plan_store
        self.list_store = list_store
        self.assistant = assistant
        self.estimation_confidence_threshold = estimation_confidence_threshold

    async def generate_from_meal_plan(
        self,
        name: str,
        start_date: date,
        end_date: date,
        *,
        use_ai: bool = True,
        signal: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
        staples: list[str] | None = None,
        exclusions: list[str] | None = None,
        mappings: dict[str, str] | None = None,
    ) -> ShoppingListGenerationResult:
        """
        Generate and persist a shopping list for `[start_date, end_date]`.

        Args:
            name: Name of the new list.
            start_date: First planned date included.
            end_date: Last planned date included.
            use_ai: Run the estimation and duplicate-matching phases.
            signal: Set to cancel the remaining assistant phases.
            on_progress: Called with "gathering" and "analyzing".
            staples: Lowercase substrings of items to auto-check.
            exclusions: Lowercase substrings that veto a staple match.
            mappings: Lowercase variant -> confirmed canonical name.

        Returns:
            The persisted list, any pending duplicate matches, and whether
            the assistant was used or cancelled. A list is always persisted.
        """
        mappings = mappings or {}
        cancelled = False
        used_ai = False

        _notify(on_progress, "gathering")
        meals = await self.meal_plan_store.get_meals_for_date_range(start_date, end_date)
        recipe_ids = list(dict.fromkeys(m.recipe_id for m in meals))
        recipes = {r.id: r for r in await self.recipe_store.get_by_ids(recipe_ids)}

        ingredients = self._gather_ingredients(meals, recipes, mappings)
        logger.info(
            f"Gathered {len(ingredients)} ingredient lines from {len(meals)} meals "
            f"({start_date} to {end_date})"
        )

        entries = self._aggregate(self._group(ingredients))
        pending_estimation = [e for e in entries if e.aggregated.needs_ai_estimation]
        logger.info(
            f"Aggregated into {len(entries)} items, {len(pending_estimation)} with mixed units"
        )

        assistant_enabled = use_ai and self.assistant is not None
        analyzing = False
        if pending_estimation and assistant_enabled:
            if _is_set(signal):
                cancelled = True
            else:
                _notify(on_progress, "analyzing")
                analyzing = True
                try:
                    used_ai |= await self._estimate(pending_estimation, signal)
                except OperationCancelledError:
                    logger.info("Estimation cancelled, keeping unestimated totals")
                    cancelled = True

        items = [e.to_item() for e in entries]
        items.extend(self._aggregate_extras(meals))
        items = apply_staple_checking(items, staples or [], exclusions or [])

        shopping_list = await self.list_store.create_list(name, start_date, end_date, items)

        pending_matches: list[PendingIngredientMatch] = []
        with LoggingContext(list_id=shopping_list.id):
            if assistant_enabled and not cancelled:
                unmapped = [i for i in ingredients if i.original_name.lower() not in mappings]
                if _is_set(signal):
                    cancelled = True
                elif len(unmapped) >= 2:
                    if not analyzing:
                        _notify(on_progress, "analyzing")
                    pending_matches, matched_with_ai, cancelled = await self._find_matches(
                        unmapped, signal
                    )
                    used_ai |= matched_with_ai

            logger.info(
                f"Generated '{name}': {len(shopping_list.items)} items, "
                f"{len(pending_matches)} pending matches, used_ai={used_ai}, cancelled={cancelled}"
            )

        return ShoppingListGenerationResult(
            shopping_list=shopping_list,
            pending_matches=pending_matches,
            used_ai=used_ai,
            cancelled=cancelled,
        )

    # =========================================================================
    # Phases
    # =========================================================================

    @staticmethod
    def _gather_ingredients(
        meals: list[PlannedMeal],
        recipes: dict[str, Recipe],
        mappings: dict[str, str],
    ) -> list[ScaledIngredient]:
        ingredients: list[ScaledIngredient] = []
        for meal in meals:
            recipe = recipes.get(meal.recipe_id)
            if recipe is None:
                logger.warning(f"Planned meal {meal.id} references missing recipe {meal.recipe_id}")
                continue

            for ingredient in recipe.ingredients:
                ingredients.append(
                    ScaledIngredient(
                        name=mappings.get(ingredient.name.lower(), ingredient.name),
                        original_name=ingredient.name,
                        quantity=scale_quantity(ingredient.quantity, meal.servings, recipe.servings),
                        unit=ingredient.unit,
                        store_section=ingredient.store_section or "other",
                        recipe_id=recipe.id,
                        recipe_name=recipe.title,
                    )
                )
        return ingredients

    @staticmethod
    def _group(ingredients: list[ScaledIngredient]) -> list[IngredientGroup]:
        """Group by normalized name only, so unit families can merge."""
        groups: dict[str, IngredientGroup] = {}
        for ingredient in ingredients:
            key = normalize_ingredient_name(ingredient.name).normalized_name
            group = groups.get(key)
            if group is None:
                group = groups[key] = IngredientGroup(key, ingredient.store_section)
            group.ingredients.append(ingredient)
        return list(groups.values())

    @staticmethod
    def _aggregate(groups: list[IngredientGroup]) -> list[AggregatedEntry]:
        entries = []
        for group in groups:
            names = list(dict.fromkeys(i.name for i in group.ingredients))
            entries.append(
                AggregatedEntry(
                    normalized_name=group.normalized_name,
                    display_name=select_canonical_name(names),
                    store_section=group.store_section,
                    aggregated=aggregate_amounts(
                        [i.as_amount() for i in group.ingredients], group.normalized_name
                    ),
                    source_recipe_details=[
                        SourceRecipeDetail(
                            quantity=i.quantity,
                            unit=i.unit,
                            recipe_id=i.recipe_id,
                            recipe_name=i.recipe_name,
                            original_ingredient_name=i.original_name,
                        )
                        for i in group.ingredients
                    ],
                )
            )
        return entries

    async def _estimate(
        self,
        entries: list[AggregatedEntry],
        signal: asyncio.Event | None,
    ) -> bool:
        """Run cross-category estimation. Returns True if the remote model answered."""
        requests = [r for e in entries for r in build_estimation_requests(e)]
        if not requests:
            logger.info("No mixed-unit items can be estimated toward weight")
            return False

        try:
            results = await self.assistant.estimate_unit_conversion(requests, signal)
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Estimation failed, continuing without estimates: {e}")
            return False

        by_name: dict[str, list[UnitEstimationResult]] = {}
        for result in results:
            by_name.setdefault(result.ingredient_name, []).append(result)

        applied = 0
        for entry in entries:
            if apply_estimates(
                entry,
                by_name.get(entry.normalized_name, []),
                self.estimation_confidence_threshold,
            ):
                applied += 1

        logger.info(f"Applied estimates to {applied}/{len(entries)} mixed-unit items")
        return any(not r.is_local and r.confidence > 0 for r in results)

    async def _find_matches(
        self,
        ingredients: list[ScaledIngredient],
        signal: asyncio.Event | None,
    ) -> tuple[list[PendingIngredientMatch], bool, bool]:
        """Returns (pending matches, used remote model, cancelled)."""
        items = [
            IngredientInfo(
                name=i.original_name,
                recipe_id=i.recipe_id,
                recipe_name=i.recipe_name,
                quantity=i.quantity,
                unit=i.unit,
            )
            for i in ingredients
        ]
        try:
            result = await self.assistant.identify_potential_matches(items, signal)
        except OperationCancelledError:
            logger.info("Duplicate matching cancelled")
            return [], False, True
        except Exception as e:
            logger.warning(f"Duplicate matching failed, continuing without matches: {e}")
            return [], False, False

        if result.cancelled:
            logger.info("Duplicate matching cancelled")
            return [], False, True
        if result.error:
            logger.warning(f"Duplicate matching degraded: {result.error}")

        logger.info(f"Found {len(result.matches)} potential duplicate groups")
        return result.matches, result.used_ai, False

    @staticmethod
    def _aggregate_extras(meals: list[PlannedMeal]) -> list[ShoppingItem]:
        """Sum meal extras by normalized name; plain addition, no unit conversion."""
        extras: dict[str, ShoppingItem] = {}
        for meal in meals:
            for extra in meal.extra_items:
                normalized = normalize_ingredient_name(extra.name)
                existing = extras.get(normalized.normalized_name)
                if existing is None:
                    extras[normalized.normalized_name] = ShoppingItem(
                        name=select_canonical_name([extra.name]) or extra.name,
                        quantity=extra.quantity,
                        unit=extra.unit,
                        store_section=extra.store_section or "other",
                    )
                elif existing.quantity is not None and extra.quantity is not None:
                    existing.quantity += extra.quantity
                elif existing.quantity is None:
                    existing.quantity = extra.quantity
        return list(extras.values())


def _notify(on_progress: ProgressCallback | None, phase: Phase) -> None:
    if on_progress is not None:
        on_progress(phase)


def _is_set(signal: asyncio.Event | None) -> bool:
    return signal is not None and signal.is_set()
