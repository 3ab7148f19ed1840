"""Quantity aggregation across recipes for one normalized ingredient."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import BaseModel

from mealcart.normalize.units import (
    AlternateUnit,
    MeasurementUnit,
    UnitCategory,
    convert_from_base_unit,
    convert_to_base_unit,
    generate_alternate_units,
    get_unit_category,
    round_to_reasonable_precision,
    select_optimal_unit,
)


class OriginalAmount(BaseModel):
    """An amount as contributed by one recipe, before aggregation."""

    quantity: float | None = None
    unit: MeasurementUnit | None = None
    recipe_id: str = ""
    recipe_name: str = ""


# Equal contributor counts resolve toward measurable families
CATEGORY_PRIORITY: dict[UnitCategory, int] = {
    UnitCategory.WEIGHT: 0,
    UnitCategory.VOLUME: 1,
    UnitCategory.COUNT: 2,
}


@dataclass
class AggregatedAmounts:
    """Summed amount for one ingredient, ready to become a shopping item."""

    display_quantity: float
    display_unit: MeasurementUnit
    alternate_units: list[AlternateUnit] = field(default_factory=list)
    original_amounts: list[OriginalAmount] = field(default_factory=list)
    is_estimated: bool = False
    estimation_note: str | None = None
    needs_ai_estimation: bool = False
    primary_category: UnitCategory = UnitCategory.COUNT


def sum_base_quantity(amounts: Iterable[OriginalAmount], category: UnitCategory) -> float:
    """Sum the base-unit (ml/g) quantities of amounts in `category`."""
    total = 0.0
    for amount in amounts:
        if not amount.quantity or amount.quantity <= 0 or amount.unit is None:
            continue
        if get_unit_category(amount.unit) != category:
            continue
        base = convert_to_base_unit(amount.quantity, amount.unit)
        if base is not None:
            total += base
    return total


def _aggregate_category(
    category: UnitCategory,
    amounts: list[OriginalAmount],
    ingredient_name: str,
) -> tuple[float, MeasurementUnit, list[AlternateUnit]]:
    if category == UnitCategory.COUNT:
        total = sum(a.quantity or 0.0 for a in amounts)
        unit = amounts[0].unit or MeasurementUnit.EACH
        return round_to_reasonable_precision(total), unit, []

    total_base = sum_base_quantity(amounts, category)
    optimal_unit = select_optimal_unit(ingredient_name, total_base, category)
    display_quantity = convert_from_base_unit(total_base, optimal_unit) or 0.0

    return (
        round_to_reasonable_precision(display_quantity),
        optimal_unit,
        generate_alternate_units(display_quantity, optimal_unit, category),
    )


def aggregate_amounts(
    amounts: list[OriginalAmount],
    ingredient_name: str,
) -> AggregatedAmounts:
    """
    Aggregate recipe amounts for a single ingredient.

    Amounts are partitioned by unit category. A single category is summed
    through base units and displayed in the unit `select_optimal_unit` picks.
    Mixed categories aggregate only the category with the most contributors
    and flag `needs_ai_estimation`; the other amounts survive in
    `original_amounts` for the caller to resolve.

    Args:
        amounts: Per-recipe amounts, quantities already scaled to servings.
        ingredient_name: Name used to choose the display unit.

    Returns:
        AggregatedAmounts
    """
    original_amounts = [a.model_copy() for a in amounts]

    by_category: dict[UnitCategory, list[OriginalAmount]] = {}
    for amount in amounts:
        if amount.quantity is None or amount.quantity <= 0:
            continue
        by_category.setdefault(get_unit_category(amount.unit), []).append(amount)

    if not by_category:
        return AggregatedAmounts(
            display_quantity=0,
            display_unit=MeasurementUnit.EACH,
            original_amounts=original_amounts,
        )

    primary_category, primary_amounts = min(
        by_category.items(),
        key=lambda entry: (-len(entry[1]), CATEGORY_PRIORITY[entry[0]]),
    )
    quantity, unit, alternates = _aggregate_category(
        primary_category, primary_amounts, ingredient_name
    )

    return AggregatedAmounts(
        display_quantity=quantity,
        display_unit=unit,
        alternate_units=alternates,
        original_amounts=original_amounts,
        needs_ai_estimation=len(by_category) > 1,
        primary_category=primary_category,
    )
