"""Unit conversion, name normalization and quantity aggregation."""

from mealcart.normalize.aggregation import AggregatedAmounts, OriginalAmount, aggregate_amounts
from mealcart.normalize.names import (
    NormalizedIngredient,
    ingredient_names_match,
    normalize_ingredient_name,
    select_canonical_name,
    singularize,
)
from mealcart.normalize.units import (
    AlternateUnit,
    MeasurementUnit,
    UnitCategory,
    convert_unit,
    format_quantity_unit,
    generate_alternate_units,
    get_unit_category,
    parse_unit,
    select_optimal_unit,
)

__all__ = [
    "AggregatedAmounts",
    "AlternateUnit",
    "MeasurementUnit",
    "NormalizedIngredient",
    "OriginalAmount",
    "UnitCategory",
    "aggregate_amounts",
    "convert_unit",
    "format_quantity_unit",
    "generate_alternate_units",
    "get_unit_category",
    "ingredient_names_match",
    "normalize_ingredient_name",
    "parse_unit",
    "select_canonical_name",
    "select_optimal_unit",
    "singularize",
]
