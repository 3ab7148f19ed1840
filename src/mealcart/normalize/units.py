"""Unit metadata, intra-category conversion and display unit selection."""

import math
import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict

from mealcart.logging_config import get_logger

logger = get_logger(__name__)


class UnitCategory(str, Enum):
    """Unit family. Amounts are only ever summed within one family."""

    VOLUME = "volume"
    WEIGHT = "weight"
    COUNT = "count"


class MeasurementUnit(str, Enum):
    """Closed set of units an ingredient amount can be expressed in."""

    # Volume
    TSP = "tsp"
    TBSP = "tbsp"
    FL_OZ = "fl_oz"
    CUP = "cup"
    PINT_US = "pint_us"
    QUART = "quart"
    GALLON_US = "gallon_us"
    ML = "ml"
    L = "l"
    PINT_UK = "pint_uk"
    GALLON_UK = "gallon_uk"
    # Weight
    OZ = "oz"
    LB = "lb"
    G = "g"
    KG = "kg"
    STONE = "stone"
    # Count
    EACH = "each"
    SLICE = "slice"
    CLOVE = "clove"
    BUNCH = "bunch"
    CAN = "can"
    PACKAGE = "package"
    PINCH = "pinch"
    DASH = "dash"
    TO_TASTE = "to_taste"


@dataclass(frozen=True)
class UnitInfo:
    """Static metadata for a measurement unit."""

    unit: MeasurementUnit
    name: str
    abbreviation: str
    category: UnitCategory
    system: str  # "us", "metric", "uk", "universal"
    base_unit_factor: float | None = None  # to ml (volume) or g (weight)


# =============================================================================
# Unit Table
# =============================================================================

_V, _W, _C = UnitCategory.VOLUME, UnitCategory.WEIGHT, UnitCategory.COUNT
U = MeasurementUnit

UNIT_INFO: dict[MeasurementUnit, UnitInfo] = {
    # Volume (base unit: ml)
    U.TSP: UnitInfo(U.TSP, "teaspoon", "tsp", _V, "us", 4.929),
    U.TBSP: UnitInfo(U.TBSP, "tablespoon", "tbsp", _V, "us", 14.787),
    U.FL_OZ: UnitInfo(U.FL_OZ, "fluid ounce", "fl oz", _V, "us", 29.574),
    U.CUP: UnitInfo(U.CUP, "cup", "cup", _V, "us", 236.588),
    U.PINT_US: UnitInfo(U.PINT_US, "pint (US)", "pt", _V, "us", 473.176),
    U.QUART: UnitInfo(U.QUART, "quart", "qt", _V, "us", 946.353),
    U.GALLON_US: UnitInfo(U.GALLON_US, "gallon (US)", "gal", _V, "us", 3785.41),
    U.ML: UnitInfo(U.ML, "milliliter", "ml", _V, "metric", 1.0),
    U.L: UnitInfo(U.L, "liter", "L", _V, "metric", 1000.0),
    U.PINT_UK: UnitInfo(U.PINT_UK, "pint (UK)", "pt", _V, "uk", 568.261),
    U.GALLON_UK: UnitInfo(U.GALLON_UK, "gallon (UK)", "gal", _V, "uk", 4546.09),
    # Weight (base unit: g)
    U.OZ: UnitInfo(U.OZ, "ounce", "oz", _W, "us", 28.3495),
    U.LB: UnitInfo(U.LB, "pound", "lb", _W, "us", 453.592),
    U.G: UnitInfo(U.G, "gram", "g", _W, "metric", 1.0),
    U.KG: UnitInfo(U.KG, "kilogram", "kg", _W, "metric", 1000.0),
    U.STONE: UnitInfo(U.STONE, "stone", "st", _W, "uk", 6350.29),
    # Count (no base unit)
    U.EACH: UnitInfo(U.EACH, "each", "", _C, "universal"),
    U.SLICE: UnitInfo(U.SLICE, "slice", "slice", _C, "universal"),
    U.CLOVE: UnitInfo(U.CLOVE, "clove", "clove", _C, "universal"),
    U.BUNCH: UnitInfo(U.BUNCH, "bunch", "bunch", _C, "universal"),
    U.CAN: UnitInfo(U.CAN, "can", "can", _C, "universal"),
    U.PACKAGE: UnitInfo(U.PACKAGE, "package", "pkg", _C, "universal"),
    U.PINCH: UnitInfo(U.PINCH, "pinch", "pinch", _C, "universal"),
    U.DASH: UnitInfo(U.DASH, "dash", "dash", _C, "universal"),
    U.TO_TASTE: UnitInfo(U.TO_TASTE, "to taste", "to taste", _C, "universal"),
}

# Spellings seen in recipe text, beyond the enum values themselves
UNIT_ALIASES: dict[str, MeasurementUnit] = {
    # Volume
    "teaspoon": U.TSP,
    "teaspoons": U.TSP,
    "t": U.TSP,
    "tablespoon": U.TBSP,
    "tablespoons": U.TBSP,
    "tbs": U.TBSP,
    "tbl": U.TBSP,
    "fl oz": U.FL_OZ,
    "fluid ounce": U.FL_OZ,
    "fluid ounces": U.FL_OZ,
    "cups": U.CUP,
    "c": U.CUP,
    "pint": U.PINT_US,
    "pints": U.PINT_US,
    "pt": U.PINT_US,
    "quarts": U.QUART,
    "qt": U.QUART,
    "gallon": U.GALLON_US,
    "gallons": U.GALLON_US,
    "gal": U.GALLON_US,
    "milliliter": U.ML,
    "milliliters": U.ML,
    "millilitre": U.ML,
    "millilitres": U.ML,
    "liter": U.L,
    "liters": U.L,
    "litre": U.L,
    "litres": U.L,
    # Weight
    "ounce": U.OZ,
    "ounces": U.OZ,
    "lbs": U.LB,
    "pound": U.LB,
    "pounds": U.LB,
    "gram": U.G,
    "grams": U.G,
    "kilogram": U.KG,
    "kilograms": U.KG,
    "st": U.STONE,
    # Count
    "piece": U.EACH,
    "pieces": U.EACH,
    "pc": U.EACH,
    "pcs": U.EACH,
    "whole": U.EACH,
    "slices": U.SLICE,
    "cloves": U.CLOVE,
    "bunches": U.BUNCH,
    "cans": U.CAN,
    "packages": U.PACKAGE,
    "pkg": U.PACKAGE,
    "pack": U.PACKAGE,
    "packs": U.PACKAGE,
    "pinches": U.PINCH,
    "dashes": U.DASH,
    "to taste": U.TO_TASTE,
}

BASE_UNIT: dict[UnitCategory, MeasurementUnit] = {
    UnitCategory.VOLUME: U.ML,
    UnitCategory.WEIGHT: U.G,
}


def parse_unit(raw: "str | MeasurementUnit | None") -> MeasurementUnit | None:
    """
    Resolve a raw unit string to a MeasurementUnit.

    Accepts enum values ("fl_oz"), abbreviations ("Tbsp", "lbs") and common
    spellings ("cups", "Tablespoons"). Unknown strings resolve to None.
    """
    if raw is None:
        return None
    if isinstance(raw, MeasurementUnit):
        return raw

    key = re.sub(r"\s+", " ", raw.strip().lower().rstrip("."))
    if not key:
        return None

    try:
        return MeasurementUnit(key)
    except ValueError:
        pass

    if key in UNIT_ALIASES:
        return UNIT_ALIASES[key]

    logger.debug(f"Unrecognized unit '{raw}', treating as unitless")
    return None


# =============================================================================
# Conversion Functions
# =============================================================================


def get_unit_category(unit: MeasurementUnit | None) -> UnitCategory:
    """Get the category of a unit. Missing units count as `count`."""
    if unit is None:
        return UnitCategory.COUNT
    info = UNIT_INFO.get(unit)
    if info is None:
        return UnitCategory.COUNT
    return info.category


def convert_to_base_unit(quantity: float, unit: MeasurementUnit) -> float | None:
    """Convert to ml (volume) or g (weight). None for units without a base factor."""
    info = UNIT_INFO.get(unit)
    if info is None or not info.base_unit_factor:
        return None
    return quantity * info.base_unit_factor


def convert_from_base_unit(base_quantity: float, target_unit: MeasurementUnit) -> float | None:
    """Convert from ml/g to the target unit. None for units without a base factor."""
    info = UNIT_INFO.get(target_unit)
    if info is None or not info.base_unit_factor:
        return None
    return base_quantity / info.base_unit_factor


def convert_unit(
    quantity: float,
    from_unit: MeasurementUnit,
    to_unit: MeasurementUnit,
) -> float | None:
    """
    Convert between two units of the same category.

    Returns None when the categories differ; cross-category conversion is
    never performed here. Count units only "convert" to themselves.
    """
    from_category = get_unit_category(from_unit)
    if from_category != get_unit_category(to_unit):
        return None

    if from_category == UnitCategory.COUNT:
        return quantity if from_unit == to_unit else None

    base_amount = convert_to_base_unit(quantity, from_unit)
    if base_amount is None:
        return None
    return convert_from_base_unit(base_amount, to_unit)


def are_units_compatible(unit1: MeasurementUnit | None, unit2: MeasurementUnit | None) -> bool:
    """Check if two units belong to the same category."""
    return get_unit_category(unit1) == get_unit_category(unit2)


def round_to_reasonable_precision(value: float) -> float:
    """
    Round a quantity for display.

    Integers at or above 100, one decimal at or above 10, two decimals at or
    above 1, three decimals below that. Halves round up.
    """

    def _round(v: float, places: int) -> float:
        factor = 10**places
        return math.floor(v * factor + 0.5) / factor

    if value >= 100:
        return _round(value, 0)
    if value >= 10:
        return _round(value, 1)
    if value >= 1:
        return _round(value, 2)
    return _round(value, 3)


# =============================================================================
# Display Unit Selection
# =============================================================================


class IngredientClass(str, Enum):
    """Ingredient families with a preferred way of being bought/measured."""

    MEAT = "meat"
    LIQUID = "liquid"
    BUTTER = "butter"
    SPICE = "spice"
    BAKING = "baking"
    CHEESE = "cheese"
    HERB = "herb"


@dataclass(frozen=True)
class UnitThreshold:
    """Display `unit` once the base quantity reaches `minimum` (ml or g)."""

    minimum: float
    unit: MeasurementUnit


@dataclass(frozen=True)
class PackagingPreference:
    """Display unit thresholds for one ingredient class."""

    ingredient_class: IngredientClass
    pattern: re.Pattern[str]
    volume_thresholds: tuple[UnitThreshold, ...] = ()
    weight_thresholds: tuple[UnitThreshold, ...] = ()

    def thresholds_for(self, category: UnitCategory) -> tuple[UnitThreshold, ...]:
        if category == UnitCategory.VOLUME:
            return self.volume_thresholds
        if category == UnitCategory.WEIGHT:
            return self.weight_thresholds
        return ()


# Order matters: the first class whose pattern matches the name wins.
PACKAGING_PREFERENCES: tuple[PackagingPreference, ...] = (
    PackagingPreference(
        IngredientClass.MEAT,
        re.compile(r"chicken|beef|pork|lamb|turkey|meat|steak|roast|ground|sausage", re.I),
        weight_thresholds=(
            UnitThreshold(0, U.OZ),
            UnitThreshold(227, U.LB),  # 0.5 lb
        ),
    ),
    PackagingPreference(
        IngredientClass.LIQUID,
        re.compile(r"milk|cream|broth|stock|juice|water|wine|vinegar|oil", re.I),
        volume_thresholds=(
            UnitThreshold(0, U.TBSP),
            UnitThreshold(59, U.CUP),  # 0.25 cup
        ),
    ),
    PackagingPreference(
        IngredientClass.BUTTER,
        re.compile(r"butter", re.I),
        volume_thresholds=(
            UnitThreshold(0, U.TBSP),
            UnitThreshold(118, U.CUP),  # 0.5 cup
        ),
    ),
    PackagingPreference(
        IngredientClass.SPICE,
        re.compile(
            r"salt|pepper|spice|cumin|paprika|cinnamon|nutmeg|oregano|basil|thyme|rosemary"
            r"|sage|garlic powder|onion powder|chili powder|cayenne",
            re.I,
        ),
        volume_thresholds=(
            UnitThreshold(0, U.TSP),
            UnitThreshold(15, U.TBSP),  # 1 tbsp
        ),
    ),
    PackagingPreference(
        IngredientClass.BAKING,
        re.compile(r"sugar|flour|cornstarch|baking", re.I),
    ),
    PackagingPreference(
        IngredientClass.CHEESE,
        re.compile(r"cheese", re.I),
    ),
    PackagingPreference(
        IngredientClass.HERB,
        re.compile(r"parsley|cilantro|basil|mint|dill|chives", re.I),
        volume_thresholds=(
            UnitThreshold(0, U.TBSP),
            UnitThreshold(59, U.CUP),
        ),
    ),
)


def classify_ingredient(name: str) -> PackagingPreference | None:
    """Return the first packaging preference whose pattern matches `name`."""
    for preference in PACKAGING_PREFERENCES:
        if preference.pattern.search(name):
            return preference
    return None


def _generic_unit(base_quantity: float, category: UnitCategory) -> MeasurementUnit:
    if category == UnitCategory.VOLUME:
        if base_quantity < 15:
            return U.TSP
        if base_quantity < 59:
            return U.TBSP
        return U.CUP
    if base_quantity < 227:
        return U.OZ
    return U.LB


def select_optimal_unit(
    ingredient_name: str,
    base_quantity: float,
    category: UnitCategory,
) -> MeasurementUnit:
    """
    Select the display unit for a summed base quantity.

    The highest threshold met by `base_quantity` wins within the matched
    ingredient class; classes without thresholds for the category, and
    unmatched names, use the generic thresholds.
    """
    if category == UnitCategory.COUNT:
        return U.EACH

    preference = classify_ingredient(ingredient_name)
    thresholds = preference.thresholds_for(category) if preference else ()

    for threshold in reversed(thresholds):
        if base_quantity >= threshold.minimum:
            return threshold.unit

    return _generic_unit(base_quantity, category)


# =============================================================================
# Alternate Units
# =============================================================================


class AlternateUnit(BaseModel):
    """An equivalent (quantity, unit) shown next to the displayed amount."""

    model_config = ConfigDict(frozen=True)

    quantity: float
    unit: MeasurementUnit


ALTERNATE_UNIT_CANDIDATES: dict[UnitCategory, tuple[MeasurementUnit, ...]] = {
    UnitCategory.VOLUME: (U.TSP, U.TBSP, U.CUP, U.ML),
    UnitCategory.WEIGHT: (U.OZ, U.LB, U.G),
}

MIN_ALTERNATE_QUANTITY = 0.01
MAX_ALTERNATE_QUANTITY = 10000


def generate_alternate_units(
    quantity: float,
    unit: MeasurementUnit,
    category: UnitCategory,
) -> list[AlternateUnit]:
    """Equivalent amounts in the category's common units, excluding `unit`."""
    alternates: list[AlternateUnit] = []

    for target_unit in ALTERNATE_UNIT_CANDIDATES.get(category, ()):
        if target_unit == unit:
            continue

        converted = convert_unit(quantity, unit, target_unit)
        if converted is None or converted <= 0:
            continue
        if MIN_ALTERNATE_QUANTITY <= converted < MAX_ALTERNATE_QUANTITY:
            alternates.append(
                AlternateUnit(
                    quantity=round_to_reasonable_precision(converted),
                    unit=target_unit,
                )
            )

    return alternates


def format_quantity_unit(quantity: float | None, unit: MeasurementUnit | None) -> str:
    """Format a quantity and unit for display, e.g. "1.5 lb" or "3"."""
    if quantity is None:
        if unit is None:
            return ""
        return UNIT_INFO[unit].name

    formatted = round_to_reasonable_precision(quantity)
    qty_str = str(int(formatted)) if formatted == int(formatted) else f"{formatted:g}"
    unit_str = ""
    if unit is not None:
        unit_str = UNIT_INFO[unit].abbreviation

    return f"{qty_str} {unit_str}" if unit_str else qty_str
