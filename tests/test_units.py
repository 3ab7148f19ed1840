"""Tests for unit parsing, conversion and display unit selection."""

import pytest

from mealcart.normalize.units import (
    IngredientClass,
    MeasurementUnit,
    UnitCategory,
    are_units_compatible,
    classify_ingredient,
    convert_unit,
    format_quantity_unit,
    generate_alternate_units,
    get_unit_category,
    parse_unit,
    round_to_reasonable_precision,
    select_optimal_unit,
)

U = MeasurementUnit

# =============================================================================
# Parsing
# =============================================================================


class TestParseUnit:
    """Tests for parse_unit."""

    def test_enum_values(self):
        assert parse_unit("cup") == U.CUP
        assert parse_unit("fl_oz") == U.FL_OZ
        assert parse_unit(U.LB) == U.LB

    def test_common_spellings(self):
        """Plurals, capitalization and trailing periods resolve."""
        assert parse_unit("cups") == U.CUP
        assert parse_unit("Tablespoons") == U.TBSP
        assert parse_unit("Tbsp.") == U.TBSP
        assert parse_unit("lbs") == U.LB
        assert parse_unit("grams") == U.G
        assert parse_unit("pieces") == U.EACH
        assert parse_unit("fl oz") == U.FL_OZ
        assert parse_unit("  To   Taste ") == U.TO_TASTE

    def test_unknown_or_empty(self):
        assert parse_unit("smidgen") is None
        assert parse_unit("") is None
        assert parse_unit(None) is None


# =============================================================================
# Conversion
# =============================================================================


class TestConversion:
    """Tests for category lookup and same-category conversion."""

    def test_missing_unit_is_count(self):
        assert get_unit_category(None) == UnitCategory.COUNT

    def test_categories(self):
        assert get_unit_category(U.TBSP) == UnitCategory.VOLUME
        assert get_unit_category(U.STONE) == UnitCategory.WEIGHT
        assert get_unit_category(U.CLOVE) == UnitCategory.COUNT

    def test_volume_conversion(self):
        assert convert_unit(1, U.CUP, U.ML) == pytest.approx(236.588)
        assert convert_unit(1, U.L, U.CUP) == pytest.approx(4.2268, rel=1e-3)

    def test_weight_conversion(self):
        assert convert_unit(1, U.LB, U.OZ) == pytest.approx(16, rel=1e-3)
        assert convert_unit(2, U.KG, U.G) == pytest.approx(2000)

    def test_round_trip_within_category(self):
        there = convert_unit(3, U.TBSP, U.CUP)
        assert convert_unit(there, U.CUP, U.TBSP) == pytest.approx(3)

    def test_cross_category_is_refused(self):
        assert convert_unit(1, U.CUP, U.G) is None
        assert convert_unit(2, U.EACH, U.LB) is None

    def test_count_units_only_convert_to_themselves(self):
        assert convert_unit(2, U.CLOVE, U.CLOVE) == 2
        assert convert_unit(2, U.CLOVE, U.EACH) is None

    def test_compatibility(self):
        assert are_units_compatible(U.TSP, U.GALLON_UK)
        assert are_units_compatible(None, U.EACH)
        assert not are_units_compatible(U.OZ, U.FL_OZ)


class TestRoundToReasonablePrecision:
    """Tests for display rounding tiers."""

    def test_tiers(self):
        assert round_to_reasonable_precision(123.4) == 123
        assert round_to_reasonable_precision(12.36) == 12.4
        assert round_to_reasonable_precision(1.234) == 1.23
        assert round_to_reasonable_precision(0.12345) == 0.123

    def test_halves_round_up(self):
        assert round_to_reasonable_precision(100.5) == 101
        assert round_to_reasonable_precision(2.5) == 2.5


# =============================================================================
# Display Unit Selection
# =============================================================================


class TestSelectOptimalUnit:
    """Tests for packaging preferences and generic thresholds."""

    def test_count_is_each(self):
        assert select_optimal_unit("egg", 12, UnitCategory.COUNT) == U.EACH

    def test_meat_switches_to_pounds_at_half_pound(self):
        assert select_optimal_unit("chicken breast", 200, UnitCategory.WEIGHT) == U.OZ
        assert select_optimal_unit("chicken breast", 680, UnitCategory.WEIGHT) == U.LB

    def test_liquids(self):
        assert select_optimal_unit("milk", 30, UnitCategory.VOLUME) == U.TBSP
        assert select_optimal_unit("milk", 500, UnitCategory.VOLUME) == U.CUP

    def test_butter_needs_half_cup(self):
        assert select_optimal_unit("butter", 100, UnitCategory.VOLUME) == U.TBSP
        assert select_optimal_unit("butter", 120, UnitCategory.VOLUME) == U.CUP

    def test_spices(self):
        assert select_optimal_unit("salt", 10, UnitCategory.VOLUME) == U.TSP
        assert select_optimal_unit("salt", 20, UnitCategory.VOLUME) == U.TBSP

    def test_class_without_thresholds_uses_generic(self):
        assert select_optimal_unit("flour", 10, UnitCategory.VOLUME) == U.TSP
        assert select_optimal_unit("flour", 1000, UnitCategory.VOLUME) == U.CUP
        assert select_optimal_unit("cheddar cheese", 300, UnitCategory.WEIGHT) == U.LB

    def test_unmatched_name_uses_generic(self):
        assert select_optimal_unit("zucchini", 100, UnitCategory.WEIGHT) == U.OZ
        assert select_optimal_unit("zucchini", 40, UnitCategory.VOLUME) == U.TBSP

    def test_first_matching_class_wins(self):
        assert classify_ingredient("buttermilk").ingredient_class == IngredientClass.LIQUID
        assert classify_ingredient("peanut butter").ingredient_class == IngredientClass.BUTTER
        assert classify_ingredient("basil").ingredient_class == IngredientClass.SPICE
        assert classify_ingredient("zucchini") is None


class TestAlternateUnits:
    """Tests for generate_alternate_units."""

    def test_volume_alternates_exclude_displayed_unit(self):
        alternates = generate_alternate_units(2, U.CUP, UnitCategory.VOLUME)

        assert [a.unit for a in alternates] == [U.TSP, U.TBSP, U.ML]
        assert alternates[-1].quantity == 473

    def test_out_of_range_alternates_are_dropped(self):
        alternates = generate_alternate_units(50, U.LB, UnitCategory.WEIGHT)

        # 22680 g is above the display range
        assert [a.unit for a in alternates] == [U.OZ]

    def test_count_has_no_alternates(self):
        assert generate_alternate_units(3, U.EACH, UnitCategory.COUNT) == []


class TestFormatQuantityUnit:
    """Tests for format_quantity_unit."""

    def test_formats(self):
        assert format_quantity_unit(2, U.CUP) == "2 cup"
        assert format_quantity_unit(1.5, U.LB) == "1.5 lb"
        assert format_quantity_unit(3, U.EACH) == "3"
        assert format_quantity_unit(2, None) == "2"

    def test_missing_quantity(self):
        assert format_quantity_unit(None, U.PINCH) == "pinch"
        assert format_quantity_unit(None, None) == ""
