"""Tests for the SQLAlchemy-backed stores."""

from datetime import date, datetime, timezone

import pytest

from factories import make_meal, make_recipe
from mealcart.exceptions import ShoppingItemNotFoundError, ShoppingListNotFoundError
from mealcart.normalize.units import MeasurementUnit
from mealcart.repositories import (
    IngredientMappingRepository,
    MealPlanRepository,
    RecipeRepository,
    SettingsRepository,
    ShoppingListRepository,
)
from mealcart.schemas import (
    ExtraItem,
    PendingIngredientMatch,
    RefinedIngredientGroup,
    ShoppingItem,
    ShoppingList,
)

U = MeasurementUnit


# =============================================================================
# Recipes & Meal Plans
# =============================================================================


class TestRecipeAndMealPlanRepositories:
    """Tests for RecipeRepository and MealPlanRepository."""

    @pytest.mark.asyncio
    async def test_recipe_round_trip(self, db_session):
        repo = RecipeRepository(db_session)
        await repo.save(make_recipe("r1", "Tacos", 4, ("ground beef", 1, U.LB, "meat_seafood")))
        await repo.save(make_recipe("r1", "Beef tacos", 2, ("ground beef", 0.5, U.LB)))

        (recipe,) = await repo.get_by_ids(["r1", "missing"])

        assert recipe.title == "Beef tacos"
        assert recipe.servings == 2
        assert recipe.ingredients[0].unit == U.LB
        assert await repo.get_by_ids([]) == []

    @pytest.mark.asyncio
    async def test_meals_in_inclusive_range(self, db_session):
        await RecipeRepository(db_session).save(make_recipe("r1", "Tacos", 2))
        repo = MealPlanRepository(db_session)
        chips = ExtraItem(name="Tortilla chips", quantity=1, unit=U.PACKAGE)
        for meal_id, day in [("m0", 4), ("m1", 5), ("m2", 11), ("m3", 12)]:
            await repo.save(make_meal(meal_id, "r1", 2, on=date(2026, 1, day), extra_items=[chips]))

        meals = await repo.get_meals_for_date_range(date(2026, 1, 5), date(2026, 1, 11))

        assert [m.id for m in meals] == ["m1", "m2"]
        assert meals[0].extra_items[0].unit == U.PACKAGE


# =============================================================================
# Settings
# =============================================================================


class TestSettingsRepository:
    """Tests for SettingsRepository."""

    @pytest.mark.asyncio
    async def test_staples_are_cleaned(self, db_session):
        repo = SettingsRepository(db_session)

        assert await repo.get_staple_ingredients() == []
        staples = await repo.set_staple_ingredients([" Salt ", "salt", "", "Olive Oil"])

        assert staples == ["salt", "olive oil"]
        assert await repo.add_staple_ingredient("SUGAR") == ["salt", "olive oil", "sugar"]
        assert await repo.remove_staple_ingredient(" Salt") == ["olive oil", "sugar"]
        assert await repo.get_staple_ingredients() == ["olive oil", "sugar"]

    @pytest.mark.asyncio
    async def test_exclusions(self, db_session):
        repo = SettingsRepository(db_session)

        await repo.add_staple_exclusion("Brown Sugar")
        await repo.add_staple_exclusion("brown sugar")

        assert await repo.get_staple_exclusions() == ["brown sugar"]
        assert await repo.remove_staple_exclusion("BROWN SUGAR") == []
        assert await repo.set_staple_exclusions(["Sea Salt", " sea salt"]) == ["sea salt"]


# =============================================================================
# Ingredient Mappings
# =============================================================================


class TestIngredientMappingRepository:
    """Tests for IngredientMappingRepository."""

    @pytest.mark.asyncio
    async def test_confirm_match_creates_mapping(self, db_session):
        repo = IngredientMappingRepository(db_session)
        match = PendingIngredientMatch(
            ingredient_names=["Scallions", "green onion", "Green Onion"],
            suggested_canonical_name="Green onion",
            confidence=0.9,
        )

        mapping = await repo.confirm_match(match)

        assert mapping.canonical_name == "Green onion"
        assert mapping.variants == ["scallions"]
        assert await repo.get_mappings_map() == {
            "green onion": "Green onion",
            "scallions": "Green onion",
        }
        assert await repo.find_canonical_name("SCALLIONS") == "Green onion"

    @pytest.mark.asyncio
    async def test_confirming_same_canonical_name_merges(self, db_session):
        repo = IngredientMappingRepository(db_session)
        await repo.create("Green onion", ["scallion"])

        mapping = await repo.confirm_match(
            PendingIngredientMatch(
                ingredient_names=["spring onion", "scallion"],
                suggested_canonical_name="green ONION",
                confidence=0.8,
            )
        )

        assert mapping.canonical_name == "Green onion"
        assert mapping.variants == ["scallion", "spring onion"]
        assert len(await repo.get_all()) == 1

    @pytest.mark.asyncio
    async def test_refined_groups(self, db_session):
        repo = IngredientMappingRepository(db_session)

        mappings = await repo.confirm_refined_groups(
            [
                RefinedIngredientGroup(canonical_name="", ingredient_names=["milk", "whole milk"]),
                RefinedIngredientGroup(canonical_name="Oat milk", ingredient_names=["oat milk"]),
            ]
        )

        assert [m.canonical_name for m in mappings] == ["milk"]
        assert mappings[0].variants == ["whole milk"]

    @pytest.mark.asyncio
    async def test_variant_editing_and_delete(self, db_session):
        repo = IngredientMappingRepository(db_session)
        mapping = await repo.create("Cilantro", ["coriander"])

        mapping = await repo.add_variant(mapping.id, "Coriander Leaves")
        assert mapping.variants == ["coriander", "coriander leaves"]

        mapping = await repo.remove_variant(mapping.id, "CORIANDER")
        assert mapping.variants == ["coriander leaves"]

        await repo.delete(mapping.id)
        assert await repo.get_all() == []
        with pytest.raises(LookupError):
            await repo.add_variant(mapping.id, "x")

    @pytest.mark.asyncio
    async def test_lookup_and_clear(self, db_session):
        repo = IngredientMappingRepository(db_session)
        await repo.create("Green onion", ["scallion"])

        assert (await repo.get_by_canonical_name("GREEN ONION")).variants == ["scallion"]
        assert await repo.get_by_canonical_name("leek") is None

        await repo.clear_all()
        assert await repo.get_mappings_map() == {}


# =============================================================================
# Shopping Lists
# =============================================================================


class TestShoppingListRepository:
    """Tests for ShoppingListRepository."""

    @pytest.mark.asyncio
    async def test_lists_newest_first(self, db_session):
        repo = ShoppingListRepository(db_session)
        await repo.bulk_add_lists(
            [
                ShoppingList(name="Old", created_at=datetime(2026, 1, 1, tzinfo=timezone.utc)),
                ShoppingList(name="New", created_at=datetime(2026, 1, 8, tzinfo=timezone.utc)),
            ]
        )

        assert [sl.name for sl in await repo.get_all_lists()] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_create_rename_delete(self, db_session):
        repo = ShoppingListRepository(db_session)
        created = await repo.create_list(
            "Week 2",
            date(2026, 1, 5),
            date(2026, 1, 11),
            [ShoppingItem(name="Milk", quantity=1, unit=U.GALLON_US)],
        )

        renamed = await repo.update_list(created.id, name="Week 2 (party)")
        assert renamed.name == "Week 2 (party)"
        assert renamed.items[0].unit == U.GALLON_US
        assert renamed.date_range_end == date(2026, 1, 11)

        await repo.delete_list(created.id)
        assert await repo.get_list_by_id(created.id) is None
        with pytest.raises(ShoppingListNotFoundError):
            await repo.update_list(created.id, name="x")

    @pytest.mark.asyncio
    async def test_item_operations(self, db_session):
        repo = ShoppingListRepository(db_session)
        created = await repo.create_list("Week 2")

        added = await repo.add_item_to_list(
            created.id, ShoppingItem(name="Napkins", quantity=1, is_manual=True)
        )
        toggled = await repo.toggle_item_checked(created.id, added.id)
        assert toggled.is_checked

        updated = await repo.update_item_in_list(
            created.id, added.id, {"quantity": 2, "notes": "white", "id": "hijack"}
        )
        assert updated.id == added.id
        assert updated.quantity == 2
        assert updated.notes == "white"
        assert updated.is_checked

        await repo.remove_item_from_list(created.id, added.id)
        assert (await repo.get_list_by_id(created.id)).items == []

        with pytest.raises(ShoppingItemNotFoundError):
            await repo.remove_item_from_list(created.id, added.id)
        with pytest.raises(ShoppingItemNotFoundError):
            await repo.toggle_item_checked(created.id, "missing")
        with pytest.raises(ShoppingListNotFoundError):
            await repo.add_item_to_list("missing", ShoppingItem(name="x"))

    @pytest.mark.asyncio
    async def test_uncheck_all_and_clear_checked(self, db_session, sample_list):
        repo = ShoppingListRepository(db_session)
        await repo.bulk_add_lists([sample_list])

        cleared = await repo.clear_checked_items(sample_list.id)
        assert "Salt" not in [i.name for i in cleared.items]
        assert len(cleared.items) == 4

        await repo.toggle_item_checked(sample_list.id, cleared.items[0].id)
        unchecked = await repo.uncheck_all_items(sample_list.id)
        assert not any(i.is_checked for i in unchecked.items)

    @pytest.mark.asyncio
    async def test_duplicate_resets_checks_and_applies_staples(self, db_session, sample_list):
        repo = ShoppingListRepository(db_session)
        await repo.bulk_add_lists([sample_list])

        copy = await repo.duplicate_list(sample_list.id, "Week 3", staples=["salt"])

        assert copy.id != sample_list.id
        assert copy.date_range_start == sample_list.date_range_start
        assert {i.id for i in copy.items}.isdisjoint({i.id for i in sample_list.items})
        checked = [i.name for i in copy.items if i.is_checked]
        assert checked == ["Salt"]
        assert copy.items[0].source_recipe_details == sample_list.items[0].source_recipe_details

    @pytest.mark.asyncio
    async def test_duplicate_missing_list(self, db_session):
        with pytest.raises(ShoppingListNotFoundError):
            await ShoppingListRepository(db_session).duplicate_list("missing", "Copy")

    @pytest.mark.asyncio
    async def test_recurring_items(self, db_session):
        repo = ShoppingListRepository(db_session)
        await repo.create_list(
            "Week 2",
            items=[
                ShoppingItem(name="Coffee", is_recurring=True, is_manual=True),
                ShoppingItem(name="Milk"),
            ],
        )

        assert [i.name for i in await repo.get_recurring_items()] == ["Coffee"]

        await repo.clear_all()
        assert await repo.get_all_lists() == []
