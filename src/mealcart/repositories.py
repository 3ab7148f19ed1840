"""SQLAlchemy-backed stores for recipes, meal plans, settings, mappings and lists."""

import uuid
from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcart import models, schemas
from mealcart.exceptions import ShoppingItemNotFoundError, ShoppingListNotFoundError
from mealcart.logging_config import get_logger
from mealcart.plan.staples import apply_staple_checking

logger = get_logger(__name__)


# =============================================================================
# Recipes & meal plans (read side used by the builder)
# =============================================================================


class RecipeRepository:
    """Recipe store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ids(self, ids: Iterable[str]) -> list[schemas.Recipe]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(select(models.Recipe).where(models.Recipe.id.in_(ids)))
        return [self._to_schema(r) for r in result.scalars().all()]

    async def save(self, recipe: schemas.Recipe) -> schemas.Recipe:
        record = await self.session.get(models.Recipe, recipe.id)
        data = [i.model_dump(mode="json") for i in recipe.ingredients]
        if record is None:
            record = models.Recipe(
                id=recipe.id, title=recipe.title, servings=recipe.servings, ingredients=data
            )
            self.session.add(record)
        else:
            record.title = recipe.title
            record.servings = recipe.servings
            record.ingredients = data
        await self.session.commit()
        return recipe

    @staticmethod
    def _to_schema(record: models.Recipe) -> schemas.Recipe:
        return schemas.Recipe(
            id=record.id,
            title=record.title,
            servings=record.servings,
            ingredients=[schemas.Ingredient.model_validate(i) for i in record.ingredients or []],
        )


class MealPlanRepository:
    """Planned meal store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_meals_for_date_range(self, start: date, end: date) -> list[schemas.PlannedMeal]:
        """Planned meals with `start <= date <= end`, in date order."""
        result = await self.session.execute(
            select(models.PlannedMeal)
            .where(models.PlannedMeal.date >= start, models.PlannedMeal.date <= end)
            .order_by(models.PlannedMeal.date, models.PlannedMeal.id)
        )
        return [
            schemas.PlannedMeal(
                id=m.id,
                date=m.date,
                recipe_id=m.recipe_id,
                servings=m.servings,
                extra_items=[schemas.ExtraItem.model_validate(e) for e in m.extra_items or []],
            )
            for m in result.scalars().all()
        ]

    async def save(self, meal: schemas.PlannedMeal) -> schemas.PlannedMeal:
        record = await self.session.get(models.PlannedMeal, meal.id)
        extras = [e.model_dump(mode="json") for e in meal.extra_items]
        if record is None:
            record = models.PlannedMeal(
                id=meal.id,
                date=meal.date,
                recipe_id=meal.recipe_id,
                servings=meal.servings,
                extra_items=extras,
            )
            self.session.add(record)
        else:
            record.date = meal.date
            record.recipe_id = meal.recipe_id
            record.servings = meal.servings
            record.extra_items = extras
        await self.session.commit()
        return meal


# =============================================================================
# Settings (staple ingredients)
# =============================================================================


class SettingsRepository:
    """
    Staple ingredient lists.

    Entries are stored lowercased and trimmed; duplicates and blanks are
    ignored.
    """

    STAPLES_KEY = "staple_ingredients"
    EXCLUSIONS_KEY = "staple_exclusions"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_list(self, key: str) -> list[str]:
        record = await self.session.get(models.AppSetting, key)
        if record is None or not isinstance(record.value, list):
            return []
        return list(record.value)

    async def _set_list(self, key: str, values: Iterable[str]) -> list[str]:
        cleaned: list[str] = []
        for value in values:
            value = value.strip().lower()
            if value and value not in cleaned:
                cleaned.append(value)

        record = await self.session.get(models.AppSetting, key)
        if record is None:
            self.session.add(models.AppSetting(key=key, value=cleaned))
        else:
            record.value = cleaned
        await self.session.commit()
        return cleaned

    async def get_staple_ingredients(self) -> list[str]:
        return await self._get_list(self.STAPLES_KEY)

    async def set_staple_ingredients(self, staples: Iterable[str]) -> list[str]:
        return await self._set_list(self.STAPLES_KEY, staples)

    async def add_staple_ingredient(self, staple: str) -> list[str]:
        return await self._set_list(self.STAPLES_KEY, [*await self.get_staple_ingredients(), staple])

    async def remove_staple_ingredient(self, staple: str) -> list[str]:
        target = staple.strip().lower()
        return await self._set_list(
            self.STAPLES_KEY, [s for s in await self.get_staple_ingredients() if s != target]
        )

    async def get_staple_exclusions(self) -> list[str]:
        return await self._get_list(self.EXCLUSIONS_KEY)

    async def set_staple_exclusions(self, exclusions: Iterable[str]) -> list[str]:
        return await self._set_list(self.EXCLUSIONS_KEY, exclusions)

    async def add_staple_exclusion(self, exclusion: str) -> list[str]:
        return await self._set_list(
            self.EXCLUSIONS_KEY, [*await self.get_staple_exclusions(), exclusion]
        )

    async def remove_staple_exclusion(self, exclusion: str) -> list[str]:
        target = exclusion.strip().lower()
        return await self._set_list(
            self.EXCLUSIONS_KEY, [e for e in await self.get_staple_exclusions() if e != target]
        )


# =============================================================================
# Ingredient mappings
# =============================================================================


class IngredientMappingRepository:
    """User-confirmed canonical ingredient names."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> list[schemas.IngredientMapping]:
        result = await self.session.execute(
            select(models.IngredientMapping).order_by(models.IngredientMapping.created_at)
        )
        return [self._to_schema(m) for m in result.scalars().all()]

    async def get_by_canonical_name(self, name: str) -> schemas.IngredientMapping | None:
        record = await self._get_record_by_canonical_name(name)
        return self._to_schema(record) if record else None

    async def find_canonical_name(self, ingredient_name: str) -> str | None:
        return (await self.get_mappings_map()).get(ingredient_name.lower())

    async def get_mappings_map(self) -> dict[str, str]:
        """Lowercase canonical name and variants -> canonical display name."""
        mappings: dict[str, str] = {}
        for mapping in await self.get_all():
            mappings[mapping.canonical_name.lower()] = mapping.canonical_name
            for variant in mapping.variants:
                mappings[variant.lower()] = mapping.canonical_name
        return mappings

    async def create(self, canonical_name: str, variants: Iterable[str]) -> schemas.IngredientMapping:
        record = models.IngredientMapping(
            id=str(uuid.uuid4()),
            canonical_name=canonical_name,
            canonical_name_lower=canonical_name.lower(),
            variants=self._clean_variants(canonical_name, variants, []),
        )
        self.session.add(record)
        await self.session.commit()
        logger.info(f"Created ingredient mapping '{canonical_name}' ({len(record.variants)} variants)")
        return self._to_schema(record)

    async def add_variant(self, mapping_id: str, variant: str) -> schemas.IngredientMapping:
        record = await self.session.get(models.IngredientMapping, mapping_id)
        if record is None:
            raise LookupError(f"Ingredient mapping {mapping_id} not found")
        record.variants = self._clean_variants(record.canonical_name, [variant], record.variants)
        await self.session.commit()
        return self._to_schema(record)

    async def remove_variant(self, mapping_id: str, variant: str) -> schemas.IngredientMapping:
        record = await self.session.get(models.IngredientMapping, mapping_id)
        if record is None:
            raise LookupError(f"Ingredient mapping {mapping_id} not found")
        record.variants = [v for v in record.variants if v != variant.lower()]
        await self.session.commit()
        return self._to_schema(record)

    async def delete(self, mapping_id: str) -> None:
        await self.session.execute(
            delete(models.IngredientMapping).where(models.IngredientMapping.id == mapping_id)
        )
        await self.session.commit()

    async def clear_all(self) -> None:
        await self.session.execute(delete(models.IngredientMapping))
        await self.session.commit()

    async def confirm_match(self, match: schemas.PendingIngredientMatch) -> schemas.IngredientMapping:
        """Save a confirmed match, merging into an existing mapping of the same name."""
        return await self._save_group(match.suggested_canonical_name, match.ingredient_names)

    async def confirm_all_matches(
        self, matches: list[schemas.PendingIngredientMatch]
    ) -> list[schemas.IngredientMapping]:
        return [await self.confirm_match(m) for m in matches]

    async def confirm_refined_groups(
        self, groups: list[schemas.RefinedIngredientGroup]
    ) -> list[schemas.IngredientMapping]:
        """Save user-refined groups; single-name groups need no mapping."""
        results = []
        for group in groups:
            if len(group.ingredient_names) < 2:
                continue
            canonical_name = group.canonical_name.strip() or group.ingredient_names[0]
            results.append(await self._save_group(canonical_name, group.ingredient_names))
        return results

    async def _save_group(self, canonical_name: str, names: list[str]) -> schemas.IngredientMapping:
        record = await self._get_record_by_canonical_name(canonical_name)
        if record is None:
            return await self.create(canonical_name, names)

        record.variants = self._clean_variants(record.canonical_name, names, record.variants)
        await self.session.commit()
        return self._to_schema(record)

    async def _get_record_by_canonical_name(self, name: str) -> models.IngredientMapping | None:
        result = await self.session.execute(
            select(models.IngredientMapping).where(
                models.IngredientMapping.canonical_name_lower == name.lower()
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _clean_variants(canonical_name: str, new: Iterable[str], existing: list[str]) -> list[str]:
        variants = list(existing)
        for name in new:
            lower = name.strip().lower()
            if lower and lower != canonical_name.lower() and lower not in variants:
                variants.append(lower)
        return variants

    @staticmethod
    def _to_schema(record: models.IngredientMapping) -> schemas.IngredientMapping:
        return schemas.IngredientMapping(
            id=record.id,
            canonical_name=record.canonical_name,
            variants=list(record.variants or []),
            created_at=record.created_at,
        )


# =============================================================================
# Shopping lists
# =============================================================================


class ShoppingListRepository:
    """
    Shopping list store.

    Items live in a JSON column on the list row; every item operation is a
    read-modify-write of that column, so concurrent edits of the same list
    are last-write-wins.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Lists
    # -------------------------------------------------------------------------

    async def get_all_lists(self) -> list[schemas.ShoppingList]:
        """All lists, newest first."""
        result = await self.session.execute(
            select(models.ShoppingList).order_by(models.ShoppingList.created_at.desc())
        )
        return [self._to_schema(r) for r in result.scalars().all()]

    async def get_list_by_id(self, list_id: str) -> schemas.ShoppingList | None:
        record = await self.session.get(models.ShoppingList, list_id)
        return self._to_schema(record) if record else None

    async def create_list(
        self,
        name: str,
        date_range_start: date | None = None,
        date_range_end: date | None = None,
        items: list[schemas.ShoppingItem] | None = None,
    ) -> schemas.ShoppingList:
        """Insert a new list together with its items in one commit."""
        shopping_list = schemas.ShoppingList(
            name=name,
            items=items or [],
            date_range_start=date_range_start,
            date_range_end=date_range_end,
        )
        self.session.add(self._to_record(shopping_list))
        await self.session.commit()
        logger.info(f"Created shopping list '{name}' with {len(shopping_list.items)} items")
        return shopping_list

    async def update_list(
        self,
        list_id: str,
        name: str | None = None,
        items: list[schemas.ShoppingItem] | None = None,
    ) -> schemas.ShoppingList:
        record = await self._get_record(list_id)
        if name is not None:
            record.name = name
        if items is not None:
            record.items = [self._dump_item(i) for i in items]
        record.updated_at = schemas.utcnow()
        await self.session.commit()
        return self._to_schema(record)

    async def delete_list(self, list_id: str) -> None:
        await self.session.execute(
            delete(models.ShoppingList).where(models.ShoppingList.id == list_id)
        )
        await self.session.commit()

    async def duplicate_list(
        self,
        list_id: str,
        new_name: str,
        staples: list[str] | None = None,
        exclusions: list[str] | None = None,
    ) -> schemas.ShoppingList:
        """Copy a list with fresh item ids, everything unchecked, staples re-applied."""
        original = await self.get_list_by_id(list_id)
        if original is None:
            raise ShoppingListNotFoundError(list_id)

        items = [
            item.model_copy(update={"id": schemas.new_id(), "is_checked": False})
            for item in original.items
        ]
        items = apply_staple_checking(items, staples or [], exclusions or [])
        return await self.create_list(
            new_name, original.date_range_start, original.date_range_end, items
        )

    async def bulk_add_lists(self, lists: list[schemas.ShoppingList]) -> None:
        for shopping_list in lists:
            self.session.add(self._to_record(shopping_list))
        await self.session.commit()

    async def clear_all(self) -> None:
        await self.session.execute(delete(models.ShoppingList))
        await self.session.commit()

    async def get_recurring_items(self) -> list[schemas.ShoppingItem]:
        return [
            item
            for shopping_list in await self.get_all_lists()
            for item in shopping_list.items
            if item.is_recurring
        ]

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def add_item_to_list(
        self, list_id: str, item: schemas.ShoppingItem
    ) -> schemas.ShoppingItem:
        shopping_list = await self._require_list(list_id)
        new_item = item.model_copy(update={"id": schemas.new_id()})
        await self.update_list(list_id, items=[*shopping_list.items, new_item])
        return new_item

    async def update_item_in_list(
        self, list_id: str, item_id: str, updates: dict[str, Any]
    ) -> schemas.ShoppingItem:
        updates = {k: v for k, v in updates.items() if k != "id"}
        return await self._replace_item(
            list_id, item_id, lambda item: schemas.ShoppingItem.model_validate({**item.model_dump(), **updates})
        )

    async def toggle_item_checked(self, list_id: str, item_id: str) -> schemas.ShoppingItem:
        return await self._replace_item(
            list_id, item_id, lambda item: item.model_copy(update={"is_checked": not item.is_checked})
        )

    async def remove_item_from_list(self, list_id: str, item_id: str) -> None:
        shopping_list = await self._require_list(list_id)
        remaining = [i for i in shopping_list.items if i.id != item_id]
        if len(remaining) == len(shopping_list.items):
            raise ShoppingItemNotFoundError(list_id, item_id)
        await self.update_list(list_id, items=remaining)

    async def uncheck_all_items(self, list_id: str) -> schemas.ShoppingList:
        shopping_list = await self._require_list(list_id)
        items = [i.model_copy(update={"is_checked": False}) for i in shopping_list.items]
        return await self.update_list(list_id, items=items)

    async def clear_checked_items(self, list_id: str) -> schemas.ShoppingList:
        shopping_list = await self._require_list(list_id)
        return await self.update_list(
            list_id, items=[i for i in shopping_list.items if not i.is_checked]
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _replace_item(self, list_id: str, item_id: str, change) -> schemas.ShoppingItem:
        shopping_list = await self._require_list(list_id)
        updated: schemas.ShoppingItem | None = None
        items = []
        for item in shopping_list.items:
            if item.id == item_id:
                updated = change(item)
                items.append(updated)
            else:
                items.append(item)
        if updated is None:
            raise ShoppingItemNotFoundError(list_id, item_id)
        await self.update_list(list_id, items=items)
        return updated

    async def _require_list(self, list_id: str) -> schemas.ShoppingList:
        shopping_list = await self.get_list_by_id(list_id)
        if shopping_list is None:
            raise ShoppingListNotFoundError(list_id)
        return shopping_list

    async def _get_record(self, list_id: str) -> models.ShoppingList:
        record = await self.session.get(models.ShoppingList, list_id)
        if record is None:
            raise ShoppingListNotFoundError(list_id)
        return record

    @staticmethod
    def _dump_item(item: schemas.ShoppingItem) -> dict[str, Any]:
        return item.model_dump(mode="json")

    @classmethod
    def _to_record(cls, shopping_list: schemas.ShoppingList) -> models.ShoppingList:
        return models.ShoppingList(
            id=shopping_list.id,
            name=shopping_list.name,
            items=[cls._dump_item(i) for i in shopping_list.items],
            date_range_start=shopping_list.date_range_start,
            date_range_end=shopping_list.date_range_end,
            created_at=shopping_list.created_at,
            updated_at=shopping_list.updated_at,
        )

    @staticmethod
    def _to_schema(record: models.ShoppingList) -> schemas.ShoppingList:
        return schemas.ShoppingList(
            id=record.id,
            name=record.name,
            items=[schemas.ShoppingItem.model_validate(i) for i in record.items or []],
            date_range_start=record.date_range_start,
            date_range_end=record.date_range_end,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
