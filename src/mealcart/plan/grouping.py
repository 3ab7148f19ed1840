"""Manual grouping and ungrouping of shopping list items."""

from typing import Protocol

from mealcart.exceptions import GroupingError, ShoppingItemNotFoundError, ShoppingListNotFoundError
from mealcart.logging_config import LoggingContext, get_logger
from mealcart.normalize.aggregation import OriginalAmount, aggregate_amounts
from mealcart.schemas import ShoppingItem, ShoppingList, SourceRecipeDetail

logger = get_logger(__name__)


class EditableListStore(Protocol):
    async def get_list_by_id(self, list_id: str) -> ShoppingList | None: ...

    async def update_list(
        self,
        list_id: str,
        name: str | None = None,
        items: list[ShoppingItem] | None = None,
    ) -> ShoppingList: ...


def item_sources(item: ShoppingItem) -> list[SourceRecipeDetail]:
    """
    Provenance of an item, synthesizing a pseudo-source for items without any
    (manual additions and meal extras) so grouping never loses an amount.
    """
    if item.source_recipe_details:
        return list(item.source_recipe_details)
    return [
        SourceRecipeDetail(
            quantity=item.quantity,
            unit=item.unit,
            recipe_id="",
            recipe_name="Manual" if item.is_manual else "Meal extra",
            original_ingredient_name=item.name,
        )
    ]


def item_from_sources(
    name: str,
    sources: list[SourceRecipeDetail],
    store_section: str,
    **fields,
) -> ShoppingItem:
    """Build an unchecked item by aggregating `sources` under `name`."""
    aggregated = aggregate_amounts([s.as_amount() for s in sources], name)
    values = {
        "name": name,
        "quantity": aggregated.display_quantity,
        "unit": aggregated.display_unit,
        "store_section": store_section,
        "source_recipe_ids": list(dict.fromkeys(s.recipe_id for s in sources if s.recipe_id)),
        "source_recipe_details": sources,
        "is_manual": all(not s.recipe_id for s in sources),
        "alternate_units": aggregated.alternate_units,
        "is_estimated": aggregated.is_estimated,
        "estimation_note": aggregated.estimation_note,
        "original_amounts": aggregated.original_amounts,
    }
    values.update(fields)
    return ShoppingItem(**values)


def split_by_original_name(
    sources: list[SourceRecipeDetail], store_section: str
) -> list[ShoppingItem]:
    """One new item per distinct (case-insensitive) original ingredient name."""
    partitions: dict[str, list[SourceRecipeDetail]] = {}
    for source in sources:
        partitions.setdefault(source.original_ingredient_name.lower(), []).append(source)

    return [
        item_from_sources(group[0].original_ingredient_name, group, store_section)
        for group in partitions.values()
    ]


class ShoppingListEditor:
    """
    Group, ungroup and partially ungroup items of a persisted list.

    Each operation validates before writing and persists with a single
    `update_list` call. The union of `source_recipe_details` across the
    affected items is the same before and after every operation.
    """

    def __init__(self, store: EditableListStore):
        self.store = store

    async def group_items_in_list(
        self,
        list_id: str,
        item_ids: list[str],
        canonical_name: str,
        target_section: str,
    ) -> ShoppingItem:
        """Merge the given items into one item named `canonical_name`."""
        shopping_list = await self._require_list(list_id)
        selected = set(item_ids)
        to_group = [i for i in shopping_list.items if i.id in selected]
        if len(to_group) < 2:
            raise GroupingError("Need at least 2 items to group")

        sources = [s for item in to_group for s in item_sources(item)]
        # Displayed amounts carry any estimate already applied to an item
        aggregated = aggregate_amounts(
            [OriginalAmount(quantity=i.quantity, unit=i.unit) for i in to_group],
            canonical_name,
        )
        estimated = [i for i in to_group if i.is_estimated]
        notes = [i.estimation_note for i in estimated if i.estimation_note]

        grouped = ShoppingItem(
            name=canonical_name,
            quantity=aggregated.display_quantity,
            unit=aggregated.display_unit,
            store_section=target_section,
            source_recipe_ids=list(dict.fromkeys(s.recipe_id for s in sources if s.recipe_id)),
            source_recipe_details=sources,
            is_manual=all(i.is_manual for i in to_group),
            alternate_units=aggregated.alternate_units,
            is_estimated=bool(estimated),
            estimation_note="; ".join(dict.fromkeys(notes)) or None,
            original_amounts=[
                amount
                for item in to_group
                for amount in item.original_amounts or [s.as_amount() for s in item_sources(item)]
            ],
        )

        items = [i for i in shopping_list.items if i.id not in selected]
        items.append(grouped)

        with LoggingContext(list_id=list_id):
            await self.store.update_list(list_id, items=items)
            logger.info(f"Grouped {len(to_group)} items into '{canonical_name}'")
        return grouped

    async def ungroup_item_in_list(self, list_id: str, item_id: str) -> list[ShoppingItem]:
        """Split a grouped item into one item per original ingredient name."""
        shopping_list = await self._require_list(list_id)
        item = self._require_item(shopping_list, item_id)
        if len(item.source_recipe_details) < 2:
            raise GroupingError("Item cannot be ungrouped - no sources to separate")

        new_items = split_by_original_name(item.source_recipe_details, item.store_section)
        items = [i for i in shopping_list.items if i.id != item_id]
        items.extend(new_items)

        with LoggingContext(list_id=list_id):
            await self.store.update_list(list_id, items=items)
            logger.info(f"Ungrouped '{item.name}' into {len(new_items)} items")
        return new_items

    async def partial_ungroup_item_in_list(
        self,
        list_id: str,
        item_id: str,
        source_indices: list[int],
    ) -> tuple[list[ShoppingItem], ShoppingItem | None]:
        """
        Split selected sources out of a grouped item.

        Removed sources become new items grouped by original name. What
        remains of the group is deleted (no sources left), demoted to a plain
        item (one source) or re-aggregated in place (two or more).

        Args:
            list_id: List containing the item.
            item_id: Grouped item to split.
            source_indices: Indices into the item's `source_recipe_details`.

        Returns:
            (new items for the removed sources, updated group item or None)
        """
        shopping_list = await self._require_list(list_id)
        item = self._require_item(shopping_list, item_id)
        sources = item.source_recipe_details
        if not sources:
            raise GroupingError("Item has no sources to ungroup")
        if not source_indices:
            raise GroupingError("No sources specified for removal")
        invalid = [i for i in source_indices if i < 0 or i >= len(sources)]
        if invalid:
            raise GroupingError(f"Invalid source indices: {invalid}")

        to_remove = set(source_indices)
        removed = [s for index, s in enumerate(sources) if index in to_remove]
        remaining = [s for index, s in enumerate(sources) if index not in to_remove]

        new_items = split_by_original_name(removed, item.store_section)
        updated = self._regroup_remaining(item, remaining)

        items = [i for i in shopping_list.items if i.id != item_id]
        if updated is not None:
            items.append(updated)
        items.extend(new_items)

        with LoggingContext(list_id=list_id):
            await self.store.update_list(list_id, items=items)
            logger.info(
                f"Split {len(removed)} of {len(sources)} sources out of '{item.name}', "
                f"{len(remaining)} remaining"
            )
        return new_items, updated

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _regroup_remaining(
        item: ShoppingItem, remaining: list[SourceRecipeDetail]
    ) -> ShoppingItem | None:
        if not remaining:
            return None

        if len(remaining) == 1:
            source = remaining[0]
            return ShoppingItem(
                name=source.original_ingredient_name,
                quantity=source.quantity,
                unit=source.unit,
                store_section=item.store_section,
                is_checked=item.is_checked,
                source_recipe_ids=[source.recipe_id] if source.recipe_id else [],
                source_recipe_details=remaining,
                is_manual=not source.recipe_id,
            )

        return item_from_sources(
            item.name,
            remaining,
            item.store_section,
            id=item.id,
            is_checked=item.is_checked,
            notes=item.notes,
            is_manual=item.is_manual,
            is_recurring=item.is_recurring,
        )

    async def _require_list(self, list_id: str) -> ShoppingList:
        shopping_list = await self.store.get_list_by_id(list_id)
        if shopping_list is None:
            raise ShoppingListNotFoundError(list_id)
        return shopping_list

    @staticmethod
    def _require_item(shopping_list: ShoppingList, item_id: str) -> ShoppingItem:
        for item in shopping_list.items:
            if item.id == item_id:
                return item
        raise ShoppingItemNotFoundError(shopping_list.id, item_id)
