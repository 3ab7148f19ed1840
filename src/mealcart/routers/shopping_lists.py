"""API routes for shopping lists."""

from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from mealcart.config import get_settings
from mealcart.database import get_db
from mealcart.estimation import IngredientAssistantService
from mealcart.estimation.base import IngredientAssistant
from mealcart.exceptions import GroupingError, ShoppingItemNotFoundError, ShoppingListNotFoundError
from mealcart.logging_config import get_logger
from mealcart.normalize.units import MeasurementUnit, parse_unit
from mealcart.plan.export import (
    MEDIA_TYPES,
    ExportFormat,
    ExportOptions,
    export_filename,
    export_shopping_list,
)
from mealcart.plan.grouping import ShoppingListEditor
from mealcart.plan.shopping_list import ShoppingListBuilder
from mealcart.repositories import (
    IngredientMappingRepository,
    MealPlanRepository,
    RecipeRepository,
    SettingsRepository,
    ShoppingListRepository,
)
from mealcart.schemas import (
    IngredientMapping,
    PendingIngredientMatch,
    RefinedIngredientGroup,
    ShoppingItem,
    ShoppingList,
    ShoppingListGenerationResult,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/shopping-lists", tags=["shopping-lists"])


# =============================================================================
# Request/Response Schemas
# =============================================================================


class _UnitField(BaseModel):
    """Accepts unit spellings like "cups" or "Tbsp" as well as unit values."""

    @field_validator("unit", mode="before", check_fields=False)
    @classmethod
    def _parse_unit(cls, value):
        if isinstance(value, str):
            return parse_unit(value)
        return value


class GenerateListRequest(BaseModel):
    """Request to build a list from the meals planned in a date range."""

    name: str = Field(min_length=1)
    start_date: date
    end_date: date
    use_ai: bool = True


class RenameListRequest(BaseModel):
    name: str = Field(min_length=1)


class DuplicateListRequest(BaseModel):
    name: str = Field(min_length=1)


class ItemCreateRequest(_UnitField):
    """Manually added item."""

    name: str = Field(min_length=1)
    quantity: float | None = Field(None, gt=0)
    unit: MeasurementUnit | None = None
    store_section: str = "other"
    notes: str | None = None
    is_recurring: bool = False


class ItemUpdateRequest(_UnitField):
    """Partial item update; only fields that are set are applied."""

    name: str | None = None
    quantity: float | None = None
    unit: MeasurementUnit | None = None
    store_section: str | None = None
    notes: str | None = None
    is_checked: bool | None = None
    is_recurring: bool | None = None


class GroupItemsRequest(BaseModel):
    item_ids: list[str]
    canonical_name: str = Field(min_length=1)
    target_section: str = "other"


class PartialUngroupRequest(BaseModel):
    source_indices: list[int]


class PartialUngroupResponse(BaseModel):
    removed_items: list[ShoppingItem]
    updated_group_item: ShoppingItem | None = None


class ConfirmMatchesRequest(BaseModel):
    """Confirm pending matches as proposed, or as user-refined groups."""

    matches: list[PendingIngredientMatch] = Field(default_factory=list)
    refined_groups: list[RefinedIngredientGroup] = Field(default_factory=list)


# =============================================================================
# Dependencies & Helpers
# =============================================================================


async def get_assistant() -> AsyncIterator[IngredientAssistant]:
    """Estimation and matching capability for one request."""
    assistant = IngredientAssistantService(get_settings())
    try:
        yield assistant
    finally:
        await assistant.close()


@contextmanager
def http_errors() -> Iterator[None]:
    """Map domain errors onto HTTP status codes."""
    try:
        yield
    except (ShoppingListNotFoundError, ShoppingItemNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except GroupingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


async def _require_list(repository: ShoppingListRepository, list_id: str) -> ShoppingList:
    shopping_list = await repository.get_list_by_id(list_id)
    if shopping_list is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping list not found")
    return shopping_list


# =============================================================================
# Lists
# =============================================================================


@router.get("/", response_model=list[ShoppingList])
async def list_shopping_lists(db: AsyncSession = Depends(get_db)) -> list[ShoppingList]:
    """All shopping lists, newest first."""
    return await ShoppingListRepository(db).get_all_lists()


@router.post(
    "/generate",
    response_model=ShoppingListGenerationResult,
    status_code=status.HTTP_201_CREATED,
)
async def generate_shopping_list(
    request: GenerateListRequest,
    db: AsyncSession = Depends(get_db),
    assistant: IngredientAssistant = Depends(get_assistant),
) -> ShoppingListGenerationResult:
    """
    Generate a list from the meal plan between `start_date` and `end_date`.

    Pending ingredient matches are returned for confirmation and never
    applied automatically.
    """
    if request.end_date < request.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )

    logger.info(
        f"Generating shopping list '{request.name}': {request.start_date} to {request.end_date}"
    )

    settings_repo = SettingsRepository(db)
    builder = ShoppingListBuilder(
        RecipeRepository(db),
        MealPlanRepository(db),
        ShoppingListRepository(db),
        assistant,
        estimation_confidence_threshold=get_settings().estimation_confidence_threshold,
    )
    return await builder.generate_from_meal_plan(
        request.name,
        request.start_date,
        request.end_date,
        use_ai=request.use_ai,
        staples=await settings_repo.get_staple_ingredients(),
        exclusions=await settings_repo.get_staple_exclusions(),
        mappings=await IngredientMappingRepository(db).get_mappings_map(),
    )


@router.post(
    "/matches/confirm",
    response_model=list[IngredientMapping],
    status_code=status.HTTP_201_CREATED,
)
async def confirm_matches(
    request: ConfirmMatchesRequest,
    db: AsyncSession = Depends(get_db),
) -> list[IngredientMapping]:
    """Save confirmed ingredient matches for future list generation."""
    repository = IngredientMappingRepository(db)
    mappings = await repository.confirm_all_matches(request.matches)
    mappings.extend(await repository.confirm_refined_groups(request.refined_groups))
    logger.info(f"Confirmed {len(mappings)} ingredient mappings")
    return mappings


@router.get("/{list_id}", response_model=ShoppingList)
async def get_shopping_list(list_id: str, db: AsyncSession = Depends(get_db)) -> ShoppingList:
    return await _require_list(ShoppingListRepository(db), list_id)


@router.patch("/{list_id}", response_model=ShoppingList)
async def rename_shopping_list(
    list_id: str,
    request: RenameListRequest,
    db: AsyncSession = Depends(get_db),
) -> ShoppingList:
    with http_errors():
        return await ShoppingListRepository(db).update_list(list_id, name=request.name)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shopping_list(list_id: str, db: AsyncSession = Depends(get_db)) -> None:
    repository = ShoppingListRepository(db)
    await _require_list(repository, list_id)
    await repository.delete_list(list_id)
    logger.info(f"Deleted shopping list {list_id}")


@router.post(
    "/{list_id}/duplicate",
    response_model=ShoppingList,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_shopping_list(
    list_id: str,
    request: DuplicateListRequest,
    db: AsyncSession = Depends(get_db),
) -> ShoppingList:
    """Copy a list with every item unchecked and staples re-applied."""
    settings_repo = SettingsRepository(db)
    with http_errors():
        return await ShoppingListRepository(db).duplicate_list(
            list_id,
            request.name,
            staples=await settings_repo.get_staple_ingredients(),
            exclusions=await settings_repo.get_staple_exclusions(),
        )


@router.post("/{list_id}/uncheck-all", response_model=ShoppingList)
async def uncheck_all_items(list_id: str, db: AsyncSession = Depends(get_db)) -> ShoppingList:
    with http_errors():
        return await ShoppingListRepository(db).uncheck_all_items(list_id)


@router.post("/{list_id}/clear-checked", response_model=ShoppingList)
async def clear_checked_items(list_id: str, db: AsyncSession = Depends(get_db)) -> ShoppingList:
    with http_errors():
        return await ShoppingListRepository(db).clear_checked_items(list_id)


@router.get("/{list_id}/export")
async def export_list(
    list_id: str,
    format: ExportFormat = ExportFormat.MARKDOWN,
    include_recipe_sources: bool = True,
    include_notes: bool = True,
    include_checked_items: bool = False,
    group_by_section: bool = True,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download a list as markdown, JSON or CSV."""
    shopping_list = await _require_list(ShoppingListRepository(db), list_id)
    options = ExportOptions(
        format=format,
        include_recipe_sources=include_recipe_sources,
        include_notes=include_notes,
        include_checked_items=include_checked_items,
        group_by_section=group_by_section,
    )
    return Response(
        content=export_shopping_list(shopping_list, options),
        media_type=MEDIA_TYPES[format],
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(shopping_list, format)}"'
        },
    )


# =============================================================================
# Items
# =============================================================================


@router.post(
    "/{list_id}/items",
    response_model=ShoppingItem,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    list_id: str,
    request: ItemCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ShoppingItem:
    item = ShoppingItem(**request.model_dump(), is_manual=True)
    with http_errors():
        return await ShoppingListRepository(db).add_item_to_list(list_id, item)


@router.patch("/{list_id}/items/{item_id}", response_model=ShoppingItem)
async def update_item(
    list_id: str,
    item_id: str,
    request: ItemUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> ShoppingItem:
    with http_errors():
        return await ShoppingListRepository(db).update_item_in_list(
            list_id, item_id, request.model_dump(exclude_unset=True)
        )


@router.delete("/{list_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(list_id: str, item_id: str, db: AsyncSession = Depends(get_db)) -> None:
    with http_errors():
        await ShoppingListRepository(db).remove_item_from_list(list_id, item_id)


@router.post("/{list_id}/items/{item_id}/toggle", response_model=ShoppingItem)
async def toggle_item(list_id: str, item_id: str, db: AsyncSession = Depends(get_db)) -> ShoppingItem:
    with http_errors():
        return await ShoppingListRepository(db).toggle_item_checked(list_id, item_id)


# =============================================================================
# Grouping
# =============================================================================


@router.post(
    "/{list_id}/group",
    response_model=ShoppingItem,
    status_code=status.HTTP_201_CREATED,
)
async def group_items(
    list_id: str,
    request: GroupItemsRequest,
    db: AsyncSession = Depends(get_db),
) -> ShoppingItem:
    """Merge two or more items into one under `canonical_name`."""
    editor = ShoppingListEditor(ShoppingListRepository(db))
    with http_errors():
        return await editor.group_items_in_list(
            list_id, request.item_ids, request.canonical_name, request.target_section
        )


@router.post("/{list_id}/items/{item_id}/ungroup", response_model=list[ShoppingItem])
async def ungroup_item(
    list_id: str,
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[ShoppingItem]:
    editor = ShoppingListEditor(ShoppingListRepository(db))
    with http_errors():
        return await editor.ungroup_item_in_list(list_id, item_id)


@router.post("/{list_id}/items/{item_id}/partial-ungroup", response_model=PartialUngroupResponse)
async def partial_ungroup_item(
    list_id: str,
    item_id: str,
    request: PartialUngroupRequest,
    db: AsyncSession = Depends(get_db),
) -> PartialUngroupResponse:
    editor = ShoppingListEditor(ShoppingListRepository(db))
    with http_errors():
        removed, updated = await editor.partial_ungroup_item_in_list(
            list_id, item_id, request.source_indices
        )
    return PartialUngroupResponse(removed_items=removed, updated_group_item=updated)
