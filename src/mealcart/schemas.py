"""Common data schemas for the shopping list pipeline."""

import uuid
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field

from mealcart.normalize.aggregation import OriginalAmount
from mealcart.normalize.units import AlternateUnit, MeasurementUnit

DEFAULT_STORE_SECTIONS: list[tuple[str, str]] = [
    ("produce", "Produce"),
    ("dairy", "Dairy"),
    ("meat_seafood", "Meat & Seafood"),
    ("bakery", "Bakery"),
    ("frozen", "Frozen"),
    ("canned_goods", "Canned Goods"),
    ("dry_goods", "Dry Goods & Pasta"),
    ("condiments", "Condiments & Sauces"),
    ("snacks", "Snacks"),
    ("beverages", "Beverages"),
    ("household", "Household"),
    ("other", "Other"),
]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Inputs (recipes and meal plans)
# =============================================================================


class Ingredient(BaseModel):
    """Recipe-scoped ingredient line."""

    name: str
    quantity: float | None = None
    unit: MeasurementUnit | None = None
    store_section: str = "other"
    notes: str | None = None


class Recipe(BaseModel):
    """Recipe as consumed by the shopping list builder."""

    id: str
    title: str
    servings: int = Field(ge=1, default=1)
    ingredients: list[Ingredient] = Field(default_factory=list)


class ExtraItem(BaseModel):
    """Non-recipe item attached to a planned meal (side dish, drink)."""

    name: str
    quantity: float | None = None
    unit: MeasurementUnit | None = None
    store_section: str | None = None


class PlannedMeal(BaseModel):
    """A recipe scheduled on a date for a number of servings."""

    id: str
    date: date
    recipe_id: str
    servings: int = Field(ge=1, default=1)
    extra_items: list[ExtraItem] = Field(default_factory=list)


# =============================================================================
# Provenance
# =============================================================================


class SourceRecipeDetail(BaseModel):
    """Provenance of an aggregated item back to a contributing recipe."""

    quantity: float | None = None
    unit: MeasurementUnit | None = None
    recipe_id: str = ""
    recipe_name: str = ""
    original_ingredient_name: str = ""

    def as_amount(self) -> OriginalAmount:
        return OriginalAmount(
            quantity=self.quantity,
            unit=self.unit,
            recipe_id=self.recipe_id,
            recipe_name=self.recipe_name,
        )


# =============================================================================
# Shopping lists
# =============================================================================


class ShoppingItem(BaseModel):
    """Single line on a shopping list."""

    id: str = Field(default_factory=new_id)
    name: str
    quantity: float | None = None
    unit: MeasurementUnit | None = None
    store_section: str = "other"
    is_checked: bool = False
    notes: str | None = None
    source_recipe_ids: list[str] = Field(default_factory=list)
    source_recipe_details: list[SourceRecipeDetail] = Field(default_factory=list)
    is_manual: bool = False
    is_recurring: bool = False
    alternate_units: list[AlternateUnit] = Field(default_factory=list)
    is_estimated: bool = False
    estimation_note: str | None = None
    original_amounts: list[OriginalAmount] = Field(default_factory=list)


class ShoppingList(BaseModel):
    """A persisted shopping list; owns its items."""

    id: str = Field(default_factory=new_id)
    name: str
    items: list[ShoppingItem] = Field(default_factory=list)
    date_range_start: date | None = None
    date_range_end: date | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# Ingredient matching
# =============================================================================


class IngredientMapping(BaseModel):
    """A user-confirmed canonical name and the variants that map to it."""

    id: str = Field(default_factory=new_id)
    canonical_name: str
    variants: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class AffectedRecipe(BaseModel):
    """A recipe whose ingredient line takes part in a proposed match."""

    recipe_id: str
    recipe_name: str
    ingredient_name: str


class PendingIngredientMatch(BaseModel):
    """A proposed duplicate group awaiting user confirmation."""

    id: str = Field(default_factory=new_id)
    ingredient_names: list[str]
    suggested_canonical_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    affected_recipes: list[AffectedRecipe] = Field(default_factory=list)


class RefinedIngredientGroup(BaseModel):
    """A user-edited split of a pending match."""

    canonical_name: str = ""
    ingredient_names: list[str]


class ShoppingListGenerationResult(BaseModel):
    """Outcome of generating a list from a meal plan."""

    shopping_list: ShoppingList
    pending_matches: list[PendingIngredientMatch] = Field(default_factory=list)
    used_ai: bool = False
    cancelled: bool = False
