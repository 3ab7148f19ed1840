"""SQLAlchemy database models."""

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealcart.database import Base
from mealcart.schemas import utcnow


class Recipe(Base):
    """Recipe with its ingredient lines."""

    __tablename__ = "recipes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    servings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # [{"name", "quantity", "unit", "store_section", "notes"}]
    ingredients: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    planned_meals: Mapped[list["PlannedMeal"]] = relationship(
        "PlannedMeal", back_populates="recipe"
    )


class PlannedMeal(Base):
    """A recipe scheduled on a calendar date."""

    __tablename__ = "planned_meals"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    recipe_id: Mapped[str] = mapped_column(String, ForeignKey("recipes.id"))
    servings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # [{"name", "quantity", "unit", "store_section"}]
    extra_items: Mapped[list] = mapped_column(JSON, default=list)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="planned_meals")

    __table_args__ = (Index("idx_planned_meals_date", "date"),)


class AppSetting(Base):
    """Key-value application setting (staple lists and the like)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[list | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class IngredientMapping(Base):
    """User-confirmed canonical ingredient name with its variants."""

    __tablename__ = "ingredient_mappings"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    canonical_name: Mapped[str] = mapped_column(String, nullable=False)
    canonical_name_lower: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    variants: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ShoppingList(Base):
    """Shopping list; items are stored inline as a JSON document."""

    __tablename__ = "shopping_lists"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    items: Mapped[list] = mapped_column(JSON, default=list)
    date_range_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_range_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_shopping_lists_created_at", "created_at"),)
