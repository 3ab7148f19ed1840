"""Pytest configuration and shared fixtures."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from factories import source
from mealcart.database import init_db
from mealcart.normalize.units import MeasurementUnit
from mealcart.schemas import PlannedMeal, Recipe, ShoppingItem, ShoppingList


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")


# =============================================================================
# Store Mock Fixtures
# =============================================================================


@pytest.fixture
def list_store():
    """Mock shopping list store whose create_list echoes back the new list."""

    async def create_list(name, date_range_start=None, date_range_end=None, items=None):
        return ShoppingList(
            name=name,
            items=items or [],
            date_range_start=date_range_start,
            date_range_end=date_range_end,
        )

    store = AsyncMock()
    store.create_list.side_effect = create_list
    return store


@pytest.fixture
def make_stores(list_store):
    """Build (recipe_store, meal_plan_store, list_store) mocks over fixed data."""

    def _make(recipes: list[Recipe], meals: list[PlannedMeal]):
        recipe_store = AsyncMock()
        recipe_store.get_by_ids.return_value = recipes
        meal_plan_store = AsyncMock()
        meal_plan_store.get_meals_for_date_range.return_value = meals
        return recipe_store, meal_plan_store, list_store

    return _make


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def sample_list() -> ShoppingList:
    """A small list spanning several store sections."""
    return ShoppingList(
        name="Week 2",
        date_range_start=date(2026, 1, 5),
        date_range_end=date(2026, 1, 11),
        items=[
            ShoppingItem(
                name="Milk",
                quantity=3,
                unit=MeasurementUnit.CUP,
                store_section="dairy",
                source_recipe_ids=["r1", "r2"],
                source_recipe_details=[
                    source("r1", "Pancakes", "milk", 1, MeasurementUnit.CUP),
                    source("r2", "Mac and cheese", "whole milk", 2, MeasurementUnit.CUP),
                ],
            ),
            ShoppingItem(
                name="Onion",
                quantity=2,
                unit=MeasurementUnit.EACH,
                store_section="produce",
                notes="yellow",
            ),
            ShoppingItem(
                name="Apple",
                quantity=4,
                unit=MeasurementUnit.EACH,
                store_section="produce",
            ),
            ShoppingItem(name="Salt", store_section="dry_goods", is_checked=True),
            ShoppingItem(
                name="Olives, pitted",
                quantity=1,
                unit=MeasurementUnit.CAN,
                store_section="deli_counter",
            ),
        ],
    )
