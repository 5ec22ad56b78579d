"""Pytest configuration and fixtures."""

# config.py switches to test-friendly data paths when pytest is detected

from datetime import date, timedelta

import pytest

from grocery_sync.catalog import build_default_catalog
from grocery_sync.models import MealPlanEntry, new_id
from grocery_sync.recipes import IngredientLine, Recipe

START = date(2024, 3, 4)


def day(offset: int) -> date:
    """Date *offset* days after the fixed test range start (a Monday)."""
    return START + timedelta(days=offset)


def create_test_recipe(
    recipe_id: str,
    name: str | None = None,
    servings: int = 4,
    ingredients: list | None = None,
) -> Recipe:
    """Helper to create a test Recipe from plain ingredient dicts."""
    return Recipe(
        id=recipe_id,
        name=name or recipe_id.replace("-", " ").title(),
        servings=servings,
        ingredients=[IngredientLine.from_dict(i) for i in ingredients or []],
    )


def create_entry(recipe_id: str, offset: int, servings: float | None = None) -> MealPlanEntry:
    return MealPlanEntry(id=new_id(), date=day(offset), recipe_id=recipe_id, servings=servings)


@pytest.fixture
def catalog():
    return build_default_catalog()
