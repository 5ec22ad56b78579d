"""Freshness classification of aggregated ingredients.

An ingredient bought on the list's start date is fresh if its first use
falls within its category's shelf life. Otherwise it should be frozen on
purchase (freezable categories) or bought later.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from grocery_sync import config
from grocery_sync.catalog import IngredientCatalog, get_catalog
from grocery_sync.models import (
    FRESHNESS_BUY_LATER,
    FRESHNESS_FREEZE,
    FRESHNESS_OK,
    INCLUDE_ALL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    SPLIT_LISTS,
    FreshnessWarning,
)
from grocery_sync.shopping_list import AggregatedIngredient

logger = logging.getLogger(__name__)

_SEVERITY_ORDER = {SEVERITY_HIGH: 0, SEVERITY_MEDIUM: 1, SEVERITY_LOW: 2}


@dataclass(frozen=True)
class ClassifiedIngredient:
    ingredient: AggregatedIngredient
    status: str
    warning: bool
    days_until_use: int
    shelf_life_days: int | None = None  # None = unknown category

    @property
    def canonical_name(self) -> str:
        return self.ingredient.canonical_name

    @property
    def category(self) -> str:
        return self.ingredient.category


def _shelf_life(ingredient: AggregatedIngredient, catalog: IngredientCatalog) -> tuple[int, bool] | None:
    """(shelf_life_days, freezable), or None when the category is unknown.

    A catalog entry may override its category's values.
    """
    info = catalog.category_info(ingredient.category)
    if info is None:
        return None
    entry = catalog.get(ingredient.canonical_name)
    if entry is not None and entry.category == info.key:
        return entry.shelf_life_days, entry.freezable
    return info.shelf_life_days, info.freezable


def classify(
    ingredient: AggregatedIngredient,
    list_start: date,
    catalog: IngredientCatalog | None = None,
) -> ClassifiedIngredient:
    catalog = catalog or get_catalog()
    days_until_use = (ingredient.first_use - list_start).days
    shelf = _shelf_life(ingredient, catalog)

    if shelf is None:
        return ClassifiedIngredient(ingredient, FRESHNESS_OK, False, days_until_use)

    shelf_life_days, freezable = shelf
    if days_until_use <= shelf_life_days:
        return ClassifiedIngredient(ingredient, FRESHNESS_OK, False, days_until_use, shelf_life_days)

    status = FRESHNESS_FREEZE if freezable else FRESHNESS_BUY_LATER
    return ClassifiedIngredient(ingredient, status, True, days_until_use, shelf_life_days)


def classify_all(
    ingredients: Iterable[AggregatedIngredient],
    list_start: date,
    catalog: IngredientCatalog | None = None,
) -> list[ClassifiedIngredient]:
    catalog = catalog or get_catalog()
    return [classify(i, list_start, catalog) for i in ingredients]


def _severity(shelf_life_days: int) -> str:
    if shelf_life_days <= 2:
        return SEVERITY_HIGH
    if shelf_life_days >= 7:
        return SEVERITY_LOW
    return SEVERITY_MEDIUM


def build_warnings(
    classified: Iterable[ClassifiedIngredient],
    catalog: IngredientCatalog | None = None,
) -> list[FreshnessWarning]:
    """Group flagged items into one warning per category, most severe first."""
    catalog = catalog or get_catalog()
    by_category: dict[str, list[ClassifiedIngredient]] = defaultdict(list)
    for item in classified:
        if item.warning:
            by_category[item.category].append(item)

    warnings = []
    for category, items in by_category.items():
        info = catalog.category_info(category)
        if info is None:
            continue
        names = sorted({i.canonical_name for i in items})
        if info.freezable:
            recommendation = f"Freeze on purchase or buy closer to use; keeps about {info.shelf_life_days} days"
        else:
            recommendation = f"Buy closer to use; keeps about {info.shelf_life_days} days and does not freeze well"
        warnings.append(FreshnessWarning(
            severity=_severity(info.shelf_life_days),
            category=info.key,
            item_count=len(names),
            message=f"{info.label} ({len(names)} items) will not keep until first use",
            recommendation=recommendation,
            affected_items=tuple(names),
        ))

    warnings.sort(key=lambda w: (_SEVERITY_ORDER[w.severity], catalog.sort_order(w.category)))
    if warnings:
        logger.debug(
            "Freshness warnings",
            extra={"categories": [w.category for w in warnings], "item_count": sum(w.item_count for w in warnings)},
        )
    return warnings


def recommend_strategy(warnings: list[FreshnessWarning]) -> str:
    """split_lists once more categories than the threshold carry warnings."""
    if len(warnings) > config.SPLIT_RECOMMENDATION_THRESHOLD:
        return SPLIT_LISTS
    return INCLUDE_ALL

