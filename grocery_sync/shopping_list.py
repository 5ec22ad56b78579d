import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping

from grocery_sync.catalog import IngredientCatalog, get_catalog
from grocery_sync.models import MealPlanEntry
from grocery_sync.recipes import Recipe
from grocery_sync.resolver import IngredientResolver
from grocery_sync.units import (
    TO_TASTE,
    Measured,
    Quantity,
    ToTaste,
    are_compatible,
    base_unit,
    convert,
    partition_key,
)

logger = logging.getLogger(__name__)

# Partition key for "to taste" lines; never summed, one record per name.
_TO_TASTE_PARTITION = "to_taste"

# Rounding applied to summed quantities so float noise (0.1 + 0.2) does not
# leak into list items or break equality between repeated runs.
_QUANTITY_PRECISION = 4


@dataclass(frozen=True)
class AggregatedIngredient:
    canonical_name: str
    quantity: Quantity
    category: str
    recipe_ids: tuple[str, ...]
    use_dates: tuple[date, ...]

    @property
    def unit(self) -> str:
        return self.quantity.unit

    @property
    def value(self) -> float | None:
        return self.quantity.value if isinstance(self.quantity, Measured) else None

    @property
    def first_use(self) -> date:
        return self.use_dates[0]


@dataclass
class _Bucket:
    """Contributions of one canonical name within one unit partition."""
    canonical_name: str
    category: str
    default_unit: str
    partition: str
    amounts: list[Measured] = field(default_factory=list)
    recipe_ids: set[str] = field(default_factory=set)
    use_dates: set[date] = field(default_factory=set)

    def _representative_unit(self) -> str:
        units = {m.unit for m in self.amounts}
        if len(units) == 1:
            return next(iter(units))
        if self.default_unit and are_compatible(self.default_unit, next(iter(units))):
            return self.default_unit
        return base_unit(next(iter(units)))

    def to_ingredient(self) -> AggregatedIngredient:
        if self.partition == _TO_TASTE_PARTITION:
            quantity: Quantity = TO_TASTE
        else:
            unit = self._representative_unit()
            total = 0.0
            for amount in self.amounts:
                # Same partition guarantees convertibility
                total += convert(amount.value, amount.unit, unit)
            quantity = Measured(round(total, _QUANTITY_PRECISION), unit)

        return AggregatedIngredient(
            canonical_name=self.canonical_name,
            quantity=quantity,
            category=self.category,
            recipe_ids=tuple(sorted(self.recipe_ids)),
            use_dates=tuple(sorted(self.use_dates)),
        )


def entry_scale(entry: MealPlanEntry, recipe: Recipe) -> float:
    """Factor that turns the recipe's quantities into the entry's servings."""
    if entry.servings is None or not recipe.servings:
        return 1.0
    return entry.servings / recipe.servings


def aggregate_ingredients(
    entries: Iterable[MealPlanEntry],
    recipes: Mapping[str, Recipe],
    start: date,
    end: date,
    catalog: IngredientCatalog | None = None,
) -> list[AggregatedIngredient]:
    """Sum every ingredient needed by the entries dated start..end (inclusive).

    One row per (canonical name, unit class). Quantities in different but
    compatible units are converted before summing; incompatible units
    (mass vs volume, or two different unclassified units like clove and can)
    become separate rows for the same name. "To taste" lines are collected
    into a single quantity-less row per name.

    The result is sorted by category order, then name, then unit, so
    repeated runs over unchanged input are identical.
    """
    catalog = catalog or get_catalog()
    resolver = IngredientResolver(catalog)
    buckets: dict[tuple[str, str], _Bucket] = {}
    entry_count = 0

    for entry in sorted(entries, key=lambda e: (e.date, e.recipe_id, e.id)):
        if not start <= entry.date <= end:
            continue
        recipe = recipes.get(entry.recipe_id)
        if recipe is None:
            logger.warning(
                "Meal plan entry references unknown recipe",
                extra={"entry_id": entry.id, "recipe_id": entry.recipe_id},
            )
            continue
        entry_count += 1
        scale = entry_scale(entry, recipe)

        for line in recipe.ingredients:
            resolved = resolver.resolve(line, scale)
            if isinstance(resolved.quantity, ToTaste):
                partition = _TO_TASTE_PARTITION
            else:
                partition = partition_key(resolved.quantity.unit)

            key = (resolved.canonical_name, partition)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _Bucket(
                    canonical_name=resolved.canonical_name,
                    category=resolved.category,
                    default_unit=resolved.default_unit,
                    partition=partition,
                )
            if isinstance(resolved.quantity, Measured):
                bucket.amounts.append(resolved.quantity)
            bucket.recipe_ids.add(entry.recipe_id)
            bucket.use_dates.add(entry.date)

    ingredients = [bucket.to_ingredient() for bucket in buckets.values()]
    ingredients.sort(key=lambda i: (catalog.sort_order(i.category), i.canonical_name, i.unit))

    logger.info(
        "Ingredients aggregated",
        extra={
            "start": start.isoformat(),
            "end": end.isoformat(),
            "entry_count": entry_count,
            "item_count": len(ingredients),
        },
    )
    return ingredients
