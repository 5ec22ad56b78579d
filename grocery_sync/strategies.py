"""Partition classified ingredients into one or more shopping lists.

Modes:
    include_all          one list, every item, warnings kept
    exclude_perishables  one list without the items carrying a freshness warning
    split_lists          a "near" list bought at the range start and a "later"
                         list bought when the later items will keep
    custom               one list restricted to a category allowlist

Every produced list carries only the warnings about its own items, and
every item starts unchecked.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from grocery_sync import config
from grocery_sync.catalog import IngredientCatalog, get_catalog
from grocery_sync.freshness import ClassifiedIngredient, build_warnings, classify
from grocery_sync.models import (
    CUSTOM,
    EXCLUDE_PERISHABLES,
    INCLUDE_ALL,
    ROLE_LATER,
    ROLE_NEAR,
    SPLIT_LISTS,
    SPLIT_MODE_SINGLE,
    SPLIT_MODE_SPLIT,
    ShoppingList,
    ShoppingListItem,
    SplitInfo,
    Strategy,
    new_id,
)
from grocery_sync.units import Measured

logger = logging.getLogger(__name__)

_QUANTITY_PRECISION = 4


def _fmt(day: date) -> str:
    return f"{day.day} {day.strftime('%b')}"


@dataclass(frozen=True)
class SplitPlan:
    """Where split_lists cuts the plan range."""
    near: list[ClassifiedIngredient]
    later: list[ClassifiedIngredient]
    near_end: date
    later_start: date | None  # None = nothing is bought later


def split_quantity(item: ClassifiedIngredient, near_end: date) -> SplitInfo | None:
    """Apportion a near item's quantity between now and later by use dates.

    Each use date gets an equal share. Returns None unless uses fall on both
    sides of *near_end*, or when the quantity cannot be split (to taste).
    """
    ingredient = item.ingredient
    if not isinstance(ingredient.quantity, Measured):
        return None
    later_dates = [d for d in ingredient.use_dates if d > near_end]
    now_count = len(ingredient.use_dates) - len(later_dates)
    if not later_dates or not now_count:
        return None

    per_date = ingredient.quantity.value / len(ingredient.use_dates)
    return SplitInfo(
        buy_now_qty=round(per_date * now_count, _QUANTITY_PRECISION),
        buy_later_qty=round(per_date * len(later_dates), _QUANTITY_PRECISION),
        buy_later_date=later_dates[0] - timedelta(days=config.BUY_LATER_LEAD_DAYS),
    )


def plan_split(
    classified: list[ClassifiedIngredient],
    plan_start: date,
    plan_end: date,
    cutoff_days: int | None,
) -> SplitPlan:
    if cutoff_days is None:
        # Rolling: near holds everything that keeps when bought at plan_start.
        near = [c for c in classified if not c.warning]
        later = [c for c in classified if c.warning]
        if not later:
            return SplitPlan(near, later, plan_end, None)
        # Earliest day any later item can be bought and still be fresh at first use.
        later_start = min(c.ingredient.first_use - timedelta(days=c.shelf_life_days) for c in later)
        return SplitPlan(near, later, later_start - timedelta(days=1), later_start)

    cutoff = plan_start + timedelta(days=cutoff_days)
    if cutoff >= plan_end:
        return SplitPlan(list(classified), [], plan_end, None)
    near = [c for c in classified if c.ingredient.first_use <= cutoff]
    later = [c for c in classified if c.ingredient.first_use > cutoff]
    return SplitPlan(near, later, cutoff, cutoff + timedelta(days=1))


def _to_item(list_id: str, item: ClassifiedIngredient, order: int, split_info: SplitInfo | None = None) -> ShoppingListItem:
    ingredient = item.ingredient
    return ShoppingListItem(
        id=new_id(),
        list_id=list_id,
        ingredient_name=ingredient.canonical_name,
        quantity=ingredient.value,
        unit=ingredient.unit,
        category=ingredient.category,
        checked=False,
        used_in_recipes=list(ingredient.recipe_ids),
        used_on_dates=list(ingredient.use_dates),
        freshness_status=item.status,
        freshness_warning=item.warning,
        split_info=split_info,
        order=order,
    )


def _make_list(
    name: str,
    start: date,
    end: date,
    classified: list[ClassifiedIngredient],
    strategy: Strategy,
    plan_start: date,
    plan_end: date,
    catalog: IngredientCatalog,
    role: str | None = None,
    split_mode: str = SPLIT_MODE_SINGLE,
    split_infos: dict[int, SplitInfo] | None = None,
) -> ShoppingList:
    list_id = new_id()
    split_infos = split_infos or {}
    items = [_to_item(list_id, c, order, split_infos.get(order)) for order, c in enumerate(classified)]
    return ShoppingList(
        id=list_id,
        name=name,
        start_date=start,
        end_date=end,
        strategy=strategy,
        plan_start=plan_start,
        plan_end=plan_end,
        role=role,
        split_mode=split_mode,
        warnings=build_warnings(classified, catalog),
        items=items,
    )


def partition(
    classified: list[ClassifiedIngredient],
    strategy: Strategy,
    plan_start: date,
    plan_end: date,
    catalog: IngredientCatalog | None = None,
) -> list[ShoppingList]:
    """Build the shopping list(s) *strategy* produces for the classified items.

    *classified* must be classified against *plan_start*. An empty input
    still yields one empty list for the single-list modes; split_lists
    yields no list for an empty partition.
    """
    catalog = catalog or get_catalog()
    title = f"{_fmt(plan_start)} - {_fmt(plan_end)}"
    common = dict(strategy=strategy, plan_start=plan_start, plan_end=plan_end, catalog=catalog)

    if strategy.mode == INCLUDE_ALL:
        lists = [_make_list(f"Shopping list {title}", plan_start, plan_end, classified, **common)]

    elif strategy.mode == EXCLUDE_PERISHABLES:
        kept = [c for c in classified if not c.warning]
        lists = [_make_list(f"Shopping list {title} (no perishables)", plan_start, plan_end, kept, **common)]

    elif strategy.mode == CUSTOM:
        if strategy.categories:
            kept = [c for c in classified if c.category.lower() in strategy.categories]
        else:
            kept = list(classified)
        lists = [_make_list(f"Shopping list {title}", plan_start, plan_end, kept, **common)]

    elif strategy.mode == SPLIT_LISTS:
        cutoff_days = strategy.split_cutoff_days
        if cutoff_days is None:
            cutoff_days = config.SPLIT_CUTOFF_DAYS
        plan = plan_split(classified, plan_start, plan_end, cutoff_days)
        lists = []

        if plan.near:
            split_infos = {}
            if plan.later_start is not None:
                for order, c in enumerate(plan.near):
                    info = split_quantity(c, plan.near_end)
                    if info is not None:
                        split_infos[order] = info
            lists.append(_make_list(
                f"List 1: {_fmt(plan_start)} - {_fmt(plan.near_end)}",
                plan_start, plan.near_end, plan.near, role=ROLE_NEAR,
                split_mode=SPLIT_MODE_SPLIT, split_infos=split_infos, **common,
            ))

        if plan.later:
            # Later items are judged against the day they will be bought.
            later = [classify(c.ingredient, plan.later_start, catalog) for c in plan.later]
            lists.append(_make_list(
                f"List 2: {_fmt(plan.later_start)} - {_fmt(plan_end)}",
                plan.later_start, plan_end, later, role=ROLE_LATER,
                split_mode=SPLIT_MODE_SPLIT, **common,
            ))

    else:
        raise ValueError(f"Unknown strategy {strategy.mode!r}")

    logger.info(
        "Shopping lists partitioned",
        extra={
            "strategy": strategy.mode,
            "list_count": len(lists),
            "item_counts": [len(sl.items) for sl in lists],
        },
    )
    return lists
