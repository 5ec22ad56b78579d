import logging
from collections import defaultdict
from dataclasses import replace
from typing import Callable

from grocery_sync.models import ItemKey, ShoppingList, ShoppingListItem

logger = logging.getLogger(__name__)


def _larger(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def merge_items(
    current: list[ShoppingListItem],
    fresh: list[ShoppingListItem],
    keep_purchased: bool,
) -> list[ShoppingListItem]:
    """Merge a freshly derived item set into the persisted one.

    Items match on ItemKey (lowercased name + unit). A matched item keeps
    its persisted id, and its checked flag when *keep_purchased*; the
    quantity is the larger of the two. Persisted items sharing a key are
    matched in list order, one per fresh item. With *keep_purchased*, every
    checked item left unmatched is appended unchanged. Everything else
    unmatched in *current* is dropped.
    """
    existing: dict[ItemKey, list[ShoppingListItem]] = defaultdict(list)
    for item in current:
        existing[item.key].append(item)

    merged = []
    matched: set[str] = set()
    for item in fresh:
        candidates = existing.get(item.key)
        if not candidates:
            merged.append(replace(item, order=len(merged)))
            continue
        old = candidates.pop(0)
        matched.add(old.id)
        merged.append(replace(
            item,
            id=old.id,
            list_id=old.list_id,
            checked=old.checked if keep_purchased else False,
            quantity=_larger(item.quantity, old.quantity),
            order=len(merged),
        ))

    if keep_purchased:
        for old in current:
            if old.checked and old.id not in matched:
                merged.append(replace(old, order=len(merged)))

    return merged


class MergeReconciler:
    """Re-derive a list from the current plan and merge it into the store.

    *derive* returns the freshly partitioned counterpart of a persisted list
    (aggregation, classification and partitioning re-run for its strategy,
    range and role), or None when that partition is now empty. Callers serialise
    reconciliations per list.
    """

    def __init__(self, store, detector, derive: Callable[[ShoppingList], ShoppingList | None]):
        self.store = store
        self.detector = detector
        self.derive = derive

    def reconcile(self, shopping_list: ShoppingList, keep_purchased: bool,
                  fresh_list: ShoppingList | None = None) -> ShoppingList:
        if fresh_list is None:
            fresh_list = self.derive(shopping_list)
        fresh = [replace(item, list_id=shopping_list.id) for item in fresh_list.items] if fresh_list else []
        warnings = fresh_list.warnings if fresh_list else []
        merged = merge_items(shopping_list.items, fresh, keep_purchased)

        updated = self.store.replace_items(shopping_list.id, merged, warnings=warnings)
        self.detector.mark_synced(updated)

        logger.info(
            "Shopping list reconciled",
            extra={
                "list_id": shopping_list.id,
                "keep_purchased": keep_purchased,
                "item_count_before": len(shopping_list.items),
                "item_count_after": len(merged),
            },
        )
        return updated
