"""Detect when a persisted shopping list has drifted from the meal plan.

A list's signature is a canonical JSON rendering of the (date, recipe) pairs
in its plan range. When the meal plan changes, the affected lists are
re-observed; a changed signature flags the list as needing a sync until it
is reconciled.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Protocol

from grocery_sync.models import MealPlanEntry, ShoppingList, ShoppingListItem
from grocery_sync.recipes import Recipe

logger = logging.getLogger(__name__)

CONFLICT_REMOVED_RECIPE = "removed_recipe"
CONFLICT_ADDED_RECIPE = "added_recipe"

ACTION_KEEP_PURCHASED = "keep_purchased"
ACTION_REMOVE_ITEMS = "remove_items"
ACTION_ADD_ITEMS = "add_items"


class SignatureStore(Protocol):
    def get_signature(self, list_id: str) -> str | None: ...

    def set_signature(self, list_id: str, signature: str) -> None: ...

    def needs_sync(self, list_id: str) -> bool: ...

    def set_needs_sync(self, list_id: str, flag: bool) -> None: ...

    def forget(self, list_id: str) -> None: ...


class InMemorySignatureStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._signatures: dict[str, str] = {}
        self._flags: dict[str, bool] = {}

    def get_signature(self, list_id: str) -> str | None:
        with self._lock:
            return self._signatures.get(list_id)

    def set_signature(self, list_id: str, signature: str) -> None:
        with self._lock:
            self._signatures[list_id] = signature

    def needs_sync(self, list_id: str) -> bool:
        with self._lock:
            return self._flags.get(list_id, False)

    def set_needs_sync(self, list_id: str, flag: bool) -> None:
        with self._lock:
            self._flags[list_id] = flag

    def forget(self, list_id: str) -> None:
        with self._lock:
            self._signatures.pop(list_id, None)
            self._flags.pop(list_id, None)


def compute_signature(entries: Iterable[MealPlanEntry], start: date, end: date) -> str:
    """Order-independent fingerprint of the entries dated start..end."""
    pairs = []
    for entry in entries:
        if not start <= entry.date <= end:
            continue
        pair = {"date": entry.date.isoformat(), "recipe_id": entry.recipe_id}
        # Scaled entries change quantities, so servings is part of the identity
        if entry.servings is not None:
            pair["servings"] = entry.servings
        pairs.append(pair)
    pairs.sort(key=lambda p: (p["date"], p["recipe_id"], p.get("servings") or 0))
    return json.dumps(pairs, sort_keys=True, separators=(",", ":"))


class SyncChangeDetector:
    """Tracks list signatures; never touches list contents.

    *entries_in_range* is the meal-plan source, called as
    ``entries_in_range(start, end)``.
    """

    def __init__(self, entries_in_range, signatures: SignatureStore | None = None):
        self._entries_in_range = entries_in_range
        self.signatures = signatures if signatures is not None else InMemorySignatureStore()

    def current_signature(self, shopping_list: ShoppingList) -> str:
        entries = self._entries_in_range(shopping_list.plan_start, shopping_list.plan_end)
        return compute_signature(entries, shopping_list.plan_start, shopping_list.plan_end)

    def observe(self, shopping_list: ShoppingList) -> bool:
        """Compare the list's recorded signature with the plan; return the needs-sync flag."""
        current = self.current_signature(shopping_list)
        prior = self.signatures.get_signature(shopping_list.id)

        if prior is None:
            self.signatures.set_signature(shopping_list.id, current)
            self.signatures.set_needs_sync(shopping_list.id, False)
            return False

        if prior == current:
            self.signatures.set_needs_sync(shopping_list.id, False)
            return False

        if not self.signatures.needs_sync(shopping_list.id):
            logger.info("Shopping list out of sync with meal plan", extra={"list_id": shopping_list.id})
        self.signatures.set_needs_sync(shopping_list.id, True)
        return True

    def on_meal_plan_changed(
        self, lists: Iterable[ShoppingList], changed_dates: Iterable[date] | None = None
    ) -> list[str]:
        """Re-observe lists whose plan range contains a changed date.

        With no dates every list is re-observed. Returns the ids of lists
        that now need a sync.
        """
        dates = set(changed_dates) if changed_dates is not None else None
        flagged = []
        for shopping_list in lists:
            if dates is not None and not any(shopping_list.covers(d) for d in dates):
                continue
            if self.observe(shopping_list):
                flagged.append(shopping_list.id)
        return flagged

    def mark_synced(self, shopping_list: ShoppingList) -> None:
        self.signatures.set_signature(shopping_list.id, self.current_signature(shopping_list))
        self.signatures.set_needs_sync(shopping_list.id, False)

    def synced_recipe_ids(self, list_id: str) -> set[str] | None:
        """Recipes in the plan when the list was last synced; None if never observed."""
        signature = self.signatures.get_signature(list_id)
        if signature is None:
            return None
        return {pair["recipe_id"] for pair in json.loads(signature)}

    def needs_sync(self, list_id: str) -> bool:
        return self.signatures.needs_sync(list_id)

    def forget(self, list_id: str) -> None:
        self.signatures.forget(list_id)


@dataclass(frozen=True)
class SyncConflict:
    type: str
    recipe_id: str
    recipe_name: str
    message: str
    recommended_action: str
    affected_items: tuple[str, ...] = ()
    purchased_count: int = 0

    @property
    def requires_decision(self) -> bool:
        return self.type == CONFLICT_REMOVED_RECIPE and self.purchased_count > 0

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "recipe_id": self.recipe_id,
            "recipe_name": self.recipe_name,
            "message": self.message,
            "recommended_action": self.recommended_action,
            "affected_items": list(self.affected_items),
            "purchased_count": self.purchased_count,
            "requires_decision": self.requires_decision,
        }


def detect_conflicts(
    shopping_list: ShoppingList,
    fresh_items: Iterable[ShoppingListItem],
    recipes: Mapping[str, Recipe],
    synced_recipe_ids: set[str] | None = None,
) -> list[SyncConflict]:
    """Diff the recipes behind the persisted items against the re-derived ones.

    A removed recipe with purchased items needs a decision (keep or drop
    them); removed recipes without purchases and added recipes are
    informational.

    *synced_recipe_ids* are the recipes planned at the last sync. Persisted
    items only count for recipes in that set, so purchases already kept
    from a removed recipe are not raised again.
    """
    before = {rid for item in shopping_list.items for rid in item.used_in_recipes}
    if synced_recipe_ids is not None:
        before &= synced_recipe_ids
    after = {rid for item in fresh_items for rid in item.used_in_recipes}

    def name_of(recipe_id: str) -> str:
        recipe = recipes.get(recipe_id)
        return recipe.name if recipe else recipe_id

    conflicts = []
    for recipe_id in sorted(before - after):
        affected = [i for i in shopping_list.items if recipe_id in i.used_in_recipes]
        purchased = [i for i in affected if i.checked]
        name = name_of(recipe_id)
        if purchased:
            message = (
                f"{name} was removed from the meal plan, but {len(purchased)} "
                f"of its items are already purchased"
            )
            action = ACTION_KEEP_PURCHASED
        else:
            message = f"{name} was removed from the meal plan; {len(affected)} items will be updated"
            action = ACTION_REMOVE_ITEMS
        conflicts.append(SyncConflict(
            type=CONFLICT_REMOVED_RECIPE,
            recipe_id=recipe_id,
            recipe_name=name,
            message=message,
            recommended_action=action,
            affected_items=tuple(i.ingredient_name for i in affected),
            purchased_count=len(purchased),
        ))

    for recipe_id in sorted(after - before):
        name = name_of(recipe_id)
        conflicts.append(SyncConflict(
            type=CONFLICT_ADDED_RECIPE,
            recipe_id=recipe_id,
            recipe_name=name,
            message=f"{name} was added to the meal plan; its ingredients will be added",
            recommended_action=ACTION_ADD_ITEMS,
        ))

    return conflicts
