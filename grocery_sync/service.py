"""Orchestration of the shopping-list engine over a store.

SyncService is the single entry point the HTTP layer talks to. It wires the
aggregator, classifier, partitioner, change detector, reconciler and
populator together, and serialises mutations of any one list with a
per-list lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date

from grocery_sync.catalog import IngredientCatalog, get_catalog
from grocery_sync.freshness import ClassifiedIngredient, build_warnings, classify_all, recommend_strategy
from grocery_sync.models import (
    STATUS_ACTIVE,
    FreshnessWarning,
    MealPlanEntry,
    ShoppingList,
    ShoppingListItem,
    Strategy,
    new_id,
    validate_range,
)
from grocery_sync.planner import FILL, MealSlotPopulator, PopulateResult
from grocery_sync.reconcile import MergeReconciler
from grocery_sync.shopping_list import aggregate_ingredients
from grocery_sync.strategies import partition
from grocery_sync.sync import SignatureStore, SyncChangeDetector, SyncConflict, detect_conflicts

logger = logging.getLogger(__name__)


class SyncConflictError(Exception):
    """Raised when syncing would drop purchased items and no decision was given."""

    def __init__(self, list_id: str, conflicts: list[SyncConflict]):
        self.list_id = list_id
        self.conflicts = conflicts
        purchased = sum(c.purchased_count for c in conflicts if c.requires_decision)
        super().__init__(
            f"Shopping list {list_id} has {purchased} purchased items from removed recipes; "
            f"choose whether to keep them"
        )


@dataclass
class Preview:
    start: date
    end: date
    classified: list[ClassifiedIngredient]
    warnings: list[FreshnessWarning]
    recommended_strategy: str

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "item_count": len(self.classified),
            "warnings": [w.to_dict() for w in self.warnings],
            "recommended_strategy": self.recommended_strategy,
        }


@dataclass
class SyncStatus:
    list_id: str
    needs_sync: bool
    conflicts: list[SyncConflict] = field(default_factory=list)

    @property
    def requires_decision(self) -> bool:
        return any(c.requires_decision for c in self.conflicts)

    def to_dict(self) -> dict:
        return {
            "list_id": self.list_id,
            "needs_sync": self.needs_sync,
            "requires_decision": self.requires_decision,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class SyncService:
    def __init__(
        self,
        store,
        catalog: IngredientCatalog | None = None,
        signatures: SignatureStore | None = None,
    ):
        self.store = store
        self.catalog = catalog or get_catalog()
        # The store doubles as the signature store so flags survive restarts.
        self.detector = SyncChangeDetector(store.entries_in_range, signatures if signatures is not None else store)
        self.reconciler = MergeReconciler(store, self.detector, self.derive)
        self.populator = MealSlotPopulator(store, on_change=self.on_meal_plan_changed)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _list_lock(self, list_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(list_id)
            if lock is None:
                lock = self._locks[list_id] = threading.Lock()
            return lock

    # -- meal plan --------------------------------------------------------

    def entries(self, start: date, end: date) -> list[MealPlanEntry]:
        validate_range(start, end)
        return self.store.entries_in_range(start, end)

    def add_entry(self, day: date, recipe_id: str, servings: float | None = None) -> MealPlanEntry:
        self.store.get_recipe(recipe_id)
        if servings is not None and servings <= 0:
            raise ValueError("servings must be positive")
        entry = self.store.add_entry(MealPlanEntry(id=new_id(), date=day, recipe_id=recipe_id, servings=servings))
        logger.info("Meal planned", extra={"entry_id": entry.id, "date": day.isoformat(), "recipe_id": recipe_id})
        self.on_meal_plan_changed([day])
        return entry

    def delete_entry(self, entry_id: str) -> MealPlanEntry:
        entry = self.store.delete_entry(entry_id)
        logger.info("Meal removed", extra={"entry_id": entry_id, "date": entry.date.isoformat()})
        self.on_meal_plan_changed([entry.date])
        return entry

    def populate(self, recipe_ids: list[str], start: date, end: date, mode: str = FILL) -> PopulateResult:
        return self.populator.populate(recipe_ids, start, end, mode)

    def on_meal_plan_changed(self, changed_dates=None) -> list[str]:
        """Re-observe active lists touched by the changed dates."""
        lists = [sl for sl in self.store.list_lists() if sl.status == STATUS_ACTIVE]
        flagged = self.detector.on_meal_plan_changed(lists, changed_dates)
        if flagged:
            logger.info("Shopping lists need sync", extra={"list_ids": flagged})
        return flagged

    # -- generation -------------------------------------------------------

    def _classify(self, start: date, end: date) -> list[ClassifiedIngredient]:
        entries = self.store.entries_in_range(start, end)
        ingredients = aggregate_ingredients(entries, self.store.recipes(), start, end, self.catalog)
        return classify_all(ingredients, start, self.catalog)

    def preview(self, start: date, end: date) -> Preview:
        validate_range(start, end)
        classified = self._classify(start, end)
        warnings = build_warnings(classified, self.catalog)
        return Preview(start, end, classified, warnings, recommend_strategy(warnings))

    def create_lists(self, start: date, end: date, strategy: Strategy | None = None) -> list[ShoppingList]:
        validate_range(start, end)
        strategy = strategy or Strategy()
        lists = partition(self._classify(start, end), strategy, start, end, self.catalog)
        with self.store.transaction():
            self.store.add_lists(lists)
            for shopping_list in lists:
                self.detector.observe(shopping_list)
        logger.info(
            "Shopping lists created",
            extra={"list_ids": [sl.id for sl in lists], "strategy": strategy.mode},
        )
        return lists

    def derive(self, shopping_list: ShoppingList) -> ShoppingList | None:
        """Re-run the pipeline for a persisted list; None if its partition is now empty."""
        classified = self._classify(shopping_list.plan_start, shopping_list.plan_end)
        fresh = partition(
            classified, shopping_list.strategy, shopping_list.plan_start, shopping_list.plan_end, self.catalog
        )
        for candidate in fresh:
            if candidate.role == shopping_list.role:
                return candidate
        return None

    # -- lists ------------------------------------------------------------

    def get_list(self, list_id: str) -> ShoppingList:
        return self.store.get_list(list_id)

    def list_lists(self) -> list[ShoppingList]:
        return self.store.list_lists()

    def delete_list(self, list_id: str) -> None:
        with self._list_lock(list_id):
            self.store.delete_list(list_id)
            self.detector.forget(list_id)
        with self._locks_guard:
            self._locks.pop(list_id, None)

    def set_status(self, list_id: str, status: str) -> ShoppingList:
        with self._list_lock(list_id):
            return self.store.set_status(list_id, status)

    def update_item(self, list_id: str, item_id: str, **changes) -> ShoppingListItem:
        with self._list_lock(list_id):
            return self.store.update_item(list_id, item_id, **changes)

    # -- sync -------------------------------------------------------------

    def _conflicts(self, shopping_list: ShoppingList, fresh: ShoppingList | None) -> list[SyncConflict]:
        return detect_conflicts(
            shopping_list,
            fresh.items if fresh else [],
            self.store.recipes(),
            self.detector.synced_recipe_ids(shopping_list.id),
        )

    def sync_status(self, list_id: str) -> SyncStatus:
        shopping_list = self.store.get_list(list_id)
        needs_sync = self.detector.observe(shopping_list)
        conflicts = self._conflicts(shopping_list, self.derive(shopping_list)) if needs_sync else []
        return SyncStatus(list_id, needs_sync, conflicts)

    def sync_list(self, list_id: str, keep_purchased: bool | None = None) -> ShoppingList:
        """Reconcile a list with the current meal plan.

        With keep_purchased=None the call succeeds only when no purchased
        item would be affected by a removed recipe; otherwise it raises
        SyncConflictError and the caller must decide.
        """
        with self._list_lock(list_id):
            shopping_list = self.store.get_list(list_id)
            fresh = self.derive(shopping_list)
            conflicts = self._conflicts(shopping_list, fresh)

            if keep_purchased is None:
                if any(c.requires_decision for c in conflicts):
                    logger.info(
                        "Sync needs a decision",
                        extra={"list_id": list_id, "conflict_count": len(conflicts)},
                    )
                    raise SyncConflictError(list_id, conflicts)
                keep_purchased = True

            with self.store.transaction():
                return self.reconciler.reconcile(shopping_list, keep_purchased, fresh)
