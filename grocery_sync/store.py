"""Persistence for recipes, meal-plan entries, shopping lists and sync signatures.

Every mutation runs inside ``transaction()``: the state is snapshotted
first and restored if anything in the block (including the final write)
fails, so a partial update is never visible.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

from grocery_sync.models import (
    LIST_STATUSES,
    FreshnessWarning,
    MealPlanEntry,
    ShoppingList,
    ShoppingListItem,
    validate_range,
)
from grocery_sync.recipes import (
    IngredientLine,
    Recipe,
    RecipeLoadError,
    RecipeSaveError,
    load_recipes,
    save_recipes,
)

logger = logging.getLogger(__name__)

_UNSET = object()


class StoreError(Exception):
    """Raised when the store cannot persist or load its state."""
    pass


class ListNotFoundError(Exception):
    """Raised when a shopping list id does not exist."""
    pass


class ItemNotFoundError(Exception):
    """Raised when an item id does not exist in its shopping list."""
    pass


class EntryNotFoundError(Exception):
    """Raised when a meal-plan entry id does not exist."""
    pass


class RecipeNotFoundError(Exception):
    """Raised when a recipe id does not exist."""
    pass


class MemoryStore:
    def __init__(self, recipes: list[Recipe] | None = None):
        self._lock = threading.RLock()
        self._recipes: dict[str, Recipe] = {r.id: r for r in recipes or []}
        self._entries: dict[str, MealPlanEntry] = {}
        self._lists: dict[str, ShoppingList] = {}
        self._signatures: dict[str, str] = {}
        self._needs_sync: dict[str, bool] = {}
        self._in_transaction = False

    # -- transactions -----------------------------------------------------

    def _snapshot(self) -> dict[str, Any]:
        return copy.deepcopy({
            "recipes": self._recipes,
            "entries": self._entries,
            "lists": self._lists,
            "signatures": self._signatures,
            "needs_sync": self._needs_sync,
        })

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._recipes = snapshot["recipes"]
        self._entries = snapshot["entries"]
        self._lists = snapshot["lists"]
        self._signatures = snapshot["signatures"]
        self._needs_sync = snapshot["needs_sync"]

    def _persist(self) -> None:
        """Write committed state; the in-memory store has nothing to write."""

    @contextmanager
    def transaction(self):
        """All-or-nothing block. Nested transactions join the outer one."""
        with self._lock:
            if self._in_transaction:
                yield
                return
            snapshot = self._snapshot()
            self._in_transaction = True
            try:
                yield
                self._persist()
            except Exception:
                self._restore(snapshot)
                logger.warning("Store transaction rolled back")
                raise
            finally:
                self._in_transaction = False

    # -- recipes ----------------------------------------------------------

    def add_recipe(self, recipe: Recipe) -> Recipe:
        with self.transaction():
            self._recipes[recipe.id] = recipe
        return recipe

    def get_recipe(self, recipe_id: str) -> Recipe:
        with self._lock:
            recipe = self._recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe not found: {recipe_id}")
        return recipe

    def recipes(self) -> dict[str, Recipe]:
        with self._lock:
            return dict(self._recipes)

    def ingredient_lines(self, recipe_id: str) -> list[IngredientLine]:
        return list(self.get_recipe(recipe_id).ingredients)

    # -- meal plan --------------------------------------------------------

    def add_entry(self, entry: MealPlanEntry) -> MealPlanEntry:
        with self.transaction():
            self._entries[entry.id] = entry
        return entry

    def get_entry(self, entry_id: str) -> MealPlanEntry:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Meal plan entry not found: {entry_id}")
        return entry

    def delete_entry(self, entry_id: str) -> MealPlanEntry:
        with self.transaction():
            entry = self._entries.pop(entry_id, None)
            if entry is None:
                raise EntryNotFoundError(f"Meal plan entry not found: {entry_id}")
        return entry

    def entries_in_range(self, start: date, end: date) -> list[MealPlanEntry]:
        with self._lock:
            entries = [e for e in self._entries.values() if start <= e.date <= end]
        return sorted(entries, key=lambda e: (e.date, e.recipe_id, e.id))

    def replace_entries_in_range(self, start: date, end: date, entries: list[MealPlanEntry]) -> None:
        """Swap every entry dated start..end for *entries* in one commit."""
        validate_range(start, end)
        outside = [e for e in entries if not start <= e.date <= end]
        if outside:
            raise ValueError(f"Entry dated {outside[0].date.isoformat()} is outside the replaced range")
        with self.transaction():
            for entry_id in [eid for eid, e in self._entries.items() if start <= e.date <= end]:
                del self._entries[entry_id]
            for entry in entries:
                self._entries[entry.id] = entry

    # -- shopping lists ---------------------------------------------------

    def add_lists(self, lists: list[ShoppingList]) -> list[ShoppingList]:
        with self.transaction():
            for shopping_list in lists:
                self._lists[shopping_list.id] = copy.deepcopy(shopping_list)
        return lists

    def _get(self, list_id: str) -> ShoppingList:
        shopping_list = self._lists.get(list_id)
        if shopping_list is None:
            raise ListNotFoundError(f"Shopping list not found: {list_id}")
        return shopping_list

    def get_list(self, list_id: str) -> ShoppingList:
        with self._lock:
            return copy.deepcopy(self._get(list_id))

    def list_lists(self) -> list[ShoppingList]:
        with self._lock:
            lists = copy.deepcopy(list(self._lists.values()))
        return sorted(lists, key=lambda sl: (sl.start_date, sl.created_at, sl.name))

    def delete_list(self, list_id: str) -> None:
        with self.transaction():
            self._get(list_id)
            del self._lists[list_id]
            self._signatures.pop(list_id, None)
            self._needs_sync.pop(list_id, None)

    def set_status(self, list_id: str, status: str) -> ShoppingList:
        if status not in LIST_STATUSES:
            raise ValueError(f"Invalid status {status!r}; expected one of {', '.join(LIST_STATUSES)}")
        with self.transaction():
            shopping_list = self._get(list_id)
            shopping_list.status = status
            return copy.deepcopy(shopping_list)

    def replace_items(
        self,
        list_id: str,
        items: list[ShoppingListItem],
        warnings: list[FreshnessWarning] | None = None,
    ) -> ShoppingList:
        """Swap a list's whole item set (and optionally its warnings)."""
        with self.transaction():
            shopping_list = self._get(list_id)
            shopping_list.items = [replace(item, list_id=list_id) for item in items]
            if warnings is not None:
                shopping_list.warnings = list(warnings)
            return copy.deepcopy(shopping_list)

    def update_item(
        self,
        list_id: str,
        item_id: str,
        checked: bool | None = None,
        quantity: Any = _UNSET,
        unit: str | None = None,
    ) -> ShoppingListItem:
        """Update the user-editable fields of one item. quantity=None clears it."""
        if quantity is not _UNSET and quantity is not None:
            if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity < 0:
                raise ValueError(f"Invalid quantity: {quantity!r}")

        with self.transaction():
            shopping_list = self._get(list_id)
            for index, item in enumerate(shopping_list.items):
                if item.id != item_id:
                    continue
                changes: dict[str, Any] = {}
                if checked is not None:
                    changes["checked"] = bool(checked)
                if quantity is not _UNSET:
                    changes["quantity"] = float(quantity) if quantity is not None else None
                if unit is not None:
                    changes["unit"] = unit.strip()
                updated = replace(item, **changes)
                shopping_list.items[index] = updated
                return copy.deepcopy(updated)
            raise ItemNotFoundError(f"Item {item_id} not found in shopping list {list_id}")

    # -- sync signatures --------------------------------------------------

    def get_signature(self, list_id: str) -> str | None:
        with self._lock:
            return self._signatures.get(list_id)

    def set_signature(self, list_id: str, signature: str) -> None:
        with self.transaction():
            self._signatures[list_id] = signature

    def needs_sync(self, list_id: str) -> bool:
        with self._lock:
            return self._needs_sync.get(list_id, False)

    def set_needs_sync(self, list_id: str, flag: bool) -> None:
        with self.transaction():
            self._needs_sync[list_id] = flag

    def forget(self, list_id: str) -> None:
        with self.transaction():
            self._signatures.pop(list_id, None)
            self._needs_sync.pop(list_id, None)


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a JSON file after every committed transaction.

    Recipes are read from their own file (the format ``load_recipes``
    accepts) and written back only when a recipe is added.
    """

    def __init__(self, file_path: Path | str, recipes_file: Path | str | None = None):
        self.file_path = Path(file_path)
        self.recipes_file = Path(recipes_file) if recipes_file else None

        recipes = []
        if self.recipes_file and self.recipes_file.exists():
            try:
                recipes = load_recipes(self.recipes_file)
            except RecipeLoadError as e:
                raise StoreError(str(e)) from e

        super().__init__(recipes)
        self._recipes_dirty = False
        self._load()

    def _load(self) -> None:
        if not self.file_path.exists():
            return
        try:
            with open(self.file_path) as f:
                data = json.load(f)
            self._entries = {e["id"]: MealPlanEntry.from_dict(e) for e in data.get("entries", [])}
            self._lists = {sl["id"]: ShoppingList.from_dict(sl) for sl in data.get("shopping_lists", [])}
            self._signatures = dict(data.get("signatures", {}))
            self._needs_sync = dict(data.get("needs_sync", {}))
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise StoreError(f"Failed to load state from {self.file_path}: {e}") from e
        logger.info(
            "State loaded",
            extra={"path": str(self.file_path), "entry_count": len(self._entries), "list_count": len(self._lists)},
        )

    def add_recipe(self, recipe: Recipe) -> Recipe:
        self._recipes_dirty = True
        try:
            return super().add_recipe(recipe)
        finally:
            self._recipes_dirty = False

    def _persist(self) -> None:
        data = {
            "entries": [e.to_dict() for e in self._entries.values()],
            "shopping_lists": [sl.to_dict() for sl in self._lists.values()],
            "signatures": self._signatures,
            "needs_sync": self._needs_sync,
        }
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            # Same directory so the rename stays on one filesystem
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=".state_tmp_",
                suffix=".json"
            )
            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(data, f, indent=2)
                os.replace(temp_path, self.file_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except (IOError, OSError) as e:
            raise StoreError(f"Failed to save state to {self.file_path}: {e}") from e

        if self._recipes_dirty and self.recipes_file:
            try:
                save_recipes(self.recipes_file, list(self._recipes.values()))
            except RecipeSaveError as e:
                raise StoreError(str(e)) from e
