import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable

from grocery_sync.models import MealPlanEntry, new_id, validate_range

logger = logging.getLogger(__name__)

FILL = "fill"
REPLACE = "replace"
POPULATE_MODES = (FILL, REPLACE)


def days_in_range(start: date, end: date) -> list[date]:
    """Every calendar day from start to end, inclusive.

    Example:
        days_in_range(date(2024, 3, 1), date(2024, 3, 3))
        -> [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
    """
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


@dataclass
class PopulateResult:
    mode: str
    created: list[MealPlanEntry] = field(default_factory=list)
    removed: list[MealPlanEntry] = field(default_factory=list)
    discarded_recipe_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "created": [e.to_dict() for e in self.created],
            "removed_count": len(self.removed),
            "discarded_recipe_ids": list(self.discarded_recipe_ids),
        }


def plan_slots(
    existing: list[MealPlanEntry],
    recipe_ids: list[str],
    start: date,
    end: date,
    mode: str,
) -> tuple[list[MealPlanEntry], PopulateResult]:
    """Compute the entry set for start..end after populating it.

    replace: the range is cleared and recipes go to consecutive days from
    start. fill: only days without any entry receive recipes, earliest
    first. Either way recipes beyond the available days are discarded.

    Returns (entries the range should hold afterwards, result).
    """
    if mode not in POPULATE_MODES:
        raise ValueError(f"Unknown populate mode {mode!r}; expected one of {', '.join(POPULATE_MODES)}")
    validate_range(start, end)

    in_range = [e for e in existing if start <= e.date <= end]
    days = days_in_range(start, end)

    if mode == REPLACE:
        kept = []
        removed = in_range
        slots = days
    else:
        occupied = {e.date for e in in_range}
        kept = in_range
        removed = []
        slots = [d for d in days if d not in occupied]

    created = [
        MealPlanEntry(id=new_id(), date=day, recipe_id=recipe_id)
        for day, recipe_id in zip(slots, recipe_ids)
    ]
    result = PopulateResult(
        mode=mode,
        created=created,
        removed=removed,
        discarded_recipe_ids=list(recipe_ids[len(slots):]),
    )
    return kept + created, result


class MealSlotPopulator:
    """Write populated slots through the store and report changed dates.

    *on_change* receives the populated range's dates after a successful
    commit (typically the sync detector's notification hook).
    """

    def __init__(self, store, on_change: Callable[[Iterable[date]], object] | None = None):
        self.store = store
        self.on_change = on_change

    def populate(self, recipe_ids: list[str], start: date, end: date, mode: str = FILL) -> PopulateResult:
        for recipe_id in recipe_ids:
            self.store.get_recipe(recipe_id)

        logger.info(
            "Populating meal slots",
            extra={"mode": mode, "start": start.isoformat(), "end": end.isoformat(), "recipe_count": len(recipe_ids)},
        )
        existing = self.store.entries_in_range(start, end)
        entries, result = plan_slots(existing, list(recipe_ids), start, end, mode)
        self.store.replace_entries_in_range(start, end, entries)

        if result.discarded_recipe_ids:
            logger.warning(
                "More recipes than free days; surplus discarded",
                extra={"mode": mode, "discarded": result.discarded_recipe_ids},
            )
        logger.info(
            "Meal slots populated",
            extra={"created": len(result.created), "removed": len(result.removed)},
        )

        if self.on_change is not None:
            self.on_change(days_in_range(start, end))
        return result
