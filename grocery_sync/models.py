"""Persisted entity shapes: meal-plan entries, shopping lists and their items.

Everything here round-trips through plain dicts (``to_dict`` / ``from_dict``)
so the JSON store and the HTTP layer share one serialisation.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

# Freshness verdicts
FRESHNESS_OK = "ok"
FRESHNESS_FREEZE = "freeze"
FRESHNESS_BUY_LATER = "buy_later"

# List lifecycle
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_ARCHIVED = "archived"
LIST_STATUSES = (STATUS_ACTIVE, STATUS_COMPLETED, STATUS_ARCHIVED)

SPLIT_MODE_SINGLE = "single"
SPLIT_MODE_SPLIT = "split"

# Partition role of a list produced by split_lists
ROLE_NEAR = "near"
ROLE_LATER = "later"

# Strategy modes
INCLUDE_ALL = "include_all"
EXCLUDE_PERISHABLES = "exclude_perishables"
SPLIT_LISTS = "split_lists"
CUSTOM = "custom"
STRATEGY_MODES = (INCLUDE_ALL, EXCLUDE_PERISHABLES, SPLIT_LISTS, CUSTOM)

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"


def new_id() -> str:
    return str(uuid.uuid4())


def parse_date(value: Any) -> date:
    """Accept a date or an ISO 'YYYY-MM-DD' string; raise ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid date: {value!r}")
    return date.fromisoformat(value.strip())


def validate_range(start: date, end: date) -> None:
    if end < start:
        raise ValueError(f"End date {end.isoformat()} is before start date {start.isoformat()}")


@dataclass(frozen=True)
class ItemKey:
    """Merge identity of a list item: lowercased name plus unit."""
    name: str
    unit: str

    @classmethod
    def of(cls, name: str, unit: str | None) -> "ItemKey":
        return cls(name.lower().strip(), (unit or "").strip())


@dataclass
class MealPlanEntry:
    id: str
    date: date
    recipe_id: str
    # None = cook the recipe as written; otherwise scale to this many servings
    servings: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "recipe_id": self.recipe_id,
            "servings": self.servings,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MealPlanEntry":
        if not data.get("recipe_id"):
            raise ValueError("Meal plan entry is missing recipe_id")
        servings = data.get("servings")
        if servings is not None:
            servings = float(servings)
            if servings <= 0:
                raise ValueError("servings must be positive")
        return cls(
            id=data.get("id") or new_id(),
            date=parse_date(data.get("date")),
            recipe_id=data["recipe_id"],
            servings=servings,
        )


@dataclass(frozen=True)
class Strategy:
    mode: str = INCLUDE_ALL
    categories: frozenset[str] = frozenset()   # custom only; empty = everything
    split_cutoff_days: int | None = None       # split_lists only; None = rolling

    def __post_init__(self):
        if self.mode not in STRATEGY_MODES:
            raise ValueError(f"Unknown strategy {self.mode!r}; expected one of {', '.join(STRATEGY_MODES)}")
        if self.split_cutoff_days is not None and self.split_cutoff_days < 0:
            raise ValueError("split_cutoff_days must not be negative")
        object.__setattr__(
            self, "categories", frozenset(c.strip().lower() for c in self.categories if c and c.strip())
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "categories": sorted(self.categories),
            "split_cutoff_days": self.split_cutoff_days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Strategy":
        cutoff = data.get("split_cutoff_days")
        return cls(
            mode=data.get("mode", INCLUDE_ALL),
            categories=frozenset(data.get("categories") or []),
            split_cutoff_days=int(cutoff) if cutoff is not None else None,
        )


@dataclass(frozen=True)
class SplitInfo:
    buy_now_qty: float
    buy_later_qty: float
    buy_later_date: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "buy_now_qty": self.buy_now_qty,
            "buy_later_qty": self.buy_later_qty,
            "buy_later_date": self.buy_later_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SplitInfo":
        return cls(
            buy_now_qty=data["buy_now_qty"],
            buy_later_qty=data["buy_later_qty"],
            buy_later_date=parse_date(data["buy_later_date"]),
        )


@dataclass(frozen=True)
class FreshnessWarning:
    severity: str
    category: str
    item_count: int
    message: str
    recommendation: str
    affected_items: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "category": self.category,
            "item_count": self.item_count,
            "message": self.message,
            "recommendation": self.recommendation,
            "affected_items": list(self.affected_items),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FreshnessWarning":
        return cls(
            severity=data["severity"],
            category=data["category"],
            item_count=data["item_count"],
            message=data["message"],
            recommendation=data["recommendation"],
            affected_items=tuple(data.get("affected_items", [])),
        )


@dataclass
class ShoppingListItem:
    id: str
    list_id: str
    ingredient_name: str
    quantity: float | None  # None = buy it, no meaningful quantity
    unit: str
    category: str
    checked: bool = False
    used_in_recipes: list[str] = field(default_factory=list)
    used_on_dates: list[date] = field(default_factory=list)
    freshness_status: str = FRESHNESS_OK
    freshness_warning: bool = False
    split_info: SplitInfo | None = None
    order: int = 0

    @property
    def key(self) -> ItemKey:
        return ItemKey.of(self.ingredient_name, self.unit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "list_id": self.list_id,
            "ingredient_name": self.ingredient_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
            "checked": self.checked,
            "used_in_recipes": list(self.used_in_recipes),
            "used_on_dates": [d.isoformat() for d in self.used_on_dates],
            "freshness_status": self.freshness_status,
            "freshness_warning": self.freshness_warning,
            "split_info": self.split_info.to_dict() if self.split_info else None,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShoppingListItem":
        split_info = data.get("split_info")
        return cls(
            id=data["id"],
            list_id=data["list_id"],
            ingredient_name=data["ingredient_name"],
            quantity=data.get("quantity"),
            unit=data.get("unit", ""),
            category=data.get("category", "other"),
            checked=bool(data.get("checked", False)),
            used_in_recipes=list(data.get("used_in_recipes", [])),
            used_on_dates=[parse_date(d) for d in data.get("used_on_dates", [])],
            freshness_status=data.get("freshness_status", FRESHNESS_OK),
            freshness_warning=bool(data.get("freshness_warning", False)),
            split_info=SplitInfo.from_dict(split_info) if split_info else None,
            order=data.get("order", 0),
        )


@dataclass
class ShoppingList:
    id: str
    name: str
    start_date: date
    end_date: date              # inclusive
    strategy: Strategy
    # Meal-plan range the list was generated from; for split lists this is
    # wider than start_date..end_date.
    plan_start: date
    plan_end: date
    role: str | None = None     # None, ROLE_NEAR or ROLE_LATER
    status: str = STATUS_ACTIVE
    split_mode: str = SPLIT_MODE_SINGLE
    warnings: list[FreshnessWarning] = field(default_factory=list)
    items: list[ShoppingListItem] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))

    def covers(self, day: date) -> bool:
        return self.plan_start <= day <= self.plan_end

    @property
    def purchased_count(self) -> int:
        return sum(1 for item in self.items if item.checked)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "strategy": self.strategy.to_dict(),
            "plan_start": self.plan_start.isoformat(),
            "plan_end": self.plan_end.isoformat(),
            "role": self.role,
            "status": self.status,
            "split_mode": self.split_mode,
            "warnings": [w.to_dict() for w in self.warnings],
            "items": [i.to_dict() for i in self.items],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShoppingList":
        return cls(
            id=data["id"],
            name=data["name"],
            start_date=parse_date(data["start_date"]),
            end_date=parse_date(data["end_date"]),
            strategy=Strategy.from_dict(data.get("strategy", {})),
            plan_start=parse_date(data.get("plan_start", data["start_date"])),
            plan_end=parse_date(data.get("plan_end", data["end_date"])),
            role=data.get("role"),
            status=data.get("status", STATUS_ACTIVE),
            split_mode=data.get("split_mode", SPLIT_MODE_SINGLE),
            warnings=[FreshnessWarning.from_dict(w) for w in data.get("warnings", [])],
            items=[ShoppingListItem.from_dict(i) for i in data.get("items", [])],
            created_at=data.get("created_at", ""),
        )
