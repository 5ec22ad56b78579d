import os
import sys


# Check if we're running in a test environment
def _is_testing():
    """Check if code is running under pytest."""
    return "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ


def _optional_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


# Persistent state (meal plan entries + shopping lists).  Written atomically.
DATA_FILE = os.environ.get(
    "GROCERY_SYNC_DATA_FILE",
    "data/test_state.json" if _is_testing() else "data/state.json",
)
RECIPES_FILE = os.environ.get("GROCERY_SYNC_RECIPES_FILE", "data/recipes.json")

# Optional JSON file overriding the built-in ingredient catalog.
# Format: {"categories": {...}, "ingredients": {...}} (see catalog.load_catalog)
CATALOG_FILE = os.environ.get("GROCERY_SYNC_CATALOG_FILE")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Split-list cutoff in days from list start.  None = rolling per-item window
# (each item goes to whichever list it stays fresh for).
SPLIT_CUTOFF_DAYS: int | None = _optional_int("SPLIT_CUTOFF_DAYS")

# How many days before its first later use an item should be bought.
BUY_LATER_LEAD_DAYS = 2

# Recommend split_lists when a range produces more freshness warnings than this.
SPLIT_RECOMMENDATION_THRESHOLD = 2

# rapidfuzz ratio (0–100) at or above which an unknown name is treated as a
# catalog ingredient.  Names shorter than FUZZY_MIN_LENGTH never fuzzy-match.
FUZZY_MATCH_THRESHOLD = 88
FUZZY_MIN_LENGTH = 5

DEFAULT_RANGE_DAYS = 7

SYNC_RATE_LIMIT = "30 per minute"
POPULATE_RATE_LIMIT = "10 per minute"
