"""Unit alias normalisation and conversion factors.

Every recognised unit belongs to one measurement class (mass, volume or
count) and carries a factor to that class's base unit (g, ml, pcs).
Units outside the table (clove, can, bunch, ...) are still normalised to a
canonical spelling but have no class: they only ever combine with the same
unit.
"""

from dataclasses import dataclass
from typing import Union

MASS = "mass"
VOLUME = "volume"
COUNT = "count"

BASE_UNITS: dict[str, str] = {MASS: "g", VOLUME: "ml", COUNT: "pcs"}

# canonical unit -> (class, factor to base unit)
_FACTORS: dict[str, tuple[str, float]] = {
    # mass (base: g)
    "mg": (MASS, 0.001),
    "g": (MASS, 1),
    "hg": (MASS, 100),
    "kg": (MASS, 1000),
    "oz": (MASS, 28.3495),
    "lb": (MASS, 453.592),
    # volume (base: ml); spoons are metric (tbsp = msk = 15 ml)
    "ml": (VOLUME, 1),
    "krm": (VOLUME, 1),
    "tsp": (VOLUME, 5),
    "tbsp": (VOLUME, 15),
    "cl": (VOLUME, 10),
    "dl": (VOLUME, 100),
    "l": (VOLUME, 1000),
    "fl oz": (VOLUME, 29.5735),
    "cup": (VOLUME, 236.588),
    "pint": (VOLUME, 473.176),
    "quart": (VOLUME, 946.353),
    "gallon": (VOLUME, 3785.41),
    # count (base: pcs)
    "pcs": (COUNT, 1),
    "pair": (COUNT, 2),
    "dozen": (COUNT, 12),
}

# Case-sensitive shorthands checked before the lowercase table
# ("t" = tsp vs "T" = tbsp).
_CASE_SENSITIVE_ALIASES: dict[str, str] = {
    "t": "tsp",
    "T": "tbsp",
    "Tbsp": "tbsp",
    "L": "l",
    "dL": "dl",
    "mL": "ml",
}

_UNIT_ALIASES: dict[str, str] = {
    # mass
    "milligram": "mg", "milligrams": "mg",
    "gram": "g", "grams": "g", "gr": "g", "gramme": "g", "grammes": "g",
    "hekto": "hg", "hectogram": "hg",
    "kilogram": "kg", "kilograms": "kg", "kilo": "kg", "kilos": "kg",
    "ounce": "oz", "ounces": "oz", "oz.": "oz",
    "pound": "lb", "pounds": "lb", "lbs": "lb",
    # volume
    "milliliter": "ml", "milliliters": "ml", "millilitre": "ml", "millilitres": "ml",
    "kryddmått": "krm",
    "teaspoon": "tsp", "teaspoons": "tsp", "tsk": "tsp", "teskedar": "tsp", "tesked": "tsp",
    "tablespoon": "tbsp", "tablespoons": "tbsp", "tbs": "tbsp", "msk": "tbsp",
    "matsked": "tbsp", "matskedar": "tbsp",
    "centiliter": "cl", "centilitre": "cl",
    "deciliter": "dl", "deciliters": "dl", "decilitre": "dl", "decilitres": "dl",
    "liter": "l", "liters": "l", "litre": "l", "litres": "l",
    "fluid ounce": "fl oz", "fluid ounces": "fl oz", "fl. oz.": "fl oz",
    "c": "cup", "c.": "cup", "cups": "cup",
    "pints": "pint", "pt": "pint",
    "quarts": "quart", "qt": "quart",
    "gallons": "gallon", "gal": "gallon",
    # count
    "pc": "pcs", "piece": "pcs", "pieces": "pcs", "st": "pcs", "st.": "pcs",
    "styck": "pcs", "whole": "pcs", "item": "pcs", "items": "pcs",
    "unit": "pcs", "units": "pcs", "each": "pcs",
    "pairs": "pair", "dozens": "dozen",
    # unclassified units (normalised spelling only)
    "cloves": "clove", "klyfta": "clove", "klyftor": "clove",
    "slices": "slice", "skiva": "slice", "skivor": "slice",
    "bunches": "bunch", "knippe": "bunch",
    "cans": "can", "burk": "can", "burkar": "can",
    "packages": "package", "pkg": "package", "förp": "package", "paket": "package",
    "pinches": "pinch", "nypa": "pinch",
    "dashes": "dash",
    "sprigs": "sprig", "kvist": "sprig", "kvistar": "sprig",
    "leaves": "leaf", "blad": "leaf",
}

# Units that convey no purchasable amount ("buy it, no quantity").
_TO_TASTE_UNITS: frozenset[str] = frozenset({
    "to taste", "as needed", "as required", "to serve", "efter smak", "au goût",
})


def normalize_unit(unit: str | None) -> str:
    """Return the canonical spelling of *unit*, or '' when there is none."""
    if not unit:
        return ""
    stripped = " ".join(unit.split())
    if stripped in _CASE_SENSITIVE_ALIASES:
        return _CASE_SENSITIVE_ALIASES[stripped]
    lowered = stripped.lower()
    if lowered in _FACTORS:
        return lowered
    if lowered in _UNIT_ALIASES:
        return _UNIT_ALIASES[lowered]
    # Plural forms not in the table
    if lowered.endswith("s") and lowered[:-1] in _FACTORS:
        return lowered[:-1]
    return lowered


def is_to_taste_unit(unit: str | None) -> bool:
    return bool(unit) and " ".join(unit.split()).lower() in _TO_TASTE_UNITS


def unit_class(unit: str) -> str | None:
    """Return 'mass', 'volume' or 'count' for a canonical unit, None if unclassified."""
    info = _FACTORS.get(unit)
    return info[0] if info else None


def partition_key(unit: str) -> str:
    """Key under which quantities in *unit* may be summed together.

    Classified units share their class key; every unclassified unit is its
    own partition so e.g. 'clove' and 'head' never merge.
    """
    cls = unit_class(unit)
    return cls if cls else f"unit:{unit}"


def base_unit(unit: str) -> str:
    """Base unit of *unit*'s class, or *unit* itself when unclassified."""
    cls = unit_class(unit)
    return BASE_UNITS[cls] if cls else unit


def are_compatible(from_unit: str, to_unit: str) -> bool:
    return partition_key(normalize_unit(from_unit)) == partition_key(normalize_unit(to_unit))


def convert(quantity: float, from_unit: str, to_unit: str) -> float | None:
    """Convert *quantity* between units of the same class.

    Returns None when the units are incompatible (different classes, or two
    different unclassified units).
    """
    src = normalize_unit(from_unit)
    dst = normalize_unit(to_unit)
    if src == dst:
        return quantity
    src_info = _FACTORS.get(src)
    dst_info = _FACTORS.get(dst)
    if src_info is None or dst_info is None or src_info[0] != dst_info[0]:
        return None
    return quantity * src_info[1] / dst_info[1]


@dataclass(frozen=True)
class Measured:
    """A summable amount: *value* expressed in canonical *unit*."""
    value: float
    unit: str


@dataclass(frozen=True)
class ToTaste:
    """An amount that is never summed ("salt, to taste")."""

    @property
    def unit(self) -> str:
        return ""


TO_TASTE = ToTaste()

Quantity = Union[Measured, ToTaste]
