"""Resolve raw recipe ingredient lines to canonical identities."""

import logging
import re
import unicodedata
from dataclasses import dataclass

from grocery_sync.catalog import UNKNOWN_CATEGORY, IngredientCatalog, get_catalog
from grocery_sync.recipes import IngredientLine
from grocery_sync.units import TO_TASTE, Measured, Quantity, is_to_taste_unit, normalize_unit

logger = logging.getLogger(__name__)

# Leading qualifiers that say nothing about the ingredient itself.
_LEADING_QUALIFIERS = (
    "approximately", "approx.", "approx", "about", "around", "roughly",
    "circa", "ca.", "ca", "cirka", "ungefär", "c:a",
)

_QUALIFIER_RE = re.compile(
    r"^(?:" + "|".join(re.escape(q) for q in _LEADING_QUALIFIERS) + r")(?:\s+|$)"
)

# Unit used when a line has a quantity but neither a unit nor a catalog default.
_COUNT_UNIT = "pcs"


@dataclass(frozen=True)
class ResolvedLine:
    canonical_name: str
    category: str
    quantity: Quantity
    in_catalog: bool
    default_unit: str = ""


def normalize_name(name: str) -> str:
    """Lowercase, trim, collapse whitespace and strip leading qualifiers.

    "About  2 Onions" is not expected here (quantity is parsed upstream), but
    "ca. red onion" -> "red onion".
    """
    s = unicodedata.normalize("NFKC", name or "").lower()
    s = " ".join(s.split())
    # Qualifiers can stack ("about ca. 2"); strip until stable.
    while True:
        stripped = _QUALIFIER_RE.sub("", s, count=1).strip()
        if stripped == s:
            break
        s = stripped
    return s


class IngredientResolver:
    def __init__(self, catalog: IngredientCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def resolve(self, line: IngredientLine, scale: float = 1.0) -> ResolvedLine:
        """Resolve *line*; a catalog miss falls back to the normalised name."""
        name = normalize_name(line.name)
        entry = self.catalog.lookup(name)

        if entry is None:
            logger.debug("Ingredient not in catalog", extra={"ingredient": name})
            canonical_name, category, default_unit = name, UNKNOWN_CATEGORY, ""
        else:
            canonical_name, category, default_unit = entry.canonical_name, entry.category, entry.default_unit

        if line.quantity is None or is_to_taste_unit(line.unit):
            quantity: Quantity = TO_TASTE
        else:
            unit = normalize_unit(line.unit) or default_unit or _COUNT_UNIT
            quantity = Measured(float(line.quantity) * scale, unit)

        return ResolvedLine(
            canonical_name=canonical_name,
            category=category,
            quantity=quantity,
            in_catalog=entry is not None,
            default_unit=default_unit,
        )
