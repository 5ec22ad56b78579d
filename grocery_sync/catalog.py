"""
Ingredient catalog: category shelf-life data plus canonical ingredient names.

Shelf lives follow Swedish Food Agency (Livsmedelsverket) fridge guidance at
4 °C.  Ingredients inherit shelf life and freezability from their category
unless the catalog entry overrides them.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rapidfuzz import fuzz, process

from grocery_sync import config

logger = logging.getLogger(__name__)

# Category assigned to ingredients the catalog does not know.  Deliberately
# absent from CATEGORY_DATABASE: no shelf-life signal exists for it.
UNKNOWN_CATEGORY = "other"


class CatalogLoadError(Exception):
    """Raised when a catalog file cannot be read or is malformed."""
    pass


@dataclass(frozen=True)
class CategoryInfo:
    key: str
    label: str
    sort_order: int
    shelf_life_days: int
    freezable: bool


@dataclass(frozen=True)
class CanonicalIngredient:
    canonical_name: str
    category: str
    default_unit: str
    shelf_life_days: int
    freezable: bool


def _category(key: str, label: str, sort_order: int, shelf_life_days: int, freezable: bool) -> CategoryInfo:
    return CategoryInfo(key, label, sort_order, shelf_life_days, freezable)


CATEGORY_DATABASE: dict[str, CategoryInfo] = {
    c.key: c
    for c in [
        # Fruit & vegetables
        _category("fruit", "Fruit", 1, 7, True),
        _category("vegetables", "Vegetables", 2, 7, True),
        _category("salad_leafy", "Salad & leafy greens", 3, 5, False),
        _category("fresh_herbs", "Fresh herbs", 4, 5, True),
        # Dairy & eggs
        _category("dairy_milk", "Milk & cream", 10, 7, False),
        _category("dairy_yogurt", "Yogurt", 11, 14, False),
        _category("dairy_cheese", "Cheese", 12, 21, True),
        _category("dairy_butter", "Butter & fats", 13, 30, True),
        _category("eggs", "Eggs", 14, 28, False),
        # Meat
        _category("meat", "Fresh meat", 20, 4, True),
        _category("meat_ground", "Ground meat", 21, 2, True),
        _category("poultry", "Poultry", 22, 2, True),
        _category("meat_deli", "Deli meats", 23, 7, True),
        # Fish
        _category("fish", "Fresh fish", 30, 2, True),
        _category("shellfish", "Shellfish", 31, 2, True),
        # Bread & baking
        _category("bread", "Bread", 40, 7, True),
        _category("baking_flour", "Flour", 41, 365, False),
        _category("baking_sugar", "Sugar", 42, 730, False),
        _category("baking_supplies", "Baking supplies", 43, 365, False),
        # Dry goods
        _category("pasta_rice", "Pasta & rice", 50, 730, False),
        _category("canned", "Canned goods", 51, 730, False),
        _category("legumes", "Legumes", 52, 730, False),
        _category("nuts_seeds", "Nuts & seeds", 53, 180, True),
        _category("dried_spices", "Dried spices", 54, 365, False),
        # Spices & sauces
        _category("spices", "Spices", 60, 365, False),
        _category("sauces", "Sauces & dressings", 61, 90, False),
        _category("oil_vinegar", "Oil & vinegar", 62, 365, False),
        # Frozen (1 day once thawed)
        _category("frozen_meat", "Frozen meat", 70, 1, True),
        _category("frozen_fish", "Frozen fish", 71, 1, True),
        _category("frozen_vegetables", "Frozen vegetables", 72, 1, True),
        _category("frozen_other", "Frozen other", 73, 1, True),
    ]
}

# canonical name -> (category, default unit)
_DEFAULT_INGREDIENTS: dict[str, tuple[str, str]] = {
    # fruit
    "apple": ("fruit", "pcs"), "banana": ("fruit", "pcs"), "lemon": ("fruit", "pcs"),
    "lime": ("fruit", "pcs"), "orange": ("fruit", "pcs"), "pear": ("fruit", "pcs"),
    "mango": ("fruit", "pcs"), "avocado": ("fruit", "pcs"), "strawberry": ("fruit", "g"),
    "blueberry": ("fruit", "g"), "raspberry": ("fruit", "g"), "grape": ("fruit", "g"),
    "pineapple": ("fruit", "pcs"),
    # vegetables
    "onion": ("vegetables", "pcs"), "red onion": ("vegetables", "pcs"),
    "garlic": ("vegetables", "clove"), "carrot": ("vegetables", "pcs"),
    "potato": ("vegetables", "g"), "sweet potato": ("vegetables", "g"),
    "tomato": ("vegetables", "pcs"), "cherry tomato": ("vegetables", "g"),
    "cucumber": ("vegetables", "pcs"), "bell pepper": ("vegetables", "pcs"),
    "broccoli": ("vegetables", "g"), "cauliflower": ("vegetables", "g"),
    "zucchini": ("vegetables", "pcs"), "eggplant": ("vegetables", "pcs"),
    "mushroom": ("vegetables", "g"), "leek": ("vegetables", "pcs"),
    "celery": ("vegetables", "pcs"), "cabbage": ("vegetables", "g"),
    "ginger": ("vegetables", "g"), "corn": ("vegetables", "g"),
    "green beans": ("vegetables", "g"), "asparagus": ("vegetables", "g"),
    "beetroot": ("vegetables", "g"), "parsnip": ("vegetables", "g"),
    "pumpkin": ("vegetables", "g"), "chili": ("vegetables", "pcs"),
    # leafy
    "lettuce": ("salad_leafy", "pcs"), "spinach": ("salad_leafy", "g"),
    "arugula": ("salad_leafy", "g"), "kale": ("salad_leafy", "g"),
    "mixed salad": ("salad_leafy", "g"),
    # herbs
    "parsley": ("fresh_herbs", "bunch"), "basil": ("fresh_herbs", "bunch"),
    "cilantro": ("fresh_herbs", "bunch"), "dill": ("fresh_herbs", "bunch"),
    "chives": ("fresh_herbs", "bunch"), "mint": ("fresh_herbs", "bunch"),
    "thyme": ("fresh_herbs", "bunch"), "rosemary": ("fresh_herbs", "bunch"),
    # dairy
    "milk": ("dairy_milk", "ml"), "cream": ("dairy_milk", "ml"),
    "heavy cream": ("dairy_milk", "ml"), "sour cream": ("dairy_milk", "ml"),
    "creme fraiche": ("dairy_milk", "ml"), "buttermilk": ("dairy_milk", "ml"),
    "yogurt": ("dairy_yogurt", "ml"), "greek yogurt": ("dairy_yogurt", "ml"),
    "cheese": ("dairy_cheese", "g"), "parmesan": ("dairy_cheese", "g"),
    "mozzarella": ("dairy_cheese", "g"), "feta": ("dairy_cheese", "g"),
    "cheddar": ("dairy_cheese", "g"), "cream cheese": ("dairy_cheese", "g"),
    "ricotta": ("dairy_cheese", "g"), "halloumi": ("dairy_cheese", "g"),
    "butter": ("dairy_butter", "g"), "margarine": ("dairy_butter", "g"),
    "egg": ("eggs", "pcs"),
    # meat
    "beef": ("meat", "g"), "steak": ("meat", "g"), "pork": ("meat", "g"),
    "pork chop": ("meat", "g"), "lamb": ("meat", "g"), "veal": ("meat", "g"),
    "ground beef": ("meat_ground", "g"), "ground pork": ("meat_ground", "g"),
    "ground meat": ("meat_ground", "g"), "ground turkey": ("meat_ground", "g"),
    "chicken": ("poultry", "g"), "chicken breast": ("poultry", "g"),
    "chicken thigh": ("poultry", "g"), "turkey": ("poultry", "g"), "duck": ("poultry", "g"),
    "bacon": ("meat_deli", "g"), "ham": ("meat_deli", "g"), "sausage": ("meat_deli", "g"),
    "chorizo": ("meat_deli", "g"), "salami": ("meat_deli", "g"),
    # fish
    "salmon": ("fish", "g"), "cod": ("fish", "g"), "tuna": ("fish", "g"),
    "trout": ("fish", "g"), "haddock": ("fish", "g"), "pollock": ("fish", "g"),
    "fish": ("fish", "g"),
    "shrimp": ("shellfish", "g"), "prawn": ("shellfish", "g"), "mussel": ("shellfish", "g"),
    "crab": ("shellfish", "g"), "lobster": ("shellfish", "g"), "scallop": ("shellfish", "g"),
    # bread & baking
    "bread": ("bread", "pcs"), "baguette": ("bread", "pcs"), "tortilla": ("bread", "pcs"),
    "pita": ("bread", "pcs"), "burger bun": ("bread", "pcs"),
    "flour": ("baking_flour", "g"), "wheat flour": ("baking_flour", "g"),
    "cornstarch": ("baking_flour", "g"),
    "sugar": ("baking_sugar", "g"), "brown sugar": ("baking_sugar", "g"),
    "powdered sugar": ("baking_sugar", "g"),
    "baking powder": ("baking_supplies", "tsp"), "baking soda": ("baking_supplies", "tsp"),
    "yeast": ("baking_supplies", "g"), "vanilla sugar": ("baking_supplies", "tsp"),
    # dry goods
    "pasta": ("pasta_rice", "g"), "spaghetti": ("pasta_rice", "g"), "penne": ("pasta_rice", "g"),
    "noodles": ("pasta_rice", "g"), "rice": ("pasta_rice", "ml"),
    "couscous": ("pasta_rice", "ml"), "quinoa": ("pasta_rice", "ml"),
    "bulgur": ("pasta_rice", "ml"), "oats": ("pasta_rice", "ml"),
    "crushed tomatoes": ("canned", "g"), "tomato paste": ("canned", "tbsp"),
    "coconut milk": ("canned", "ml"), "corn kernels": ("canned", "g"),
    "chickpeas": ("legumes", "g"), "lentils": ("legumes", "ml"),
    "kidney beans": ("legumes", "g"), "black beans": ("legumes", "g"),
    "white beans": ("legumes", "g"),
    "almonds": ("nuts_seeds", "g"), "walnuts": ("nuts_seeds", "g"),
    "cashews": ("nuts_seeds", "g"), "peanuts": ("nuts_seeds", "g"),
    "pine nuts": ("nuts_seeds", "g"), "sesame seeds": ("nuts_seeds", "tbsp"),
    "cinnamon": ("dried_spices", "tsp"), "paprika powder": ("dried_spices", "tsp"),
    "cumin": ("dried_spices", "tsp"), "curry powder": ("dried_spices", "tsp"),
    "cardamom": ("dried_spices", "tsp"), "oregano": ("dried_spices", "tsp"),
    "chili flakes": ("dried_spices", "tsp"), "turmeric": ("dried_spices", "tsp"),
    # spices & sauces
    "salt": ("spices", "tsp"), "black pepper": ("spices", "tsp"), "pepper": ("spices", "tsp"),
    "bay leaf": ("spices", "leaf"), "nutmeg": ("spices", "tsp"),
    "stock cube": ("spices", "pcs"), "broth": ("sauces", "ml"), "stock": ("sauces", "ml"),
    "soy sauce": ("sauces", "tbsp"), "fish sauce": ("sauces", "tbsp"),
    "ketchup": ("sauces", "tbsp"), "mustard": ("sauces", "tbsp"),
    "mayonnaise": ("sauces", "tbsp"), "sriracha": ("sauces", "tbsp"),
    "worcestershire sauce": ("sauces", "tbsp"), "pesto": ("sauces", "tbsp"),
    "honey": ("sauces", "tbsp"),
    "olive oil": ("oil_vinegar", "tbsp"), "oil": ("oil_vinegar", "tbsp"),
    "rapeseed oil": ("oil_vinegar", "tbsp"), "sesame oil": ("oil_vinegar", "tbsp"),
    "vinegar": ("oil_vinegar", "tbsp"), "balsamic vinegar": ("oil_vinegar", "tbsp"),
    # frozen
    "frozen peas": ("frozen_vegetables", "g"), "frozen spinach": ("frozen_vegetables", "g"),
    "frozen vegetables": ("frozen_vegetables", "g"), "frozen shrimp": ("frozen_fish", "g"),
    "frozen fish": ("frozen_fish", "g"), "frozen berries": ("frozen_other", "g"),
}

# alias -> canonical name
_DEFAULT_ALIASES: dict[str, str] = {
    "minced beef": "ground beef",
    "minced meat": "ground meat",
    "mince": "ground meat",
    "scallion": "onion",
    "coriander leaves": "cilantro",
    "courgette": "zucchini",
    "aubergine": "eggplant",
    "rocket": "arugula",
    "prawns": "prawn",
    "shrimps": "shrimp",
    "eggs": "egg",
    "double cream": "heavy cream",
    "whipping cream": "heavy cream",
    "icing sugar": "powdered sugar",
    "all-purpose flour": "wheat flour",
    "bouillon cube": "stock cube",
    "capsicum": "bell pepper",
}


def _singular_forms(name: str) -> list[str]:
    """Simple English singulars: tomatoes -> tomato, onions -> onion, berries -> berry."""
    forms = []
    if name.endswith("ies") and len(name) > 4:
        forms.append(name[:-3] + "y")
    if name.endswith("oes") and len(name) > 4:
        forms.append(name[:-2])
    if name.endswith("s") and not name.endswith("ss") and len(name) > 3:
        forms.append(name[:-1])
    return forms


class IngredientCatalog:
    """Read-only lookup of canonical ingredients by name.

    Lookup order: exact (including alias and simple singular forms), longest
    whole-word substring, then a fuzzy fallback for near-miss spellings.
    """

    def __init__(
        self,
        ingredients: dict[str, CanonicalIngredient],
        categories: dict[str, CategoryInfo] | None = None,
        aliases: dict[str, str] | None = None,
        fuzzy_threshold: float | None = None,
        fuzzy_min_length: int | None = None,
    ):
        self._ingredients = dict(ingredients)
        self._categories = dict(CATEGORY_DATABASE if categories is None else categories)
        self._aliases = {k.lower(): v for k, v in (aliases or {}).items() if v in self._ingredients}
        self._fuzzy_threshold = config.FUZZY_MATCH_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold
        self._fuzzy_min_length = config.FUZZY_MIN_LENGTH if fuzzy_min_length is None else fuzzy_min_length
        # Longest names first so the first substring hit is the most specific.
        names = sorted(set(self._ingredients) | set(self._aliases), key=lambda n: (-len(n), n))
        self._patterns = [(n, re.compile(r"\b" + re.escape(n) + r"\b")) for n in names]
        self._choices = sorted(self._ingredients)

    def _canonical(self, name: str) -> CanonicalIngredient | None:
        if name in self._ingredients:
            return self._ingredients[name]
        target = self._aliases.get(name)
        return self._ingredients[target] if target else None

    def get(self, canonical_name: str) -> CanonicalIngredient | None:
        """Exact lookup by canonical name (no alias, substring or fuzzy step)."""
        return self._ingredients.get(canonical_name)

    def lookup(self, name: str) -> CanonicalIngredient | None:
        """Return the catalog entry for a normalised *name*, or None on a miss."""
        if not name:
            return None

        for candidate in [name, *_singular_forms(name)]:
            hit = self._canonical(candidate)
            if hit:
                return hit

        for key, pattern in self._patterns:
            if pattern.search(name):
                return self._canonical(key)

        if len(name) >= self._fuzzy_min_length and self._choices:
            match = process.extractOne(
                name, self._choices, scorer=fuzz.ratio, score_cutoff=self._fuzzy_threshold
            )
            if match:
                logger.debug("Fuzzy catalog match", extra={"ingredient": name, "match": match[0], "score": match[1]})
                return self._ingredients[match[0]]
        return None

    def category_info(self, category: str | None) -> CategoryInfo | None:
        """Shelf-life data for *category*, None when the category is unknown."""
        if not category:
            return None
        return self._categories.get(category.strip().lower())

    def sort_order(self, category: str) -> int:
        info = self.category_info(category)
        return info.sort_order if info else 999


def _build_ingredients(
    entries: dict[str, dict[str, Any]], categories: dict[str, CategoryInfo]
) -> dict[str, CanonicalIngredient]:
    ingredients: dict[str, CanonicalIngredient] = {}
    for name, entry in entries.items():
        key = name.strip().lower()
        category = entry.get("category", UNKNOWN_CATEGORY)
        info = categories.get(category)
        if info is None:
            logger.warning("Catalog ingredient %r has unknown category %r", key, category)
        ingredients[key] = CanonicalIngredient(
            canonical_name=key,
            category=category,
            default_unit=entry.get("default_unit", ""),
            shelf_life_days=entry.get("shelf_life_days", info.shelf_life_days if info else 0),
            freezable=entry.get("freezable", info.freezable if info else False),
        )
    return ingredients


def build_default_catalog() -> IngredientCatalog:
    entries = {
        name: {"category": category, "default_unit": unit}
        for name, (category, unit) in _DEFAULT_INGREDIENTS.items()
    }
    return IngredientCatalog(
        _build_ingredients(entries, CATEGORY_DATABASE),
        categories=CATEGORY_DATABASE,
        aliases=_DEFAULT_ALIASES,
    )


def load_catalog(file_path: Path | str) -> IngredientCatalog:
    """Load a catalog from JSON.

    Expected shape::

        {
          "categories": {"fish": {"label": "Fish", "sort_order": 30,
                                  "shelf_life_days": 2, "freezable": true}},
          "ingredients": {"salmon": {"category": "fish", "default_unit": "g"}},
          "aliases": {"lax": "salmon"}
        }

    "categories" is optional and falls back to the built-in category table.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise CatalogLoadError(f"Catalog file not found: {file_path}")

    try:
        with open(file_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in catalog file: {e}")

    if "ingredients" not in data:
        raise CatalogLoadError("Catalog file must contain an 'ingredients' key")

    categories = dict(CATEGORY_DATABASE)
    try:
        for key, raw in data.get("categories", {}).items():
            key = key.strip().lower()
            categories[key] = CategoryInfo(
                key=key,
                label=raw.get("label", key),
                sort_order=int(raw.get("sort_order", 500)),
                shelf_life_days=int(raw["shelf_life_days"]),
                freezable=bool(raw.get("freezable", False)),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogLoadError(f"Invalid category entry in catalog file: {e}") from e

    return IngredientCatalog(
        _build_ingredients(data["ingredients"], categories),
        categories=categories,
        aliases=data.get("aliases", {}),
    )


_default_catalog: IngredientCatalog | None = None


def get_catalog() -> IngredientCatalog:
    """Process-wide catalog: CATALOG_FILE when configured, built-in otherwise."""
    global _default_catalog
    if _default_catalog is None:
        if config.CATALOG_FILE:
            _default_catalog = load_catalog(config.CATALOG_FILE)
        else:
            _default_catalog = build_default_catalog()
        logger.info("Ingredient catalog loaded", extra={"ingredient_count": len(_default_catalog)})
    return _default_catalog
