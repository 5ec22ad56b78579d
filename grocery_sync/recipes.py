import json
import os
import tempfile
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any


class RecipeLoadError(Exception):
    """Raised when recipes cannot be loaded from file."""
    pass


class RecipeSaveError(Exception):
    """Raised when recipes cannot be saved to file."""
    pass


@dataclass(frozen=True)
class IngredientLine:
    name: str
    quantity: float | None = None  # None = "to taste", never summed
    unit: str | None = None
    group: str | None = None       # e.g. "for the sauce"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IngredientLine":
        """Accepts both {"name", "quantity"} and the older {"item", "amount"} keys."""
        name = data.get("name") or data.get("item")
        if not name:
            raise ValueError("Ingredient line is missing a name")

        quantity = data.get("quantity", data.get("amount"))
        if quantity is not None:
            try:
                quantity = float(quantity)
            except (TypeError, ValueError):
                quantity = None

        return cls(
            name=name,
            quantity=quantity,
            unit=data.get("unit") or None,
            group=data.get("group") or None,
        )


@dataclass
class Recipe:
    id: str
    name: str
    servings: int
    ingredients: list[IngredientLine] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        required = ["id", "name", "servings"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        return cls(
            id=data["id"],
            name=data["name"],
            servings=data["servings"],
            ingredients=[IngredientLine.from_dict(i) for i in data.get("ingredients", [])],
        )


def load_recipes(file_path: Path | str) -> list[Recipe]:
    file_path = Path(file_path)

    if not file_path.exists():
        raise RecipeLoadError(f"Recipe file not found: {file_path}")

    try:
        with open(file_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RecipeLoadError(f"Invalid JSON in recipe file: {e}")

    if "recipes" not in data:
        raise RecipeLoadError("Recipe file must contain a 'recipes' key")

    try:
        return [Recipe.from_dict(r) for r in data["recipes"]]
    except ValueError as e:
        raise RecipeLoadError(f"Invalid recipe in {file_path}: {e}") from e


def save_recipes(file_path: Path | str, recipes: list[Recipe]) -> None:
    """Save recipes to JSON file with atomic write.

    Raises:
        RecipeSaveError: If the file cannot be written
    """
    file_path = Path(file_path)
    data = {"recipes": [asdict(recipe) for recipe in recipes]}

    try:
        # Same directory so the rename stays on one filesystem
        temp_fd, temp_path = tempfile.mkstemp(
            dir=file_path.parent,
            prefix=".recipes_tmp_",
            suffix=".json"
        )

        try:
            with os.fdopen(temp_fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, file_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    except (IOError, OSError, PermissionError) as e:
        raise RecipeSaveError(f"Failed to save recipes to {file_path}: {e}")
