import logging
from datetime import date, timedelta

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from grocery_sync import config
from grocery_sync.logging_config import configure_logging
from grocery_sync.models import Strategy, parse_date
from grocery_sync.planner import FILL
from grocery_sync.service import SyncConflictError, SyncService
from grocery_sync.store import (
    EntryNotFoundError,
    ItemNotFoundError,
    JsonFileStore,
    ListNotFoundError,
    RecipeNotFoundError,
    StoreError,
)

configure_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = Flask(__name__)
limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=[],          # no global limit; apply per-route only
    storage_uri="memory://",
)

# Created on first request so importing the module never touches the disk
_service: SyncService | None = None


def get_service() -> SyncService:
    global _service
    if _service is None:
        _service = SyncService(JsonFileStore(config.DATA_FILE, config.RECIPES_FILE))
        logger.info("Service initialised", extra={"data_file": config.DATA_FILE})
    return _service


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.errorhandler(ValueError)
def _handle_value_error(e):
    return jsonify({"error": "Validation error", "message": str(e)}), 400


@app.errorhandler(ListNotFoundError)
@app.errorhandler(ItemNotFoundError)
@app.errorhandler(EntryNotFoundError)
@app.errorhandler(RecipeNotFoundError)
def _handle_not_found(e):
    return jsonify({"error": "Not found", "message": str(e)}), 404


@app.errorhandler(SyncConflictError)
def _handle_conflict(e):
    return jsonify({
        "error": "Sync conflict",
        "message": str(e),
        "conflicts": [c.to_dict() for c in e.conflicts],
    }), 409


@app.errorhandler(StoreError)
def _handle_store_error(e):
    logger.error("Store failure", extra={"error": str(e)})
    return jsonify({"error": "Storage error", "message": "Failed to save changes"}), 500


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _range_from(source: dict) -> tuple[date, date]:
    """start/end from a mapping; end defaults to a DEFAULT_RANGE_DAYS window."""
    start = parse_date(source["start"]) if source.get("start") else date.today()
    if source.get("end"):
        end = parse_date(source["end"])
    else:
        end = start + timedelta(days=config.DEFAULT_RANGE_DAYS - 1)
    return start, end


def _list_payload(shopping_list) -> dict:
    payload = shopping_list.to_dict()
    payload["needs_sync"] = get_service().detector.needs_sync(shopping_list.id)
    payload["purchased_count"] = shopping_list.purchased_count
    return payload


# ---------------------------------------------------------------------------
# Meal plan
# ---------------------------------------------------------------------------

@app.route("/api/meal-plans", methods=["GET"])
def list_meal_plans():
    start, end = _range_from(request.args)
    entries = get_service().entries(start, end)
    return jsonify({
        "start": start.isoformat(),
        "end": end.isoformat(),
        "entries": [e.to_dict() for e in entries],
    })


@app.route("/api/meal-plans", methods=["POST"])
def create_meal_plan():
    data = _json_body()
    if not data.get("date") or not data.get("recipe_id"):
        raise ValueError("date and recipe_id are required")
    servings = data.get("servings")
    entry = get_service().add_entry(
        parse_date(data["date"]),
        data["recipe_id"],
        float(servings) if servings is not None else None,
    )
    return jsonify(entry.to_dict()), 201


@app.route("/api/meal-plans/<entry_id>", methods=["DELETE"])
def delete_meal_plan(entry_id: str):
    entry = get_service().delete_entry(entry_id)
    return jsonify({"success": True, "deleted": entry.to_dict()})


@app.route("/api/meal-plans/populate", methods=["POST"])
@limiter.limit(config.POPULATE_RATE_LIMIT)
def populate_meal_plan():
    data = _json_body()
    recipe_ids = data.get("recipe_ids")
    if not isinstance(recipe_ids, list) or not all(isinstance(r, str) for r in recipe_ids):
        raise ValueError("recipe_ids must be a list of recipe ids")
    start, end = _range_from(data)
    result = get_service().populate(recipe_ids, start, end, data.get("mode", FILL))
    return jsonify(result.to_dict())


# ---------------------------------------------------------------------------
# Shopping lists
# ---------------------------------------------------------------------------

@app.route("/api/shopping-lists", methods=["GET"])
def list_shopping_lists():
    lists = get_service().list_lists()
    return jsonify({"shopping_lists": [_list_payload(sl) for sl in lists]})


@app.route("/api/shopping-lists", methods=["POST"])
def create_shopping_lists():
    data = _json_body()
    start, end = _range_from(data)
    cutoff = data.get("split_cutoff_days")
    strategy = Strategy(
        mode=data.get("strategy", "include_all"),
        categories=frozenset(data.get("categories") or []),
        split_cutoff_days=int(cutoff) if cutoff is not None else None,
    )
    lists = get_service().create_lists(start, end, strategy)
    return jsonify({"shopping_lists": [_list_payload(sl) for sl in lists]}), 201


@app.route("/api/shopping-lists/preview", methods=["GET"])
def preview_shopping_list():
    start, end = _range_from(request.args)
    return jsonify(get_service().preview(start, end).to_dict())


@app.route("/api/shopping-lists/<list_id>", methods=["GET"])
def get_shopping_list(list_id: str):
    return jsonify(_list_payload(get_service().get_list(list_id)))


@app.route("/api/shopping-lists/<list_id>", methods=["DELETE"])
def delete_shopping_list(list_id: str):
    get_service().delete_list(list_id)
    return jsonify({"success": True})


@app.route("/api/shopping-lists/<list_id>/status", methods=["POST"])
def set_shopping_list_status(list_id: str):
    data = _json_body()
    shopping_list = get_service().set_status(list_id, data.get("status", ""))
    return jsonify(_list_payload(shopping_list))


@app.route("/api/shopping-lists/<list_id>/items/<item_id>", methods=["PATCH"])
def update_shopping_list_item(list_id: str, item_id: str):
    data = _json_body()
    changes = {k: data[k] for k in ("checked", "quantity", "unit") if k in data}
    if not changes:
        raise ValueError("Nothing to update; expected checked, quantity or unit")
    if "checked" in changes and not isinstance(changes["checked"], bool):
        raise ValueError("checked must be true or false")
    if "unit" in changes and not isinstance(changes["unit"], str):
        raise ValueError("unit must be a string")
    item = get_service().update_item(list_id, item_id, **changes)
    return jsonify(item.to_dict())


@app.route("/api/shopping-lists/<list_id>/sync", methods=["GET"])
def get_sync_status(list_id: str):
    return jsonify(get_service().sync_status(list_id).to_dict())


@app.route("/api/shopping-lists/<list_id>/sync", methods=["POST"])
@limiter.limit(config.SYNC_RATE_LIMIT)
def sync_shopping_list(list_id: str):
    data = request.get_json(silent=True) or {}
    keep_purchased = data.get("keep_purchased")
    if keep_purchased is not None and not isinstance(keep_purchased, bool):
        raise ValueError("keep_purchased must be true, false or omitted")
    shopping_list = get_service().sync_list(list_id, keep_purchased)
    return jsonify(_list_payload(shopping_list))


if __name__ == "__main__":
    import os
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_ENV") != "production"
    app.run(host="0.0.0.0", port=port, debug=debug)
