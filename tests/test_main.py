import json

import pytest

from grocery_sync import main
from grocery_sync.main import app, limiter
from grocery_sync.recipes import save_recipes
from tests.conftest import create_test_recipe, day


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Create a test client backed by temporary state and recipes files."""
    recipes_file = tmp_path / "recipes.json"
    save_recipes(recipes_file, [
        create_test_recipe("pancakes", name="Pancakes", ingredients=[
            {"name": "milk", "quantity": 500, "unit": "ml"},
            {"name": "flour", "quantity": 200, "unit": "g"},
        ]),
        create_test_recipe("bolognese", name="Pasta Bolognese", ingredients=[
            {"name": "ground beef", "quantity": 500, "unit": "g"},
            {"name": "pasta", "quantity": 400, "unit": "g"},
        ]),
        create_test_recipe("salmon-bowl", name="Salmon bowl", ingredients=[
            {"name": "salmon", "quantity": 400, "unit": "g"},
        ]),
    ])

    from grocery_sync import config
    monkeypatch.setattr(config, "RECIPES_FILE", str(recipes_file))
    monkeypatch.setattr(config, "DATA_FILE", str(tmp_path / "state.json"))
    monkeypatch.setattr(main, "_service", None)
    monkeypatch.setattr(limiter, "enabled", False)

    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def plan(client, offset, recipe_id):
    response = client.post("/api/meal-plans", json={"date": day(offset).isoformat(), "recipe_id": recipe_id})
    assert response.status_code == 201
    return json.loads(response.data)


def create_list(client, **body):
    body.setdefault("start", day(0).isoformat())
    body.setdefault("end", day(6).isoformat())
    response = client.post("/api/shopping-lists", json=body)
    assert response.status_code == 201
    return json.loads(response.data)["shopping_lists"]


class TestMealPlanRoutes:
    def test_add_and_list_entries(self, client):
        entry = plan(client, 1, "pancakes")

        response = client.get(f"/api/meal-plans?start={day(0).isoformat()}&end={day(6).isoformat()}")
        assert response.status_code == 200
        data = json.loads(response.data)
        assert [e["id"] for e in data["entries"]] == [entry["id"]]

    def test_add_entry_unknown_recipe(self, client):
        response = client.post("/api/meal-plans", json={"date": day(0).isoformat(), "recipe_id": "nonexistent"})
        assert response.status_code == 404

    def test_add_entry_missing_fields(self, client):
        response = client.post("/api/meal-plans", json={"recipe_id": "pancakes"})
        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Validation error"

    def test_add_entry_invalid_date(self, client):
        response = client.post("/api/meal-plans", json={"date": "next tuesday", "recipe_id": "pancakes"})
        assert response.status_code == 400

    def test_delete_entry(self, client):
        entry = plan(client, 1, "pancakes")
        assert client.delete(f"/api/meal-plans/{entry['id']}").status_code == 200
        assert client.delete(f"/api/meal-plans/{entry['id']}").status_code == 404

    def test_populate_fills_empty_days(self, client):
        for offset in (0, 1, 3, 4, 6):
            plan(client, offset, "pancakes")

        response = client.post("/api/meal-plans/populate", json={
            "recipe_ids": ["bolognese", "salmon-bowl", "pancakes"],
            "start": day(0).isoformat(),
            "end": day(6).isoformat(),
            "mode": "fill",
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [e["date"] for e in data["created"]] == [day(2).isoformat(), day(5).isoformat()]
        assert data["discarded_recipe_ids"] == ["pancakes"]

    def test_populate_rejects_bad_mode(self, client):
        response = client.post("/api/meal-plans/populate", json={"recipe_ids": ["pancakes"], "mode": "shuffle"})
        assert response.status_code == 400

    def test_populate_requires_recipe_list(self, client):
        response = client.post("/api/meal-plans/populate", json={"recipe_ids": "pancakes"})
        assert response.status_code == 400


class TestShoppingListRoutes:
    def test_preview(self, client):
        plan(client, 1, "pancakes")
        plan(client, 5, "salmon-bowl")

        response = client.get(f"/api/shopping-lists/preview?start={day(0).isoformat()}&end={day(6).isoformat()}")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [w["category"] for w in data["warnings"]] == ["fish"]
        assert data["recommended_strategy"] == "include_all"

    def test_create_and_get_list(self, client):
        plan(client, 1, "pancakes")
        [shopping_list] = create_list(client)

        response = client.get(f"/api/shopping-lists/{shopping_list['id']}")
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["needs_sync"] is False
        assert data["purchased_count"] == 0
        milk = next(i for i in data["items"] if i["ingredient_name"] == "milk")
        assert (milk["quantity"], milk["unit"]) == (500.0, "ml")

    def test_create_split_lists(self, client):
        plan(client, 1, "pancakes")
        plan(client, 5, "salmon-bowl")
        lists = create_list(client, strategy="split_lists")
        assert [sl["role"] for sl in lists] == ["near", "later"]

    def test_create_rejects_unknown_strategy(self, client):
        response = client.post("/api/shopping-lists", json={"strategy": "cheapest"})
        assert response.status_code == 400

    def test_create_rejects_reversed_range(self, client):
        response = client.post("/api/shopping-lists", json={"start": day(6).isoformat(), "end": day(0).isoformat()})
        assert response.status_code == 400

    def test_get_unknown_list(self, client):
        assert client.get("/api/shopping-lists/nonexistent").status_code == 404

    def test_list_and_delete(self, client):
        [shopping_list] = create_list(client)
        data = json.loads(client.get("/api/shopping-lists").data)
        assert [sl["id"] for sl in data["shopping_lists"]] == [shopping_list["id"]]

        assert client.delete(f"/api/shopping-lists/{shopping_list['id']}").status_code == 200
        assert json.loads(client.get("/api/shopping-lists").data)["shopping_lists"] == []

    def test_set_status(self, client):
        [shopping_list] = create_list(client)
        url = f"/api/shopping-lists/{shopping_list['id']}/status"

        assert json.loads(client.post(url, json={"status": "completed"}).data)["status"] == "completed"
        assert client.post(url, json={"status": "lost"}).status_code == 400


class TestItemRoutes:
    @pytest.fixture
    def shopping_list(self, client):
        plan(client, 1, "pancakes")
        [shopping_list] = create_list(client)
        return shopping_list

    def test_check_item(self, client, shopping_list):
        item = shopping_list["items"][0]
        response = client.patch(
            f"/api/shopping-lists/{shopping_list['id']}/items/{item['id']}", json={"checked": True}
        )
        assert response.status_code == 200
        assert json.loads(response.data)["checked"] is True

        data = json.loads(client.get(f"/api/shopping-lists/{shopping_list['id']}").data)
        assert data["purchased_count"] == 1

    def test_edit_quantity(self, client, shopping_list):
        item = shopping_list["items"][0]
        response = client.patch(
            f"/api/shopping-lists/{shopping_list['id']}/items/{item['id']}", json={"quantity": 2, "unit": "l"}
        )
        data = json.loads(response.data)
        assert (data["quantity"], data["unit"]) == (2.0, "l")

    @pytest.mark.parametrize("body", [{}, {"checked": "yes"}, {"quantity": -3}, {"unit": 5}])
    def test_invalid_update(self, client, shopping_list, body):
        item = shopping_list["items"][0]
        response = client.patch(f"/api/shopping-lists/{shopping_list['id']}/items/{item['id']}", json=body)
        assert response.status_code == 400

    def test_unknown_item(self, client, shopping_list):
        response = client.patch(
            f"/api/shopping-lists/{shopping_list['id']}/items/nonexistent", json={"checked": True}
        )
        assert response.status_code == 404


class TestSyncRoutes:
    def test_sync_after_plan_change(self, client):
        plan(client, 1, "pancakes")
        [shopping_list] = create_list(client)
        plan(client, 3, "bolognese")
        url = f"/api/shopping-lists/{shopping_list['id']}/sync"

        status = json.loads(client.get(url).data)
        assert status["needs_sync"] is True
        assert status["requires_decision"] is False

        response = client.post(url)
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["needs_sync"] is False
        assert {i["ingredient_name"] for i in data["items"]} >= {"milk", "ground beef", "pasta"}

    def test_sync_conflict_requires_decision(self, client):
        pancakes = plan(client, 1, "pancakes")
        plan(client, 3, "bolognese")
        [shopping_list] = create_list(client)
        milk = next(i for i in shopping_list["items"] if i["ingredient_name"] == "milk")
        client.patch(f"/api/shopping-lists/{shopping_list['id']}/items/{milk['id']}", json={"checked": True})
        client.delete(f"/api/meal-plans/{pancakes['id']}")
        url = f"/api/shopping-lists/{shopping_list['id']}/sync"

        response = client.post(url, json={})
        assert response.status_code == 409
        [conflict] = json.loads(response.data)["conflicts"]
        assert conflict["recipe_id"] == "pancakes"
        assert conflict["recommended_action"] == "keep_purchased"

        response = client.post(url, json={"keep_purchased": True})
        assert response.status_code == 200
        items = {i["ingredient_name"]: i for i in json.loads(response.data)["items"]}
        assert items["milk"]["checked"] is True

    def test_sync_rejects_non_boolean_decision(self, client):
        [shopping_list] = create_list(client)
        response = client.post(f"/api/shopping-lists/{shopping_list['id']}/sync", json={"keep_purchased": "yes"})
        assert response.status_code == 400

    def test_sync_unknown_list(self, client):
        assert client.post("/api/shopping-lists/nonexistent/sync").status_code == 404

    def test_state_is_written_to_disk(self, client, tmp_path):
        plan(client, 1, "pancakes")
        create_list(client)
        state = json.loads((tmp_path / "state.json").read_text())
        assert len(state["entries"]) == 1
        assert len(state["shopping_lists"]) == 1
