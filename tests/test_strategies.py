import pytest

from grocery_sync import config
from grocery_sync.freshness import classify_all
from grocery_sync.models import (
    CUSTOM,
    EXCLUDE_PERISHABLES,
    FRESHNESS_FREEZE,
    INCLUDE_ALL,
    ROLE_LATER,
    ROLE_NEAR,
    SPLIT_LISTS,
    SPLIT_MODE_SINGLE,
    SPLIT_MODE_SPLIT,
    SplitInfo,
    Strategy,
)
from grocery_sync.shopping_list import AggregatedIngredient
from grocery_sync.strategies import partition
from grocery_sync.units import TO_TASTE, Measured
from tests.conftest import day

PLAN_START = day(0)
PLAN_END = day(13)


def ingredient(name, category, quantity, *offsets):
    return AggregatedIngredient(
        canonical_name=name,
        quantity=quantity,
        category=category,
        recipe_ids=("r1",),
        use_dates=tuple(day(o) for o in offsets),
    )


@pytest.fixture
def classified(catalog):
    return classify_all([
        ingredient("milk", "dairy_milk", Measured(500.0, "ml"), 1),
        ingredient("salmon", "fish", Measured(400.0, "g"), 1, 8),
        ingredient("pasta", "pasta_rice", Measured(400.0, "g"), 3),
        ingredient("chicken", "poultry", Measured(600.0, "g"), 9),
        ingredient("lettuce", "salad_leafy", Measured(1.0, "pcs"), 12),
        ingredient("salt", "spices", TO_TASTE, 3, 10),
    ], PLAN_START, catalog)


def names(shopping_list):
    return [i.ingredient_name for i in shopping_list.items]


class TestSingleListModes:
    def test_include_all(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(INCLUDE_ALL), PLAN_START, PLAN_END, catalog)

        assert len(shopping_list.items) == len(classified)
        assert shopping_list.split_mode == SPLIT_MODE_SINGLE
        assert shopping_list.role is None
        assert shopping_list.name == "Shopping list 4 Mar - 17 Mar"
        assert {w.category for w in shopping_list.warnings} == {"poultry", "salad_leafy"}

    def test_items_start_unchecked_and_ordered(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(INCLUDE_ALL), PLAN_START, PLAN_END, catalog)

        assert not any(i.checked for i in shopping_list.items)
        assert [i.order for i in shopping_list.items] == list(range(len(classified)))
        assert all(i.list_id == shopping_list.id for i in shopping_list.items)

    def test_item_carries_classification(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(INCLUDE_ALL), PLAN_START, PLAN_END, catalog)
        chicken = next(i for i in shopping_list.items if i.ingredient_name == "chicken")

        assert chicken.freshness_status == FRESHNESS_FREEZE
        assert chicken.freshness_warning is True
        assert chicken.quantity == 600.0
        assert chicken.unit == "g"
        assert chicken.used_on_dates == [day(9)]

    def test_to_taste_item_has_no_quantity(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(INCLUDE_ALL), PLAN_START, PLAN_END, catalog)
        salt = next(i for i in shopping_list.items if i.ingredient_name == "salt")
        assert salt.quantity is None
        assert salt.unit == ""

    def test_exclude_perishables(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(EXCLUDE_PERISHABLES), PLAN_START, PLAN_END, catalog)

        assert names(shopping_list) == ["milk", "salmon", "pasta", "salt"]
        assert shopping_list.warnings == []

    def test_custom_allowlist(self, classified, catalog):
        strategy = Strategy(CUSTOM, categories=frozenset({"Dairy_Milk", "pasta_rice"}))
        [shopping_list] = partition(classified, strategy, PLAN_START, PLAN_END, catalog)
        assert names(shopping_list) == ["milk", "pasta"]

    def test_custom_empty_allowlist_keeps_everything(self, classified, catalog):
        [shopping_list] = partition(classified, Strategy(CUSTOM), PLAN_START, PLAN_END, catalog)
        assert len(shopping_list.items) == len(classified)


class TestSplitLists:
    def test_rolling_split_by_freshness(self, classified, catalog):
        near, later = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)

        assert near.role == ROLE_NEAR
        assert later.role == ROLE_LATER
        assert near.split_mode == later.split_mode == SPLIT_MODE_SPLIT
        assert names(near) == ["milk", "salmon", "pasta", "salt"]
        assert names(later) == ["chicken", "lettuce"]
        # earliest day a later item can be bought and still keep: chicken day 9 - 2
        assert later.start_date == day(7)
        assert near.end_date == day(6)
        assert near.name == "List 1: 4 Mar - 10 Mar"
        assert later.name == "List 2: 11 Mar - 17 Mar"

    def test_later_items_are_judged_from_later_start(self, classified, catalog):
        _, later = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)
        assert not any(i.freshness_warning for i in later.items)
        assert later.warnings == []

    def test_near_item_used_after_cut_gets_split_info(self, classified, catalog):
        near, _ = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)
        by_name = {i.ingredient_name: i for i in near.items}

        assert by_name["salmon"].split_info == SplitInfo(
            buy_now_qty=200.0, buy_later_qty=200.0, buy_later_date=day(6)
        )
        assert by_name["milk"].split_info is None
        # to-taste quantities cannot be apportioned
        assert by_name["salt"].split_info is None

    def test_fixed_cutoff(self, classified, catalog):
        strategy = Strategy(SPLIT_LISTS, split_cutoff_days=5)
        near, later = partition(classified, strategy, PLAN_START, PLAN_END, catalog)

        assert near.end_date == day(5)
        assert later.start_date == day(6)
        assert names(later) == ["chicken", "lettuce"]
        assert {w.category for w in later.warnings} == {"poultry", "salad_leafy"}

    def test_configured_cutoff_applies_when_strategy_has_none(self, classified, catalog, monkeypatch):
        monkeypatch.setattr(config, "SPLIT_CUTOFF_DAYS", 5)
        near, later = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)
        assert later.start_date == day(6)

    @pytest.mark.parametrize("cutoff", [None, 0, 5, 20])
    def test_every_item_lands_in_exactly_one_list(self, classified, catalog, cutoff):
        lists = partition(classified, Strategy(SPLIT_LISTS, split_cutoff_days=cutoff), PLAN_START, PLAN_END, catalog)
        all_names = [n for sl in lists for n in names(sl)]
        assert sorted(all_names) == sorted(c.canonical_name for c in classified)

    def test_empty_partition_produces_no_list(self, catalog):
        classified = classify_all([
            ingredient("pasta", "pasta_rice", Measured(400.0, "g"), 3),
        ], PLAN_START, catalog)
        lists = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)

        assert [sl.role for sl in lists] == [ROLE_NEAR]
        assert lists[0].end_date == PLAN_END

    def test_each_list_carries_only_its_own_warnings(self, catalog):
        classified = classify_all([
            ingredient("salmon", "fish", Measured(400.0, "g"), 4),
            ingredient("lettuce", "salad_leafy", Measured(1.0, "pcs"), 2),
        ], PLAN_START, catalog)
        near, later = partition(classified, Strategy(SPLIT_LISTS), PLAN_START, PLAN_END, catalog)

        assert names(near) == ["lettuce"]
        assert near.warnings == []
        assert names(later) == ["salmon"]


class TestStrategyValidation:
    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            Strategy("cheapest_first")

    def test_negative_cutoff(self):
        with pytest.raises(ValueError):
            Strategy(SPLIT_LISTS, split_cutoff_days=-1)

    def test_round_trip_through_dict(self):
        strategy = Strategy(CUSTOM, categories=frozenset({"fish"}), split_cutoff_days=3)
        assert Strategy.from_dict(strategy.to_dict()) == strategy
