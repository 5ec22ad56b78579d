from grocery_sync import config
from grocery_sync.freshness import build_warnings, classify, classify_all, recommend_strategy
from grocery_sync.models import FRESHNESS_BUY_LATER, FRESHNESS_FREEZE, FRESHNESS_OK, INCLUDE_ALL, SPLIT_LISTS
from grocery_sync.shopping_list import AggregatedIngredient
from grocery_sync.units import Measured
from tests.conftest import day


def ingredient(name, category, *offsets, quantity=None):
    return AggregatedIngredient(
        canonical_name=name,
        quantity=quantity or Measured(1.0, "pcs"),
        category=category,
        recipe_ids=("r",),
        use_dates=tuple(day(o) for o in offsets),
    )


class TestClassify:
    def test_salmon_used_on_day_five_should_be_frozen(self, catalog):
        result = classify(ingredient("salmon", "fish", 5, quantity=Measured(400.0, "g")), day(0), catalog)
        assert result.status == FRESHNESS_FREEZE
        assert result.warning is True
        assert result.days_until_use == 5
        assert result.shelf_life_days == 2

    def test_within_shelf_life_is_ok(self, catalog):
        result = classify(ingredient("salmon", "fish", 2), day(0), catalog)
        assert result.status == FRESHNESS_OK
        assert result.warning is False

    def test_first_use_counts_not_last(self, catalog):
        result = classify(ingredient("salmon", "fish", 1, 9), day(0), catalog)
        assert result.status == FRESHNESS_OK

    def test_non_freezable_is_bought_later(self, catalog):
        result = classify(ingredient("lettuce", "salad_leafy", 6), day(0), catalog)
        assert result.status == FRESHNESS_BUY_LATER
        assert result.warning is True

    def test_unknown_category_is_ok(self, catalog):
        result = classify(ingredient("yuzu", "other", 30), day(0), catalog)
        assert result.status == FRESHNESS_OK
        assert result.warning is False
        assert result.shelf_life_days is None


class TestBuildWarnings:
    def test_one_warning_per_category_sorted_by_severity(self, catalog):
        classified = classify_all([
            ingredient("salmon", "fish", 5),
            ingredient("cod", "fish", 6),
            ingredient("milk", "dairy_milk", 10),
            ingredient("lettuce", "salad_leafy", 6),
            ingredient("pasta", "pasta_rice", 6),
        ], day(0), catalog)

        warnings = build_warnings(classified, catalog)

        assert [(w.category, w.severity) for w in warnings] == [
            ("fish", "high"),
            ("salad_leafy", "medium"),
            ("dairy_milk", "low"),
        ]
        fish = warnings[0]
        assert fish.item_count == 2
        assert fish.affected_items == ("cod", "salmon")
        assert "Freeze" in fish.recommendation

    def test_no_warnings_when_everything_keeps(self, catalog):
        classified = classify_all([ingredient("pasta", "pasta_rice", 6)], day(0), catalog)
        assert build_warnings(classified, catalog) == []


class TestRecommendStrategy:
    def test_split_recommended_above_threshold(self, catalog):
        classified = classify_all([
            ingredient("salmon", "fish", 5),
            ingredient("milk", "dairy_milk", 10),
            ingredient("lettuce", "salad_leafy", 6),
        ], day(0), catalog)
        assert recommend_strategy(build_warnings(classified, catalog)) == SPLIT_LISTS

    def test_include_all_at_threshold(self, catalog):
        classified = classify_all([
            ingredient("salmon", "fish", 5),
            ingredient("milk", "dairy_milk", 10),
        ], day(0), catalog)
        assert recommend_strategy(build_warnings(classified, catalog)) == INCLUDE_ALL

    def test_threshold_is_configurable(self, catalog, monkeypatch):
        monkeypatch.setattr(config, "SPLIT_RECOMMENDATION_THRESHOLD", 0)
        classified = classify_all([ingredient("salmon", "fish", 5)], day(0), catalog)
        assert recommend_strategy(build_warnings(classified, catalog)) == SPLIT_LISTS

    def test_no_warnings(self):
        assert recommend_strategy([]) == INCLUDE_ALL
