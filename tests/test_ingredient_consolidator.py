from __future__ import annotations

from unittest import TestCase

from mealcraft.services.ingredient_consolidator import (
    ConsolidatedIngredient,
    are_ingredient_names_similar,
    calculate_shopping_list_stats,
    categorize_ingredient,
    consolidate_ingredients,
    consolidate_recipe_ingredients,
    convert_quantity,
    format_ingredient_for_display,
    format_quantity,
    normalize_ingredient_name,
    normalize_unit,
    select_target_unit,
    string_similarity,
)


class NormalizationTest(TestCase):
    def test_units_map_to_short_forms(self):
        self.assertEqual(normalize_unit("Tablespoons"), "tbsp")
        self.assertEqual(normalize_unit(" lbs "), "lb")
        self.assertEqual(normalize_unit(None), "")
        self.assertEqual(normalize_unit("handful"), "handful")

    def test_names_drop_descriptors_and_plurals(self):
        self.assertEqual(normalize_ingredient_name("Fresh Basil (chopped)"), "basil")
        self.assertEqual(normalize_ingredient_name("Eggs"), "egg")
        self.assertEqual(normalize_ingredient_name("Chicken  Breasts"), "chicken breast")

    def test_any_canned_tomato_collapses(self):
        self.assertEqual(normalize_ingredient_name("Canned Diced Tomatoes"), "can of tomatoes")


class SimilarityTest(TestCase):
    def test_plural_and_variation_groups_match(self):
        self.assertTrue(are_ingredient_names_similar("Eggs", "egg"))
        self.assertTrue(are_ingredient_names_similar("spaghetti", "penne"))

    def test_tomato_kinds_stay_apart(self):
        self.assertFalse(are_ingredient_names_similar("cherry tomatoes", "tomatoes"))
        self.assertFalse(are_ingredient_names_similar("canned tomatoes", "tomato"))

    def test_unrelated_names(self):
        self.assertFalse(are_ingredient_names_similar("chicken", "salmon"))

    def test_string_similarity(self):
        self.assertAlmostEqual(string_similarity("kitten", "sitting"), 4 / 7)
        self.assertEqual(string_similarity("", ""), 1.0)


class ConversionTest(TestCase):
    def test_weight_goes_through_grams(self):
        self.assertAlmostEqual(convert_quantity(1, "kg", "lb"), 1000 / 453.592)

    def test_volume_goes_through_millilitres(self):
        self.assertAlmostEqual(convert_quantity(2, "tsp", "tbsp"), 2 * 4.92892 / 14.7868)

    def test_special_conversion_uses_ingredient(self):
        self.assertEqual(convert_quantity(1, "cup", "piece", "Red bell pepper"), 0.5)

    def test_volume_to_weight_is_refused(self):
        self.assertIsNone(convert_quantity(1, "cup", "g", "flour"))

    def test_target_unit_selection(self):
        self.assertEqual(select_target_unit("olive oil", ["cup", "tbsp"]), "tbsp")
        self.assertEqual(select_target_unit("sugar", ["tsp", "cup"]), "cup")
        self.assertEqual(select_target_unit("flour", ["kg", "g"]), "g")


class CategorizeTest(TestCase):
    def test_keyword_categories(self):
        self.assertEqual(categorize_ingredient("chicken breast"), "poultry")
        self.assertEqual(categorize_ingredient("salmon"), "seafood")
        self.assertEqual(categorize_ingredient("cheddar cheese"), "dairy")
        self.assertEqual(categorize_ingredient("olive oil"), "pantry")

    def test_fallback_categories(self):
        self.assertEqual(categorize_ingredient("tortilla chips"), "snacks")
        self.assertEqual(categorize_ingredient("protein powder"), "health")


class ConsolidateTest(TestCase):
    def test_liquid_units_merge_into_tablespoons(self):
        items = consolidate_ingredients(
            [
                {"name": "olive oil", "quantity": 1, "unit": "tbsp"},
                {"name": "Olive Oil", "quantity": 2, "unit": "teaspoons"},
            ]
        )
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].name, "olive oil")
        self.assertEqual(items[0].unit, "tbsp")
        self.assertAlmostEqual(items[0].quantity, 1 + 2 * 4.92892 / 14.7868)
        self.assertEqual(items[0].category, "pantry")
        self.assertEqual(len(items[0].sources), 2)

    def test_same_unit_quantities_add_up(self):
        items = consolidate_ingredients(
            [
                {"name": "Chicken Breasts", "quantity": 1, "unit": "lb"},
                {"name": "chicken breast", "quantity": 0.5, "unit": "lbs"},
            ]
        )
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 1.5)
        self.assertEqual(items[0].unit, "lb")
        self.assertEqual(items[0].category, "poultry")

    def test_incompatible_units_stay_separate(self):
        items = consolidate_ingredients(
            [
                {"name": "flour", "quantity": 2, "unit": "cups"},
                {"name": "flour", "quantity": 100, "unit": "grams"},
            ]
        )
        self.assertEqual(len(items), 2)
        self.assertEqual({item.unit for item in items}, {"cup", "g"})

    def test_cherry_tomatoes_not_merged_with_tomatoes(self):
        items = consolidate_ingredients(
            [
                {"name": "cherry tomatoes", "quantity": 1, "unit": "cup"},
                {"name": "tomatoes", "quantity": 2, "unit": "piece"},
            ]
        )
        self.assertEqual([item.name for item in items], ["cherry tomatoes", "tomato"])

    def test_sources_keep_extra_keys(self):
        items = consolidate_recipe_ingredients(
            [
                [{"name": "Eggs", "quantity": 2, "unit": "", "recipeName": "Omelette"}],
                [{"name": "egg", "quantity": 3, "unit": "", "recipeName": "Frittata"}],
            ]
        )
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 5)
        self.assertEqual([s["recipeName"] for s in items[0].sources], ["Omelette", "Frittata"])


class FormattingTest(TestCase):
    def test_format_quantity(self):
        self.assertEqual(format_quantity(2.0), "2")
        self.assertEqual(format_quantity(1.5), "1.5")
        self.assertEqual(format_quantity(1 / 3), "0.33")

    def test_display_and_stats(self):
        items = [
            ConsolidatedIngredient(name="flour", quantity=1.5, unit="cup", category="pantry"),
            ConsolidatedIngredient(name="egg", quantity=2, unit="", category="dairy", checked=True),
            ConsolidatedIngredient(name="salmon", quantity=1, unit="lb", category="seafood"),
        ]
        self.assertEqual(format_ingredient_for_display(items[0]), "1.5 cup flour")

        stats = calculate_shopping_list_stats(items)
        self.assertEqual(stats["totalItems"], 3)
        self.assertEqual(stats["checkedItems"], 1)
        self.assertEqual(stats["completionPercentage"], 33.33)
        self.assertEqual(stats["itemsByCategory"]["pantry"], 1)
        self.assertEqual(calculate_shopping_list_stats([])["completionPercentage"], 0)
