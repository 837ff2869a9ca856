from __future__ import annotations

from unittest import TestCase

from mealcraft.models import NutritionProfile
from mealcraft.schemas import MealPreferences, RecipeGenerationRequest
from mealcraft.services.preference_override import (
    PreferenceMergeContext,
    apply_global_overrides,
    compact_preferences,
    fill_request_from_profile,
    get_category_defaults,
    get_preference_presets,
    has_significant_overrides,
    merge_preferences,
    merge_two_preferences,
    validate_preferences,
)


def _profile(**overrides):
    values = dict(
        user_id="user-1",
        age=30,
        weight_kg=70.0,
        height_cm=175.0,
        activity_level="sedentary",
        goals="lose_weight",
        meal_complexity="medium",
        daily_calories=2000,
        macro_protein=140,
        macro_carbs=200,
        macro_fat=60,
        allergies=["Peanuts"],
        dietary_restrictions=["Vegetarian"],
        cuisine_preferences=["Italian"],
    )
    values.update(overrides)
    return NutritionProfile(**values)


class MergePreferencesTest(TestCase):
    def test_category_defaults_without_profile(self):
        request = merge_preferences(None, PreferenceMergeContext(), "dinner")
        self.assertEqual(request.mealType, "dinner")
        self.assertEqual(request.calories, 600)
        self.assertEqual(request.protein, 30)
        self.assertEqual(request.maxPrepTime, 45)
        self.assertEqual(request.difficulty, "medium")
        self.assertIsNone(request.userProfile)
        self.assertIsNone(request.mealComplexity)

    def test_layers_in_priority_order(self):
        context = PreferenceMergeContext(
            profile=_profile(),
            global_preferences={"cuisinePreferences": ["Thai"], "calories": 550, "maxPrepTime": 30},
            category_defaults={"lunch": {"difficultyLevel": "easy", "maxPrepTime": 25}},
        )
        custom = MealPreferences(allergies=["Soy"], calories=450)

        request = merge_preferences(custom, context, "lunch")

        self.assertEqual(request.calories, 450)
        # profile daily totals scaled to the lunch share
        self.assertEqual(request.protein, 49)
        self.assertEqual(request.carbs, 70)
        self.assertEqual(request.fat, 21)
        self.assertEqual(request.maxPrepTime, 30)
        self.assertEqual(request.difficulty, "easy")
        self.assertEqual(request.allergies, ["Peanuts", "Soy"])
        self.assertEqual(request.dietaryRestrictions, ["Vegetarian"])
        self.assertEqual(request.cuisinePreferences, ["Italian", "Thai"])
        self.assertEqual(request.userProfile.goals, "lose_weight")
        self.assertEqual(request.mealComplexity, "medium")

    def test_non_positive_calories_are_dropped(self):
        request = merge_preferences({"calories": 0, "fat": -5}, PreferenceMergeContext(), "snack")
        self.assertIsNone(request.calories)
        self.assertIsNone(request.fat)
        self.assertEqual(request.protein, 8)


class TwoLayerMergeTest(TestCase):
    def test_override_wins_and_lists_union(self):
        merged = merge_two_preferences(
            {"allergies": ["Soy"], "calories": 400, "maxPrepTime": 40},
            MealPreferences(allergies=["Dairy", "Soy"], maxPrepTime=20),
        )
        self.assertEqual(
            compact_preferences(merged),
            {"allergies": ["Soy", "Dairy"], "calories": 400, "maxPrepTime": 20},
        )

    def test_apply_global_overrides(self):
        merged = apply_global_overrides([{"calories": 300}, None], {"protein": 25}, "breakfast")
        self.assertEqual([compact_preferences(m) for m in merged], [{"calories": 300, "protein": 25}, {"protein": 25}])

    def test_compact_handles_empty_input(self):
        self.assertEqual(compact_preferences(None), {})
        self.assertEqual(compact_preferences(MealPreferences(allergies=[])), {})


class ValidatePreferencesTest(TestCase):
    def test_errors_and_warnings(self):
        result = validate_preferences(
            {
                "maxPrepTime": -1,
                "calories": 50,
                "allergies": ["Gluten"],
                "dietaryRestrictions": ["Vegan", "Keto"],
            }
        )
        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors, ["Maximum prep time cannot be negative"])
        self.assertEqual(
            result.warnings,
            [
                "Very low calorie target may be difficult to achieve",
                "Unknown allergies: Gluten",
                "Vegan and Keto diets may be difficult to combine",
            ],
        )

    def test_low_carb_conflict_is_only_a_warning(self):
        result = validate_preferences(MealPreferences(dietaryRestrictions=["Low-carb"], carbs=60))
        self.assertEqual(
            result.as_dict(),
            {
                "isValid": True,
                "errors": [],
                "warnings": ["High carb target conflicts with low-carb dietary restriction"],
            },
        )

    def test_cook_time_ceiling(self):
        result = validate_preferences({"maxCookTime": 500})
        self.assertEqual(result.errors, ["Maximum cook time cannot exceed 480 minutes"])


class DefaultsAndOverridesTest(TestCase):
    def test_category_defaults(self):
        snack = get_category_defaults("snack")
        self.assertEqual(snack["calories"], 200)
        self.assertEqual(snack["difficultyLevel"], "easy")
        self.assertEqual(get_category_defaults("brunch")["allergies"], [])

    def test_presets_are_copies(self):
        presets = get_preference_presets()
        presets["keto-friendly"]["carbs"] = 99
        self.assertEqual(get_preference_presets()["keto-friendly"]["carbs"], 10)

    def test_significant_overrides(self):
        self.assertFalse(has_significant_overrides({"calories": 650}, "dinner"))
        self.assertTrue(has_significant_overrides({"calories": 750}, "dinner"))
        self.assertTrue(has_significant_overrides({"allergies": ["Soy"]}, "dinner"))
        self.assertFalse(has_significant_overrides({"difficultyLevel": "medium"}, "dinner"))
        self.assertTrue(has_significant_overrides({"difficultyLevel": "hard"}, "dinner"))


class FillRequestFromProfileTest(TestCase):
    def test_missing_fields_come_from_profile(self):
        request = RecipeGenerationRequest(mealType="lunch", cuisinePreferences=["Thai"])
        filled = fill_request_from_profile(request, _profile(allergies=["None", "Peanuts"]))

        self.assertEqual(filled.allergies, ["Peanuts"])
        self.assertEqual(filled.dietaryRestrictions, ["Vegetarian"])
        self.assertEqual(filled.cuisinePreferences, ["Thai"])
        self.assertEqual(filled.calories, 2000)
        self.assertEqual(filled.protein, 140)
        self.assertEqual(filled.userProfile.age, 30)
        self.assertEqual(filled.mealComplexity, "medium")

    def test_explicit_values_are_kept(self):
        request = RecipeGenerationRequest(mealType="dinner", calories=700, allergies=[], mealComplexity="hard")
        filled = fill_request_from_profile(request, _profile())
        self.assertEqual(filled.calories, 700)
        self.assertEqual(filled.allergies, [])
        self.assertEqual(filled.mealComplexity, "hard")

    def test_without_profile(self):
        request = RecipeGenerationRequest(mealType="snack", allergies=["none"])
        filled = fill_request_from_profile(request, None)
        self.assertEqual(filled.allergies, [])
        self.assertEqual(filled.mealComplexity, "simple")
        self.assertIsNone(filled.calories)
        self.assertIsNone(filled.userProfile)
