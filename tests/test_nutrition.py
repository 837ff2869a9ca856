from __future__ import annotations

from unittest import TestCase

from mealcraft.services.nutrition import (
    calculate_bmi,
    calculate_bmr,
    calculate_daily_calories,
    calculate_macros,
    get_bmi_category,
    get_macro_distribution,
    round_half_up,
    validate_nutrition_profile,
)


class NutritionCalculationsTest(TestCase):
    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.4), 2)
        self.assertEqual(round_half_up(66.67), 67)

    def test_bmr_by_gender(self):
        self.assertEqual(calculate_bmr(30, 80, 180, "male"), 1780)
        self.assertAlmostEqual(calculate_bmr(25, 60, 165, "female"), 1345.25)

    def test_daily_calories_apply_activity_and_goal(self):
        common = dict(age=30, weight_kg=80, height_cm=180, gender="male")
        self.assertEqual(
            calculate_daily_calories(activity_level="moderately_active", goals="maintain_weight", **common),
            2759,
        )
        self.assertEqual(
            calculate_daily_calories(activity_level="moderately_active", goals="lose_weight", **common),
            2259,
        )
        # unknown activity level falls back to sedentary
        self.assertEqual(calculate_daily_calories(activity_level=None, goals=None, **common), 2136)

    def test_macros_follow_goal_distribution(self):
        self.assertEqual(calculate_macros(2000, None), {"protein": 125, "carbs": 225, "fat": 67})
        self.assertEqual(calculate_macros(2000, "lose_weight"), {"protein": 175, "carbs": 150, "fat": 78})
        self.assertEqual(get_macro_distribution("gain_muscle"), {"protein": 30, "carbs": 40, "fat": 30})

    def test_macro_distribution_is_a_copy(self):
        dist = get_macro_distribution(None)
        dist["protein"] = 99
        self.assertEqual(get_macro_distribution(None)["protein"], 25)

    def test_bmi_and_category(self):
        self.assertEqual(calculate_bmi(80, 180), 24.7)
        self.assertEqual(get_bmi_category(24.7), "Normal weight")
        self.assertEqual(get_bmi_category(18.4), "Underweight")
        self.assertEqual(get_bmi_category(25), "Overweight")
        self.assertEqual(get_bmi_category(30), "Obese")

    def test_profile_completeness(self):
        profile = {"age": 30, "height": 180, "weight": 80, "activityLevel": "sedentary", "goals": "lose_weight"}
        self.assertTrue(validate_nutrition_profile(profile))
        self.assertFalse(validate_nutrition_profile({**profile, "goals": None}))
