from __future__ import annotations

from unittest import TestCase

from mealcraft.schemas import RecipeGenerationRequest
from mealcraft.services.prompts import (
    SINGLE_MEAL_TEMPERATURE,
    SYSTEM_PROMPT,
    UserContext,
    allergies_section,
    build_basic_prompt,
    build_recipe_prompt,
    build_single_meal_prompt,
    build_variety_enhanced_prompt,
    build_weekly_meal_plan_prompt,
    normalize_user_context,
)
from mealcraft.services.variety import VarietyConfig


class UserContextTest(TestCase):
    def test_defaults_without_profile(self):
        ctx = normalize_user_context(None)
        self.assertEqual(ctx.calories, 500)
        self.assertEqual(ctx.protein, 20)
        self.assertEqual(ctx.meal_complexity, "simple")
        self.assertIsNone(ctx.user_profile)
        self.assertEqual(allergies_section(ctx), "")

    def test_profile_values_and_overrides(self):
        raw = UserContext(
            profile={"dailyCalories": 1800, "allergies": ["Dairy"], "mealComplexity": "medium"},
            preferred_ingredients=["salmon"],
        )
        ctx = normalize_user_context(raw, overrides={"calories": 600})
        self.assertEqual(ctx.calories, 600)
        self.assertEqual(ctx.allergies, ["Dairy"])
        self.assertEqual(ctx.preferred_ingredients, ["salmon"])
        self.assertEqual(ctx.meal_complexity, "medium")
        self.assertIn("ABSOLUTELY NO ingredients containing these allergens!", allergies_section(ctx))


class RecipePromptTest(TestCase):
    def setUp(self):
        self.request = RecipeGenerationRequest(
            mealType="dinner",
            calories=500,
            protein=30,
            allergies=["Peanuts"],
            cuisinePreferences=["Thai"],
            maxPrepTime=20,
        )

    def test_recipe_prompt_sections(self):
        prompt = build_recipe_prompt(self.request)
        self.assertEqual(prompt.system, SYSTEM_PROMPT)
        self.assertTrue(prompt.user.startswith("Create a dinner recipe"))
        self.assertIn("- Calories: ~500 kcal", prompt.user)
        self.assertIn("- Protein: 30g or more", prompt.user)
        self.assertIn("- Peanuts", prompt.user)
        self.assertIn("## Preferred Cuisines:\n- Thai", prompt.user)
        self.assertIn("- Prep time: 20 minutes or less", prompt.user)
        self.assertIn('"mealType": "dinner"', prompt.user)
        self.assertNotIn("## Dietary Restrictions", prompt.user)

    def test_basic_prompt(self):
        prompt = build_basic_prompt(self.request)
        self.assertIn("- Target calories: 500", prompt)
        self.assertIn("- MUST AVOID (allergies): Peanuts", prompt)

    def test_single_meal_prompt(self):
        request = RecipeGenerationRequest(mealType="lunch", servings=2)
        prompt = build_single_meal_prompt(request, UserContext(profile={"goals": "lose_weight"}))
        self.assertEqual(prompt.temperature, SINGLE_MEAL_TEMPERATURE)
        self.assertIn("- Servings: 2", prompt.user)
        self.assertIn("- Meal type: lunch", prompt.user)
        self.assertIn("- Goals: lose_weight", prompt.user)
        self.assertIn("- Desired meal complexity: simple", prompt.user)

    def test_variety_prompt_lists_recent_recipes(self):
        variety = VarietyConfig(
            temperature=1.1,
            creativity_seed="umami-bomb",
            cooking_technique="grilling",
            cuisine_rotation=["Korean"],
            avoidance_terms=["tofu"],
        )
        context = UserContext(avoided_ingredients=["cilantro"], feedback_context="User enjoys: salmon")
        prompt = build_variety_enhanced_prompt(
            self.request,
            context,
            variety,
            recent_recipes=[{"name": "Pad Thai"}, {"name": ""}],
        )
        self.assertEqual(prompt.temperature, 1.1)
        self.assertIn("- Creative direction: umami-bomb", prompt.user)
        self.assertIn("- Consider these cuisines: Korean", prompt.user)
        self.assertIn("- Avoid repeating: tofu", prompt.user)
        self.assertIn("  - Pad Thai", prompt.user)
        self.assertIn("## Avoided Ingredients:\n- cilantro", prompt.user)
        self.assertIn("## Learned Preferences:\nUser enjoys: salmon", prompt.user)


class WeeklyPlanPromptTest(TestCase):
    def test_counts_are_substituted(self):
        prompt = build_weekly_meal_plan_prompt(
            {"breakfast": 2, "dinner": 3},
            UserContext(profile={"dietaryRestrictions": ["Vegan"]}),
        )
        self.assertIn("- breakfasts: 2, lunches: 0, dinners: 3, snacks: 0", prompt.user)
        self.assertIn("- Dietary restrictions: Vegan", prompt.user)
        self.assertIn("The recipe difficulty should be: simple.", prompt.user)
        self.assertNotIn("{{", prompt.user)
        self.assertEqual(prompt.temperature, SINGLE_MEAL_TEMPERATURE)
