from __future__ import annotations

import asyncio
import os
import tempfile
from unittest import IsolatedAsyncioTestCase

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mealcraft.models import Base, RecipeFeedback
from mealcraft.schemas import NutritionProfileSaveRequest, RecipePayload
from mealcraft.services.nutrition_profiles import (
    clean_allergies,
    get_nutrition_profile,
    serialize_nutrition_profile,
    upsert_nutrition_profile,
)
from mealcraft.services.recipes import (
    delete_recipe,
    get_user_recipe,
    list_saved_recipes,
    load_generation_history,
    rate_recipe,
    record_feedback,
    serialize_recipe,
    set_recipe_saved,
    store_recipe,
)


def _recipe(name, **overrides):
    recipe = {
        "name": name,
        "description": f"A plate of {name.lower()}.",
        "ingredients": [{"name": "rice", "quantity": 1, "unit": "cup"}],
        "instructions": ["Cook the rice"],
        "nutrition": {"calories": 450, "protein": 20, "carbs": 60, "fat": 10},
        "prepTime": 10,
        "cookTime": 20,
        "servings": 2,
        "difficulty": "easy",
        "mealType": "dinner",
        "tags": ["weeknight"],
    }
    recipe.update(overrides)
    return recipe


class _DatabaseTestCase(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def asyncTearDown(self):
        await self.engine.dispose()


class NutritionProfileTest(_DatabaseTestCase):
    async def test_partial_profile_has_no_targets(self):
        async with self.Session() as session:
            profile = await upsert_nutrition_profile(
                session, "user-1", NutritionProfileSaveRequest(age=30, allergies=["None", " Soy ", "Soy"])
            )
        self.assertEqual(profile.allergies, ["Soy"])
        self.assertIsNone(profile.daily_calories)
        payload = serialize_nutrition_profile(profile)
        self.assertFalse(payload["isComplete"])
        self.assertIsNone(payload["bmi"])

    async def test_complete_profile_derives_targets(self):
        request = NutritionProfileSaveRequest(
            age=30,
            height_cm=180,
            weight_kg=80,
            gender="male",
            activityLevel="moderately_active",
            goals="lose_weight",
        )
        async with self.Session() as session:
            await upsert_nutrition_profile(session, "user-1", request)
            profile = await get_nutrition_profile(session, "user-1")

        self.assertEqual(profile.daily_calories, 2259)
        self.assertEqual(profile.macro_protein, 198)
        self.assertEqual(profile.macro_carbs, 169)
        self.assertEqual(profile.macro_fat, 88)
        payload = serialize_nutrition_profile(profile)
        self.assertTrue(payload["isComplete"])
        self.assertEqual(payload["bmi"], 24.7)
        self.assertEqual(payload["bmiCategory"], "Normal weight")

    async def test_explicit_targets_are_kept(self):
        request = NutritionProfileSaveRequest(
            age=30,
            heightCm=180,
            weightKg=80,
            activityLevel="sedentary",
            goals="maintain_weight",
            dailyCalories=1900,
        )
        async with self.Session() as session:
            profile = await upsert_nutrition_profile(session, "user-1", request)
            self.assertEqual(profile.daily_calories, 1900)
            self.assertIsNone(profile.macro_protein)

            profile = await upsert_nutrition_profile(
                session, "user-1", NutritionProfileSaveRequest(mealComplexity="hard")
            )
        self.assertEqual(profile.meal_complexity, "hard")
        self.assertEqual(profile.age, 30)

    async def test_serialize_missing_profile(self):
        self.assertIsNone(serialize_nutrition_profile(None))
        self.assertEqual(clean_allergies(None), [])


class RecipeStoreTest(_DatabaseTestCase):
    async def test_save_existing_and_new_recipes(self):
        async with self.Session() as session:
            stored = await store_recipe(session, "user-1", _recipe("Curry"))
            self.assertFalse(stored.is_saved)

            saved = await set_recipe_saved(session, "user-1", recipe_id=stored.id)
            self.assertTrue(saved.is_saved)

            created = await set_recipe_saved(
                session, "user-1", payload=RecipePayload(**_recipe("Stew", mealType="lunch"))
            )
            self.assertTrue(created.is_saved)
            self.assertEqual(created.ingredients[0]["name"], "rice")

            with self.assertRaises(ValueError):
                await set_recipe_saved(session, "user-1")
            with self.assertRaises(PermissionError):
                await set_recipe_saved(session, "user-2", recipe_id=stored.id)
            with self.assertRaises(LookupError):
                await get_user_recipe(session, "user-1", 9999)

    async def test_list_filters_search_and_sort(self):
        async with self.Session() as session:
            for name, meal_type in (("Banana Bread", "breakfast"), ("Apple Salad", "lunch"), ("Chili", "dinner")):
                await store_recipe(session, "user-1", _recipe(name, mealType=meal_type), is_saved=True)
            await store_recipe(session, "user-1", _recipe("Unsaved Soup"))
            await store_recipe(session, "user-2", _recipe("Other Bread"), is_saved=True)

            recipes, total = await list_saved_recipes(session, "user-1", sort="name")
            self.assertEqual(total, 3)
            self.assertEqual([r.name for r in recipes], ["Apple Salad", "Banana Bread", "Chili"])

            recipes, total = await list_saved_recipes(session, "user-1", search="BREAD")
            self.assertEqual([r.name for r in recipes], ["Banana Bread"])

            recipes, _ = await list_saved_recipes(session, "user-1", meal_type="lunch")
            self.assertEqual([r.name for r in recipes], ["Apple Salad"])

            recipes, total = await list_saved_recipes(session, "user-1", sort="name", limit=1, offset=1)
            self.assertEqual([r.name for r in recipes], ["Banana Bread"])
            self.assertEqual(total, 3)

            recipes, total = await list_saved_recipes(session, "user-1", is_saved=False)
            self.assertEqual([r.name for r in recipes], ["Unsaved Soup"])

            with self.assertRaises(ValueError):
                await list_saved_recipes(session, "user-1", limit=0)
            with self.assertRaises(ValueError):
                await list_saved_recipes(session, "user-1", sort="popular")

    async def test_feedback_rating_and_delete(self):
        async with self.Session() as session:
            recipe = await store_recipe(session, "user-1", _recipe("Curry"))

            first = await record_feedback(session, "user-1", recipe.id, liked=False, feedback="too spicy")
            again = await record_feedback(
                session, "user-1", recipe.id, liked=True, reported_issues=["portion_size"]
            )
            self.assertEqual(first.id, again.id)
            self.assertTrue(again.liked)
            self.assertIsNone(again.feedback)
            self.assertEqual(again.reported_issues, ["portion_size"])

            rated = await rate_recipe(session, "user-1", recipe.id, 4)
            self.assertEqual(serialize_recipe(rated)["rating"], 4)
            with self.assertRaises(ValueError):
                await rate_recipe(session, "user-1", recipe.id, 6)

            with self.assertRaises(PermissionError):
                await delete_recipe(session, "user-2", recipe.id)
            await delete_recipe(session, "user-1", recipe.id)
            with self.assertRaises(LookupError):
                await get_user_recipe(session, "user-1", recipe.id)

    async def test_generation_history(self):
        async with self.Session() as session:
            kept = await store_recipe(session, "user-1", _recipe("Curry"))
            await store_recipe(session, "user-1", _recipe("Bare", description=""))
            await store_recipe(session, "user-2", _recipe("Elsewhere"))
            await record_feedback(session, "user-1", kept.id, liked=True)

            recipes, feedbacks = await load_generation_history(session, "user-1")
            self.assertEqual([r["name"] for r in recipes], ["Curry"])
            self.assertEqual(len(feedbacks), 1)
            self.assertEqual(feedbacks[0]["recipeId"], kept.id)
            self.assertTrue(feedbacks[0]["liked"])

            recipes, feedbacks = await load_generation_history(session, "user-3")
            self.assertEqual((recipes, feedbacks), ([], []))


class ConcurrentFeedbackTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        # concurrent sessions need separate connections to one database
        self.tmp = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmp.name, "recipes.db")
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def asyncTearDown(self):
        await self.engine.dispose()
        self.tmp.cleanup()

    async def test_simultaneous_submissions_keep_one_row(self):
        async with self.Session() as session:
            recipe = await store_recipe(session, "user-1", _recipe("Curry"))

        async def submit(liked):
            async with self.Session() as session:
                return await record_feedback(session, "user-1", recipe.id, liked=liked)

        first, second = await asyncio.gather(submit(True), submit(False))
        self.assertEqual(first.id, second.id)

        async with self.Session() as session:
            rows = (await session.execute(select(func.count()).select_from(RecipeFeedback))).scalar_one()
            self.assertEqual(rows, 1)

            latest = await record_feedback(session, "user-1", recipe.id, liked=True, feedback="better")
        self.assertEqual(latest.id, first.id)
        self.assertEqual(latest.feedback, "better")
