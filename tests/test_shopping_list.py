from __future__ import annotations

from datetime import date
from unittest import IsolatedAsyncioTestCase, TestCase, mock

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mealcraft.models import Base
from mealcraft.schemas import CreateWeeklyMealPlanRequest
from mealcraft.services.meal_plans import (
    create_weekly_meal_plan,
    generate_meal,
    get_meal_plan,
    serialize_meal_plan,
    set_meal_lock,
)
from mealcraft.services.recipe_generator import RecipeGenerationResult
from mealcraft.services.shopping_list import (
    build_shopping_list,
    completion_percentage,
    get_shopping_list,
    group_by_category,
    set_ingredient_checked,
)

GENERATE = "mealcraft.services.meal_plans.generate_recipe"


def _recipe(name, ingredients):
    return {
        "name": name,
        "description": f"{name} for dinner.",
        "ingredients": ingredients,
        "instructions": ["Cook everything"],
        "nutrition": {"calories": 600, "protein": 40, "carbs": 50, "fat": 20},
        "prepTime": 10,
        "cookTime": 25,
        "servings": 2,
        "difficulty": "easy",
        "mealType": "dinner",
        "tags": [],
    }


ROAST = _recipe(
    "Roast Chicken",
    [
        {"name": "chicken breast", "quantity": 1, "unit": "lb"},
        {"name": "olive oil", "quantity": 1, "unit": "tbsp"},
    ],
)
BOWL = _recipe(
    "Chicken Oat Bowl",
    [
        {"name": "Chicken Breasts", "quantity": 0.5, "unit": "lbs"},
        {"name": "rolled oats", "quantity": 1, "unit": "cup"},
    ],
)


class ShoppingListTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def _plan_with_meals(self, session):
        plan = await create_weekly_meal_plan(
            session,
            "user-1",
            CreateWeeklyMealPlanRequest(
                name="Dinners",
                startDate=date(2026, 10, 19),
                endDate=date(2026, 10, 25),
                dinnerCount=3,
            ),
        )
        ids = [item.id for item in plan.items]
        results = [RecipeGenerationResult(r, 1.0, [], 1.0, 1.0) for r in (ROAST, BOWL)]
        with mock.patch(GENERATE, new=mock.AsyncMock(side_effect=results)):
            await generate_meal(session, "user-1", plan.id, ids[0])
            await generate_meal(session, "user-1", plan.id, ids[1])
        await set_meal_lock(session, "user-1", plan.id, ids[1], True)
        return plan.id

    async def test_requires_generated_meals(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(
                session,
                "user-1",
                CreateWeeklyMealPlanRequest(
                    name="Empty",
                    startDate=date(2026, 10, 19),
                    endDate=date(2026, 10, 25),
                    lunchCount=1,
                ),
            )
            with self.assertRaises(ValueError) as ctx:
                await build_shopping_list(session, "user-1", plan.id)
            self.assertEqual(str(ctx.exception), "No generated meals found in this meal plan")

            with self.assertRaises(LookupError):
                await get_shopping_list(session, "user-1", plan.id)

    async def test_build_consolidates_generated_and_locked_meals(self):
        async with self.Session() as session:
            plan_id = await self._plan_with_meals(session)
            payload = await build_shopping_list(session, "user-1", plan_id)

            lines = {line["name"]: line for line in payload["ingredients"]}
            self.assertEqual(len(lines), 3)
            self.assertIn("olive oil", lines)
            self.assertEqual(lines["chicken breast"]["quantity"], 1.5)
            self.assertEqual(lines["chicken breast"]["unit"], "lb")
            self.assertEqual(lines["chicken breast"]["recipeNames"], ["Roast Chicken", "Chicken Oat Bowl"])
            self.assertEqual(len(lines["chicken breast"]["recipeIds"]), 2)
            self.assertFalse(any(line["checked"] for line in payload["ingredients"]))

            self.assertEqual(payload["totalItems"], 3)
            self.assertEqual(payload["checkedItems"], 0)
            self.assertEqual(payload["completionPercentage"], 0.0)
            self.assertEqual(payload["stats"]["totalMeals"], 2)
            self.assertEqual(payload["stats"]["categoriesUsed"], len(payload["ingredientsByCategory"]))
            self.assertEqual(payload["ingredientsByCategory"]["poultry"][0]["name"], "chicken breast")

            plan = await get_meal_plan(session, "user-1", plan_id)
            self.assertTrue(serialize_meal_plan(plan)["hasShoppingList"])

    async def test_check_and_rebuild(self):
        async with self.Session() as session:
            plan_id = await self._plan_with_meals(session)
            await build_shopping_list(session, "user-1", plan_id)

            result = await set_ingredient_checked(session, "user-1", plan_id, "olive oil", True, unit="tablespoon")
            self.assertEqual(
                result,
                {"success": True, "ingredientName": "olive oil", "checked": True, "checkedItems": 1},
            )

            stored = await get_shopping_list(session, "user-1", plan_id)
            self.assertEqual(stored["checkedItems"], 1)
            self.assertEqual(stored["completionPercentage"], 33.33)

            with self.assertRaises(LookupError):
                await set_ingredient_checked(session, "user-1", plan_id, "olive oil", True, unit="cup")
            with self.assertRaises(LookupError):
                await set_ingredient_checked(session, "user-1", plan_id, "saffron", True)
            with self.assertRaises(PermissionError):
                await set_ingredient_checked(session, "user-2", plan_id, "olive oil", False)

            rebuilt = await build_shopping_list(session, "user-1", plan_id)
            self.assertEqual(rebuilt["checkedItems"], 0)
            self.assertEqual(rebuilt["id"], stored["id"])


class ShoppingListHelpersTest(TestCase):
    def test_grouping_and_percentage(self):
        grouped = group_by_category([{"name": "salt", "category": "pantry"}, {"name": "mystery"}])
        self.assertEqual(list(grouped), ["pantry", "other"])
        self.assertEqual(completion_percentage(0, 0), 0.0)
        self.assertEqual(completion_percentage(4, 1), 25.0)
