from __future__ import annotations

from datetime import date, datetime, timezone
from unittest import IsolatedAsyncioTestCase, mock

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mealcraft.models import Base
from mealcraft.schemas import CreateWeeklyMealPlanRequest, MealPreferences
from mealcraft.services.meal_plans import (
    archive_old_meal_plans,
    check_plan_completion,
    create_weekly_meal_plan,
    delete_meal_plan,
    generate_meal,
    generate_plan_meals,
    get_meal_plan,
    get_next_category_to_process,
    list_user_meal_plans,
    serialize_meal_plan,
    set_meal_lock,
    update_meal_plan_status,
    validate_meal_plan_request,
)
from mealcraft.services.recipe_generator import RecipeGenerationError, RecipeGenerationResult
from mealcraft.services.recipes import delete_recipe

GENERATE = "mealcraft.services.meal_plans.generate_recipe"
BATCH = "mealcraft.services.meal_plans.generate_weekly_batch"


def _recipe(name="Oat Bowl", meal_type="breakfast"):
    return {
        "name": name,
        "description": "Warm oats with berries.",
        "ingredients": [{"name": "rolled oats", "quantity": 1, "unit": "cup"}],
        "instructions": ["Simmer the oats"],
        "nutrition": {"calories": 350, "protein": 12, "carbs": 55, "fat": 8},
        "prepTime": 5,
        "cookTime": 10,
        "servings": 1,
        "difficulty": "easy",
        "cuisineType": "American",
        "mealType": meal_type,
        "tags": ["breakfast"],
    }


def _result(recipe):
    return RecipeGenerationResult(recipe, 1.0, [], 1.0, 1.0)


def _request(**overrides):
    values = dict(
        name="Week one",
        startDate=date(2026, 10, 19),
        endDate=date(2026, 10, 25),
        breakfastCount=2,
        dinnerCount=1,
    )
    values.update(overrides)
    return CreateWeeklyMealPlanRequest(**values)


class ValidateRequestTest(IsolatedAsyncioTestCase):
    async def test_validation_messages(self):
        errors = validate_meal_plan_request(
            _request(name="  ", breakfastCount=0, dinnerCount=0, endDate=date(2026, 10, 19))
        )
        self.assertEqual(
            errors,
            ["At least one meal must be selected", "End date must be after start date", "Plan name is required"],
        )

    async def test_category_and_total_caps(self):
        errors = validate_meal_plan_request(
            _request(breakfastCount=8, lunchCount=7, dinnerCount=7, snackCount=7)
        )
        self.assertEqual(
            errors,
            ["Maximum 28 meals allowed per plan", "Breakfast count must be between 0 and 7"],
        )


class MealPlanServiceTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def test_create_builds_pending_slots(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(
                session,
                "user-1",
                _request(name=" Week one ", globalPreferences=MealPreferences(allergies=["Soy"])),
            )

        self.assertEqual(plan.name, "Week one")
        self.assertEqual(plan.total_meals, 3)
        self.assertEqual(plan.status, "in_progress")
        self.assertEqual(plan.global_preferences, {"allergies": ["Soy"]})
        self.assertEqual(
            [(item.category, item.day_number, item.status) for item in plan.items],
            [("breakfast", 1, "pending"), ("breakfast", 2, "pending"), ("dinner", 1, "pending")],
        )
        payload = serialize_meal_plan(plan)
        self.assertFalse(payload["hasShoppingList"])
        self.assertEqual(len(payload["mealPlanItems"]), 3)
        self.assertEqual(serialize_meal_plan(plan, include_items=False)["mealPlanItems"], [])

    async def test_invalid_request_raises(self):
        async with self.Session() as session:
            with self.assertRaises(ValueError) as ctx:
                await create_weekly_meal_plan(session, "user-1", _request(breakfastCount=0, dinnerCount=0))
        self.assertIn("At least one meal must be selected", str(ctx.exception))

    async def test_ownership_and_missing_plan(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request())
            with self.assertRaises(PermissionError):
                await get_meal_plan(session, "user-2", plan.id)
            with self.assertRaises(LookupError):
                await get_meal_plan(session, "user-1", plan.id + 100)

    async def test_list_filters_and_pages(self):
        async with self.Session() as session:
            first = await create_weekly_meal_plan(session, "user-1", _request(name="First"))
            await create_weekly_meal_plan(session, "user-1", _request(name="Second"))
            await create_weekly_meal_plan(session, "user-2", _request(name="Other"))
            await update_meal_plan_status(session, "user-1", first.id, "completed")

            plans, total, limit = await list_user_meal_plans(session, "user-1")
            self.assertEqual(total, 2)
            self.assertEqual(limit, 10)
            self.assertEqual({p.name for p in plans}, {"First", "Second"})

            plans, total, _ = await list_user_meal_plans(session, "user-1", status="completed")
            self.assertEqual([p.name for p in plans], ["First"])
            self.assertEqual(total, 1)

            with self.assertRaises(ValueError):
                await list_user_meal_plans(session, "user-1", status="done")
            with self.assertRaises(ValueError):
                await update_meal_plan_status(session, "user-1", first.id, "done")

    async def test_archive_only_touches_old_completed_plans(self):
        async with self.Session() as session:
            done = await create_weekly_meal_plan(session, "user-1", _request(name="Done"))
            active = await create_weekly_meal_plan(session, "user-1", _request(name="Active"))
            await update_meal_plan_status(session, "user-1", done.id, "completed")

            self.assertEqual(await archive_old_meal_plans(session, "user-1"), 0)

            later = datetime(2100, 1, 1, tzinfo=timezone.utc)
            self.assertEqual(await archive_old_meal_plans(session, "user-1", now=later), 1)

            done = await get_meal_plan(session, "user-1", done.id)
            active = await get_meal_plan(session, "user-1", active.id)
            self.assertEqual(done.status, "archived")
            self.assertEqual(active.status, "in_progress")

    async def test_generate_lock_and_complete(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request(breakfastCount=1, dinnerCount=0))
            meal_id = plan.items[0].id

            with self.assertRaises(ValueError):
                await set_meal_lock(session, "user-1", plan.id, meal_id, True)

            with mock.patch(GENERATE, new=mock.AsyncMock(return_value=_result(_recipe()))) as generate:
                plan, item, result = await generate_meal(
                    session, "user-1", plan.id, meal_id, {"calories": 320}
                )

            request = generate.await_args.args[0]
            self.assertEqual(request.mealType, "breakfast")
            self.assertEqual(request.calories, 320)
            self.assertEqual(request.sessionId, f"meal-plan-{plan.id}")
            self.assertTrue(request.varietyBoost)

            self.assertEqual(item.status, "generated")
            self.assertEqual(item.custom_preferences, {"calories": 320})
            self.assertEqual(item.recipe.name, "Oat Bowl")
            self.assertEqual(result.confidence, 1.0)

            outcome = await set_meal_lock(session, "user-1", plan.id, meal_id, True)
            self.assertTrue(outcome["categoryComplete"])
            self.assertTrue(outcome["planComplete"])
            self.assertEqual(outcome["item"].status, "locked")
            self.assertIsNotNone(outcome["item"].locked_at)
            self.assertEqual(outcome["plan"].status, "completed")

            with self.assertRaises(ValueError) as ctx:
                await generate_meal(session, "user-1", plan.id, meal_id)
            self.assertEqual(str(ctx.exception), "Unlock the meal before regenerating it")

            outcome = await set_meal_lock(session, "user-1", plan.id, meal_id, False)
            self.assertEqual(outcome["item"].status, "generated")
            self.assertIsNone(outcome["item"].locked_at)
            self.assertFalse(outcome["planComplete"])

    async def test_failed_generation_resets_slot(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request())
            meal_id = plan.items[0].id

            failing = mock.AsyncMock(side_effect=RecipeGenerationError("model returned nothing"))
            with mock.patch(GENERATE, new=failing):
                with self.assertRaises(RecipeGenerationError):
                    await generate_meal(session, "user-1", plan.id, meal_id)

            plan = await get_meal_plan(session, "user-1", plan.id)
            self.assertEqual(plan.items[0].status, "pending")
            self.assertIsNone(plan.items[0].recipe_id)

    async def test_incomplete_recipe_is_rejected(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request())
            meal_id = plan.items[0].id

            partial = dict(_recipe(), description="")
            with mock.patch(GENERATE, new=mock.AsyncMock(return_value=_result(partial))):
                with self.assertRaises(RecipeGenerationError):
                    await generate_meal(session, "user-1", plan.id, meal_id)

            plan = await get_meal_plan(session, "user-1", plan.id)
            self.assertEqual(plan.items[0].status, "pending")

    async def test_next_category_follows_meal_order(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request())
            category, order = get_next_category_to_process(plan)
            self.assertEqual(category, "breakfast")
            self.assertEqual([entry["category"] for entry in order], ["breakfast", "dinner"])
            completion = check_plan_completion(plan)
            self.assertFalse(completion["isComplete"])
            self.assertEqual(completion["completionByCategory"]["lunch"]["totalMeals"], 0)

    async def test_batch_generation_skips_locked_slots(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request(dinnerCount=2))
            breakfast_ids = [item.id for item in plan.items if item.category == "breakfast"]
            dinner_ids = [item.id for item in plan.items if item.category == "dinner"]

            with mock.patch(GENERATE, new=mock.AsyncMock(return_value=_result(_recipe()))):
                await generate_meal(session, "user-1", plan.id, breakfast_ids[0])
            await set_meal_lock(session, "user-1", plan.id, breakfast_ids[0], True)

            batches = {
                "breakfast": [_recipe("Egg Muffin")],
                "lunch": [],
                "dinner": [_recipe("Chili", "dinner")],
                "snack": [],
            }
            with mock.patch(BATCH, new=mock.AsyncMock(return_value=batches)) as batch:
                plan, generated, skipped = await generate_plan_meals(session, "user-1", plan.id)

            counts = batch.await_args.args[0]
            self.assertEqual(dict(counts), {"breakfast": 1, "dinner": 2})
            self.assertEqual(generated, [breakfast_ids[1], dinner_ids[0]])
            self.assertEqual(skipped, [breakfast_ids[0], dinner_ids[1]])

            by_id = {item.id: item for item in plan.items}
            self.assertEqual(by_id[breakfast_ids[0]].status, "locked")
            self.assertEqual(by_id[breakfast_ids[1]].recipe.name, "Egg Muffin")
            self.assertEqual(by_id[dinner_ids[0]].status, "generated")
            self.assertEqual(by_id[dinner_ids[1]].status, "pending")

            with self.assertRaises(ValueError):
                await generate_plan_meals(session, "user-1", plan.id, meal_ids=[9999])

    async def test_deleting_a_used_recipe_reopens_its_slot(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request(breakfastCount=1, dinnerCount=0))
            meal_id = plan.items[0].id
            with mock.patch(GENERATE, new=mock.AsyncMock(return_value=_result(_recipe()))):
                plan, item, _ = await generate_meal(session, "user-1", plan.id, meal_id)
            recipe_id = item.recipe_id
            await set_meal_lock(session, "user-1", plan.id, meal_id, True)

            await delete_recipe(session, "user-1", recipe_id)

            plan = await get_meal_plan(session, "user-1", plan.id)
            slot = plan.items[0]
            self.assertEqual(slot.status, "pending")
            self.assertIsNone(slot.recipe_id)
            self.assertIsNone(slot.locked_at)
            self.assertEqual(check_plan_completion(plan)["lockedMeals"], 0)
            self.assertIsNone(serialize_meal_plan(plan)["mealPlanItems"][0]["recipe"])

    async def test_delete_plan(self):
        async with self.Session() as session:
            plan = await create_weekly_meal_plan(session, "user-1", _request())
            with self.assertRaises(PermissionError):
                await delete_meal_plan(session, "user-2", plan.id)
            await delete_meal_plan(session, "user-1", plan.id)
            with self.assertRaises(LookupError):
                await get_meal_plan(session, "user-1", plan.id)
