from __future__ import annotations

import logging
import random
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import MealCategory, MealItemStatus, MealPlanItem, MealPlanStatus, WeeklyMealPlan
from ..schemas import MAX_MEAL_PLAN_PAGE_SIZE, CreateWeeklyMealPlanRequest
from .nutrition_profiles import get_nutrition_profile, serialize_nutrition_profile
from .preference_override import (
    PreferenceMergeContext,
    as_preference_dict,
    compact_preferences,
    merge_preferences,
    merge_two_preferences,
)
from .recipe_generator import (
    RecipeGenerationError,
    RecipeGenerationResult,
    generate_recipe,
    generate_weekly_batch,
)
from .recipes import is_recipe_complete, load_generation_history, serialize_recipe, store_recipe

logger = logging.getLogger(__name__)

MAX_MEALS_PER_PLAN = 28
MAX_MEALS_PER_CATEGORY = 7
DAYS_PER_WEEK = 7
INCOMPLETE_RECIPE_MESSAGE = "Generated recipe is incomplete. Please try again."

_COUNT_FIELDS = {
    MealCategory.BREAKFAST: "breakfastCount",
    MealCategory.LUNCH: "lunchCount",
    MealCategory.DINNER: "dinnerCount",
    MealCategory.SNACK: "snackCount",
}

# Plan-level preference lists replace the profile's when batching a whole week.
_BATCH_OVERRIDE_KEYS = ("allergies", "dietaryRestrictions", "cuisinePreferences")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_meal_plan_request(request: CreateWeeklyMealPlanRequest) -> List[str]:
    errors: List[str] = []
    counts = {category: getattr(request, field) for category, field in _COUNT_FIELDS.items()}
    total = sum(counts.values())

    if total == 0:
        errors.append("At least one meal must be selected")
    if total > MAX_MEALS_PER_PLAN:
        errors.append(f"Maximum {MAX_MEALS_PER_PLAN} meals allowed per plan")
    for category, count in counts.items():
        if count < 0 or count > MAX_MEALS_PER_CATEGORY:
            errors.append(f"{category.capitalize()} count must be between 0 and {MAX_MEALS_PER_CATEGORY}")

    if request.endDate <= request.startDate:
        errors.append("End date must be after start date")

    if not request.name or not request.name.strip():
        errors.append("Plan name is required")
    if request.name and len(request.name) > 255:
        errors.append("Plan name must be 255 characters or less")
    return errors


def build_plan_items(counts: Dict[str, int]) -> List[MealPlanItem]:
    """One pending slot per requested meal, cycling days 1..7 within a category."""
    items: List[MealPlanItem] = []
    for category in MealCategory.ORDER:
        for i in range(counts.get(category, 0)):
            items.append(
                MealPlanItem(
                    category=category,
                    day_number=(i % DAYS_PER_WEEK) + 1,
                    status=MealItemStatus.PENDING,
                )
            )
    return items


async def _load_plan(session: AsyncSession, plan_id: int) -> Optional[WeeklyMealPlan]:
    result = await session.execute(
        select(WeeklyMealPlan)
        .where(WeeklyMealPlan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_meal_plan(session: AsyncSession, user_id: str, plan_id: int) -> WeeklyMealPlan:
    plan = await _load_plan(session, plan_id)
    if plan is None:
        raise LookupError("Meal plan not found")
    if plan.user_id != user_id:
        raise PermissionError("Meal plan belongs to another user")
    return plan


def get_plan_item(plan: WeeklyMealPlan, meal_id: int) -> MealPlanItem:
    for item in plan.items:
        if item.id == meal_id:
            return item
    raise LookupError("Meal item not found")


async def create_weekly_meal_plan(
    session: AsyncSession,
    user_id: str,
    request: CreateWeeklyMealPlanRequest,
) -> WeeklyMealPlan:
    errors = validate_meal_plan_request(request)
    if errors:
        raise ValueError("; ".join(errors))

    counts = {category: getattr(request, field) for category, field in _COUNT_FIELDS.items()}
    plan = WeeklyMealPlan(
        user_id=user_id,
        name=request.name.strip(),
        description=request.description or None,
        start_date=request.startDate,
        end_date=request.endDate,
        breakfast_count=request.breakfastCount,
        lunch_count=request.lunchCount,
        dinner_count=request.dinnerCount,
        snack_count=request.snackCount,
        total_meals=sum(counts.values()),
        status=MealPlanStatus.IN_PROGRESS,
        global_preferences=as_preference_dict(request.globalPreferences) or None,
        items=build_plan_items(counts),
    )
    session.add(plan)
    try:
        await session.commit()
    except Exception:  # pragma: no cover
        await session.rollback()
        raise
    logger.info("Created meal plan %s with %d meals for user %s", plan.id, plan.total_meals, user_id)
    return await get_meal_plan(session, user_id, plan.id)


async def list_user_meal_plans(
    session: AsyncSession,
    user_id: str,
    *,
    status: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[WeeklyMealPlan], int, int]:
    if status is not None and status not in MealPlanStatus.ALL:
        raise ValueError(f"Unsupported status '{status}'")
    if offset < 0:
        raise ValueError("offset must be non-negative")
    limit = max(1, min(limit, MAX_MEAL_PLAN_PAGE_SIZE))

    filters = [WeeklyMealPlan.user_id == user_id]
    if status:
        filters.append(WeeklyMealPlan.status == status)

    total = (
        await session.execute(select(func.count()).select_from(WeeklyMealPlan).where(*filters))
    ).scalar_one()
    result = await session.execute(
        select(WeeklyMealPlan)
        .where(*filters)
        .order_by(WeeklyMealPlan.created_at.desc(), WeeklyMealPlan.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars()), int(total or 0), limit


async def update_meal_plan_status(
    session: AsyncSession, user_id: str, plan_id: int, status: str
) -> WeeklyMealPlan:
    if status not in MealPlanStatus.ALL:
        raise ValueError(f"Unsupported status '{status}'")
    plan = await get_meal_plan(session, user_id, plan_id)
    plan.status = status
    await session.commit()
    return await get_meal_plan(session, user_id, plan_id)


async def delete_meal_plan(session: AsyncSession, user_id: str, plan_id: int) -> None:
    plan = await get_meal_plan(session, user_id, plan_id)
    await session.delete(plan)
    await session.commit()
    logger.info("Deleted meal plan %s for user %s", plan_id, user_id)


def check_category_completion(plan: WeeklyMealPlan, category: str) -> Dict[str, Any]:
    meals = [item for item in plan.items if item.category == category]
    locked = [item for item in meals if item.status == MealItemStatus.LOCKED]
    return {
        "isComplete": bool(meals) and len(locked) == len(meals),
        "totalMeals": len(meals),
        "lockedMeals": len(locked),
    }


def check_plan_completion(plan: WeeklyMealPlan) -> Dict[str, Any]:
    items = list(plan.items)
    locked = [item for item in items if item.status == MealItemStatus.LOCKED]
    return {
        "isComplete": bool(items) and len(locked) == len(items),
        "totalMeals": len(items),
        "lockedMeals": len(locked),
        "completionByCategory": {
            category: check_category_completion(plan, category) for category in MealCategory.ORDER
        },
    }


def get_next_category_to_process(plan: WeeklyMealPlan) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """First category, in breakfast/lunch/dinner/snack order, that still has unlocked meals."""
    completion = check_plan_completion(plan)["completionByCategory"]
    order = [
        {"category": category, **completion[category]}
        for category in MealCategory.ORDER
        if completion[category]["totalMeals"] > 0
    ]
    pending = next((entry for entry in order if not entry["isComplete"]), None)
    return (pending["category"] if pending else None), order


async def archive_old_meal_plans(
    session: AsyncSession,
    user_id: str,
    days_old: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    days = days_old if days_old is not None else get_settings().meal_plan_archive_after_days
    cutoff = (now or _utcnow()) - timedelta(days=days)
    result = await session.execute(
        update(WeeklyMealPlan)
        .where(
            WeeklyMealPlan.user_id == user_id,
            WeeklyMealPlan.status == MealPlanStatus.COMPLETED,
            WeeklyMealPlan.created_at < cutoff,
        )
        .values(status=MealPlanStatus.ARCHIVED)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    archived = int(result.rowcount or 0)
    if archived:
        logger.info("Archived %d meal plans for user %s", archived, user_id)
    return archived


async def _reset_item(session: AsyncSession, item_id: int) -> None:
    await session.rollback()
    await session.execute(
        update(MealPlanItem)
        .where(MealPlanItem.id == item_id)
        .values(status=MealItemStatus.PENDING)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def generate_meal(
    session: AsyncSession,
    user_id: str,
    plan_id: int,
    meal_id: int,
    custom_preferences: Any = None,
    *,
    rng: Optional[random.Random] = None,
) -> Tuple[WeeklyMealPlan, MealPlanItem, RecipeGenerationResult]:
    """Fill one slot with a freshly generated recipe.

    The slot is marked ``generating`` while the model runs and falls back to
    ``pending`` when anything goes wrong.
    """
    plan = await get_meal_plan(session, user_id, plan_id)
    item = get_plan_item(plan, meal_id)
    if item.status == MealItemStatus.LOCKED:
        raise ValueError("Unlock the meal before regenerating it")

    item_id = item.id
    category = item.category
    global_preferences = plan.global_preferences
    # request preferences win over the ones stored on the slot
    slot_preferences = compact_preferences(merge_two_preferences(item.custom_preferences, custom_preferences))
    item.status = MealItemStatus.GENERATING
    await session.commit()

    try:
        profile = await get_nutrition_profile(session, user_id)
        context = PreferenceMergeContext(profile=profile, global_preferences=global_preferences)
        request = merge_preferences(slot_preferences, context, category).model_copy(
            update={"sessionId": f"meal-plan-{plan_id}", "varietyBoost": True}
        )
        recipes, feedbacks = await load_generation_history(session, user_id)
        result = await generate_recipe(
            request,
            user_id=user_id,
            recipes=recipes,
            feedbacks=feedbacks,
            profile=serialize_nutrition_profile(profile),
            rng=rng,
        )
        if not is_recipe_complete(result.recipe):
            raise RecipeGenerationError(INCOMPLETE_RECIPE_MESSAGE)

        recipe_row = await store_recipe(session, user_id, result.recipe, commit=False)
        await session.execute(
            update(MealPlanItem)
            .where(MealPlanItem.id == item_id)
            .values(
                recipe_id=recipe_row.id,
                status=MealItemStatus.GENERATED,
                custom_preferences=slot_preferences or None,
                locked_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except Exception:
        logger.warning("Meal generation failed for plan=%s meal=%s; slot reset", plan_id, item_id)
        await _reset_item(session, item_id)
        raise

    plan = await get_meal_plan(session, user_id, plan_id)
    logger.info("Generated %s for plan=%s meal=%s", category, plan_id, item_id)
    return plan, get_plan_item(plan, item_id), result


async def set_meal_lock(
    session: AsyncSession,
    user_id: str,
    plan_id: int,
    meal_id: int,
    locked: bool,
) -> Dict[str, Any]:
    plan = await get_meal_plan(session, user_id, plan_id)
    item = get_plan_item(plan, meal_id)

    if locked:
        if not item.recipe_id or item.status != MealItemStatus.GENERATED:
            raise ValueError("Cannot lock a meal without a generated recipe")
        item.status = MealItemStatus.LOCKED
        item.locked_at = _utcnow()
    elif item.status == MealItemStatus.LOCKED:
        item.status = MealItemStatus.GENERATED
        item.locked_at = None

    category_complete = check_category_completion(plan, item.category)["isComplete"]
    plan_complete = check_plan_completion(plan)["isComplete"]
    if plan_complete and plan.status != MealPlanStatus.COMPLETED:
        plan.status = MealPlanStatus.COMPLETED
        logger.info("Meal plan %s completed", plan_id)
    await session.commit()

    plan = await get_meal_plan(session, user_id, plan_id)
    return {
        "plan": plan,
        "item": get_plan_item(plan, meal_id),
        "categoryComplete": category_complete,
        "planComplete": plan_complete,
    }


def _batch_profile(profile_payload: Optional[Dict[str, Any]], global_preferences: Optional[Dict[str, Any]]):
    payload = dict(profile_payload or {})
    for key in _BATCH_OVERRIDE_KEYS:
        values = (global_preferences or {}).get(key)
        if values:
            payload[key] = list(values)
    return payload or None


async def generate_plan_meals(
    session: AsyncSession,
    user_id: str,
    plan_id: int,
    meal_ids: Optional[Iterable[int]] = None,
) -> Tuple[WeeklyMealPlan, List[int], List[int]]:
    """Fill several slots from a single weekly-plan completion.

    Locked slots are left alone. Returns the reloaded plan, the ids of the
    slots that received a recipe and the ids that were skipped.
    """
    plan = await get_meal_plan(session, user_id, plan_id)
    wanted = set(meal_ids or [])
    items = [item for item in plan.items if not wanted or item.id in wanted]
    if not items:
        raise ValueError("No meals found to generate")

    targets = [item for item in items if item.status != MealItemStatus.LOCKED]
    skipped = [item.id for item in items if item.status == MealItemStatus.LOCKED]
    if not targets:
        return plan, [], skipped

    counts = Counter(item.category for item in targets)
    profile = await get_nutrition_profile(session, user_id)
    batches = await generate_weekly_batch(
        counts, profile=_batch_profile(serialize_nutrition_profile(profile), plan.global_preferences)
    )

    generated: List[int] = []
    for category in MealCategory.ORDER:
        slots = [item for item in targets if item.category == category]
        recipes = batches.get(category, [])
        for item, recipe in zip(slots, recipes):
            recipe_row = await store_recipe(session, user_id, recipe, commit=False)
            item.recipe_id = recipe_row.id
            item.status = MealItemStatus.GENERATED
            item.locked_at = None
            generated.append(item.id)
        skipped.extend(item.id for item in slots[len(recipes):])
    await session.commit()

    logger.info("Batch generated %d of %d meals for plan %s", len(generated), len(targets), plan_id)
    return await get_meal_plan(session, user_id, plan_id), generated, skipped


def serialize_meal_item(item: MealPlanItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "planId": item.plan_id,
        "recipeId": item.recipe_id,
        "category": item.category,
        "dayNumber": item.day_number,
        "status": item.status,
        "customPreferences": item.custom_preferences,
        "lockedAt": item.locked_at,
        "recipe": serialize_recipe(item.recipe) if item.recipe_id and item.recipe is not None else None,
    }


def serialize_meal_plan(plan: WeeklyMealPlan, include_items: bool = True) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": plan.id,
        "name": plan.name,
        "description": plan.description,
        "startDate": plan.start_date,
        "endDate": plan.end_date,
        "breakfastCount": plan.breakfast_count,
        "lunchCount": plan.lunch_count,
        "dinnerCount": plan.dinner_count,
        "snackCount": plan.snack_count,
        "totalMeals": plan.total_meals,
        "status": plan.status,
        "globalPreferences": plan.global_preferences,
        "createdAt": plan.created_at,
        "updatedAt": plan.updated_at,
        "hasShoppingList": plan.shopping_list is not None,
        "mealPlanItems": [],
    }
    if include_items:
        payload["mealPlanItems"] = [serialize_meal_item(item) for item in plan.items]
    return payload
