from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import MealItemStatus, ShoppingList, WeeklyMealPlan
from .ingredient_consolidator import (
    ConsolidatedIngredient,
    consolidate_ingredients,
    normalize_unit,
)
from .meal_plans import get_meal_plan

logger = logging.getLogger(__name__)

# Slots whose recipes feed the list.
SHOPPABLE_STATUSES = (MealItemStatus.GENERATED, MealItemStatus.LOCKED)


def _unique(values: List[Any]) -> List[Any]:
    seen: List[Any] = []
    for value in values:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


def _line(item: ConsolidatedIngredient) -> Dict[str, Any]:
    return {
        "name": item.name,
        "quantity": round(item.quantity, 2),
        "unit": item.unit,
        "category": item.category,
        "checked": False,
        "recipeNames": _unique([source.get("recipeName") for source in item.sources]),
        "recipeIds": _unique([source.get("recipeId") for source in item.sources]),
    }


def collect_plan_ingredients(plan: WeeklyMealPlan) -> tuple[List[Dict[str, Any]], int]:
    """Every ingredient of the plan's filled slots, tagged with its recipe."""
    ingredients: List[Dict[str, Any]] = []
    meals = 0
    for item in plan.items:
        if item.status not in SHOPPABLE_STATUSES or item.recipe is None:
            continue
        meals += 1
        for ingredient in item.recipe.ingredients or []:
            ingredients.append(
                {
                    "name": ingredient.get("name"),
                    "quantity": ingredient.get("quantity"),
                    "unit": ingredient.get("unit"),
                    "recipeName": item.recipe.name,
                    "recipeId": item.recipe.id,
                }
            )
    return ingredients, meals


def group_by_category(lines: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for line in lines:
        grouped.setdefault(line.get("category") or "other", []).append(line)
    return grouped


def completion_percentage(total: int, checked: int) -> float:
    return round(checked / total * 100, 2) if total else 0.0


async def _list_for_plan(session: AsyncSession, plan_id: int) -> Optional[ShoppingList]:
    result = await session.execute(
        select(ShoppingList)
        .where(ShoppingList.plan_id == plan_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def build_shopping_list(session: AsyncSession, user_id: str, plan_id: int) -> Dict[str, Any]:
    """(Re)build the plan's list from its generated and locked meals.

    Rebuilding replaces the stored lines and clears every check mark.
    """
    plan = await get_meal_plan(session, user_id, plan_id)
    ingredients, meals = collect_plan_ingredients(plan)
    if meals == 0:
        raise ValueError("No generated meals found in this meal plan")
    if not ingredients:
        raise ValueError("No ingredients found in generated meals")

    lines = [_line(item) for item in consolidate_ingredients(ingredients)]
    shopping_list = await _list_for_plan(session, plan_id)
    if shopping_list is None:
        shopping_list = ShoppingList(plan_id=plan_id)
        session.add(shopping_list)
    shopping_list.ingredients = lines
    shopping_list.total_items = len(lines)
    shopping_list.checked_items = 0
    shopping_list.export_metadata = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "totalMeals": meals,
    }
    try:
        await session.commit()
    except Exception:  # pragma: no cover
        await session.rollback()
        raise
    await session.refresh(shopping_list)
    logger.info("Built shopping list for plan %s: %d lines from %d meals", plan_id, len(lines), meals)
    return serialize_shopping_list(shopping_list)


async def get_shopping_list(session: AsyncSession, user_id: str, plan_id: int) -> Dict[str, Any]:
    await get_meal_plan(session, user_id, plan_id)
    shopping_list = await _list_for_plan(session, plan_id)
    if shopping_list is None:
        raise LookupError("Shopping list not found for this meal plan")
    return serialize_shopping_list(shopping_list)


async def set_ingredient_checked(
    session: AsyncSession,
    user_id: str,
    plan_id: int,
    ingredient_name: str,
    checked: bool,
    unit: Optional[str] = None,
) -> Dict[str, Any]:
    """Tick or untick every line with this name (and unit, when given)."""
    await get_meal_plan(session, user_id, plan_id)
    shopping_list = await _list_for_plan(session, plan_id)
    if shopping_list is None:
        raise LookupError("Shopping list not found")

    wanted_unit = normalize_unit(unit) if unit else None
    matched = False
    lines: List[Dict[str, Any]] = []
    for line in shopping_list.ingredients or []:
        line = dict(line)
        if line.get("name") == ingredient_name and (wanted_unit is None or line.get("unit") == wanted_unit):
            line["checked"] = checked
            matched = True
        lines.append(line)
    if not matched:
        raise LookupError(f"Ingredient '{ingredient_name}' is not on this shopping list")

    # assign a fresh list so the JSON column is flagged dirty
    shopping_list.ingredients = lines
    shopping_list.checked_items = sum(1 for line in lines if line.get("checked"))
    await session.commit()
    return {
        "success": True,
        "ingredientName": ingredient_name,
        "checked": checked,
        "checkedItems": shopping_list.checked_items,
    }


def serialize_shopping_list(shopping_list: ShoppingList) -> Dict[str, Any]:
    lines = list(shopping_list.ingredients or [])
    by_category = group_by_category(lines)
    checked = sum(1 for line in lines if line.get("checked"))
    meals = (shopping_list.export_metadata or {}).get("totalMeals", 0)
    return {
        "id": shopping_list.id,
        "planId": shopping_list.plan_id,
        "ingredients": lines,
        "totalItems": len(lines),
        "checkedItems": checked,
        "completionPercentage": completion_percentage(len(lines), checked),
        "ingredientsByCategory": by_category,
        "stats": {
            "totalIngredients": len(lines),
            "totalMeals": meals,
            "categoriesUsed": len(by_category),
        },
        "updatedAt": shopping_list.updated_at,
    }
