from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import MealItemStatus, MealPlanItem, Recipe, RecipeFeedback
from ..schemas import MAX_SAVED_RECIPES_PAGE_SIZE, RecipePayload

logger = logging.getLogger(__name__)

RECENT_RECIPE_LIMIT = 20
SORT_ORDERS = {
    "newest": Recipe.created_at.desc(),
    "oldest": Recipe.created_at.asc(),
    "name": Recipe.name.asc(),
}


def serialize_recipe(recipe: Recipe) -> Dict[str, Any]:
    return {
        "id": recipe.id,
        "name": recipe.name,
        "description": recipe.description or "",
        "ingredients": list(recipe.ingredients or []),
        "instructions": list(recipe.instructions or []),
        "nutrition": dict(recipe.nutrition or {}),
        "prepTime": recipe.prep_time or 0,
        "cookTime": recipe.cook_time or 0,
        "servings": recipe.servings or 1,
        "difficulty": recipe.difficulty or "medium",
        "mealType": recipe.meal_type or "dinner",
        "cuisineType": recipe.cuisine_type,
        "tags": list(recipe.tags or []),
        "isSaved": bool(recipe.is_saved),
        "rating": recipe.rating,
        "createdAt": recipe.created_at,
    }


def serialize_feedback(entry: RecipeFeedback) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "recipeId": entry.recipe_id,
        "userId": entry.user_id,
        "liked": entry.liked,
        "feedback": entry.feedback,
        "reportedIssues": list(entry.reported_issues or []),
        "createdAt": entry.created_at,
    }


def is_recipe_complete(recipe: Optional[Mapping[str, Any]]) -> bool:
    """Everything a stored recipe needs before it can fill a slot or be saved."""
    if not recipe:
        return False
    return bool(
        recipe.get("name")
        and recipe.get("description")
        and isinstance(recipe.get("ingredients"), list)
        and recipe["ingredients"]
        and isinstance(recipe.get("instructions"), list)
        and recipe["instructions"]
        and recipe.get("nutrition")
        and recipe.get("mealType")
    )


async def store_recipe(
    session: AsyncSession,
    user_id: str,
    recipe: Mapping[str, Any],
    *,
    is_saved: bool = False,
    commit: bool = True,
) -> Recipe:
    row = Recipe(
        user_id=user_id,
        name=recipe["name"],
        description=recipe.get("description"),
        ingredients=list(recipe.get("ingredients") or []),
        instructions=list(recipe.get("instructions") or []),
        nutrition=dict(recipe.get("nutrition") or {}),
        prep_time=int(recipe.get("prepTime") or 0),
        cook_time=int(recipe.get("cookTime") or 0),
        servings=int(recipe.get("servings") or 1),
        difficulty=recipe.get("difficulty"),
        cuisine_type=recipe.get("cuisineType"),
        meal_type=recipe.get("mealType"),
        tags=list(recipe.get("tags") or []),
        is_saved=is_saved,
    )
    session.add(row)
    if commit:
        try:
            await session.commit()
        except Exception:  # pragma: no cover
            await session.rollback()
            raise
        await session.refresh(row)
    else:
        await session.flush()
    return row


async def get_user_recipe(session: AsyncSession, user_id: str, recipe_id: int) -> Recipe:
    recipe = await session.get(Recipe, recipe_id)
    if recipe is None:
        raise LookupError("Recipe not found")
    if recipe.user_id != user_id:
        raise PermissionError("Recipe belongs to another user")
    return recipe


async def set_recipe_saved(
    session: AsyncSession,
    user_id: str,
    *,
    recipe_id: Optional[int] = None,
    payload: Optional[RecipePayload] = None,
    is_saved: bool = True,
) -> Recipe:
    """Flag an existing recipe as (un)saved, or store a new one as saved."""
    if recipe_id is None:
        if payload is None:
            raise ValueError("recipeId or recipe is required")
        return await store_recipe(session, user_id, payload.model_dump(), is_saved=is_saved)

    recipe = await get_user_recipe(session, user_id, recipe_id)
    recipe.is_saved = is_saved
    await session.commit()
    await session.refresh(recipe)
    return recipe


async def list_saved_recipes(
    session: AsyncSession,
    user_id: str,
    *,
    search: Optional[str] = None,
    meal_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    sort: str = "newest",
    is_saved: bool = True,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Recipe], int]:
    if limit < 1 or limit > MAX_SAVED_RECIPES_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_SAVED_RECIPES_PAGE_SIZE}")
    if offset < 0:
        raise ValueError("offset must be non-negative")
    if sort not in SORT_ORDERS:
        raise ValueError(f"Unsupported sort '{sort}'")

    filters = [Recipe.user_id == user_id, Recipe.is_saved == is_saved]
    if search:
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            func.lower(Recipe.name).like(pattern) | func.lower(func.coalesce(Recipe.description, "")).like(pattern)
        )
    if meal_type:
        filters.append(Recipe.meal_type == meal_type)
    if difficulty:
        filters.append(Recipe.difficulty == difficulty)

    total = (await session.execute(select(func.count()).select_from(Recipe).where(*filters))).scalar_one()
    result = await session.execute(
        select(Recipe).where(*filters).order_by(SORT_ORDERS[sort], Recipe.id.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars()), int(total or 0)


async def delete_recipe(session: AsyncSession, user_id: str, recipe_id: int) -> None:
    """Delete a recipe; plan slots that used it go back to ``pending``."""
    recipe = await get_user_recipe(session, user_id, recipe_id)
    await session.execute(
        update(MealPlanItem)
        .where(MealPlanItem.recipe_id == recipe.id)
        .values(recipe_id=None, status=MealItemStatus.PENDING, locked_at=None)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(delete(RecipeFeedback).where(RecipeFeedback.recipe_id == recipe.id))
    await session.delete(recipe)
    await session.commit()
    logger.info("Deleted recipe %s for user %s", recipe_id, user_id)


async def record_feedback(
    session: AsyncSession,
    user_id: str,
    recipe_id: int,
    *,
    liked: bool,
    feedback: Optional[str] = None,
    reported_issues: Optional[List[str]] = None,
) -> RecipeFeedback:
    """One feedback row per user and recipe; later submissions replace it."""
    await get_user_recipe(session, user_id, recipe_id)
    values = {
        "liked": liked,
        "feedback": feedback or None,
        "reported_issues": list(reported_issues or []),
    }
    entry = await _feedback_row(session, user_id, recipe_id)
    if entry is None:
        entry = RecipeFeedback(recipe_id=recipe_id, user_id=user_id, **values)
        session.add(entry)
    else:
        for key, value in values.items():
            setattr(entry, key, value)

    try:
        await session.commit()
    except IntegrityError:
        # a concurrent submission inserted the row first
        await session.rollback()
        entry = await _feedback_row(session, user_id, recipe_id)
        if entry is None:
            raise
        for key, value in values.items():
            setattr(entry, key, value)
        await session.commit()
    await session.refresh(entry)
    return entry


async def _feedback_row(session: AsyncSession, user_id: str, recipe_id: int) -> Optional[RecipeFeedback]:
    result = await session.execute(
        select(RecipeFeedback)
        .where(RecipeFeedback.recipe_id == recipe_id, RecipeFeedback.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def rate_recipe(session: AsyncSession, user_id: str, recipe_id: int, rating: int) -> Recipe:
    if not 1 <= rating <= 5:
        raise ValueError("rating must be between 1 and 5")
    recipe = await get_user_recipe(session, user_id, recipe_id)
    recipe.rating = rating
    await session.commit()
    await session.refresh(recipe)
    return recipe


async def load_generation_history(
    session: AsyncSession,
    user_id: str,
    limit: int = RECENT_RECIPE_LIMIT,
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """The user's latest recipes (oldest first) and the feedback left on them."""
    result = await session.execute(
        select(Recipe)
        .where(Recipe.user_id == user_id)
        .order_by(Recipe.created_at.desc(), Recipe.id.desc())
        .limit(limit)
    )
    recipes = [serialize_recipe(r) for r in reversed(list(result.scalars())) if r.description]
    ids = [r["id"] for r in recipes]
    if not ids:
        return recipes, []
    feedback_result = await session.execute(
        select(RecipeFeedback)
        .where(RecipeFeedback.user_id == user_id, RecipeFeedback.recipe_id.in_(ids))
        .order_by(RecipeFeedback.created_at.asc(), RecipeFeedback.id.asc())
    )
    return recipes, [serialize_feedback(f) for f in feedback_result.scalars()]
