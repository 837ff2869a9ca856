from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth import get_current_principal
from ..db import get_session
from ..ratelimit import limiter, recipe_generation_limit
from ..schemas import (
    MAX_SAVED_RECIPES_PAGE_SIZE,
    RecipeFeedbackRequest,
    RecipeFeedbackResponse,
    RecipeGenerateResponse,
    RecipeGenerationRequest,
    RecipeListResponse,
    RecipeRatingRequest,
    RecipeResponse,
    RecipeSaveRequest,
)
from ..services.nutrition_profiles import get_nutrition_profile, serialize_nutrition_profile
from ..services.preference_override import fill_request_from_profile
from ..services.recipe_generator import RecipeGenerationError, generate_recipe
from ..services.recipes import (
    delete_recipe,
    get_user_recipe,
    is_recipe_complete,
    list_saved_recipes,
    load_generation_history,
    rate_recipe,
    record_feedback,
    serialize_feedback,
    serialize_recipe,
    set_recipe_saved,
    store_recipe,
)
from ..services.usage_limits import RECIPE_GENERATION, UPGRADE_MESSAGES, check_usage_limit, increment_usage
from .common import SERVICE_ERRORS, principal_account, service_error

router = APIRouter(prefix="/recipes", tags=["recipes"])

logger = logging.getLogger(__name__)


@router.post("/generate", response_model=RecipeGenerateResponse)
@limiter.limit(recipe_generation_limit)
async def generate(
    request: Request,
    payload: RecipeGenerationRequest,
    principal=Depends(get_current_principal),
):
    user_id = principal.get("sub")
    async with get_session() as session:
        await principal_account(session, principal)
        if not await check_usage_limit(session, user_id, RECIPE_GENERATION):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=UPGRADE_MESSAGES[RECIPE_GENERATION],
            )

        profile = await get_nutrition_profile(session, user_id)
        generation_request = fill_request_from_profile(payload, profile)
        if not generation_request.sessionId:
            generation_request = generation_request.model_copy(update={"sessionId": user_id})
        recipes, feedbacks = await load_generation_history(session, user_id)

        try:
            result = await generate_recipe(
                generation_request,
                user_id=user_id,
                recipes=recipes,
                feedbacks=feedbacks,
                profile=serialize_nutrition_profile(profile),
                learning_enabled=True,
            )
            if not is_recipe_complete(result.recipe):
                raise RecipeGenerationError("Generated recipe is incomplete. Please try again.")
        except SERVICE_ERRORS as exc:
            raise service_error(exc)

        row = await store_recipe(session, user_id, result.recipe)
        await increment_usage(session, user_id, RECIPE_GENERATION)

    logger.info("Stored generated recipe %s for user %s", row.id, user_id)
    return RecipeGenerateResponse(
        recipe=serialize_recipe(row),
        recipeId=row.id,
        confidence=result.confidence,
        issues=result.issues,
        nutritionAccuracy=result.nutrition_accuracy,
        varietyScore=result.variety_score,
        metadata=result.metadata,
    )


@router.post("/save", response_model=RecipeResponse)
async def save(payload: RecipeSaveRequest, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            recipe = await set_recipe_saved(
                session,
                principal.get("sub"),
                recipe_id=payload.recipeId,
                payload=payload.recipe,
                is_saved=payload.isSaved,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return RecipeResponse(**serialize_recipe(recipe))


@router.get("/saved", response_model=RecipeListResponse)
async def saved(
    search: Optional[str] = None,
    mealType: Optional[str] = None,
    difficulty: Optional[str] = None,
    sort: str = "newest",
    limit: int = Query(default=10, ge=1, le=MAX_SAVED_RECIPES_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            recipes, total = await list_saved_recipes(
                session,
                principal.get("sub"),
                search=search,
                meal_type=mealType,
                difficulty=difficulty,
                sort=sort,
                limit=limit,
                offset=offset,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return RecipeListResponse(
        recipes=[RecipeResponse(**serialize_recipe(r)) for r in recipes],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/feedback", response_model=RecipeFeedbackResponse)
async def feedback(payload: RecipeFeedbackRequest, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            entry = await record_feedback(
                session,
                principal.get("sub"),
                payload.recipeId,
                liked=payload.liked,
                feedback=payload.feedback,
                reported_issues=payload.reportedIssues,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return RecipeFeedbackResponse(**serialize_feedback(entry))


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(recipe_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            recipe = await get_user_recipe(session, principal.get("sub"), recipe_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return RecipeResponse(**serialize_recipe(recipe))


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_recipe(recipe_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            await delete_recipe(session, principal.get("sub"), recipe_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)


@router.put("/{recipe_id}/rating", response_model=RecipeResponse)
async def rate(recipe_id: int, payload: RecipeRatingRequest, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            recipe = await rate_recipe(session, principal.get("sub"), recipe_id, payload.rating)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return RecipeResponse(**serialize_recipe(recipe))
