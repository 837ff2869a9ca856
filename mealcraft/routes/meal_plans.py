from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth import get_current_principal
from ..db import get_session
from ..ratelimit import limiter, recipe_generation_limit
from ..schemas import (
    MAX_MEAL_PLAN_PAGE_SIZE,
    ArchiveResponse,
    BatchGenerateMealsRequest,
    BatchGenerateMealsResponse,
    CreateWeeklyMealPlanRequest,
    GenerateMealRequest,
    GenerateMealResponse,
    LockMealRequest,
    LockMealResponse,
    MealPlanItemResponse,
    MealPlanListResponse,
    MealPlanStatusUpdateRequest,
    PlanCompletionResponse,
    WeeklyMealPlanResponse,
)
from ..services.meal_plans import (
    archive_old_meal_plans,
    check_plan_completion,
    create_weekly_meal_plan,
    delete_meal_plan,
    generate_meal,
    generate_plan_meals,
    get_meal_plan,
    get_next_category_to_process,
    get_plan_item,
    list_user_meal_plans,
    serialize_meal_item,
    serialize_meal_plan,
    set_meal_lock,
    update_meal_plan_status,
)
from ..services.usage_limits import MEAL_PLAN_CREATION, UPGRADE_MESSAGES, check_usage_limit, increment_usage
from .common import SERVICE_ERRORS, principal_account, service_error

router = APIRouter(prefix="/meal-plans/weekly", tags=["meal-plans"])


@router.post("", response_model=WeeklyMealPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(payload: CreateWeeklyMealPlanRequest, principal=Depends(get_current_principal)):
    user_id = principal.get("sub")
    async with get_session() as session:
        await principal_account(session, principal)
        if not await check_usage_limit(session, user_id, MEAL_PLAN_CREATION):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=UPGRADE_MESSAGES[MEAL_PLAN_CREATION],
            )
        try:
            plan = await create_weekly_meal_plan(session, user_id, payload)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        await increment_usage(session, user_id, MEAL_PLAN_CREATION)
        body = serialize_meal_plan(plan)
    return WeeklyMealPlanResponse(**body)


@router.get("", response_model=MealPlanListResponse)
async def list_plans(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=10, ge=1, le=MAX_MEAL_PLAN_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            plans, total, limit = await list_user_meal_plans(
                session,
                principal.get("sub"),
                status=status_filter,
                limit=limit,
                offset=offset,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        bodies = [serialize_meal_plan(plan, include_items=False) for plan in plans]
    return MealPlanListResponse(
        plans=[WeeklyMealPlanResponse(**body) for body in bodies],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/archive", response_model=ArchiveResponse)
async def archive_plans(
    days_old: Optional[int] = Query(default=None, alias="daysOld", ge=1),
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        archived = await archive_old_meal_plans(session, principal.get("sub"), days_old)
    return ArchiveResponse(archived=archived)


@router.get("/{plan_id}", response_model=WeeklyMealPlanResponse)
async def get_plan(plan_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            plan = await get_meal_plan(session, principal.get("sub"), plan_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        body = serialize_meal_plan(plan)
    return WeeklyMealPlanResponse(**body)


@router.patch("/{plan_id}", response_model=WeeklyMealPlanResponse)
async def update_plan_status(
    plan_id: int,
    payload: MealPlanStatusUpdateRequest,
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            plan = await update_meal_plan_status(session, principal.get("sub"), plan_id, payload.status)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        body = serialize_meal_plan(plan)
    return WeeklyMealPlanResponse(**body)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_plan(plan_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            await delete_meal_plan(session, principal.get("sub"), plan_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)


@router.get("/{plan_id}/completion", response_model=PlanCompletionResponse)
async def plan_completion(plan_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            plan = await get_meal_plan(session, principal.get("sub"), plan_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        completion = check_plan_completion(plan)
        next_category, _ = get_next_category_to_process(plan)
    return PlanCompletionResponse(**completion, nextCategory=next_category)


@router.post("/{plan_id}/meals/generate", response_model=BatchGenerateMealsResponse)
@limiter.limit(recipe_generation_limit)
async def batch_generate(
    request: Request,
    plan_id: int,
    payload: BatchGenerateMealsRequest,
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            plan, generated, skipped = await generate_plan_meals(
                session, principal.get("sub"), plan_id, payload.mealIds
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        items = [serialize_meal_item(get_plan_item(plan, meal_id)) for meal_id in generated]
    return BatchGenerateMealsResponse(
        generated=[MealPlanItemResponse(**item) for item in items],
        skipped=skipped,
    )


@router.post("/{plan_id}/meals/{meal_id}/generate", response_model=GenerateMealResponse)
@limiter.limit(recipe_generation_limit)
async def generate_single_meal(
    request: Request,
    plan_id: int,
    meal_id: int,
    payload: Optional[GenerateMealRequest] = None,
    principal=Depends(get_current_principal),
):
    custom = payload.customPreferences if payload else None
    async with get_session() as session:
        try:
            _, item, result = await generate_meal(session, principal.get("sub"), plan_id, meal_id, custom)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        body = serialize_meal_item(item)
    return GenerateMealResponse(
        item=MealPlanItemResponse(**body),
        recipe=body["recipe"],
        confidence=result.confidence,
        issues=result.issues,
        varietyScore=result.variety_score,
    )


@router.patch("/{plan_id}/meals/{meal_id}/lock", response_model=LockMealResponse)
async def lock_meal(
    plan_id: int,
    meal_id: int,
    payload: LockMealRequest,
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            outcome = await set_meal_lock(session, principal.get("sub"), plan_id, meal_id, payload.locked)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
        body = serialize_meal_item(outcome["item"])
        plan_status = outcome["plan"].status
    return LockMealResponse(
        item=MealPlanItemResponse(**body),
        categoryComplete=outcome["categoryComplete"],
        planComplete=outcome["planComplete"],
        planStatus=plan_status,
    )
