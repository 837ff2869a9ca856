from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_current_principal
from ..db import get_session
from ..schemas import IngredientCheckRequest, IngredientCheckResponse, ShoppingListResponse
from ..services.shopping_list import build_shopping_list, get_shopping_list, set_ingredient_checked
from .common import SERVICE_ERRORS, service_error


router = APIRouter(prefix="/meal-plans/weekly/{plan_id}/shopping-list", tags=["shopping-list"])


@router.post("", response_model=ShoppingListResponse)
async def create_shopping_list(plan_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            body = await build_shopping_list(session, principal.get("sub"), plan_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return ShoppingListResponse(**body)


@router.get("", response_model=ShoppingListResponse)
async def read_shopping_list(plan_id: int, principal=Depends(get_current_principal)):
    async with get_session() as session:
        try:
            body = await get_shopping_list(session, principal.get("sub"), plan_id)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return ShoppingListResponse(**body)


@router.patch("/ingredient", response_model=IngredientCheckResponse)
async def check_ingredient(
    plan_id: int,
    payload: IngredientCheckRequest,
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        try:
            result = await set_ingredient_checked(
                session,
                principal.get("sub"),
                plan_id,
                payload.ingredientName,
                payload.checked,
                unit=payload.unit,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return IngredientCheckResponse(**result)
