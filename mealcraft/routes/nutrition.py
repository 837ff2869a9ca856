from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import get_current_principal
from ..db import get_session
from ..schemas import (
    NutritionProfileResponse,
    NutritionProfileSaveRequest,
    NutritionTargetsRequest,
    NutritionTargetsResponse,
)
from ..services.nutrition import (
    calculate_bmi,
    calculate_bmr,
    calculate_daily_calories,
    calculate_macros,
    get_bmi_category,
    get_macro_distribution,
)
from ..services.nutrition_profiles import (
    get_nutrition_profile,
    serialize_nutrition_profile,
    upsert_nutrition_profile,
)

router = APIRouter(prefix="/nutrition", tags=["nutrition"])


@router.get("/profile", response_model=NutritionProfileResponse)
async def get_profile(principal=Depends(get_current_principal)):
    async with get_session() as session:
        profile = await get_nutrition_profile(session, principal.get("sub"))
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nutrition profile not found")
    return NutritionProfileResponse(**serialize_nutrition_profile(profile))


@router.put("/profile", response_model=NutritionProfileResponse)
async def save_profile(
    payload: NutritionProfileSaveRequest,
    principal=Depends(get_current_principal),
):
    async with get_session() as session:
        profile = await upsert_nutrition_profile(session, principal.get("sub"), payload)
    return NutritionProfileResponse(**serialize_nutrition_profile(profile))


@router.post("/targets", response_model=NutritionTargetsResponse)
def calculate_targets(payload: NutritionTargetsRequest, principal=Depends(get_current_principal)):
    calories = calculate_daily_calories(
        age=payload.age,
        weight_kg=payload.weightKg,
        height_cm=payload.heightCm,
        activity_level=payload.activityLevel,
        goals=payload.goals,
        gender=payload.gender,
    )
    macros = calculate_macros(calories, payload.goals)
    bmi = calculate_bmi(payload.weightKg, payload.heightCm)
    return NutritionTargetsResponse(
        bmr=round(calculate_bmr(payload.age, payload.weightKg, payload.heightCm, payload.gender), 1),
        dailyCalories=calories,
        protein=macros["protein"],
        carbs=macros["carbs"],
        fat=macros["fat"],
        distribution=get_macro_distribution(payload.goals),
        bmi=bmi,
        bmiCategory=get_bmi_category(bmi),
    )
