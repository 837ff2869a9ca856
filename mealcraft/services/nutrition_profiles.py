from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import NutritionProfile
from ..schemas import NutritionProfileSaveRequest
from .nutrition import (
    calculate_bmi,
    calculate_daily_calories,
    calculate_macros,
    get_bmi_category,
    validate_nutrition_profile,
)

logger = logging.getLogger(__name__)

# request field -> column
_FIELD_MAP = {
    "age": "age",
    "heightCm": "height_cm",
    "weightKg": "weight_kg",
    "gender": "gender",
    "activityLevel": "activity_level",
    "goals": "goals",
    "mealComplexity": "meal_complexity",
    "dailyCalories": "daily_calories",
    "macroProtein": "macro_protein",
    "macroCarbs": "macro_carbs",
    "macroFat": "macro_fat",
    "allergies": "allergies",
    "dietaryRestrictions": "dietary_restrictions",
    "cuisinePreferences": "cuisine_preferences",
}

_TARGET_FIELDS = ("dailyCalories", "macroProtein", "macroCarbs", "macroFat")


def clean_allergies(values: Optional[Iterable[str]]) -> List[str]:
    """Drop blanks and the literal "None" option from an allergy list."""
    cleaned: List[str] = []
    for value in values or []:
        text = str(value).strip()
        if text and text.lower() != "none" and text not in cleaned:
            cleaned.append(text)
    return cleaned


def is_profile_complete(profile: Optional[NutritionProfile]) -> bool:
    if profile is None:
        return False
    return validate_nutrition_profile(
        {
            "age": profile.age,
            "height": profile.height_cm,
            "weight": profile.weight_kg,
            "activityLevel": profile.activity_level,
            "goals": profile.goals,
        }
    )


def derive_targets(profile: NutritionProfile) -> Dict[str, int]:
    calories = calculate_daily_calories(
        age=profile.age,
        weight_kg=profile.weight_kg,
        height_cm=profile.height_cm,
        activity_level=profile.activity_level,
        goals=profile.goals,
        gender=profile.gender or "male",
    )
    macros = calculate_macros(calories, profile.goals)
    return {
        "dailyCalories": calories,
        "macroProtein": macros["protein"],
        "macroCarbs": macros["carbs"],
        "macroFat": macros["fat"],
    }


async def get_nutrition_profile(session: AsyncSession, user_id: str) -> Optional[NutritionProfile]:
    return await session.get(NutritionProfile, user_id)


async def upsert_nutrition_profile(
    session: AsyncSession,
    user_id: str,
    payload: NutritionProfileSaveRequest,
) -> NutritionProfile:
    """Apply the fields the caller sent; derive missing targets once complete."""
    profile = await session.get(NutritionProfile, user_id)
    if profile is None:
        profile = NutritionProfile(user_id=user_id, allergies=[], dietary_restrictions=[], cuisine_preferences=[])
        session.add(profile)

    data = payload.model_dump(exclude_unset=True)
    if "allergies" in data:
        data["allergies"] = clean_allergies(data["allergies"])
    for key, value in data.items():
        column = _FIELD_MAP.get(key)
        if column is not None:
            setattr(profile, column, value)

    targets_sent = any(data.get(key) for key in _TARGET_FIELDS)
    if not targets_sent and is_profile_complete(profile):
        for key, value in derive_targets(profile).items():
            setattr(profile, _FIELD_MAP[key], value)
        logger.info("Derived nutrition targets for user %s", user_id)

    try:
        await session.commit()
    except Exception:  # pragma: no cover
        await session.rollback()
        raise
    await session.refresh(profile)
    return profile


def serialize_nutrition_profile(profile: Optional[NutritionProfile]) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    payload: Dict[str, Any] = {key: getattr(profile, column) for key, column in _FIELD_MAP.items()}
    payload["allergies"] = list(profile.allergies or [])
    payload["dietaryRestrictions"] = list(profile.dietary_restrictions or [])
    payload["cuisinePreferences"] = list(profile.cuisine_preferences or [])
    if profile.height_cm and profile.weight_kg:
        bmi = calculate_bmi(profile.weight_kg, profile.height_cm)
        payload["bmi"] = bmi
        payload["bmiCategory"] = get_bmi_category(bmi)
    else:
        payload["bmi"] = None
        payload["bmiCategory"] = None
    payload["isComplete"] = is_profile_complete(profile)
    payload["updatedAt"] = profile.updated_at
    return payload
