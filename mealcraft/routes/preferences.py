from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import get_current_principal
from ..models import MealCategory
from ..schemas import MealPreferences, PreferenceValidationResponse
from ..services.preference_override import (
    get_category_defaults,
    get_preference_presets,
    has_significant_overrides,
    validate_preferences,
)

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.post("/validate", response_model=PreferenceValidationResponse)
def validate(payload: MealPreferences, principal=Depends(get_current_principal)):
    return PreferenceValidationResponse(**validate_preferences(payload).as_dict())


@router.get("/presets")
def presets(principal=Depends(get_current_principal)):
    return {"presets": get_preference_presets()}


@router.get("/defaults/{category}")
def category_defaults(category: str, principal=Depends(get_current_principal)):
    if category not in MealCategory.ORDER:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown meal category '{category}'")
    return {"category": category, "defaults": get_category_defaults(category)}


@router.post("/defaults/{category}/compare")
def compare_to_defaults(
    category: str,
    payload: MealPreferences,
    principal=Depends(get_current_principal),
):
    if category not in MealCategory.ORDER:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown meal category '{category}'")
    return {"category": category, "hasSignificantOverrides": has_significant_overrides(payload, category)}
