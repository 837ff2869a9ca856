"""Merging and validation of meal-level preference overrides.

Preferences flow in four layers, lowest priority first: the user's nutrition
profile (scaled to the meal), per-category defaults, the plan's global
preferences and finally the preferences sent for a single meal. Scalars take
the highest-priority value present; lists are unioned in layer order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models import NutritionProfile
from ..schemas import (
    COMMON_ALLERGIES,
    CUISINE_TYPES,
    DIETARY_RESTRICTIONS,
    RecipeGenerationRequest,
    UserProfileContext,
)
from .nutrition import round_half_up

MAX_PREP_TIME = 180
MAX_COOK_TIME = 480

LIST_FIELDS = ("allergies", "dietaryRestrictions", "cuisinePreferences")
SCALAR_FIELDS = ("maxPrepTime", "maxCookTime", "difficultyLevel", "calories", "protein", "carbs", "fat")

MEAL_NUTRITION_FRACTIONS: Dict[str, float] = {
    "breakfast": 0.25,
    "lunch": 0.35,
    "dinner": 0.30,
    "snack": 0.10,
}

_CATEGORY_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "breakfast": {"maxPrepTime": 20, "maxCookTime": 30, "calories": 400, "protein": 15, "carbs": 45, "fat": 15},
    "lunch": {"maxPrepTime": 30, "maxCookTime": 45, "calories": 500, "protein": 25, "carbs": 50, "fat": 20},
    "dinner": {
        "maxPrepTime": 45,
        "maxCookTime": 60,
        "calories": 600,
        "protein": 30,
        "carbs": 60,
        "fat": 25,
        "difficultyLevel": "medium",
    },
    "snack": {"maxPrepTime": 10, "maxCookTime": 15, "calories": 200, "protein": 8, "carbs": 20, "fat": 8},
}

# Minimum distance from the category default that counts as a real override.
_SIGNIFICANCE_THRESHOLDS: Dict[str, float] = {
    "maxPrepTime": 10,
    "maxCookTime": 15,
    "calories": 100,
    "protein": 10,
    "carbs": 15,
    "fat": 10,
}

PREFERENCE_PRESETS: Dict[str, Dict[str, Any]] = {
    "low-carb": {"dietaryRestrictions": ["Low-carb"], "carbs": 20, "protein": 35, "fat": 25},
    "high-protein": {
        "protein": 40,
        "carbs": 30,
        "fat": 15,
        "cuisinePreferences": ["Mediterranean", "American"],
    },
    "quick-meals": {"maxPrepTime": 15, "maxCookTime": 20, "difficultyLevel": "easy"},
    "vegetarian-balanced": {
        "dietaryRestrictions": ["Vegetarian"],
        "protein": 20,
        "carbs": 50,
        "fat": 20,
        "cuisinePreferences": ["Mediterranean", "Indian", "Italian"],
    },
    "keto-friendly": {"dietaryRestrictions": ["Keto"], "carbs": 10, "protein": 25, "fat": 35},
    "mediterranean": {
        "cuisinePreferences": ["Mediterranean", "Greek", "Italian"],
        "dietaryRestrictions": ["Mediterranean"],
        "fat": 25,
    },
    "comfort-food": {"cuisinePreferences": ["American", "Italian"], "calories": 650, "difficultyLevel": "medium"},
}


@dataclass
class PreferenceMergeContext:
    profile: Optional[NutritionProfile] = None
    global_preferences: Optional[Mapping[str, Any]] = None
    category_defaults: Dict[str, Mapping[str, Any]] = field(default_factory=dict)


@dataclass
class PreferenceValidationResult:
    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def as_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def as_preference_dict(prefs: Any) -> Dict[str, Any]:
    """Accept a MealPreferences model or a plain mapping and drop unset keys."""
    if prefs is None:
        return {}
    if hasattr(prefs, "model_dump"):
        return prefs.model_dump(exclude_none=True)
    return {k: v for k, v in dict(prefs).items() if v is not None}


def merge_unique(lists: Iterable[Iterable[str] | None]) -> List[str]:
    merged: List[str] = []
    for values in lists:
        for value in values or []:
            if value not in merged:
                merged.append(value)
    return merged


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def get_category_defaults(category: str) -> Dict[str, Any]:
    defaults: Dict[str, Any] = {
        "allergies": [],
        "dietaryRestrictions": [],
        "cuisinePreferences": [],
        "difficultyLevel": "easy",
    }
    defaults.update(_CATEGORY_DEFAULTS.get(category, {}))
    return defaults


def get_preference_presets() -> Dict[str, Dict[str, Any]]:
    return {name: dict(preset) for name, preset in PREFERENCE_PRESETS.items()}


def _scaled(value: Optional[int], fraction: float) -> Optional[int]:
    if not value:
        return None
    return round_half_up(value * fraction)


def preferences_from_profile(profile: Optional[NutritionProfile], category: str) -> Dict[str, Any]:
    """Per-meal targets derived from the daily totals stored on the profile."""
    if profile is None:
        return get_category_defaults(category)
    fraction = MEAL_NUTRITION_FRACTIONS.get(category, 0.25)
    return {
        "allergies": list(profile.allergies or []),
        "dietaryRestrictions": list(profile.dietary_restrictions or []),
        "cuisinePreferences": list(profile.cuisine_preferences or []),
        "calories": _scaled(profile.daily_calories, fraction),
        "protein": _scaled(profile.macro_protein, fraction),
        "carbs": _scaled(profile.macro_carbs, fraction),
        "fat": _scaled(profile.macro_fat, fraction),
    }


def _profile_context(profile: Optional[NutritionProfile]) -> Optional[UserProfileContext]:
    if profile is None:
        return None
    return UserProfileContext(
        age=profile.age or None,
        weight=profile.weight_kg or None,
        height=profile.height_cm or None,
        activityLevel=profile.activity_level or None,
        goals=profile.goals or None,
    )


def merge_preferences(
    custom: Any,
    context: PreferenceMergeContext,
    meal_category: str,
) -> RecipeGenerationRequest:
    custom_prefs = as_preference_dict(custom)
    global_prefs = as_preference_dict(context.global_preferences)
    category_prefs = as_preference_dict(context.category_defaults.get(meal_category))
    base = preferences_from_profile(context.profile, meal_category)
    layers = (base, category_prefs, global_prefs, custom_prefs)

    def pick(key: str) -> Any:
        return _first_present(custom_prefs.get(key), global_prefs.get(key), category_prefs.get(key), base.get(key))

    def positive(value: Any) -> Any:
        return value if value is None or value > 0 else None

    def non_negative(value: Any) -> Any:
        return value if value is None or value >= 0 else None

    profile = context.profile
    return RecipeGenerationRequest(
        mealType=meal_category,
        calories=positive(pick("calories")),
        protein=non_negative(pick("protein")),
        carbs=non_negative(pick("carbs")),
        fat=non_negative(pick("fat")),
        allergies=merge_unique(layer.get("allergies") for layer in layers),
        dietaryRestrictions=merge_unique(layer.get("dietaryRestrictions") for layer in layers),
        cuisinePreferences=merge_unique(layer.get("cuisinePreferences") for layer in layers),
        userProfile=_profile_context(profile),
        mealComplexity=(profile.meal_complexity if profile is not None else None),
        maxPrepTime=pick("maxPrepTime"),
        maxCookTime=pick("maxCookTime"),
        difficulty=pick("difficultyLevel"),
    )


def validate_preferences(prefs: Any) -> PreferenceValidationResult:
    p = as_preference_dict(prefs)
    errors: List[str] = []
    warnings: List[str] = []

    prep = p.get("maxPrepTime")
    if prep is not None:
        if prep < 0:
            errors.append("Maximum prep time cannot be negative")
        elif prep > MAX_PREP_TIME:
            errors.append(f"Maximum prep time cannot exceed {MAX_PREP_TIME} minutes")
        elif prep < 5:
            warnings.append("Very short prep time may limit recipe options")

    cook = p.get("maxCookTime")
    if cook is not None:
        if cook < 0:
            errors.append("Maximum cook time cannot be negative")
        elif cook > MAX_COOK_TIME:
            errors.append(f"Maximum cook time cannot exceed {MAX_COOK_TIME} minutes")
        elif cook < 5:
            warnings.append("Very short cook time may limit recipe options")

    calories = p.get("calories")
    if calories is not None:
        if calories < 0:
            errors.append("Calories cannot be negative")
        elif calories > 2000:
            warnings.append("Very high calorie target for a single meal")
        elif calories < 100:
            warnings.append("Very low calorie target may be difficult to achieve")

    for key, label, high_label, ceiling in (
        ("protein", "Protein", "protein", 100),
        ("carbs", "Carbs", "carb", 150),
        ("fat", "Fat", "fat", 100),
    ):
        value = p.get(key)
        if value is None:
            continue
        if value < 0:
            errors.append(f"{label} cannot be negative")
        elif value > ceiling:
            warnings.append(f"Very high {high_label} target for a single meal")

    for key, known, label in (
        ("allergies", COMMON_ALLERGIES, "allergies"),
        ("dietaryRestrictions", DIETARY_RESTRICTIONS, "dietary restrictions"),
        ("cuisinePreferences", CUISINE_TYPES, "cuisines"),
    ):
        unknown = [value for value in p.get(key) or [] if value not in known]
        if unknown:
            warnings.append(f"Unknown {label}: {', '.join(unknown)}")

    restrictions = p.get("dietaryRestrictions") or []
    if "Vegan" in restrictions and "Keto" in restrictions:
        warnings.append("Vegan and Keto diets may be difficult to combine")
    if "Low-carb" in restrictions and (p.get("carbs") or 0) > 50:
        warnings.append("High carb target conflicts with low-carb dietary restriction")

    return PreferenceValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def merge_two_preferences(base: Any, override: Any) -> Dict[str, Any]:
    b = as_preference_dict(base)
    o = as_preference_dict(override)
    merged: Dict[str, Any] = {key: merge_unique([b.get(key), o.get(key)]) for key in LIST_FIELDS}
    for key in SCALAR_FIELDS:
        merged[key] = _first_present(o.get(key), b.get(key))
    return merged


def apply_global_overrides(existing: Iterable[Any], overrides: Any, category: str) -> List[Dict[str, Any]]:
    # category is accepted for parity with per-category rules; none apply yet
    return [merge_two_preferences(prefs, overrides) for prefs in existing]


def has_significant_overrides(prefs: Any, category: str) -> bool:
    p = as_preference_dict(prefs)
    defaults = get_category_defaults(category)
    if any(p.get(key) for key in LIST_FIELDS):
        return True
    for key, threshold in _SIGNIFICANCE_THRESHOLDS.items():
        value = p.get(key)
        if value and abs(value - (defaults.get(key) or 0)) > threshold:
            return True
    difficulty = p.get("difficultyLevel")
    return bool(difficulty and difficulty != defaults.get("difficultyLevel"))


def compact_preferences(prefs: Any) -> Dict[str, Any]:
    return {key: value for key, value in as_preference_dict(prefs).items() if value not in (None, [])}


def fill_request_from_profile(
    request: RecipeGenerationRequest,
    profile: Optional[NutritionProfile],
) -> RecipeGenerationRequest:
    """Fill whatever a standalone generation request left out from the stored profile.

    Targets fall back to the profile's daily totals and the complexity to
    ``simple``; allergy entries of "None" are dropped either way.
    """
    sent = request.model_fields_set
    update: Dict[str, Any] = {}
    if profile is not None:
        if "allergies" not in sent:
            update["allergies"] = list(profile.allergies or [])
        if "dietaryRestrictions" not in sent:
            update["dietaryRestrictions"] = list(profile.dietary_restrictions or [])
        if "cuisinePreferences" not in sent:
            update["cuisinePreferences"] = list(profile.cuisine_preferences or [])
        for key, column in (
            ("calories", "daily_calories"),
            ("protein", "macro_protein"),
            ("carbs", "macro_carbs"),
            ("fat", "macro_fat"),
        ):
            value = getattr(profile, column)
            if getattr(request, key) is None and value:
                update[key] = value
        if request.userProfile is None:
            update["userProfile"] = _profile_context(profile)

    allergies = update.get("allergies", request.allergies)
    update["allergies"] = [a for a in allergies if a and a.lower() != "none"]
    if request.mealComplexity is None:
        update["mealComplexity"] = (profile.meal_complexity if profile is not None else None) or "simple"
    return request.model_copy(update=update)
