"""Calorie, macro and BMI calculations used by profiles and preference merging."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping

ACTIVITY_MULTIPLIERS: Dict[str, float] = {
    "sedentary": 1.2,
    "lightly_active": 1.375,
    "moderately_active": 1.55,
    "very_active": 1.725,
    "extremely_active": 1.9,
}

# protein / carbs / fat percentages
MACRO_DISTRIBUTIONS: Dict[str, Dict[str, int]] = {
    "gain_muscle": {"protein": 30, "carbs": 40, "fat": 30},
    "lose_weight": {"protein": 35, "carbs": 30, "fat": 35},
    "gain_weight": {"protein": 25, "carbs": 45, "fat": 30},
}
DEFAULT_MACRO_DISTRIBUTION: Dict[str, int] = {"protein": 25, "carbs": 45, "fat": 30}

GOAL_CALORIE_ADJUSTMENTS: Dict[str, int] = {
    "lose_weight": -500,
    "gain_weight": 300,
    "gain_muscle": 300,
}


def round_half_up(value: float) -> int:
    """Round halves upward (2.5 -> 3), matching the client-side calculators."""
    return int(math.floor(value + 0.5))


def calculate_bmr(age: float, weight_kg: float, height_cm: float, gender: str) -> float:
    """Mifflin-St Jeor basal metabolic rate."""
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age
    return base + 5 if gender == "male" else base - 161


def calculate_daily_calories(
    *,
    age: float,
    weight_kg: float,
    height_cm: float,
    activity_level: str | None,
    goals: str | None,
    gender: str,
) -> int:
    bmr = calculate_bmr(age, weight_kg, height_cm, gender)
    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level or "", 1.2)
    daily = bmr * multiplier + GOAL_CALORIE_ADJUSTMENTS.get(goals or "", 0)
    return round_half_up(daily)


def get_macro_distribution(goals: str | None) -> Dict[str, int]:
    return dict(MACRO_DISTRIBUTIONS.get(goals or "", DEFAULT_MACRO_DISTRIBUTION))


def calculate_macros(total_calories: float, goals: str | None) -> Dict[str, int]:
    """Grams of protein/carbs/fat for a calorie total (4/4/9 kcal per gram)."""
    dist = get_macro_distribution(goals)
    return {
        "protein": round_half_up(total_calories * dist["protein"] / 100 / 4),
        "carbs": round_half_up(total_calories * dist["carbs"] / 100 / 4),
        "fat": round_half_up(total_calories * dist["fat"] / 100 / 9),
    }


def validate_nutrition_profile(profile: Mapping[str, Any]) -> bool:
    """True when the profile carries everything needed to derive targets."""
    return all(
        profile.get(key)
        for key in ("age", "height", "weight", "activityLevel", "goals")
    )


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    height_m = height_cm / 100
    return round_half_up(weight_kg / (height_m * height_m) * 10) / 10


def get_bmi_category(bmi: float) -> str:
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal weight"
    if bmi < 30:
        return "Overweight"
    return "Obese"
