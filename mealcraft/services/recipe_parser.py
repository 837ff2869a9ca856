from __future__ import annotations

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from ..schemas import RecipePayload

logger = logging.getLogger(__name__)


class RecipeParseError(ValueError):
    """The model output could not be turned into a recipe."""


@dataclass
class ParsedRecipe:
    recipe: Dict[str, Any]
    confidence: float
    issues: List[str] = field(default_factory=list)
    nutrition_accuracy: float = 1.0


@dataclass
class ComplexityScore:
    score: int
    factors: List[str]


UNIT_ALIASES = {
    "tablespoons": "tbsp",
    "tablespoon": "tbsp",
    "teaspoons": "tsp",
    "teaspoon": "tsp",
    "cups": "cup",
    "ounces": "oz",
    "ounce": "oz",
    "pounds": "lb",
    "pound": "lb",
}

# Checked in order; the first fraction found in the name wins.
FRACTION_WORDS = [
    ("half", 0.5),
    ("1/2", 0.5),
    ("quarter", 0.25),
    ("1/4", 0.25),
    ("third", 0.33),
    ("1/3", 0.33),
    ("two-thirds", 0.67),
    ("2/3", 0.67),
    ("three-quarters", 0.75),
    ("3/4", 0.75),
]

INGREDIENT_ALIASES = [
    ("egg whites", "egg white"),
    ("egg yolks", "egg yolk"),
    ("spring onions", "green onions"),
    ("scallions", "green onions"),
]

COMPLEX_TECHNIQUES = ["fold", "whisk", "sauté", "braise", "poach", "flambé", "julienne"]

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?")
_INGREDIENT_WITH_UNIT_RE = re.compile(r"^(\d+(?:\.\d+)?)\s+(\w+)\s+(.+)$")
_INGREDIENT_COUNT_RE = re.compile(r"^(\d+(?:\.\d+)?)\s+(.+)$")
_LEADING_ARTICLE_RE = re.compile(r"^(of\s+|the\s+)", re.IGNORECASE)


def clean_json_response(text: str) -> str:
    cleaned = _FENCE_RE.sub("", text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    return cleaned.strip()


def extract_json_from_text(text: str) -> Optional[str]:
    """Return the first brace-balanced object in ``text``."""
    start = text.find("{")
    if start == -1 or text.rfind("}") < start:
        return None
    depth = 0
    end = start
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        end = i
        if depth == 0:
            break
    return text[start : end + 1]


def parse_ingredient_string(value: str) -> Dict[str, Any]:
    match = _INGREDIENT_WITH_UNIT_RE.match(value)
    if match:
        return {"quantity": float(match.group(1)), "unit": match.group(2), "name": match.group(3)}
    match = _INGREDIENT_COUNT_RE.match(value)
    if match:
        return {"quantity": float(match.group(1)), "unit": "unit", "name": match.group(2)}
    return {"quantity": 1, "unit": "unit", "name": value}


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if number == number else 0  # NaN -> 0


def repair_recipe(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill common gaps in a model response before re-validating."""
    data = dict(data)
    if not data.get("name"):
        data["name"] = "Untitled Recipe"
    if not data.get("description"):
        data["description"] = "A delicious recipe"
    if not isinstance(data.get("ingredients"), list):
        data["ingredients"] = []
    if not isinstance(data.get("instructions"), list):
        data["instructions"] = []
    if not data.get("nutrition"):
        data["nutrition"] = {"calories": 0, "protein": 0, "carbs": 0, "fat": 0}
    for key, default in (
        ("prepTime", 15),
        ("cookTime", 20),
        ("servings", 1),
        ("difficulty", "medium"),
        ("mealType", "dinner"),
    ):
        if not data.get(key):
            data[key] = default

    ingredients: List[Dict[str, Any]] = []
    for item in data["ingredients"]:
        if isinstance(item, str):
            ingredients.append(parse_ingredient_string(item))
        elif isinstance(item, Mapping):
            ingredients.append(
                {
                    "name": item.get("name") or "Unknown ingredient",
                    "quantity": _number(item.get("quantity")) or 1,
                    "unit": item.get("unit") or "unit",
                }
            )
    data["ingredients"] = ingredients

    nutrition = data["nutrition"]
    if isinstance(nutrition, Mapping):
        data["nutrition"] = {key: _number(nutrition.get(key)) for key in ("calories", "protein", "carbs", "fat")}
    return data


def normalize_ingredient(ingredient: Mapping[str, Any]) -> Dict[str, Any]:
    name = str(ingredient.get("name") or "")
    quantity = ingredient.get("quantity")
    unit = str(ingredient.get("unit") or "").lower()
    unit = UNIT_ALIASES.get(unit, unit)

    lowered = name.lower()
    for fraction, value in FRACTION_WORDS:
        if fraction in lowered:
            quantity = value
            name = re.sub(re.escape(fraction), "", name, count=1, flags=re.IGNORECASE).strip()
            break

    name = _LEADING_ARTICLE_RE.sub("", name)
    name = re.sub(r"\s+", " ", name).strip()

    for alias, standard in INGREDIENT_ALIASES:
        if alias in name.lower():
            name = name.lower().replace(alias, standard, 1)
            break

    return {"name": name, "quantity": quantity, "unit": unit}


def validate_nutrition_accuracy(nutrition: Mapping[str, float]) -> float:
    """Heuristic 0..1 score of how plausible the stated nutrition is."""
    calories = nutrition["calories"]
    protein = nutrition["protein"]
    carbs = nutrition["carbs"]
    fat = nutrition["fat"]
    accuracy = 1.0

    computed = protein * 4 + carbs * 4 + fat * 9
    variance = abs(computed - calories) / calories
    if variance > 0.2:
        accuracy *= 0.7
    elif variance > 0.1:
        accuracy *= 0.9

    if protein + carbs + fat == 0:
        accuracy = 0.1

    protein_share = protein * 4 / calories
    if protein_share < 0.05 or protein_share > 0.5:
        accuracy *= 0.8

    fat_share = fat * 9 / calories
    if fat_share < 0.1 or fat_share > 0.6:
        accuracy *= 0.8

    if calories < 50 or calories > 2000:
        accuracy *= 0.6

    return max(0.0, accuracy)


def parse_recipe_response(text: str) -> ParsedRecipe:
    issues: List[str] = []
    confidence = 1.0

    try:
        data = json.loads(clean_json_response(text))
    except json.JSONDecodeError:
        logger.info("Initial JSON parse failed; extracting object from text")
        extracted = extract_json_from_text(text)
        if not extracted:
            raise RecipeParseError("No valid JSON found in AI response")
        try:
            data = json.loads(extracted)
        except json.JSONDecodeError as exc:
            raise RecipeParseError("Failed to parse AI response as valid JSON") from exc
        issues.append("Had to extract JSON from text response")
        confidence *= 0.9

    if not isinstance(data, dict):
        raise RecipeParseError("AI response is not a JSON object")

    try:
        recipe = RecipePayload.model_validate(data)
    except ValidationError as exc:
        logger.info("Recipe failed validation (%d errors); attempting repair", exc.error_count())
        try:
            recipe = RecipePayload.model_validate(repair_recipe(data))
        except ValidationError as repair_exc:
            raise RecipeParseError("Recipe validation failed") from repair_exc
        issues.append("Recipe required repairs during validation")
        confidence *= 0.8

    payload = recipe.model_dump()
    payload["ingredients"] = [normalize_ingredient(item) for item in payload["ingredients"]]

    accuracy = validate_nutrition_accuracy(payload["nutrition"])
    if accuracy < 0.8:
        issues.append("Nutrition values may be inaccurate")
        confidence *= 0.9

    logger.debug("Parsed recipe %r with confidence %.2f", payload["name"], confidence)
    return ParsedRecipe(recipe=payload, confidence=confidence, issues=issues, nutrition_accuracy=accuracy)


def extract_ingredient_preferences(
    recipes: Iterable[Mapping[str, Any]],
    feedback: Iterable[Mapping[str, Any]],
) -> Dict[str, List[str]]:
    """Most frequent ingredients across liked and disliked recipes (top 10 each)."""
    by_recipe: Dict[Any, bool] = {}
    for entry in feedback:
        by_recipe.setdefault(entry.get("recipeId"), bool(entry.get("liked")))

    preferred: Counter[str] = Counter()
    avoided: Counter[str] = Counter()
    for recipe in recipes:
        liked = by_recipe.get(recipe.get("id"))
        if liked is None:
            continue
        bucket = preferred if liked else avoided
        for ingredient in recipe.get("ingredients") or []:
            bucket[str(ingredient.get("name", "")).lower()] += 1

    return {
        "preferred": [name for name, _ in preferred.most_common(10)],
        "avoided": [name for name, _ in avoided.most_common(10)],
    }


def calculate_complexity_score(recipe: Mapping[str, Any]) -> ComplexityScore:
    score = 0
    factors: List[str] = []

    ingredient_count = len(recipe.get("ingredients") or [])
    if ingredient_count > 15:
        score += 2
        factors.append("Many ingredients")
    elif ingredient_count > 10:
        score += 1
        factors.append("Several ingredients")

    total_time = (recipe.get("prepTime") or 0) + (recipe.get("cookTime") or 0)
    if total_time > 120:
        score += 3
        factors.append("Long cooking time")
    elif total_time > 60:
        score += 2
        factors.append("Moderate cooking time")
    elif total_time > 30:
        score += 1
        factors.append("Quick cooking time")

    instructions = recipe.get("instructions") or []
    if len(instructions) > 10:
        score += 2
        factors.append("Many steps")
    elif len(instructions) > 6:
        score += 1
        factors.append("Several steps")

    text = " ".join(instructions).lower()
    found = [technique for technique in COMPLEX_TECHNIQUES if technique in text]
    if found:
        score += len(found)
        factors.append(f"Complex techniques: {', '.join(found)}")

    return ComplexityScore(score=min(score, 10), factors=factors)
