from __future__ import annotations

import asyncio
import json
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fastapi import HTTPException, status
from pydantic import ValidationError

from ..config import get_settings
from ..schemas import RecipeGenerationRequest, RecipePayload
from .feedback import build_feedback_context, process_feedback
from .openai_responses import call_openai_responses
from .prompts import (
    FALLBACK_SYSTEM_PROMPT,
    PromptTemplate,
    UserContext,
    build_basic_prompt,
    build_variety_enhanced_prompt,
    build_weekly_meal_plan_prompt,
)
from .recipe_parser import (
    RecipeParseError,
    calculate_complexity_score,
    clean_json_response,
    extract_ingredient_preferences,
    normalize_ingredient,
    parse_recipe_response,
)
from .variety import (
    VarietyConfig,
    calculate_variety_score,
    dietary_tags,
    enhance_tags,
    generate_variety_config,
    load_session,
    remember_recipe,
)

logger = logging.getLogger(__name__)

FALLBACK_TEMPERATURE = 0.8
FALLBACK_ISSUE = "Used fallback generation method"
MIN_FEEDBACK_FOR_PREFERENCES = 3

# A missing model configuration cannot be fixed by a simpler prompt.
_UNRECOVERABLE_STATUS = {status.HTTP_503_SERVICE_UNAVAILABLE}

WEEKLY_PLAN_KEYS = {
    "breakfast": "breakfasts",
    "lunch": "lunches",
    "dinner": "dinners",
    "snack": "snacks",
}


class RecipeGenerationError(RuntimeError):
    """Both the enhanced and the fallback generation attempts failed."""


@dataclass
class RecipeGenerationResult:
    recipe: Dict[str, Any]
    confidence: float
    issues: List[str]
    nutrition_accuracy: float
    variety_score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def rank_score(self) -> float:
        return self.confidence * 0.4 + self.nutrition_accuracy * 0.3 + self.variety_score * 0.3


@dataclass
class GenerationPatternReport:
    average_confidence: float
    average_nutrition_accuracy: float
    common_issues: List[str]
    recommended_improvements: List[str]


def build_user_context(
    profile: Optional[Dict[str, Any]],
    recipes: Sequence[Mapping[str, Any]] = (),
    feedbacks: Sequence[Mapping[str, Any]] = (),
) -> UserContext:
    context = UserContext(profile=profile)
    if recipes and len(feedbacks) >= MIN_FEEDBACK_FOR_PREFERENCES:
        prefs = extract_ingredient_preferences(recipes, feedbacks)
        context.preferred_ingredients = prefs["preferred"]
        context.avoided_ingredients = prefs["avoided"]
        context.recent_feedback = [
            {
                "liked": f.get("liked"),
                "feedback": f.get("feedback"),
                "reportedIssues": f.get("reportedIssues") or [],
            }
            for f in list(feedbacks)[-5:]
        ]
        context.feedback_context = build_feedback_context(process_feedback(recipes, feedbacks)) or None
    return context


def enhance_recipe(
    recipe: Dict[str, Any],
    request: RecipeGenerationRequest,
    variety: Optional[VarietyConfig] = None,
) -> Dict[str, Any]:
    if not recipe.get("cuisineType"):
        if request.cuisinePreferences:
            recipe["cuisineType"] = request.cuisinePreferences[0]
        elif variety and variety.cuisine_rotation:
            recipe["cuisineType"] = variety.cuisine_rotation[0]
        else:
            recipe["cuisineType"] = "American"

    tags = list(recipe.get("tags") or [])
    complexity = calculate_complexity_score(recipe)
    if complexity.score <= 3:
        tags.append("quick-prep")
    if complexity.score >= 7:
        tags.append("advanced-cooking")
    tags.extend(dietary_tags(recipe.get("ingredients") or []))
    if variety is not None:
        if variety.cultural_fusion:
            tags.append("fusion-cuisine")
        if "health" in variety.creativity_seed:
            tags.append("health-conscious")
        if variety.ingredient_focus:
            tags.append("unique-ingredients")
    recipe["tags"] = list(dict.fromkeys(tags))
    return recipe


async def _complete(prompt: PromptTemplate, *, temperature: Optional[float]) -> str:
    settings = get_settings()
    return await asyncio.to_thread(
        call_openai_responses,
        model=settings.openai_recipe_model,
        system_prompt=prompt.system,
        user_prompt=prompt.user,
        max_output_tokens=settings.openai_recipe_max_output_tokens,
        temperature=temperature,
        reasoning_effort=settings.openai_recipe_reasoning_effort,
    )


def _is_recoverable(exc: Exception) -> bool:
    return not (isinstance(exc, HTTPException) and exc.status_code in _UNRECOVERABLE_STATUS)


async def generate_recipe(
    request: RecipeGenerationRequest,
    *,
    user_id: str,
    recipes: Sequence[Mapping[str, Any]] = (),
    feedbacks: Sequence[Mapping[str, Any]] = (),
    profile: Optional[Dict[str, Any]] = None,
    learning_enabled: bool = False,
    rng: Optional[random.Random] = None,
) -> RecipeGenerationResult:
    """Generate one recipe, steering away from what the session produced recently.

    Falls back to a plain prompt when the model output is unusable; raises
    ``RecipeGenerationError`` if that fails too.
    """
    started = perf_counter()
    session = load_session(user_id, request.sessionId, recipes)
    variety = generate_variety_config(request, session, request.varietyBoost, rng=rng)
    context = build_user_context(profile, recipes, feedbacks)
    prompt = build_variety_enhanced_prompt(request, context, variety, session.recent_recipes)

    try:
        text = await _complete(prompt, temperature=variety.temperature)
        parsed = parse_recipe_response(text)
        recipe = parsed.recipe
        recipe["tags"] = enhance_tags(recipe.get("tags") or [], variety)
        recipe = enhance_recipe(recipe, request, variety)
    except Exception as exc:
        if not _is_recoverable(exc):
            raise
        logger.warning("Enhanced recipe generation failed for user=%s: %s", user_id, exc)
        return await fallback_generation(request)

    variety_score = calculate_variety_score(recipe, session.recent_recipes)
    remember_recipe(user_id, session, recipe)

    metadata: Dict[str, Any] = {
        "promptUsed": prompt.user,
        "processingTimeMs": round((perf_counter() - started) * 1000),
        "varietyConfig": variety.as_dict(),
        "sessionId": session.session_id,
    }
    if learning_enabled and feedbacks:
        metadata["feedbackInsights"] = process_feedback(recipes, feedbacks).as_dict()

    logger.info(
        "Recipe generated user=%s meal_type=%s confidence=%.2f variety=%.2f",
        user_id,
        request.mealType,
        parsed.confidence,
        variety_score,
    )
    return RecipeGenerationResult(
        recipe=recipe,
        confidence=parsed.confidence,
        issues=parsed.issues,
        nutrition_accuracy=parsed.nutrition_accuracy,
        variety_score=variety_score,
        metadata=metadata,
    )


async def fallback_generation(request: RecipeGenerationRequest) -> RecipeGenerationResult:
    prompt_text = build_basic_prompt(request)
    prompt = PromptTemplate(system=FALLBACK_SYSTEM_PROMPT, user=prompt_text)
    try:
        text = await _complete(prompt, temperature=FALLBACK_TEMPERATURE)
        parsed = parse_recipe_response(text)
    except Exception as exc:
        if not _is_recoverable(exc):
            raise
        logger.error("Fallback recipe generation failed: %s", exc)
        raise RecipeGenerationError("Recipe generation failed completely. Please try again.") from exc

    recipe = parsed.recipe
    recipe["cuisineType"] = recipe.get("cuisineType") or "American"
    recipe["tags"] = list(recipe.get("tags") or [])
    base = VarietyConfig()
    return RecipeGenerationResult(
        recipe=recipe,
        confidence=0.8,
        issues=[FALLBACK_ISSUE],
        nutrition_accuracy=0.85,
        variety_score=0.5,
        metadata={"promptUsed": prompt_text, "processingTimeMs": 0, "varietyConfig": base.as_dict()},
    )


async def generate_recipe_candidates(
    request: RecipeGenerationRequest,
    count: int = 3,
    **kwargs: Any,
) -> List[RecipeGenerationResult]:
    """Generate ``count`` recipes one after another, best first.

    Each candidate sees the ones before it in the variety session.
    """
    results = [await generate_recipe(request, **kwargs) for _ in range(count)]
    return sorted(results, key=lambda r: r.rank_score, reverse=True)


def analyze_generation_patterns(results: Sequence[RecipeGenerationResult]) -> GenerationPatternReport:
    if not results:
        return GenerationPatternReport(0.0, 0.0, [], [])
    avg_confidence = sum(r.confidence for r in results) / len(results)
    avg_accuracy = sum(r.nutrition_accuracy for r in results) / len(results)
    issues = [issue for issue, _ in Counter(i for r in results for i in r.issues).most_common(5)]

    improvements: List[str] = []
    if avg_confidence < 0.8:
        improvements.append("Improve prompt clarity and structure")
    if avg_accuracy < 0.8:
        improvements.append("Enhance nutrition validation and feedback")
    if "Recipe required repairs during validation" in issues:
        improvements.append("Improve AI model instructions for consistent formatting")
    return GenerationPatternReport(avg_confidence, avg_accuracy, issues, improvements)


def parse_weekly_plan_response(text: str) -> Dict[str, List[Dict[str, Any]]]:
    """Split a batch response into validated recipes per meal category."""
    try:
        payload = json.loads(clean_json_response(text))
    except json.JSONDecodeError as exc:
        raise RecipeParseError("No valid JSON found in AI response") from exc
    if not isinstance(payload, dict):
        raise RecipeParseError("AI response is not a JSON object")

    out: Dict[str, List[Dict[str, Any]]] = {}
    for category, key in WEEKLY_PLAN_KEYS.items():
        recipes: List[Dict[str, Any]] = []
        for raw in payload.get(key) or []:
            if not isinstance(raw, dict):
                continue
            raw.setdefault("mealType", category)
            try:
                recipe = RecipePayload.model_validate(raw).model_dump()
            except ValidationError as exc:
                logger.warning("Skipping invalid %s recipe in batch response: %s", category, exc.error_count())
                continue
            recipe["ingredients"] = [normalize_ingredient(i) for i in recipe["ingredients"]]
            recipes.append(recipe)
        out[category] = recipes
    return out


async def generate_weekly_batch(
    counts: Mapping[str, int],
    *,
    profile: Optional[Dict[str, Any]] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    settings = get_settings()
    prompt = build_weekly_meal_plan_prompt(counts, UserContext(profile=profile))
    text = await asyncio.to_thread(
        call_openai_responses,
        model=settings.openai_meal_plan_model,
        system_prompt=prompt.system,
        user_prompt=prompt.user + '\nWrap the recipes as {"breakfasts": [...], "lunches": [...], "dinners": [...], "snacks": [...]}.',
        max_output_tokens=settings.openai_meal_plan_max_output_tokens,
        temperature=prompt.temperature,
    )
    return parse_weekly_plan_response(text)
