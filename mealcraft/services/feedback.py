from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .nutrition import round_half_up
from .recipe_parser import extract_ingredient_preferences

ISSUE_KEYWORDS: Dict[str, List[str]] = {
    "too_complex": ["complex", "complicated", "difficult", "hard"],
    "too_bland": ["bland", "tasteless", "no flavor", "boring"],
    "too_spicy": ["spicy", "hot", "burn", "fire"],
    "too_salty": ["salty", "salt"],
    "too_sweet": ["sweet", "sugar"],
    "bad_ingredients": ["expensive", "hard to find", "unusual", "weird"],
    "too_long": ["long", "time", "quick", "fast"],
    "unhealthy": ["unhealthy", "calories", "fat", "heavy"],
}

ISSUE_OPTIMIZATIONS: Dict[str, str] = {
    "too_complex": "Simplify instructions and reduce technique complexity",
    "too_bland": "Include more flavorful ingredients and seasonings",
    "too_spicy": "Reduce spice levels and provide spice alternatives",
    "bad_ingredients": "Use common, accessible ingredients",
    "too_long": "Prioritize recipes with shorter cooking times",
    "unhealthy": "Focus on healthier cooking methods and ingredients",
}


@dataclass
class FeedbackInsights:
    preferred_ingredients: List[str] = field(default_factory=list)
    avoided_ingredients: List[str] = field(default_factory=list)
    liked_cuisines: List[str] = field(default_factory=list)
    disliked_cuisines: List[str] = field(default_factory=list)
    preferred_difficulty: str = "medium"
    max_prep_time: int = 15
    max_cook_time: int = 20
    calorie_range: Dict[str, float] = field(default_factory=lambda: {"min": 100.0, "max": 0.0})
    protein_tolerance: float = 10
    carb_tolerance: float = 20
    fat_tolerance: float = 10
    common_issues: List[str] = field(default_factory=list)
    prompt_optimizations: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserLearningProfile:
    user_id: str
    total_feedback: int
    positive_ratio: float
    insights: FeedbackInsights
    confidence: float
    last_updated: datetime


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _pstdev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    avg = _mean(values)
    return math.sqrt(_mean([(v - avg) ** 2 for v in values]))


def _frequent(values: Iterable[str], minimum: int = 2, limit: int = 5) -> List[str]:
    return [value for value, count in Counter(values).most_common() if count >= minimum][:limit]


def _split_by_sentiment(
    recipes: Sequence[Mapping[str, Any]],
    feedbacks: Sequence[Mapping[str, Any]],
) -> tuple[List[Mapping[str, Any]], List[Mapping[str, Any]]]:
    liked_ids = {f.get("recipeId") for f in feedbacks if f.get("liked")}
    disliked_ids = {f.get("recipeId") for f in feedbacks if not f.get("liked")}
    liked = [r for r in recipes if r.get("id") in liked_ids]
    disliked = [r for r in recipes if r.get("id") in disliked_ids]
    return liked, disliked


def extract_common_issues(feedbacks: Iterable[Mapping[str, Any]]) -> List[str]:
    """Issue labels mentioned in at least two pieces of negative feedback."""
    issues: List[str] = []
    for entry in feedbacks:
        text = entry.get("feedback")
        if entry.get("liked") or not text:
            continue
        lowered = text.lower()
        for issue, keywords in ISSUE_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                issues.append(issue)
        issues.extend(entry.get("reportedIssues") or [])
    return _frequent(issues)


def _prompt_optimizations(insights: FeedbackInsights) -> List[str]:
    out: List[str] = []
    if insights.preferred_ingredients:
        out.append(f"Prioritize recipes containing: {', '.join(insights.preferred_ingredients[:3])}")
    if insights.avoided_ingredients:
        out.append(f"Avoid or minimize use of: {', '.join(insights.avoided_ingredients[:3])}")
    if insights.liked_cuisines:
        out.append(f"Favor {' or '.join(insights.liked_cuisines[:2])} cuisine styles")
    if insights.disliked_cuisines:
        out.append(f"Avoid {' and '.join(insights.disliked_cuisines[:2])} cuisine styles")
    if insights.preferred_difficulty:
        out.append(f"Prefer {insights.preferred_difficulty} difficulty recipes")
    if insights.max_prep_time < 30:
        out.append("Focus on quick prep recipes (under 30 minutes)")
    for issue in insights.common_issues:
        if issue in ISSUE_OPTIMIZATIONS:
            out.append(ISSUE_OPTIMIZATIONS[issue])
    return out


def process_feedback(
    recipes: Sequence[Mapping[str, Any]],
    feedbacks: Sequence[Mapping[str, Any]],
) -> FeedbackInsights:
    """Derive generation hints from a user's rated recipes.

    ``recipes`` and ``feedbacks`` are the camelCase dicts produced by the
    recipe serializers.
    """
    liked, disliked = _split_by_sentiment(recipes, feedbacks)
    sentiment = [{"recipeId": r.get("id"), "liked": True} for r in liked]
    sentiment += [{"recipeId": r.get("id"), "liked": False} for r in disliked]
    ingredients = extract_ingredient_preferences(liked + disliked, sentiment)

    difficulties = [r.get("difficulty") for r in liked if r.get("difficulty")]
    preferred_difficulty = Counter(difficulties).most_common(1)[0][0] if difficulties else "medium"

    calories = [r["nutrition"]["calories"] for r in liked if r.get("nutrition")]
    avg_calories = _mean(calories)
    calorie_sd = _pstdev(calories)

    def macro(key: str) -> List[float]:
        return [r["nutrition"].get(key, 0) for r in liked if r.get("nutrition")]

    insights = FeedbackInsights(
        preferred_ingredients=ingredients["preferred"],
        avoided_ingredients=ingredients["avoided"],
        liked_cuisines=_frequent(r["cuisineType"] for r in liked if r.get("cuisineType")),
        disliked_cuisines=_frequent(r["cuisineType"] for r in disliked if r.get("cuisineType")),
        preferred_difficulty=preferred_difficulty,
        max_prep_time=round_half_up(max(_mean([r.get("prepTime") or 0 for r in liked]) * 1.2, 15)),
        max_cook_time=round_half_up(max(_mean([r.get("cookTime") or 0 for r in liked]) * 1.2, 20)),
        calorie_range={"min": max(avg_calories - calorie_sd, 100), "max": avg_calories + calorie_sd},
        protein_tolerance=_pstdev(macro("protein")) or 10,
        carb_tolerance=_pstdev(macro("carbs")) or 20,
        fat_tolerance=_pstdev(macro("fat")) or 10,
        common_issues=extract_common_issues(feedbacks),
    )
    insights.prompt_optimizations = _prompt_optimizations(insights)
    return insights


def build_user_learning_profile(
    user_id: str,
    recipes: Sequence[Mapping[str, Any]],
    feedbacks: Sequence[Mapping[str, Any]],
) -> UserLearningProfile:
    own_feedback = [f for f in feedbacks if f.get("userId") in (None, user_id)]
    rated_ids = {f.get("recipeId") for f in own_feedback}
    own_recipes = [r for r in recipes if r.get("id") in rated_ids]

    total = len(own_feedback)
    positive_ratio = sum(1 for f in own_feedback if f.get("liked")) / total if total else 0.0

    confidence = 0.5
    if total >= 5:
        confidence += 0.2
    if total >= 10:
        confidence += 0.2
    if total >= 20:
        confidence += 0.1
    if positive_ratio > 0.7 or positive_ratio < 0.3:
        confidence += 0.1

    return UserLearningProfile(
        user_id=user_id,
        total_feedback=total,
        positive_ratio=positive_ratio,
        insights=process_feedback(own_recipes, own_feedback),
        confidence=min(confidence, 1.0),
        last_updated=datetime.now(timezone.utc),
    )


def build_feedback_context(insights: FeedbackInsights) -> str:
    parts: List[str] = []
    if insights.preferred_ingredients:
        parts.append(f"User enjoys: {', '.join(insights.preferred_ingredients[:3])}")
    if insights.avoided_ingredients:
        parts.append(f"User dislikes: {', '.join(insights.avoided_ingredients[:3])}")
    if insights.liked_cuisines:
        parts.append(f"Preferred cuisines: {', '.join(insights.liked_cuisines)}")
    if insights.preferred_difficulty:
        parts.append(f"Prefers {insights.preferred_difficulty} difficulty recipes")
    if insights.common_issues:
        parts.append(f"Common concerns: {', '.join(insights.common_issues)}")
    return ". ".join(parts)
