"""Prompt assembly for recipe generation.

Every prompt is plain text built from small sections; a section returns an
empty string when it has nothing to contribute so callers can join freely.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from ..schemas import RecipeGenerationRequest

if TYPE_CHECKING:
    from .variety import VarietyConfig


SYSTEM_PROMPT = """You are a professional chef and nutritionist with expertise in creating healthy, delicious recipes. Your role is to:

1. Create recipes that precisely match nutritional requirements
2. Respect all dietary restrictions and allergies (this is critical for safety)
3. Use accessible, common ingredients when possible
4. Provide clear, easy-to-follow cooking instructions
5. Ensure nutritional calculations are accurate
6. Return recipes in the exact JSON format requested

Key principles:
- NEVER include ingredients that conflict with stated allergies or dietary restrictions
- Prioritize nutritional accuracy while maintaining great taste
- Consider cooking skill level and time constraints
- Use seasonal and readily available ingredients when possible
- Provide helpful cooking tips within the instructions

Always respond with valid JSON that matches the requested schema exactly."""

SINGLE_MEAL_SYSTEM_PROMPT = (
    "You are an expert chef and nutritionist. Generate a recipe for a user with the following "
    "preferences and nutrition targets. The recipe must strictly match the user's dietary and cuisine "
    "preferences, and provide a healthy balance (fiber-rich carbs, non-starchy vegetables, lean protein, "
    "healthy fat).\n\nReturn a JSON object matching the requested schema exactly."
)

WEEKLY_PLAN_SYSTEM_PROMPT = (
    "You are an expert chef and nutritionist. Generate a varied set of recipes for a weekly meal plan. "
    "Every recipe must strictly match the user's dietary and cuisine preferences, and provide a healthy "
    "balance (fiber-rich carbs, non-starchy vegetables, lean protein, healthy fat).\n\n"
    "Return a JSON object matching the requested schema exactly."
)

FALLBACK_SYSTEM_PROMPT = (
    "You are a professional chef and nutritionist. Generate recipes that match exact nutritional requirements."
)

SINGLE_MEAL_TEMPERATURE = 0.7

COOKING_METHODS = [
    "roast",
    "grill",
    "braise",
    "sauté",
    "steam",
    "poach",
    "stir-fry",
    "slow-cook",
    "pressure-cook",
    "smoke",
    "broil",
    "bake",
    "pan-sear",
    "marinate",
    "ferment",
    "pickle",
    "caramelize",
    "reduce",
    "sous-vide",
    "air-fry",
    "dehydrate",
]

DEFAULT_NUTRITION_PROFILE: Dict[str, Any] = {
    "calories": 500,
    "protein": 20,
    "carbs": 50,
    "fat": 15,
    "servings": 1,
    "timeToMake": 20,
    "difficulty": "easy",
    "mealType": "dinner",
    "mealComplexity": "simple",
}

RECIPE_SCHEMA = """type Recipe = {
  name: string;
  description: string;
  ingredients: { name: string; quantity: number; unit: string }[];
  instructions: string[];
  nutrition: {
    calories: number;
    protein: number;
    carbs: number;
    fat: number;
  };
  cuisineType: string;
  mealType: string;
  prepTime: number;
  cookTime: number;
  servings: number;
  difficulty: "easy" | "medium" | "hard";
  tags: string[];
}"""

WEEKLY_MEAL_PLAN_TEMPLATE = """User Preferences:
{{userPreferences}}

Meal Plan Requirements:
- breakfasts: {{breakfasts}}, lunches: {{lunches}}, dinners: {{dinners}}, snacks: {{snacks}}
- Each meal must be unique and not repeat the same cuisine more than once per meal type.
- Each recipe must include: a base of fiber-rich carbs, at least one non-starchy vegetable, a clear lean protein source, and a healthy fat.
- Strictly avoid all allergens and dietary restrictions.
- The recipe difficulty should be: {{mealComplexity}}.
- Return the result as a JSON object matching this TypeScript type:
{{schema}}
"""


@dataclass
class PromptTemplate:
    system: str
    user: str
    temperature: Optional[float] = None


@dataclass
class UserContext:
    """Raw inputs gathered for a generation call."""

    profile: Optional[Dict[str, Any]] = None
    preferred_ingredients: List[str] = field(default_factory=list)
    avoided_ingredients: List[str] = field(default_factory=list)
    recent_feedback: List[Dict[str, Any]] = field(default_factory=list)
    feedback_context: Optional[str] = None


@dataclass
class NormalizedUserContext:
    calories: float
    protein: float
    carbs: float
    fat: float
    allergies: List[str]
    dietary_restrictions: List[str]
    cuisine_preferences: List[str]
    preferred_ingredients: List[str]
    avoided_ingredients: List[str]
    user_profile: Optional[Dict[str, Any]]
    feedback: List[Dict[str, Any]]
    meal_complexity: str


def _number_or(value: Any, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return default


def _list_or_empty(value: Any) -> List[str]:
    return list(value) if isinstance(value, (list, tuple)) else []


def normalize_user_context(
    raw: Optional[UserContext],
    overrides: Optional[Mapping[str, Any]] = None,
) -> NormalizedUserContext:
    raw = raw or UserContext()
    profile = raw.profile or {}
    ctx = NormalizedUserContext(
        calories=_number_or(profile.get("dailyCalories"), DEFAULT_NUTRITION_PROFILE["calories"]),
        protein=_number_or(profile.get("macroProtein"), DEFAULT_NUTRITION_PROFILE["protein"]),
        carbs=_number_or(profile.get("macroCarbs"), DEFAULT_NUTRITION_PROFILE["carbs"]),
        fat=_number_or(profile.get("macroFat"), DEFAULT_NUTRITION_PROFILE["fat"]),
        allergies=_list_or_empty(profile.get("allergies")),
        dietary_restrictions=_list_or_empty(profile.get("dietaryRestrictions")),
        cuisine_preferences=_list_or_empty(profile.get("cuisinePreferences")),
        preferred_ingredients=_list_or_empty(raw.preferred_ingredients),
        avoided_ingredients=_list_or_empty(raw.avoided_ingredients),
        user_profile=raw.profile or None,
        feedback=_list_or_empty(raw.recent_feedback),
        meal_complexity=profile.get("mealComplexity") or DEFAULT_NUTRITION_PROFILE["mealComplexity"],
    )
    if overrides:
        ctx = replace(ctx, **overrides)
    return ctx


def _fmt(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def nutrition_section(ctx: NormalizedUserContext) -> str:
    return "\n".join(
        [
            "## Nutritional Targets:",
            f"- Calories: ~{_fmt(ctx.calories)} kcal",
            f"- Protein: {_fmt(ctx.protein)}g or more",
            f"- Carbohydrates: ~{_fmt(ctx.carbs)}g",
            f"- Fat: ~{_fmt(ctx.fat)}g",
        ]
    )


def allergies_section(ctx: NormalizedUserContext) -> str:
    if not ctx.allergies:
        return ""
    return "\n".join(
        ["## ⚠️ CRITICAL - ALLERGIES TO AVOID:"]
        + [f"- {a}" for a in ctx.allergies]
        + ["ABSOLUTELY NO ingredients containing these allergens!"]
    )


def restrictions_section(ctx: NormalizedUserContext) -> str:
    if not ctx.dietary_restrictions:
        return ""
    return "\n".join(
        ["## Dietary Restrictions:"]
        + [f"- {r}" for r in ctx.dietary_restrictions]
        + [
            "Strictly follow these dietary restrictions. Do not include any ingredients that violate these restrictions."
        ]
    )


def preferences_section(ctx: NormalizedUserContext) -> str:
    out = ""
    if ctx.cuisine_preferences:
        out += "\n## Preferred Cuisines (STRICT):\n- " + "\n- ".join(ctx.cuisine_preferences) + "\n"
        out += (
            "You MUST ONLY generate recipes that match one of the above cuisines. Do NOT generate recipes "
            "from any other cuisine unless the user explicitly overrides this preference for this meal.\n"
        )
    if ctx.preferred_ingredients:
        out += "\n## Preferred Ingredients:\n- " + ", ".join(ctx.preferred_ingredients)
    if ctx.avoided_ingredients:
        out += "\n## Avoided Ingredients:\n- " + ", ".join(ctx.avoided_ingredients)
    return out.strip()


def user_profile_section(ctx: NormalizedUserContext) -> str:
    p = ctx.user_profile
    if not p:
        return ""
    out = "\n## User Context:"
    if p.get("age"):
        out += f"\n- Age: {_fmt(p['age'])}"
    if p.get("weightKg"):
        out += f"\n- Weight: {_fmt(p['weightKg'])} kg"
    if p.get("heightCm"):
        out += f"\n- Height: {_fmt(p['heightCm'])} cm"
    if p.get("activityLevel"):
        out += f"\n- Activity Level: {p['activityLevel']}"
    if p.get("goals"):
        out += f"\n- Goals: {p['goals']}"
    if ctx.cuisine_preferences:
        out += f"\n- Cuisine Preferences: {', '.join(ctx.cuisine_preferences)}"
    return out


def output_format_section(meal_type: str = "breakfast|lunch|dinner|snack") -> str:
    return "\n".join(
        [
            "## Required Output Format:",
            "Return ONLY a valid JSON object with this exact structure:",
            "{",
            '  "name": "Recipe Name",',
            '  "description": "Brief appetizing description (1-2 sentences)",',
            '  "ingredients": [',
            '    {"name": "ingredient name", "quantity": number, "unit": "unit (e.g., cups, tbsp, oz)"}',
            "  ],",
            '  "instructions": [',
            '    "Step 1: Clear instruction",',
            '    "Step 2: Next instruction",',
            '    "Step 3: Continue..."',
            "  ],",
            '  "nutrition": {',
            '    "calories": exact_number,',
            '    "protein": exact_number_in_grams,',
            '    "carbs": exact_number_in_grams,',
            '    "fat": exact_number_in_grams',
            "  },",
            '  "prepTime": minutes_as_number,',
            '  "cookTime": minutes_as_number,',
            '  "servings": number_of_servings,',
            '  "difficulty": "easy", "medium", or "hard",',
            f'  "mealType": "{meal_type}",',
            '  "cuisineType": "Cuisine name",',
            '  "tags": ["tag"]',
            "}",
            "Make the recipe easy to shop for and prepare, with simple, direct instructions and minimal specialty equipment.",
        ]
    )


def _bullets(values: Sequence[str]) -> str:
    return "- " + "\n- ".join(values)


def _constraints_section(request: RecipeGenerationRequest) -> str:
    lines: List[str] = []
    if request.maxPrepTime is not None:
        lines.append(f"- Prep time: {request.maxPrepTime} minutes or less")
    if request.maxCookTime is not None:
        lines.append(f"- Cook time: {request.maxCookTime} minutes or less")
    if request.difficulty:
        lines.append(f"- Difficulty: {request.difficulty}")
    if request.servings:
        lines.append(f"- Servings: {request.servings}")
    if not lines:
        return ""
    return "\n## Time & Difficulty:\n" + "\n".join(lines) + "\n"


def build_recipe_prompt(request: RecipeGenerationRequest) -> PromptTemplate:
    prompt = f"Create a {request.mealType} recipe with the following specifications:\n\n"

    prompt += "## Nutritional Targets:\n"
    if request.calories:
        prompt += f"- Calories: ~{_fmt(request.calories)} kcal\n"
    if request.protein:
        prompt += f"- Protein: {_fmt(request.protein)}g or more\n"
    if request.carbs:
        prompt += f"- Carbohydrates: ~{_fmt(request.carbs)}g\n"
    if request.fat:
        prompt += f"- Fat: ~{_fmt(request.fat)}g\n"

    if request.allergies:
        prompt += "\n## ⚠️ CRITICAL - ALLERGIES TO AVOID:\n"
        prompt += _bullets(request.allergies) + "\n"
        prompt += "ABSOLUTELY NO ingredients containing these allergens!\n"

    if request.dietaryRestrictions:
        prompt += "\n## Dietary Restrictions:\n" + _bullets(request.dietaryRestrictions) + "\n"

    if request.cuisinePreferences:
        prompt += "\n## Preferred Cuisines:\n" + _bullets(request.cuisinePreferences) + "\n"

    prompt += _constraints_section(request)

    profile = request.userProfile
    if profile is not None:
        prompt += "\n## User Context:\n"
        if profile.goals:
            prompt += f"- Goal: {profile.goals}\n"
        if profile.activityLevel:
            prompt += f"- Activity Level: {profile.activityLevel}\n"

    prompt += "\n" + output_format_section(request.mealType)
    prompt += (
        "\n\n## Additional Requirements:\n"
        "- Ensure nutrition values are realistic and add up correctly\n"
        "- Include specific quantities and units for all ingredients\n"
        "- Make instructions clear and sequential\n"
        "- Consider prep and cooking time accuracy\n"
        "- Choose appropriate difficulty level based on techniques required"
    )
    return PromptTemplate(system=SYSTEM_PROMPT, user=prompt)


def _preference_lines(ctx: NormalizedUserContext) -> List[str]:
    lines: List[str] = []
    if ctx.allergies:
        lines.append(f"- Allergies: {', '.join(ctx.allergies)}")
    if ctx.dietary_restrictions:
        lines.append(f"- Dietary restrictions: {', '.join(ctx.dietary_restrictions)}")
    if ctx.cuisine_preferences:
        lines.append(f"- Cuisine preferences: {', '.join(ctx.cuisine_preferences)}")
    if ctx.calories:
        lines.append(f"- Calories: ~{_fmt(ctx.calories)} kcal")
    if ctx.protein:
        lines.append(f"- Protein: {_fmt(ctx.protein)}g or more")
    if ctx.carbs:
        lines.append(f"- Carbohydrates: ~{_fmt(ctx.carbs)}g")
    if ctx.fat:
        lines.append(f"- Fat: ~{_fmt(ctx.fat)}g")
    if ctx.preferred_ingredients:
        lines.append(f"- Preferred ingredients: {', '.join(ctx.preferred_ingredients)}")
    if ctx.avoided_ingredients:
        lines.append(f"- Avoided ingredients: {', '.join(ctx.avoided_ingredients)}")
    p = ctx.user_profile or {}
    if p.get("age"):
        lines.append(f"- Age: {_fmt(p['age'])}")
    if p.get("weightKg"):
        lines.append(f"- Weight: {_fmt(p['weightKg'])} kg")
    if p.get("heightCm"):
        lines.append(f"- Height: {_fmt(p['heightCm'])} cm")
    if p.get("activityLevel"):
        lines.append(f"- Activity level: {p['activityLevel']}")
    if p.get("goals"):
        lines.append(f"- Goals: {p['goals']}")
    return lines


def build_single_meal_prompt(
    request: RecipeGenerationRequest,
    user_context: Optional[UserContext] = None,
) -> PromptTemplate:
    ctx = normalize_user_context(user_context)
    lines = _preference_lines(ctx)
    if request.servings is not None:
        lines.append(f"- Servings: {request.servings}")
    if request.timeToMake is not None:
        lines.append(f"- Time to make: {request.timeToMake} minutes")
    if request.difficulty:
        lines.append(f"- Difficulty: {request.difficulty}")
    lines.append(f"- Desired meal complexity: {ctx.meal_complexity}")

    user = "User Preferences:\n" + "\n".join(lines) + "\n"
    user += "\nRecipe Requirements:\n"
    user += f"- Meal type: {request.mealType}\n"
    user += "- The recipe must be unique and must match one of the user's cuisine preferences.\n"
    user += (
        "- The recipe must include: a base of fiber-rich carbs, at least one non-starchy vegetable, "
        "a clear lean protein source, and a healthy fat.\n"
    )
    user += "- Strictly avoid all allergens and dietary restrictions.\n"
    user += f"- The recipe difficulty should be: {ctx.meal_complexity}.\n"
    user += "- Return the result as a JSON object matching this TypeScript type:\n"
    user += RECIPE_SCHEMA + "\n"
    return PromptTemplate(system=SINGLE_MEAL_SYSTEM_PROMPT, user=user, temperature=SINGLE_MEAL_TEMPERATURE)


def variety_section(variety: "VarietyConfig", recent_names: Sequence[str] = ()) -> str:
    lines = [
        "## Variety Guidance:",
        f"- Creative direction: {variety.creativity_seed}",
        f"- Suggested cooking technique: {variety.cooking_technique}",
        f"- Target complexity: {variety.complexity_target}",
    ]
    if variety.cuisine_rotation:
        lines.append(f"- Consider these cuisines: {', '.join(variety.cuisine_rotation)}")
    if variety.ingredient_focus:
        lines.append(f"- Try featuring: {', '.join(variety.ingredient_focus)}")
    if variety.cultural_fusion:
        lines.append("- Blend elements from two culinary traditions")
    if variety.avoidance_terms:
        lines.append(f"- Avoid repeating: {', '.join(variety.avoidance_terms)}")
    if recent_names:
        lines.append("- Do NOT repeat or closely imitate these recent recipes:")
        lines.extend(f"  - {name}" for name in recent_names)
    return "\n".join(lines)


def build_variety_enhanced_prompt(
    request: RecipeGenerationRequest,
    user_context: Optional[UserContext],
    variety: "VarietyConfig",
    recent_recipes: Sequence[Mapping[str, Any]] = (),
) -> PromptTemplate:
    base = build_recipe_prompt(request)
    ctx = normalize_user_context(user_context)
    recent_names = [r.get("name") for r in list(recent_recipes)[-5:] if r.get("name")]

    extra = [preferences_section(replace(ctx, cuisine_preferences=[]))]
    extra.append(variety_section(variety, recent_names))
    if user_context and user_context.feedback_context:
        extra.append(f"## Learned Preferences:\n{user_context.feedback_context}")
    user = base.user + "\n\n" + "\n\n".join(section for section in extra if section)
    return PromptTemplate(system=base.system, user=user, temperature=variety.temperature)


def build_basic_prompt(request: RecipeGenerationRequest) -> str:
    prompt = f"Create a {request.mealType} recipe with the following requirements:\n\n"
    if request.calories:
        prompt += f"- Target calories: {_fmt(request.calories)}\n"
    if request.protein:
        prompt += f"- Protein: at least {_fmt(request.protein)}g\n"
    if request.carbs:
        prompt += f"- Carbohydrates: around {_fmt(request.carbs)}g\n"
    if request.fat:
        prompt += f"- Fat: around {_fmt(request.fat)}g\n"
    if request.allergies:
        prompt += f"- MUST AVOID (allergies): {', '.join(request.allergies)}\n"
    if request.dietaryRestrictions:
        prompt += f"- Dietary restrictions: {', '.join(request.dietaryRestrictions)}\n"
    if request.cuisinePreferences:
        prompt += f"- Preferred cuisines: {', '.join(request.cuisinePreferences)}\n"
    prompt += (
        "\nReturn ONLY a JSON object with this exact structure:\n"
        "{\n"
        '  "name": "Recipe Name",\n'
        '  "description": "Brief description",\n'
        '  "ingredients": [\n'
        '    {"name": "ingredient name", "quantity": number, "unit": "unit"}\n'
        "  ],\n"
        '  "instructions": ["step 1", "step 2", "step 3"],\n'
        '  "nutrition": {\n'
        '    "calories": number,\n'
        '    "protein": number,\n'
        '    "carbs": number,\n'
        '    "fat": number\n'
        "  },\n"
        '  "prepTime": number_in_minutes,\n'
        '  "cookTime": number_in_minutes,\n'
        '  "servings": number,\n'
        '  "difficulty": "easy|medium|hard",\n'
        f'  "mealType": "{request.mealType}"\n'
        "}"
    )
    return prompt


def build_weekly_meal_plan_prompt(
    counts: Mapping[str, int],
    user_context: Optional[UserContext] = None,
) -> PromptTemplate:
    ctx = normalize_user_context(user_context)
    substitutions = {
        "userPreferences": "\n".join(_preference_lines(ctx)),
        "breakfasts": str(counts.get("breakfast", 0)),
        "lunches": str(counts.get("lunch", 0)),
        "dinners": str(counts.get("dinner", 0)),
        "snacks": str(counts.get("snack", 0)),
        "mealComplexity": ctx.meal_complexity,
        "schema": RECIPE_SCHEMA,
    }
    user = WEEKLY_MEAL_PLAN_TEMPLATE
    for key, value in substitutions.items():
        user = user.replace("{{" + key + "}}", value)
    return PromptTemplate(system=WEEKLY_PLAN_SYSTEM_PROMPT, user=user, temperature=SINGLE_MEAL_TEMPERATURE)


def get_few_shot_examples() -> List[Dict[str, str]]:
    example = {
        "name": "Protein-Packed Scrambled Eggs with Spinach",
        "description": (
            "Fluffy scrambled eggs with fresh spinach and whole grain toast for a protein-rich start to your day."
        ),
        "ingredients": [
            {"name": "large eggs", "quantity": 3, "unit": "whole"},
            {"name": "fresh spinach", "quantity": 1, "unit": "cup"},
            {"name": "whole grain bread", "quantity": 1, "unit": "slice"},
            {"name": "olive oil", "quantity": 1, "unit": "tsp"},
            {"name": "salt", "quantity": 0.25, "unit": "tsp"},
            {"name": "black pepper", "quantity": 0.125, "unit": "tsp"},
        ],
        "instructions": [
            "Heat olive oil in a non-stick pan over medium heat",
            "Add spinach and cook until wilted, about 2 minutes",
            "Beat eggs with salt and pepper in a bowl",
            "Add eggs to the pan and gently scramble with spinach",
            "Toast bread and serve alongside eggs",
        ],
        "nutrition": {"calories": 395, "protein": 26, "carbs": 15, "fat": 18},
        "prepTime": 5,
        "cookTime": 8,
        "servings": 1,
        "difficulty": "easy",
        "mealType": "breakfast",
    }
    return [
        {
            "prompt": "Create a breakfast recipe with 400 calories, 25g protein, for muscle gain",
            "response": json.dumps(example, indent=2),
        }
    ]
