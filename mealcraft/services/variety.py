from __future__ import annotations

import json
import logging
import random
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import get_settings
from ..redis_util import get_redis
from ..schemas import RecipeGenerationRequest

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "variety:session:"
MAX_SESSION_RECIPES = 15
SEED_SESSION_RECIPES = 10
BASE_TEMPERATURE = 0.8
MAX_TEMPERATURE = 1.4

CUISINE_POOL = [
    "Mediterranean", "Asian Fusion", "Mexican", "Indian", "Thai", "Italian",
    "Middle Eastern", "Moroccan", "Ethiopian", "Korean", "Vietnamese",
    "Peruvian", "Brazilian", "Caribbean", "French", "Spanish", "Greek",
    "Turkish", "Lebanese", "Japanese", "Chinese", "Southern American",
    "Nordic", "German", "Russian", "African", "Cajun", "Tex-Mex",
]

COOKING_TECHNIQUES = [
    "roasting", "grilling", "braising", "sautéing", "steaming", "poaching",
    "stir-frying", "slow-cooking", "pressure-cooking", "smoking", "broiling",
    "baking", "pan-searing", "marinating", "fermentation", "pickling",
    "caramelizing", "reduction", "sous-vide", "air-frying", "dehydrating",
]

UNIQUE_INGREDIENTS = [
    "pomegranate seeds", "sumac", "harissa", "miso paste", "tahini",
    "coconut aminos", "nutritional yeast", "za'atar", "kimchi", "tempeh",
    "jackfruit", "hemp hearts", "spirulina", "maca powder", "turmeric",
    "cardamom", "star anise", "lemongrass", "kaffir lime leaves", "galangal",
    "black garlic", "yuzu", "shiso leaves", "mirin", "bonito flakes",
]

CREATIVITY_SEEDS = [
    "fusion-experiment", "comfort-food-twist", "health-conscious-makeover",
    "seasonal-ingredients", "one-pot-wonder", "color-theme", "texture-focus",
    "spice-adventure", "ancestral-modern", "street-food-elevated",
    "breakfast-dinner", "dessert-savory", "fermented-flavors", "umami-bomb",
    "fresh-herb-garden", "smoky-charred", "citrus-bright", "nutty-richness",
]

COMPLEXITY_LEVELS = ("simple", "moderate", "complex")

SEED_TAGS = [
    ("fusion", "fusion-cuisine"),
    ("comfort", "comfort-food"),
    ("health", "health-focused"),
    ("one-pot", "one-pot-meal"),
    ("color", "colorful"),
    ("spice", "spicy-adventure"),
    ("street-food", "street-food-inspired"),
]

MEAT_TERMS = ["chicken", "beef", "pork", "fish", "turkey", "lamb", "bacon", "sausage"]
DAIRY_TERMS = ["milk", "cheese", "butter", "cream", "yogurt"]
EGG_TERMS = ["egg", "eggs"]


@dataclass
class VarietyConfig:
    temperature: float = BASE_TEMPERATURE
    creativity_seed: str = "balanced-nutrition"
    avoidance_terms: List[str] = field(default_factory=list)
    cuisine_rotation: List[str] = field(default_factory=lambda: ["American"])
    ingredient_focus: List[str] = field(default_factory=list)
    cooking_technique: str = "sautéing"
    complexity_target: str = "moderate"
    cultural_fusion: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "creativitySeed": self.creativity_seed,
            "avoidanceTerms": self.avoidance_terms,
            "cuisineRotation": self.cuisine_rotation,
            "ingredientFocus": self.ingredient_focus,
            "cookingTechnique": self.cooking_technique,
            "complexityTarget": self.complexity_target,
            "culturalFusion": self.cultural_fusion,
        }


@dataclass
class GenerationSession:
    session_id: str
    recent_recipes: List[Dict[str, Any]] = field(default_factory=list)
    last_generation_time: float = field(default_factory=time.time)


_mem_lock = threading.Lock()
# key -> (expires_at, payload); entries share the Redis TTL
_mem_sessions: Dict[str, Tuple[float, Dict[str, Any]]] = {}


def _session_key(user_id: str, session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{user_id}:{session_id}"


def _session_ttl() -> int:
    return get_settings().variety_session_ttl_seconds


def _decode(data: Any, key: str) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable variety session %s", key)
        return None


def _purge_expired(now: float) -> None:
    # caller holds _mem_lock
    stale = [key for key, (expires_at, _) in _mem_sessions.items() if expires_at <= now]
    for key in stale:
        del _mem_sessions[key]


def load_session(
    user_id: str,
    session_id: Optional[str],
    seed_recipes: Sequence[Mapping[str, Any]] = (),
    now: Optional[float] = None,
) -> GenerationSession:
    """Fetch the session, creating it from the user's latest recipes when new."""
    now = now if now is not None else time.time()
    sid = session_id or "default"
    key = _session_key(user_id, sid)
    redis_client = get_redis()
    if redis_client is not None:
        raw = _decode(redis_client.get(key), key)
    else:
        with _mem_lock:
            _purge_expired(now)
            entry = _mem_sessions.get(key)
            raw = dict(entry[1]) if entry else None

    if raw:
        return GenerationSession(
            session_id=sid,
            recent_recipes=list(raw.get("recent_recipes") or []),
            last_generation_time=float(raw.get("last_generation_time") or now),
        )
    return GenerationSession(
        session_id=sid,
        recent_recipes=[dict(r) for r in list(seed_recipes)[-SEED_SESSION_RECIPES:]],
    )


def save_session(user_id: str, session: GenerationSession, now: Optional[float] = None) -> None:
    now = now if now is not None else time.time()
    key = _session_key(user_id, session.session_id)
    payload = asdict(session)
    redis_client = get_redis()
    if redis_client is not None:
        redis_client.set(key, json.dumps(payload, default=str), ex=_session_ttl())
        return
    with _mem_lock:
        _purge_expired(now)
        _mem_sessions[key] = (now + _session_ttl(), payload)


def remember_recipe(
    user_id: str,
    session: GenerationSession,
    recipe: Mapping[str, Any],
    now: Optional[float] = None,
) -> GenerationSession:
    """Append ``recipe`` to the stored session and save it.

    Starts from what is stored at save time, so recipes that other
    generations added after ``session`` was loaded are kept. Falls back to
    ``session``'s own history when nothing is stored yet.
    """
    now = now if now is not None else time.time()
    key = _session_key(user_id, session.session_id)
    redis_client = get_redis()
    if redis_client is not None:

        def _append(pipe) -> None:
            stored = _decode(pipe.get(key), key)
            if stored:
                session.recent_recipes = list(stored.get("recent_recipes") or [])
            record_recipe(session, recipe, now)
            pipe.multi()
            pipe.set(key, json.dumps(asdict(session), default=str), ex=_session_ttl())

        redis_client.transaction(_append, key)
        return session

    with _mem_lock:
        _purge_expired(now)
        entry = _mem_sessions.get(key)
        if entry:
            session.recent_recipes = list(entry[1].get("recent_recipes") or [])
        record_recipe(session, recipe, now)
        _mem_sessions[key] = (now + _session_ttl(), asdict(session))
    return session


def record_recipe(session: GenerationSession, recipe: Mapping[str, Any], now: Optional[float] = None) -> None:
    session.recent_recipes.append(dict(recipe))
    session.recent_recipes = session.recent_recipes[-MAX_SESSION_RECIPES:]
    session.last_generation_time = now if now is not None else time.time()


def reset_sessions() -> None:
    with _mem_lock:
        _mem_sessions.clear()


def recent_ingredients(recipes: Sequence[Mapping[str, Any]]) -> List[str]:
    names = [i.get("name", "") for r in recipes for i in (r.get("ingredients") or [])]
    return names[-30:]


def recent_cuisines(recipes: Sequence[Mapping[str, Any]]) -> List[str]:
    return [r["cuisineType"] for r in recipes if r.get("cuisineType")][-10:]


def cooking_methods_in(instructions: Sequence[str]) -> List[str]:
    text = " ".join(instructions).lower()
    return [technique for technique in COOKING_TECHNIQUES if technique in text]


def _shuffled(values: Sequence[Any], rng: random.Random) -> List[Any]:
    items = list(values)
    rng.shuffle(items)
    return items


def select_alternating_complexity(recent: Sequence[str], rng: random.Random) -> str:
    if not recent:
        return "moderate"
    last = recent[-1]
    second_last = recent[-2] if len(recent) > 1 else None
    if last == second_last:
        return rng.choice([c for c in COMPLEXITY_LEVELS if c != last])
    roll = rng.random()
    if roll < 0.3:
        return "simple"
    if roll < 0.8:
        return "moderate"
    return "complex"


def generate_variety_config(
    request: RecipeGenerationRequest,
    session: GenerationSession,
    boost: bool = False,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
) -> VarietyConfig:
    rng = rng or random.Random()
    now = now if now is not None else time.time()
    recent = session.recent_recipes

    temperature = BASE_TEMPERATURE
    if boost:
        temperature += 0.3
    if (now - session.last_generation_time) / 60 < 30:
        temperature += 0.2
    if len(recent) > 5:
        temperature += 0.1
    temperature = round(min(temperature, MAX_TEMPERATURE), 2)

    ingredients = recent_ingredients(recent)
    cuisines = recent_cuisines(recent)
    preferred = list(request.cuisinePreferences or [])

    available_cuisines = [
        c for c in CUISINE_POOL if c not in cuisines and (not preferred or c in preferred)
    ]
    cuisine_rotation = _shuffled(available_cuisines[:3] + preferred, rng)[:2]

    lowered = [name.lower() for name in ingredients]
    fresh_ingredients = [
        i for i in UNIQUE_INGREDIENTS if not any(i.lower() in name for name in lowered)
    ]
    ingredient_focus = _shuffled(fresh_ingredients, rng)[:2]

    used_methods = cooking_methods_in([step for r in recent for step in (r.get("instructions") or [])])
    techniques = _shuffled([t for t in COOKING_TECHNIQUES if t not in used_methods], rng)
    technique = techniques[0] if techniques else "sautéing"

    return VarietyConfig(
        temperature=temperature,
        creativity_seed=rng.choice(CREATIVITY_SEEDS),
        avoidance_terms=ingredients[:5] + cuisines[:3],
        cuisine_rotation=cuisine_rotation,
        ingredient_focus=ingredient_focus,
        cooking_technique=technique,
        complexity_target=select_alternating_complexity(
            [r.get("difficulty") or "medium" for r in recent], rng
        ),
        cultural_fusion=rng.random() > 0.7,
    )


def enhance_tags(tags: Sequence[str], variety: VarietyConfig) -> List[str]:
    out = list(tags)
    for marker, tag in SEED_TAGS:
        if marker in variety.creativity_seed:
            out.append(tag)
    out.append(f"{variety.cooking_technique}-technique")
    if variety.complexity_target == "simple":
        out.append("quick-and-easy")
    if variety.complexity_target == "complex":
        out.append("gourmet-level")
    if variety.cultural_fusion:
        out.append("cultural-fusion")
    return list(dict.fromkeys(out))


def dietary_tags(ingredients: Sequence[Mapping[str, Any]]) -> List[str]:
    names = [str(i.get("name", "")).lower() for i in ingredients]

    def mentions(terms: Sequence[str]) -> bool:
        return any(term in name for term in terms for name in names)

    has_meat = mentions(MEAT_TERMS)
    tags: List[str] = []
    if not has_meat:
        tags.append("vegetarian")
        if not mentions(DAIRY_TERMS) and not mentions(EGG_TERMS):
            tags.append("vegan")
    return tags


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    current[j - 1] + 1,
                    previous[j] + 1,
                    previous[j - 1] + (0 if ca == cb else 1),
                )
            )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    return (len(longer) - levenshtein(longer, shorter)) / len(longer)


def calculate_variety_score(recipe: Mapping[str, Any], recent: Sequence[Mapping[str, Any]]) -> float:
    """0..1, higher when the recipe differs from the session's recent recipes."""
    if not recent:
        return 1.0

    points = 0.0
    total = 0

    cuisines = [r.get("cuisineType") for r in recent if r.get("cuisineType")]
    if recipe.get("cuisineType") not in cuisines:
        points += 2
    total += 2

    seen = [str(i.get("name", "")).lower() for r in recent for i in (r.get("ingredients") or [])]
    names = [str(i.get("name", "")).lower() for i in (recipe.get("ingredients") or [])]
    if names:
        unique = [n for n in names if not any(s in n or n in s for s in seen)]
        points += min(len(unique) / len(names) * 3, 3)
    total += 3

    seen_methods = cooking_methods_in([step for r in recent for step in (r.get("instructions") or [])])
    new_methods = [m for m in cooking_methods_in(recipe.get("instructions") or []) if m not in seen_methods]
    points += min(len(new_methods), 2)
    total += 2

    name = str(recipe.get("name", "")).lower()
    if not any(string_similarity(str(r.get("name", "")).lower(), name) > 0.6 for r in recent):
        points += 1
    total += 1

    return min(points / total, 1.0)
