from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..schemas import GROCERY_CATEGORIES

UNIT_MAPPINGS: Dict[str, str] = {
    # volume
    "cups": "cup", "c": "cup", "cup": "cup",
    "tablespoons": "tbsp", "tablespoon": "tbsp", "tbsp": "tbsp", "tbs": "tbsp",
    "teaspoons": "tsp", "teaspoon": "tsp", "tsp": "tsp",
    "milliliters": "ml", "milliliter": "ml", "ml": "ml",
    "liters": "l", "liter": "l", "l": "l",
    "fluid ounces": "fl oz", "fluid ounce": "fl oz", "fl oz": "fl oz",
    "pints": "pt", "pint": "pt", "pt": "pt",
    "quarts": "qt", "quart": "qt", "qt": "qt",
    "gallons": "gal", "gallon": "gal", "gal": "gal",
    # weight
    "pounds": "lb", "pound": "lb", "lb": "lb", "lbs": "lb",
    "ounces": "oz", "ounce": "oz", "oz": "oz",
    "grams": "g", "gram": "g", "g": "g",
    "kilograms": "kg", "kilogram": "kg", "kg": "kg",
    # count
    "pieces": "piece", "piece": "piece", "pcs": "piece", "pc": "piece",
    "items": "item", "item": "item",
    "cloves": "clove", "clove": "clove",
    "slices": "slice", "slice": "slice",
    "strips": "strip", "strip": "strip",
    "sprigs": "sprig", "sprig": "sprig",
    "leaves": "leaf", "leaf": "leaf",
    "stalks": "stalk", "stalk": "stalk",
    "heads": "head", "head": "head",
    "bunches": "bunch", "bunch": "bunch",
    # special
    "pinches": "pinch", "pinch": "pinch",
    "dashes": "dash", "dash": "dash",
    "drops": "drop", "drop": "drop",
    "whole": "whole",
    "halves": "half", "half": "half",
    "quarters": "quarter", "quarter": "quarter",
}

# (from, to, factor); volume converts through ml, weight through g.
UNIT_CONVERSIONS = [
    ("tsp", "ml", 4.92892),
    ("tbsp", "ml", 14.7868),
    ("cup", "ml", 236.588),
    ("fl oz", "ml", 29.5735),
    ("pt", "ml", 473.176),
    ("qt", "ml", 946.353),
    ("gal", "ml", 3785.41),
    ("l", "ml", 1000),
    ("oz", "g", 28.3495),
    ("lb", "g", 453.592),
    ("kg", "g", 1000),
]

# (from, to, factor, ingredient keyword)
SPECIAL_CONVERSIONS = [
    ("cup", "piece", 0.5, "bell pepper"),
    ("piece", "cup", 2, "bell pepper"),
    ("cup", "slice", 4, "mozzarella"),
    ("slice", "cup", 0.25, "mozzarella"),
    ("piece", "cup", 0.1, "mozzarella"),
    ("cup", "piece", 10, "mozzarella"),
    ("piece", "slice", 0.4, "mozzarella"),
    ("slice", "piece", 2.5, "mozzarella"),
    ("piece", "cup", 1, "cucumber"),
    ("cup", "piece", 1, "cucumber"),
    ("medium", "piece", 1, "tomato"),
    ("piece", "medium", 1, "tomato"),
    ("piece", "cup", 0.0625, "cherry tomato"),
    ("cup", "piece", 16, "cherry tomato"),
]

VOLUME_UNITS = ["tsp", "tbsp", "cup", "ml", "l", "fl oz"]
WEIGHT_UNITS = ["g", "kg", "oz", "lb"]
COUNT_UNITS = ["piece", "slice", "clove", "leaf", "bunch", "can", "large", "medium", "small"]
WEIGHT_PREFERENCE = ["g", "oz", "lb", "kg"]

SOLID_FOODS = [
    "broccoli", "carrot", "celery", "cucumber", "quinoa", "rice", "pasta",
    "bread", "croutons", "cheese", "parmesan", "mozzarella", "cheddar",
    "chicken", "turkey", "beef", "pork", "salmon", "fish", "shrimp",
    "egg", "eggs", "garlic", "onion", "tomato", "bell pepper", "asparagus",
    "lettuce", "spinach", "kale", "basil", "parsley", "cilantro", "ginger",
    "salt", "pepper", "chili powder", "red pepper flakes", "cumin",
    "oregano", "thyme", "rosemary", "cinnamon", "nutmeg", "paprika",
    "turmeric", "cardamom", "black pepper", "white pepper", "cayenne",
    "garlic powder", "onion powder", "italian seasoning", "herbs",
    "mixed vegetables", "mixed berries", "berries", "strawberries",
    "blueberries", "raspberries", "blackberries",
]

LIQUID_FOODS = [
    "oil", "olive oil", "vegetable oil", "sesame oil", "coconut oil",
    "sauce", "alfredo sauce", "tomato sauce", "marinara sauce",
    "dressing", "caesar dressing", "vinaigrette", "ranch dressing",
    "juice", "lemon juice", "lime juice", "orange juice",
    "milk", "cream", "yogurt", "greek yogurt",
    "broth", "stock", "chicken broth", "beef broth", "vegetable broth",
    "water", "vinegar", "balsamic", "soy sauce", "honey", "syrup",
    "glaze", "balsamic glaze",
]

# Checked in insertion order; the first keyword contained in the name wins.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "produce": [
        "apple", "apples", "banana", "bananas", "orange", "oranges", "lemon", "lemons",
        "lime", "limes", "avocado", "avocados", "tomato", "tomatoes", "onion", "onions",
        "garlic", "carrot", "carrots", "celery", "lettuce", "spinach", "kale", "arugula",
        "cabbage", "broccoli", "cauliflower", "bell pepper", "bell peppers", "jalapeño",
        "jalapeños", "cucumber", "cucumbers", "zucchini", "potato", "potatoes",
        "sweet potato", "sweet potatoes", "mushroom", "mushrooms", "herbs", "basil",
        "parsley", "cilantro", "oregano", "thyme", "rosemary", "sage", "mint", "ginger",
        "fresh ginger", "green onions", "scallions", "shallots", "leeks", "radish",
        "radishes", "turnip", "turnips", "beets", "asparagus", "green beans", "peas",
        "corn", "eggplant", "squash", "pumpkin", "berries", "strawberries", "blueberries",
        "mixed greens", "mixed vegetables", "mixed berries", "cherry tomatoes",
        "cucumber sticks", "carrot sticks", "celery sticks", "basil leaves", "basil pesto",
    ],
    "dairy": [
        "milk", "whole milk", "skim milk", "2% milk", "almond milk", "soy milk", "oat milk",
        "cream", "heavy cream", "half and half", "sour cream", "buttermilk", "cheese",
        "cheddar cheese", "mozzarella cheese", "parmesan cheese", "swiss cheese",
        "feta cheese", "goat cheese", "cream cheese", "cottage cheese", "ricotta cheese",
        "butter", "unsalted butter", "salted butter", "margarine", "yogurt", "greek yogurt",
        "plain yogurt", "vanilla yogurt", "eggs", "egg", "egg whites", "egg yolks",
    ],
    "meat": [
        "beef", "ground beef", "steak", "beef roast", "beef stew meat", "beef brisket",
        "pork", "ground pork", "pork chops", "pork tenderloin", "pork shoulder", "pork ribs",
        "lamb", "ground lamb", "lamb chops", "leg of lamb", "bacon", "pancetta",
        "prosciutto", "ham", "sausage", "chorizo", "bratwurst", "hot dogs", "deli meat",
        "salami", "pepperoni",
    ],
    "poultry": [
        "chicken", "chicken breast", "chicken thighs", "chicken wings", "whole chicken",
        "ground chicken", "chicken tenders", "rotisserie chicken", "turkey", "ground turkey",
        "turkey breast", "turkey thighs", "duck", "duck breast", "cornish hen",
    ],
    "seafood": [
        "fish", "salmon", "tuna", "cod", "halibut", "tilapia", "mahi mahi", "sea bass",
        "trout", "mackerel", "sardines", "anchovies", "canned tuna", "canned salmon",
        "shrimp", "prawns", "crab", "crab meat", "lobster", "scallops", "mussels", "clams",
        "oysters", "calamari", "squid", "octopus",
    ],
    "bakery": [
        "bread", "white bread", "whole wheat bread", "sourdough bread", "rye bread",
        "bagels", "english muffins", "croissants", "muffins", "dinner rolls",
        "hamburger buns", "hot dog buns", "pita bread", "naan", "tortillas", "pie crust",
        "pizza dough", "breadcrumbs", "croutons",
    ],
    "frozen": [
        "frozen", "ice cream", "frozen yogurt", "sorbet", "frozen vegetables",
        "frozen fruits", "frozen berries", "frozen meals", "frozen pizza", "frozen fish",
        "frozen shrimp", "frozen chicken", "ice", "ice cubes",
    ],
    "spices": [
        "salt", "black pepper", "white pepper", "red pepper flakes", "cayenne pepper",
        "paprika", "cumin", "coriander", "turmeric", "curry powder", "garam masala",
        "cinnamon", "nutmeg", "allspice", "cloves", "cardamom", "star anise", "bay leaves",
        "dried oregano", "dried thyme", "dried basil", "dried rosemary", "garlic powder",
        "onion powder", "chili powder", "smoked paprika", "vanilla extract",
        "almond extract", "baking powder", "baking soda", "yeast", "active dry yeast",
        "instant yeast",
    ],
    "beverages": [
        "water", "sparkling water", "juice", "orange juice", "apple juice",
        "cranberry juice", "coffee", "ground coffee", "coffee beans", "instant coffee",
        "tea", "green tea", "black tea", "herbal tea", "soda", "cola", "ginger ale", "beer",
        "wine", "white wine", "red wine", "cooking wine", "vinegar", "balsamic vinegar",
        "apple cider vinegar", "white vinegar", "rice vinegar",
    ],
    "pantry": [
        "flour", "all-purpose flour", "whole wheat flour", "bread flour", "cake flour",
        "sugar", "brown sugar", "powdered sugar", "honey", "maple syrup", "molasses",
        "rice", "white rice", "brown rice", "jasmine rice", "basmati rice", "wild rice",
        "pasta", "spaghetti", "penne", "fusilli", "linguine", "macaroni",
        "lasagna noodles", "quinoa", "barley", "oats", "rolled oats", "steel cut oats",
        "bulgur", "couscous", "beans", "black beans", "kidney beans", "chickpeas",
        "lentils", "split peas", "canned beans", "canned tomatoes", "can of tomatoes",
        "tomato paste", "tomato sauce", "tomato puree", "olive oil", "vegetable oil",
        "canola oil", "coconut oil", "sesame oil", "soy sauce", "worcestershire sauce",
        "hot sauce", "ketchup", "mustard", "mayonnaise", "ranch dressing",
        "italian dressing", "balsamic dressing", "nuts", "almonds", "walnuts", "pecans",
        "cashews", "peanuts", "pine nuts", "seeds", "sesame seeds", "sunflower seeds",
        "pumpkin seeds", "chia seeds", "dried fruits", "raisins", "dates", "cranberries",
        "apricots", "coconut", "shredded coconut", "coconut milk", "coconut cream",
        "broth", "chicken broth", "beef broth", "vegetable broth", "stock",
    ],
}

DELI_KEYWORDS = [
    "sliced", "deli", "sandwich meat", "lunch meat", "cold cuts", "smoked", "cured",
    "prepared salads", "hummus", "guacamole",
]
SNACK_KEYWORDS = [
    "chips", "crackers", "cookies", "candy", "chocolate", "granola bars", "trail mix",
    "popcorn", "pretzels", "nuts", "dried fruit",
]
HEALTH_KEYWORDS = [
    "protein powder", "vitamins", "supplements", "probiotics", "organic", "gluten-free",
    "sugar-free", "low-sodium",
]

SINGULAR_FORMS: Dict[str, str] = {
    "eggs": "egg", "tomatoes": "tomato", "potatoes": "potato", "onions": "onion",
    "carrots": "carrot", "cucumbers": "cucumber", "peppers": "pepper",
    "bell peppers": "bell pepper", "mushrooms": "mushroom", "apples": "apple",
    "bananas": "banana", "oranges": "orange", "lemons": "lemon", "limes": "lime",
    "avocados": "avocado", "garlic cloves": "garlic", "cloves": "garlic",
    "herbs": "herb", "berries": "berry", "strawberries": "strawberry",
    "blueberries": "blueberry", "raspberries": "raspberry", "blackberries": "blackberry",
    "beans": "bean", "black beans": "black bean", "kidney beans": "kidney bean",
    "chicken breasts": "chicken breast", "turkey breasts": "turkey breast",
    "salmon fillets": "salmon fillet", "fish fillets": "fish fillet",
    "bread slices": "bread slice", "cheese slices": "cheese slice",
    "mozzarella slices": "mozzarella slice", "parmesan cheese": "parmesan",
    "cheddar cheese": "cheddar", "swiss cheese": "swiss", "feta cheese": "feta",
    "ricotta cheese": "ricotta", "fresh basil": "basil", "fresh parsley": "parsley",
    "fresh cilantro": "cilantro", "fresh ginger": "ginger", "fresh garlic": "garlic",
    "croutons": "crouton", "crackers": "cracker", "chips": "chip", "cookies": "cookie",
    "granola bars": "granola bar", "pretzels": "pretzel", "nuts": "nut",
}

DESCRIPTOR_PATTERNS = [
    "fresh ", "dried ", "canned ", "frozen ", "organic ", "large ", "medium ", "small ",
    " extra virgin", " virgin", " pure", " natural", " unsweetened", " sweetened",
    " low fat", " fat free", " reduced fat", " whole", " skim", " 2%", " 1%",
]

NAME_ABBREVIATIONS = [
    ("tbsp", "tablespoon"),
    ("tsp", "teaspoon"),
    ("oz", "ounce"),
    ("lb", "pound"),
    ("g", "gram"),
    ("kg", "kilogram"),
    ("ml", "milliliter"),
    ("l", "liter"),
]

# Names in the same group are always merged.
VARIATION_GROUPS = [
    ["egg", "eggs"],
    ["tomato", "tomatoes"],
    ["onion", "onions"],
    ["garlic", "garlic cloves"],
    ["basil", "fresh basil", "basil leaves"],
    ["parsley", "fresh parsley"],
    ["ginger", "fresh ginger"],
    ["cheese", "parmesan cheese", "mozzarella cheese"],
    ["bread", "whole grain bread"],
    ["milk", "whole milk"],
    ["sauce", "tomato sauce"],
    ["broth", "chicken broth"],
    ["juice", "lemon juice"],
    ["vegetables", "mixed vegetables"],
    ["cucumber", "cucumber sticks"],
    ["carrot", "carrot sticks"],
    ["celery", "celery sticks"],
    ["bean", "black bean", "kidney bean"],
    ["chicken", "chicken breast", "chicken thighs"],
    ["turkey", "ground turkey"],
    ["salmon", "salmon fillet"],
    ["asparagus", "asparagus spears"],
    ["spinach", "baby spinach"],
    ["seeds", "chia seeds", "sunflower seeds"],
    ["powder", "cocoa powder", "garlic powder"],
    ["cherry tomato", "cherry tomatoes"],
    ["roma tomato", "roma tomatoes"],
    ["grape tomato", "grape tomatoes"],
    ["beefsteak tomato", "beefsteak tomatoes"],
    ["can of tomatoes", "canned tomatoes", "tomato can"],
    ["mozzarella", "mozzarella cheese", "mozzarella balls", "mozzarella ball"],
    ["bell pepper", "bell peppers", "red bell pepper", "green bell pepper"],
    ["mixed greens", "greens", "salad greens", "lettuce"],
    ["olive oil", "oil", "extra virgin olive oil"],
    ["balsamic glaze", "balsamic", "balsamic vinegar"],
    ["glaze", "balsamic glaze"],
    ["basil pesto", "pesto"],
    ["whole wheat pasta", "pasta", "spaghetti", "penne"],
    ["greek yogurt", "yogurt", "plain yogurt"],
    ["mixed berries", "berries", "strawberries", "blueberries"],
    ["berries", "mixed berries", "berry"],
    ["mixed nuts", "nuts", "almonds", "walnuts"],
    ["chia seeds", "seeds", "chia"],
    ["cocoa powder", "powder", "cocoa"],
    ["honey", "raw honey", "organic honey"],
    ["quinoa", "cooked quinoa", "white quinoa"],
    ["oats", "rolled oats", "steel cut oats", "oatmeal"],
    ["hummus", "chickpea hummus", "homemade hummus"],
    ["granola", "homemade granola", "organic granola"],
    ["vinaigrette", "dressing", "salad dressing"],
    ["parmesan", "parmesan cheese", "grated parmesan"],
    ["vinegar", "balsamic vinegar"],
]

SIMILARITY_THRESHOLD = 0.8

_PARENTHETICAL_RE = re.compile(r"\(.*?\)")
_WHITESPACE_RE = re.compile(r"\s+")
_DESCRIPTOR_RES = [re.compile(re.escape(p), re.IGNORECASE) for p in DESCRIPTOR_PATTERNS]
_ABBREVIATION_RES = [
    (re.compile(rf"\b{re.escape(abbr)}\b", re.IGNORECASE), full) for abbr, full in NAME_ABBREVIATIONS
]


@dataclass
class ConsolidatedIngredient:
    name: str
    quantity: float
    unit: str
    category: str
    checked: bool = False
    sources: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class _Entry:
    name: str
    quantity: float
    unit: str
    source: Dict[str, Any]


def normalize_unit(unit: Optional[str]) -> str:
    normalized = (unit or "").lower().strip()
    return UNIT_MAPPINGS.get(normalized, normalized)


def normalize_ingredient_name(name: str) -> str:
    normalized = _WHITESPACE_RE.sub(" ", name.lower().strip())
    normalized = normalized.rstrip(",")
    normalized = _PARENTHETICAL_RE.sub("", normalized).strip()

    if "tomato" in normalized and "can" in normalized:
        return "can of tomatoes"

    normalized = SINGULAR_FORMS.get(normalized, normalized)

    for pattern in _DESCRIPTOR_RES:
        normalized = pattern.sub("", normalized)
    for pattern, full in _ABBREVIATION_RES:
        normalized = pattern.sub(full, normalized)
    return normalized.strip()


def _levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j - 1] + cost, current[j - 1] + 1, previous[j] + 1))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    return (len(longer) - _levenshtein(longer, shorter)) / len(longer)


def are_ingredient_names_similar(first: str, second: str) -> bool:
    a = normalize_ingredient_name(first)
    b = normalize_ingredient_name(second)
    if a == b:
        return True

    if (a in b or b in a) and min(len(a), len(b)) >= 3:
        # cherry and canned tomatoes are bought separately from plain tomatoes
        if ("cherry" in a and "tomato" in b and "cherry" not in b) or (
            "cherry" in b and "tomato" in a and "cherry" not in a
        ):
            return False
        if {a, b} == {"can of tomatoes", "tomato"}:
            return False
        return True

    for group in VARIATION_GROUPS:
        if a in group and b in group:
            return True

    return string_similarity(a, b) > SIMILARITY_THRESHOLD


def _find_group(groups: Mapping[str, List[_Entry]], name: str) -> Optional[str]:
    if name in groups:
        return name
    for existing in groups:
        if are_ingredient_names_similar(name, existing):
            return existing
    return None


def _unit_kind(unit: str) -> Optional[str]:
    if unit in VOLUME_UNITS:
        return "volume"
    if unit in WEIGHT_UNITS:
        return "weight"
    if unit in COUNT_UNITS:
        return "count"
    return None


def preferred_unit_for(name: str) -> Optional[str]:
    """Liquids consolidate in tablespoons; solids keep whatever is most common."""
    lowered = name.lower()
    if any(food in lowered for food in SOLID_FOODS):
        return None
    if any(food in lowered for food in LIQUID_FOODS):
        return "tbsp"
    return None


def select_target_unit(name: str, units: Sequence[str]) -> str:
    counts: Dict[str, int] = {}
    for unit in units:
        counts[unit] = counts.get(unit, 0) + 1

    preferred = preferred_unit_for(name)
    if preferred and preferred in counts:
        return preferred

    most_frequent = max(counts.items(), key=lambda kv: kv[1])[0]
    if all(u in VOLUME_UNITS for u in counts):
        for unit in reversed(VOLUME_UNITS):
            if unit in counts:
                return unit
    elif all(u in WEIGHT_UNITS for u in counts):
        for unit in WEIGHT_PREFERENCE:
            if unit in counts:
                return unit
    return most_frequent


def convert_quantity(quantity: float, from_unit: str, to_unit: str, name: str = "") -> Optional[float]:
    """Convert between units, or None when the units measure different things."""
    if from_unit == to_unit:
        return quantity

    lowered = name.lower()
    for src, dst, factor, keyword in SPECIAL_CONVERSIONS:
        if src != from_unit or dst != to_unit or keyword not in lowered:
            continue
        if keyword == "tomato" and ("cherry" in lowered or "can of tomatoes" in lowered):
            continue
        if keyword == "cherry tomato" and "cherry" not in lowered:
            continue
        return quantity * factor

    from_kind = _unit_kind(from_unit)
    to_kind = _unit_kind(to_unit)
    if from_kind is not None and from_kind != to_kind:
        return None

    for src, dst, factor in UNIT_CONVERSIONS:
        if src == from_unit and dst == to_unit:
            return quantity * factor
    for src, dst, factor in UNIT_CONVERSIONS:
        if src == to_unit and dst == from_unit:
            return quantity / factor

    base = {"volume": "ml", "weight": "g"}.get(from_kind or "") if from_kind == to_kind else None
    if base:
        to_base = convert_quantity(quantity, from_unit, base, name)
        if to_base is not None:
            return convert_quantity(to_base, base, to_unit, name)
    return None


def categorize_ingredient(name: str) -> str:
    lowered = name.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    if any(keyword in lowered for keyword in DELI_KEYWORDS):
        return "deli"
    if any(keyword in lowered for keyword in SNACK_KEYWORDS):
        return "snacks"
    if any(keyword in lowered for keyword in HEALTH_KEYWORDS):
        return "health"
    return "pantry"


def _merged(entries: Sequence[_Entry], quantity: float, unit: str) -> ConsolidatedIngredient:
    name = entries[0].name
    return ConsolidatedIngredient(
        name=name,
        quantity=quantity,
        unit=unit,
        category=categorize_ingredient(name),
        sources=[e.source for e in entries],
    )


def _consolidate_group(entries: List[_Entry]) -> List[ConsolidatedIngredient]:
    by_unit: Dict[str, List[_Entry]] = {}
    for entry in entries:
        by_unit.setdefault(entry.unit, []).append(entry)

    if len(by_unit) == 1:
        unit, same = next(iter(by_unit.items()))
        return [_merged(same, sum(e.quantity for e in same), unit)]

    target = select_target_unit(entries[0].name, [e.unit for e in entries])
    converted = [convert_quantity(e.quantity, e.unit, target, e.name) for e in entries]
    if all(q is not None for q in converted):
        return [_merged(entries, sum(converted), target)]

    return [_merged(same, sum(e.quantity for e in same), unit) for unit, same in by_unit.items()]


def consolidate_ingredients(ingredients: Iterable[Mapping[str, Any]]) -> List[ConsolidatedIngredient]:
    """Merge recipe ingredients into shopping lines, sorted by name.

    Each input needs ``name``, ``quantity`` and ``unit``; any extra keys are
    carried through untouched in ``ConsolidatedIngredient.sources``.
    """
    groups: Dict[str, List[_Entry]] = {}
    for raw in ingredients:
        entry = _Entry(
            name=normalize_ingredient_name(str(raw.get("name") or "")),
            quantity=float(raw.get("quantity") or 0),
            unit=normalize_unit(raw.get("unit")),
            source=dict(raw),
        )
        key = _find_group(groups, entry.name.lower().strip()) or entry.name.lower().strip()
        groups.setdefault(key, []).append(entry)

    consolidated: List[ConsolidatedIngredient] = []
    for entries in groups.values():
        consolidated.extend(_consolidate_group(entries))
    return sorted(consolidated, key=lambda item: item.name)


def consolidate_recipe_ingredients(
    ingredient_lists: Iterable[Iterable[Mapping[str, Any]]],
) -> List[ConsolidatedIngredient]:
    return consolidate_ingredients(item for ingredients in ingredient_lists for item in ingredients)


def organize_by_category(
    items: Iterable[ConsolidatedIngredient],
) -> Dict[str, List[ConsolidatedIngredient]]:
    organized: Dict[str, List[ConsolidatedIngredient]] = {category: [] for category in GROCERY_CATEGORIES}
    for item in items:
        organized.setdefault(item.category, []).append(item)
    for bucket in organized.values():
        bucket.sort(key=lambda item: item.name)
    return organized


def calculate_shopping_list_stats(items: Sequence[ConsolidatedIngredient]) -> Dict[str, Any]:
    total = len(items)
    checked = sum(1 for item in items if item.checked)
    organized = organize_by_category(items)
    completion = checked / total * 100 if total else 0
    return {
        "totalItems": total,
        "checkedItems": checked,
        "itemsByCategory": {category: len(bucket) for category, bucket in organized.items()},
        "completionPercentage": round(completion, 2),
    }


def format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:.2f}".rstrip("0").rstrip(".")


def format_ingredient_for_display(item: ConsolidatedIngredient) -> str:
    return f"{format_quantity(item.quantity)} {item.unit} {item.name}"
