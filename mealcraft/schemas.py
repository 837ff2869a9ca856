from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Literal
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

MealType = Literal["breakfast", "lunch", "dinner", "snack"]
Difficulty = Literal["easy", "medium", "hard"]
MealComplexity = Literal["simple", "medium", "hard"]

MAX_MEAL_PLAN_PAGE_SIZE = 50
MAX_SAVED_RECIPES_PAGE_SIZE = 100

COMMON_ALLERGIES = [
    "Dairy",
    "Eggs",
    "Fish",
    "Shellfish",
    "Tree nuts",
    "Peanuts",
    "Wheat/Gluten",
    "Soy",
    "Sesame",
]

DIETARY_RESTRICTIONS = [
    "Vegetarian",
    "Vegan",
    "Gluten-free",
    "Dairy-free",
    "Keto",
    "Paleo",
    "Low-carb",
    "Low-fat",
    "Low-sodium",
    "Mediterranean",
    "Whole30",
]

CUISINE_TYPES = [
    "American",
    "Italian",
    "Mexican",
    "Asian",
    "Chinese",
    "Japanese",
    "Thai",
    "Indian",
    "Mediterranean",
    "French",
    "Greek",
    "Middle Eastern",
    "Korean",
    "Vietnamese",
]

ACTIVITY_LEVELS = [
    "sedentary",
    "lightly_active",
    "moderately_active",
    "very_active",
    "extremely_active",
]

FITNESS_GOALS = [
    "lose_weight",
    "gain_weight",
    "maintain_weight",
    "gain_muscle",
    "improve_health",
]

GROCERY_CATEGORIES = [
    "produce",
    "dairy",
    "meat",
    "poultry",
    "seafood",
    "bakery",
    "deli",
    "frozen",
    "pantry",
    "spices",
    "beverages",
    "snacks",
    "health",
    "other",
]


class Ingredient(BaseModel):
    name: str
    quantity: float = Field(gt=0)
    unit: str


class Nutrition(BaseModel):
    calories: float = Field(gt=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)


class RecipePayload(BaseModel):
    """A recipe as produced by the model and stored for the user."""

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: List[str] = Field(min_length=1)
    nutrition: Nutrition
    prepTime: float = Field(ge=0)
    cookTime: float = Field(ge=0)
    servings: float = Field(gt=0)
    difficulty: Difficulty
    mealType: MealType
    cuisineType: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class RecipeResponse(RecipePayload):
    id: int
    isSaved: bool = False
    rating: Optional[int] = None
    createdAt: Optional[datetime] = None


class UserProfileContext(BaseModel):
    age: Optional[float] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    activityLevel: Optional[str] = None
    goals: Optional[str] = None


class RecipeGenerationRequest(BaseModel):
    mealType: MealType
    calories: Optional[float] = Field(default=None, gt=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    allergies: List[str] = Field(default_factory=list)
    dietaryRestrictions: List[str] = Field(default_factory=list)
    cuisinePreferences: List[str] = Field(default_factory=list)
    userProfile: Optional[UserProfileContext] = None
    varietyBoost: bool = False
    avoidSimilarRecipes: bool = False
    sessionId: Optional[str] = Field(default=None, max_length=128)
    mealComplexity: Optional[MealComplexity] = None
    servings: Optional[int] = Field(default=None, gt=0)
    timeToMake: Optional[int] = Field(default=None, gt=0)
    difficulty: Optional[Difficulty] = None
    maxPrepTime: Optional[int] = None
    maxCookTime: Optional[int] = None


class MealPreferences(BaseModel):
    allergies: Optional[List[str]] = None
    dietaryRestrictions: Optional[List[str]] = None
    cuisinePreferences: Optional[List[str]] = None
    maxPrepTime: Optional[int] = None
    maxCookTime: Optional[int] = None
    difficultyLevel: Optional[Difficulty] = None
    calories: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None


class PreferenceValidationResponse(BaseModel):
    isValid: bool
    errors: List[str] = []
    warnings: List[str] = []


class NutritionProfileSaveRequest(BaseModel):
    age: Optional[int] = Field(default=None, gt=0, lt=130)
    heightCm: Optional[float] = Field(
        default=None, gt=0, validation_alias=AliasChoices("heightCm", "height_cm")
    )
    weightKg: Optional[float] = Field(
        default=None, gt=0, validation_alias=AliasChoices("weightKg", "weight_kg")
    )
    gender: Optional[Literal["male", "female"]] = None
    activityLevel: Optional[str] = None
    goals: Optional[str] = None
    mealComplexity: Optional[MealComplexity] = None
    dailyCalories: Optional[int] = Field(default=None, gt=0)
    macroProtein: Optional[int] = Field(default=None, ge=0)
    macroCarbs: Optional[int] = Field(default=None, ge=0)
    macroFat: Optional[int] = Field(default=None, ge=0)
    allergies: List[str] = Field(default_factory=list)
    dietaryRestrictions: List[str] = Field(default_factory=list)
    cuisinePreferences: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class NutritionProfileResponse(BaseModel):
    age: Optional[int] = None
    heightCm: Optional[float] = None
    weightKg: Optional[float] = None
    gender: Optional[str] = None
    activityLevel: Optional[str] = None
    goals: Optional[str] = None
    mealComplexity: Optional[str] = None
    dailyCalories: Optional[int] = None
    macroProtein: Optional[int] = None
    macroCarbs: Optional[int] = None
    macroFat: Optional[int] = None
    allergies: List[str] = []
    dietaryRestrictions: List[str] = []
    cuisinePreferences: List[str] = []
    bmi: Optional[float] = None
    bmiCategory: Optional[str] = None
    isComplete: bool = False
    updatedAt: Optional[datetime] = None


class NutritionTargetsRequest(BaseModel):
    age: int = Field(gt=0, lt=130)
    heightCm: float = Field(gt=0)
    weightKg: float = Field(gt=0)
    gender: Literal["male", "female"]
    activityLevel: str
    goals: str


class NutritionTargetsResponse(BaseModel):
    bmr: float
    dailyCalories: int
    protein: int
    carbs: int
    fat: int
    distribution: Dict[str, int]
    bmi: float
    bmiCategory: str


class RecipeGenerateResponse(BaseModel):
    recipe: RecipePayload
    recipeId: Optional[int] = None
    confidence: float
    issues: List[str] = []
    nutritionAccuracy: float
    varietyScore: float
    metadata: Dict[str, Any] = {}


class RecipeSaveRequest(BaseModel):
    recipeId: Optional[int] = None
    recipe: Optional[RecipePayload] = None
    isSaved: bool = True


class RecipeListResponse(BaseModel):
    recipes: List[RecipeResponse]
    total: int
    limit: int
    offset: int


class RecipeFeedbackRequest(BaseModel):
    recipeId: int
    liked: bool
    feedback: Optional[str] = Field(default=None, max_length=2000)
    reportedIssues: List[str] = Field(default_factory=list)


class RecipeFeedbackResponse(BaseModel):
    id: int
    recipeId: int
    liked: bool
    feedback: Optional[str] = None
    reportedIssues: List[str] = []
    createdAt: Optional[datetime] = None


class RecipeRatingRequest(BaseModel):
    rating: int = Field(ge=1, le=5)


class CreateWeeklyMealPlanRequest(BaseModel):
    name: str
    description: Optional[str] = None
    startDate: date
    endDate: date
    breakfastCount: int = 0
    lunchCount: int = 0
    dinnerCount: int = 0
    snackCount: int = 0
    globalPreferences: Optional[MealPreferences] = None


class MealPlanItemResponse(BaseModel):
    id: int
    planId: int
    recipeId: Optional[int] = None
    category: MealType
    dayNumber: int
    status: str
    customPreferences: Optional[Dict[str, Any]] = None
    lockedAt: Optional[datetime] = None
    recipe: Optional[RecipeResponse] = None


class WeeklyMealPlanResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    startDate: date
    endDate: date
    breakfastCount: int
    lunchCount: int
    dinnerCount: int
    snackCount: int
    totalMeals: int
    status: str
    globalPreferences: Optional[Dict[str, Any]] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    mealPlanItems: List[MealPlanItemResponse] = []
    hasShoppingList: bool = False


class MealPlanListResponse(BaseModel):
    plans: List[WeeklyMealPlanResponse]
    total: int
    limit: int
    offset: int


class MealPlanStatusUpdateRequest(BaseModel):
    status: Literal["in_progress", "completed", "archived"]


class GenerateMealRequest(BaseModel):
    customPreferences: Optional[MealPreferences] = None


class GenerateMealResponse(BaseModel):
    item: MealPlanItemResponse
    recipe: RecipePayload
    confidence: float
    issues: List[str] = []
    varietyScore: float


class BatchGenerateMealsRequest(BaseModel):
    mealIds: Optional[List[int]] = None


class BatchGenerateMealsResponse(BaseModel):
    generated: List[MealPlanItemResponse]
    skipped: List[int] = []


class LockMealRequest(BaseModel):
    locked: bool


class CategoryCompletion(BaseModel):
    isComplete: bool
    totalMeals: int
    lockedMeals: int


class LockMealResponse(BaseModel):
    item: MealPlanItemResponse
    categoryComplete: bool
    planComplete: bool
    planStatus: str


class PlanCompletionResponse(BaseModel):
    isComplete: bool
    totalMeals: int
    lockedMeals: int
    completionByCategory: Dict[str, CategoryCompletion]
    nextCategory: Optional[MealType] = None


class ArchiveResponse(BaseModel):
    archived: int


class ShoppingListIngredient(BaseModel):
    name: str
    quantity: float
    unit: str
    category: str = "pantry"
    checked: bool = False
    recipeNames: List[str] = []
    recipeIds: List[int] = []


class ShoppingListStats(BaseModel):
    totalIngredients: int
    totalMeals: int
    categoriesUsed: int


class ShoppingListResponse(BaseModel):
    id: int
    planId: int
    ingredients: List[ShoppingListIngredient]
    totalItems: int
    checkedItems: int
    completionPercentage: float
    ingredientsByCategory: Dict[str, List[ShoppingListIngredient]] = {}
    stats: Optional[ShoppingListStats] = None
    updatedAt: Optional[datetime] = None


class IngredientCheckRequest(BaseModel):
    ingredientName: str = Field(min_length=1)
    checked: bool
    unit: Optional[str] = None


class IngredientCheckResponse(BaseModel):
    success: bool
    ingredientName: str
    checked: bool
    checkedItems: int


class UsageActionSummary(BaseModel):
    action: str
    limit: int
    used: int
    remaining: Optional[int] = None
    periodStart: date


class UsageSummaryResponse(BaseModel):
    planName: str
    subscriptionStatus: Optional[str] = None
    usage: List[UsageActionSummary]


class AdminPlanUpdateRequest(BaseModel):
    planName: str = Field(min_length=1, max_length=50)
    subscriptionStatus: Optional[str] = Field(default=None, max_length=20)


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
WaitlistStatusName = Literal["waiting", "invited", "joined", "declined"]


class WaitlistSignupRequest(BaseModel):
    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    reasonForInterest: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    featurePriorities: List[str] = Field(default_factory=list)
    dietaryGoals: List[str] = Field(default_factory=list)
    dietaryRestrictions: List[str] = Field(default_factory=list)
    cookingExperience: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    householdSize: Optional[int] = Field(default=None, ge=1, le=20)
    referralSource: Optional[str] = Field(default=None, max_length=100)


class WaitlistSignupResponse(BaseModel):
    success: bool = True
    message: str
    id: int
    email: str
    priorityScore: int


class WaitlistEntryResponse(BaseModel):
    id: int
    email: str
    name: str
    reasonForInterest: Optional[str] = None
    featurePriorities: List[str] = Field(default_factory=list)
    dietaryGoals: List[str] = Field(default_factory=list)
    dietaryRestrictions: List[str] = Field(default_factory=list)
    cookingExperience: Optional[str] = None
    householdSize: Optional[int] = None
    referralSource: Optional[str] = None
    status: WaitlistStatusName
    priorityScore: int
    createdAt: Optional[datetime] = None
    invitedAt: Optional[datetime] = None
    joinedAt: Optional[datetime] = None
    declinedAt: Optional[datetime] = None


class WaitlistStats(BaseModel):
    total: int
    waiting: int
    invited: int
    joined: int
    declined: int


class FeatureCount(BaseModel):
    feature: str
    count: int


class GoalCount(BaseModel):
    goal: str
    count: int


class WaitlistOverviewResponse(BaseModel):
    stats: WaitlistStats
    entries: List[WaitlistEntryResponse]
    featurePriorities: List[FeatureCount]
    dietaryGoals: List[GoalCount]


class WaitlistStatusUpdateRequest(BaseModel):
    status: WaitlistStatusName
