from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


json_type = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class TimestampMixin:
    """Common created/updated timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class MealCategory:
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"

    ORDER = (BREAKFAST, LUNCH, DINNER, SNACK)


class MealPlanStatus:
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    ALL = (IN_PROGRESS, COMPLETED, ARCHIVED)


class MealItemStatus:
    PENDING = "pending"
    GENERATING = "generating"
    GENERATED = "generated"
    LOCKED = "locked"


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    plan_name: Mapped[Optional[str]] = mapped_column(String(50))
    subscription_status: Mapped[Optional[str]] = mapped_column(String(20))


class NutritionProfile(Base, TimestampMixin):
    __tablename__ = "nutrition_profiles"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    age: Mapped[Optional[int]] = mapped_column(Integer)
    height_cm: Mapped[Optional[float]] = mapped_column(Float)
    weight_kg: Mapped[Optional[float]] = mapped_column(Float)
    gender: Mapped[Optional[str]] = mapped_column(String(16))
    activity_level: Mapped[Optional[str]] = mapped_column(String(32))
    goals: Mapped[Optional[str]] = mapped_column(String(32))
    meal_complexity: Mapped[Optional[str]] = mapped_column(String(16))
    daily_calories: Mapped[Optional[int]] = mapped_column(Integer)
    macro_protein: Mapped[Optional[int]] = mapped_column(Integer)
    macro_carbs: Mapped[Optional[int]] = mapped_column(Integer)
    macro_fat: Mapped[Optional[int]] = mapped_column(Integer)
    allergies: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    dietary_restrictions: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    cuisine_preferences: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)


class Recipe(Base, TimestampMixin):
    __tablename__ = "recipes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    ingredients: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    instructions: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    nutrition: Mapped[dict] = mapped_column(json_type, nullable=False, default=dict)
    prep_time: Mapped[Optional[int]] = mapped_column(Integer)
    cook_time: Mapped[Optional[int]] = mapped_column(Integer)
    servings: Mapped[Optional[int]] = mapped_column(Integer)
    difficulty: Mapped[Optional[str]] = mapped_column(String(16))
    cuisine_type: Mapped[Optional[str]] = mapped_column(String(64))
    meal_type: Mapped[Optional[str]] = mapped_column(String(16))
    tags: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    is_saved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rating: Mapped[Optional[int]] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"Recipe(id={self.id}, name={self.name!r}, user_id={self.user_id})"


class RecipeFeedback(Base, TimestampMixin):
    __tablename__ = "recipe_feedback"
    __table_args__ = (
        UniqueConstraint("user_id", "recipe_id", name="uq_recipe_feedback_user_recipe"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipe_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    liked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    reported_issues: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)


class WeeklyMealPlan(Base, TimestampMixin):
    __tablename__ = "weekly_meal_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    breakfast_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lunch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dinner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    snack_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_meals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=MealPlanStatus.IN_PROGRESS)
    global_preferences: Mapped[Optional[dict]] = mapped_column(json_type)

    items: Mapped[List["MealPlanItem"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="MealPlanItem.id",
        lazy="selectin",
    )
    shopping_list: Mapped[Optional["ShoppingList"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class MealPlanItem(Base, TimestampMixin):
    __tablename__ = "meal_plan_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    recipe_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("recipes.id", ondelete="SET NULL")
    )
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=MealItemStatus.PENDING)
    custom_preferences: Mapped[Optional[dict]] = mapped_column(json_type)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    plan: Mapped[WeeklyMealPlan] = relationship(back_populates="items")
    recipe: Mapped[Optional[Recipe]] = relationship(lazy="selectin")


class ShoppingList(Base, TimestampMixin):
    __tablename__ = "shopping_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    ingredients: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checked_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    export_metadata: Mapped[Optional[dict]] = mapped_column(json_type)

    plan: Mapped[WeeklyMealPlan] = relationship(back_populates="shopping_list")


class UsageTracking(Base, TimestampMixin):
    __tablename__ = "usage_tracking"
    __table_args__ = (
        UniqueConstraint("user_id", "action", "period_start", name="uq_usage_tracking_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class WaitlistStatus:
    WAITING = "waiting"
    INVITED = "invited"
    JOINED = "joined"
    DECLINED = "declined"

    ALL = (WAITING, INVITED, JOINED, DECLINED)


class WaitlistEntry(Base, TimestampMixin):
    __tablename__ = "waitlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    reason_for_interest: Mapped[Optional[str]] = mapped_column(Text)
    feature_priorities: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    dietary_goals: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    dietary_restrictions: Mapped[List[str]] = mapped_column(json_type, nullable=False, default=list)
    cooking_experience: Mapped[Optional[str]] = mapped_column(String(16))
    household_size: Mapped[Optional[int]] = mapped_column(Integer)
    referral_source: Mapped[Optional[str]] = mapped_column(String(100))
    ip_address: Mapped[Optional[str]] = mapped_column(String(255))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=WaitlistStatus.WAITING, index=True)
    priority_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    invited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
