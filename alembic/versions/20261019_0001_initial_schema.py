"""Initial meal-planning schema, including the launch waitlist.

Revision ID: 5b8f2a61c3d4
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5b8f2a61c3d4"
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("plan_name", sa.String(length=50), nullable=True),
        sa.Column("subscription_status", sa.String(length=20), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "nutrition_profiles",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("height_cm", sa.Float(), nullable=True),
        sa.Column("weight_kg", sa.Float(), nullable=True),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("activity_level", sa.String(length=32), nullable=True),
        sa.Column("goals", sa.String(length=32), nullable=True),
        sa.Column("meal_complexity", sa.String(length=16), nullable=True),
        sa.Column("daily_calories", sa.Integer(), nullable=True),
        sa.Column("macro_protein", sa.Integer(), nullable=True),
        sa.Column("macro_carbs", sa.Integer(), nullable=True),
        sa.Column("macro_fat", sa.Integer(), nullable=True),
        sa.Column("allergies", JSON, nullable=False),
        sa.Column("dietary_restrictions", JSON, nullable=False),
        sa.Column("cuisine_preferences", JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ingredients", JSON, nullable=False),
        sa.Column("instructions", JSON, nullable=False),
        sa.Column("nutrition", JSON, nullable=False),
        sa.Column("prep_time", sa.Integer(), nullable=True),
        sa.Column("cook_time", sa.Integer(), nullable=True),
        sa.Column("servings", sa.Integer(), nullable=True),
        sa.Column("difficulty", sa.String(length=16), nullable=True),
        sa.Column("cuisine_type", sa.String(length=64), nullable=True),
        sa.Column("meal_type", sa.String(length=16), nullable=True),
        sa.Column("tags", JSON, nullable=False),
        sa.Column("is_saved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rating", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_recipes_user_id", "recipes", ["user_id"])

    op.create_table(
        "recipe_feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "recipe_id",
            sa.Integer(),
            sa.ForeignKey("recipes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("liked", sa.Boolean(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("reported_issues", JSON, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "recipe_id", name="uq_recipe_feedback_user_recipe"),
    )
    op.create_index("ix_recipe_feedback_recipe_id", "recipe_feedback", ["recipe_id"])
    op.create_index("ix_recipe_feedback_user_id", "recipe_feedback", ["user_id"])

    op.create_table(
        "weekly_meal_plans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("breakfast_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lunch_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dinner_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("snack_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_meals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("global_preferences", JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_weekly_meal_plans_user_id", "weekly_meal_plans", ["user_id"])

    op.create_table(
        "meal_plan_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "plan_id",
            sa.Integer(),
            sa.ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "recipe_id",
            sa.Integer(),
            sa.ForeignKey("recipes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("custom_preferences", JSON, nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_meal_plan_items_plan_id", "meal_plan_items", ["plan_id"])

    op.create_table(
        "shopping_lists",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "plan_id",
            sa.Integer(),
            sa.ForeignKey("weekly_meal_plans.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("ingredients", JSON, nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("checked_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("export_metadata", JSON, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "usage_tracking",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "action", "period_start", name="uq_usage_tracking_period"),
    )
    op.create_index("ix_usage_tracking_user_id", "usage_tracking", ["user_id"])

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("reason_for_interest", sa.Text(), nullable=True),
        sa.Column("feature_priorities", JSON, nullable=False),
        sa.Column("dietary_goals", JSON, nullable=False),
        sa.Column("dietary_restrictions", JSON, nullable=False),
        sa.Column("cooking_experience", sa.String(length=16), nullable=True),
        sa.Column("household_size", sa.Integer(), nullable=True),
        sa.Column("referral_source", sa.String(length=100), nullable=True),
        sa.Column("ip_address", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="waiting"),
        sa.Column("priority_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_waitlist_entries_status", "waitlist_entries", ["status"])


def downgrade() -> None:
    op.drop_index("ix_waitlist_entries_status", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")
    op.drop_index("ix_usage_tracking_user_id", table_name="usage_tracking")
    op.drop_table("usage_tracking")
    op.drop_table("shopping_lists")
    op.drop_index("ix_meal_plan_items_plan_id", table_name="meal_plan_items")
    op.drop_table("meal_plan_items")
    op.drop_index("ix_weekly_meal_plans_user_id", table_name="weekly_meal_plans")
    op.drop_table("weekly_meal_plans")
    op.drop_index("ix_recipe_feedback_user_id", table_name="recipe_feedback")
    op.drop_index("ix_recipe_feedback_recipe_id", table_name="recipe_feedback")
    op.drop_table("recipe_feedback")
    op.drop_index("ix_recipes_user_id", table_name="recipes")
    op.drop_table("recipes")
    op.drop_table("nutrition_profiles")
    op.drop_table("accounts")
