from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Dict, List


class Settings(BaseSettings):
    # Core
    app_name: str = Field(default="mealcraft-server")
    environment: str = Field(default="dev")  # dev|staging|prod
    log_json: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Auth (JWKS-backed bearer tokens)
    auth_issuer: str | None = Field(default=None)
    auth_jwks_url: str | None = Field(default=None)
    auth_audience: str | None = Field(default=None)
    auth_disable_verification: bool = Field(default=False)

    # Data
    database_url: str | None = Field(default=None)
    redis_url: str | None = Field(default=None)
    variety_session_ttl_seconds: int = Field(default=7 * 24 * 3600)

    # API
    cors_allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    admin_emails: List[str] = Field(default_factory=list)
    recipe_generation_rate_limit: str = Field(default="20/minute")
    waitlist_signup_rate_limit: str = Field(default="5/minute")

    # OpenAI
    openai_api_key: str | None = Field(default=None)
    openai_recipe_model: str = Field(default="gpt-4.1-nano")
    openai_recipe_max_output_tokens: int = Field(default=2000)
    openai_recipe_reasoning_effort: str | None = Field(default=None)
    openai_meal_plan_model: str = Field(default="gpt-4o")
    openai_meal_plan_max_output_tokens: int = Field(default=12000)
    openai_request_timeout_seconds: int = Field(default=90, ge=30, le=300)

    # Subscription plans: action -> allowance per window, -1 means unlimited
    plan_limits: Dict[str, Dict[str, int]] = Field(
        default_factory=lambda: {
            "essential": {"recipe_generation": 10, "meal_plan_creation": 2},
            "premium": {"recipe_generation": -1, "meal_plan_creation": -1},
        }
    )
    default_plan_name: str = Field(default="essential")

    # Meal plans
    meal_plan_archive_after_days: int = Field(default=30, ge=1)

    # Observability
    sentry_dsn: str | None = Field(default=None)
    sentry_traces_sample_rate: float = Field(default=0.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("cors_allowed_origins", "admin_emails", mode="before")
    @classmethod
    def _csv_to_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
