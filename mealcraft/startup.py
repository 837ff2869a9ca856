from __future__ import annotations

import logging
from typing import Iterable, Tuple

from .config import Settings

logger = logging.getLogger(__name__)


def _collect_missing(settings: Settings, pairs: Iterable[Tuple[str, str]]) -> list[str]:
    missing: list[str] = []
    for attr, label in pairs:
        value = getattr(settings, attr, None)
        if value in (None, "", [], {}):
            missing.append(label)
    return missing


def _check_plan_limits(settings: Settings) -> None:
    if settings.default_plan_name not in settings.plan_limits:
        raise RuntimeError(
            f"DEFAULT_PLAN_NAME '{settings.default_plan_name}' is not defined in PLAN_LIMITS"
        )
    for plan, limits in settings.plan_limits.items():
        for action, limit in limits.items():
            if not isinstance(limit, int) or limit < -1:
                raise RuntimeError(f"Invalid limit {limit!r} for plan '{plan}' action '{action}'")


def validate_settings(settings: Settings) -> None:
    """Fail fast when mandatory secrets/config values are missing for non-dev envs."""
    environment = (settings.environment or "dev").lower()
    _check_plan_limits(settings)

    recommended = [
        ("database_url", "DATABASE_URL"),
        ("redis_url", "REDIS_URL"),
        ("openai_api_key", "OPENAI_API_KEY"),
    ]
    if environment == "dev":
        dev_missing = _collect_missing(settings, recommended)
        if dev_missing:
            logger.warning(
                "Running in dev without recommended settings; some features may be disabled: %s",
                ", ".join(dev_missing),
            )
        return

    required_pairs: list[Tuple[str, str]] = list(recommended)
    if settings.auth_disable_verification:
        raise RuntimeError("AUTH_DISABLE_VERIFICATION is only allowed in dev")
    required_pairs.extend(
        [
            ("auth_issuer", "AUTH_ISSUER"),
            ("auth_audience", "AUTH_AUDIENCE"),
        ]
    )

    missing = _collect_missing(settings, required_pairs)
    if missing:
        raise RuntimeError(
            f"Missing required configuration for environment '{environment}': {', '.join(sorted(missing))}"
        )
