from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings


def _storage_uri() -> str:
    return get_settings().redis_url or "memory://"


def recipe_generation_limit() -> str:
    """Per-client budget for the LLM-backed endpoints."""
    return get_settings().recipe_generation_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=_storage_uri(),
)


def waitlist_signup_limit() -> str:
    return get_settings().waitlist_signup_rate_limit
