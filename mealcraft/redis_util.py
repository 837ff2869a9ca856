from __future__ import annotations

from functools import lru_cache

import redis
from .config import get_settings


@lru_cache(maxsize=4)
def _client_for(url: str) -> redis.Redis:
    return redis.from_url(url, decode_responses=True)


def get_redis() -> redis.Redis | None:
    url = get_settings().redis_url
    if not url:
        return None
    return _client_for(url)
