from __future__ import annotations

import os
from fastapi import APIRouter

from .. import db
from ..config import get_settings
from ..redis_util import get_redis


router = APIRouter()


@router.get("/health")
def health():
    s = get_settings()
    return {
        "status": "ok",
        "service": s.app_name,
        "env": s.environment,
        "pid": os.getpid(),
        "database": db.SessionLocal is not None,
        "redis": get_redis() is not None,
    }
