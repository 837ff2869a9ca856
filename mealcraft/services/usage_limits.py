from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import Account, UsageTracking

logger = logging.getLogger(__name__)

RECIPE_GENERATION = "recipe_generation"
MEAL_PLAN_CREATION = "meal_plan_creation"
USAGE_ACTIONS = (RECIPE_GENERATION, MEAL_PLAN_CREATION)

WEEKLY_ACTIONS = {MEAL_PLAN_CREATION}
UNLIMITED = -1

UPGRADE_MESSAGES = {
    RECIPE_GENERATION: (
        "You have reached your daily recipe generation limit. "
        "Please try again tomorrow or upgrade your plan for unlimited access."
    ),
    MEAL_PLAN_CREATION: (
        "You have reached your weekly meal plan limit. "
        "Please try again next week or upgrade your plan for unlimited access."
    ),
}


def _today() -> date:
    return datetime.now(timezone.utc).date()


def period_start(action: str, today: Optional[date] = None) -> date:
    """Start of the counting window: the UTC day, or Monday for weekly actions."""
    today = today or _today()
    if action in WEEKLY_ACTIONS:
        return today - timedelta(days=today.weekday())
    return today


def plan_limit(plan_name: Optional[str], action: str) -> int:
    settings = get_settings()
    limits = settings.plan_limits.get(plan_name or "") or settings.plan_limits[settings.default_plan_name]
    return int(limits.get(action, UNLIMITED))


async def _usage_row(
    session: AsyncSession, user_id: str, action: str, start: date
) -> Optional[UsageTracking]:
    result = await session.execute(
        select(UsageTracking)
        .where(
            UsageTracking.user_id == user_id,
            UsageTracking.action == action,
            UsageTracking.period_start == start,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def check_usage_limit(
    session: AsyncSession, user_id: str, action: str, today: Optional[date] = None
) -> bool:
    """True while the user may still perform ``action`` in the current window."""
    account = await session.get(Account, user_id)
    if account is None:
        return False
    limit = plan_limit(account.plan_name, action)
    if limit == UNLIMITED:
        return True
    row = await _usage_row(session, user_id, action, period_start(action, today))
    used = row.count if row else 0
    return used < limit


async def _bump_usage(session: AsyncSession, user_id: str, action: str, start: date) -> int:
    result = await session.execute(
        update(UsageTracking)
        .where(
            UsageTracking.user_id == user_id,
            UsageTracking.action == action,
            UsageTracking.period_start == start,
        )
        .values(count=UsageTracking.count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def increment_usage(
    session: AsyncSession, user_id: str, action: str, today: Optional[date] = None
) -> int:
    """Count one more ``action``; the increment happens in SQL so concurrent calls add up."""
    start = period_start(action, today)
    if not await _bump_usage(session, user_id, action, start):
        session.add(UsageTracking(user_id=user_id, action=action, period_start=start, count=1))
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent request created the period row first
        await session.rollback()
        if not await _bump_usage(session, user_id, action, start):
            raise
        await session.commit()

    row = await _usage_row(session, user_id, action, start)
    count = row.count if row else 0
    logger.debug("Usage %s for user %s now %d", action, user_id, count)
    return count


async def get_usage_summary(
    session: AsyncSession, user_id: str, today: Optional[date] = None
) -> Dict[str, Any]:
    account = await session.get(Account, user_id)
    plan_name = (account.plan_name if account else None) or get_settings().default_plan_name
    usage: List[Dict[str, Any]] = []
    for action in USAGE_ACTIONS:
        start = period_start(action, today)
        row = await _usage_row(session, user_id, action, start)
        used = row.count if row else 0
        limit = plan_limit(plan_name, action)
        usage.append(
            {
                "action": action,
                "limit": limit,
                "used": used,
                "remaining": None if limit == UNLIMITED else max(limit - used, 0),
                "periodStart": start,
            }
        )
    return {
        "planName": plan_name,
        "subscriptionStatus": account.subscription_status if account else None,
        "usage": usage,
    }
