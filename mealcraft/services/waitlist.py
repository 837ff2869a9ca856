from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import WaitlistEntry, WaitlistStatus
from ..schemas import WaitlistSignupRequest

logger = logging.getLogger(__name__)

QUICK_SIGNUP_REASON = "Quick signup - will provide details later"
ADMIN_PAGE_SIZE = 50

# request field -> column
_SIGNUP_FIELDS = {
    "name": "name",
    "featurePriorities": "feature_priorities",
    "dietaryGoals": "dietary_goals",
    "dietaryRestrictions": "dietary_restrictions",
    "cookingExperience": "cooking_experience",
    "householdSize": "household_size",
    "referralSource": "referral_source",
}

_STATUS_TIMESTAMPS = {
    WaitlistStatus.INVITED: "invited_at",
    WaitlistStatus.JOINED: "joined_at",
    WaitlistStatus.DECLINED: "declined_at",
}


def calculate_priority_score(entry: Mapping[str, Any]) -> int:
    """Rank signups by how much they tell us about what to build first.

    ``entry`` uses the column names of ``WaitlistEntry``.
    """
    score = 10
    if len(entry.get("reason_for_interest") or "") > 50:
        score += 5
    if entry.get("dietary_goals"):
        score += 3
    if entry.get("dietary_restrictions"):
        score += 2
    if entry.get("cooking_experience"):
        score += 1
    if (entry.get("household_size") or 0) > 1:
        score += 2
    score += 2 * len(entry.get("feature_priorities") or [])
    return score


def _score_row(row: WaitlistEntry) -> int:
    return calculate_priority_score(
        {
            "reason_for_interest": row.reason_for_interest,
            "dietary_goals": row.dietary_goals,
            "dietary_restrictions": row.dietary_restrictions,
            "cooking_experience": row.cooking_experience,
            "household_size": row.household_size,
            "feature_priorities": row.feature_priorities,
        }
    )


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_waitlist_entry_by_email(session: AsyncSession, email: str) -> Optional[WaitlistEntry]:
    result = await session.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.email == normalize_email(email))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _apply_signup(
    row: WaitlistEntry,
    request: WaitlistSignupRequest,
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> None:
    provided = request.model_fields_set
    for field_name, column in _SIGNUP_FIELDS.items():
        if field_name in provided or getattr(row, column) is None:
            value = getattr(request, field_name)
            setattr(row, column, list(value) if isinstance(value, list) else value)
    if request.reasonForInterest:
        row.reason_for_interest = request.reasonForInterest
    elif not row.reason_for_interest:
        row.reason_for_interest = QUICK_SIGNUP_REASON
    row.ip_address = ip_address or row.ip_address
    row.user_agent = user_agent or row.user_agent
    row.priority_score = _score_row(row)


async def upsert_waitlist_entry(
    session: AsyncSession,
    request: WaitlistSignupRequest,
    *,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> WaitlistEntry:
    """Join the waitlist, or refresh the details of an existing signup.

    Fields left out of a repeat signup keep their stored values, and an empty
    reason never replaces one given earlier.
    """
    email = normalize_email(request.email)
    row = await get_waitlist_entry_by_email(session, email)
    created = row is None
    if row is None:
        row = WaitlistEntry(email=email, status=WaitlistStatus.WAITING)
        session.add(row)
    _apply_signup(row, request, ip_address, user_agent)

    try:
        await session.commit()
    except IntegrityError:
        # the same email signed up concurrently
        await session.rollback()
        row = await get_waitlist_entry_by_email(session, email)
        if row is None:
            raise
        created = False
        _apply_signup(row, request, ip_address, user_agent)
        await session.commit()
    await session.refresh(row)
    logger.info(
        "Waitlist %s for %s (priority=%d)", "signup" if created else "update", email, row.priority_score
    )
    return row


async def list_waitlist_entries(
    session: AsyncSession,
    *,
    status: Optional[str] = None,
    limit: int = ADMIN_PAGE_SIZE,
) -> List[WaitlistEntry]:
    if status is not None and status not in WaitlistStatus.ALL:
        raise ValueError(f"Unsupported waitlist status '{status}'")
    stmt = select(WaitlistEntry)
    if status is not None:
        stmt = stmt.where(WaitlistEntry.status == status)
    stmt = stmt.order_by(
        WaitlistEntry.priority_score.desc(),
        WaitlistEntry.created_at.desc(),
        WaitlistEntry.id.desc(),
    ).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars())


async def get_waitlist_stats(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(
        select(WaitlistEntry.status, func.count()).group_by(WaitlistEntry.status)
    )
    counts = {status: int(count) for status, count in result.all()}
    stats = {status: counts.get(status, 0) for status in WaitlistStatus.ALL}
    stats["total"] = sum(counts.values())
    return stats


async def count_waitlist_interests(session: AsyncSession) -> Dict[str, List[Dict[str, Any]]]:
    """How often each feature priority and dietary goal was picked, most common first."""
    result = await session.execute(select(WaitlistEntry.feature_priorities, WaitlistEntry.dietary_goals))
    features: Counter = Counter()
    goals: Counter = Counter()
    for feature_priorities, dietary_goals in result.all():
        features.update(feature_priorities or [])
        goals.update(dietary_goals or [])
    return {
        "featurePriorities": [{"feature": name, "count": n} for name, n in features.most_common()],
        "dietaryGoals": [{"goal": name, "count": n} for name, n in goals.most_common()],
    }


async def set_waitlist_status(
    session: AsyncSession,
    entry_id: int,
    status: str,
    now: Optional[datetime] = None,
) -> WaitlistEntry:
    if status not in WaitlistStatus.ALL:
        raise ValueError(f"Unsupported waitlist status '{status}'")
    row = await session.get(WaitlistEntry, entry_id)
    if row is None:
        raise LookupError("Waitlist entry not found")
    row.status = status
    column = _STATUS_TIMESTAMPS.get(status)
    if column:
        setattr(row, column, now or datetime.now(timezone.utc))
    await session.commit()
    await session.refresh(row)
    logger.info("Waitlist entry %s moved to %s", entry_id, status)
    return row


def serialize_waitlist_entry(row: WaitlistEntry) -> Dict[str, Any]:
    return {
        "id": row.id,
        "email": row.email,
        "name": row.name,
        "reasonForInterest": row.reason_for_interest,
        "featurePriorities": list(row.feature_priorities or []),
        "dietaryGoals": list(row.dietary_goals or []),
        "dietaryRestrictions": list(row.dietary_restrictions or []),
        "cookingExperience": row.cooking_experience,
        "householdSize": row.household_size,
        "referralSource": row.referral_source,
        "status": row.status,
        "priorityScore": row.priority_score,
        "createdAt": row.created_at,
        "invitedAt": row.invited_at,
        "joinedAt": row.joined_at,
        "declinedAt": row.declined_at,
    }
