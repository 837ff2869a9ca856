from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import Account

logger = logging.getLogger(__name__)


async def get_or_create_account(
    session: AsyncSession,
    user_id: str,
    email: Optional[str] = None,
) -> Account:
    account = await session.get(Account, user_id)
    if account is None:
        account = Account(
            user_id=user_id,
            email=email,
            plan_name=get_settings().default_plan_name,
            subscription_status="active",
        )
        session.add(account)
        logger.info("Created account for user %s", user_id)
    elif email and account.email != email:
        account.email = email
    else:
        return account

    try:
        await session.commit()
    except Exception:  # pragma: no cover
        await session.rollback()
        raise
    await session.refresh(account)
    return account


async def set_account_plan(
    session: AsyncSession,
    user_id: str,
    plan_name: str,
    subscription_status: Optional[str] = None,
) -> Account:
    if plan_name not in get_settings().plan_limits:
        raise ValueError(f"Unknown plan '{plan_name}'")

    account = await session.get(Account, user_id)
    if account is None:
        account = Account(user_id=user_id)
        session.add(account)
    account.plan_name = plan_name
    if subscription_status is not None:
        account.subscription_status = subscription_status

    try:
        await session.commit()
    except Exception:  # pragma: no cover
        await session.rollback()
        raise
    await session.refresh(account)
    logger.info("Plan for user %s set to %s", user_id, plan_name)
    return account


def serialize_account(account: Account) -> dict:
    return {
        "userId": account.user_id,
        "email": account.email,
        "planName": account.plan_name or get_settings().default_plan_name,
        "subscriptionStatus": account.subscription_status,
    }
