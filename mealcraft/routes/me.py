from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_current_principal
from ..db import get_session
from ..schemas import UsageSummaryResponse
from ..services.accounts import serialize_account
from ..services.nutrition_profiles import get_nutrition_profile, serialize_nutrition_profile
from ..services.usage_limits import get_usage_summary
from .common import principal_account

router = APIRouter()


@router.get("/me")
async def me(principal=Depends(get_current_principal)):
    async with get_session() as session:
        account = await principal_account(session, principal)
        profile = await get_nutrition_profile(session, account.user_id)
        usage = await get_usage_summary(session, account.user_id)
    return {
        "sub": principal.get("sub"),
        "email": principal.get("email"),
        "claims": principal.get("claims"),
        "account": serialize_account(account),
        "nutritionProfile": serialize_nutrition_profile(profile),
        "usage": usage,
    }


@router.get("/me/usage", response_model=UsageSummaryResponse)
async def my_usage(principal=Depends(get_current_principal)):
    async with get_session() as session:
        account = await principal_account(session, principal)
        usage = await get_usage_summary(session, account.user_id)
    return UsageSummaryResponse(**usage)
