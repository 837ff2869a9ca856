from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth import require_admin
from ..db import get_session
from ..schemas import (
    AdminPlanUpdateRequest,
    UsageSummaryResponse,
    WaitlistEntryResponse,
    WaitlistOverviewResponse,
    WaitlistStatusName,
    WaitlistStatusUpdateRequest,
)
from ..services.accounts import serialize_account, set_account_plan
from ..services.usage_limits import get_usage_summary
from ..services.waitlist import (
    ADMIN_PAGE_SIZE,
    count_waitlist_interests,
    get_waitlist_stats,
    list_waitlist_entries,
    serialize_waitlist_entry,
    set_waitlist_status,
)
from .common import SERVICE_ERRORS, service_error


router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/users/{user_id}/plan")
async def admin_set_plan(
    user_id: str,
    payload: AdminPlanUpdateRequest,
    principal=Depends(require_admin),
):
    async with get_session() as session:
        try:
            account = await set_account_plan(
                session,
                user_id,
                payload.planName,
                subscription_status=payload.subscriptionStatus,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return serialize_account(account)


@router.get("/users/{user_id}/usage", response_model=UsageSummaryResponse)
async def admin_user_usage(user_id: str, principal=Depends(require_admin)):
    async with get_session() as session:
        usage = await get_usage_summary(session, user_id)
    return UsageSummaryResponse(**usage)


@router.get("/waitlist", response_model=WaitlistOverviewResponse)
async def admin_waitlist(
    status_filter: Optional[WaitlistStatusName] = Query(default=None, alias="status"),
    limit: int = Query(default=ADMIN_PAGE_SIZE, ge=1, le=500),
    principal=Depends(require_admin),
):
    async with get_session() as session:
        stats = await get_waitlist_stats(session)
        entries = await list_waitlist_entries(session, status=status_filter, limit=limit)
        interests = await count_waitlist_interests(session)
    return WaitlistOverviewResponse(
        stats=stats,
        entries=[serialize_waitlist_entry(e) for e in entries],
        **interests,
    )


@router.patch("/waitlist/{entry_id}", response_model=WaitlistEntryResponse)
async def admin_set_waitlist_status(
    entry_id: int,
    payload: WaitlistStatusUpdateRequest,
    principal=Depends(require_admin),
):
    async with get_session() as session:
        try:
            entry = await set_waitlist_status(session, entry_id, payload.status)
        except SERVICE_ERRORS as exc:
            raise service_error(exc)
    return serialize_waitlist_entry(entry)
