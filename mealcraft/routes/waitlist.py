from __future__ import annotations

from fastapi import APIRouter, Request

from ..db import get_session
from ..ratelimit import limiter, waitlist_signup_limit
from ..schemas import WaitlistSignupRequest, WaitlistSignupResponse
from ..services.waitlist import upsert_waitlist_entry


router = APIRouter(prefix="/waitlist", tags=["waitlist"])


def _client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if forwarded:
        return forwarded
    return request.client.host if request.client else "unknown"


@router.post("", response_model=WaitlistSignupResponse)
@limiter.limit(waitlist_signup_limit)
async def join_waitlist(request: Request, payload: WaitlistSignupRequest):
    async with get_session() as session:
        entry = await upsert_waitlist_entry(
            session,
            payload,
            ip_address=_client_address(request),
            user_agent=request.headers.get("user-agent") or "unknown",
        )
    return WaitlistSignupResponse(
        message="Thank you for joining our waitlist! We'll be in touch soon.",
        id=entry.id,
        email=entry.email,
        priorityScore=entry.priority_score,
    )
