from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account
from ..services.accounts import get_or_create_account
from ..services.recipe_generator import RecipeGenerationError
from ..services.recipe_parser import RecipeParseError

# Exceptions the services raise on purpose; anything else propagates.
SERVICE_ERRORS = (LookupError, PermissionError, ValueError, RecipeGenerationError)


def service_error(exc: Exception) -> HTTPException:
    """Translate one of ``SERVICE_ERRORS`` into the matching HTTP error."""
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc).strip("'\""))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, (RecipeGenerationError, RecipeParseError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


async def principal_account(session: AsyncSession, principal: Dict[str, Any]) -> Account:
    return await get_or_create_account(session, principal.get("sub"), principal.get("email"))
