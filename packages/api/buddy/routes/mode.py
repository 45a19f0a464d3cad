# This project was developed with assistance from AI tools.
"""Deal mode route."""

import uuid

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.mode import DealModeResponse
from ..services.mode import get_deal_mode
from ._roles import ALL_AUTHENTICATED

router = APIRouter()


@router.get(
    "/{deal_id}/mode",
    response_model=DealModeResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def deal_mode(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DealModeResponse:
    """Display mode, derived fresh on every call."""
    result = await get_deal_mode(session, user, deal_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    return DealModeResponse(**result)
