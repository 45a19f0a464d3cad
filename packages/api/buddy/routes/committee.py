# This project was developed with assistance from AI tools.
"""Credit committee routes."""

import uuid
from dataclasses import asdict

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ApiError
from ..middleware.auth import CurrentUser, require_roles
from ..schemas.committee import CommitteeResponse, TallyResponse, VoteItem, VoteRequest
from ..services import committee as committee_service
from ..services.committee import CommitteeNotOpenError
from ..services.deal import DealNotFoundError
from ._roles import BANK_READ, BANK_WRITE

router = APIRouter()


@router.get(
    "/{deal_id}/committee",
    response_model=CommitteeResponse,
    dependencies=[Depends(require_roles(*BANK_READ))],
)
async def get_committee(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> CommitteeResponse:
    try:
        tally, votes = await committee_service.get_committee_tally(session, user, deal_id)
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc
    return CommitteeResponse(
        deal_id=deal_id,
        tally=TallyResponse(**asdict(tally)),
        votes=[VoteItem.model_validate(v) for v in votes],
    )


@router.post(
    "/{deal_id}/committee/votes",
    response_model=TallyResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def cast_vote(
    deal_id: uuid.UUID,
    body: VoteRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> TallyResponse:
    """Cast or replace the caller's vote. Only open while the deal is ``ready``."""
    try:
        tally = await committee_service.cast_vote(
            session, user, deal_id, body.vote, body.rationale
        )
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc
    except CommitteeNotOpenError as exc:
        raise ApiError(
            status_code=status.HTTP_409_CONFLICT,
            error="committee_not_open",
            detail=str(exc),
        ) from exc
    return TallyResponse(**asdict(tally))
