# This project was developed with assistance from AI tools.
"""Deal ledger routes."""

import uuid

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas import Pagination
from ..schemas.ledger import LedgerEventItem, LedgerListResponse, LedgerVerifyResponse
from ..services.ledger import list_ledger_events, verify_ledger_chain
from ..services.scope import get_scoped_deal
from ._roles import BANK_READ

router = APIRouter()


@router.get(
    "/{deal_id}/ledger",
    response_model=LedgerListResponse,
    dependencies=[Depends(require_roles(*BANK_READ))],
)
async def list_events(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    kind: str | None = Query(default=None, description="Event kind prefix, e.g. 'deal.lifecycle'"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
) -> LedgerListResponse:
    """A deal's timeline, oldest first."""
    result = await list_ledger_events(
        session, user, deal_id, kind_prefix=kind, offset=offset, limit=limit
    )
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    events, total = result
    return LedgerListResponse(
        data=[LedgerEventItem.model_validate(e) for e in events],
        pagination=Pagination(
            total=total,
            offset=offset,
            limit=limit,
            has_more=(offset + limit < total),
        ),
    )


@router.get(
    "/{deal_id}/ledger/verify",
    response_model=LedgerVerifyResponse,
    dependencies=[Depends(require_roles(*BANK_READ))],
)
async def verify_chain(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LedgerVerifyResponse:
    """Recompute the deal's hash chain and report the first break, if any."""
    if await get_scoped_deal(session, user, deal_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    return LedgerVerifyResponse(**await verify_ledger_chain(session, deal_id))
