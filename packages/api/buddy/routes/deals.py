# This project was developed with assistance from AI tools.
"""Deal CRUD routes with RBAC enforcement."""

import uuid

from buddy_db import get_db
from buddy_db.enums import DealLifecycleStage
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas import Pagination
from ..schemas.deal import DealCreate, DealIntakeUpdate, DealListResponse, DealResponse
from ..services import deal as deal_service
from ..services.deal import DealValidationError
from ._roles import ALL_AUTHENTICATED, BANK_WRITE

router = APIRouter()


@router.get(
    "/",
    response_model=DealListResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def list_deals(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    filter_stage: DealLifecycleStage | None = None,
) -> DealListResponse:
    """List deals visible to the current user's data scope."""
    deals, total = await deal_service.list_deals(
        session,
        user,
        offset=offset,
        limit=limit,
        filter_stage=filter_stage,
    )
    return DealListResponse(
        data=[DealResponse.model_validate(d) for d in deals],
        pagination=Pagination(
            total=total,
            offset=offset,
            limit=limit,
            has_more=(offset + limit < total),
        ),
    )


@router.post(
    "/",
    response_model=DealResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def create_deal(
    body: DealCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DealResponse:
    """Open a deal. A known loan type seeds the checklist immediately."""
    try:
        deal = await deal_service.create_deal(
            session,
            user,
            borrower_name=body.borrower_name,
            borrower_user_id=body.borrower_user_id,
            loan_type=body.loan_type,
            loan_amount=body.loan_amount,
            bank_id=body.bank_id,
        )
    except DealValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    return DealResponse.model_validate(deal)


@router.get(
    "/{deal_id}",
    response_model=DealResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def get_deal(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DealResponse:
    deal = await deal_service.get_deal(session, user, deal_id)
    if deal is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    return DealResponse.model_validate(deal)


@router.patch(
    "/{deal_id}/intake",
    response_model=DealResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def update_deal_intake(
    deal_id: uuid.UUID,
    body: DealIntakeUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DealResponse:
    """Update intake fields. Changing the loan type re-seeds the checklist."""
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No fields to update",
        )

    deal = await deal_service.update_deal_intake(session, user, deal_id, **updates)
    if deal is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    return DealResponse.model_validate(deal)
