# This project was developed with assistance from AI tools.
"""Checklist routes: view, seed and reconcile."""

import uuid

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.checklist import (
    ChecklistItemResponse,
    ChecklistResponse,
    ChecklistSeedResponse,
    ChecklistSummary,
)
from ..services.checklist.reconcile import (
    load_checklist,
    recompute_checklist_summary,
    reconcile_deal,
    seed_checklist,
)
from ..services.deal import DealNotFoundError, require_deal
from ._roles import ALL_AUTHENTICATED, BANK_WRITE

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Deal not found",
    )


@router.get(
    "/{deal_id}/checklist",
    response_model=ChecklistResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def get_checklist(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> ChecklistResponse:
    try:
        deal = await require_deal(session, user, deal_id)
    except DealNotFoundError as exc:
        raise _not_found() from exc

    items = await load_checklist(session, deal.id)
    return ChecklistResponse(
        data=[ChecklistItemResponse.model_validate(i) for i in items],
        summary=ChecklistSummary(**recompute_checklist_summary(items)),
    )


@router.post(
    "/{deal_id}/checklist/seed",
    response_model=ChecklistSeedResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def seed_deal_checklist(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> ChecklistSeedResponse:
    """Seed the checklist for the deal's loan type. Safe to repeat."""
    try:
        deal = await require_deal(session, user, deal_id)
    except DealNotFoundError as exc:
        raise _not_found() from exc

    inserted = await seed_checklist(session, deal, actor_user_id=user.user_id)
    summary = await reconcile_deal(session, deal, actor_user_id=user.user_id)
    await session.commit()
    return ChecklistSeedResponse(inserted=inserted, summary=ChecklistSummary(**summary))


@router.post(
    "/{deal_id}/checklist/reconcile",
    response_model=ChecklistSummary,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def reconcile_deal_checklist(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> ChecklistSummary:
    """Rebuild every item from the deal's linked documents."""
    try:
        deal = await require_deal(session, user, deal_id)
    except DealNotFoundError as exc:
        raise _not_found() from exc

    summary = await reconcile_deal(session, deal, actor_user_id=user.user_id)
    await session.commit()
    return ChecklistSummary(**summary)
