# This project was developed with assistance from AI tools.
"""Financial fact routes."""

import uuid

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.facts import FactItem, FactListResponse, FactUpsertRequest, FactUpsertResponse
from ..services import facts as facts_service
from ..services.deal import DealNotFoundError
from ._roles import BANK_READ, BANK_WRITE

router = APIRouter()


@router.get(
    "/{deal_id}/facts",
    response_model=FactListResponse,
    dependencies=[Depends(require_roles(*BANK_READ))],
)
async def list_facts(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    fact_type: str | None = None,
) -> FactListResponse:
    try:
        facts = await facts_service.list_financial_facts(
            session, user, deal_id, fact_type=fact_type
        )
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc
    return FactListResponse(data=[FactItem.model_validate(f) for f in facts], count=len(facts))


@router.put(
    "/{deal_id}/facts",
    response_model=FactUpsertResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def upsert_facts(
    deal_id: uuid.UUID,
    body: FactUpsertRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> FactUpsertResponse:
    """Batch upsert. Facts with an existing identity are overwritten."""
    rows = []
    for fact in body.facts:
        row = fact.model_dump(exclude={"provenance"})
        row["provenance"] = fact.provenance.model_dump(mode="json") if fact.provenance else None
        rows.append(row)

    try:
        count = await facts_service.upsert_financial_facts(session, user, deal_id, rows)
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc
    return FactUpsertResponse(upserted=count)
