# This project was developed with assistance from AI tools.
"""Lifecycle routes: state, guarded advance and admin force-advance."""

import uuid
from dataclasses import asdict

from buddy_db import get_db
from buddy_db.enums import UserRole
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.lifecycle import (
    BlockerItem,
    LifecycleAdvanceRequest,
    LifecycleAdvanceResponse,
    LifecycleForceAdvanceRequest,
    LifecycleStateResponse,
)
from ..services import lifecycle as lifecycle_service
from ..services.lifecycle import ERROR_DEAL_NOT_FOUND, LifecycleAdvanceResult
from ._roles import ALL_AUTHENTICATED, BANK_WRITE

router = APIRouter()


def _to_response(result: LifecycleAdvanceResult, response: Response) -> LifecycleAdvanceResponse:
    if result.error == ERROR_DEAL_NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    status_code = status.HTTP_200_OK if result.ok else status.HTTP_409_CONFLICT
    response.status_code = status_code
    return LifecycleAdvanceResponse(
        ok=result.ok,
        status=status_code,
        advanced=result.advanced,
        error=result.error,
        message=result.message,
        blockers=[BlockerItem(**asdict(b)) for b in result.blockers],
        state=LifecycleStateResponse(**result.state) if result.state else None,
    )


def _audit_meta(request: Request) -> dict:
    return {
        "client_ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "request_id": request.headers.get("x-request-id"),
    }


@router.get(
    "/{deal_id}/lifecycle",
    response_model=LifecycleStateResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def get_lifecycle_state(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LifecycleStateResponse:
    state = await lifecycle_service.derive_lifecycle_state(session, user, deal_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        )
    return LifecycleStateResponse(**state)


@router.post(
    "/{deal_id}/lifecycle/advance",
    response_model=LifecycleAdvanceResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def advance_lifecycle(
    deal_id: uuid.UUID,
    body: LifecycleAdvanceRequest,
    user: CurrentUser,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> LifecycleAdvanceResponse:
    """Advance one stage. Refusals come back as 409 with ``ok: false``."""
    result = await lifecycle_service.advance_deal_lifecycle(
        session, user, deal_id, body.to_stage, reason=body.reason
    )
    return _to_response(result, response)


@router.post(
    "/{deal_id}/lifecycle/force-advance",
    response_model=LifecycleAdvanceResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def force_advance_lifecycle(
    deal_id: uuid.UUID,
    body: LifecycleForceAdvanceRequest,
    request: Request,
    user: CurrentUser,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> LifecycleAdvanceResponse:
    """Admin override that skips blockers. The transition table still applies."""
    result = await lifecycle_service.force_advance_lifecycle(
        session,
        user,
        deal_id,
        body.to_stage,
        reason=body.reason,
        audit_meta=_audit_meta(request),
    )
    return _to_response(result, response)
