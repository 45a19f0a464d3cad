# This project was developed with assistance from AI tools.
"""Policy evaluation and rule management routes."""

import uuid

from buddy_db import get_db
from buddy_db.enums import PolicyProgram, UserRole
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ApiError
from ..middleware.auth import CurrentUser, require_roles
from ..schemas.policy import PolicyEvaluationResponse, PolicyRuleCreate, PolicyRuleResponse
from ..services import policy as policy_service
from ..services.deal import DealNotFoundError
from ..services.policy import InvalidConditionError
from ._roles import BANK_READ

deal_router = APIRouter()
rules_router = APIRouter()


@deal_router.get(
    "/{deal_id}/policy",
    response_model=PolicyEvaluationResponse,
    dependencies=[Depends(require_roles(*BANK_READ))],
)
async def evaluate_policy(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    program: PolicyProgram | None = None,
) -> PolicyEvaluationResponse:
    """Evaluate program eligibility rules. The program defaults from the loan type."""
    try:
        result = await policy_service.evaluate_deal_policy(session, user, deal_id, program)
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc
    return PolicyEvaluationResponse(**result)


@rules_router.post(
    "/rules",
    response_model=PolicyRuleResponse,
    status_code=201,
    dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.UNDERWRITER))],
)
async def create_rule(
    body: PolicyRuleCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> PolicyRuleResponse:
    """Add a policy rule. Only admins may create global (bank-less) rules."""
    bank_id = body.bank_id if user.role == UserRole.ADMIN else user.bank_id
    if user.role != UserRole.ADMIN and not bank_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="A bank is required to create policy rules",
        )

    try:
        rule = await policy_service.create_policy_rule(
            session,
            program=body.program,
            rule_key=body.rule_key,
            title=body.title,
            condition=body.condition,
            explanation=body.explanation,
            bank_id=bank_id,
        )
    except InvalidConditionError as exc:
        raise ApiError(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="invalid_condition",
            detail=str(exc),
        ) from exc
    except IntegrityError as exc:
        await session.rollback()
        raise ApiError(
            status_code=status.HTTP_409_CONFLICT,
            error="rule_exists",
            detail=f"Rule '{body.rule_key}' already exists for this program",
        ) from exc
    return PolicyRuleResponse.model_validate(rule)
