# This project was developed with assistance from AI tools.
"""Deal service with tenant-scoped access.

Every query goes through the caller's DataScope so bank users see only
their bank's deals, borrowers only the deals linked to them, and admins
everything.
"""

import logging
import uuid
from decimal import Decimal

from buddy_db import Deal
from buddy_db.enums import DealLifecycleStage
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .checklist.reconcile import reconcile_deal, seed_checklist
from .ledger import emit_ledger_event
from .scope import apply_data_scope, get_scoped_deal

logger = logging.getLogger(__name__)


class DealNotFoundError(LookupError):
    """Raised when a deal does not exist or is outside the caller's scope."""

    pass


class DealValidationError(ValueError):
    pass


_INTAKE_FIELDS = ("borrower_name", "loan_type", "loan_amount")


async def list_deals(
    session: AsyncSession,
    user: UserContext,
    *,
    offset: int = 0,
    limit: int = 20,
    filter_stage: DealLifecycleStage | None = None,
) -> tuple[list[Deal], int]:
    """Return deals visible to the current user, newest first."""
    count_stmt = select(func.count(Deal.id))
    count_stmt = apply_data_scope(count_stmt, user.data_scope, user)
    if filter_stage is not None:
        count_stmt = count_stmt.where(Deal.lifecycle_stage == filter_stage)
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = select(Deal).order_by(Deal.id.desc()).offset(offset).limit(limit)
    stmt = apply_data_scope(stmt, user.data_scope, user)
    if filter_stage is not None:
        stmt = stmt.where(Deal.lifecycle_stage == filter_stage)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def get_deal(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
) -> Deal | None:
    """Return a single deal if visible to the current user.

    Returns None (which the route maps to 404) for out-of-scope deals
    rather than 403, to avoid leaking existence of resources.
    """
    return await get_scoped_deal(session, user, deal_id)


async def require_deal(session: AsyncSession, user: UserContext, deal_id: uuid.UUID) -> Deal:
    """Like ``get_deal`` but raises DealNotFoundError instead of returning None."""
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        raise DealNotFoundError(f"Deal {deal_id} not found")
    return deal


async def create_deal(
    session: AsyncSession,
    user: UserContext,
    *,
    borrower_name: str | None = None,
    borrower_user_id: str | None = None,
    loan_type: str | None = None,
    loan_amount: Decimal | None = None,
    bank_id: str | None = None,
) -> Deal:
    """Create a deal in the caller's bank.

    Only admins may pick the bank explicitly. When a loan type is known up
    front the checklist is seeded immediately.
    """
    target_bank = bank_id if user.data_scope.all_banks and bank_id else user.bank_id
    if not target_bank:
        raise DealValidationError("bank_id is required to create a deal")

    deal = Deal(
        bank_id=target_bank,
        borrower_name=borrower_name,
        borrower_user_id=borrower_user_id,
        loan_type=loan_type,
        loan_amount=loan_amount,
        lifecycle_stage=DealLifecycleStage.CREATED,
        created_by=user.user_id,
    )
    session.add(deal)
    await session.flush()

    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.created",
        stage=DealLifecycleStage.CREATED.value,
        actor_user_id=user.user_id,
        payload={"loan_type": loan_type, "borrower_name": borrower_name},
    )

    if loan_type:
        await seed_checklist(session, deal, actor_user_id=user.user_id)
        await reconcile_deal(session, deal, actor_user_id=user.user_id)

    deal_id = deal.id  # capture before commit
    await session.commit()
    logger.info("Deal %s created in bank %s by %s", deal_id, target_bank, user.user_id)
    # Re-query to load server-side timestamps
    return await get_scoped_deal(session, user, deal_id)


async def update_deal_intake(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    **updates,
) -> Deal | None:
    """Update intake fields (borrower name, loan type, loan amount).

    Unknown fields are ignored. A loan type change seeds the matching
    ruleset and reconciles existing documents against it.
    """
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return None

    changed = {}
    for field, value in updates.items():
        if field not in _INTAKE_FIELDS or value is None:
            continue
        if getattr(deal, field) != value:
            changed[field] = value
            setattr(deal, field, value)

    if changed:
        await emit_ledger_event(
            session,
            deal_id=deal.id,
            bank_id=deal.bank_id,
            kind="deal.intake.updated",
            stage=deal.lifecycle_stage.value,
            actor_user_id=user.user_id,
            payload={"fields": sorted(changed)},
        )

    if "loan_type" in changed:
        await seed_checklist(session, deal, actor_user_id=user.user_id)
        await reconcile_deal(session, deal, actor_user_id=user.user_id)

    await session.commit()
    return await get_scoped_deal(session, user, deal_id)
