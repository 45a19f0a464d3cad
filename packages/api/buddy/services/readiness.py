# This project was developed with assistance from AI tools.
"""Deal readiness.

Readiness is a cached stamp (``ready_at`` / ``ready_reason``) rebuilt from
the checklist after every reconciliation. It never feeds deal mode, which
is derived fresh on each read.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from buddy_db import ChecklistItem, Deal
from buddy_db.enums import ChecklistStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .ledger import emit_ledger_event

logger = logging.getLogger(__name__)

REASON_NOT_SEEDED = "checklist_not_seeded"
REASON_MISSING_DOCS = "missing_required_docs"
REASON_ALL_SATISFIED = "all_required_satisfied"


@dataclass
class ReadinessResult:
    ready: bool
    reason: str
    required_total: int = 0
    required_satisfied: int = 0
    required_received: int = 0
    missing_keys: list[str] = field(default_factory=list)
    received_pct: int = 0


def compute_readiness(items: list[ChecklistItem]) -> ReadinessResult:
    """Derive readiness from checklist items. Pure function.

    ``received_pct`` is the share of required items with at least one
    document; 100 when the seeded checklist requires nothing.
    """
    if not items:
        return ReadinessResult(ready=False, reason=REASON_NOT_SEEDED)

    required = [i for i in items if i.required]
    satisfied = [i for i in required if i.status == ChecklistStatus.SATISFIED]
    received = [
        i for i in required if i.status in (ChecklistStatus.RECEIVED, ChecklistStatus.SATISFIED)
    ]
    missing_keys = sorted(i.checklist_key for i in required if i.status != ChecklistStatus.SATISFIED)

    pct = round(100 * len(received) / len(required)) if required else 100
    ready = not missing_keys
    return ReadinessResult(
        ready=ready,
        reason=REASON_ALL_SATISFIED if ready else REASON_MISSING_DOCS,
        required_total=len(required),
        required_satisfied=len(satisfied),
        required_received=len(received),
        missing_keys=missing_keys,
        received_pct=pct,
    )


async def recompute_deal_readiness(
    session: AsyncSession,
    deal: Deal,
    items: list[ChecklistItem] | None = None,
    *,
    actor_user_id: str | None = None,
) -> ReadinessResult:
    """Stamp or clear ``ready_at`` from the checklist.

    Writes ``deal.readiness.changed`` only when readiness flips.
    """
    if items is None:
        stmt = select(ChecklistItem).where(ChecklistItem.deal_id == deal.id)
        items = list((await session.execute(stmt)).scalars().all())

    result = compute_readiness(items)
    was_ready = deal.ready_at is not None

    deal.ready_reason = result.reason
    if result.ready and not was_ready:
        deal.ready_at = datetime.now(UTC)
    elif not result.ready and was_ready:
        deal.ready_at = None

    if result.ready != was_ready:
        logger.info("Deal %s readiness -> %s (%s)", deal.id, result.ready, result.reason)
        await emit_ledger_event(
            session,
            deal_id=deal.id,
            bank_id=deal.bank_id,
            kind="deal.readiness.changed",
            stage=deal.lifecycle_stage.value if deal.lifecycle_stage else None,
            actor_user_id=actor_user_id,
            payload={
                "ready": result.ready,
                "reason": result.reason,
                "missing_keys": result.missing_keys,
            },
        )
    return result
