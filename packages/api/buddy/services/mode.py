# This project was developed with assistance from AI tools.
"""Deal mode derivation.

A deal's display mode is never stored. It is derived on every read from
the latest pipeline (ledger) status, in-flight uploads and checklist
state, by a fixed priority:

    blocked > processing > initializing > needs_input > ready
"""

import uuid

from buddy_db import ChecklistItem, DealDocument
from buddy_db.enums import DealMode, DocumentProcessingStatus, LedgerStatus
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .checklist.reconcile import load_checklist, recompute_checklist_summary
from .ledger import get_latest_ledger_event
from .scope import get_scoped_deal

PIPELINE_OK = "ok"
PIPELINE_WORKING = "working"
PIPELINE_BLOCKED = "blocked"

CHECKLIST_EMPTY = "empty"
CHECKLIST_SEEDED = "seeded"

_IN_FLIGHT = (DocumentProcessingStatus.UPLOADED, DocumentProcessingStatus.PROCESSING)

# Only document processing and checklist events describe the pipeline.
# Lifecycle refusals, votes and the like never change the mode.
PIPELINE_EVENT_PREFIXES = ("deal.document.", "deal.checklist.")

_LEDGER_TO_PIPELINE = {
    LedgerStatus.OK: PIPELINE_OK,
    LedgerStatus.PENDING: PIPELINE_WORKING,
    LedgerStatus.BLOCKED: PIPELINE_BLOCKED,
    LedgerStatus.ERROR: PIPELINE_BLOCKED,
}


def derive_deal_mode(
    pipeline_status: str,
    uploads_processing: int,
    checklist_state: str,
    pending_required: int,
) -> DealMode:
    """Pick the deal's mode. Pure and deterministic."""
    if pipeline_status == PIPELINE_BLOCKED:
        return DealMode.BLOCKED
    if pipeline_status == PIPELINE_WORKING or uploads_processing > 0:
        return DealMode.PROCESSING
    if checklist_state == CHECKLIST_EMPTY:
        return DealMode.INITIALIZING
    if pending_required > 0:
        return DealMode.NEEDS_INPUT
    return DealMode.READY


def pipeline_status_from_ledger(status: LedgerStatus | None) -> str:
    if status is None:
        return PIPELINE_OK
    return _LEDGER_TO_PIPELINE.get(LedgerStatus(status), PIPELINE_OK)


async def get_deal_mode(session: AsyncSession, user: UserContext, deal_id: uuid.UUID) -> dict | None:
    """Gather mode inputs fresh from the database and derive the mode.

    Returns None if the deal is not visible to the caller.
    """
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return None

    latest = await get_latest_ledger_event(
        session, deal_id, kind_prefixes=PIPELINE_EVENT_PREFIXES
    )
    pipeline_status = pipeline_status_from_ledger(latest.status if latest else None)

    uploads_stmt = select(func.count(DealDocument.id)).where(
        DealDocument.deal_id == deal_id,
        DealDocument.processing_status.in_(_IN_FLIGHT),
    )
    uploads_processing = (await session.execute(uploads_stmt)).scalar() or 0

    items: list[ChecklistItem] = await load_checklist(session, deal_id)
    summary = recompute_checklist_summary(items)
    checklist_state = CHECKLIST_SEEDED if items else CHECKLIST_EMPTY

    mode = derive_deal_mode(
        pipeline_status, uploads_processing, checklist_state, summary["required_pending"]
    )
    return {
        "deal_id": deal_id,
        "mode": mode,
        "pipeline_status": pipeline_status,
        "last_event_kind": latest.kind if latest else None,
        "uploads_processing": uploads_processing,
        "checklist_state": checklist_state,
        "pending_required": summary["required_pending"],
    }
