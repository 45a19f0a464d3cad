# This project was developed with assistance from AI tools.
"""Deal ledger service.

Append-only per-deal timeline with a SHA-256 hash chain for tamper
evidence. Each event stores the hash of the previous event of the same
deal; a PostgreSQL transaction advisory lock keyed on the deal id
serializes hash computation so concurrent writers cannot fork the chain.
"""

import hashlib
import json
import logging
import uuid

from buddy_db import LedgerEvent
from buddy_db.enums import LedgerStatus
from sqlalchemy import func, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .scope import get_scoped_deal

logger = logging.getLogger(__name__)

# First key of the two-key advisory lock; the second is hashtext(deal_id).
# Only ledger inserts for the same deal are serialized.
LEDGER_LOCK_NAMESPACE = 900_101

GENESIS_HASH = "genesis"


def _compute_hash(event: LedgerEvent) -> str:
    """SHA-256 over an event's immutable fields."""
    status = event.status.value if isinstance(event.status, LedgerStatus) else event.status
    body = "|".join(
        [
            str(event.id),
            str(event.deal_id),
            event.kind,
            str(status),
            event.prev_hash or "",
            json.dumps(event.payload, sort_keys=True, default=str),
        ]
    )
    return hashlib.sha256(body.encode()).hexdigest()


async def write_ledger_event(
    session: AsyncSession,
    *,
    deal_id: uuid.UUID,
    kind: str,
    bank_id: str | None = None,
    stage: str | None = None,
    status: LedgerStatus = LedgerStatus.OK,
    actor_user_id: str | None = None,
    payload: dict | None = None,
) -> LedgerEvent:
    """Append a ledger event for a deal, linked to the deal's previous event.

    Args:
        session: Database session. The caller owns the commit.
        deal_id: Deal the event belongs to.
        kind: Dotted event name, e.g. ``deal.lifecycle.advanced``.
        bank_id: Tenant of the deal.
        stage: Lifecycle stage at the time of the event.
        status: ok / pending / blocked / error.
        actor_user_id: User who caused the event, if any.
        payload: JSON-serializable event detail.

    Returns:
        The flushed LedgerEvent row (with prev_hash set).
    """
    # Released automatically when the transaction commits or rolls back.
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:ns, hashtext(:key))"),
        {"ns": LEDGER_LOCK_NAMESPACE, "key": str(deal_id)},
    )

    latest_stmt = (
        select(LedgerEvent)
        .where(LedgerEvent.deal_id == deal_id)
        .order_by(LedgerEvent.id.desc())
        .limit(1)
    )
    result = await session.execute(latest_stmt)
    prev_event = result.scalar_one_or_none()

    event = LedgerEvent(
        deal_id=deal_id,
        bank_id=bank_id,
        kind=kind,
        stage=stage,
        status=status,
        actor_user_id=actor_user_id,
        payload=payload,
        prev_hash=_compute_hash(prev_event) if prev_event is not None else GENESIS_HASH,
    )
    session.add(event)
    await session.flush()
    return event


async def emit_ledger_event(session: AsyncSession, **kwargs) -> LedgerEvent | None:
    """Fail-soft ``write_ledger_event``.

    Runs inside a SAVEPOINT so a failed insert rolls back only the ledger
    write, never the caller's work. Errors are logged and swallowed.
    """
    try:
        async with session.begin_nested():
            return await write_ledger_event(session, **kwargs)
    except Exception:
        logger.warning(
            "Ledger emit failed: deal=%s kind=%s",
            kwargs.get("deal_id"),
            kwargs.get("kind"),
            exc_info=True,
        )
        return None


async def list_ledger_events(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    *,
    kind_prefix: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[LedgerEvent], int] | None:
    """Return a deal's events, oldest first. None if the deal is not visible."""
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return None

    count_stmt = select(func.count(LedgerEvent.id)).where(LedgerEvent.deal_id == deal_id)
    stmt = select(LedgerEvent).where(LedgerEvent.deal_id == deal_id)
    if kind_prefix:
        count_stmt = count_stmt.where(LedgerEvent.kind.startswith(kind_prefix))
        stmt = stmt.where(LedgerEvent.kind.startswith(kind_prefix))

    total = (await session.execute(count_stmt)).scalar() or 0
    result = await session.execute(stmt.order_by(LedgerEvent.id.asc()).offset(offset).limit(limit))
    return list(result.scalars().all()), total


async def get_latest_ledger_event(
    session: AsyncSession,
    deal_id: uuid.UUID,
    *,
    kind_prefixes: tuple[str, ...] | None = None,
) -> LedgerEvent | None:
    """Most recent event for a deal, optionally limited to kinds with the given prefixes."""
    stmt = select(LedgerEvent).where(LedgerEvent.deal_id == deal_id)
    if kind_prefixes:
        stmt = stmt.where(or_(*[LedgerEvent.kind.startswith(p) for p in kind_prefixes]))
    stmt = stmt.order_by(LedgerEvent.id.desc()).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def verify_ledger_chain(session: AsyncSession, deal_id: uuid.UUID) -> dict:
    """Verify the integrity of one deal's hash chain.

    Walks the deal's events in ID order, recomputes each expected prev_hash,
    and compares against the stored value.

    Returns:
        {"status": "OK", "events_checked": N, "first_break_id": None} on
        success, or {"status": "TAMPERED", "events_checked": N,
        "first_break_id": id} at the first mismatch.
    """
    stmt = select(LedgerEvent).where(LedgerEvent.deal_id == deal_id).order_by(LedgerEvent.id.asc())
    result = await session.execute(stmt)
    events = list(result.scalars().all())

    for i, event in enumerate(events):
        expected = GENESIS_HASH if i == 0 else _compute_hash(events[i - 1])
        if event.prev_hash != expected:
            return {
                "status": "TAMPERED",
                "events_checked": i + 1,
                "first_break_id": event.id,
            }

    return {"status": "OK", "events_checked": len(events), "first_break_id": None}
