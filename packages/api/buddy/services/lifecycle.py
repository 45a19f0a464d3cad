# This project was developed with assistance from AI tools.
"""Deal lifecycle guard.

Stages move strictly forward one step at a time:

    created -> intake -> collecting -> underwriting -> ready

Each move is checked twice: against the transition table (a structural
rule, never bypassed) and against gating blockers derived from the deal's
current data (bypassable only through an admin force-advance).
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field

from buddy_db import LedgerEvent
from buddy_db.enums import CommitteeOutcome, DealLifecycleStage, LedgerStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..schemas.auth import UserContext
from .checklist.reconcile import load_checklist
from .committee import _load_votes, tally_votes
from .facts import count_financial_facts
from .ledger import emit_ledger_event
from .readiness import compute_readiness
from .scope import get_scoped_deal

logger = logging.getLogger(__name__)

BLOCKER_CHECKLIST_NOT_SEEDED = "checklist_not_seeded"
BLOCKER_MISSING_REQUIRED_DOCS = "missing_required_docs"
BLOCKER_FINANCIAL_SNAPSHOT_MISSING = "financial_snapshot_missing"

ERROR_DEAL_NOT_FOUND = "deal_not_found"
ERROR_INVALID_TRANSITION = "invalid_transition"
ERROR_BLOCKED = "blocked"

_ADVANCE_KINDS = ("deal.lifecycle.advanced", "deal.lifecycle.force_advanced")


class InvalidTransitionError(ValueError):
    """Raised for a stage pair outside the transition table."""

    code = ERROR_INVALID_TRANSITION

    def __init__(self, current: DealLifecycleStage, target: DealLifecycleStage):
        self.current = DealLifecycleStage(current)
        self.target = DealLifecycleStage(target)
        super().__init__(
            f"Cannot transition from '{self.current.value}' to '{self.target.value}'"
        )


@dataclass
class LifecycleBlocker:
    code: str
    message: str
    evidence: dict | None = None


@dataclass
class LifecycleAdvanceResult:
    ok: bool
    advanced: bool = False
    error: str | None = None
    message: str | None = None
    blockers: list[LifecycleBlocker] = field(default_factory=list)
    state: dict | None = None


def next_stage(stage: DealLifecycleStage) -> DealLifecycleStage | None:
    """The single stage reachable from ``stage``, or None at the end."""
    allowed = DealLifecycleStage.valid_transitions()[DealLifecycleStage(stage)]
    return next(iter(allowed), None)


def guard_transition(current: DealLifecycleStage, target: DealLifecycleStage) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the table."""
    current = DealLifecycleStage(current)
    target = DealLifecycleStage(target)
    if target not in DealLifecycleStage.valid_transitions()[current]:
        raise InvalidTransitionError(current, target)


def compute_blockers(
    stage: DealLifecycleStage,
    *,
    checklist_count: int,
    missing_required_keys: list[str],
    fact_count: int,
) -> list[LifecycleBlocker]:
    """Blockers that prevent leaving ``stage`` for the next one. Pure."""
    stage = DealLifecycleStage(stage)
    blockers = []
    if stage == DealLifecycleStage.CREATED and checklist_count == 0:
        blockers.append(
            LifecycleBlocker(
                code=BLOCKER_CHECKLIST_NOT_SEEDED,
                message="Checklist has not been created for this deal",
            )
        )
    if stage == DealLifecycleStage.COLLECTING and missing_required_keys:
        blockers.append(
            LifecycleBlocker(
                code=BLOCKER_MISSING_REQUIRED_DOCS,
                message=f"{len(missing_required_keys)} required document(s) missing",
                evidence={"missing": list(missing_required_keys)},
            )
        )
    if stage == DealLifecycleStage.UNDERWRITING and fact_count == 0:
        blockers.append(
            LifecycleBlocker(
                code=BLOCKER_FINANCIAL_SNAPSHOT_MISSING,
                message="Financial facts are required before the deal can go to committee",
            )
        )
    return blockers


_BLOCKER_ACTIONS = {
    BLOCKER_CHECKLIST_NOT_SEEDED: ("seed_checklist", "Set up the intake checklist"),
    BLOCKER_MISSING_REQUIRED_DOCS: ("request_documents", "Request missing documents"),
    BLOCKER_FINANCIAL_SNAPSHOT_MISSING: ("add_financial_facts", "Add financial facts"),
}

_STAGE_ACTIONS = {
    DealLifecycleStage.CREATED: ("start_intake", "Start intake"),
    DealLifecycleStage.INTAKE: ("begin_collection", "Request documents from the borrower"),
    DealLifecycleStage.COLLECTING: ("start_underwriting", "Start underwriting"),
    DealLifecycleStage.UNDERWRITING: ("send_to_committee", "Send to credit committee"),
}


def compute_next_action(state: dict) -> dict:
    """Map a lifecycle state to the single most useful next step.

    The first blocker wins. Without blockers the stage decides; at
    ``ready`` the committee outcome does.
    """
    blockers = state.get("blockers") or []
    if blockers:
        code = blockers[0]["code"] if isinstance(blockers[0], dict) else blockers[0].code
        action, label = _BLOCKER_ACTIONS.get(code, ("resolve_blocker", "Resolve blocker"))
        return {"code": action, "label": label, "blocker": code}

    stage = DealLifecycleStage(state["stage"])
    if stage == DealLifecycleStage.READY:
        outcome = (state.get("derived") or {}).get("committee_outcome")
        if outcome in (None, CommitteeOutcome.PENDING, CommitteeOutcome.PENDING.value):
            return {"code": "collect_votes", "label": "Collect committee votes", "blocker": None}
        return {"code": "committee_decisioned", "label": "Committee decision recorded", "blocker": None}

    action, label = _STAGE_ACTIONS[stage]
    return {"code": action, "label": label, "blocker": None}


async def _gather_derived(session: AsyncSession, deal) -> dict:
    items = await load_checklist(session, deal.id)
    readiness = compute_readiness(items)
    votes = await _load_votes(session, deal.id)
    tally = tally_votes([v.vote for v in votes], settings.COMMITTEE_QUORUM)
    return {
        "checklist_seeded": bool(items),
        "checklist_count": len(items),
        "required_docs_received_pct": readiness.received_pct,
        "missing_required_keys": readiness.missing_keys,
        "fact_count": await count_financial_facts(session, deal.id),
        "committee_outcome": tally.outcome,
    }


def _blockers_for(stage: DealLifecycleStage, derived: dict) -> list[LifecycleBlocker]:
    return compute_blockers(
        stage,
        checklist_count=derived["checklist_count"],
        missing_required_keys=derived["missing_required_keys"],
        fact_count=derived["fact_count"],
    )


async def _last_advanced_at(session: AsyncSession, deal_id: uuid.UUID):
    stmt = (
        select(LedgerEvent.created_at)
        .where(LedgerEvent.deal_id == deal_id, LedgerEvent.kind.in_(_ADVANCE_KINDS))
        .order_by(LedgerEvent.id.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def derive_lifecycle_state(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
) -> dict | None:
    """Stage, blockers and next action for a deal. None if not visible."""
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return None

    derived = await _gather_derived(session, deal)
    blockers = [asdict(b) for b in _blockers_for(deal.lifecycle_stage, derived)]
    state = {
        "deal_id": deal.id,
        "stage": deal.lifecycle_stage,
        "next_stage": next_stage(deal.lifecycle_stage),
        "blockers": blockers,
        "last_advanced_at": await _last_advanced_at(session, deal.id),
        "derived": {k: v for k, v in derived.items() if k != "checklist_count"},
    }
    state["next_action"] = compute_next_action(state)
    return state


async def advance_deal_lifecycle(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    to_stage: DealLifecycleStage,
    *,
    reason: str | None = None,
) -> LifecycleAdvanceResult:
    """Move a deal one stage forward if the table and its blockers allow it.

    Never raises for business outcomes: a missing deal, a bad transition or
    active blockers come back as ``ok=False`` with an error code.
    """
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return LifecycleAdvanceResult(ok=False, error=ERROR_DEAL_NOT_FOUND)

    current = DealLifecycleStage(deal.lifecycle_stage)
    try:
        guard_transition(current, to_stage)
    except InvalidTransitionError as exc:
        return LifecycleAdvanceResult(ok=False, error=exc.code, message=str(exc))

    target = DealLifecycleStage(to_stage)
    derived = await _gather_derived(session, deal)
    blockers = _blockers_for(current, derived)
    if blockers:
        logger.info(
            "Deal %s advance %s -> %s blocked: %s",
            deal_id,
            current.value,
            target.value,
            [b.code for b in blockers],
        )
        await emit_ledger_event(
            session,
            deal_id=deal.id,
            bank_id=deal.bank_id,
            kind="deal.lifecycle.blocked",
            stage=current.value,
            status=LedgerStatus.BLOCKED,
            actor_user_id=user.user_id,
            payload={
                "from": current.value,
                "to": target.value,
                "blockers": [b.code for b in blockers],
            },
        )
        await session.commit()
        return LifecycleAdvanceResult(
            ok=False,
            error=ERROR_BLOCKED,
            message="Deal has unresolved blockers",
            blockers=blockers,
        )

    deal.lifecycle_stage = target
    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.lifecycle.advanced",
        stage=target.value,
        actor_user_id=user.user_id,
        payload={"from": current.value, "to": target.value, "reason": reason, "actor": user.user_id},
    )
    await session.commit()
    logger.info("Deal %s advanced %s -> %s by %s", deal_id, current.value, target.value, user.user_id)

    state = await derive_lifecycle_state(session, user, deal_id)
    return LifecycleAdvanceResult(ok=True, advanced=True, state=state)


async def force_advance_lifecycle(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    to_stage: DealLifecycleStage,
    *,
    reason: str,
    audit_meta: dict | None = None,
) -> LifecycleAdvanceResult:
    """Admin override: skip blocker checks, keep the transition table.

    Every use is written to the ledger with the reason and the request's
    audit metadata (client IP, user agent, request id).
    """
    deal = await get_scoped_deal(session, user, deal_id)
    if deal is None:
        return LifecycleAdvanceResult(ok=False, error=ERROR_DEAL_NOT_FOUND)

    current = DealLifecycleStage(deal.lifecycle_stage)
    try:
        guard_transition(current, to_stage)
    except InvalidTransitionError as exc:
        return LifecycleAdvanceResult(ok=False, error=exc.code, message=str(exc))

    target = DealLifecycleStage(to_stage)
    derived = await _gather_derived(session, deal)
    skipped = [b.code for b in _blockers_for(current, derived)]

    deal.lifecycle_stage = target
    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.lifecycle.force_advanced",
        stage=target.value,
        actor_user_id=user.user_id,
        payload={
            "from": current.value,
            "to": target.value,
            "reason": reason,
            "actor": user.user_id,
            "skipped_blockers": skipped,
            "audit": audit_meta or {},
        },
    )
    await session.commit()
    logger.warning(
        "Deal %s force-advanced %s -> %s by %s (skipped %s)",
        deal_id,
        current.value,
        target.value,
        user.user_id,
        skipped,
    )

    state = await derive_lifecycle_state(session, user, deal_id)
    return LifecycleAdvanceResult(ok=True, advanced=True, state=state)
