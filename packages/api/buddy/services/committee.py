# This project was developed with assistance from AI tools.
"""Credit committee voting.

Votes are accepted only once a deal is ``ready``. One vote per voter; a
re-vote replaces the earlier one. Any single decline vetoes the deal.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field

from buddy_db import CommitteeVote
from buddy_db.enums import CommitteeOutcome, CommitteeVoteType, DealLifecycleStage
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..schemas.auth import UserContext
from .deal import require_deal
from .ledger import emit_ledger_event

logger = logging.getLogger(__name__)


class CommitteeNotOpenError(ValueError):
    """Raised when a vote is cast on a deal that is not ready for committee."""

    pass


_FINAL_OUTCOMES = {
    CommitteeOutcome.APPROVE,
    CommitteeOutcome.APPROVE_WITH_CONDITIONS,
    CommitteeOutcome.DECLINE,
}


@dataclass
class CommitteeTally:
    outcome: CommitteeOutcome
    quorum: int
    votes_cast: int
    counts: dict[str, int] = field(default_factory=dict)


def tally_votes(votes: list[CommitteeVoteType], quorum: int) -> CommitteeTally:
    """Tally votes against a quorum. Pure function.

    Precedence: any decline -> decline (even below quorum); below quorum
    -> pending; any approve_with_conditions -> approve_with_conditions;
    otherwise approve.
    """
    counts = Counter(CommitteeVoteType(v) for v in votes)
    tally_counts = {t.value: counts.get(t, 0) for t in CommitteeVoteType}

    if counts[CommitteeVoteType.DECLINE] > 0:
        outcome = CommitteeOutcome.DECLINE
    elif len(votes) < quorum:
        outcome = CommitteeOutcome.PENDING
    elif counts[CommitteeVoteType.APPROVE_WITH_CONDITIONS] > 0:
        outcome = CommitteeOutcome.APPROVE_WITH_CONDITIONS
    else:
        outcome = CommitteeOutcome.APPROVE

    return CommitteeTally(outcome=outcome, quorum=quorum, votes_cast=len(votes), counts=tally_counts)


async def _load_votes(session: AsyncSession, deal_id: uuid.UUID) -> list[CommitteeVote]:
    stmt = (
        select(CommitteeVote)
        .where(CommitteeVote.deal_id == deal_id)
        .order_by(CommitteeVote.id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_committee_tally(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
) -> tuple[CommitteeTally, list[CommitteeVote]]:
    """Current tally and individual votes. Raises DealNotFoundError."""
    await require_deal(session, user, deal_id)
    votes = await _load_votes(session, deal_id)
    return tally_votes([v.vote for v in votes], settings.COMMITTEE_QUORUM), votes


async def cast_vote(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    vote: CommitteeVoteType,
    rationale: str | None = None,
) -> CommitteeTally:
    """Record (or replace) the caller's vote and return the new tally.

    Raises:
        DealNotFoundError: deal missing or out of scope.
        CommitteeNotOpenError: deal is not in the ``ready`` stage.
    """
    deal = await require_deal(session, user, deal_id)
    if deal.lifecycle_stage != DealLifecycleStage.READY:
        raise CommitteeNotOpenError(
            f"Committee voting opens at stage 'ready'; deal is '{deal.lifecycle_stage.value}'."
        )

    before = tally_votes(
        [v.vote for v in await _load_votes(session, deal_id)], settings.COMMITTEE_QUORUM
    )

    stmt = (
        pg_insert(CommitteeVote)
        .values(
            deal_id=deal_id,
            bank_id=deal.bank_id,
            voter_user_id=user.user_id,
            vote=vote,
            rationale=rationale,
        )
        .on_conflict_do_update(
            index_elements=["deal_id", "voter_user_id"],
            set_={"vote": vote, "rationale": rationale, "updated_at": func.now()},
        )
    )
    await session.execute(stmt)

    after = tally_votes(
        [v.vote for v in await _load_votes(session, deal_id)], settings.COMMITTEE_QUORUM
    )

    await emit_ledger_event(
        session,
        deal_id=deal_id,
        bank_id=deal.bank_id,
        kind="deal.committee.vote_cast",
        stage=deal.lifecycle_stage.value,
        actor_user_id=user.user_id,
        payload={"vote": CommitteeVoteType(vote).value, "votes_cast": after.votes_cast},
    )
    if after.outcome != before.outcome and after.outcome in _FINAL_OUTCOMES:
        logger.info("Deal %s committee decisioned: %s", deal_id, after.outcome.value)
        await emit_ledger_event(
            session,
            deal_id=deal_id,
            bank_id=deal.bank_id,
            kind="deal.committee.decisioned",
            stage=deal.lifecycle_stage.value,
            actor_user_id=user.user_id,
            payload={"outcome": after.outcome.value, "counts": after.counts},
        )

    await session.commit()
    return after
