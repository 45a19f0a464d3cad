# This project was developed with assistance from AI tools.
"""Lifecycle schemas."""

import uuid
from datetime import datetime

from buddy_db.enums import CommitteeOutcome, DealLifecycleStage
from pydantic import BaseModel, Field


class LifecycleAdvanceRequest(BaseModel):
    to_stage: DealLifecycleStage
    reason: str | None = Field(default=None, max_length=1000)


class LifecycleForceAdvanceRequest(BaseModel):
    """Admin override. A reason is mandatory."""

    to_stage: DealLifecycleStage
    reason: str = Field(min_length=1, max_length=1000)


class BlockerItem(BaseModel):
    code: str
    message: str
    evidence: dict | None = None


class NextAction(BaseModel):
    code: str
    label: str
    blocker: str | None = None


class LifecycleDerived(BaseModel):
    checklist_seeded: bool
    required_docs_received_pct: int
    missing_required_keys: list[str] = []
    fact_count: int
    committee_outcome: CommitteeOutcome


class LifecycleStateResponse(BaseModel):
    deal_id: uuid.UUID
    stage: DealLifecycleStage
    next_stage: DealLifecycleStage | None = None
    blockers: list[BlockerItem] = []
    next_action: NextAction
    last_advanced_at: datetime | None = None
    derived: LifecycleDerived


class LifecycleAdvanceResponse(BaseModel):
    """Result of an advance attempt.

    ``ok`` is false with ``error`` set to ``invalid_transition`` or
    ``blocked`` when the move is refused. ``status`` mirrors the HTTP
    status code (409 for refusals), as in the error envelope.
    """

    ok: bool
    status: int = 200
    advanced: bool = False
    error: str | None = None
    message: str | None = None
    blockers: list[BlockerItem] = []
    state: LifecycleStateResponse | None = None
