# This project was developed with assistance from AI tools.
"""Ledger schemas."""

import uuid
from datetime import datetime

from buddy_db.enums import LedgerStatus
from pydantic import BaseModel, ConfigDict

from . import Pagination


class LedgerEventItem(BaseModel):
    """Single deal ledger event."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    kind: str
    stage: str | None = None
    status: LedgerStatus
    actor_user_id: str | None = None
    payload: dict | None = None
    prev_hash: str | None = None
    created_at: datetime


class LedgerListResponse(BaseModel):
    data: list[LedgerEventItem]
    pagination: Pagination


class LedgerVerifyResponse(BaseModel):
    """Hash chain verification result."""

    status: str
    events_checked: int
    first_break_id: uuid.UUID | None = None
