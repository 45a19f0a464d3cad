# This project was developed with assistance from AI tools.
"""Checklist schemas."""

import uuid
from datetime import datetime

from buddy_db.enums import ChecklistStatus
from pydantic import BaseModel, ConfigDict


class ChecklistItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    checklist_key: str
    title: str
    description: str | None = None
    required: bool
    status: ChecklistStatus
    required_years: list[int] | None = None
    satisfied_years: list[int] | None = None
    received_document_id: uuid.UUID | None = None
    received_at: datetime | None = None


class ChecklistSummary(BaseModel):
    total: int
    required: int
    received: int
    satisfied: int
    missing: int
    required_pending: int


class ChecklistResponse(BaseModel):
    """A deal's checklist with summary counts."""

    data: list[ChecklistItemResponse]
    summary: ChecklistSummary


class ChecklistSeedResponse(BaseModel):
    inserted: int
    summary: ChecklistSummary
