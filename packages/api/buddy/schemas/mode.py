# This project was developed with assistance from AI tools.
"""Deal mode schema."""

import uuid

from buddy_db.enums import DealMode
from pydantic import BaseModel


class DealModeResponse(BaseModel):
    deal_id: uuid.UUID
    mode: DealMode
    pipeline_status: str
    last_event_kind: str | None = None
    uploads_processing: int
    checklist_state: str
    pending_required: int
