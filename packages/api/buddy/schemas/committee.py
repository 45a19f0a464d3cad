# This project was developed with assistance from AI tools.
"""Committee voting schemas."""

import uuid
from datetime import datetime

from buddy_db.enums import CommitteeOutcome, CommitteeVoteType
from pydantic import BaseModel, ConfigDict, Field


class VoteRequest(BaseModel):
    vote: CommitteeVoteType
    rationale: str | None = Field(default=None, max_length=4000)


class VoteItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    voter_user_id: str
    vote: CommitteeVoteType
    rationale: str | None = None
    updated_at: datetime | None = None


class TallyResponse(BaseModel):
    outcome: CommitteeOutcome
    quorum: int
    votes_cast: int
    counts: dict[str, int]


class CommitteeResponse(BaseModel):
    """Current tally plus the individual votes."""

    deal_id: uuid.UUID
    tally: TallyResponse
    votes: list[VoteItem] = []
