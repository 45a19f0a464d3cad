# This project was developed with assistance from AI tools.
"""Deal request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal

from buddy_db.enums import DealLifecycleStage
from pydantic import BaseModel, ConfigDict, Field

from . import Pagination


class DealCreate(BaseModel):
    """Open a new deal."""

    borrower_name: str | None = Field(default=None, max_length=255)
    borrower_user_id: str | None = None
    loan_type: str | None = Field(default=None, max_length=100)
    loan_amount: Decimal | None = Field(default=None, ge=0)
    bank_id: str | None = Field(default=None, description="Admins only; others use their own bank.")


class DealIntakeUpdate(BaseModel):
    """Partial update of intake fields."""

    borrower_name: str | None = Field(default=None, max_length=255)
    loan_type: str | None = Field(default=None, max_length=100)
    loan_amount: Decimal | None = Field(default=None, ge=0)


class DealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    bank_id: str
    borrower_name: str | None = None
    borrower_user_id: str | None = None
    loan_type: str | None = None
    loan_amount: Decimal | None = None
    lifecycle_stage: DealLifecycleStage
    ready_at: datetime | None = None
    ready_reason: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class DealListResponse(BaseModel):
    """Paginated list of deals."""

    data: list[DealResponse]
    pagination: Pagination
