# This project was developed with assistance from AI tools.
"""Financial fact schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from buddy_db.enums import FactOwnerType
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FactProvenance(BaseModel):
    source_type: str
    source_ref: str | None = None
    as_of_date: date | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)


class FactInput(BaseModel):
    fact_type: str = Field(min_length=1, max_length=100)
    fact_key: str = Field(min_length=1, max_length=100)
    fact_period: str = Field(default="", max_length=20)
    value_num: Decimal | None = None
    value_text: str | None = None
    owner_type: FactOwnerType = FactOwnerType.DEAL
    owner_entity_id: str = Field(default="", max_length=64)
    provenance: FactProvenance | None = None

    @model_validator(mode="after")
    def _require_value(self):
        if self.value_num is None and self.value_text is None:
            raise ValueError("value_num or value_text is required")
        return self


class FactUpsertRequest(BaseModel):
    facts: list[FactInput] = Field(min_length=1, max_length=500)


class FactUpsertResponse(BaseModel):
    upserted: int


class FactItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    fact_type: str
    fact_key: str
    fact_period: str
    value_num: Decimal | None = None
    value_text: str | None = None
    owner_type: FactOwnerType
    owner_entity_id: str
    provenance: dict | None = None
    updated_at: datetime | None = None


class FactListResponse(BaseModel):
    data: list[FactItem]
    count: int
