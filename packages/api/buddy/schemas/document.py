# This project was developed with assistance from AI tools.
"""Document request/response schemas."""

import uuid
from datetime import datetime

from buddy_db.enums import (
    ClassificationTier,
    DocumentProcessingStatus,
    DocumentSource,
    DocumentType,
)
from pydantic import BaseModel, ConfigDict, Field

from . import Pagination


class DocumentRegister(BaseModel):
    """Metadata for a file already placed in storage."""

    original_filename: str = Field(min_length=1, max_length=500)
    mime_type: str | None = None
    storage_path: str | None = Field(default=None, max_length=1000)
    size_bytes: int | None = Field(default=None, ge=0)
    text_excerpt: str | None = Field(
        default=None, description="OCR or extracted text used for classification."
    )
    source: DocumentSource | None = None


class DocumentChecklistKeyUpdate(BaseModel):
    """Manual checklist link; null unlinks the document."""

    checklist_key: str | None = Field(default=None, max_length=100)
    tax_year: int | None = Field(default=None, ge=1990, le=2100)


class DocumentResponse(BaseModel):
    """Document metadata response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    original_filename: str
    mime_type: str | None = None
    storage_path: str | None = None
    size_bytes: int | None = None
    source: DocumentSource
    uploaded_by: str | None = None
    processing_status: DocumentProcessingStatus
    doc_type: DocumentType | None = None
    tax_year: int | None = None
    classification_confidence: float | None = None
    classification_tier: ClassificationTier | None = None
    checklist_key: str | None = None
    match_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    """Paginated list of documents."""

    data: list[DocumentResponse]
    pagination: Pagination
