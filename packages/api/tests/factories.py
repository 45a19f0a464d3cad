# This project was developed with assistance from AI tools.
"""Shared test factory functions for creating mock and transient ORM objects."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from buddy_db import ChecklistItem, DealDocument
from buddy_db.enums import (
    ChecklistStatus,
    DealLifecycleStage,
    DocumentProcessingStatus,
    DocumentSource,
    UserRole,
)
from buddy_db.ids import uuid7

from buddy.core.auth import build_data_scope
from buddy.schemas.auth import UserContext

BANK_ID = "bank-1"
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def make_user(role: UserRole = UserRole.ADMIN, user_id: str = "user-1", bank_id: str | None = BANK_ID):
    """Build a UserContext with the scope the auth middleware would assign."""
    return UserContext(
        user_id=user_id,
        role=role,
        email=f"{user_id}@bank.test",
        name="Test User",
        bank_id=bank_id,
        data_scope=build_data_scope(role, user_id, bank_id),
    )


def make_mock_session(single=None, items=None, count=None) -> AsyncMock:
    """AsyncMock session whose every execute() returns the same result.

    Covers ``.scalar()`` counts, ``.scalars().all()`` lists and
    ``.scalar_one_or_none()`` lookups, with or without ``.unique()``.
    """
    items = items or []
    if count is None:
        count = len(items)

    result = MagicMock()
    result.scalar.return_value = count
    result.scalar_one_or_none.return_value = single
    result.scalars.return_value.all.return_value = items
    result.unique.return_value.scalar_one_or_none.return_value = single
    result.unique.return_value.scalars.return_value.all.return_value = items

    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)
    # session.add() is synchronous in SQLAlchemy
    session.add = MagicMock()
    return session


def make_mock_deal(
    id=None,
    stage="created",
    bank_id="bank-1",
    loan_type="SBA 7(a)",
    loan_amount=Decimal("750000"),
    borrower_name="Acme Machining LLC",
    borrower_user_id=None,
    ready_at=None,
):
    """Create a mock Deal ORM object with every response field populated."""
    deal = MagicMock()
    deal.id = id or uuid7()
    deal.bank_id = bank_id
    deal.borrower_name = borrower_name
    deal.borrower_user_id = borrower_user_id
    deal.loan_type = loan_type
    deal.loan_amount = loan_amount
    deal.lifecycle_stage = DealLifecycleStage(stage)
    deal.ready_at = ready_at
    deal.ready_reason = None
    deal.created_by = "banker-1"
    deal.created_at = NOW
    deal.updated_at = NOW
    return deal


def make_item(key="IRS_PERSONAL_3Y", required=True, status="missing", required_years=None):
    """Transient ChecklistItem; defaults are set explicitly since nothing is flushed."""
    return ChecklistItem(
        id=uuid7(),
        deal_id=uuid.UUID(int=1),
        bank_id="bank-1",
        checklist_key=key,
        title=key.replace("_", " ").title(),
        required=required,
        status=ChecklistStatus(status),
        required_years=required_years,
        satisfied_years=[],
    )


def make_document(checklist_key=None, tax_year=None, filename="upload.pdf", **overrides):
    """Transient DealDocument."""
    fields = {
        "id": uuid7(),
        "deal_id": uuid.UUID(int=1),
        "bank_id": "bank-1",
        "original_filename": filename,
        "source": DocumentSource.BANKER,
        "processing_status": DocumentProcessingStatus.UPLOADED,
        "checklist_key": checklist_key,
        "tax_year": tax_year,
    }
    fields.update(overrides)
    return DealDocument(**fields)


def make_mock_document(deal_id=None, **overrides):
    """Mock DealDocument with every response field populated."""
    doc = MagicMock()
    doc.id = overrides.get("id", uuid7())
    doc.deal_id = deal_id or uuid7()
    doc.original_filename = overrides.get("original_filename", "PTR 2024.pdf")
    doc.mime_type = overrides.get("mime_type", "application/pdf")
    doc.storage_path = overrides.get("storage_path", "deals/1/ptr-2024.pdf")
    doc.size_bytes = overrides.get("size_bytes", 2048)
    doc.source = overrides.get("source", DocumentSource.BANKER)
    doc.uploaded_by = overrides.get("uploaded_by", "banker-1")
    doc.processing_status = overrides.get("processing_status", DocumentProcessingStatus.UPLOADED)
    doc.doc_type = overrides.get("doc_type", None)
    doc.tax_year = overrides.get("tax_year", None)
    doc.classification_confidence = overrides.get("classification_confidence", None)
    doc.classification_tier = overrides.get("classification_tier", None)
    doc.checklist_key = overrides.get("checklist_key", None)
    doc.match_reason = overrides.get("match_reason", None)
    doc.created_at = NOW
    doc.updated_at = NOW
    return doc
