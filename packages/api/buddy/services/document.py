# This project was developed with assistance from AI tools.
"""Deal document service.

Documents are registered as metadata (the file itself lives in external
storage). Registration records the document and a pending ledger event;
classification and checklist reconciliation run afterwards in a
background task with their own session.
"""

import logging
import uuid

from buddy_db import Deal, DealDocument
from buddy_db.database import SessionLocal
from buddy_db.enums import (
    ClassificationTier,
    DocumentProcessingStatus,
    DocumentSource,
    LedgerStatus,
    UserRole,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .checklist.reconcile import reconcile_document, recompute_checklist_keys
from .deal import require_deal
from .ledger import emit_ledger_event
from .scope import apply_data_scope

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/tiff",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

MAX_SIZE_BYTES = 50 * 1024 * 1024


class DocumentValidationError(ValueError):
    """Raised when document metadata fails validation."""


async def register_document(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    *,
    original_filename: str,
    mime_type: str | None = None,
    storage_path: str | None = None,
    size_bytes: int | None = None,
    text_excerpt: str | None = None,
    source: DocumentSource | None = None,
) -> DealDocument:
    """Record an uploaded document's metadata for a deal.

    The source defaults from the caller's role: borrowers upload as
    ``borrower``, everyone else as ``banker``.

    Raises:
        DealNotFoundError: deal missing or out of scope.
        DocumentValidationError: unsupported content type or oversize file.
    """
    if mime_type and mime_type not in ALLOWED_CONTENT_TYPES:
        raise DocumentValidationError(
            f"Unsupported file type: {mime_type}. "
            f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
        )
    if size_bytes is not None and size_bytes > MAX_SIZE_BYTES:
        raise DocumentValidationError(
            f"File size exceeds maximum of {MAX_SIZE_BYTES // (1024 * 1024)}MB"
        )

    deal = await require_deal(session, user, deal_id)
    if source is None:
        source = DocumentSource.BORROWER if user.role == UserRole.BORROWER else DocumentSource.BANKER

    doc = DealDocument(
        deal_id=deal.id,
        bank_id=deal.bank_id,
        original_filename=original_filename,
        mime_type=mime_type,
        storage_path=storage_path,
        size_bytes=size_bytes,
        source=source,
        uploaded_by=user.user_id,
        text_excerpt=text_excerpt,
        processing_status=DocumentProcessingStatus.UPLOADED,
    )
    session.add(doc)
    await session.flush()

    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.document.uploaded",
        stage=deal.lifecycle_stage.value,
        status=LedgerStatus.PENDING,
        actor_user_id=user.user_id,
        payload={
            "document_id": str(doc.id),
            "filename": original_filename,
            "source": DocumentSource(source).value,
        },
    )

    doc_id = doc.id  # capture before commit
    await session.commit()
    return await get_document(session, user, doc_id)


async def list_documents(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    *,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[DealDocument], int]:
    """Documents for a deal visible to the current user, newest first."""
    count_stmt = select(func.count(DealDocument.id)).where(DealDocument.deal_id == deal_id)
    count_stmt = apply_data_scope(
        count_stmt, user.data_scope, user, join_to_deal=DealDocument.deal
    )
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = (
        select(DealDocument)
        .where(DealDocument.deal_id == deal_id)
        .order_by(DealDocument.id.desc())
        .offset(offset)
        .limit(limit)
    )
    stmt = apply_data_scope(stmt, user.data_scope, user, join_to_deal=DealDocument.deal)
    result = await session.execute(stmt)
    return list(result.unique().scalars().all()), total


async def get_document(
    session: AsyncSession,
    user: UserContext,
    document_id: uuid.UUID,
) -> DealDocument | None:
    """Return a document if visible to the current user."""
    stmt = select(DealDocument).where(DealDocument.id == document_id)
    stmt = apply_data_scope(stmt, user.data_scope, user, join_to_deal=DealDocument.deal)
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()


async def set_document_checklist_key(
    session: AsyncSession,
    user: UserContext,
    document_id: uuid.UUID,
    checklist_key: str | None,
    *,
    tax_year: int | None = None,
) -> DealDocument | None:
    """Manually link a document to a checklist item (or unlink it with None).

    ``tax_year``, when given, overrides the classified year so year-aware
    items (tax returns) can be satisfied by hand. Both the previously
    linked item and the new one are recomputed.
    """
    doc = await get_document(session, user, document_id)
    if doc is None:
        return None
    deal = await require_deal(session, user, doc.deal_id)

    previous_key = doc.checklist_key
    doc.checklist_key = checklist_key
    doc.classification_tier = ClassificationTier.MANUAL
    doc.classification_confidence = 1.0
    doc.match_reason = f"manually set by {user.user_id}"
    if tax_year is not None:
        doc.tax_year = tax_year

    await recompute_checklist_keys(
        session, deal, [previous_key, checklist_key], actor_user_id=user.user_id
    )
    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.document.checklist_key_set",
        stage=deal.lifecycle_stage.value,
        actor_user_id=user.user_id,
        payload={
            "document_id": str(doc.id),
            "from": previous_key,
            "to": checklist_key,
            "tax_year": doc.tax_year,
        },
    )
    await session.commit()
    return await get_document(session, user, document_id)


class DocumentProcessingService:
    """Classifies a registered document and reconciles the deal's checklist."""

    async def process_document(self, document_id: uuid.UUID) -> None:
        """Pipeline entry point. Runs as a background task with its own session."""
        async with SessionLocal() as session:
            try:
                stmt = select(DealDocument).where(DealDocument.id == document_id)
                doc = (await session.execute(stmt)).scalar_one_or_none()
                if doc is None:
                    logger.error("Document %s not found, skipping processing", document_id)
                    return

                deal = await session.get(Deal, doc.deal_id)
                doc.processing_status = DocumentProcessingStatus.PROCESSING
                await session.flush()

                await reconcile_document(session, deal, doc, actor_user_id=doc.uploaded_by)

                doc.processing_status = DocumentProcessingStatus.CLASSIFIED
                await emit_ledger_event(
                    session,
                    deal_id=deal.id,
                    bank_id=deal.bank_id,
                    kind="deal.document.classified",
                    stage=deal.lifecycle_stage.value,
                    actor_user_id=doc.uploaded_by,
                    payload={
                        "document_id": str(doc.id),
                        "doc_type": doc.doc_type.value if doc.doc_type else None,
                        "checklist_key": doc.checklist_key,
                        "tier": doc.classification_tier.value if doc.classification_tier else None,
                        "confidence": doc.classification_confidence,
                    },
                )
                await session.commit()
                logger.info(
                    "Document %s classified: key=%s tier=%s",
                    document_id,
                    doc.checklist_key,
                    doc.classification_tier,
                )

            except Exception:
                logger.exception("Processing failed for document %s", document_id)
                await session.rollback()
                await self._mark_failed(document_id)

    async def _mark_failed(self, document_id: uuid.UUID) -> None:
        async with SessionLocal() as session:
            try:
                stmt = select(DealDocument).where(DealDocument.id == document_id)
                doc = (await session.execute(stmt)).scalar_one_or_none()
                if doc is None:
                    return
                doc.processing_status = DocumentProcessingStatus.FAILED
                await emit_ledger_event(
                    session,
                    deal_id=doc.deal_id,
                    bank_id=doc.bank_id,
                    kind="deal.document.failed",
                    status=LedgerStatus.ERROR,
                    actor_user_id=doc.uploaded_by,
                    payload={"document_id": str(doc.id)},
                )
                await session.commit()
            except Exception:
                logger.exception("Failed to update status for document %s", document_id)


_service: DocumentProcessingService | None = None


def get_processing_service() -> DocumentProcessingService:
    """Return the process-wide DocumentProcessingService."""
    global _service  # noqa: PLW0603
    if _service is None:
        _service = DocumentProcessingService()
    return _service
