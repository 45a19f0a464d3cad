# This project was developed with assistance from AI tools.
"""Checklist seeding and reconciliation.

Item status is always rebuilt from the full set of documents linked to
the item, never incremented, so reconciling the same document twice
leaves the checklist unchanged.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from buddy_db import ChecklistItem, Deal, DealDocument
from buddy_db.enums import ChecklistStatus, ClassificationTier, DocumentType
from buddy_db.ids import uuid7
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ..ledger import emit_ledger_event
from ..readiness import recompute_deal_readiness
from .ai_classifier import classify_with_ai
from .classifier import TAX_YEAR_DOC_TYPES, classify_by_rules
from .matcher import MATCH_THRESHOLD, match_checklist_key_from_filename
from .rules import default_required_years, get_ruleset_for_loan_type, normalize_loan_type

logger = logging.getLogger(__name__)


@dataclass
class DocumentClassification:
    """Combined outcome of the rules -> filename -> AI classification chain."""

    doc_type: DocumentType | None
    checklist_key: str | None
    confidence: float
    tier: ClassificationTier
    reason: str
    tax_year: int | None = None


UNCLASSIFIED = DocumentClassification(
    doc_type=None,
    checklist_key=None,
    confidence=0.0,
    tier=ClassificationTier.NONE,
    reason="no classifier produced a confident match",
)


def _year_from_filename(doc_type: DocumentType | None, tax_year: int | None, filename: str | None):
    """Fill a missing tax year on a return from the year in its filename."""
    if tax_year is not None or doc_type not in TAX_YEAR_DOC_TYPES:
        return tax_year
    return match_checklist_key_from_filename(filename).doc_year


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


async def classify_document(text: str | None, filename: str | None) -> DocumentClassification:
    """Classify a document, cheapest source first.

    Rules (text anchors, then filename anchors) win when confident. The
    filename matcher catches borrower shorthand the rules miss ("PTR",
    "P&L"). The LLM is consulted only when both are inconclusive.
    """
    threshold = settings.CLASSIFICATION_CONFIDENCE_THRESHOLD

    rules = classify_by_rules(text, filename)
    if rules is not None and rules.confidence >= threshold:
        return DocumentClassification(
            doc_type=rules.doc_type,
            checklist_key=rules.checklist_key,
            confidence=rules.confidence,
            tier=rules.tier,
            reason=rules.reason,
            tax_year=_year_from_filename(rules.doc_type, rules.tax_year, filename),
        )

    match = match_checklist_key_from_filename(filename)
    if match.matched_key and match.confidence >= max(threshold, MATCH_THRESHOLD):
        return DocumentClassification(
            doc_type=None,
            checklist_key=match.matched_key,
            confidence=match.confidence,
            tier=ClassificationTier.FILENAME_MATCHER,
            reason=match.reason,
            tax_year=match.doc_year,
        )

    ai = await classify_with_ai(text, filename)
    if ai is not None and ai.confidence >= threshold:
        return DocumentClassification(
            doc_type=ai.doc_type,
            checklist_key=ai.checklist_key,
            confidence=ai.confidence,
            tier=ClassificationTier.AI,
            reason=ai.reason,
            tax_year=_year_from_filename(ai.doc_type, ai.tax_year, filename),
        )

    return UNCLASSIFIED


def apply_classification(document: DealDocument, result: DocumentClassification) -> None:
    document.doc_type = result.doc_type
    document.checklist_key = result.checklist_key
    document.classification_confidence = result.confidence
    document.classification_tier = result.tier
    document.match_reason = result.reason
    if result.tax_year is not None:
        document.tax_year = result.tax_year


# ---------------------------------------------------------------------------
# Pure recompute helpers
# ---------------------------------------------------------------------------


def recompute_item_from_documents(item: ChecklistItem, documents: list[DealDocument]) -> ChecklistStatus:
    """Rebuild an item's status from the documents linked to it.

    - satisfied: at least one document, and every required year is covered
    - received: documents present but required years still outstanding
    - missing: no documents
    """
    if not documents:
        item.status = ChecklistStatus.MISSING
        item.satisfied_years = []
        item.received_document_id = None
        item.received_at = None
        return item.status

    years = sorted({d.tax_year for d in documents if d.tax_year is not None})
    required_years = item.required_years or []
    item.satisfied_years = [y for y in years if not required_years or y in required_years]
    item.received_document_id = documents[-1].id
    if item.received_at is None:
        item.received_at = datetime.now(UTC)

    if set(required_years).issubset(years):
        item.status = ChecklistStatus.SATISFIED
    else:
        item.status = ChecklistStatus.RECEIVED
    return item.status


def recompute_checklist_summary(items: list[ChecklistItem]) -> dict:
    """Counts across a deal's checklist."""
    summary = {
        "total": len(items),
        "required": 0,
        "received": 0,
        "satisfied": 0,
        "missing": 0,
        "required_pending": 0,
    }
    for item in items:
        if item.status == ChecklistStatus.SATISFIED:
            summary["satisfied"] += 1
        elif item.status == ChecklistStatus.RECEIVED:
            summary["received"] += 1
        else:
            summary["missing"] += 1
        if item.required:
            summary["required"] += 1
            if item.status != ChecklistStatus.SATISFIED:
                summary["required_pending"] += 1
    return summary


# ---------------------------------------------------------------------------
# DB operations
# ---------------------------------------------------------------------------


async def load_checklist(session: AsyncSession, deal_id: uuid.UUID) -> list[ChecklistItem]:
    """Checklist items for a deal. Does NOT enforce data scope."""
    stmt = (
        select(ChecklistItem)
        .where(ChecklistItem.deal_id == deal_id)
        .order_by(ChecklistItem.checklist_key)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _load_linked_documents(
    session: AsyncSession,
    deal_id: uuid.UUID,
    checklist_keys: list[str] | None = None,
) -> list[DealDocument]:
    stmt = select(DealDocument).where(
        DealDocument.deal_id == deal_id,
        DealDocument.checklist_key.is_not(None),
    )
    if checklist_keys is not None:
        stmt = stmt.where(DealDocument.checklist_key.in_(checklist_keys))
    result = await session.execute(stmt.order_by(DealDocument.id))
    return list(result.scalars().all())


async def seed_checklist(
    session: AsyncSession,
    deal: Deal,
    *,
    actor_user_id: str | None = None,
) -> int:
    """Insert the deal's ruleset items. Idempotent: existing keys are left alone.

    Returns:
        Number of newly inserted items.
    """
    ruleset = get_ruleset_for_loan_type(deal.loan_type)
    rows = [
        {
            "id": uuid7(),
            "deal_id": deal.id,
            "bank_id": deal.bank_id,
            "checklist_key": rule.key,
            "title": rule.title,
            "description": rule.description,
            "required": rule.required,
            "status": ChecklistStatus.MISSING,
            "required_years": default_required_years(rule.key),
            "satisfied_years": [],
        }
        for rule in ruleset.items
    ]
    stmt = (
        pg_insert(ChecklistItem)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["deal_id", "checklist_key"])
        .returning(ChecklistItem.id)
    )
    result = await session.execute(stmt)
    inserted = len(result.scalars().all())

    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.checklist.seeded",
        stage=deal.lifecycle_stage.value if deal.lifecycle_stage else None,
        actor_user_id=actor_user_id,
        payload={
            "ruleset": ruleset.key,
            "loan_type": normalize_loan_type(deal.loan_type),
            "inserted": inserted,
            "keys": [rule.key for rule in ruleset.items],
        },
    )
    logger.info("Seeded checklist for deal %s: ruleset=%s inserted=%d", deal.id, ruleset.key, inserted)
    return inserted


async def recompute_checklist_keys(
    session: AsyncSession,
    deal: Deal,
    checklist_keys: list[str],
    *,
    actor_user_id: str | None = None,
) -> list[ChecklistItem]:
    """Rebuild the named items from their documents, then refresh readiness."""
    # autoflush is off; pending document edits must be visible to the queries below
    await session.flush()
    keys = sorted({k for k in checklist_keys if k})
    items = await load_checklist(session, deal.id)
    if keys:
        documents = await _load_linked_documents(session, deal.id, keys)
        for item in items:
            if item.checklist_key in keys:
                linked = [d for d in documents if d.checklist_key == item.checklist_key]
                recompute_item_from_documents(item, linked)
        await session.flush()

    await recompute_deal_readiness(session, deal, items, actor_user_id=actor_user_id)
    return [item for item in items if item.checklist_key in keys]


async def reconcile_document(
    session: AsyncSession,
    deal: Deal,
    document: DealDocument,
    *,
    actor_user_id: str | None = None,
) -> list[ChecklistItem]:
    """Classify a document if it has no checklist key yet, then recompute its item.

    Manually assigned keys are never reclassified.
    """
    if document.checklist_key is None and document.classification_tier != ClassificationTier.MANUAL:
        result = await classify_document(document.text_excerpt, document.original_filename)
        apply_classification(document, result)

    return await recompute_checklist_keys(
        session, deal, [document.checklist_key], actor_user_id=actor_user_id
    )


async def reconcile_deal(
    session: AsyncSession,
    deal: Deal,
    *,
    actor_user_id: str | None = None,
) -> dict:
    """Rebuild every checklist item from all of the deal's linked documents.

    Returns:
        The checklist summary after recompute.
    """
    await session.flush()
    items = await load_checklist(session, deal.id)
    documents = await _load_linked_documents(session, deal.id)

    by_key: dict[str, list[DealDocument]] = {}
    for doc in documents:
        by_key.setdefault(doc.checklist_key, []).append(doc)

    for item in items:
        recompute_item_from_documents(item, by_key.get(item.checklist_key, []))
    await session.flush()

    await recompute_deal_readiness(session, deal, items, actor_user_id=actor_user_id)
    return recompute_checklist_summary(items)
