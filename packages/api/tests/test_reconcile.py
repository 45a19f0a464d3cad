# This project was developed with assistance from AI tools.
"""Tests for checklist reconciliation."""

from unittest.mock import AsyncMock, patch

import pytest
from buddy_db.enums import ChecklistStatus, ClassificationTier, DocumentType
from sqlalchemy.dialects import postgresql

from buddy.services.checklist.ai_classifier import AIClassification
from buddy.services.checklist.reconcile import (
    UNCLASSIFIED,
    apply_classification,
    classify_document,
    reconcile_deal,
    reconcile_document,
    recompute_checklist_summary,
    recompute_item_from_documents,
    seed_checklist,
)
from buddy.services.checklist.rules import get_ruleset_for_loan_type
from tests.factories import make_document, make_item, make_mock_deal, make_mock_session

_MODULE = "buddy.services.checklist.reconcile"
_AI = f"{_MODULE}.classify_with_ai"

# ---------------------------------------------------------------------------
# recompute_item_from_documents
# ---------------------------------------------------------------------------


def test_no_documents_is_missing():
    item = make_item(status="received")
    assert recompute_item_from_documents(item, []) == ChecklistStatus.MISSING
    assert item.received_document_id is None
    assert item.satisfied_years == []


def test_item_without_years_satisfied_by_any_document():
    item = make_item(key="PFS_CURRENT")
    doc = make_document("PFS_CURRENT")
    assert recompute_item_from_documents(item, [doc]) == ChecklistStatus.SATISFIED
    assert item.received_document_id == doc.id
    assert item.received_at is not None


def test_partial_years_is_received():
    item = make_item(required_years=[2022, 2023, 2024])
    docs = [make_document("IRS_PERSONAL_3Y", 2023), make_document("IRS_PERSONAL_3Y", 2024)]
    assert recompute_item_from_documents(item, docs) == ChecklistStatus.RECEIVED
    assert item.satisfied_years == [2023, 2024]


def test_all_years_is_satisfied():
    item = make_item(required_years=[2022, 2023, 2024])
    docs = [make_document("IRS_PERSONAL_3Y", y) for y in (2024, 2022, 2023)]
    assert recompute_item_from_documents(item, docs) == ChecklistStatus.SATISFIED
    assert item.satisfied_years == [2022, 2023, 2024]


def test_years_outside_window_are_ignored():
    item = make_item(required_years=[2023, 2024])
    docs = [make_document("IRS_PERSONAL_3Y", 2019), make_document("IRS_PERSONAL_3Y", 2024)]
    assert recompute_item_from_documents(item, docs) == ChecklistStatus.RECEIVED
    assert item.satisfied_years == [2024]


def test_recompute_is_idempotent():
    item = make_item(required_years=[2023, 2024])
    docs = [make_document("IRS_PERSONAL_3Y", 2023), make_document("IRS_PERSONAL_3Y", 2023)]

    first = recompute_item_from_documents(item, docs)
    snapshot = (list(item.satisfied_years), item.received_document_id, item.received_at)
    second = recompute_item_from_documents(item, docs)

    assert first == second == ChecklistStatus.RECEIVED
    assert (list(item.satisfied_years), item.received_document_id, item.received_at) == snapshot


def test_summary_counts():
    items = [
        make_item("PFS_CURRENT", status="satisfied"),
        make_item("IRS_PERSONAL_3Y", status="received"),
        make_item("IRS_BUSINESS_3Y", status="missing"),
        make_item("BANK_STMT_3M", required=False, status="missing"),
    ]
    assert recompute_checklist_summary(items) == {
        "total": 4,
        "required": 3,
        "received": 1,
        "satisfied": 1,
        "missing": 2,
        "required_pending": 2,
    }


# ---------------------------------------------------------------------------
# classify_document
# ---------------------------------------------------------------------------


async def test_classify_prefers_text_rules():
    with patch(_AI, new_callable=AsyncMock) as ai:
        result = await classify_document("Form 1120S for the year 2023", "PTR_2024.pdf")
    assert result.tier == ClassificationTier.RULES_FORM
    assert result.checklist_key == "IRS_BUSINESS_3Y"
    ai.assert_not_awaited()


async def test_classify_falls_back_to_filename_matcher():
    with patch(_AI, new_callable=AsyncMock) as ai:
        result = await classify_document("", "PTR_2024.pdf")
    assert result.tier == ClassificationTier.FILENAME_MATCHER
    assert result.checklist_key == "IRS_PERSONAL_3Y"
    assert result.tax_year == 2024
    assert result.doc_type is None
    ai.assert_not_awaited()


async def test_classify_uses_ai_last():
    ai_result = AIClassification(
        doc_type=DocumentType.PFS, confidence=0.8, reason="model", checklist_key="PFS_CURRENT"
    )
    with patch(_AI, new_callable=AsyncMock, return_value=ai_result):
        result = await classify_document("Lorem ipsum", "scan_0001.pdf")
    assert result.tier == ClassificationTier.AI
    assert result.checklist_key == "PFS_CURRENT"


async def test_classify_ignores_low_confidence_ai():
    ai_result = AIClassification(doc_type=DocumentType.OTHER, confidence=0.3, reason="unsure")
    with patch(_AI, new_callable=AsyncMock, return_value=ai_result):
        result = await classify_document("Lorem ipsum", "scan_0001.pdf")
    assert result is UNCLASSIFIED


def test_apply_classification_keeps_existing_year_when_none():
    doc = make_document(tax_year=2022)
    apply_classification(doc, UNCLASSIFIED)
    assert doc.tax_year == 2022
    assert doc.classification_tier == ClassificationTier.NONE
    assert doc.checklist_key is None


# ---------------------------------------------------------------------------
# reconcile_document
# ---------------------------------------------------------------------------


async def test_reconcile_document_skips_manual_documents():
    doc = make_document(classification_tier=ClassificationTier.MANUAL)
    with (
        patch("buddy.services.checklist.reconcile.classify_document", new_callable=AsyncMock) as classify,
        patch(
            "buddy.services.checklist.reconcile.recompute_checklist_keys",
            new_callable=AsyncMock,
            return_value=[],
        ) as recompute,
    ):
        await reconcile_document(AsyncMock(), make_mock_deal(), doc)
    classify.assert_not_awaited()
    recompute.assert_awaited_once()


async def test_reconcile_document_classifies_and_recomputes_key():
    doc = make_document(filename="BTR_2023.pdf")
    with patch(
        "buddy.services.checklist.reconcile.recompute_checklist_keys",
        new_callable=AsyncMock,
        return_value=[],
    ) as recompute:
        await reconcile_document(AsyncMock(), make_mock_deal(), doc)
    assert doc.checklist_key == "IRS_BUSINESS_3Y"
    assert doc.tax_year == 2023
    assert recompute.await_args.args[2] == ["IRS_BUSINESS_3Y"]


@pytest.mark.parametrize(
    "filename,key",
    [
        ("1120S_Business_2023.pdf", "IRS_BUSINESS_3Y"),
        ("1040_2023.pdf", "IRS_PERSONAL_3Y"),
    ],
)
async def test_classify_takes_return_year_from_filename(filename, key):
    with patch(_AI, new_callable=AsyncMock) as ai:
        result = await classify_document(None, filename)
    assert result.tier == ClassificationTier.RULES_FILENAME
    assert result.checklist_key == key
    assert result.tax_year == 2023
    ai.assert_not_awaited()


async def test_classify_form_text_without_year_uses_filename_year():
    result = await classify_document("Form 1040 U.S. Individual Income Tax Return", "return_2022.pdf")
    assert result.tier == ClassificationTier.RULES_FORM
    assert result.tax_year == 2022


async def test_classify_text_year_beats_filename_year():
    result = await classify_document("Form 1120S  Tax Year 2021", "1120S_2024.pdf")
    assert result.tax_year == 2021


async def test_classify_non_return_keeps_no_year():
    result = await classify_document(None, "rent_roll_2024.xlsx")
    assert result.checklist_key == "RENT_ROLL"
    assert result.tax_year is None


# ---------------------------------------------------------------------------
# Reconciliation through the loaders
# ---------------------------------------------------------------------------


def _linked_loader(documents):
    """Stand-in for _load_linked_documents over an in-memory document list."""

    def _load(_session, _deal_id, checklist_keys=None):
        return [
            d
            for d in documents
            if d.checklist_key and (checklist_keys is None or d.checklist_key in checklist_keys)
        ]

    return _load


async def test_yearly_business_returns_satisfy_item():
    item = make_item("IRS_BUSINESS_3Y", required_years=[2022, 2023, 2024])
    documents = []
    with (
        patch(f"{_MODULE}.load_checklist", new_callable=AsyncMock, return_value=[item]),
        patch(f"{_MODULE}._load_linked_documents", new_callable=AsyncMock) as load_docs,
        patch(f"{_MODULE}.recompute_deal_readiness", new_callable=AsyncMock),
        patch(_AI, new_callable=AsyncMock) as ai,
    ):
        load_docs.side_effect = _linked_loader(documents)
        for year in (2022, 2023, 2024):
            doc = make_document(filename=f"1120S_{year}.pdf")
            documents.append(doc)
            await reconcile_document(AsyncMock(), make_mock_deal(), doc)
            assert doc.tax_year == year

    ai.assert_not_awaited()
    assert item.status == ChecklistStatus.SATISFIED
    assert item.satisfied_years == [2022, 2023, 2024]


async def test_reconciling_same_document_twice_keeps_counts():
    items = [
        make_item("IRS_PERSONAL_3Y", required_years=[2023, 2024]),
        make_item("PFS_CURRENT"),
    ]
    doc = make_document("IRS_PERSONAL_3Y", 2023)
    with (
        patch(f"{_MODULE}.load_checklist", new_callable=AsyncMock, return_value=items),
        patch(f"{_MODULE}._load_linked_documents", new_callable=AsyncMock) as load_docs,
        patch(f"{_MODULE}.recompute_deal_readiness", new_callable=AsyncMock),
    ):
        load_docs.side_effect = _linked_loader([doc])
        await reconcile_document(AsyncMock(), make_mock_deal(), doc)
        first = recompute_checklist_summary(items)
        await reconcile_document(AsyncMock(), make_mock_deal(), doc)
        second = recompute_checklist_summary(items)

    assert first == second
    assert first["received"] == 1
    assert first["required_pending"] == 2
    assert items[0].satisfied_years == [2023]


async def test_reconcile_deal_rebuilds_every_item():
    items = [
        make_item("IRS_PERSONAL_3Y", status="missing", required_years=[2023, 2024]),
        make_item("PFS_CURRENT", status="satisfied"),
        make_item("RENT_ROLL", required=False, status="missing"),
    ]
    documents = [
        make_document("IRS_PERSONAL_3Y", 2023),
        make_document("IRS_PERSONAL_3Y", 2024),
    ]
    session = AsyncMock()
    with (
        patch(f"{_MODULE}.load_checklist", new_callable=AsyncMock, return_value=items),
        patch(f"{_MODULE}._load_linked_documents", new_callable=AsyncMock, return_value=documents),
        patch(f"{_MODULE}.recompute_deal_readiness", new_callable=AsyncMock) as readiness,
    ):
        summary = await reconcile_deal(session, make_mock_deal())

    assert items[0].status == ChecklistStatus.SATISFIED
    # PFS has no linked document any more
    assert items[1].status == ChecklistStatus.MISSING
    assert summary["satisfied"] == 1
    assert summary["required_pending"] == 1
    assert readiness.await_args.args[2] is items
    session.flush.assert_awaited()


# ---------------------------------------------------------------------------
# seed_checklist
# ---------------------------------------------------------------------------


async def test_seed_checklist_inserts_on_conflict_do_nothing():
    deal = make_mock_deal(loan_type="SBA 7(a)")
    ruleset = get_ruleset_for_loan_type("SBA 7(a)")
    session = make_mock_session(items=[item.key for item in ruleset.items])
    with patch(f"{_MODULE}.emit_ledger_event", new_callable=AsyncMock) as emit:
        inserted = await seed_checklist(session, deal, actor_user_id="banker-1")

    assert inserted == len(ruleset.items)
    stmt = session.execute.await_args.args[0]
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (deal_id, checklist_key) DO NOTHING" in sql

    kwargs = emit.await_args.kwargs
    assert kwargs["kind"] == "deal.checklist.seeded"
    assert kwargs["payload"]["ruleset"] == ruleset.key
    assert kwargs["payload"]["inserted"] == len(ruleset.items)
    assert kwargs["actor_user_id"] == "banker-1"


async def test_seed_checklist_again_inserts_nothing():
    session = make_mock_session(items=[])
    with patch(f"{_MODULE}.emit_ledger_event", new_callable=AsyncMock) as emit:
        inserted = await seed_checklist(session, make_mock_deal())

    assert inserted == 0
    assert emit.await_args.kwargs["payload"]["inserted"] == 0
