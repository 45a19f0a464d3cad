# This project was developed with assistance from AI tools.
"""Tests for deal readiness."""

from unittest.mock import AsyncMock, patch

from buddy.services.readiness import (
    REASON_ALL_SATISFIED,
    REASON_MISSING_DOCS,
    REASON_NOT_SEEDED,
    compute_readiness,
    recompute_deal_readiness,
)
from tests.factories import NOW, make_item, make_mock_deal


def test_unseeded_checklist_not_ready():
    result = compute_readiness([])
    assert result.ready is False
    assert result.reason == REASON_NOT_SEEDED
    assert result.received_pct == 0


def test_required_items_drive_readiness():
    items = [
        make_item("PFS_CURRENT", status="satisfied"),
        make_item("IRS_PERSONAL_3Y", status="received"),
        make_item("IRS_BUSINESS_3Y", status="missing"),
        make_item("BANK_STMT_3M", required=False, status="missing"),
    ]
    result = compute_readiness(items)
    assert result.ready is False
    assert result.reason == REASON_MISSING_DOCS
    assert result.missing_keys == ["IRS_BUSINESS_3Y", "IRS_PERSONAL_3Y"]
    assert result.required_total == 3
    assert result.received_pct == 67


def test_optional_items_never_block():
    items = [
        make_item("PFS_CURRENT", status="satisfied"),
        make_item("BANK_STMT_3M", required=False, status="missing"),
    ]
    result = compute_readiness(items)
    assert result.ready is True
    assert result.reason == REASON_ALL_SATISFIED
    assert result.received_pct == 100


def test_nothing_required_is_ready_at_full_pct():
    result = compute_readiness([make_item("APPRAISAL", required=False)])
    assert result.ready is True
    assert result.received_pct == 100


async def test_recompute_stamps_ready_and_writes_event():
    deal = make_mock_deal()
    with patch("buddy.services.readiness.emit_ledger_event", new_callable=AsyncMock) as emit:
        result = await recompute_deal_readiness(
            AsyncMock(), deal, [make_item("PFS_CURRENT", status="satisfied")]
        )
    assert result.ready is True
    assert deal.ready_at is not None
    assert deal.ready_reason == REASON_ALL_SATISFIED
    assert emit.await_args.kwargs["kind"] == "deal.readiness.changed"


async def test_recompute_clears_stamp_when_docs_regress():
    deal = make_mock_deal(ready_at=NOW)
    with patch("buddy.services.readiness.emit_ledger_event", new_callable=AsyncMock) as emit:
        await recompute_deal_readiness(AsyncMock(), deal, [make_item("PFS_CURRENT")])
    assert deal.ready_at is None
    assert emit.await_args.kwargs["payload"]["ready"] is False


async def test_recompute_without_change_writes_nothing():
    deal = make_mock_deal(ready_at=NOW)
    with patch("buddy.services.readiness.emit_ledger_event", new_callable=AsyncMock) as emit:
        await recompute_deal_readiness(
            AsyncMock(), deal, [make_item("PFS_CURRENT", status="satisfied")]
        )
    assert deal.ready_at == NOW
    emit.assert_not_awaited()
