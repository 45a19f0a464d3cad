# This project was developed with assistance from AI tools.
"""Tests for deal mode derivation."""

import itertools
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from buddy_db.enums import DealMode, LedgerStatus
from sqlalchemy.dialects import postgresql

from buddy.services.ledger import get_latest_ledger_event

from buddy.services.mode import (
    CHECKLIST_EMPTY,
    CHECKLIST_SEEDED,
    PIPELINE_BLOCKED,
    PIPELINE_EVENT_PREFIXES,
    PIPELINE_OK,
    PIPELINE_WORKING,
    derive_deal_mode,
    get_deal_mode,
    pipeline_status_from_ledger,
)
from tests.factories import make_item, make_mock_deal, make_mock_session, make_user


@pytest.mark.parametrize(
    "uploads,checklist,pending",
    list(itertools.product([0, 2], [CHECKLIST_EMPTY, CHECKLIST_SEEDED], [0, 3])),
)
def test_blocked_always_wins(uploads, checklist, pending):
    assert derive_deal_mode(PIPELINE_BLOCKED, uploads, checklist, pending) == DealMode.BLOCKED


def test_processing_from_pipeline_or_uploads():
    assert derive_deal_mode(PIPELINE_WORKING, 0, CHECKLIST_EMPTY, 0) == DealMode.PROCESSING
    assert derive_deal_mode(PIPELINE_OK, 1, CHECKLIST_SEEDED, 0) == DealMode.PROCESSING


def test_initializing_before_checklist():
    assert derive_deal_mode(PIPELINE_OK, 0, CHECKLIST_EMPTY, 0) == DealMode.INITIALIZING


def test_needs_input_then_ready():
    assert derive_deal_mode(PIPELINE_OK, 0, CHECKLIST_SEEDED, 2) == DealMode.NEEDS_INPUT
    assert derive_deal_mode(PIPELINE_OK, 0, CHECKLIST_SEEDED, 0) == DealMode.READY


@pytest.mark.parametrize(
    "status,expected",
    [
        (None, PIPELINE_OK),
        (LedgerStatus.OK, PIPELINE_OK),
        (LedgerStatus.PENDING, PIPELINE_WORKING),
        (LedgerStatus.BLOCKED, PIPELINE_BLOCKED),
        (LedgerStatus.ERROR, PIPELINE_BLOCKED),
        ("pending", PIPELINE_WORKING),
    ],
)
def test_pipeline_status_from_ledger(status, expected):
    assert pipeline_status_from_ledger(status) == expected


async def test_get_deal_mode_gathers_inputs():
    deal = make_mock_deal()
    latest = MagicMock(status=LedgerStatus.OK, kind="deal.checklist.seeded")
    session = make_mock_session(count=0)
    with (
        patch("buddy.services.mode.get_scoped_deal", new_callable=AsyncMock, return_value=deal),
        patch("buddy.services.mode.get_latest_ledger_event", new_callable=AsyncMock, return_value=latest),
        patch(
            "buddy.services.mode.load_checklist",
            new_callable=AsyncMock,
            return_value=[make_item("PFS_CURRENT")],
        ),
    ):
        result = await get_deal_mode(session, make_user(), deal.id)

    assert result["mode"] == DealMode.NEEDS_INPUT
    assert result["pending_required"] == 1
    assert result["last_event_kind"] == "deal.checklist.seeded"
    assert result["checklist_state"] == CHECKLIST_SEEDED


async def test_get_deal_mode_hidden_deal():
    with patch("buddy.services.mode.get_scoped_deal", new_callable=AsyncMock, return_value=None):
        assert await get_deal_mode(AsyncMock(), make_user(), "deal-id") is None


async def test_refused_advance_does_not_block_mode():
    # The latest event overall is deal.lifecycle.blocked; the pipeline lookup
    # only sees document and checklist events, of which the last one is OK.
    deal = make_mock_deal(stage="collecting")
    pipeline_event = MagicMock(status=LedgerStatus.OK, kind="deal.document.classified")
    session = make_mock_session(count=0)
    with (
        patch("buddy.services.mode.get_scoped_deal", new_callable=AsyncMock, return_value=deal),
        patch(
            "buddy.services.mode.get_latest_ledger_event",
            new_callable=AsyncMock,
            return_value=pipeline_event,
        ) as latest,
        patch(
            "buddy.services.mode.load_checklist",
            new_callable=AsyncMock,
            return_value=[make_item("IRS_PERSONAL_3Y"), make_item("PFS_CURRENT", status="satisfied")],
        ),
    ):
        result = await get_deal_mode(session, make_user(), deal.id)

    assert latest.await_args.kwargs["kind_prefixes"] == PIPELINE_EVENT_PREFIXES
    assert result["mode"] == DealMode.NEEDS_INPUT
    assert result["pipeline_status"] == PIPELINE_OK


def test_pipeline_prefixes_exclude_workflow_events():
    for kind in ("deal.lifecycle.blocked", "deal.committee.vote_cast", "deal.readiness.changed"):
        assert not kind.startswith(PIPELINE_EVENT_PREFIXES)
    assert "deal.document.failed".startswith(PIPELINE_EVENT_PREFIXES)


async def test_latest_pipeline_event_query_filters_kinds():
    session = make_mock_session()
    await get_latest_ledger_event(session, "deal-id", kind_prefixes=PIPELINE_EVENT_PREFIXES)

    compiled = session.execute.await_args.args[0].compile(dialect=postgresql.dialect())
    assert " LIKE " in str(compiled)
    assert "ORDER BY deal_ledger_events.id DESC" in str(compiled)
    assert set(PIPELINE_EVENT_PREFIXES) <= set(compiled.params.values())
