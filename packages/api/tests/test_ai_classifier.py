# This project was developed with assistance from AI tools.
"""Tests for the LLM fallback classifier."""

from unittest.mock import AsyncMock, patch

import pytest
from buddy_db.enums import DocumentType
from openai import OpenAIError

from buddy.core.config import settings
from buddy.services.checklist.ai_classifier import (
    _parse_response,
    _strip_json_fences,
    classify_with_ai,
)

_COMPLETION = "buddy.services.checklist.ai_classifier.get_completion"


@pytest.fixture
def ai_enabled():
    with patch.object(settings, "AI_CLASSIFICATION_ENABLED", True):
        yield


def test_strip_json_fences():
    assert _strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert _strip_json_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert _strip_json_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_response_maps_checklist_key_and_clamps():
    result = _parse_response(
        '{"doc_type": "PFS", "confidence": 1.7, "tax_year": null, "reason": "SBA Form 413"}'
    )
    assert result.doc_type == DocumentType.PFS
    assert result.checklist_key == "PFS_CURRENT"
    assert result.confidence == 1.0
    assert result.tax_year is None


def test_parse_response_rejects_unknown_type():
    with pytest.raises(ValueError):
        _parse_response('{"doc_type": "GROCERY_LIST", "confidence": 0.9}')


async def test_disabled_never_calls_model():
    with (
        patch.object(settings, "AI_CLASSIFICATION_ENABLED", False),
        patch(_COMPLETION, new_callable=AsyncMock) as completion,
    ):
        assert await classify_with_ai("some text", "x.pdf") is None
    completion.assert_not_awaited()


async def test_fenced_response_is_parsed(ai_enabled):
    raw = '```json\n{"doc_type": "IRS_BUSINESS", "confidence": 0.81, "tax_year": 2023}\n```'
    with patch(_COMPLETION, new_callable=AsyncMock, return_value=raw):
        result = await classify_with_ai("U.S. Return of Partnership Income", "scan_0042.pdf")
    assert result.doc_type == DocumentType.IRS_BUSINESS
    assert result.checklist_key == "IRS_BUSINESS_3Y"
    assert result.tax_year == 2023
    assert result.confidence == pytest.approx(0.81)


async def test_timeout_returns_none(ai_enabled):
    with patch(_COMPLETION, new_callable=AsyncMock, side_effect=TimeoutError):
        assert await classify_with_ai("text", "x.pdf") is None


async def test_api_error_returns_none(ai_enabled):
    with patch(_COMPLETION, new_callable=AsyncMock, side_effect=OpenAIError("connection refused")):
        assert await classify_with_ai("text", "x.pdf") is None


async def test_bad_json_returns_none(ai_enabled):
    with patch(_COMPLETION, new_callable=AsyncMock, return_value="I think this is a tax return"):
        assert await classify_with_ai("text", "x.pdf") is None


async def test_missing_doc_type_returns_none(ai_enabled):
    with patch(_COMPLETION, new_callable=AsyncMock, return_value='{"confidence": 0.9}'):
        assert await classify_with_ai("text", "x.pdf") is None
