# This project was developed with assistance from AI tools.
"""LLM fallback classifier for documents the rules cannot place.

Fail-soft by contract: disabled, timed out, unreachable or unparseable all
return None, and the caller records the document as unclassified. A
classification problem never fails the upload.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass

from buddy_db.enums import DocumentType
from openai import OpenAIError

from ...core.config import settings
from ...inference.client import get_completion
from .rules import DOC_TYPE_TO_CHECKLIST_KEY

logger = logging.getLogger(__name__)

# Matches ```json ... ``` or ``` ... ``` fences that LLMs often wrap around JSON.
_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

# Enough text for the model to see the form header and first schedule.
_MAX_TEXT_CHARS = 6000

_SYSTEM_PROMPT = (
    "You classify commercial loan documents. Respond with a single JSON object "
    'with keys "doc_type", "confidence" (0 to 1), "tax_year" (integer or null) '
    'and "reason". doc_type must be one of: {doc_types}.'
)


@dataclass
class AIClassification:
    doc_type: DocumentType
    confidence: float
    reason: str
    checklist_key: str | None = None
    tax_year: int | None = None


def _strip_json_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    stripped = text.strip()
    m = _FENCE_RE.match(stripped)
    return m.group(1).strip() if m else stripped


def _build_messages(text: str, filename: str) -> list[dict[str, str]]:
    doc_types = ", ".join(t.value for t in DocumentType)
    return [
        {"role": "system", "content": _SYSTEM_PROMPT.format(doc_types=doc_types)},
        {
            "role": "user",
            "content": f"Filename: {filename}\n\nDocument text:\n{text[:_MAX_TEXT_CHARS]}",
        },
    ]


def _parse_response(raw: str) -> AIClassification:
    """Parse and validate model output. Raises ValueError on anything unusable."""
    data = json.loads(_strip_json_fences(raw))
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")

    doc_type = DocumentType(data["doc_type"])
    confidence = min(max(float(data.get("confidence", 0.0)), 0.0), 1.0)
    tax_year = data.get("tax_year")
    return AIClassification(
        doc_type=doc_type,
        confidence=confidence,
        reason=str(data.get("reason") or "AI classification"),
        checklist_key=DOC_TYPE_TO_CHECKLIST_KEY.get(doc_type),
        tax_year=int(tax_year) if tax_year else None,
    )


async def classify_with_ai(text: str | None, filename: str | None) -> AIClassification | None:
    """Ask the LLM for a classification; None on any failure or when disabled."""
    if not settings.AI_CLASSIFICATION_ENABLED:
        return None

    try:
        raw = await asyncio.wait_for(
            get_completion(_build_messages(text or "", filename or ""), temperature=0),
            timeout=settings.LLM_TIMEOUT,
        )
        return _parse_response(raw)
    except TimeoutError:
        logger.warning("AI classification timed out for %s", filename)
    except OpenAIError as exc:
        logger.warning("AI classification call failed for %s: %s", filename, exc)
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("AI classification returned unusable output for %s: %s", filename, exc)
    return None
