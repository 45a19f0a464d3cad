# This project was developed with assistance from AI tools.
"""Deterministic rules-based document classifier.

Pure functions -- no DB or network access. Three tiers, tried in order;
the first tier with a hit wins:

- form anchors in the document text (IRS form numbers), confidence 0.92
- keyword anchors in the document text, confidence 0.72
- filename anchors, confidence 0.62

Returns None when nothing matches so the caller can fall through to the
AI classifier.
"""

import re
from dataclasses import dataclass

from buddy_db.enums import ClassificationTier, DocumentType

from .rules import DOC_TYPE_TO_CHECKLIST_KEY

FORM_CONFIDENCE = 0.92
KEYWORD_CONFIDENCE = 0.72
FILENAME_CONFIDENCE = 0.62

TAX_YEAR_DOC_TYPES = {DocumentType.IRS_PERSONAL, DocumentType.IRS_BUSINESS, DocumentType.K1}


@dataclass
class RulesClassification:
    """Result of a rules-based classification."""

    doc_type: DocumentType
    confidence: float
    reason: str
    tier: ClassificationTier
    checklist_key: str | None = None
    tax_year: int | None = None
    entity_type: str | None = None
    form_numbers: list[str] | None = None


# (pattern, doc type, entity type, form number)
# K-1 precedes 1065: "Schedule K-1 (Form 1065)" contains both.
_FORM_RULES: list[tuple[re.Pattern, DocumentType, str | None, str]] = [
    (re.compile(r"Form\s+1040", re.I), DocumentType.IRS_PERSONAL, "personal", "1040"),
    (re.compile(r"Form\s+1120S\b", re.I), DocumentType.IRS_BUSINESS, "business", "1120S"),
    (re.compile(r"Form\s+1120\b", re.I), DocumentType.IRS_BUSINESS, "business", "1120"),
    (re.compile(r"Schedule\s+K-?1", re.I), DocumentType.K1, "business", "K-1"),
    (re.compile(r"Form\s+1065\b", re.I), DocumentType.IRS_BUSINESS, "business", "1065"),
    (re.compile(r"Form\s+W-?2\b", re.I), DocumentType.W2, "personal", "W-2"),
    (re.compile(r"Form\s+1099", re.I), DocumentType.FORM_1099, "personal", "1099"),
]

# (pattern, doc type, entity type, only search the first N chars)
_KEYWORD_RULES: list[tuple[re.Pattern, DocumentType, str | None, int | None]] = [
    (re.compile(r"rent\s+roll", re.I), DocumentType.RENT_ROLL, None, None),
    (
        re.compile(r"trailing\s+12|operating\s+statement|income\s*(and|&|/)?\s*expense", re.I),
        DocumentType.T12,
        None,
        None,
    ),
    (re.compile(r"personal\s+financial\s+statement", re.I), DocumentType.PFS, "personal", None),
    (
        re.compile(r"articles\s+of\s+(incorporation|organization)", re.I),
        DocumentType.ARTICLES,
        "business",
        None,
    ),
    (
        re.compile(r"certificate\s+of\s+insurance|insurance\s+certificate", re.I),
        DocumentType.INSURANCE,
        None,
        None,
    ),
    (re.compile(r"phase\s+(i|1)\s+environmental", re.I), DocumentType.ENVIRONMENTAL, None, None),
    (re.compile(r"appraisal\s+report", re.I), DocumentType.APPRAISAL, None, 3000),
    (re.compile(r"bank\s+statement", re.I), DocumentType.BANK_STATEMENT, None, None),
    (re.compile(r"operating\s+agreement", re.I), DocumentType.OPERATING_AGREEMENT, "business", None),
    (re.compile(r"schedule\s+of\s+real\s+estate", re.I), DocumentType.SCHEDULE_OF_RE, None, None),
    (re.compile(r"driver'?s?\s+licen[sc]e", re.I), DocumentType.DRIVERS_LICENSE, "personal", None),
    (re.compile(r"business\s+licen[sc]e", re.I), DocumentType.BUSINESS_LICENSE, "business", None),
    (
        re.compile(r"profit\s+(and|&)\s+loss|income\s+statement", re.I),
        DocumentType.INCOME_STATEMENT,
        "business",
        None,
    ),
    (re.compile(r"balance\s+sheet", re.I), DocumentType.BALANCE_SHEET, "business", None),
]

_FILENAME_RULES: list[tuple[re.Pattern, DocumentType, str | None]] = [
    (re.compile(r"1040", re.I), DocumentType.IRS_PERSONAL, "personal"),
    (re.compile(r"1120|1065", re.I), DocumentType.IRS_BUSINESS, "business"),
    (re.compile(r"rent.?roll", re.I), DocumentType.RENT_ROLL, None),
    (re.compile(r"t12|operating.?statement", re.I), DocumentType.T12, None),
    (re.compile(r"pfs|personal.?financial", re.I), DocumentType.PFS, "personal"),
    (re.compile(r"k-?1", re.I), DocumentType.K1, "business"),
    (re.compile(r"w-?2", re.I), DocumentType.W2, "personal"),
    (re.compile(r"1099", re.I), DocumentType.FORM_1099, "personal"),
    (re.compile(r"appraisal", re.I), DocumentType.APPRAISAL, None),
    (re.compile(r"insurance|coi", re.I), DocumentType.INSURANCE, None),
    (re.compile(r"bank.?statement", re.I), DocumentType.BANK_STATEMENT, None),
]

_FORM_NUMBER_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"Form\s+1040", re.I), "1040"),
    (re.compile(r"Form\s+1120S\b", re.I), "1120S"),
    (re.compile(r"Form\s+1120\b", re.I), "1120"),
    (re.compile(r"Form\s+1065", re.I), "1065"),
    (re.compile(r"Schedule\s+K-?1", re.I), "K-1"),
    (re.compile(r"Schedule\s+C\b", re.I), "Schedule C"),
    (re.compile(r"Schedule\s+E\b", re.I), "Schedule E"),
    (re.compile(r"Form\s+W-?2", re.I), "W-2"),
    (re.compile(r"Form\s+1099", re.I), "1099"),
]

_EXPLICIT_YEAR_RE = re.compile(
    r"(?:tax\s+year|for\s+(?:the\s+)?year(?:\s+ended)?)\s*:?\s*(20[12]\d)", re.I
)
_CALENDAR_YEAR_RE = re.compile(r"(?:december\s+31|12/31)[,\s]+(\d{4})", re.I)
_ANY_YEAR_RE = re.compile(r"\b(20[12]\d)\b")


def extract_tax_year(text: str) -> int | None:
    """Best-effort tax year from the head of a return.

    Prefers explicit "Tax Year 2023" / "For the year ended 2023" phrasing,
    then a December 31 date, then the latest plausible year near the top.
    """
    head = text[:2000]

    m = _EXPLICIT_YEAR_RE.search(head)
    if m:
        return int(m.group(1))

    m = _CALENDAR_YEAR_RE.search(head)
    if m:
        return int(m.group(1))

    years = [int(y) for y in _ANY_YEAR_RE.findall(head[:500])]
    return max(years) if years else None


def extract_form_numbers(text: str) -> list[str]:
    head = text[:3000]
    return [name for pattern, name in _FORM_NUMBER_PATTERNS if pattern.search(head)]


def classify_by_rules(text: str | None, filename: str | None) -> RulesClassification | None:
    """Classify a document from its text and filename without calling a model."""
    text = text or ""

    for pattern, doc_type, entity_type, form_number in _FORM_RULES:
        if pattern.search(text):
            form_numbers = extract_form_numbers(text)
            return RulesClassification(
                doc_type=doc_type,
                confidence=FORM_CONFIDENCE,
                reason=f'Form anchor: "{form_number}" found in document text',
                tier=ClassificationTier.RULES_FORM,
                checklist_key=DOC_TYPE_TO_CHECKLIST_KEY.get(doc_type),
                tax_year=extract_tax_year(text) if doc_type in TAX_YEAR_DOC_TYPES else None,
                entity_type=entity_type,
                form_numbers=form_numbers or [form_number],
            )

    for pattern, doc_type, entity_type, head_chars in _KEYWORD_RULES:
        haystack = text[:head_chars] if head_chars else text
        if pattern.search(haystack):
            return RulesClassification(
                doc_type=doc_type,
                confidence=KEYWORD_CONFIDENCE,
                reason=f'Keyword anchor: "{pattern.pattern}" matched in document text',
                tier=ClassificationTier.RULES_KEYWORD,
                checklist_key=DOC_TYPE_TO_CHECKLIST_KEY.get(doc_type),
                entity_type=entity_type,
            )

    if filename:
        for pattern, doc_type, entity_type in _FILENAME_RULES:
            if pattern.search(filename):
                return RulesClassification(
                    doc_type=doc_type,
                    confidence=FILENAME_CONFIDENCE,
                    reason=f'Filename anchor: "{pattern.pattern}" matched in filename "{filename}"',
                    tier=ClassificationTier.RULES_FILENAME,
                    checklist_key=DOC_TYPE_TO_CHECKLIST_KEY.get(doc_type),
                    entity_type=entity_type,
                )

    return None
