# This project was developed with assistance from AI tools.
"""Filename -> checklist key matcher.

Borrowers name files however they like ("PTR 2023 final.pdf",
"1120S_Business_2023.pdf"). Ordered regex rules run against a normalized
filename; the first hit wins. A four-digit year in the name bumps
confidence slightly and is reported back as the document year.
"""

import re
from dataclasses import dataclass, field

MATCH_THRESHOLD = 0.6

_YEAR_BOOST = 0.05
_MAX_CONFIDENCE = 0.99

_EXTENSION_RE = re.compile(r"\.[a-z0-9]{1,5}$")
_YEAR_RE = re.compile(r"(?<!\d)(20\d{2})(?!\d)")


@dataclass
class FilenameMatch:
    """Result of matching one filename."""

    matched_key: str | None
    confidence: float
    reason: str
    years_found: list[int] = field(default_factory=list)
    doc_year: int | None = None


# (checklist key, pattern, base confidence, label). Order matters.
_RULES: list[tuple[str, re.Pattern, float, str]] = [
    ("IRS_BUSINESS_3Y", re.compile(r"\b(1120s?|1065)\b"), 0.85, "business return form number"),
    ("IRS_BUSINESS_3Y", re.compile(r"\bbtr\b"), 0.85, "BTR abbreviation"),
    ("IRS_BUSINESS_3Y", re.compile(r"business tax return"), 0.75, "business tax return phrase"),
    ("IRS_PERSONAL_3Y", re.compile(r"\b1040\b"), 0.85, "Form 1040"),
    ("IRS_PERSONAL_3Y", re.compile(r"\bptr\b"), 0.85, "PTR abbreviation"),
    ("IRS_PERSONAL_3Y", re.compile(r"personal tax return"), 0.75, "personal tax return phrase"),
    ("PFS_CURRENT", re.compile(r"\bpfs\b"), 0.85, "PFS abbreviation"),
    ("PFS_CURRENT", re.compile(r"personal financial statement"), 0.85, "personal financial statement phrase"),
    ("PFS_CURRENT", re.compile(r"sba form 413|\b413\b"), 0.8, "SBA Form 413"),
    (
        "FIN_STMT_PL_YTD",
        re.compile(r"p ?& ?l|profit (and|&) loss|income statement"),
        0.8,
        "profit & loss statement",
    ),
    ("FIN_STMT_BS_YTD", re.compile(r"balance sheet"), 0.8, "balance sheet"),
    ("RENT_ROLL", re.compile(r"rent ?roll"), 0.85, "rent roll"),
    ("PROPERTY_T12", re.compile(r"\bt-?12\b|trailing 12|operating statement"), 0.8, "T-12 operating statement"),
    ("BANK_STMT_3M", re.compile(r"bank statement"), 0.7, "bank statement"),
]


def _normalize(filename: str) -> str:
    name = _EXTENSION_RE.sub("", filename.strip().lower())
    name = re.sub(r"[_.]+", " ", name)
    return re.sub(r"\s+", " ", name).strip()


def match_checklist_key_from_filename(filename: str | None) -> FilenameMatch:
    """Guess the checklist key a file belongs to from its name alone."""
    if not filename or not filename.strip():
        return FilenameMatch(matched_key=None, confidence=0.0, reason="empty filename")

    years = sorted({int(y) for y in _YEAR_RE.findall(filename)})
    doc_year = max(years) if years else None
    normalized = _normalize(filename)

    for key, pattern, base, label in _RULES:
        if pattern.search(normalized):
            confidence = base
            reason = f"filename matched {label}"
            if doc_year is not None:
                confidence = min(confidence + _YEAR_BOOST, _MAX_CONFIDENCE)
                reason += f" (year {doc_year})"
            return FilenameMatch(
                matched_key=key,
                confidence=round(confidence, 2),
                reason=reason,
                years_found=years,
                doc_year=doc_year,
            )

    return FilenameMatch(
        matched_key=None,
        confidence=0.0,
        reason="no filename pattern matched",
        years_found=years,
        doc_year=doc_year,
    )
