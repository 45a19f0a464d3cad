# This project was developed with assistance from AI tools.
"""Checklist rulesets by loan type.

Each ruleset lists the document categories a deal of that loan type must
collect. Keys ending in ``_<N>Y`` expect N tax years, counted back from
the most recent year that should already have been filed.
"""

import re
from dataclasses import dataclass
from datetime import date

from buddy_db.enums import DocumentType

UNIVERSAL_RULESET = "UNIVERSAL_V1"

# April 15 is the individual filing deadline; before it, last year's
# return may legitimately not exist yet.
_FILING_DEADLINE = (4, 15)

_YEARS_SUFFIX_RE = re.compile(r"_(\d+)Y$")


@dataclass(frozen=True)
class ChecklistRule:
    """One required (or optional) document category."""

    key: str
    title: str
    description: str
    required: bool = True


@dataclass(frozen=True)
class Ruleset:
    key: str
    items: tuple[ChecklistRule, ...]


_PFS = ChecklistRule(
    "PFS_CURRENT",
    "Personal Financial Statement",
    "Current personal financial statement (SBA Form 413 or bank equivalent) for each guarantor.",
)
_PERSONAL_RETURNS = ChecklistRule(
    "IRS_PERSONAL_3Y",
    "Personal tax returns (3 years)",
    "Complete federal personal returns (Form 1040) with all schedules.",
)
_BUSINESS_RETURNS = ChecklistRule(
    "IRS_BUSINESS_3Y",
    "Business tax returns (3 years)",
    "Complete federal business returns (Form 1120, 1120S or 1065).",
)
_PL_YTD = ChecklistRule(
    "FIN_STMT_PL_YTD",
    "Year-to-date profit & loss",
    "Interim income statement dated within the last 90 days.",
)
_BS_YTD = ChecklistRule(
    "FIN_STMT_BS_YTD",
    "Year-to-date balance sheet",
    "Interim balance sheet dated within the last 90 days.",
)
_BANK_STATEMENTS = ChecklistRule(
    "BANK_STMT_3M",
    "Bank statements (3 months)",
    "Most recent three months of business operating account statements.",
    required=False,
)
_RENT_ROLL = ChecklistRule(
    "RENT_ROLL",
    "Current rent roll",
    "Unit-level rent roll with tenant, lease dates and monthly rent.",
)
_T12 = ChecklistRule(
    "PROPERTY_T12",
    "Trailing 12-month operating statement",
    "Property income and expense for the most recent 12 months.",
)
_INSURANCE = ChecklistRule(
    "PROPERTY_INSURANCE",
    "Evidence of insurance",
    "Certificate of insurance for the subject property.",
    required=False,
)
_APPRAISAL = ChecklistRule(
    "APPRAISAL",
    "Appraisal",
    "Existing appraisal report, if available.",
    required=False,
)
_ENTITY_DOCS = ChecklistRule(
    "ENTITY_DOCS",
    "Entity documents",
    "Articles of incorporation or organization and the operating agreement.",
)


RULESETS: dict[str, Ruleset] = {
    UNIVERSAL_RULESET: Ruleset(
        UNIVERSAL_RULESET,
        (_PFS, _PERSONAL_RETURNS, _BUSINESS_RETURNS, _PL_YTD, _BS_YTD, _BANK_STATEMENTS),
    ),
    "CRE_OWNER_OCCUPIED": Ruleset(
        "CRE_OWNER_OCCUPIED",
        (_PFS, _PERSONAL_RETURNS, _BUSINESS_RETURNS, _PL_YTD, _BS_YTD, _INSURANCE, _APPRAISAL),
    ),
    "CRE_INVESTOR": Ruleset(
        "CRE_INVESTOR",
        (_PFS, _PERSONAL_RETURNS, _BUSINESS_RETURNS, _RENT_ROLL, _T12, _INSURANCE, _APPRAISAL),
    ),
    "SBA_7A": Ruleset(
        "SBA_7A",
        (_PFS, _PERSONAL_RETURNS, _BUSINESS_RETURNS, _PL_YTD, _BS_YTD, _BANK_STATEMENTS, _ENTITY_DOCS),
    ),
}

# Raw loan-type spellings seen at intake -> ruleset key
_LOAN_TYPE_ALIASES: dict[str, str] = {
    "CRE": "CRE_OWNER_OCCUPIED",
    "OWNER_OCCUPIED": "CRE_OWNER_OCCUPIED",
    "CRE_OWNER_OCCUPIED": "CRE_OWNER_OCCUPIED",
    "CRE_OWNER_OCCUPIED_WITH_RENT": "CRE_OWNER_OCCUPIED",
    "INVESTOR": "CRE_INVESTOR",
    "CRE_INVESTOR": "CRE_INVESTOR",
    "SBA": "SBA_7A",
    "SBA7A": "SBA_7A",
    "SBA_7A": "SBA_7A",
    "SBA_7_A": "SBA_7A",
    "7A": "SBA_7A",
}

# Classified doc type -> checklist key it satisfies
DOC_TYPE_TO_CHECKLIST_KEY: dict[DocumentType, str] = {
    DocumentType.IRS_PERSONAL: "IRS_PERSONAL_3Y",
    DocumentType.IRS_BUSINESS: "IRS_BUSINESS_3Y",
    DocumentType.PFS: "PFS_CURRENT",
    DocumentType.INCOME_STATEMENT: "FIN_STMT_PL_YTD",
    DocumentType.BALANCE_SHEET: "FIN_STMT_BS_YTD",
    DocumentType.BANK_STATEMENT: "BANK_STMT_3M",
    DocumentType.RENT_ROLL: "RENT_ROLL",
    DocumentType.T12: "PROPERTY_T12",
    DocumentType.INSURANCE: "PROPERTY_INSURANCE",
    DocumentType.APPRAISAL: "APPRAISAL",
    DocumentType.ARTICLES: "ENTITY_DOCS",
    DocumentType.OPERATING_AGREEMENT: "ENTITY_DOCS",
}


def normalize_loan_type(raw: str | None) -> str:
    """Map a free-form loan type to a ruleset key; unknown -> universal."""
    if not raw:
        return UNIVERSAL_RULESET
    key = re.sub(r"[^A-Z0-9]+", "_", raw.strip().upper()).strip("_")
    return _LOAN_TYPE_ALIASES.get(key, UNIVERSAL_RULESET)


def get_ruleset_for_loan_type(raw: str | None) -> Ruleset:
    return RULESETS[normalize_loan_type(raw)]


def last_filed_tax_year(today: date | None = None) -> int:
    """Most recent tax year whose return should exist on ``today``."""
    today = today or date.today()
    deadline = date(today.year, *_FILING_DEADLINE)
    return today.year - 1 if today > deadline else today.year - 2


def default_required_years(checklist_key: str, today: date | None = None) -> list[int] | None:
    """Tax years a ``_<N>Y`` key expects, oldest first; None for other keys."""
    m = _YEARS_SUFFIX_RE.search(checklist_key)
    if not m:
        return None
    count = int(m.group(1))
    last = last_filed_tax_year(today)
    return list(range(last - count + 1, last + 1))
