# This project was developed with assistance from AI tools.
"""
Domain enums for the deal workflow.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas (api package).
"""

import enum


class DealLifecycleStage(str, enum.Enum):
    CREATED = "created"
    INTAKE = "intake"
    COLLECTING = "collecting"
    UNDERWRITING = "underwriting"
    READY = "ready"

    @classmethod
    def valid_transitions(cls) -> dict["DealLifecycleStage", frozenset["DealLifecycleStage"]]:
        """Allowed stage transitions. Strictly linear: no skips, no reverse moves."""
        return {
            cls.CREATED: frozenset({cls.INTAKE}),
            cls.INTAKE: frozenset({cls.COLLECTING}),
            cls.COLLECTING: frozenset({cls.UNDERWRITING}),
            cls.UNDERWRITING: frozenset({cls.READY}),
            cls.READY: frozenset(),
        }

    @classmethod
    def terminal_stages(cls) -> frozenset["DealLifecycleStage"]:
        return frozenset({cls.READY})


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    BANKER = "banker"
    UNDERWRITER = "underwriter"
    EXAMINER = "examiner"
    BORROWER = "borrower"


class ChecklistStatus(str, enum.Enum):
    MISSING = "missing"
    RECEIVED = "received"
    SATISFIED = "satisfied"


class DocumentSource(str, enum.Enum):
    BANKER = "banker"
    BORROWER = "borrower"
    PUBLIC_LINK = "public_link"
    SYSTEM = "system"


class DocumentProcessingStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    CLASSIFIED = "classified"
    FAILED = "failed"


class DocumentType(str, enum.Enum):
    IRS_PERSONAL = "IRS_PERSONAL"
    IRS_BUSINESS = "IRS_BUSINESS"
    K1 = "K1"
    W2 = "W2"
    FORM_1099 = "1099"
    PFS = "PFS"
    INCOME_STATEMENT = "INCOME_STATEMENT"
    BALANCE_SHEET = "BALANCE_SHEET"
    RENT_ROLL = "RENT_ROLL"
    T12 = "T12"
    BANK_STATEMENT = "BANK_STATEMENT"
    ARTICLES = "ARTICLES"
    OPERATING_AGREEMENT = "OPERATING_AGREEMENT"
    INSURANCE = "INSURANCE"
    APPRAISAL = "APPRAISAL"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    SCHEDULE_OF_RE = "SCHEDULE_OF_RE"
    DRIVERS_LICENSE = "DRIVERS_LICENSE"
    BUSINESS_LICENSE = "BUSINESS_LICENSE"
    OTHER = "OTHER"


class ClassificationTier(str, enum.Enum):
    MANUAL = "manual"
    RULES_FORM = "rules_form"
    RULES_KEYWORD = "rules_keyword"
    RULES_FILENAME = "rules_filename"
    FILENAME_MATCHER = "filename_matcher"
    AI = "ai"
    NONE = "none"


class LedgerStatus(str, enum.Enum):
    OK = "ok"
    PENDING = "pending"
    BLOCKED = "blocked"
    ERROR = "error"


class FactOwnerType(str, enum.Enum):
    DEAL = "deal"
    BUSINESS = "business"
    PERSON = "person"


class CommitteeVoteType(str, enum.Enum):
    APPROVE = "approve"
    APPROVE_WITH_CONDITIONS = "approve_with_conditions"
    DECLINE = "decline"


class CommitteeOutcome(str, enum.Enum):
    PENDING = "pending"
    APPROVE = "approve"
    APPROVE_WITH_CONDITIONS = "approve_with_conditions"
    DECLINE = "decline"


class DealMode(str, enum.Enum):
    """Display mode, always derived -- never persisted."""

    INITIALIZING = "initializing"
    PROCESSING = "processing"
    NEEDS_INPUT = "needs_input"
    READY = "ready"
    BLOCKED = "blocked"


class PolicyProgram(str, enum.Enum):
    SBA_7A = "7a"
    SBA_504 = "504"
