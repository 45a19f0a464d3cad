# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, DatabaseService, SessionLocal, get_db, get_db_service
from .enums import (
    ChecklistStatus,
    ClassificationTier,
    CommitteeOutcome,
    CommitteeVoteType,
    DealLifecycleStage,
    DealMode,
    DocumentProcessingStatus,
    DocumentSource,
    DocumentType,
    FactOwnerType,
    LedgerStatus,
    PolicyProgram,
    UserRole,
)
from .ids import uuid7
from .models import (
    ChecklistItem,
    CommitteeVote,
    Deal,
    DealDocument,
    FinancialFact,
    LedgerEvent,
    PolicyRule,
)

__all__ = [
    "Base",
    "DatabaseService",
    "SessionLocal",
    "get_db",
    "get_db_service",
    "uuid7",
    "__version__",
    # Enums
    "ChecklistStatus",
    "ClassificationTier",
    "CommitteeOutcome",
    "CommitteeVoteType",
    "DealLifecycleStage",
    "DealMode",
    "DocumentProcessingStatus",
    "DocumentSource",
    "DocumentType",
    "FactOwnerType",
    "LedgerStatus",
    "PolicyProgram",
    "UserRole",
    # Models
    "ChecklistItem",
    "CommitteeVote",
    "Deal",
    "DealDocument",
    "FinancialFact",
    "LedgerEvent",
    "PolicyRule",
]
