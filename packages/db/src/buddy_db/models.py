# This project was developed with assistance from AI tools.
"""
Buddy the Underwriter -- domain models

Deal workflow models covering deals, checklist items, uploaded documents,
the append-only deal ledger, normalized financial facts, committee votes,
and policy rules.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    ChecklistStatus,
    ClassificationTier,
    CommitteeVoteType,
    DealLifecycleStage,
    DocumentProcessingStatus,
    DocumentSource,
    DocumentType,
    FactOwnerType,
    LedgerStatus,
    PolicyProgram,
)
from .ids import uuid7


def _enum(enum_cls, name: str) -> Enum:
    """Non-native enum column that stores member values, not names."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
    )


class Deal(Base):
    """Loan origination case owned by a bank tenant."""

    __tablename__ = "deals"

    id = Column(Uuid, primary_key=True, default=uuid7)
    bank_id = Column(String(64), nullable=False, index=True)
    borrower_name = Column(String(255), nullable=True)
    borrower_user_id = Column(String(255), nullable=True, index=True)
    loan_type = Column(String(100), nullable=True)
    loan_amount = Column(Numeric(14, 2), nullable=True)
    lifecycle_stage = Column(
        _enum(DealLifecycleStage, "deal_lifecycle_stage"),
        nullable=False,
        default=DealLifecycleStage.CREATED,
    )
    ready_at = Column(DateTime(timezone=True), nullable=True)
    ready_reason = Column(String(100), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    checklist_items = relationship(
        "ChecklistItem", back_populates="deal", cascade="all, delete-orphan",
    )
    documents = relationship(
        "DealDocument", back_populates="deal", cascade="all, delete-orphan",
    )
    financial_facts = relationship(
        "FinancialFact", back_populates="deal", cascade="all, delete-orphan",
    )
    committee_votes = relationship(
        "CommitteeVote", back_populates="deal", cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Deal(id={self.id}, stage='{self.lifecycle_stage}')>"


class ChecklistItem(Base):
    """Required or optional document category tracked per deal."""

    __tablename__ = "deal_checklist_items"
    __table_args__ = (
        UniqueConstraint("deal_id", "checklist_key", name="uq_checklist_deal_key"),
    )

    id = Column(Uuid, primary_key=True, default=uuid7)
    deal_id = Column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    bank_id = Column(String(64), nullable=False)
    checklist_key = Column(String(100), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    required = Column(Boolean, nullable=False, default=True)
    status = Column(
        _enum(ChecklistStatus, "checklist_status"),
        nullable=False,
        default=ChecklistStatus.MISSING,
    )
    required_years = Column(JSONB, nullable=True)
    satisfied_years = Column(JSONB, nullable=True)
    received_document_id = Column(Uuid, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="checklist_items")

    def __repr__(self):
        return f"<ChecklistItem(key='{self.checklist_key}', status='{self.status}')>"


class DealDocument(Base):
    """Uploaded file metadata; classified asynchronously."""

    __tablename__ = "deal_documents"

    id = Column(Uuid, primary_key=True, default=uuid7)
    deal_id = Column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    bank_id = Column(String(64), nullable=False)
    original_filename = Column(String(500), nullable=False)
    mime_type = Column(String(255), nullable=True)
    storage_path = Column(String(1000), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    source = Column(
        _enum(DocumentSource, "document_source"),
        nullable=False,
        default=DocumentSource.BANKER,
    )
    uploaded_by = Column(String(255), nullable=True)
    text_excerpt = Column(Text, nullable=True)
    processing_status = Column(
        _enum(DocumentProcessingStatus, "document_processing_status"),
        nullable=False,
        default=DocumentProcessingStatus.UPLOADED,
    )
    doc_type = Column(_enum(DocumentType, "document_type"), nullable=True)
    tax_year = Column(Integer, nullable=True)
    classification_confidence = Column(Float, nullable=True)
    classification_tier = Column(_enum(ClassificationTier, "classification_tier"), nullable=True)
    checklist_key = Column(String(100), nullable=True, index=True)
    match_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="documents")

    def __repr__(self):
        return f"<DealDocument(id={self.id}, filename='{self.original_filename}')>"


class LedgerEvent(Base):
    """Append-only deal timeline. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "deal_ledger_events"

    id = Column(Uuid, primary_key=True, default=uuid7)
    deal_id = Column(Uuid, nullable=False, index=True)
    bank_id = Column(String(64), nullable=True)
    kind = Column(String(100), nullable=False, index=True)
    stage = Column(String(50), nullable=True)
    status = Column(
        _enum(LedgerStatus, "ledger_status"),
        nullable=False,
        default=LedgerStatus.OK,
    )
    actor_user_id = Column(String(255), nullable=True)
    payload = Column(JSONB, nullable=True)
    prev_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LedgerEvent(id={self.id}, kind='{self.kind}')>"


class FinancialFact(Base):
    """Normalized fact extracted from documents or spreads."""

    __tablename__ = "deal_financial_facts"
    __table_args__ = (
        UniqueConstraint(
            "deal_id",
            "fact_type",
            "fact_key",
            "fact_period",
            "owner_type",
            "owner_entity_id",
            name="uq_financial_facts_identity",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid7)
    deal_id = Column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    bank_id = Column(String(64), nullable=False)
    fact_type = Column(String(100), nullable=False)
    fact_key = Column(String(100), nullable=False)
    fact_period = Column(String(20), nullable=False, default="")
    value_num = Column(Numeric(20, 4), nullable=True)
    value_text = Column(Text, nullable=True)
    owner_type = Column(
        _enum(FactOwnerType, "fact_owner_type"),
        nullable=False,
        default=FactOwnerType.DEAL,
    )
    owner_entity_id = Column(String(64), nullable=False, default="")
    provenance = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="financial_facts")

    def __repr__(self):
        return f"<FinancialFact(type='{self.fact_type}', key='{self.fact_key}')>"


class CommitteeVote(Base):
    """A credit committee member's vote on a deal. One row per voter."""

    __tablename__ = "deal_committee_votes"
    __table_args__ = (
        UniqueConstraint("deal_id", "voter_user_id", name="uq_committee_vote_voter"),
    )

    id = Column(Uuid, primary_key=True, default=uuid7)
    deal_id = Column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    bank_id = Column(String(64), nullable=False)
    voter_user_id = Column(String(255), nullable=False)
    vote = Column(_enum(CommitteeVoteType, "committee_vote_type"), nullable=False)
    rationale = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="committee_votes")

    def __repr__(self):
        return f"<CommitteeVote(deal_id={self.deal_id}, vote='{self.vote}')>"


class PolicyRule(Base):
    """Eligibility rule evaluated against deal facts. bank_id NULL = global."""

    __tablename__ = "policy_rules"
    __table_args__ = (
        UniqueConstraint("bank_id", "program", "rule_key", name="uq_policy_rule_key"),
    )

    id = Column(Uuid, primary_key=True, default=uuid7)
    bank_id = Column(String(64), nullable=True, index=True)
    program = Column(_enum(PolicyProgram, "policy_program"), nullable=False)
    rule_key = Column(String(100), nullable=False)
    title = Column(String(255), nullable=False)
    condition_json = Column(JSONB, nullable=False)
    explanation = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PolicyRule(program='{self.program}', key='{self.rule_key}')>"
