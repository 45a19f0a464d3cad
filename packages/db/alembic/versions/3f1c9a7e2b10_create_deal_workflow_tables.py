# This project was developed with assistance from AI tools.
"""create deal workflow tables

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-09-14 10:12:03.118204

"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "3f1c9a7e2b10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "deals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("borrower_name", sa.String(255), nullable=True),
        sa.Column("borrower_user_id", sa.String(255), nullable=True),
        sa.Column("loan_type", sa.String(100), nullable=True),
        sa.Column("loan_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("lifecycle_stage", sa.String(12), nullable=False, server_default="created"),
        sa.Column("ready_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ready_reason", sa.String(100), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_bank_id", "deals", ["bank_id"])
    op.create_index("ix_deals_borrower_user_id", "deals", ["borrower_user_id"])

    op.create_table(
        "deal_checklist_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("checklist_key", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(9), nullable=False, server_default="missing"),
        sa.Column("required_years", postgresql.JSONB(), nullable=True),
        sa.Column("satisfied_years", postgresql.JSONB(), nullable=True),
        sa.Column("received_document_id", sa.Uuid(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deal_id", "checklist_key", name="uq_checklist_deal_key"),
    )
    op.create_index("ix_deal_checklist_items_deal_id", "deal_checklist_items", ["deal_id"])

    op.create_table(
        "deal_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("original_filename", sa.String(500), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("storage_path", sa.String(1000), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("source", sa.String(11), nullable=False, server_default="banker"),
        sa.Column("uploaded_by", sa.String(255), nullable=True),
        sa.Column("text_excerpt", sa.Text(), nullable=True),
        sa.Column("processing_status", sa.String(10), nullable=False, server_default="uploaded"),
        sa.Column("doc_type", sa.String(19), nullable=True),
        sa.Column("tax_year", sa.Integer(), nullable=True),
        sa.Column("classification_confidence", sa.Float(), nullable=True),
        sa.Column("classification_tier", sa.String(16), nullable=True),
        sa.Column("checklist_key", sa.String(100), nullable=True),
        sa.Column("match_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_documents_deal_id", "deal_documents", ["deal_id"])
    op.create_index("ix_deal_documents_checklist_key", "deal_documents", ["checklist_key"])

    op.create_table(
        "deal_ledger_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=True),
        sa.Column("kind", sa.String(100), nullable=False),
        sa.Column("stage", sa.String(50), nullable=True),
        sa.Column("status", sa.String(7), nullable=False, server_default="ok"),
        sa.Column("actor_user_id", sa.String(255), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_ledger_events_deal_id", "deal_ledger_events", ["deal_id"])
    op.create_index("ix_deal_ledger_events_kind", "deal_ledger_events", ["kind"])

    op.create_table(
        "deal_financial_facts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("fact_type", sa.String(100), nullable=False),
        sa.Column("fact_key", sa.String(100), nullable=False),
        sa.Column("fact_period", sa.String(20), nullable=False, server_default=""),
        sa.Column("value_num", sa.Numeric(20, 4), nullable=True),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("owner_type", sa.String(8), nullable=False, server_default="deal"),
        sa.Column("owner_entity_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("provenance", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "deal_id",
            "fact_type",
            "fact_key",
            "fact_period",
            "owner_type",
            "owner_entity_id",
            name="uq_financial_facts_identity",
        ),
    )
    op.create_index("ix_deal_financial_facts_deal_id", "deal_financial_facts", ["deal_id"])

    op.create_table(
        "deal_committee_votes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("voter_user_id", sa.String(255), nullable=False),
        sa.Column("vote", sa.String(23), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deal_id", "voter_user_id", name="uq_committee_vote_voter"),
    )
    op.create_index("ix_deal_committee_votes_deal_id", "deal_committee_votes", ["deal_id"])

    op.create_table(
        "policy_rules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=True),
        sa.Column("program", sa.String(3), nullable=False),
        sa.Column("rule_key", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("condition_json", postgresql.JSONB(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bank_id", "program", "rule_key", name="uq_policy_rule_key"),
    )
    op.create_index("ix_policy_rules_bank_id", "policy_rules", ["bank_id"])


def downgrade() -> None:
    op.drop_table("policy_rules")
    op.drop_table("deal_committee_votes")
    op.drop_table("deal_financial_facts")
    op.drop_table("deal_ledger_events")
    op.drop_table("deal_documents")
    op.drop_table("deal_checklist_items")
    op.drop_table("deals")
