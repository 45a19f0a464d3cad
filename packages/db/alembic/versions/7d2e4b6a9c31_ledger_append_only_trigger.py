# This project was developed with assistance from AI tools.
"""append-only trigger on deal_ledger_events

Revision ID: 7d2e4b6a9c31
Revises: 3f1c9a7e2b10
Create Date: 2026-09-14
"""

from alembic import op

revision = "7d2e4b6a9c31"
down_revision = "3f1c9a7e2b10"
branch_labels = None
depends_on = None

TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION deal_ledger_prevent_mutation()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'deal_ledger_events is append-only: % denied for row %', TG_OP, OLD.id;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

TRIGGER_UPDATE = """
CREATE TRIGGER deal_ledger_no_update
    BEFORE UPDATE ON deal_ledger_events
    FOR EACH ROW
    EXECUTE FUNCTION deal_ledger_prevent_mutation();
"""

TRIGGER_DELETE = """
CREATE TRIGGER deal_ledger_no_delete
    BEFORE DELETE ON deal_ledger_events
    FOR EACH ROW
    EXECUTE FUNCTION deal_ledger_prevent_mutation();
"""


def upgrade() -> None:
    op.execute(TRIGGER_FUNCTION)
    op.execute(TRIGGER_UPDATE)
    op.execute(TRIGGER_DELETE)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS deal_ledger_no_delete ON deal_ledger_events")
    op.execute("DROP TRIGGER IF EXISTS deal_ledger_no_update ON deal_ledger_events")
    op.execute("DROP FUNCTION IF EXISTS deal_ledger_prevent_mutation()")
