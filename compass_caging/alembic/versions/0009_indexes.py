"""indexes

Revision ID: 0009_indexes
Revises: 0008_reconciliation_statement_columns
Create Date: 2026-03-16 10:45:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0009_indexes"
down_revision = "0008_reconciliation_statement_columns"
branch_labels = None
depends_on = None

INDEXES = (
    ("idx_donations_batch", "donations (batch_id)"),
    ("idx_donations_client", "donations (client_id)"),
    ("idx_donations_donor", "donations (donor_id)"),
    ("idx_donations_resolution", "donations (resolution_status)"),
    ("idx_batches_client_date", "batches (client_id, date)"),
    ("idx_donors_email", "donors (email)"),
    ("idx_donors_name", "donors (last_name, first_name)"),
    ("idx_staging_session", "staging_revenue (session_id)"),
    ("idx_audit_created", "audit_logs (created_at)"),
)


def upgrade():
    for index_name, target in INDEXES:
        op.execute(f"CREATE INDEX IF NOT EXISTS {index_name} ON {target}")


def downgrade():
    for index_name, _ in reversed(INDEXES):
        op.execute(f"DROP INDEX IF EXISTS {index_name}")
