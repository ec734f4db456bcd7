"""reconciliation statement columns

Revision ID: 0008_reconciliation_statement_columns
Revises: 0007_donation_tracking_columns
Create Date: 2026-03-16 10:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

from compass_caging.migrations import add_column_if_missing

# revision identifiers, used by Alembic.
revision = "0008_reconciliation_statement_columns"
down_revision = "0007_donation_tracking_columns"
branch_labels = None
depends_on = None


def upgrade():
    add_column_if_missing(
        "reconciliation_periods",
        sa.Column("statement_ending_balance_cents", sa.Integer(), nullable=False, server_default="0"),
    )
    add_column_if_missing(
        "reconciliation_periods",
        sa.Column("statement_link", sa.Text(), nullable=True),
    )

    # Bank lines track what they were matched to and whether they cleared.
    for column in (
        sa.Column("matched_batch_id", sa.Integer(), nullable=True),
        sa.Column("matched_donation_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="Unmatched"),
        sa.Column("cleared", sa.Integer(), nullable=False, server_default="0"),
    ):
        add_column_if_missing("reconciliation_bank_transactions", column)


def downgrade():
    with op.batch_alter_table("reconciliation_bank_transactions") as batch_op:
        for column_name in ("cleared", "status", "matched_donation_id", "matched_batch_id"):
            batch_op.drop_column(column_name)
    with op.batch_alter_table("reconciliation_periods") as batch_op:
        batch_op.drop_column("statement_link")
        batch_op.drop_column("statement_ending_balance_cents")
