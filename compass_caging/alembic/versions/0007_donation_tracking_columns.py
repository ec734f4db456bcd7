"""donation tracking columns

Revision ID: 0007_donation_tracking_columns
Revises: 0006_policies_and_maintenance
Create Date: 2026-03-09 14:05:00.000000

"""

import sqlalchemy as sa
from alembic import op

from compass_caging.migrations import add_column_if_missing

# revision identifiers, used by Alembic.
revision = "0007_donation_tracking_columns"
down_revision = "0006_policies_and_maintenance"
branch_labels = None
depends_on = None

DONATION_COLUMNS = (
    "thank_you_sent_at",
    "tax_receipt_sent_at",
    "routing_number",
    "account_number",
    "check_sequence_number",
    "aux_on_us",
    "epc",
)


def upgrade():
    """
    Add acknowledgement timestamps and MICR fields to donations, alerts to
    donors and the cleared flag to batches.

    Columns that a database already has are skipped.
    """
    for column_name in DONATION_COLUMNS:
        add_column_if_missing("donations", sa.Column(column_name, sa.Text(), nullable=True))

    add_column_if_missing(
        "donors",
        sa.Column("has_alert", sa.Integer(), nullable=False, server_default="0"),
    )
    add_column_if_missing("donors", sa.Column("alert_message", sa.Text(), nullable=True))
    add_column_if_missing(
        "batches",
        sa.Column("cleared", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade():
    with op.batch_alter_table("batches") as batch_op:
        batch_op.drop_column("cleared")
    with op.batch_alter_table("donors") as batch_op:
        batch_op.drop_column("alert_message")
        batch_op.drop_column("has_alert")
    with op.batch_alter_table("donations") as batch_op:
        for column_name in reversed(DONATION_COLUMNS):
            batch_op.drop_column(column_name)
