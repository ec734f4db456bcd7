"""reconciliation tables

Revision ID: 0004_reconciliation_tables
Revises: 0003_donor_relationship_tables
Create Date: 2026-02-02 09:30:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0004_reconciliation_tables"
down_revision = "0003_donor_relationship_tables"
branch_labels = None
depends_on = None

TABLES = (
    (
        "reconciliation_periods",
        """
        CREATE TABLE IF NOT EXISTS reconciliation_periods (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL,
            period_start_date TEXT NOT NULL,
            period_end_date TEXT NOT NULL,
            scheduled_transfer_date TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'Open' CHECK (
                status IN (
                    'Open',
                    'Pending Reconciliation',
                    'Reconciled',
                    'Scheduled',
                    'Transferred',
                    'Exception'
                )
            ),
            total_period_amount_cents INTEGER NOT NULL DEFAULT 0,
            notes TEXT,
            bank_balance_verified INTEGER NOT NULL DEFAULT 0,
            bank_statement_date TEXT,
            actual_transfer_date TEXT,
            created_by INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (client_id, period_start_date, period_end_date),
            FOREIGN KEY (client_id) REFERENCES clients(id)
        )
        """,
    ),
    (
        "reconciliation_batch_details",
        """
        CREATE TABLE IF NOT EXISTS reconciliation_batch_details (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            period_id INTEGER NOT NULL UNIQUE,
            num_checks INTEGER NOT NULL DEFAULT 0,
            num_cash INTEGER NOT NULL DEFAULT 0,
            num_cc_stripe INTEGER NOT NULL DEFAULT 0,
            amount_checks_cents INTEGER NOT NULL DEFAULT 0,
            amount_cash_cents INTEGER NOT NULL DEFAULT 0,
            amount_cc_stripe_cents INTEGER NOT NULL DEFAULT 0,
            amount_stripe_fees_cents INTEGER NOT NULL DEFAULT 0,
            num_check_chargebacks INTEGER NOT NULL DEFAULT 0,
            amount_check_chargebacks_cents INTEGER NOT NULL DEFAULT 0,
            amount_cc_stripe_chargebacks_cents INTEGER NOT NULL DEFAULT 0,
            num_donor_incoming INTEGER NOT NULL DEFAULT 0,
            amount_donor_incoming_cents INTEGER NOT NULL DEFAULT 0,
            amount_donor_net_cents INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (period_id) REFERENCES reconciliation_periods(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "reconciliation_period_batches",
        """
        CREATE TABLE IF NOT EXISTS reconciliation_period_batches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            period_id INTEGER NOT NULL,
            batch_id INTEGER NOT NULL UNIQUE,
            added_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (period_id) REFERENCES reconciliation_periods(id) ON DELETE CASCADE,
            FOREIGN KEY (batch_id) REFERENCES batches(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "reconciliation_bank_transactions",
        """
        CREATE TABLE IF NOT EXISTS reconciliation_bank_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            period_id INTEGER,
            client_id INTEGER NOT NULL,
            transaction_date TEXT NOT NULL,
            transaction_type TEXT NOT NULL,
            amount_in_cents INTEGER NOT NULL DEFAULT 0,
            amount_out_cents INTEGER NOT NULL DEFAULT 0,
            description TEXT,
            reference_number TEXT,
            matched INTEGER NOT NULL DEFAULT 0,
            statement_imported INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (period_id) REFERENCES reconciliation_periods(id) ON DELETE CASCADE,
            FOREIGN KEY (client_id) REFERENCES clients(id)
        )
        """,
    ),
    (
        "reconciliation_exceptions",
        """
        CREATE TABLE IF NOT EXISTS reconciliation_exceptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            period_id INTEGER NOT NULL,
            exception_type TEXT NOT NULL,
            expected_amount_cents INTEGER,
            actual_amount_cents INTEGER,
            variance_amount_cents INTEGER,
            description TEXT NOT NULL,
            resolution_notes TEXT,
            status TEXT NOT NULL DEFAULT 'Open',
            raised_by INTEGER,
            resolved_by INTEGER,
            raised_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            resolved_at TEXT,
            FOREIGN KEY (period_id) REFERENCES reconciliation_periods(id) ON DELETE CASCADE
        )
        """,
    ),
)


def upgrade():
    for _, statement in TABLES:
        op.execute(statement)


def downgrade():
    for table_name, _ in reversed(TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table_name}")
