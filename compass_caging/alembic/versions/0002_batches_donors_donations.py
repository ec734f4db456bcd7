"""batches, donors and donations

Revision ID: 0002_batches_donors_donations
Revises: 0001_core_tables
Create Date: 2026-02-02 09:10:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_batches_donors_donations"
down_revision = "0001_core_tables"
branch_labels = None
depends_on = None

TABLES = (
    (
        "batches",
        """
        CREATE TABLE IF NOT EXISTS batches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            batch_code TEXT NOT NULL,
            client_id INTEGER NOT NULL,
            account_id INTEGER,
            entry_mode TEXT NOT NULL DEFAULT 'Manual',
            payment_category TEXT NOT NULL DEFAULT 'Donations',
            zeros_type TEXT,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'Open'
                CHECK (status IN ('Open', 'Submitted', 'Closed', 'Reconciled')),
            date TEXT NOT NULL,
            created_by INTEGER,
            default_gift_method TEXT,
            default_gift_platform TEXT,
            default_transaction_type TEXT,
            default_gift_year INTEGER,
            default_gift_quarter TEXT,
            default_gift_type TEXT,
            import_session_id INTEGER,
            submitted_at TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (client_id) REFERENCES clients(id),
            FOREIGN KEY (account_id) REFERENCES client_bank_accounts(id),
            FOREIGN KEY (created_by) REFERENCES users(id)
        )
        """,
    ),
    (
        "batch_documents",
        """
        CREATE TABLE IF NOT EXISTS batch_documents (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            batch_id INTEGER NOT NULL,
            document_type TEXT NOT NULL,
            file_name TEXT NOT NULL,
            content_type TEXT,
            content BLOB,
            size_bytes INTEGER NOT NULL DEFAULT 0,
            uploaded_by INTEGER,
            uploaded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (batch_id) REFERENCES batches(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "donors",
        """
        CREATE TABLE IF NOT EXISTS donors (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT,
            last_name TEXT,
            organization_name TEXT,
            email TEXT,
            phone TEXT,
            address TEXT,
            city TEXT,
            state TEXT,
            zip TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "donations",
        """
        CREATE TABLE IF NOT EXISTS donations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL,
            batch_id INTEGER,
            donor_id INTEGER,
            gift_amount_cents INTEGER NOT NULL,
            gift_fee_cents INTEGER NOT NULL DEFAULT 0,
            gift_pledge_amount_cents INTEGER NOT NULL DEFAULT 0,
            secondary_id TEXT,
            check_number TEXT,
            scan_string TEXT,
            transaction_type TEXT,
            gift_method TEXT,
            gift_platform TEXT,
            gift_date TEXT NOT NULL,
            batch_date TEXT,
            gift_type TEXT,
            gift_year INTEGER,
            gift_quarter TEXT,
            receipt_year TEXT,
            receipt_quarter TEXT,
            donor_prefix TEXT,
            donor_first_name TEXT,
            donor_middle_name TEXT,
            donor_last_name TEXT,
            donor_suffix TEXT,
            donor_email TEXT,
            donor_phone TEXT,
            donor_address TEXT,
            donor_city TEXT,
            donor_state TEXT,
            donor_zip TEXT,
            donor_employer TEXT,
            donor_occupation TEXT,
            organization_name TEXT,
            gift_custodian TEXT,
            gift_conduit TEXT,
            is_inactive INTEGER NOT NULL DEFAULT 0,
            comment TEXT,
            campaign_id TEXT,
            resolution_status TEXT NOT NULL DEFAULT 'Resolved',
            assigned_to_user_id INTEGER,
            is_flagged INTEGER NOT NULL DEFAULT 0,
            created_by INTEGER,
            last_modified_by INTEGER,
            last_modified_at TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (client_id) REFERENCES clients(id),
            FOREIGN KEY (batch_id) REFERENCES batches(id) ON DELETE CASCADE,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE SET NULL,
            FOREIGN KEY (assigned_to_user_id) REFERENCES users(id) ON DELETE SET NULL
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
