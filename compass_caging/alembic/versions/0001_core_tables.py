"""core tables

Revision ID: 0001_core_tables
Revises:
Create Date: 2026-02-02 09:00:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_core_tables"
down_revision = None
branch_labels = None
depends_on = None

TABLES = (
    (
        "clients",
        """
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_code TEXT NOT NULL UNIQUE,
            client_name TEXT NOT NULL,
            client_type TEXT,
            logo_url TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "client_bank_accounts",
        """
        CREATE TABLE IF NOT EXISTS client_bank_accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            client_id INTEGER NOT NULL,
            account_name TEXT NOT NULL,
            account_type TEXT NOT NULL DEFAULT 'Operating',
            bank_name TEXT,
            account_last4 TEXT,
            routing_last4 TEXT,
            current_balance_cents INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (client_id) REFERENCES clients(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "users",
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            email TEXT,
            full_name TEXT,
            initials TEXT,
            password_hash TEXT,
            role TEXT NOT NULL DEFAULT 'Clerk' CHECK (role IN ('Admin', 'Clerk', 'ClientUser')),
            is_active INTEGER NOT NULL DEFAULT 1,
            last_login_at TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "user_clients",
        """
        CREATE TABLE IF NOT EXISTS user_clients (
            user_id INTEGER NOT NULL,
            client_id INTEGER NOT NULL,
            PRIMARY KEY (user_id, client_id),
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY (client_id) REFERENCES clients(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "audit_logs",
        """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            entity_type TEXT,
            entity_id TEXT,
            details TEXT,
            ip_address TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
)


def upgrade():
    """Create clients, their bank accounts, users and the audit log."""
    for _, statement in TABLES:
        op.execute(statement)


def downgrade():
    for table_name, _ in reversed(TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table_name}")
