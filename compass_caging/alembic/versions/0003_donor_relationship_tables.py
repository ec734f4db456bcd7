"""donor relationship tables

Revision ID: 0003_donor_relationship_tables
Revises: 0002_batches_donors_donations
Create Date: 2026-02-02 09:20:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0003_donor_relationship_tables"
down_revision = "0002_batches_donors_donations"
branch_labels = None
depends_on = None

TABLES = (
    (
        "donor_notes",
        """
        CREATE TABLE IF NOT EXISTS donor_notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            donor_id INTEGER NOT NULL,
            author_name TEXT,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "donor_tasks",
        """
        CREATE TABLE IF NOT EXISTS donor_tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            donor_id INTEGER NOT NULL,
            description TEXT NOT NULL,
            assigned_to INTEGER,
            due_date TEXT,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            created_by INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE,
            FOREIGN KEY (assigned_to) REFERENCES users(id) ON DELETE SET NULL
        )
        """,
    ),
    (
        "pledges",
        """
        CREATE TABLE IF NOT EXISTS pledges (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            donor_id INTEGER NOT NULL,
            campaign_id TEXT,
            amount_cents INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "donor_files",
        """
        CREATE TABLE IF NOT EXISTS donor_files (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            donor_id INTEGER NOT NULL,
            file_name TEXT NOT NULL,
            content_type TEXT,
            content BLOB,
            size_bytes INTEGER NOT NULL DEFAULT 0,
            uploaded_by INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "donor_subscriptions",
        """
        CREATE TABLE IF NOT EXISTS donor_subscriptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            donor_id INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (user_id, donor_id),
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "donation_resolution_candidates",
        """
        CREATE TABLE IF NOT EXISTS donation_resolution_candidates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            donation_id INTEGER NOT NULL,
            donor_id INTEGER NOT NULL,
            score REAL NOT NULL DEFAULT 0,
            reason TEXT,
            FOREIGN KEY (donation_id) REFERENCES donations(id) ON DELETE CASCADE,
            FOREIGN KEY (donor_id) REFERENCES donors(id) ON DELETE CASCADE
        )
        """,
    ),
)


def upgrade():
    """Create donor notes, tasks, pledges, files, subscriptions and resolution candidates."""
    for _, statement in TABLES:
        op.execute(statement)


def downgrade():
    for table_name, _ in reversed(TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table_name}")
