"""import pipeline and settings

Revision ID: 0005_import_pipeline_and_settings
Revises: 0004_reconciliation_tables
Create Date: 2026-02-02 09:40:00.000000

"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0005_import_pipeline_and_settings"
down_revision = "0004_reconciliation_tables"
branch_labels = None
depends_on = None

TABLES = (
    (
        "import_sessions",
        """
        CREATE TABLE IF NOT EXISTS import_sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            filename TEXT NOT NULL,
            source_system TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'Pending',
            created_by INTEGER,
            row_count INTEGER NOT NULL DEFAULT 0,
            processed_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "staging_revenue",
        """
        CREATE TABLE IF NOT EXISTS staging_revenue (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER NOT NULL,
            source_row_data TEXT NOT NULL,
            normalized_data TEXT,
            defaults_applied TEXT,
            validation_status TEXT,
            FOREIGN KEY (session_id) REFERENCES import_sessions(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "mapping_rules",
        """
        CREATE TABLE IF NOT EXISTS mapping_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            source_system TEXT NOT NULL DEFAULT '*',
            target_column TEXT NOT NULL,
            default_value TEXT,
            transformation_rule TEXT,
            priority INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "assignment_rules",
        """
        CREATE TABLE IF NOT EXISTS assignment_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            priority INTEGER NOT NULL DEFAULT 100,
            is_active INTEGER NOT NULL DEFAULT 1,
            assign_to_user_id INTEGER NOT NULL,
            amount_min_cents INTEGER,
            amount_max_cents INTEGER,
            state TEXT,
            zip_prefix TEXT,
            campaign_id TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (assign_to_user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """,
    ),
    (
        "export_templates",
        """
        CREATE TABLE IF NOT EXISTS export_templates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            mappings TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "export_logs",
        """
        CREATE TABLE IF NOT EXISTS export_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            template_id INTEGER,
            user_id INTEGER,
            file_name TEXT,
            row_count INTEGER NOT NULL DEFAULT 0,
            filters TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
)


def upgrade():
    """Create import staging, mapping and assignment rules, and journal export tables."""
    for _, statement in TABLES:
        op.execute(statement)


def downgrade():
    for table_name, _ in reversed(TABLES):
        op.execute(f"DROP TABLE IF EXISTS {table_name}")
