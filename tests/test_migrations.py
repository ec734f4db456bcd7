from __future__ import annotations

import sqlite3

from alembic import command

from compass_caging import CagingStore
from compass_caging.migrations import alembic_config, current_revision, ordered_revisions


def _all_revisions(db_path) -> list[str]:  # type: ignore[no-untyped-def]
    return [revision for revision, _ in ordered_revisions(alembic_config(db_path))]


def test_revisions_form_a_single_ordered_chain(tmp_path) -> None:  # type: ignore[no-untyped-def]
    revisions = ordered_revisions(alembic_config(tmp_path / "chain_test.db"))

    assert [revision for revision, _ in revisions] == [
        "0001_core_tables",
        "0002_batches_donors_donations",
        "0003_donor_relationship_tables",
        "0004_reconciliation_tables",
        "0005_import_pipeline_and_settings",
        "0006_policies_and_maintenance",
        "0007_donation_tracking_columns",
        "0008_reconciliation_statement_columns",
        "0009_indexes",
    ]
    assert revisions[0][1] == "core tables"


def test_init_db_upgrades_to_head_once(tmp_path) -> None:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "migrations_test.db"
    store = CagingStore(db_path)
    revisions = _all_revisions(db_path)

    assert all(not row["applied"] for row in store.migration_status())

    first = store.init_db()
    assert first["status"] == "applied"
    assert first["applied"] == revisions
    assert current_revision(db_path) == revisions[-1]

    second = store.init_db()
    assert second == {"status": "no-op", "applied": [], "pending": []}

    status = store.migration_status()
    assert [row["revision"] for row in status] == revisions
    assert all(row["applied"] for row in status)
    assert [row["revision"] for row in status if row["current"]] == [revisions[-1]]


def test_dry_run_renders_sql_without_writing(tmp_path) -> None:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "dry_run_test.db"
    store = CagingStore(db_path)

    preview = store.apply_migrations(dry_run=True)

    assert preview["status"] == "pending"
    assert preview["applied"] == []
    assert preview["pending"] == _all_revisions(db_path)
    assert "CREATE TABLE IF NOT EXISTS donations" in preview["sql"]
    assert "alembic_version" in preview["sql"]

    with sqlite3.connect(db_path) as connection:
        tables = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    assert tables == []
    assert current_revision(db_path) is None


def test_dry_run_after_upgrade_is_no_op(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = CagingStore(tmp_path / "no_op_test.db")
    store.init_db()

    assert store.apply_migrations(dry_run=True) == {
        "status": "no-op",
        "applied": [],
        "pending": [],
        "sql": "",
    }


def test_column_revisions_replay_on_patched_database(tmp_path) -> None:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "replay_test.db"
    store = CagingStore(db_path)
    store.init_db()
    revisions = _all_revisions(db_path)

    # A database whose columns were added by hand but never stamped.
    command.stamp(alembic_config(db_path), "0006_policies_and_maintenance")

    assert store.apply_migrations(dry_run=True)["pending"] == revisions[6:]
    replayed = store.apply_migrations()
    assert replayed["applied"] == revisions[6:]
    assert current_revision(db_path) == revisions[-1]


def test_describe_schema_lists_tables_with_counts(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = CagingStore(tmp_path / "schema_test.db")
    store.init_db()
    store.add_client("SCH", "Schema Client")

    schema = {row["table"]: row for row in store.describe_schema()}

    assert schema["clients"]["row_count"] == 1
    assert schema["alembic_version"]["row_count"] == 1
    assert schema["policies"]["row_count"] == 1
    donation_columns = {column["name"] for column in schema["donations"]["columns"]}
    assert {"gift_amount_cents", "thank_you_sent_at", "resolution_status"} <= donation_columns
    transaction_columns = {column["name"] for column in schema["reconciliation_bank_transactions"]["columns"]}
    assert {"status", "cleared", "matched_batch_id"} <= transaction_columns
