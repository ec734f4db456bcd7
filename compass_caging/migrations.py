"""Schema migrations, run through Alembic.

Revision scripts live in ``compass_caging/alembic/versions``. The store drives
them programmatically; ``alembic upgrade head`` from the repository root runs
the same scripts against ``DATABASE_PATH``.
"""

from __future__ import annotations

import io
import sqlite3
from pathlib import Path

import sqlalchemy as sa
from alembic import command, context, op
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.pool import NullPool

from .logging_config import get_logger

logger = get_logger(__name__)

SCRIPT_LOCATION = Path(__file__).resolve().parent / "alembic"


def database_url(db_path: str | Path) -> str:
    return f"sqlite:///{Path(db_path)}"


def alembic_config(db_path: str | Path, output_buffer: io.StringIO | None = None) -> Config:
    config = Config(output_buffer=output_buffer)
    config.set_main_option("script_location", str(SCRIPT_LOCATION))
    config.set_main_option("sqlalchemy.url", database_url(db_path))
    return config


def add_column_if_missing(table_name: str, column: sa.Column) -> None:
    """Add ``column`` unless the table already has it.

    Only usable inside a revision script. When rendering SQL offline the
    database cannot be inspected, so the column is always emitted.
    """

    if not context.is_offline_mode():
        existing = {item["name"] for item in sa.inspect(op.get_bind()).get_columns(table_name)}
        if column.name in existing:
            return
    op.add_column(table_name, column)


def ordered_revisions(config: Config) -> list[tuple[str, str]]:
    """Return ``(revision, name)`` pairs from base to head."""

    script = ScriptDirectory.from_config(config)
    revisions = list(script.walk_revisions("base", "heads"))
    revisions.reverse()
    return [(revision.revision, revision.doc) for revision in revisions]


def current_revision(db_path: str | Path) -> str | None:
    """Read the stamped revision without creating the version table."""

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = sa.create_engine(database_url(db_path), poolclass=NullPool)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def _pending(db_path: str | Path, revisions: list[str]) -> tuple[str | None, list[str]]:
    current = current_revision(db_path)
    if current is None:
        return None, revisions
    return current, revisions[revisions.index(current) + 1 :]


def run_pending(db_path: str | Path, *, dry_run: bool = False) -> dict[str, object]:
    """Upgrade to head, or with ``dry_run`` render the pending SQL only.

    Returns a dict with ``status`` ('applied', 'no-op' or, for a dry run,
    'pending'), the revisions ``applied`` in this call and the revisions still
    ``pending``. A dry run also returns the rendered ``sql``.
    """

    buffer = io.StringIO()
    config = alembic_config(db_path, output_buffer=buffer)
    revisions = [revision for revision, _ in ordered_revisions(config)]
    current, pending = _pending(db_path, revisions)

    if dry_run:
        if pending:
            command.upgrade(config, f"{current}:head" if current else "head", sql=True)
        return {
            "status": "pending" if pending else "no-op",
            "applied": [],
            "pending": pending,
            "sql": buffer.getvalue(),
        }

    if not pending:
        return {"status": "no-op", "applied": [], "pending": []}

    logger.info("Upgrading %s from %s to %s", db_path, current or "base", pending[-1])
    command.upgrade(config, "head")
    return {"status": "applied", "applied": pending, "pending": []}


def migration_status(db_path: str | Path) -> list[dict[str, object]]:
    config = alembic_config(db_path)
    revisions = ordered_revisions(config)
    current = current_revision(db_path)
    applied_through = (
        [revision for revision, _ in revisions].index(current) if current is not None else -1
    )

    return [
        {
            "revision": revision,
            "name": name,
            "applied": position <= applied_through,
            "current": revision == current,
        }
        for position, (revision, name) in enumerate(revisions)
    ]


def _table_names(connection: sqlite3.Connection) -> set[str]:
    rows = connection.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table'"
    ).fetchall()
    return {str(row["name"]) for row in rows}


def describe_schema(connection: sqlite3.Connection) -> list[dict[str, object]]:
    """List application tables with their columns and row counts."""

    tables: list[dict[str, object]] = []
    for table_name in sorted(_table_names(connection)):
        if table_name.startswith("sqlite_"):
            continue
        columns = connection.execute(f"PRAGMA table_info({table_name})").fetchall()
        count_row = connection.execute(
            f"SELECT COUNT(*) AS count FROM {table_name}"
        ).fetchone()
        tables.append(
            {
                "table": table_name,
                "columns": [
                    {"name": column["name"], "type": column["type"]}
                    for column in columns
                ],
                "row_count": int(count_row["count"]),
            }
        )
    return tables
