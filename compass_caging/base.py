"""Shared helpers and the SQLite connection base for the caging stores."""

from __future__ import annotations

import json
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable


class RecordNotFoundError(LookupError):
    """Raised when a requested row does not exist."""


class ConflictError(ValueError):
    """Raised when a write would violate a uniqueness rule."""


class PayloadTooLargeError(ValueError):
    """Raised when an uploaded file exceeds the configured size limit."""


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _normalize_token(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"[^a-z0-9]", "", value.lower())


def _normalize_digits(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\D", "", value)


def _lastrowid(cursor: sqlite3.Cursor) -> int:
    row_id = cursor.lastrowid
    if row_id is None:
        raise RuntimeError("Insert did not return a row id.")
    return row_id


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


def _json_dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _json_loads(value: str | None, fallback: Any = None) -> Any:
    if value is None or value == "":
        return fallback
    return json.loads(value)


def cents_from_amount(amount: float | int | str | None) -> int:
    if amount is None or amount == "":
        return 0
    return int(round(float(amount) * 100))


def amount_from_cents(cents: int | None) -> float:
    return (cents or 0) / 100


def format_currency(cents: int) -> str:
    return f"${amount_from_cents(cents):,.2f}"


def apply_client_scope(
    column: str,
    allowed_client_ids: list[int] | None,
    where_clauses: list[str],
    parameters: list[Any],
) -> None:
    """Restrict a query to the caller's clients.

    ``None`` means the caller is not scoped. An empty list matches nothing.
    """

    if allowed_client_ids is None:
        return
    if not allowed_client_ids:
        where_clauses.append("0 = 1")
        return
    where_clauses.append(f"{column} IN ({_placeholders(allowed_client_ids)})")
    parameters.extend(allowed_client_ids)


class BaseStore:
    """Connection handling shared by every store mixin."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @staticmethod
    def _fetch_required(
        connection: sqlite3.Connection,
        table_name: str,
        record_id: int,
        label: str,
    ) -> sqlite3.Row:
        row = connection.execute(
            f"SELECT * FROM {table_name} WHERE id = ?",
            (record_id,),
        ).fetchone()
        if row is None:
            raise RecordNotFoundError(f"{label} was not found.")
        return row
