"""CSV import pipeline: upload to staging, normalize with mapping rules, commit to a batch."""

from __future__ import annotations

import io
import re
import sqlite3
from datetime import date
from typing import Any

import pandas as pd

from .base import (
    _clean,
    _json_dumps,
    _json_loads,
    _lastrowid,
    cents_from_amount,
)
from .cleaners import clean_donor_fields
from .logging_config import get_logger
from .rules import RuleOperations

logger = get_logger(__name__)

DEFAULT_SOURCES = ("Winred", "Stripe", "Anedot", "Cage")

PLATFORM_CODES = {
    "Winred": "WR",
    "Stripe": "STR",
    "Anedot": "AND",
    "Cage": "CAGE",
    "Revv": "REVV",
    "ActBlue": "AB",
}

STAGING_PREVIEW_LIMIT = 1000
HISTORY_LIMIT = 50


def parse_csv_rows(content: bytes) -> list[dict[str, str]]:
    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ValueError("Failed to parse CSV") from exc

    frame.columns = [str(column).strip() for column in frame.columns]
    return [
        {key: value.strip() for key, value in record.items()}
        for record in frame.to_dict(orient="records")
    ]


def normalize_date(value: Any) -> str | None:
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.strftime("%Y-%m-%d")


def parse_import_amount(value: Any) -> float | None:
    if value is None:
        return None
    text = re.sub(r"[$,\s]", "", str(value))
    if not text:
        return None
    if text.startswith("(") and text.endswith(")"):
        text = f"-{text[1:-1]}"
    try:
        return float(text)
    except ValueError:
        return None


def apply_mapping_rules(
    raw: dict[str, Any],
    rules: list[sqlite3.Row] | list[dict[str, Any]],
) -> tuple[dict[str, Any], list[str], list[str]]:
    """Return the normalized row, the defaults applied and any validation errors."""

    normalized = dict(raw)
    defaults_applied: list[str] = []
    errors: list[str] = []

    for rule in rules:
        target = rule["target_column"]
        existing = normalized.get(target)
        if existing is None or existing == "":
            if rule["default_value"]:
                normalized[target] = rule["default_value"]
                defaults_applied.append(f"{target}: {rule['default_value']} (Rule)")

        value = normalized.get(target)
        if not value:
            continue
        if rule["transformation_rule"] == "uppercase":
            normalized[target] = str(value).upper()
        elif rule["transformation_rule"] == "date_format":
            formatted = normalize_date(value)
            if formatted is not None:
                normalized[target] = formatted

    if not normalized.get("Gift Year") and normalized.get("Gift Date"):
        gift_date = normalize_date(normalized["Gift Date"])
        if gift_date is not None:
            normalized["Gift Year"] = int(gift_date[:4])
            defaults_applied.append(f"Gift Year: {gift_date[:4]} (Derived)")

    amount = normalized.get("Gift Amount")
    if amount not in (None, "") and parse_import_amount(amount) is None:
        errors.append(f"Gift Amount {amount!r} is not a number.")

    return normalized, defaults_applied, errors


def import_batch_suffix(external_batch_id: Any, session_id: int) -> str:
    if external_batch_id is None or external_batch_id == "":
        return str(session_id)
    text = str(external_batch_id)
    return text[-6:] if len(text) >= 6 else text


class ImportOperations(RuleOperations):
    def upload_import(
        self,
        filename: str,
        source_system: str,
        content: bytes,
        created_by: int | None = None,
    ) -> dict[str, Any]:
        clean_filename = _clean(filename)
        clean_source = _clean(source_system)
        if not clean_filename or not clean_source:
            raise ValueError("File and Source System required")

        rows = parse_csv_rows(content)

        with self._connect() as connection:
            cursor = connection.execute(
                """
                INSERT INTO import_sessions (filename, source_system, status, created_by, row_count)
                VALUES (?, ?, 'Pending', ?, ?)
                """,
                (clean_filename, clean_source, created_by, len(rows)),
            )
            session_id = _lastrowid(cursor)
            connection.executemany(
                "INSERT INTO staging_revenue (session_id, source_row_data) VALUES (?, ?)",
                [(session_id, _json_dumps(row)) for row in rows],
            )

        logger.info("Staged %s rows from %s (%s) as session %s", len(rows), clean_filename, clean_source, session_id)
        return {
            "session_id": session_id,
            "row_count": len(rows),
            "message": f"Uploaded {len(rows)} records.",
        }

    def get_import_session(self, session_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "import_sessions", session_id, "Session")

    def process_import(self, session_id: int) -> dict[str, int]:
        import_session = self.get_import_session(session_id)
        if import_session["status"] in ("Completed", "Reverted"):
            raise ValueError(f"Session is {import_session['status']} and cannot be processed.")

        rules = self.active_mapping_rules(import_session["source_system"])

        invalid = 0
        with self._connect() as connection:
            staging_rows = connection.execute(
                "SELECT id, source_row_data FROM staging_revenue WHERE session_id = ? ORDER BY id",
                (session_id,),
            ).fetchall()

            for row in staging_rows:
                normalized, defaults_applied, errors = apply_mapping_rules(
                    _json_loads(row["source_row_data"], {}),
                    rules,
                )
                if errors:
                    invalid += 1
                connection.execute(
                    """
                    UPDATE staging_revenue
                    SET normalized_data = ?, defaults_applied = ?, validation_status = ?
                    WHERE id = ?
                    """,
                    (
                        _json_dumps(normalized),
                        _json_dumps(defaults_applied + errors),
                        "Invalid" if errors else "Valid",
                        row["id"],
                    ),
                )

            connection.execute(
                "UPDATE import_sessions SET status = 'Processed', processed_count = ? WHERE id = ?",
                (len(staging_rows), session_id),
            )

        return {"processed": len(staging_rows), "invalid": invalid}

    def commit_import(
        self,
        session_id: int,
        client_id: int | None,
        created_by: int | None = None,
    ) -> dict[str, Any]:
        if not client_id:
            raise ValueError("Client ID is required to commit")

        today = date.today()
        batch_date = today.isoformat()

        with self._connect() as connection:
            import_session = self._fetch_required(connection, "import_sessions", session_id, "Session")
            if import_session["status"] != "Processed":
                raise ValueError("Session must be processed (normalized) before committing")
            client = self._fetch_required(connection, "clients", client_id, "Client")

            staging_rows = connection.execute(
                """
                SELECT normalized_data, validation_status
                FROM staging_revenue
                WHERE session_id = ?
                ORDER BY id
                """,
                (session_id,),
            ).fetchall()
            if not staging_rows:
                raise ValueError("No data to commit")

            records = [_json_loads(row["normalized_data"], {}) for row in staging_rows]
            source_system = import_session["source_system"]
            platform_code = PLATFORM_CODES.get(source_system, "IMP")
            suffix = import_batch_suffix(records[0].get("External Batch ID"), session_id)
            batch_code = (
                f"{client['client_code']}.{platform_code}."
                f"{today:%Y}.{today:%m}.{today:%d}.{suffix}"
            )

            cursor = connection.execute(
                """
                INSERT INTO batches (
                    batch_code,
                    client_id,
                    entry_mode,
                    payment_category,
                    created_by,
                    status,
                    date,
                    default_gift_platform,
                    import_session_id
                )
                VALUES (?, ?, 'Import', 'Donations', ?, 'Open', ?, ?, ?)
                """,
                (batch_code, client_id, created_by, batch_date, source_system, session_id),
            )
            batch_id = _lastrowid(cursor)

            inserted = 0
            skipped = 0
            for record, staging_row in zip(records, staging_rows):
                amount = parse_import_amount(record.get("Gift Amount"))
                if staging_row["validation_status"] == "Invalid" or amount is None:
                    skipped += 1
                    continue

                donor = clean_donor_fields(
                    {
                        "donor_first_name": record.get("First Name"),
                        "donor_last_name": record.get("Last Name"),
                        "donor_email": record.get("Email"),
                        "donor_address": record.get("Address"),
                        "donor_city": record.get("City"),
                        "donor_state": record.get("State"),
                        "donor_zip": record.get("Zip"),
                    }
                )
                gift_date = normalize_date(record.get("Gift Date")) if record.get("Gift Date") else None
                connection.execute(
                    """
                    INSERT INTO donations (
                        client_id,
                        batch_id,
                        gift_amount_cents,
                        gift_date,
                        batch_date,
                        gift_year,
                        gift_type,
                        gift_method,
                        gift_platform,
                        transaction_type,
                        secondary_id,
                        campaign_id,
                        donor_first_name,
                        donor_last_name,
                        donor_email,
                        donor_address,
                        donor_city,
                        donor_state,
                        donor_zip,
                        created_by
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'Contribution', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        client_id,
                        batch_id,
                        cents_from_amount(amount),
                        gift_date or batch_date,
                        batch_date,
                        record.get("Gift Year") or int((gift_date or batch_date)[:4]),
                        _clean(record.get("Gift Type")) or "Online Source",
                        _clean(record.get("Gift Method")) or "Credit Card",
                        source_system,
                        _clean(record.get("Transaction ID")),
                        _clean(record.get("Campaign")),
                        donor["donor_first_name"],
                        donor["donor_last_name"],
                        donor["donor_email"],
                        donor["donor_address"],
                        donor["donor_city"],
                        donor["donor_state"],
                        donor["donor_zip"],
                        created_by,
                    ),
                )
                inserted += 1

            connection.execute(
                "UPDATE import_sessions SET status = 'Completed' WHERE id = ?",
                (session_id,),
            )

        logger.info(
            "Committed import session %s as batch %s (%s donations, %s skipped)",
            session_id,
            batch_code,
            inserted,
            skipped,
        )
        return {
            "batch_id": batch_id,
            "batch_code": batch_code,
            "donations_created": inserted,
            "rows_skipped": skipped,
        }

    def revert_import(self, session_id: int) -> dict[str, int]:
        with self._connect() as connection:
            self._fetch_required(connection, "import_sessions", session_id, "Session")

            linked = connection.execute(
                """
                SELECT COUNT(*) AS count
                FROM reconciliation_period_batches rpb
                JOIN batches b ON b.id = rpb.batch_id
                WHERE b.import_session_id = ?
                """,
                (session_id,),
            ).fetchone()["count"]
            if linked:
                raise ValueError("Imported batches are already part of a reconciliation period.")

            deleted_donations = connection.execute(
                """
                DELETE FROM donations
                WHERE batch_id IN (SELECT id FROM batches WHERE import_session_id = ?)
                """,
                (session_id,),
            ).rowcount
            deleted_batches = connection.execute(
                "DELETE FROM batches WHERE import_session_id = ?",
                (session_id,),
            ).rowcount
            connection.execute(
                "UPDATE import_sessions SET status = 'Reverted' WHERE id = ?",
                (session_id,),
            )

        logger.info(
            "Reverted import session %s: %s donations and %s batches deleted",
            session_id,
            deleted_donations,
            deleted_batches,
        )
        return {"deleted_donations": deleted_donations, "deleted_batches": deleted_batches}

    def import_history(self) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT
                    s.*,
                    u.username AS created_by_name,
                    (SELECT COUNT(*) FROM batches b WHERE b.import_session_id = s.id) AS batches_created,
                    (
                        SELECT COUNT(*)
                        FROM donations dn
                        JOIN batches b ON b.id = dn.batch_id
                        WHERE b.import_session_id = s.id
                    ) AS donations_created
                FROM import_sessions s
                LEFT JOIN users u ON u.id = s.created_by
                ORDER BY s.created_at DESC, s.id DESC
                LIMIT ?
                """,
                (HISTORY_LIMIT,),
            ).fetchall()

    def import_sources(self) -> list[str]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT DISTINCT source_system FROM mapping_rules WHERE source_system <> '*'"
            ).fetchall()
        return sorted(set(DEFAULT_SOURCES) | {row["source_system"] for row in rows})

    def staging_rows(self, session_id: int) -> list[dict[str, Any]]:
        with self._connect() as connection:
            self._fetch_required(connection, "import_sessions", session_id, "Session")
            rows = connection.execute(
                """
                SELECT id, source_row_data, normalized_data, validation_status, defaults_applied
                FROM staging_revenue
                WHERE session_id = ?
                ORDER BY id ASC
                LIMIT ?
                """,
                (session_id, STAGING_PREVIEW_LIMIT),
            ).fetchall()

        return [
            {
                "id": row["id"],
                "source_row_data": _json_loads(row["source_row_data"], {}),
                "normalized_data": _json_loads(row["normalized_data"]),
                "validation_status": row["validation_status"],
                "defaults_applied": _json_loads(row["defaults_applied"], []),
            }
            for row in rows
        ]
