"""Accounting journal rows generated from reconciled donations and export templates."""

from __future__ import annotations

import io
import sqlite3
from datetime import date
from typing import Any

import pandas as pd

from .base import _json_dumps, _placeholders, apply_client_scope
from .logging_config import get_logger
from .rules import RuleOperations

logger = get_logger(__name__)

JOURNAL_HEADERS = (
    "JournalNo",
    "JournalDate",
    "AccountName",
    "Debits",
    "Credits",
    "Description",
    "Name",
    "Currency",
    "Location",
    "Class",
)

JOURNAL_ROW_LIMIT = 5000


def _display_date(value: str | None) -> str:
    if not value:
        return ""
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        return value
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def journal_placeholders(donation: sqlite3.Row | dict[str, Any]) -> dict[str, str]:
    donor_first = donation["first_name"] or donation["donor_first_name"] or ""
    donor_last = donation["last_name"] or donation["donor_last_name"] or ""
    return {
        "{BatchCode}": donation["batch_code"] or "",
        "{Date}": _display_date(donation["gift_date"]),
        "{Amount}": f"{int(donation['gift_amount_cents'] or 0) / 100:.2f}",
        "{DonorName}": f"{donor_first} {donor_last}".strip(),
        "{PaymentMethod}": donation["gift_method"] or "",
        "{CheckNumber}": donation["check_number"] or "",
        "{Platform}": donation["gift_platform"] or "",
        "{TransactionType}": donation["transaction_type"] or "",
        "{Fund}": "",
        "{Campaign}": donation["campaign_id"] or "",
    }


def generate_journal_rows(
    donations: list[sqlite3.Row] | list[dict[str, Any]],
    row_definitions: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Expand every template row for every donation."""

    results: list[dict[str, Any]] = []
    for donation in donations:
        replacements = journal_placeholders(donation)
        for row_definition in row_definitions:
            row: dict[str, Any] = {"_donation_id": donation["id"]}
            for header in JOURNAL_HEADERS:
                value = str(row_definition.get(header) or "")
                for placeholder, replacement in replacements.items():
                    value = value.replace(placeholder, replacement)
                row[header] = value
            results.append(row)
    return results


def journal_rows_to_csv(rows: list[dict[str, Any]]) -> str:
    frame = pd.DataFrame(rows, columns=list(JOURNAL_HEADERS))
    buffer = io.StringIO()
    frame.to_csv(buffer, index=False)
    return buffer.getvalue()


class JournalOperations(RuleOperations):
    def journal_donations(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        client_id: int | str | None = None,
        account_id: int | None = None,
        batch_ids: list[int] | None = None,
        allowed_client_ids: list[int] | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if batch_ids:
            where_clauses.append(f"dn.batch_id IN ({_placeholders(batch_ids)})")
            parameters.extend(batch_ids)
        else:
            where_clauses.append("b.status = 'Reconciled'")
        where_clauses.append("dn.resolution_status <> 'Void'")

        if start_date:
            where_clauses.append("dn.gift_date >= ?")
            parameters.append(start_date)
        if end_date:
            where_clauses.append("dn.gift_date <= ?")
            parameters.append(end_date)
        if client_id not in (None, "", "All"):
            where_clauses.append("dn.client_id = ?")
            parameters.append(int(client_id))
        if account_id is not None:
            where_clauses.append("b.account_id = ?")
            parameters.append(account_id)
        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)

        query = f"""
            SELECT
                dn.*,
                b.batch_code,
                d.first_name,
                d.last_name,
                c.client_code,
                a.account_name
            FROM donations dn
            JOIN batches b ON b.id = dn.batch_id
            LEFT JOIN donors d ON d.id = dn.donor_id
            JOIN clients c ON c.id = dn.client_id
            LEFT JOIN client_bank_accounts a ON a.id = b.account_id
            WHERE {' AND '.join(where_clauses)}
            ORDER BY dn.gift_date ASC, dn.id ASC
            LIMIT ?
        """
        parameters.append(JOURNAL_ROW_LIMIT)

        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def journal_preview(self, template_id: int | None, **filters: Any) -> dict[str, Any]:
        if not template_id:
            raise ValueError("Template required")
        template = self.get_export_template(template_id)
        rows = generate_journal_rows(self.journal_donations(**filters), template["mappings"])
        return {"rows": rows, "count": len(rows)}

    def journal_export(
        self,
        template_id: int | None,
        user_id: int | None = None,
        **filters: Any,
    ) -> tuple[str, str]:
        if not template_id:
            raise ValueError("Template required")
        template = self.get_export_template(template_id)
        donations = self.journal_donations(**filters)
        if not donations:
            raise ValueError("No reconciled data found for this period.")

        rows = generate_journal_rows(donations, template["mappings"])
        csv_text = journal_rows_to_csv(rows)
        file_name = f"journal_export_{date.today().isoformat()}.csv"

        logged_filters = {key: value for key, value in filters.items() if key != "allowed_client_ids"}
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO export_logs (template_id, user_id, file_name, row_count, filters)
                VALUES (?, ?, ?, ?, ?)
                """,
                (template_id, user_id, file_name, len(rows), _json_dumps(logged_filters)),
            )

        logger.info("Journal export %s generated with %s rows", file_name, len(rows))
        return csv_text, file_name

    def list_export_logs(self, limit: int = 50) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT l.*, t.name AS template_name, u.username
                FROM export_logs l
                LEFT JOIN export_templates t ON t.id = l.template_id
                LEFT JOIN users u ON u.id = l.user_id
                ORDER BY l.created_at DESC, l.id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
