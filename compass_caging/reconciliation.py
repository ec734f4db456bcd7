"""Bank reconciliation periods: batch roll-up, statement matching and client transfers."""

from __future__ import annotations

import re
import sqlite3
from datetime import date, timedelta
from typing import Any

from .base import (
    BaseStore,
    ConflictError,
    RecordNotFoundError,
    _clean,
    _lastrowid,
    _placeholders,
    _utc_now,
    apply_client_scope,
    cents_from_amount,
    format_currency,
)
from .logging_config import get_logger

logger = get_logger(__name__)

TRANSFER_DELAY_DAYS = 14
AUTO_MATCH_TOLERANCE_CENTS = 100
EDITABLE_PERIOD_STATUSES = ("Open", "Pending Reconciliation")
CREDIT_CARD_METHODS = ("Credit Card", "CC")


def summarize_batch_donations(donations: list[sqlite3.Row] | list[dict[str, Any]]) -> dict[str, int]:
    """Roll a batch's donations up into the reconciliation detail buckets.

    Positive gifts are counted by method. Negative amounts are chargebacks and
    are tracked as positive values against the check or card bucket.
    """

    totals = {
        "num_checks": 0,
        "amount_checks_cents": 0,
        "num_cash": 0,
        "amount_cash_cents": 0,
        "num_cc_stripe": 0,
        "amount_cc_stripe_cents": 0,
        "amount_stripe_fees_cents": 0,
        "num_check_chargebacks": 0,
        "amount_check_chargebacks_cents": 0,
        "amount_cc_stripe_chargebacks_cents": 0,
        "batch_total_cents": 0,
    }

    for donation in donations:
        method = donation["gift_method"]
        amount = int(donation["gift_amount_cents"])
        fee = int(donation["gift_fee_cents"] or 0)
        totals["batch_total_cents"] += amount

        if amount < 0:
            if method in CREDIT_CARD_METHODS:
                totals["amount_cc_stripe_chargebacks_cents"] += abs(amount)
            else:
                totals["num_check_chargebacks"] += 1
                totals["amount_check_chargebacks_cents"] += abs(amount)
            continue

        if method == "Check":
            totals["num_checks"] += 1
            totals["amount_checks_cents"] += amount
        elif method == "Cash":
            totals["num_cash"] += 1
            totals["amount_cash_cents"] += amount
        elif method in CREDIT_CARD_METHODS:
            totals["num_cc_stripe"] += 1
            totals["amount_cc_stripe_cents"] += amount
            totals["amount_stripe_fees_cents"] += fee

    return totals


def extract_numeric_id(value: int | str) -> int:
    if isinstance(value, int):
        return value
    digits = re.sub(r"[^0-9]", "", value)
    if not digits:
        raise ValueError("System item id must contain a number.")
    return int(digits)


def _statement_variance(period: sqlite3.Row) -> int:
    return int(period["statement_ending_balance_cents"] or 0) - int(period["total_period_amount_cents"] or 0)


class ReconciliationOperations(BaseStore):
    def list_periods(
        self,
        client_id: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        allowed_client_ids: list[int] | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if client_id is not None:
            where_clauses.append("p.client_id = ?")
            parameters.append(client_id)
        if start_date:
            where_clauses.append("p.period_start_date >= ?")
            parameters.append(start_date)
        if end_date:
            where_clauses.append("p.period_end_date <= ?")
            parameters.append(end_date)
        apply_client_scope("p.client_id", allowed_client_ids, where_clauses, parameters)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT p.*, c.client_name
            FROM reconciliation_periods p
            JOIN clients c ON c.id = p.client_id
            {where_sql}
            ORDER BY p.period_start_date DESC, p.id DESC
        """
        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def create_period(
        self,
        client_id: int,
        start_date: str,
        end_date: str,
        created_by: int | None = None,
    ) -> int:
        if not start_date or not end_date:
            raise ValueError("Missing fields")
        start = date.fromisoformat(start_date)
        end = date.fromisoformat(end_date)
        if end < start:
            raise ValueError("Period end date cannot be before the start date.")
        transfer_date = end + timedelta(days=TRANSFER_DELAY_DAYS)

        with self._connect() as connection:
            self._fetch_required(connection, "clients", client_id, "Client")
            try:
                cursor = connection.execute(
                    """
                    INSERT INTO reconciliation_periods (
                        client_id,
                        period_start_date,
                        period_end_date,
                        scheduled_transfer_date,
                        status,
                        created_by
                    )
                    VALUES (?, ?, ?, ?, 'Open', ?)
                    """,
                    (
                        client_id,
                        start.isoformat(),
                        end.isoformat(),
                        transfer_date.isoformat(),
                        created_by,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Period already exists for these dates.") from exc

            period_id = _lastrowid(cursor)
            connection.execute(
                "INSERT INTO reconciliation_batch_details (period_id) VALUES (?)",
                (period_id,),
            )
            return period_id

    def _fetch_period(self, connection: sqlite3.Connection, period_id: int) -> sqlite3.Row:
        row = connection.execute(
            """
            SELECT p.*, c.client_name
            FROM reconciliation_periods p
            JOIN clients c ON c.id = p.client_id
            WHERE p.id = ?
            """,
            (period_id,),
        ).fetchone()
        if row is None:
            raise RecordNotFoundError("Period was not found.")
        return row

    def get_period(self, period_id: int) -> dict[str, Any]:
        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            details = connection.execute(
                "SELECT * FROM reconciliation_batch_details WHERE period_id = ?",
                (period_id,),
            ).fetchone()
            batch_rows = connection.execute(
                """
                SELECT
                    b.id,
                    b.date,
                    b.batch_code,
                    b.payment_category,
                    b.status,
                    b.cleared,
                    COALESCE(SUM(dn.gift_amount_cents), 0) AS total_cents
                FROM batches b
                LEFT JOIN donations dn ON dn.batch_id = b.id
                WHERE
                    (
                        b.client_id = ?
                        AND b.date >= ?
                        AND b.date <= ?
                        AND b.status = 'Closed'
                    )
                    OR b.id IN (SELECT batch_id FROM reconciliation_period_batches WHERE period_id = ?)
                GROUP BY b.id
                ORDER BY b.date ASC, b.id ASC
                """,
                (
                    period["client_id"],
                    period["period_start_date"],
                    period["period_end_date"],
                    period_id,
                ),
            ).fetchall()
            linked_ids = {
                int(row["batch_id"])
                for row in connection.execute(
                    "SELECT batch_id FROM reconciliation_period_batches WHERE period_id = ?",
                    (period_id,),
                ).fetchall()
            }
            transactions = connection.execute(
                """
                SELECT *
                FROM reconciliation_bank_transactions
                WHERE period_id = ?
                ORDER BY transaction_date ASC, id ASC
                """,
                (period_id,),
            ).fetchall()

        result = dict(period)
        result["statement_variance_cents"] = _statement_variance(period)
        result["details"] = dict(details) if details is not None else None
        result["batches"] = [
            {
                "id": row["id"],
                "type": "Batch",
                "desc": f"{row['batch_code']} ({row['payment_category']})",
                "amount_cents": int(row["total_cents"]),
                "date": row["date"],
                "status": row["status"],
                "cleared": bool(row["cleared"]),
                "linked": int(row["id"]) in linked_ids,
            }
            for row in batch_rows
        ]
        result["payments"] = [
            {
                "id": row["id"],
                "type": "Payment" if row["amount_out_cents"] > 0 else "Deposit",
                "desc": row["description"],
                "amount_cents": -int(row["amount_out_cents"])
                if row["amount_out_cents"] > 0
                else int(row["amount_in_cents"]),
                "date": row["transaction_date"],
                "status": row["status"],
                "matched": bool(row["matched"]),
                "cleared": bool(row["cleared"]),
            }
            for row in transactions
        ]
        return result

    def update_period_statement(
        self,
        period_id: int,
        statement_ending_balance: float | None = None,
        statement_link: str | None = None,
    ) -> dict[str, Any]:
        """Store the bank statement figures and return the period with its variance.

        ``statement_variance_cents`` is the statement ending balance less the
        summed totals of the batches linked to the period.
        """

        updates = ["updated_at = ?"]
        parameters: list[Any] = [_utc_now()]
        if statement_ending_balance is not None:
            updates.append("statement_ending_balance_cents = ?")
            parameters.append(cents_from_amount(statement_ending_balance))
        if statement_link is not None:
            updates.append("statement_link = ?")
            parameters.append(_clean(statement_link))

        with self._connect() as connection:
            self._fetch_period(connection, period_id)
            connection.execute(
                f"UPDATE reconciliation_periods SET {', '.join(updates)} WHERE id = ?",
                [*parameters, period_id],
            )
            period = self._fetch_period(connection, period_id)

        result = dict(period)
        result["statement_variance_cents"] = _statement_variance(period)
        return result

    def add_batch_to_period(self, period_id: int, batch_id: int) -> dict[str, int]:
        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            if period["status"] not in EDITABLE_PERIOD_STATUSES:
                raise ValueError("Period is processed/locked. Cannot add batch.")

            batch = self._fetch_required(connection, "batches", batch_id, "Batch")
            if batch["status"] != "Closed":
                raise ValueError("Batch must be CLOSED to reconcile.")
            if batch["client_id"] != period["client_id"]:
                raise ValueError("Batch belongs to a different client than the period.")

            existing = connection.execute(
                "SELECT period_id FROM reconciliation_period_batches WHERE batch_id = ?",
                (batch_id,),
            ).fetchone()
            if existing is not None:
                raise ConflictError(f"Batch is already assigned to period {existing['period_id']}.")

            donations = connection.execute(
                """
                SELECT gift_method, gift_amount_cents, gift_fee_cents
                FROM donations
                WHERE batch_id = ? AND resolution_status <> 'Void'
                """,
                (batch_id,),
            ).fetchall()
            totals = summarize_batch_donations(donations)

            incoming_count = totals["num_checks"] + totals["num_cash"] + totals["num_cc_stripe"]
            incoming_cents = (
                totals["amount_checks_cents"]
                + totals["amount_cash_cents"]
                + totals["amount_cc_stripe_cents"]
            )
            chargeback_cents = (
                totals["amount_check_chargebacks_cents"]
                + totals["amount_cc_stripe_chargebacks_cents"]
            )
            net_cents = incoming_cents - totals["amount_stripe_fees_cents"] - chargeback_cents

            connection.execute(
                """
                UPDATE reconciliation_batch_details
                SET
                    num_checks = num_checks + :num_checks,
                    amount_checks_cents = amount_checks_cents + :amount_checks_cents,
                    num_cash = num_cash + :num_cash,
                    amount_cash_cents = amount_cash_cents + :amount_cash_cents,
                    num_cc_stripe = num_cc_stripe + :num_cc_stripe,
                    amount_cc_stripe_cents = amount_cc_stripe_cents + :amount_cc_stripe_cents,
                    amount_stripe_fees_cents = amount_stripe_fees_cents + :amount_stripe_fees_cents,
                    num_check_chargebacks = num_check_chargebacks + :num_check_chargebacks,
                    amount_check_chargebacks_cents =
                        amount_check_chargebacks_cents + :amount_check_chargebacks_cents,
                    amount_cc_stripe_chargebacks_cents =
                        amount_cc_stripe_chargebacks_cents + :amount_cc_stripe_chargebacks_cents,
                    num_donor_incoming = num_donor_incoming + :incoming_count,
                    amount_donor_incoming_cents = amount_donor_incoming_cents + :incoming_cents,
                    amount_donor_net_cents = amount_donor_net_cents + :net_cents
                WHERE period_id = :period_id
                """,
                {
                    **totals,
                    "incoming_count": incoming_count,
                    "incoming_cents": incoming_cents,
                    "net_cents": net_cents,
                    "period_id": period_id,
                },
            )
            connection.execute(
                "INSERT INTO reconciliation_period_batches (period_id, batch_id) VALUES (?, ?)",
                (period_id, batch_id),
            )

            total_chargebacks = connection.execute(
                """
                SELECT amount_check_chargebacks_cents + amount_cc_stripe_chargebacks_cents AS total
                FROM reconciliation_batch_details
                WHERE period_id = ?
                """,
                (period_id,),
            ).fetchone()["total"]
            connection.execute(
                """
                UPDATE reconciliation_periods
                SET
                    total_period_amount_cents = total_period_amount_cents + ?,
                    notes = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    totals["batch_total_cents"],
                    f"{format_currency(int(total_chargebacks))} in chargebacks.",
                    _utc_now(),
                    period_id,
                ),
            )

        logger.info(
            "Added batch %s to reconciliation period %s (%s)",
            batch_id,
            period_id,
            format_currency(totals["batch_total_cents"]),
        )
        return {
            "batch_total_cents": totals["batch_total_cents"],
            "incoming_cents": incoming_cents,
            "net_cents": net_cents,
        }

    def import_bank_transactions(
        self,
        period_id: int,
        transactions: list[dict[str, Any]],
    ) -> dict[str, int]:
        """Load statement lines and auto-match deposits that equal the period total."""

        imported = 0
        matched = 0
        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            period_total = int(period["total_period_amount_cents"])

            for transaction in transactions:
                transaction_date = _clean(transaction.get("date"))
                if not transaction_date:
                    raise ValueError("Every bank transaction needs a date.")
                amount_in = cents_from_amount(transaction.get("amount_in"))
                amount_out = cents_from_amount(transaction.get("amount_out"))
                is_match = amount_in > 0 and abs(amount_in - period_total) < AUTO_MATCH_TOLERANCE_CENTS

                connection.execute(
                    """
                    INSERT INTO reconciliation_bank_transactions (
                        period_id,
                        client_id,
                        transaction_date,
                        transaction_type,
                        amount_in_cents,
                        amount_out_cents,
                        description,
                        reference_number,
                        matched,
                        statement_imported
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                    """,
                    (
                        period_id,
                        period["client_id"],
                        transaction_date,
                        _clean(transaction.get("type")) or ("Deposit" if amount_in > 0 else "Withdrawal"),
                        amount_in,
                        amount_out,
                        _clean(transaction.get("description")),
                        _clean(transaction.get("ref")),
                        1 if is_match else 0,
                    ),
                )
                imported += 1
                if is_match:
                    matched += 1

        logger.info(
            "Imported %s bank transactions into period %s, %s auto-matched",
            imported,
            period_id,
            matched,
        )
        return {"imported": imported, "matched": matched}

    def match_transaction(
        self,
        period_id: int,
        bank_transaction_id: int,
        system_item_id: int | str,
        system_item_type: str,
    ) -> sqlite3.Row:
        if system_item_type == "Batch":
            assignments = "matched_batch_id = ?, matched_donation_id = NULL"
        elif system_item_type == "Donation":
            assignments = "matched_donation_id = ?, matched_batch_id = NULL"
        else:
            raise ValueError("Invalid system item type")
        item_id = extract_numeric_id(system_item_id)

        with self._connect() as connection:
            cursor = connection.execute(
                f"""
                UPDATE reconciliation_bank_transactions
                SET {assignments}, status = 'Matched'
                WHERE id = ? AND period_id = ?
                """,
                (item_id, bank_transaction_id, period_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Bank transaction was not found in this period.")
            return self._fetch_required(
                connection,
                "reconciliation_bank_transactions",
                bank_transaction_id,
                "Bank transaction",
            )

    def reconcile_period(self, period_id: int, raised_by: int | None = None) -> dict[str, Any]:
        with self._connect() as connection:
            self._fetch_period(connection, period_id)
            details = connection.execute(
                "SELECT amount_donor_net_cents FROM reconciliation_batch_details WHERE period_id = ?",
                (period_id,),
            ).fetchone()
            expected = int(details["amount_donor_net_cents"]) if details is not None else 0
            actual = int(
                connection.execute(
                    """
                    SELECT COALESCE(SUM(amount_in_cents - amount_out_cents), 0) AS net
                    FROM reconciliation_bank_transactions
                    WHERE period_id = ?
                    """,
                    (period_id,),
                ).fetchone()["net"]
            )
            variance = actual - expected

            if variance == 0:
                connection.execute(
                    """
                    UPDATE reconciliation_periods
                    SET status = 'Reconciled', bank_balance_verified = 1, updated_at = ?
                    WHERE id = ?
                    """,
                    (_utc_now(), period_id),
                )
                connection.execute(
                    """
                    UPDATE batches
                    SET status = 'Reconciled'
                    WHERE id IN (SELECT batch_id FROM reconciliation_period_batches WHERE period_id = ?)
                    """,
                    (period_id,),
                )
                logger.info("Reconciliation period %s reconciled", period_id)
                return {"success": True, "status": "Reconciled", "variance_cents": 0}

            connection.execute(
                "UPDATE reconciliation_periods SET status = 'Exception', updated_at = ? WHERE id = ?",
                (_utc_now(), period_id),
            )
            connection.execute(
                """
                INSERT INTO reconciliation_exceptions (
                    period_id,
                    exception_type,
                    expected_amount_cents,
                    actual_amount_cents,
                    variance_amount_cents,
                    description,
                    raised_by,
                    status
                )
                VALUES (?, 'Balance Mismatch', ?, ?, ?, 'Net amount does not match bank transactions', ?, 'Open')
                """,
                (period_id, expected, actual, variance, raised_by),
            )

        logger.warning(
            "Reconciliation period %s out of balance by %s",
            period_id,
            format_currency(variance),
        )
        return {"success": False, "status": "Exception", "variance_cents": variance}

    def schedule_transfer(self, period_id: int, transfer_date: str | None = None) -> sqlite3.Row:
        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            if period["status"] != "Reconciled":
                raise ValueError("Period must be Reconciled before scheduling transfer.")
            connection.execute(
                """
                UPDATE reconciliation_periods
                SET status = 'Scheduled', scheduled_transfer_date = ?, updated_at = ?
                WHERE id = ?
                """,
                (_clean(transfer_date) or period["scheduled_transfer_date"], _utc_now(), period_id),
            )
            return self._fetch_period(connection, period_id)

    def complete_transfer(
        self,
        period_id: int,
        transfer_date: str | None = None,
        reference: str | None = None,
    ) -> sqlite3.Row:
        actual_date = _clean(transfer_date) or date.today().isoformat()
        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            if period["status"] != "Scheduled":
                raise ValueError("Period must be Scheduled before completing.")
            connection.execute(
                """
                UPDATE reconciliation_periods
                SET status = 'Transferred', actual_transfer_date = ?, updated_at = ?
                WHERE id = ?
                """,
                (actual_date, _utc_now(), period_id),
            )
            connection.execute(
                """
                INSERT INTO reconciliation_bank_transactions (
                    period_id,
                    client_id,
                    transaction_date,
                    transaction_type,
                    amount_out_cents,
                    description,
                    reference_number,
                    matched,
                    statement_imported,
                    status
                )
                VALUES (?, ?, ?, 'Transfer Out', ?, 'Transfer to Client', ?, 1, 0, 'Matched')
                """,
                (
                    period_id,
                    period["client_id"],
                    actual_date,
                    period["total_period_amount_cents"],
                    _clean(reference),
                ),
            )
            return self._fetch_period(connection, period_id)

    def undo_reconciliation(self, period_id: int) -> list[int]:
        """Reopen a reconciled period and return the batch ids moved back to Closed."""

        with self._connect() as connection:
            period = self._fetch_period(connection, period_id)
            if period["status"] != "Reconciled":
                raise ValueError("Period is not reconciled. Cannot undo.")

            batch_ids = [
                int(row["id"])
                for row in connection.execute(
                    """
                    SELECT b.id
                    FROM reconciliation_period_batches rpb
                    JOIN batches b ON b.id = rpb.batch_id
                    WHERE rpb.period_id = ? AND b.status = 'Reconciled'
                    ORDER BY b.id
                    """,
                    (period_id,),
                ).fetchall()
            ]
            if batch_ids:
                connection.execute(
                    f"""
                    UPDATE batches
                    SET status = 'Closed', submitted_at = NULL
                    WHERE id IN ({_placeholders(batch_ids)})
                    """,
                    batch_ids,
                )
            connection.execute(
                """
                UPDATE reconciliation_periods
                SET status = 'Open', bank_balance_verified = 0, updated_at = ?
                WHERE id = ?
                """,
                (_utc_now(), period_id),
            )

        logger.info("Reconciliation period %s reopened, batches %s reverted", period_id, batch_ids)
        return batch_ids

    def set_item_cleared(self, item_type: str, item_id: int, cleared: bool) -> None:
        if item_type == "batch":
            table_name = "batches"
        elif item_type == "transaction":
            table_name = "reconciliation_bank_transactions"
        else:
            raise ValueError("Invalid type")

        with self._connect() as connection:
            cursor = connection.execute(
                f"UPDATE {table_name} SET cleared = ? WHERE id = ?",
                (1 if cleared else 0, item_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Item was not found.")

    def list_exceptions(self, period_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            self._fetch_period(connection, period_id)
            return connection.execute(
                """
                SELECT *
                FROM reconciliation_exceptions
                WHERE period_id = ?
                ORDER BY raised_at DESC, id DESC
                """,
                (period_id,),
            ).fetchall()

    def resolve_exception(
        self,
        exception_id: int,
        resolution_notes: str,
        resolved_by: int | None = None,
    ) -> sqlite3.Row:
        clean_notes = _clean(resolution_notes)
        if not clean_notes:
            raise ValueError("Resolution notes are required.")
        with self._connect() as connection:
            self._fetch_required(connection, "reconciliation_exceptions", exception_id, "Exception")
            connection.execute(
                """
                UPDATE reconciliation_exceptions
                SET status = 'Resolved', resolution_notes = ?, resolved_by = ?, resolved_at = ?
                WHERE id = ?
                """,
                (clean_notes, resolved_by, _utc_now(), exception_id),
            )
            return self._fetch_required(connection, "reconciliation_exceptions", exception_id, "Exception")
