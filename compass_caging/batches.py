"""Batches, their supporting documents and the donations keyed into them."""

from __future__ import annotations

import io
import re
import sqlite3
from datetime import date
from typing import Any

import pandas as pd

from .admin import user_initials
from .base import (
    PayloadTooLargeError,
    _clean,
    _lastrowid,
    apply_client_scope,
    cents_from_amount,
)
from .cleaners import clean_donor_fields
from .logging_config import get_logger
from .resolution import ResolutionOperations
from .rules import RuleOperations

logger = get_logger(__name__)

BATCH_STATUSES = ("Open", "Submitted", "Closed", "Reconciled")
LOCKED_BATCH_STATUSES = ("Closed", "Reconciled")

DEFAULT_MAX_DOCUMENT_BYTES = int(4.5 * 1024 * 1024)

_REPLY_SLIPS = ("ReplySlipsPDF", "Reply Slips")
_CHECK_IMAGES = ("ChecksPDF", "Check Images")
_DEPOSIT_SLIP = ("DepositSlip", "Deposit Slip")

REQUIRED_DOCUMENTS: dict[str, tuple[tuple[str, str], ...]] = {
    "Checks": (_REPLY_SLIPS, _CHECK_IMAGES),
    "Mixed": (_REPLY_SLIPS, _CHECK_IMAGES),
    "Credit Card": (_REPLY_SLIPS,),
    "Cash": (_REPLY_SLIPS, _DEPOSIT_SLIP),
}

# Optional keyed fields copied straight onto the donation row.
_DONATION_TEXT_FIELDS = (
    "scan_string",
    "gift_quarter",
    "receipt_year",
    "receipt_quarter",
    "donor_prefix",
    "donor_first_name",
    "donor_middle_name",
    "donor_last_name",
    "donor_suffix",
    "donor_email",
    "donor_phone",
    "donor_address",
    "donor_city",
    "donor_state",
    "donor_zip",
    "donor_employer",
    "donor_occupation",
    "organization_name",
    "gift_custodian",
    "gift_conduit",
    "comment",
    "campaign_id",
    "routing_number",
    "account_number",
    "check_sequence_number",
    "aux_on_us",
    "epc",
)


def sanitize_file_name(file_name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", file_name)


def missing_close_documents(payment_category: str, uploaded_types: set[str]) -> list[str]:
    return [
        label
        for document_type, label in REQUIRED_DOCUMENTS.get(payment_category, ())
        if document_type not in uploaded_types
    ]


class BatchOperations(RuleOperations, ResolutionOperations):
    def create_batch(
        self,
        client_id: int,
        created_by: int,
        entry_mode: str = "Manual",
        payment_category: str = "Donations",
        zeros_type: str | None = None,
        description: str | None = None,
        batch_date: str | None = None,
        account_id: int | None = None,
        default_gift_method: str | None = "Check",
        default_gift_platform: str | None = "Cage",
        default_transaction_type: str | None = "Contribution",
        default_gift_year: int | None = None,
        default_gift_quarter: str | None = "Q1",
        default_gift_type: str | None = "Individual/Trust/IRA",
    ) -> sqlite3.Row:
        effective_date = _clean(batch_date) or date.today().isoformat()

        with self._connect() as connection:
            client = self._fetch_required(connection, "clients", client_id, "Client")
            user = self._fetch_required(connection, "users", created_by, "User")
            if account_id is not None:
                account = self._fetch_required(connection, "client_bank_accounts", account_id, "Bank account")
                if account["client_id"] != client["id"]:
                    raise ValueError("Bank account does not belong to this client.")

            daily_count = connection.execute(
                "SELECT COUNT(*) AS count FROM batches WHERE created_by = ? AND date = ?",
                (created_by, effective_date),
            ).fetchone()["count"]
            batch_code = f"{user_initials(user)}.{int(daily_count) + 1:02d}"

            cursor = connection.execute(
                """
                INSERT INTO batches (
                    batch_code,
                    client_id,
                    account_id,
                    entry_mode,
                    payment_category,
                    zeros_type,
                    description,
                    status,
                    date,
                    created_by,
                    default_gift_method,
                    default_gift_platform,
                    default_transaction_type,
                    default_gift_year,
                    default_gift_quarter,
                    default_gift_type
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 'Open', ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    batch_code,
                    client_id,
                    account_id,
                    _clean(entry_mode) or "Manual",
                    _clean(payment_category) or "Donations",
                    _clean(zeros_type),
                    _clean(description),
                    effective_date,
                    created_by,
                    _clean(default_gift_method) or "Check",
                    _clean(default_gift_platform) or "Cage",
                    _clean(default_transaction_type) or "Contribution",
                    default_gift_year or int(effective_date[:4]),
                    _clean(default_gift_quarter) or "Q1",
                    _clean(default_gift_type) or "Individual/Trust/IRA",
                ),
            )
            batch_id = _lastrowid(cursor)
            logger.info("Created batch %s for client %s", batch_code, client["client_code"])
            return self._fetch_required(connection, "batches", batch_id, "Batch")

    def list_batches(
        self,
        allowed_client_ids: list[int] | None = None,
        client_id: int | None = None,
        status: str | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if client_id is not None:
            where_clauses.append("b.client_id = ?")
            parameters.append(client_id)
        if status:
            where_clauses.append("b.status = ?")
            parameters.append(status)
        apply_client_scope("b.client_id", allowed_client_ids, where_clauses, parameters)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                b.*,
                c.client_code,
                c.client_name,
                u.username AS created_by_name,
                COUNT(dn.id) AS donation_count,
                COALESCE(SUM(dn.gift_amount_cents), 0) AS total_amount_cents
            FROM batches b
            JOIN clients c ON c.id = b.client_id
            LEFT JOIN users u ON u.id = b.created_by
            LEFT JOIN donations dn ON dn.batch_id = b.id
            {where_sql}
            GROUP BY b.id
            ORDER BY b.created_at DESC, b.id DESC
        """
        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def get_batch(self, batch_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            self._fetch_required(connection, "batches", batch_id, "Batch")
            return connection.execute(
                """
                SELECT b.*, c.client_code, c.client_name, a.account_name
                FROM batches b
                LEFT JOIN clients c ON c.id = b.client_id
                LEFT JOIN client_bank_accounts a ON a.id = b.account_id
                WHERE b.id = ?
                """,
                (batch_id,),
            ).fetchone()

    def update_batch_status(self, batch_id: int, status: str) -> sqlite3.Row:
        if status not in BATCH_STATUSES:
            raise ValueError("Status must be Open, Submitted, Closed or Reconciled.")

        with self._connect() as connection:
            batch = self._fetch_required(connection, "batches", batch_id, "Batch")

            if status == "Closed":
                uploaded_types = {
                    row["document_type"]
                    for row in connection.execute(
                        "SELECT document_type FROM batch_documents WHERE batch_id = ?",
                        (batch_id,),
                    ).fetchall()
                }
                missing = missing_close_documents(batch["payment_category"], uploaded_types)
                if missing:
                    raise ValueError(
                        f"Cannot close batch. Missing required documents: {', '.join(missing)}"
                    )

            if status == "Submitted":
                connection.execute(
                    "UPDATE batches SET status = ?, submitted_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (status, batch_id),
                )
            else:
                connection.execute(
                    "UPDATE batches SET status = ? WHERE id = ?",
                    (status, batch_id),
                )
            return self._fetch_required(connection, "batches", batch_id, "Batch")

    def add_batch_document(
        self,
        batch_id: int,
        document_type: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        uploaded_by: int | None = None,
        max_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES,
    ) -> sqlite3.Row:
        clean_type = _clean(document_type)
        clean_name = _clean(file_name)
        if not clean_type or not clean_name:
            raise ValueError("Missing file or type")
        if len(content) > max_bytes:
            raise PayloadTooLargeError(
                f"File too large. Max size is {max_bytes / (1024 * 1024):g}MB."
            )

        with self._connect() as connection:
            self._fetch_required(connection, "batches", batch_id, "Batch")
            cursor = connection.execute(
                """
                INSERT INTO batch_documents (
                    batch_id,
                    document_type,
                    file_name,
                    content_type,
                    content,
                    size_bytes,
                    uploaded_by
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    batch_id,
                    clean_type,
                    sanitize_file_name(clean_name),
                    content_type,
                    content,
                    len(content),
                    uploaded_by,
                ),
            )
            return connection.execute(
                """
                SELECT id, batch_id, document_type, file_name, content_type, size_bytes, uploaded_by, uploaded_at
                FROM batch_documents
                WHERE id = ?
                """,
                (_lastrowid(cursor),),
            ).fetchone()

    def list_batch_documents(self, batch_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT id, batch_id, document_type, file_name, content_type, size_bytes, uploaded_by, uploaded_at
                FROM batch_documents
                WHERE batch_id = ?
                ORDER BY uploaded_at DESC, id DESC
                """,
                (batch_id,),
            ).fetchall()

    def get_batch_document(self, document_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "batch_documents", document_id, "Document")

    def list_batch_donations(self, batch_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            self._fetch_required(connection, "batches", batch_id, "Batch")
            return connection.execute(
                """
                SELECT *
                FROM donations
                WHERE batch_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (batch_id,),
            ).fetchall()

    def quick_add_donation(
        self,
        batch_id: int,
        amount: float,
        check_number: str | None = None,
        scan_string: str | None = None,
        created_by: int | None = None,
    ) -> sqlite3.Row:
        amount_cents = cents_from_amount(amount)
        if amount_cents == 0:
            raise ValueError("Amount is required.")

        with self._connect() as connection:
            batch = self._fetch_required(connection, "batches", batch_id, "Batch")
            if batch["status"] in LOCKED_BATCH_STATUSES:
                raise ValueError(f"Batch is {batch['status']}. Donations cannot be added.")

            cursor = connection.execute(
                """
                INSERT INTO donations (
                    client_id,
                    batch_id,
                    gift_amount_cents,
                    secondary_id,
                    check_number,
                    scan_string,
                    gift_method,
                    gift_platform,
                    transaction_type,
                    gift_date,
                    batch_date,
                    created_by
                )
                VALUES (?, ?, ?, ?, ?, ?, 'Check', 'Cage', 'Donation', ?, ?, ?)
                """,
                (
                    batch["client_id"],
                    batch_id,
                    amount_cents,
                    _clean(check_number),
                    _clean(check_number),
                    _clean(scan_string),
                    date.today().isoformat(),
                    batch["date"],
                    created_by,
                ),
            )
            return self._fetch_required(connection, "donations", _lastrowid(cursor), "Donation")

    def save_donation(
        self,
        batch_id: int,
        values: dict[str, Any],
        created_by: int | None = None,
    ) -> sqlite3.Row:
        """Key a full donation into a batch.

        Donor fields are normalized, missing coding falls back to the batch
        defaults and the first matching assignment rule picks the owner. A
        ``resolution_status`` of ``Pending`` flags the gift and queues donor
        candidates for review.
        """

        amount_cents = cents_from_amount(values.get("amount"))
        if amount_cents == 0:
            raise ValueError("Amount is required.")

        donation = clean_donor_fields(values)
        donation["gift_amount_cents"] = amount_cents
        pending = donation.get("resolution_status") == "Pending"

        assigned_to = self.find_assigned_user(donation)

        with self._connect() as connection:
            batch = self._fetch_required(connection, "batches", batch_id, "Batch")
            if batch["status"] in LOCKED_BATCH_STATUSES:
                raise ValueError(f"Batch is {batch['status']}. Donations cannot be added.")

            check_number = _clean(donation.get("check_number"))
            row: dict[str, Any] = {
                field_name: _clean(donation.get(field_name)) for field_name in _DONATION_TEXT_FIELDS
            }
            row.update(
                {
                    "client_id": batch["client_id"],
                    "batch_id": batch_id,
                    "gift_amount_cents": amount_cents,
                    "gift_fee_cents": cents_from_amount(donation.get("gift_fee")),
                    "gift_pledge_amount_cents": cents_from_amount(donation.get("gift_pledge_amount")),
                    "secondary_id": check_number,
                    "check_number": check_number,
                    "transaction_type": _clean(donation.get("transaction_type"))
                    or batch["default_transaction_type"]
                    or "Contribution",
                    "gift_method": _clean(donation.get("gift_method"))
                    or batch["default_gift_method"]
                    or "Check",
                    "gift_platform": _clean(donation.get("gift_platform"))
                    or batch["default_gift_platform"]
                    or "Cage",
                    "gift_type": _clean(donation.get("gift_type"))
                    or batch["default_gift_type"]
                    or "Individual/Trust/IRA",
                    "gift_year": donation.get("gift_year") or batch["default_gift_year"],
                    "gift_date": _clean(donation.get("gift_date")) or date.today().isoformat(),
                    "batch_date": batch["date"],
                    "is_inactive": 1 if donation.get("is_inactive") else 0,
                    "resolution_status": "Pending" if pending else "Resolved",
                    "is_flagged": 1 if pending else 0,
                    "assigned_to_user_id": assigned_to,
                    "created_by": created_by,
                }
            )
            if not row["gift_quarter"]:
                row["gift_quarter"] = batch["default_gift_quarter"]

            columns = list(row)
            cursor = connection.execute(
                f"""
                INSERT INTO donations ({', '.join(columns)})
                VALUES ({', '.join(f':{column}' for column in columns)})
                """,
                row,
            )
            donation_id = _lastrowid(cursor)

            if pending:
                candidate_count = self._generate_resolution_candidates(connection, donation_id, row)
                logger.info(
                    "Donation %s queued for resolution with %s candidates",
                    donation_id,
                    candidate_count,
                )

            return self._fetch_required(connection, "donations", donation_id, "Donation")

    def deposit_slip(self, batch_id: int) -> dict[str, Any]:
        batch = self.get_batch(batch_id)
        with self._connect() as connection:
            donations = connection.execute(
                """
                SELECT *
                FROM donations
                WHERE
                    batch_id = ?
                    AND gift_method IN ('Check', 'Cash')
                    AND resolution_status <> 'Void'
                ORDER BY id ASC
                """,
                (batch_id,),
            ).fetchall()

        if not donations:
            raise ValueError("No checks or cash found in this batch to deposit.")

        items: list[dict[str, Any]] = []
        for sequence, donation in enumerate(donations, start=1):
            donor_name = _clean(donation["organization_name"]) or " ".join(
                part for part in (donation["donor_first_name"], donation["donor_last_name"]) if part
            )
            items.append(
                {
                    "sequence": sequence,
                    "donation_id": donation["id"],
                    "gift_method": donation["gift_method"],
                    "check_number": donation["check_number"] or donation["secondary_id"] or "-",
                    "donor_name": donor_name[:30],
                    "amount_cents": int(donation["gift_amount_cents"]),
                }
            )

        return {
            "batch_id": batch["id"],
            "batch_code": batch["batch_code"],
            "client_code": batch["client_code"] or "Unknown Client",
            "account_name": batch["account_name"] or "Main Operating Account",
            "date": date.today().isoformat(),
            "items": items,
            "item_count": len(items),
            "total_cents": sum(item["amount_cents"] for item in items),
        }

    def deposit_slip_csv(self, batch_id: int) -> tuple[str, str]:
        slip = self.deposit_slip(batch_id)
        frame = pd.DataFrame(
            [
                {
                    "#": item["sequence"],
                    "Method": item["gift_method"],
                    "Check Number": item["check_number"],
                    "Donor Name": item["donor_name"],
                    "Amount": f"{item['amount_cents'] / 100:.2f}",
                }
                for item in slip["items"]
            ]
        )
        total_row = pd.DataFrame(
            [
                {
                    "#": "",
                    "Method": "",
                    "Check Number": "",
                    "Donor Name": f"TOTAL ({slip['item_count']} items)",
                    "Amount": f"{slip['total_cents'] / 100:.2f}",
                }
            ]
        )
        buffer = io.StringIO()
        pd.concat([frame, total_row], ignore_index=True).to_csv(buffer, index=False)
        return buffer.getvalue(), f"DepositSlip_{slip['batch_code']}.csv"
