"""Donation lookups, corrections, voids and acknowledgement tracking."""

from __future__ import annotations

import sqlite3
from typing import Any

from .base import BaseStore, _clean, _utc_now, apply_client_scope, cents_from_amount
from .cleaners import clean_donor_fields

ACKNOWLEDGEMENT_COLUMNS = {
    "ThankYou": "thank_you_sent_at",
    "TaxReceipt": "tax_receipt_sent_at",
}

_UPDATABLE_TEXT_FIELDS = (
    "secondary_id",
    "check_number",
    "scan_string",
    "gift_method",
    "gift_platform",
    "gift_type",
    "gift_quarter",
    "gift_date",
    "transaction_type",
    "receipt_year",
    "receipt_quarter",
    "donor_prefix",
    "donor_first_name",
    "donor_middle_name",
    "donor_last_name",
    "donor_suffix",
    "donor_address",
    "donor_city",
    "donor_state",
    "donor_zip",
    "donor_employer",
    "donor_occupation",
    "donor_phone",
    "donor_email",
    "organization_name",
    "gift_custodian",
    "gift_conduit",
    "comment",
    "campaign_id",
)

_UPDATABLE_AMOUNT_FIELDS = {
    "amount": "gift_amount_cents",
    "gift_fee": "gift_fee_cents",
    "gift_pledge_amount": "gift_pledge_amount_cents",
}


class DonationOperations(BaseStore):
    def list_donations(
        self,
        allowed_client_ids: list[int] | None = None,
        assigned_to_user_id: int | None = None,
        is_flagged: bool | None = None,
        client_id: int | None = None,
        resolution_status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if assigned_to_user_id is not None:
            where_clauses.append("dn.assigned_to_user_id = ?")
            parameters.append(assigned_to_user_id)
        if is_flagged:
            where_clauses.append("dn.is_flagged = 1")
        if client_id is not None:
            where_clauses.append("dn.client_id = ?")
            parameters.append(client_id)
        if resolution_status:
            where_clauses.append("dn.resolution_status = ?")
            parameters.append(resolution_status)
        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                dn.*,
                c.client_name,
                c.client_code,
                b.date AS batch_date,
                b.batch_code
            FROM donations dn
            LEFT JOIN clients c ON c.id = dn.client_id
            LEFT JOIN batches b ON b.id = dn.batch_id
            {where_sql}
            ORDER BY dn.created_at DESC, dn.id DESC
            LIMIT ? OFFSET ?
        """
        parameters.extend([max(1, min(limit, 500)), max(0, offset)])

        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def get_donation(self, donation_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "donations", donation_id, "Donation")

    def update_donation(self, donation_id: int, values: dict[str, Any], modified_by: int | None = None) -> sqlite3.Row:
        cleaned = clean_donor_fields(values)

        updates = ["last_modified_by = ?", "last_modified_at = ?"]
        parameters: list[Any] = [modified_by, _utc_now()]
        for field_name in _UPDATABLE_TEXT_FIELDS:
            if field_name in cleaned:
                updates.append(f"{field_name} = ?")
                parameters.append(_clean(cleaned[field_name]))
        for field_name, column in _UPDATABLE_AMOUNT_FIELDS.items():
            if cleaned.get(field_name) is not None:
                updates.append(f"{column} = ?")
                parameters.append(cents_from_amount(cleaned[field_name]))
        if "gift_year" in cleaned:
            updates.append("gift_year = ?")
            parameters.append(cleaned["gift_year"])
        if "is_inactive" in cleaned:
            updates.append("is_inactive = ?")
            parameters.append(1 if cleaned["is_inactive"] else 0)

        with self._connect() as connection:
            donation = self._fetch_required(connection, "donations", donation_id, "Donation")
            if donation["resolution_status"] == "Void":
                raise ValueError("Voided donations cannot be edited.")
            connection.execute(
                f"UPDATE donations SET {', '.join(updates)} WHERE id = ?",
                [*parameters, donation_id],
            )
            return self._fetch_required(connection, "donations", donation_id, "Donation")

    def void_donation(self, donation_id: int, modified_by: int | None = None) -> sqlite3.Row:
        with self._connect() as connection:
            donation = self._fetch_required(connection, "donations", donation_id, "Donation")
            if donation["batch_id"] is not None:
                batch = self._fetch_required(connection, "batches", donation["batch_id"], "Batch")
                if batch["status"] == "Reconciled":
                    raise ValueError("Donations in a reconciled batch cannot be voided.")
            connection.execute(
                """
                UPDATE donations
                SET resolution_status = 'Void', is_flagged = 0, last_modified_by = ?, last_modified_at = ?
                WHERE id = ?
                """,
                (modified_by, _utc_now(), donation_id),
            )
            return self._fetch_required(connection, "donations", donation_id, "Donation")

    def acknowledge_donation(self, donation_id: int, acknowledgement_type: str, sent: bool) -> str | None:
        column = ACKNOWLEDGEMENT_COLUMNS.get(acknowledgement_type)
        if column is None:
            raise ValueError("Invalid type")

        timestamp = _utc_now() if sent else None
        with self._connect() as connection:
            self._fetch_required(connection, "donations", donation_id, "Donation")
            connection.execute(
                f"UPDATE donations SET {column} = ? WHERE id = ?",
                (timestamp, donation_id),
            )
        return timestamp

    def resolve_flag(self, donation_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            self._fetch_required(connection, "donations", donation_id, "Donation")
            connection.execute("UPDATE donations SET is_flagged = 0 WHERE id = ?", (donation_id,))
            return connection.execute(
                "SELECT id, is_flagged, resolution_status FROM donations WHERE id = ?",
                (donation_id,),
            ).fetchone()
