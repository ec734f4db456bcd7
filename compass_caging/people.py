"""Donor directory: profiles, identity resolution, dedupe and relationship records."""

from __future__ import annotations

import io
import sqlite3
from difflib import SequenceMatcher
from typing import Any

import pandas as pd

from .base import (
    BaseStore,
    _clean,
    _lastrowid,
    _normalize_digits,
    _normalize_token,
    _placeholders,
    _utc_now,
    apply_client_scope,
    cents_from_amount,
)
from .logging_config import get_logger

logger = get_logger(__name__)

PEOPLE_PAGE_SIZE = 20
ACKNOWLEDGEMENT_THRESHOLD_CENTS = 5000
ACKNOWLEDGEMENT_TYPES = ("ThankYou", "TaxReceipt")


def _build_alias_lookup() -> dict[str, set[str]]:
    groups = (
        ("alexander", "alex", "xander", "sasha"),
        ("andrew", "andy", "drew"),
        ("anthony", "tony"),
        ("benjamin", "ben", "benny"),
        ("charles", "charlie", "chuck"),
        ("christopher", "chris"),
        ("daniel", "dan", "danny"),
        ("david", "dave", "davy"),
        ("deborah", "debbie", "deb"),
        ("donald", "don", "donnie"),
        ("edward", "ed", "eddie", "ted"),
        ("elizabeth", "liz", "beth", "lizzy", "eliza", "betty"),
        ("gerald", "gerry", "jerry"),
        ("james", "jim", "jimmy"),
        ("jennifer", "jen", "jenny"),
        ("john", "jack", "johnny"),
        ("joseph", "joe", "joey"),
        ("katherine", "kathryn", "kate", "katie", "kat", "kathy"),
        ("lawrence", "larry"),
        ("margaret", "maggie", "meg", "peggy"),
        ("matthew", "matt"),
        ("michael", "mike", "mikey"),
        ("nicholas", "nick", "nicky", "nik"),
        ("patricia", "pat", "patty", "trish"),
        ("richard", "rick", "dick", "rich"),
        ("robert", "rob", "bob", "bobby"),
        ("ronald", "ron", "ronnie"),
        ("samuel", "sam", "sammy"),
        ("stephen", "steve", "steven"),
        ("susan", "sue", "suzy"),
        ("thomas", "tom", "tommy"),
        ("william", "will", "bill", "billy", "liam"),
    )

    lookup: dict[str, set[str]] = {}
    for group in groups:
        normalized_group = {token for token in (_normalize_token(name) for name in group) if token}
        for token in normalized_group:
            lookup.setdefault(token, set()).update(normalized_group)
    return lookup


_ALIAS_LOOKUP = _build_alias_lookup()


def _name_aliases(value: str | None) -> set[str]:
    token = _normalize_token(value)
    if not token:
        return set()
    aliases = {token}
    aliases.update(_ALIAS_LOOKUP.get(token, set()))
    return aliases


def _similarity(left: str, right: str) -> float:
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def donor_search_score(row: sqlite3.Row | dict[str, Any], search_term: str) -> float:
    query_norm = _normalize_token(search_term)
    if not query_norm:
        return 0.0

    query_digits = _normalize_digits(search_term)
    search_tokens = [token for token in search_term.strip().split() if token]

    first_name = row["first_name"] or ""
    last_name = row["last_name"] or ""
    organization_name = row["organization_name"] or ""
    email = row["email"] or ""
    phone = row["phone"] or ""

    first_norm = _normalize_token(first_name)
    last_norm = _normalize_token(last_name)
    full_norm = _normalize_token(f"{first_name} {last_name}")
    org_norm = _normalize_token(organization_name)
    email_norm = _normalize_token(email)
    phone_digits = _normalize_digits(phone)

    searchable_text = [full_norm, first_norm, last_norm, org_norm, email_norm]

    score = 0.0

    if any(query_norm == field for field in searchable_text if field):
        score += 240
    elif any(query_norm in field for field in searchable_text if field):
        score += 150

    if len(query_digits) >= 7 and phone_digits:
        if query_digits == phone_digits:
            score += 240
        elif query_digits in phone_digits:
            score += 150

    for token in search_tokens:
        token_aliases = _name_aliases(token)
        if first_norm and first_norm in token_aliases:
            score += 130
        if last_norm and last_norm in token_aliases:
            score += 90

    best_ratio = max(
        _similarity(query_norm, first_norm),
        _similarity(query_norm, last_norm),
        _similarity(query_norm, full_norm),
        _similarity(query_norm, org_norm),
        _similarity(query_norm, email_norm),
    )

    if best_ratio >= 0.9:
        score += 120
    elif best_ratio >= 0.8:
        score += 80
    elif best_ratio >= 0.7:
        score += 45
    elif best_ratio >= 0.62:
        score += 20

    if first_norm.startswith(query_norm) or last_norm.startswith(query_norm):
        score += 70

    return score


def donor_display_name(row: sqlite3.Row | dict[str, Any]) -> str:
    organization_name = _clean(row["organization_name"])
    first_name = (row["first_name"] or "").strip()
    last_name = (row["last_name"] or "").strip()
    full_name = f"{first_name} {last_name}".strip()
    return full_name or organization_name or "Unnamed donor"


class PeopleOperations(BaseStore):
    def add_donor(
        self,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip_code: str | None = None,
        organization_name: str | None = None,
    ) -> int:
        clean_first = _clean(first_name)
        clean_last = _clean(last_name)
        clean_email = _clean(email)
        clean_org = _clean(organization_name)
        if not (clean_first and clean_last) and not clean_email and not clean_org:
            raise ValueError("Donors require a first and last name, an email or an organization.")

        with self._connect() as connection:
            return self._insert_donor(
                connection,
                {
                    "first_name": clean_first,
                    "last_name": clean_last,
                    "email": clean_email,
                    "phone": _clean(phone),
                    "address": _clean(address),
                    "city": _clean(city),
                    "state": _clean(state),
                    "zip": _clean(zip_code),
                    "organization_name": clean_org,
                },
            )

    @staticmethod
    def _insert_donor(connection: sqlite3.Connection, values: dict[str, Any]) -> int:
        cursor = connection.execute(
            """
            INSERT INTO donors (
                first_name,
                last_name,
                email,
                phone,
                address,
                city,
                state,
                zip,
                organization_name
            )
            VALUES (
                :first_name,
                :last_name,
                :email,
                :phone,
                :address,
                :city,
                :state,
                :zip,
                :organization_name
            )
            """,
            values,
        )
        return _lastrowid(cursor)

    def get_donor(self, donor_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "donors", donor_id, "Donor")

    def update_donor(self, donor_id: int, **fields: Any) -> sqlite3.Row:
        allowed = {
            "first_name",
            "last_name",
            "email",
            "phone",
            "address",
            "city",
            "state",
            "zip",
            "organization_name",
        }
        updates = ["updated_at = ?"]
        parameters: list[Any] = [_utc_now()]
        for key, value in fields.items():
            if key in allowed and value is not None:
                updates.append(f"{key} = ?")
                parameters.append(_clean(value))

        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            connection.execute(
                f"UPDATE donors SET {', '.join(updates)} WHERE id = ?",
                [*parameters, donor_id],
            )
            return self._fetch_required(connection, "donors", donor_id, "Donor")

    def set_donor_alert(self, donor_id: int, message: str | None) -> sqlite3.Row:
        clean_message = _clean(message)
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            connection.execute(
                "UPDATE donors SET has_alert = ?, alert_message = ?, updated_at = ? WHERE id = ?",
                (1 if clean_message else 0, clean_message, _utc_now(), donor_id),
            )
            return self._fetch_required(connection, "donors", donor_id, "Donor")

    def list_people(
        self,
        search_term: str = "",
        city: str | None = None,
        min_total: float | None = None,
        page: int = 1,
        smart_search: bool = False,
    ) -> dict[str, Any]:
        cleaned_search = search_term.strip()
        page_number = max(1, page)

        where_clauses: list[str] = []
        parameters: list[Any] = []
        if cleaned_search and not smart_search:
            wildcard = f"%{cleaned_search}%"
            where_clauses.append(
                """
                (
                    COALESCE(d.first_name, '') LIKE ? OR
                    COALESCE(d.last_name, '') LIKE ? OR
                    COALESCE(d.email, '') LIKE ? OR
                    COALESCE(d.organization_name, '') LIKE ?
                )
                """
            )
            parameters.extend([wildcard, wildcard, wildcard, wildcard])
        if city:
            where_clauses.append("COALESCE(d.city, '') LIKE ?")
            parameters.append(f"%{city.strip()}%")

        having_sql = ""
        if min_total is not None:
            having_sql = "HAVING COALESCE(SUM(dn.gift_amount_cents), 0) >= ?"
            parameters.append(cents_from_amount(min_total))

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                d.*,
                COUNT(dn.id) AS total_gifts,
                COALESCE(SUM(dn.gift_amount_cents), 0) AS lifetime_value_cents,
                MAX(dn.gift_date) AS last_gift_date
            FROM donors d
            LEFT JOIN donations dn ON dn.donor_id = d.id
            {where_sql}
            GROUP BY d.id
            {having_sql}
            ORDER BY lifetime_value_cents DESC, d.id DESC
        """

        with self._connect() as connection:
            rows = connection.execute(query, parameters).fetchall()

        if cleaned_search and smart_search:
            scored = [
                (donor_search_score(row, cleaned_search), row)
                for row in rows
            ]
            scored = [item for item in scored if item[0] >= 55]
            scored.sort(
                key=lambda item: (item[0], item[1]["lifetime_value_cents"], item[1]["id"]),
                reverse=True,
            )
            rows = [row for _, row in scored]

        offset = (page_number - 1) * PEOPLE_PAGE_SIZE
        page_rows = rows[offset : offset + PEOPLE_PAGE_SIZE]
        return {
            "data": [dict(row) for row in page_rows],
            "page": page_number,
            "has_more": len(rows) > offset + PEOPLE_PAGE_SIZE,
        }

    def donor_detail(self, donor_id: int) -> dict[str, Any]:
        with self._connect() as connection:
            donor = self._fetch_required(connection, "donors", donor_id, "Donor")
            history = connection.execute(
                """
                SELECT
                    dn.id,
                    dn.gift_date,
                    dn.gift_amount_cents,
                    dn.gift_method,
                    dn.gift_platform,
                    dn.batch_id,
                    dn.check_number,
                    c.client_name,
                    c.client_code
                FROM donations dn
                LEFT JOIN clients c ON c.id = dn.client_id
                WHERE dn.donor_id = ?
                ORDER BY dn.gift_date DESC, dn.id DESC
                """,
                (donor_id,),
            ).fetchall()

        total_given = sum(int(row["gift_amount_cents"]) for row in history)
        gift_count = len(history)
        return {
            "profile": dict(donor),
            "stats": {
                "total_given_cents": total_given,
                "gift_count": gift_count,
                "avg_gift_cents": round(total_given / gift_count) if gift_count else 0,
            },
            "history": [dict(row) for row in history],
        }

    def donor_history_csv(self, donor_id: int) -> tuple[str, str]:
        with self._connect() as connection:
            donor = self._fetch_required(connection, "donors", donor_id, "Donor")
            rows = connection.execute(
                """
                SELECT
                    dn.gift_date,
                    dn.gift_amount_cents,
                    dn.check_number,
                    b.payment_category
                FROM donations dn
                LEFT JOIN batches b ON b.id = dn.batch_id
                WHERE dn.donor_id = ?
                ORDER BY dn.gift_date DESC, dn.id DESC
                """,
                (donor_id,),
            ).fetchall()

        frame = pd.DataFrame(
            [
                {
                    "Date": row["gift_date"],
                    "Amount": f"{int(row['gift_amount_cents']) / 100:.2f}",
                    "Check Number": row["check_number"] or "",
                    "Category": row["payment_category"] or "",
                }
                for row in rows
            ],
            columns=["Date", "Amount", "Check Number", "Category"],
        )
        buffer = io.StringIO()
        frame.to_csv(buffer, index=False)

        name_part = "_".join(
            part for part in (donor["first_name"], donor["last_name"]) if part
        ) or f"donor_{donor_id}"
        return buffer.getvalue(), f"history_{name_part}.csv"

    def resolve_donation_identity(
        self,
        connection: sqlite3.Connection,
        donation: sqlite3.Row | dict[str, Any],
    ) -> int | None:
        """Link a donation to a donor by email, then exact name, else a new donor."""

        if donation["donor_id"]:
            return int(donation["donor_id"])

        email = _clean(donation["donor_email"])
        first = _clean(donation["donor_first_name"])
        last = _clean(donation["donor_last_name"])
        donor_id: int | None = None

        if email and len(email) > 5 and "@" in email:
            match = connection.execute(
                "SELECT id FROM donors WHERE LOWER(email) = LOWER(?) ORDER BY id LIMIT 1",
                (email,),
            ).fetchone()
            if match is not None:
                donor_id = int(match["id"])

        if donor_id is None and first and last:
            match = connection.execute(
                """
                SELECT id
                FROM donors
                WHERE LOWER(first_name) = LOWER(?) AND LOWER(last_name) = LOWER(?)
                ORDER BY id
                LIMIT 1
                """,
                (first, last),
            ).fetchone()
            if match is not None:
                donor_id = int(match["id"])

        if donor_id is None and ((first and last) or email):
            donor_id = self._insert_donor(
                connection,
                {
                    "first_name": first,
                    "last_name": last,
                    "email": email,
                    "phone": _clean(donation["donor_phone"]),
                    "address": _clean(donation["donor_address"]),
                    "city": _clean(donation["donor_city"]),
                    "state": _clean(donation["donor_state"]),
                    "zip": _clean(donation["donor_zip"]),
                    "organization_name": _clean(donation["organization_name"]),
                },
            )

        if donor_id is not None:
            connection.execute(
                "UPDATE donations SET donor_id = ? WHERE id = ?",
                (donor_id, donation["id"]),
            )
        return donor_id

    def resolve_batch_donations(self, batch_ids: list[int]) -> int:
        if not batch_ids:
            return 0

        linked = 0
        with self._connect() as connection:
            donations = connection.execute(
                f"""
                SELECT *
                FROM donations
                WHERE batch_id IN ({_placeholders(batch_ids)}) AND donor_id IS NULL
                ORDER BY id
                """,
                batch_ids,
            ).fetchall()
            logger.info(
                "Resolving identities for %s donations in batches %s",
                len(donations),
                batch_ids,
            )
            for donation in donations:
                if self.resolve_donation_identity(connection, donation) is not None:
                    linked += 1
        return linked

    def lookup_duplicates(
        self,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        address: str | None = None,
        limit: int = 5,
    ) -> list[dict[str, Any]]:
        clean_first = _clean(first_name)
        clean_last = _clean(last_name)
        clean_email = _clean(email)
        clean_address = _clean(address)
        if not (clean_first or clean_last) and not clean_email:
            return []

        address_fragment = f"%{clean_address.split()[0]}%" if clean_address else None
        first_prefix = f"{clean_first}%" if clean_first else None

        query = """
            SELECT
                id,
                first_name,
                last_name,
                email,
                address,
                city,
                state,
                zip,
                CASE
                    WHEN :email IS NOT NULL AND LOWER(email) = LOWER(:email) THEN 1.0
                    WHEN :first IS NOT NULL AND :last IS NOT NULL
                        AND first_name LIKE :first AND LOWER(last_name) = LOWER(:last) THEN 0.9
                    WHEN :last IS NOT NULL AND :address IS NOT NULL
                        AND LOWER(last_name) = LOWER(:last) AND address LIKE :address THEN 0.8
                    ELSE 0.5
                END AS confidence
            FROM donors
            WHERE
                (:email IS NOT NULL AND LOWER(email) = LOWER(:email))
                OR (
                    :first IS NOT NULL AND :last IS NOT NULL
                    AND first_name LIKE :first AND LOWER(last_name) = LOWER(:last)
                )
                OR (
                    :last IS NOT NULL AND :address IS NOT NULL
                    AND LOWER(last_name) = LOWER(:last) AND address LIKE :address
                )
            ORDER BY confidence DESC, id ASC
            LIMIT :limit
        """
        with self._connect() as connection:
            rows = connection.execute(
                query,
                {
                    "email": clean_email,
                    "first": first_prefix,
                    "last": clean_last,
                    "address": address_fragment,
                    "limit": max(1, limit),
                },
            ).fetchall()
        return [dict(row) for row in rows]

    def scan_duplicate_donors(self) -> list[dict[str, Any]]:
        with self._connect() as connection:
            email_groups = connection.execute(
                """
                SELECT LOWER(email) AS value, COUNT(*) AS count, GROUP_CONCAT(id) AS ids
                FROM donors
                WHERE email IS NOT NULL AND TRIM(email) <> ''
                GROUP BY LOWER(email)
                HAVING COUNT(*) > 1
                ORDER BY value
                """
            ).fetchall()
            name_groups = connection.execute(
                """
                SELECT
                    first_name || ' ' || last_name AS value,
                    COUNT(*) AS count,
                    GROUP_CONCAT(id) AS ids
                FROM donors
                WHERE
                    first_name IS NOT NULL AND TRIM(first_name) <> ''
                    AND last_name IS NOT NULL AND TRIM(last_name) <> ''
                GROUP BY LOWER(first_name), LOWER(last_name)
                HAVING COUNT(*) > 1
                ORDER BY value
                """
            ).fetchall()

            all_ids: set[int] = set()
            for row in [*email_groups, *name_groups]:
                all_ids.update(int(value) for value in row["ids"].split(","))

            donor_map: dict[int, dict[str, Any]] = {}
            if all_ids:
                ordered_ids = sorted(all_ids)
                donors = connection.execute(
                    f"SELECT * FROM donors WHERE id IN ({_placeholders(ordered_ids)})",
                    ordered_ids,
                ).fetchall()
                donor_map = {int(row["id"]): dict(row) for row in donors}

        results: list[dict[str, Any]] = []
        for field, groups in (("Email", email_groups), ("Name", name_groups)):
            for row in groups:
                ids = sorted(int(value) for value in row["ids"].split(","))
                results.append(
                    {
                        "field": field,
                        "value": row["value"],
                        "count": int(row["count"]),
                        "donors": [donor_map[donor_id] for donor_id in ids if donor_id in donor_map],
                    }
                )
        return results

    def merge_donors(self, primary_donor_id: int, secondary_donor_ids: list[int]) -> int:
        secondary_ids = sorted({donor_id for donor_id in secondary_donor_ids if donor_id != primary_donor_id})
        if not secondary_ids:
            return 0

        with self._connect() as connection:
            self._fetch_required(connection, "donors", primary_donor_id, "Primary donor")
            placeholders = _placeholders(secondary_ids)
            for table_name in (
                "donations",
                "pledges",
                "donor_tasks",
                "donor_files",
                "donor_notes",
                "donation_resolution_candidates",
            ):
                connection.execute(
                    f"UPDATE {table_name} SET donor_id = ? WHERE donor_id IN ({placeholders})",
                    [primary_donor_id, *secondary_ids],
                )
            connection.execute(
                f"""
                INSERT OR IGNORE INTO donor_subscriptions (user_id, donor_id)
                SELECT user_id, ? FROM donor_subscriptions WHERE donor_id IN ({placeholders})
                """,
                [primary_donor_id, *secondary_ids],
            )
            cursor = connection.execute(
                f"DELETE FROM donors WHERE id IN ({placeholders})",
                secondary_ids,
            )
            merged = cursor.rowcount

        logger.info("Merged donors %s into %s", secondary_ids, primary_donor_id)
        return merged

    def list_donor_notes(self, donor_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                "SELECT * FROM donor_notes WHERE donor_id = ? ORDER BY created_at DESC, id DESC",
                (donor_id,),
            ).fetchall()

    def add_donor_note(self, donor_id: int, content: str, author_name: str | None) -> sqlite3.Row:
        clean_content = _clean(content)
        if not clean_content:
            raise ValueError("Content required.")
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            cursor = connection.execute(
                "INSERT INTO donor_notes (donor_id, author_name, content) VALUES (?, ?, ?)",
                (donor_id, _clean(author_name) or "Unknown", clean_content),
            )
            return self._fetch_required(connection, "donor_notes", _lastrowid(cursor), "Note")

    def list_donor_tasks(self, donor_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT
                    t.*,
                    u.username AS assigned_to_name,
                    c.username AS created_by_name
                FROM donor_tasks t
                LEFT JOIN users u ON u.id = t.assigned_to
                LEFT JOIN users c ON c.id = t.created_by
                WHERE t.donor_id = ?
                ORDER BY t.is_completed ASC, COALESCE(t.due_date, '9999-12-31') ASC, t.created_at DESC
                """,
                (donor_id,),
            ).fetchall()

    def add_donor_task(
        self,
        donor_id: int,
        description: str,
        created_by: int | None,
        assigned_to: int | None = None,
        due_date: str | None = None,
    ) -> int:
        clean_description = _clean(description)
        if not clean_description:
            raise ValueError("Description required.")
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            cursor = connection.execute(
                """
                INSERT INTO donor_tasks (donor_id, description, assigned_to, due_date, created_by)
                VALUES (?, ?, ?, ?, ?)
                """,
                (donor_id, clean_description, assigned_to, _clean(due_date), created_by),
            )
            return _lastrowid(cursor)

    def set_task_completed(self, task_id: int, is_completed: bool) -> None:
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE donor_tasks SET is_completed = ?, completed_at = ? WHERE id = ?",
                (1 if is_completed else 0, _utc_now() if is_completed else None, task_id),
            )
            if cursor.rowcount == 0:
                self._fetch_required(connection, "donor_tasks", task_id, "Task")

    def delete_donor_task(self, task_id: int) -> None:
        with self._connect() as connection:
            self._fetch_required(connection, "donor_tasks", task_id, "Task")
            connection.execute("DELETE FROM donor_tasks WHERE id = ?", (task_id,))

    def add_pledge(self, donor_id: int, amount: float, campaign_id: str | None = None) -> sqlite3.Row:
        amount_cents = cents_from_amount(amount)
        if amount_cents <= 0:
            raise ValueError("Pledge amount must be greater than zero.")
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            cursor = connection.execute(
                "INSERT INTO pledges (donor_id, campaign_id, amount_cents) VALUES (?, ?, ?)",
                (donor_id, _clean(campaign_id), amount_cents),
            )
            return self._fetch_required(connection, "pledges", _lastrowid(cursor), "Pledge")

    def list_pledges(self, donor_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                "SELECT * FROM pledges WHERE donor_id = ? ORDER BY created_at DESC, id DESC",
                (donor_id,),
            ).fetchall()

    def add_donor_file(
        self,
        donor_id: int,
        file_name: str,
        content: bytes,
        content_type: str | None,
        uploaded_by: int | None,
    ) -> int:
        clean_name = _clean(file_name)
        if not clean_name:
            raise ValueError("No file provided.")
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            cursor = connection.execute(
                """
                INSERT INTO donor_files (donor_id, file_name, content_type, content, size_bytes, uploaded_by)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (donor_id, clean_name, content_type, content, len(content), uploaded_by),
            )
            return _lastrowid(cursor)

    def list_donor_files(self, donor_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT
                    f.id,
                    f.donor_id,
                    f.file_name,
                    f.content_type,
                    f.size_bytes,
                    f.created_at,
                    u.username AS uploaded_by_name
                FROM donor_files f
                LEFT JOIN users u ON u.id = f.uploaded_by
                WHERE f.donor_id = ?
                ORDER BY f.created_at DESC, f.id DESC
                """,
                (donor_id,),
            ).fetchall()

    def toggle_subscription(self, user_id: int, donor_id: int) -> bool:
        with self._connect() as connection:
            self._fetch_required(connection, "donors", donor_id, "Donor")
            existing = connection.execute(
                "SELECT id FROM donor_subscriptions WHERE user_id = ? AND donor_id = ?",
                (user_id, donor_id),
            ).fetchone()
            if existing is not None:
                connection.execute("DELETE FROM donor_subscriptions WHERE id = ?", (existing["id"],))
                return False
            connection.execute(
                "INSERT INTO donor_subscriptions (user_id, donor_id) VALUES (?, ?)",
                (user_id, donor_id),
            )
            return True

    def acknowledgement_queue(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        allowed_client_ids: list[int] | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses = [
            "dn.thank_you_sent_at IS NULL",
            "dn.gift_amount_cents > ?",
            "b.status IN ('Closed', 'Reconciled')",
        ]
        parameters: list[Any] = [ACKNOWLEDGEMENT_THRESHOLD_CENTS]

        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)
        if start_date:
            where_clauses.append("dn.gift_date >= ?")
            parameters.append(start_date)
        if end_date:
            where_clauses.append("dn.gift_date <= ?")
            parameters.append(end_date)

        query = f"""
            SELECT
                dn.id AS donation_id,
                dn.gift_date,
                dn.gift_amount_cents,
                dn.gift_method,
                dn.campaign_id,
                dn.comment,
                d.id AS donor_id,
                d.first_name,
                d.last_name,
                d.email,
                d.address,
                d.city,
                d.state,
                d.zip
            FROM donations dn
            JOIN donors d ON d.id = dn.donor_id
            JOIN batches b ON b.id = dn.batch_id
            WHERE {' AND '.join(where_clauses)}
            ORDER BY dn.gift_date ASC, dn.id ASC
            LIMIT 500
        """
        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def mark_acknowledged(self, donation_ids: list[int], acknowledgement_type: str) -> int:
        if not donation_ids:
            raise ValueError("No IDs provided.")
        column = "tax_receipt_sent_at" if acknowledgement_type == "TaxReceipt" else "thank_you_sent_at"
        with self._connect() as connection:
            cursor = connection.execute(
                f"UPDATE donations SET {column} = ? WHERE id IN ({_placeholders(donation_ids)})",
                [_utc_now(), *donation_ids],
            )
            return cursor.rowcount

    def people_stats(self, allowed_client_ids: list[int] | None = None) -> dict[str, int]:
        scope_clauses: list[str] = []
        scope_parameters: list[Any] = []
        apply_client_scope("dn.client_id", allowed_client_ids, scope_clauses, scope_parameters)
        scope_sql = "".join(f" AND {clause}" for clause in scope_clauses)

        with self._connect() as connection:
            review = connection.execute(
                f"SELECT COUNT(*) AS count FROM donations dn WHERE dn.resolution_status = 'Pending'{scope_sql}",
                scope_parameters,
            ).fetchone()["count"]
            acknowledgements = connection.execute(
                f"""
                SELECT COUNT(*) AS count
                FROM donations dn
                JOIN batches b ON b.id = dn.batch_id
                WHERE
                    dn.gift_amount_cents > ?
                    AND b.status IN ('Closed', 'Reconciled')
                    AND dn.thank_you_sent_at IS NULL
                    {scope_sql}
                """,
                [ACKNOWLEDGEMENT_THRESHOLD_CENTS, *scope_parameters],
            ).fetchone()["count"]
            alerts = connection.execute(
                f"SELECT COUNT(*) AS count FROM donations dn WHERE dn.is_flagged = 1{scope_sql}",
                scope_parameters,
            ).fetchone()["count"]
            directory = connection.execute(
                f"""
                SELECT COUNT(DISTINCT LOWER(dn.donor_email)) AS count
                FROM donations dn
                WHERE dn.donor_email IS NOT NULL{scope_sql}
                """,
                scope_parameters,
            ).fetchone()["count"]

        return {
            "review": int(review),
            "acknowledgements": int(acknowledgements),
            "alerts": int(alerts),
            "directory": int(directory),
        }
