"""Donor resolution queue for donations keyed in without a confident donor match."""

from __future__ import annotations

import sqlite3
from typing import Any

from .base import BaseStore, _clean, _lastrowid, _normalize_token, _placeholders, apply_client_scope
from .logging_config import get_logger
from .people import donor_search_score

logger = get_logger(__name__)

RESOLUTION_ACTIONS = ("Link", "CreateNew")
MAX_CANDIDATES = 5
MIN_CANDIDATE_SCORE = 55


def _candidate_reason(donor: sqlite3.Row, donation: dict[str, Any]) -> str:
    donation_email = _normalize_token(donation.get("donor_email"))
    if donation_email and donation_email == _normalize_token(donor["email"]):
        return "Email match"

    same_first = _normalize_token(donor["first_name"]) == _normalize_token(donation.get("donor_first_name"))
    same_last = _normalize_token(donor["last_name"]) == _normalize_token(donation.get("donor_last_name"))
    if same_first and same_last:
        return "Name match"
    if same_last:
        return "Last name match"
    return "Similar name"


class ResolutionOperations(BaseStore):
    def _generate_resolution_candidates(
        self,
        connection: sqlite3.Connection,
        donation_id: int,
        donation: dict[str, Any],
    ) -> int:
        name_term = " ".join(
            part
            for part in (donation.get("donor_first_name"), donation.get("donor_last_name"))
            if part
        )
        email = _clean(donation.get("donor_email"))
        if not name_term and not email:
            return 0

        donors = connection.execute("SELECT * FROM donors ORDER BY id").fetchall()
        scored: list[tuple[float, sqlite3.Row]] = []
        for donor in donors:
            score = donor_search_score(donor, name_term) if name_term else 0.0
            if email and donor["email"] and email.lower() == donor["email"].lower():
                score += 240
            if score >= MIN_CANDIDATE_SCORE:
                scored.append((score, donor))

        scored.sort(key=lambda item: (item[0], item[1]["id"]), reverse=True)
        for score, donor in scored[:MAX_CANDIDATES]:
            connection.execute(
                """
                INSERT INTO donation_resolution_candidates (donation_id, donor_id, score, reason)
                VALUES (?, ?, ?, ?)
                """,
                (donation_id, donor["id"], score, _candidate_reason(donor, donation)),
            )
        return min(len(scored), MAX_CANDIDATES)

    def resolution_queue(self, allowed_client_ids: list[int] | None = None) -> list[dict[str, Any]]:
        where_clauses = ["dn.resolution_status = 'Pending'"]
        parameters: list[Any] = []
        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)

        with self._connect() as connection:
            pending = connection.execute(
                f"""
                SELECT
                    dn.id,
                    dn.client_id,
                    dn.batch_id,
                    dn.gift_date,
                    dn.gift_amount_cents,
                    dn.donor_first_name,
                    dn.donor_last_name,
                    dn.donor_email,
                    dn.donor_address,
                    dn.donor_city,
                    dn.donor_state,
                    dn.donor_zip
                FROM donations dn
                WHERE {' AND '.join(where_clauses)}
                ORDER BY dn.gift_date DESC, dn.id DESC
                """,
                parameters,
            ).fetchall()
            if not pending:
                return []

            donation_ids = [int(row["id"]) for row in pending]
            candidates = connection.execute(
                f"""
                SELECT
                    c.donation_id,
                    c.score,
                    c.reason,
                    d.id AS donor_id,
                    d.first_name,
                    d.last_name,
                    d.email,
                    d.address,
                    d.city,
                    d.state,
                    d.zip
                FROM donation_resolution_candidates c
                JOIN donors d ON d.id = c.donor_id
                WHERE c.donation_id IN ({_placeholders(donation_ids)})
                ORDER BY c.score DESC, c.id ASC
                """,
                donation_ids,
            ).fetchall()

        grouped: dict[int, list[dict[str, Any]]] = {donation_id: [] for donation_id in donation_ids}
        for candidate in candidates:
            grouped[int(candidate["donation_id"])].append(dict(candidate))

        queue: list[dict[str, Any]] = []
        for row in pending:
            item = dict(row)
            item["candidates"] = grouped[int(row["id"])]
            queue.append(item)
        return queue

    def resolve_pending(
        self,
        donation_id: int,
        action: str,
        candidate_id: int | None = None,
    ) -> int:
        """Resolve a pending donation and return the donor it now belongs to."""

        if action not in RESOLUTION_ACTIONS:
            raise ValueError("Invalid Action")

        with self._connect() as connection:
            donation = self._fetch_required(connection, "donations", donation_id, "Donation")

            if action == "Link":
                if candidate_id is None:
                    raise ValueError("Missing Candidate ID")
                self._fetch_required(connection, "donors", candidate_id, "Donor")
                donor_id = candidate_id
            else:
                cursor = connection.execute(
                    """
                    INSERT INTO donors (first_name, last_name, email, phone, address, city, state, zip)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        donation["donor_first_name"],
                        donation["donor_last_name"],
                        donation["donor_email"],
                        donation["donor_phone"],
                        donation["donor_address"],
                        donation["donor_city"],
                        donation["donor_state"],
                        donation["donor_zip"],
                    ),
                )
                donor_id = _lastrowid(cursor)

            connection.execute(
                "UPDATE donations SET donor_id = ?, resolution_status = 'Resolved' WHERE id = ?",
                (donor_id, donation_id),
            )
            connection.execute(
                "DELETE FROM donation_resolution_candidates WHERE donation_id = ?",
                (donation_id,),
            )

        logger.info("Resolved donation %s with action %s to donor %s", donation_id, action, donor_id)
        return donor_id
