"""Client and client bank account persistence."""

from __future__ import annotations

import sqlite3
from typing import Any

from .base import (
    BaseStore,
    ConflictError,
    RecordNotFoundError,
    _clean,
    _lastrowid,
    _utc_now,
    apply_client_scope,
)


class ClientOperations(BaseStore):
    def add_client(
        self,
        client_code: str,
        client_name: str,
        client_type: str | None = None,
        logo_url: str | None = None,
    ) -> int:
        clean_code = _clean(client_code)
        clean_name = _clean(client_name)
        if not clean_code or not clean_name:
            raise ValueError("Client code and client name are required.")

        with self._connect() as connection:
            try:
                cursor = connection.execute(
                    """
                    INSERT INTO clients (client_code, client_name, client_type, logo_url)
                    VALUES (?, ?, ?, ?)
                    """,
                    (clean_code.upper(), clean_name, _clean(client_type), _clean(logo_url)),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"Client code {clean_code.upper()} already exists.") from exc
            return _lastrowid(cursor)

    def list_clients(
        self,
        allowed_client_ids: list[int] | None = None,
        include_inactive: bool = False,
    ) -> list[sqlite3.Row]:
        where_clauses: list[str] = []
        parameters: list[Any] = []

        if not include_inactive:
            where_clauses.append("is_active = 1")
        apply_client_scope("id", allowed_client_ids, where_clauses, parameters)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        with self._connect() as connection:
            return connection.execute(
                f"SELECT * FROM clients {where_sql} ORDER BY client_code",
                parameters,
            ).fetchall()

    def get_client(self, client_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "clients", client_id, "Client")

    def update_client(
        self,
        client_id: int,
        client_code: str | None = None,
        client_name: str | None = None,
        client_type: str | None = None,
        logo_url: str | None = None,
    ) -> sqlite3.Row:
        updates: list[str] = []
        parameters: list[Any] = []

        if client_code is not None:
            clean_code = _clean(client_code)
            if not clean_code:
                raise ValueError("Client code cannot be blank.")
            updates.append("client_code = ?")
            parameters.append(clean_code.upper())
        if client_name is not None:
            clean_name = _clean(client_name)
            if not clean_name:
                raise ValueError("Client name cannot be blank.")
            updates.append("client_name = ?")
            parameters.append(clean_name)
        if client_type is not None:
            updates.append("client_type = ?")
            parameters.append(_clean(client_type))
        if logo_url is not None:
            updates.append("logo_url = ?")
            parameters.append(_clean(logo_url))

        with self._connect() as connection:
            self._fetch_required(connection, "clients", client_id, "Client")
            if updates:
                try:
                    connection.execute(
                        f"UPDATE clients SET {', '.join(updates)} WHERE id = ?",
                        [*parameters, client_id],
                    )
                except sqlite3.IntegrityError as exc:
                    raise ConflictError("Client code is already in use.") from exc
            return self._fetch_required(connection, "clients", client_id, "Client")

    def delete_client(self, client_id: int) -> None:
        with self._connect() as connection:
            self._fetch_required(connection, "clients", client_id, "Client")
            batch_count = connection.execute(
                "SELECT COUNT(*) AS count FROM batches WHERE client_id = ?",
                (client_id,),
            ).fetchone()["count"]
            if batch_count:
                raise ValueError("Client has batches and cannot be deleted.")
            connection.execute("DELETE FROM clients WHERE id = ?", (client_id,))

    def add_bank_account(
        self,
        client_id: int,
        account_name: str,
        account_type: str = "Operating",
        bank_name: str | None = None,
        account_last4: str | None = None,
        routing_last4: str | None = None,
    ) -> int:
        clean_name = _clean(account_name)
        if not clean_name:
            raise ValueError("Account name is required.")

        with self._connect() as connection:
            self._fetch_required(connection, "clients", client_id, "Client")
            cursor = connection.execute(
                """
                INSERT INTO client_bank_accounts (
                    client_id,
                    account_name,
                    account_type,
                    bank_name,
                    account_last4,
                    routing_last4
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    client_id,
                    clean_name,
                    _clean(account_type) or "Operating",
                    _clean(bank_name),
                    _clean(account_last4),
                    _clean(routing_last4),
                ),
            )
            return _lastrowid(cursor)

    def list_bank_accounts(
        self,
        client_id: int | None = None,
        allowed_client_ids: list[int] | None = None,
    ) -> list[sqlite3.Row]:
        where_clauses = ["a.is_active = 1"]
        parameters: list[Any] = []

        if client_id is not None:
            where_clauses.append("a.client_id = ?")
            parameters.append(client_id)
        apply_client_scope("a.client_id", allowed_client_ids, where_clauses, parameters)

        query = f"""
            SELECT a.*, c.client_code, c.client_name
            FROM client_bank_accounts a
            JOIN clients c ON c.id = a.client_id
            WHERE {' AND '.join(where_clauses)}
            ORDER BY c.client_code, a.account_name
        """
        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def deactivate_bank_account(self, account_id: int) -> None:
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE client_bank_accounts SET is_active = 0, updated_at = ? WHERE id = ?",
                (_utc_now(), account_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Bank account was not found.")

    def client_campaigns(self, client_id: int) -> list[str]:
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT DISTINCT campaign_id
                FROM donations
                WHERE
                    client_id = ?
                    AND campaign_id IS NOT NULL
                    AND TRIM(campaign_id) <> ''
                ORDER BY campaign_id
                """,
                (client_id,),
            ).fetchall()
        return [row["campaign_id"] for row in rows]
