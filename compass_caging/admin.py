"""Users, client access, policies, audit trail and maintenance."""

from __future__ import annotations

import math
import secrets
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

from .base import (
    BaseStore,
    ConflictError,
    RecordNotFoundError,
    _clean,
    _json_dumps,
    _lastrowid,
    _placeholders,
    _utc_now,
)
from .logging_config import get_logger

logger = get_logger(__name__)

USER_ROLES = ("Admin", "Clerk", "ClientUser")

DEFAULT_POLICY = {
    "policy_type": "AcceptableUse",
    "version": "1.0",
    "title": "Acceptable Use and Data Handling Policy",
    "content": (
        "Donor and payment data may only be accessed for caging, reconciliation "
        "and reporting work on behalf of the client that owns it."
    ),
}


def user_initials(row: sqlite3.Row | dict[str, Any]) -> str:
    initials = _clean(row["initials"])
    if initials:
        return initials.upper()

    full_name = _clean(row["full_name"])
    if full_name:
        parts = full_name.split()
        if len(parts) >= 2:
            return f"{parts[0][0]}{parts[-1][0]}".upper()
        return parts[0][:2].upper()

    return str(row["username"])[:2].upper()


class AdminOperations(BaseStore):
    def _replace_user_clients(
        self,
        connection: sqlite3.Connection,
        user_id: int,
        client_ids: list[int],
    ) -> None:
        connection.execute("DELETE FROM user_clients WHERE user_id = ?", (user_id,))
        for client_id in sorted(set(client_ids)):
            connection.execute(
                "INSERT INTO user_clients (user_id, client_id) VALUES (?, ?)",
                (user_id, client_id),
            )

    def add_user(
        self,
        username: str,
        password_hash: str | None,
        role: str = "Clerk",
        email: str | None = None,
        full_name: str | None = None,
        initials: str | None = None,
        client_ids: list[int] | None = None,
    ) -> int:
        clean_username = _clean(username)
        if not clean_username:
            raise ValueError("Username is required.")
        if role not in USER_ROLES:
            raise ValueError("Role must be Admin, Clerk or ClientUser.")

        with self._connect() as connection:
            existing = connection.execute(
                "SELECT id FROM users WHERE LOWER(username) = LOWER(?)",
                (clean_username,),
            ).fetchone()
            if existing is not None:
                raise ConflictError(f"Username {clean_username} is already taken.")

            cursor = connection.execute(
                """
                INSERT INTO users (username, email, full_name, initials, password_hash, role)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    clean_username,
                    _clean(email),
                    _clean(full_name),
                    _clean(initials),
                    password_hash,
                    role,
                ),
            )
            user_id = _lastrowid(cursor)
            self._replace_user_clients(connection, user_id, client_ids or [])
            return user_id

    def get_user(self, user_id: int) -> sqlite3.Row:
        with self._connect() as connection:
            return self._fetch_required(connection, "users", user_id, "User")

    def get_user_by_username(self, username: str) -> sqlite3.Row | None:
        with self._connect() as connection:
            return connection.execute(
                "SELECT * FROM users WHERE LOWER(username) = LOWER(?)",
                (username.strip(),),
            ).fetchone()

    def user_client_ids(self, user_id: int) -> list[int]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT client_id FROM user_clients WHERE user_id = ? ORDER BY client_id",
                (user_id,),
            ).fetchall()
        return [int(row["client_id"]) for row in rows]

    def list_users(self, include_inactive: bool = False) -> list[dict[str, Any]]:
        where_sql = "" if include_inactive else "WHERE u.is_active = 1"
        query = f"""
            SELECT
                u.id,
                u.username,
                u.email,
                u.full_name,
                u.initials,
                u.role,
                u.is_active,
                u.last_login_at,
                u.created_at,
                GROUP_CONCAT(uc.client_id) AS client_id_list
            FROM users u
            LEFT JOIN user_clients uc ON uc.user_id = u.id
            {where_sql}
            GROUP BY u.id
            ORDER BY u.username
        """
        with self._connect() as connection:
            rows = connection.execute(query).fetchall()

        users: list[dict[str, Any]] = []
        for row in rows:
            user = dict(row)
            raw_ids = user.pop("client_id_list")
            user["client_ids"] = sorted(int(value) for value in raw_ids.split(",")) if raw_ids else []
            users.append(user)
        return users

    def update_user(
        self,
        user_id: int,
        email: str | None = None,
        full_name: str | None = None,
        initials: str | None = None,
        role: str | None = None,
        is_active: bool | None = None,
        password_hash: str | None = None,
        client_ids: list[int] | None = None,
    ) -> sqlite3.Row:
        updates: list[str] = []
        parameters: list[Any] = []

        if email is not None:
            updates.append("email = ?")
            parameters.append(_clean(email))
        if full_name is not None:
            updates.append("full_name = ?")
            parameters.append(_clean(full_name))
        if initials is not None:
            updates.append("initials = ?")
            parameters.append(_clean(initials))
        if role is not None:
            if role not in USER_ROLES:
                raise ValueError("Role must be Admin, Clerk or ClientUser.")
            updates.append("role = ?")
            parameters.append(role)
        if is_active is not None:
            updates.append("is_active = ?")
            parameters.append(1 if is_active else 0)
        if password_hash is not None:
            updates.append("password_hash = ?")
            parameters.append(password_hash)

        with self._connect() as connection:
            self._fetch_required(connection, "users", user_id, "User")
            if updates:
                connection.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE id = ?",
                    [*parameters, user_id],
                )
            if client_ids is not None:
                self._replace_user_clients(connection, user_id, client_ids)
            return self._fetch_required(connection, "users", user_id, "User")

    def deactivate_user(self, user_id: int, acting_user_id: int) -> None:
        if user_id == acting_user_id:
            raise ValueError("You cannot delete your own account.")
        with self._connect() as connection:
            self._fetch_required(connection, "users", user_id, "User")
            connection.execute("UPDATE users SET is_active = 0 WHERE id = ?", (user_id,))

    def record_login(self, user_id: int) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE users SET last_login_at = ? WHERE id = ?",
                (_utc_now(), user_id),
            )

    def issue_password_token(self, user_id: int, ttl_hours: int = 72) -> str:
        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=ttl_hours)
        with self._connect() as connection:
            self._fetch_required(connection, "users", user_id, "User")
            connection.execute(
                "INSERT INTO password_tokens (user_id, token, expires_at) VALUES (?, ?, ?)",
                (user_id, token, expires_at.strftime("%Y-%m-%d %H:%M:%S")),
            )
        return token

    def consume_password_token(self, token: str, password_hash: str) -> int:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM password_tokens WHERE token = ?",
                (token,),
            ).fetchone()
            if row is None or row["used_at"] is not None:
                raise ValueError("Password setup link is invalid or has already been used.")
            if row["expires_at"] < _utc_now():
                raise ValueError("Password setup link has expired.")

            connection.execute(
                "UPDATE users SET password_hash = ?, is_active = 1 WHERE id = ?",
                (password_hash, row["user_id"]),
            )
            connection.execute(
                "UPDATE password_tokens SET used_at = ? WHERE id = ?",
                (_utc_now(), row["id"]),
            )
            return int(row["user_id"])

    def add_policy(
        self,
        policy_type: str,
        version: str,
        title: str,
        content: str,
    ) -> int:
        with self._connect() as connection:
            try:
                cursor = connection.execute(
                    """
                    INSERT INTO policies (policy_type, version, title, content)
                    VALUES (?, ?, ?, ?)
                    """,
                    (policy_type, version, title, content),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(
                    f"Policy {policy_type} version {version} already exists."
                ) from exc
            return _lastrowid(cursor)

    def _seed_default_policy(self, connection: sqlite3.Connection) -> None:
        count_row = connection.execute("SELECT COUNT(*) AS count FROM policies").fetchone()
        if count_row["count"] == 0:
            connection.execute(
                """
                INSERT INTO policies (policy_type, version, title, content)
                VALUES (:policy_type, :version, :title, :content)
                """,
                DEFAULT_POLICY,
            )

    def pending_policies(self, user_id: int) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT p.*
                FROM policies p
                WHERE
                    p.is_active = 1
                    AND NOT EXISTS (
                        SELECT 1
                        FROM policy_acceptances pa
                        WHERE pa.policy_id = p.id AND pa.user_id = ?
                    )
                ORDER BY p.id
                """,
                (user_id,),
            ).fetchall()

    def accept_policies(
        self,
        user_id: int,
        policy_ids: list[int],
        ip_address: str | None = None,
    ) -> int:
        if not policy_ids:
            raise ValueError("At least one policy id is required.")

        accepted_at = _utc_now()
        with self._connect() as connection:
            known = connection.execute(
                f"SELECT id FROM policies WHERE id IN ({_placeholders(policy_ids)})",
                policy_ids,
            ).fetchall()
            known_ids = {int(row["id"]) for row in known}
            missing = sorted(set(policy_ids) - known_ids)
            if missing:
                raise RecordNotFoundError(f"Policy {missing[0]} was not found.")

            for policy_id in sorted(known_ids):
                connection.execute(
                    """
                    INSERT INTO policy_acceptances (user_id, policy_id, ip_address, accepted_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (user_id, policy_id)
                    DO UPDATE SET accepted_at = excluded.accepted_at, ip_address = excluded.ip_address
                    """,
                    (user_id, policy_id, ip_address, accepted_at),
                )
        return len(known_ids)

    def log_audit(
        self,
        user_id: int | None,
        action: str,
        entity_id: int | str | None = None,
        details: Any = None,
        ip_address: str | None = None,
        entity_type: str | None = None,
    ) -> None:
        """Append an audit entry. Failures are logged, never raised."""

        if details is None or isinstance(details, str):
            detail_text = details
        else:
            detail_text = _json_dumps(details)

        try:
            with self._connect() as connection:
                connection.execute(
                    """
                    INSERT INTO audit_logs (user_id, action, entity_type, entity_id, details, ip_address)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        action,
                        entity_type,
                        None if entity_id is None else str(entity_id),
                        detail_text,
                        ip_address,
                    ),
                )
        except sqlite3.Error:
            logger.exception("Failed to write audit log for action %s", action)

    def list_audit_logs(self, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        bounded_limit = max(1, min(limit, 500))
        bounded_offset = max(0, offset)

        with self._connect() as connection:
            total = connection.execute(
                "SELECT COUNT(*) AS count FROM audit_logs"
            ).fetchone()["count"]
            rows = connection.execute(
                """
                SELECT a.*, u.username
                FROM audit_logs a
                LEFT JOIN users u ON u.id = a.user_id
                ORDER BY a.created_at DESC, a.id DESC
                LIMIT ? OFFSET ?
                """,
                (bounded_limit, bounded_offset),
            ).fetchall()

        return {
            "logs": [dict(row) for row in rows],
            "total": int(total),
            "limit": bounded_limit,
            "offset": bounded_offset,
            "page": bounded_offset // bounded_limit + 1,
            "total_pages": math.ceil(total / bounded_limit) if total else 0,
        }

    def run_maintenance(self) -> dict[str, Any]:
        now = _utc_now()
        with self._connect() as connection:
            deleted = connection.execute(
                "DELETE FROM password_tokens WHERE expires_at < ?",
                (now,),
            ).rowcount
            audit_count = connection.execute(
                "SELECT COUNT(*) AS count FROM audit_logs"
            ).fetchone()["count"]

            summary = {
                "expired_tokens_deleted": int(deleted),
                "audit_log_count": int(audit_count),
                "ran_at": now,
            }
            connection.execute(
                "INSERT INTO maintenance_logs (task, status, details) VALUES (?, ?, ?)",
                ("daily-maintenance", "Success", _json_dumps(summary)),
            )

        logger.info(
            "Maintenance complete: %s expired tokens deleted, %s audit logs retained",
            summary["expired_tokens_deleted"],
            summary["audit_log_count"],
        )
        return summary

    def list_maintenance_logs(self, limit: int = 20) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                "SELECT * FROM maintenance_logs ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()

    def records_for_sensitive_scan(self) -> list[dict[str, Any]]:
        """Return free-text fields prepared for sensitive-data scanning."""

        sources = [
            ("Donations", "donations", ("comment",)),
            ("Donor Notes", "donor_notes", ("content",)),
            ("Donor Tasks", "donor_tasks", ("description",)),
            ("Donor Alerts", "donors", ("alert_message",)),
            ("Batches", "batches", ("description",)),
            ("Reconciliation Exceptions", "reconciliation_exceptions", ("resolution_notes",)),
        ]

        records: list[dict[str, Any]] = []
        with self._connect() as connection:
            for object_name, table_name, columns in sources:
                rows = connection.execute(
                    f"SELECT id, {', '.join(columns)} FROM {table_name} ORDER BY id DESC"
                ).fetchall()

                for row in rows:
                    fields: dict[str, str] = {}
                    for column in columns:
                        value = row[column]
                        if isinstance(value, str) and value.strip():
                            fields[column] = value.strip()
                    if not fields:
                        continue

                    records.append(
                        {
                            "object_name": object_name,
                            "table_name": table_name,
                            "record_id": int(row["id"]),
                            "fields": fields,
                        }
                    )

        return records
