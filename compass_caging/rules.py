"""Import mapping rules, donation assignment rules and journal export templates."""

from __future__ import annotations

import sqlite3
from typing import Any

from .base import (
    BaseStore,
    RecordNotFoundError,
    _clean,
    _json_dumps,
    _json_loads,
    _lastrowid,
    _utc_now,
    cents_from_amount,
)
from .logging_config import get_logger

logger = get_logger(__name__)

TRANSFORMATIONS = ("uppercase", "date_format")


def rule_matches(rule: sqlite3.Row | dict[str, Any], donation: dict[str, Any]) -> bool:
    amount_cents = int(donation.get("gift_amount_cents") or 0)
    if rule["amount_min_cents"] is not None and amount_cents < rule["amount_min_cents"]:
        return False
    if rule["amount_max_cents"] is not None and amount_cents > rule["amount_max_cents"]:
        return False

    rule_state = _clean(rule["state"])
    if rule_state:
        donor_state = (donation.get("donor_state") or "").strip().upper()
        if donor_state != rule_state.upper():
            return False

    zip_prefix = _clean(rule["zip_prefix"])
    if zip_prefix:
        donor_zip = (donation.get("donor_zip") or "").strip()
        if not donor_zip.startswith(zip_prefix):
            return False

    rule_campaign = _clean(rule["campaign_id"])
    if rule_campaign:
        campaign = (donation.get("campaign_id") or "").strip()
        if campaign != rule_campaign:
            return False

    return True


class RuleOperations(BaseStore):
    def add_mapping_rule(
        self,
        target_column: str,
        source_system: str = "*",
        default_value: str | None = None,
        transformation_rule: str | None = None,
        priority: int = 0,
        is_active: bool = True,
    ) -> int:
        clean_target = _clean(target_column)
        if not clean_target:
            raise ValueError("Target column is required.")
        clean_transformation = _clean(transformation_rule)
        if clean_transformation is not None and clean_transformation not in TRANSFORMATIONS:
            raise ValueError("Transformation must be uppercase or date_format.")

        with self._connect() as connection:
            cursor = connection.execute(
                """
                INSERT INTO mapping_rules (
                    source_system,
                    target_column,
                    default_value,
                    transformation_rule,
                    priority,
                    is_active
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    _clean(source_system) or "*",
                    clean_target,
                    _clean(default_value),
                    clean_transformation,
                    priority,
                    1 if is_active else 0,
                ),
            )
            return _lastrowid(cursor)

    def list_mapping_rules(self, source_system: str | None = None) -> list[sqlite3.Row]:
        with self._connect() as connection:
            if source_system is None:
                return connection.execute(
                    "SELECT * FROM mapping_rules ORDER BY source_system, priority DESC, id"
                ).fetchall()
            return connection.execute(
                """
                SELECT *
                FROM mapping_rules
                WHERE source_system = ? OR source_system = '*'
                ORDER BY priority DESC, id
                """,
                (source_system,),
            ).fetchall()

    def active_mapping_rules(self, source_system: str) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT *
                FROM mapping_rules
                WHERE (source_system = ? OR source_system = '*') AND is_active = 1
                ORDER BY priority DESC, id
                """,
                (source_system,),
            ).fetchall()

    def update_mapping_rule(self, rule_id: int, **fields: Any) -> sqlite3.Row:
        allowed = {
            "source_system",
            "target_column",
            "default_value",
            "transformation_rule",
            "priority",
            "is_active",
        }
        updates: list[str] = []
        parameters: list[Any] = []
        for key, value in fields.items():
            if key not in allowed or value is None:
                continue
            if key == "transformation_rule" and value not in TRANSFORMATIONS and value != "":
                raise ValueError("Transformation must be uppercase or date_format.")
            if key == "is_active":
                value = 1 if value else 0
            elif isinstance(value, str):
                value = _clean(value)
            updates.append(f"{key} = ?")
            parameters.append(value)

        with self._connect() as connection:
            self._fetch_required(connection, "mapping_rules", rule_id, "Mapping rule")
            if updates:
                connection.execute(
                    f"UPDATE mapping_rules SET {', '.join(updates)} WHERE id = ?",
                    [*parameters, rule_id],
                )
            return self._fetch_required(connection, "mapping_rules", rule_id, "Mapping rule")

    def delete_mapping_rule(self, rule_id: int) -> None:
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM mapping_rules WHERE id = ?", (rule_id,))
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Mapping rule was not found.")

    def add_assignment_rule(
        self,
        name: str,
        assign_to_user_id: int,
        priority: int = 100,
        amount_min: float | None = None,
        amount_max: float | None = None,
        state: str | None = None,
        zip_prefix: str | None = None,
        campaign_id: str | None = None,
        is_active: bool = True,
    ) -> int:
        clean_name = _clean(name)
        if not clean_name:
            raise ValueError("Rule name is required.")
        min_cents = None if amount_min is None else cents_from_amount(amount_min)
        max_cents = None if amount_max is None else cents_from_amount(amount_max)
        if min_cents is not None and max_cents is not None and min_cents > max_cents:
            raise ValueError("Minimum amount cannot exceed maximum amount.")

        with self._connect() as connection:
            self._fetch_required(connection, "users", assign_to_user_id, "Assigned user")
            cursor = connection.execute(
                """
                INSERT INTO assignment_rules (
                    name,
                    priority,
                    is_active,
                    assign_to_user_id,
                    amount_min_cents,
                    amount_max_cents,
                    state,
                    zip_prefix,
                    campaign_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    clean_name,
                    priority,
                    1 if is_active else 0,
                    assign_to_user_id,
                    min_cents,
                    max_cents,
                    (_clean(state) or "").upper() or None,
                    _clean(zip_prefix),
                    _clean(campaign_id),
                ),
            )
            return _lastrowid(cursor)

    def list_assignment_rules(self) -> list[sqlite3.Row]:
        with self._connect() as connection:
            return connection.execute(
                """
                SELECT r.*, u.username AS assign_to_username
                FROM assignment_rules r
                LEFT JOIN users u ON u.id = r.assign_to_user_id
                ORDER BY r.priority ASC, r.id ASC
                """
            ).fetchall()

    def update_assignment_rule(self, rule_id: int, **fields: Any) -> sqlite3.Row:
        column_map = {
            "name": "name",
            "priority": "priority",
            "is_active": "is_active",
            "assign_to_user_id": "assign_to_user_id",
            "amount_min": "amount_min_cents",
            "amount_max": "amount_max_cents",
            "state": "state",
            "zip_prefix": "zip_prefix",
            "campaign_id": "campaign_id",
        }
        updates: list[str] = []
        parameters: list[Any] = []
        for key, value in fields.items():
            column = column_map.get(key)
            if column is None or value is None:
                continue
            if key in {"amount_min", "amount_max"}:
                value = cents_from_amount(value)
            elif key == "is_active":
                value = 1 if value else 0
            elif key == "state":
                value = (_clean(value) or "").upper() or None
            elif isinstance(value, str):
                value = _clean(value)
            updates.append(f"{column} = ?")
            parameters.append(value)

        with self._connect() as connection:
            self._fetch_required(connection, "assignment_rules", rule_id, "Assignment rule")
            if updates:
                connection.execute(
                    f"UPDATE assignment_rules SET {', '.join(updates)} WHERE id = ?",
                    [*parameters, rule_id],
                )
            return self._fetch_required(connection, "assignment_rules", rule_id, "Assignment rule")

    def delete_assignment_rule(self, rule_id: int) -> None:
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM assignment_rules WHERE id = ?", (rule_id,))
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Assignment rule was not found.")

    def find_assigned_user(self, donation: dict[str, Any]) -> int | None:
        with self._connect() as connection:
            rules = connection.execute(
                """
                SELECT *
                FROM assignment_rules
                WHERE is_active = 1
                ORDER BY priority ASC, id ASC
                """
            ).fetchall()

        for rule in rules:
            if rule_matches(rule, donation):
                logger.info(
                    "Donation matched assignment rule %r, assigning to user %s",
                    rule["name"],
                    rule["assign_to_user_id"],
                )
                return int(rule["assign_to_user_id"])
        return None

    def add_export_template(self, name: str, mappings: list[dict[str, Any]]) -> int:
        clean_name = _clean(name)
        if not clean_name or not mappings:
            raise ValueError("Name and mappings are required.")

        with self._connect() as connection:
            cursor = connection.execute(
                "INSERT INTO export_templates (name, mappings) VALUES (?, ?)",
                (clean_name, _json_dumps(mappings)),
            )
            return _lastrowid(cursor)

    def list_export_templates(self) -> list[dict[str, Any]]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT * FROM export_templates ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._template_dict(row) for row in rows]

    def get_export_template(self, template_id: int) -> dict[str, Any]:
        with self._connect() as connection:
            row = self._fetch_required(connection, "export_templates", template_id, "Template")
        return self._template_dict(row)

    def update_export_template(
        self,
        template_id: int,
        name: str | None = None,
        mappings: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        updates = ["updated_at = ?"]
        parameters: list[Any] = [_utc_now()]
        if name is not None:
            clean_name = _clean(name)
            if not clean_name:
                raise ValueError("Template name cannot be blank.")
            updates.append("name = ?")
            parameters.append(clean_name)
        if mappings is not None:
            updates.append("mappings = ?")
            parameters.append(_json_dumps(mappings))

        with self._connect() as connection:
            self._fetch_required(connection, "export_templates", template_id, "Template")
            connection.execute(
                f"UPDATE export_templates SET {', '.join(updates)} WHERE id = ?",
                [*parameters, template_id],
            )
            row = self._fetch_required(connection, "export_templates", template_id, "Template")
        return self._template_dict(row)

    def delete_export_template(self, template_id: int) -> None:
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM export_templates WHERE id = ?", (template_id,))
            if cursor.rowcount == 0:
                raise RecordNotFoundError("Template was not found.")

    @staticmethod
    def _template_dict(row: sqlite3.Row) -> dict[str, Any]:
        template = dict(row)
        template["mappings"] = _json_loads(row["mappings"], [])
        return template
