"""Dashboard statistics, advanced donation search and reference lists."""

from __future__ import annotations

import sqlite3
from datetime import date, timedelta
from typing import Any

import pandas as pd

from .base import BaseStore, apply_client_scope, cents_from_amount

METHODS = ("Check", "Cash", "Credit Card", "Chargeback", "EFT", "Stock", "Crypto", "Online")

PLATFORMS = (
    "Chainbridge",
    "Stripe",
    "National Capital",
    "City National",
    "Propay",
    "Anedot",
    "Winred",
    "Cage",
    "Import",
)

GIFT_TYPES = ("Individual/Trust/IRA", "Corporate", "Foundation", "Donor-Advised Fund")

TRANSACTION_TYPES = ("Contribution", "Pledge Payment", "Non-Monetary/In-Kind")

SEARCH_FIELDS = {
    "amount": "dn.gift_amount_cents",
    "date": "dn.gift_date",
    "method": "dn.gift_method",
    "checkNumber": "dn.secondary_id",
    "donorName": "dn.donor_last_name",
    "donorCity": "dn.donor_city",
    "donorState": "dn.donor_state",
    "donorZip": "dn.donor_zip",
    "clientCode": "c.client_code",
    "batchCode": "b.batch_code",
}

SEARCH_OPERATORS = {
    "equals": "=",
    "neq": "!=",
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "lte": "<=",
}

SEARCH_LIMIT = 100
MONTHLY_CHART_THRESHOLD_DAYS = 60


def build_search_clause(group: dict[str, Any], parameters: list[Any]) -> str:
    """Translate a nested rule group into a parameterized SQL condition.

    Unknown fields and operators compile to ``1=1`` so they never narrow the
    result.
    """

    rules = group.get("rules") or []
    if not rules:
        return "1=1"

    combinator = str(group.get("combinator") or "AND").upper()
    if combinator not in ("AND", "OR"):
        raise ValueError("Combinator must be AND or OR.")

    conditions: list[str] = []
    for rule in rules:
        if "combinator" in rule or "rules" in rule:
            conditions.append(f"({build_search_clause(rule, parameters)})")
            continue

        column = SEARCH_FIELDS.get(rule.get("field", ""))
        operator = rule.get("operator")
        if column is None:
            conditions.append("1=1")
            continue

        value = rule.get("value")
        if rule.get("field") == "amount" and operator != "contains":
            value = cents_from_amount(value)

        if operator == "contains":
            conditions.append(f"{column} LIKE ?")
            parameters.append(f"%{value}%")
        elif operator in SEARCH_OPERATORS:
            conditions.append(f"{column} {SEARCH_OPERATORS[operator]} ?")
            parameters.append(value)
        else:
            conditions.append("1=1")

    return f" {combinator} ".join(conditions)


def build_chart_series(
    rows: list[sqlite3.Row] | list[dict[str, Any]],
    start: date,
    end: date,
) -> list[dict[str, Any]]:
    monthly = (end - start).days > MONTHLY_CHART_THRESHOLD_DAYS
    frequency = "MS" if monthly else "D"
    label_format = "%b %y" if monthly else "%m/%d"

    first_bucket = pd.Timestamp(start).to_period("M").to_timestamp() if monthly else pd.Timestamp(start)
    buckets = pd.date_range(first_bucket, pd.Timestamp(end), freq=frequency)
    series = pd.DataFrame({"amount": 0, "count": 0}, index=buckets)

    if rows:
        frame = pd.DataFrame([dict(row) for row in rows], columns=["gift_date", "gift_amount_cents"])
        frame["bucket"] = pd.to_datetime(frame["gift_date"].str[:10], errors="coerce")
        frame = frame.dropna(subset=["bucket"])
        if monthly:
            frame["bucket"] = frame["bucket"].dt.to_period("M").dt.to_timestamp()
        grouped = frame.groupby("bucket").agg(
            amount=("gift_amount_cents", "sum"),
            count=("gift_amount_cents", "size"),
        )
        series = series.add(grouped.reindex(series.index, fill_value=0), fill_value=0)

    return [
        {
            "name": bucket.strftime(label_format),
            "amount_cents": int(values["amount"]),
            "count": int(values["count"]),
        }
        for bucket, values in series.iterrows()
    ]


class ReportOperations(BaseStore):
    def dashboard_stats(
        self,
        client_id: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        allowed_client_ids: list[int] | None = None,
    ) -> dict[str, Any]:
        where_clauses: list[str] = []
        parameters: list[Any] = []
        if client_id is not None:
            where_clauses.append("dn.client_id = ?")
            parameters.append(client_id)
        if start_date:
            where_clauses.append("dn.gift_date >= ?")
            parameters.append(start_date)
        if end_date:
            where_clauses.append("dn.gift_date <= ?")
            parameters.append(end_date)
        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        batch_clauses: list[str] = []
        batch_parameters: list[Any] = []
        if client_id is not None:
            batch_clauses.append("client_id = ?")
            batch_parameters.append(client_id)
        apply_client_scope("client_id", allowed_client_ids, batch_clauses, batch_parameters)
        batch_sql = "".join(f" AND {clause}" for clause in batch_clauses)

        scope_clauses: list[str] = []
        scope_parameters: list[Any] = []
        apply_client_scope("client_id", allowed_client_ids, scope_clauses, scope_parameters)
        scope_sql = "".join(f" AND {clause}" for clause in scope_clauses)

        chart_end = date.fromisoformat(end_date) if end_date else date.today()
        chart_start = date.fromisoformat(start_date) if start_date else chart_end - timedelta(days=182)

        with self._connect() as connection:
            total = connection.execute(
                f"SELECT COALESCE(SUM(dn.gift_amount_cents), 0) AS total FROM donations dn {where_sql}",
                parameters,
            ).fetchone()["total"]
            by_client = connection.execute(
                f"""
                SELECT c.client_name, COALESCE(SUM(dn.gift_amount_cents), 0) AS total_cents
                FROM donations dn
                JOIN clients c ON c.id = dn.client_id
                {where_sql}
                GROUP BY c.id
                ORDER BY total_cents DESC
                """,
                parameters,
            ).fetchall()
            by_method = connection.execute(
                f"""
                SELECT
                    COALESCE(dn.gift_method, 'Unknown') AS name,
                    COUNT(*) AS count,
                    COALESCE(SUM(dn.gift_amount_cents), 0) AS total_cents
                FROM donations dn
                {where_sql}
                GROUP BY dn.gift_method
                ORDER BY total_cents DESC
                """,
                parameters,
            ).fetchall()
            by_platform = connection.execute(
                f"""
                SELECT
                    COALESCE(dn.gift_platform, 'Unknown') AS name,
                    COUNT(*) AS count,
                    COALESCE(SUM(dn.gift_amount_cents), 0) AS total_cents
                FROM donations dn
                {where_sql}
                GROUP BY dn.gift_platform
                ORDER BY total_cents DESC
                """,
                parameters,
            ).fetchall()
            open_batches = connection.execute(
                f"SELECT COUNT(*) AS count FROM batches WHERE status = 'Open'{batch_sql}",
                batch_parameters,
            ).fetchone()["count"]
            closed_batches = connection.execute(
                f"SELECT COUNT(*) AS count FROM batches WHERE status = 'Closed'{batch_sql}",
                batch_parameters,
            ).fetchone()["count"]
            unique_donors = connection.execute(
                f"SELECT COUNT(DISTINCT dn.donor_id) AS count FROM donations dn {where_sql}",
                parameters,
            ).fetchone()["count"]

            chart_clauses = ["dn.gift_date >= ?", "dn.gift_date <= ?"]
            chart_parameters: list[Any] = [chart_start.isoformat(), f"{chart_end.isoformat()} 23:59:59"]
            if client_id is not None:
                chart_clauses.append("dn.client_id = ?")
                chart_parameters.append(client_id)
            apply_client_scope("dn.client_id", allowed_client_ids, chart_clauses, chart_parameters)
            chart_rows = connection.execute(
                f"""
                SELECT dn.gift_date, dn.gift_amount_cents
                FROM donations dn
                WHERE {' AND '.join(chart_clauses)}
                """,
                chart_parameters,
            ).fetchall()

            recent_logs = connection.execute(
                """
                SELECT a.*, u.username
                FROM audit_logs a
                LEFT JOIN users u ON u.id = a.user_id
                ORDER BY a.created_at DESC, a.id DESC
                LIMIT 5
                """
            ).fetchall()
            pending_resolutions = connection.execute(
                f"SELECT COUNT(*) AS count FROM donations WHERE resolution_status = 'Pending'{scope_sql}",
                scope_parameters,
            ).fetchone()["count"]
            flagged_items = connection.execute(
                f"SELECT COUNT(*) AS count FROM donations WHERE is_flagged = 1{scope_sql}",
                scope_parameters,
            ).fetchone()["count"]

        return {
            "total_amount_cents": int(total),
            "open_batches": int(open_batches),
            "closed_batches": int(closed_batches),
            "unique_donors": int(unique_donors),
            "pending_resolutions": int(pending_resolutions),
            "flagged_items": int(flagged_items),
            "chart_data": build_chart_series(chart_rows, chart_start, chart_end),
            "recent_logs": [dict(row) for row in recent_logs] if allowed_client_ids is None else [],
            "by_client": [dict(row) for row in by_client],
            "by_method": [dict(row) for row in by_method],
            "by_platform": [dict(row) for row in by_platform],
        }

    def search_donations(
        self,
        group: dict[str, Any],
        allowed_client_ids: list[int] | None = None,
    ) -> list[sqlite3.Row]:
        parameters: list[Any] = []
        where_clauses = [f"({build_search_clause(group, parameters)})"]
        apply_client_scope("dn.client_id", allowed_client_ids, where_clauses, parameters)

        query = f"""
            SELECT dn.*, b.batch_code, c.client_code, c.client_name
            FROM donations dn
            JOIN batches b ON b.id = dn.batch_id
            JOIN clients c ON c.id = dn.client_id
            WHERE {' AND '.join(where_clauses)}
            ORDER BY dn.gift_date DESC, dn.id DESC
            LIMIT ?
        """
        parameters.append(SEARCH_LIMIT)

        with self._connect() as connection:
            return connection.execute(query, parameters).fetchall()

    def platforms_in_use(self) -> list[str]:
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT DISTINCT default_gift_platform AS platform
                FROM batches
                WHERE default_gift_platform IS NOT NULL AND default_gift_platform <> ''
                ORDER BY platform
                """
            ).fetchall()
        return [row["platform"] for row in rows]
