from __future__ import annotations

from datetime import date

import pytest

from compass_caging import CagingStore
from compass_caging.reports import build_chart_series, build_search_clause


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_reports_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _seed(store: CagingStore) -> tuple[int, int]:
    user_id = store.add_user("analyst", None, role="Admin", initials="AN")
    first_client = store.add_client("ONE", "First Client")
    second_client = store.add_client("TWO", "Second Client")

    first_batch = store.create_batch(first_client, user_id, batch_date="2026-03-02")
    store.save_donation(
        first_batch["id"],
        {"amount": 100, "gift_date": "2026-03-02", "check_number": "77", "donor_last_name": "Ortiz"},
    )
    store.save_donation(
        first_batch["id"],
        {"amount": 40, "gift_method": "Cash", "gift_date": "2026-03-03", "donor_city": "Denver"},
    )
    second_batch = store.create_batch(
        second_client,
        user_id,
        batch_date="2026-03-04",
        default_gift_platform="Winred",
    )
    store.save_donation(
        second_batch["id"],
        {"amount": 250, "gift_method": "Credit Card", "gift_date": "2026-03-04", "resolution_status": "Pending"},
    )
    store.update_batch_status(first_batch["id"], "Closed")
    return first_client, second_client


def test_search_clause_nests_groups() -> None:
    parameters: list = []
    clause = build_search_clause(
        {
            "combinator": "and",
            "rules": [
                {"field": "amount", "operator": "gte", "value": "50"},
                {
                    "combinator": "or",
                    "rules": [
                        {"field": "method", "operator": "equals", "value": "Check"},
                        {"field": "donorCity", "operator": "contains", "value": "den"},
                    ],
                },
            ],
        },
        parameters,
    )

    assert clause == "dn.gift_amount_cents >= ? AND (dn.gift_method = ? OR dn.donor_city LIKE ?)"
    assert parameters == [5000, "Check", "%den%"]


def test_search_clause_ignores_unknown_fields_and_rejects_bad_combinator() -> None:
    parameters: list = []
    assert build_search_clause({"rules": [{"field": "ssn", "operator": "equals", "value": "1"}]}, parameters) == "1=1"
    assert build_search_clause({"rules": []}, parameters) == "1=1"
    assert parameters == []

    with pytest.raises(ValueError):
        build_search_clause({"combinator": "XOR", "rules": [{"field": "amount"}]}, parameters)


def test_chart_series_uses_daily_buckets_for_short_ranges() -> None:
    series = build_chart_series(
        [
            {"gift_date": "2026-03-02", "gift_amount_cents": 500},
            {"gift_date": "2026-03-02 10:15:00", "gift_amount_cents": 250},
        ],
        date(2026, 3, 1),
        date(2026, 3, 3),
    )

    assert [point["name"] for point in series] == ["03/01", "03/02", "03/03"]
    assert series[1] == {"name": "03/02", "amount_cents": 750, "count": 2}
    assert series[0]["amount_cents"] == 0


def test_chart_series_switches_to_months_for_long_ranges() -> None:
    series = build_chart_series(
        [{"gift_date": "2026-02-20", "gift_amount_cents": 1000}],
        date(2026, 1, 15),
        date(2026, 4, 10),
    )

    assert [point["name"] for point in series] == ["Jan 26", "Feb 26", "Mar 26", "Apr 26"]
    assert series[1]["amount_cents"] == 1000
    assert series[1]["count"] == 1


def test_dashboard_stats_totals_and_scope(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    first_client, _ = _seed(store)
    store.log_audit(None, "Login", None, None, None)

    stats = store.dashboard_stats(start_date="2026-03-01", end_date="2026-03-10")

    assert stats["total_amount_cents"] == 39000
    assert stats["open_batches"] == 1
    assert stats["closed_batches"] == 1
    assert stats["pending_resolutions"] == 1
    assert stats["flagged_items"] == 1
    assert stats["by_client"][0]["client_name"] == "Second Client"
    assert {row["name"] for row in stats["by_method"]} == {"Check", "Cash", "Credit Card"}
    assert len(stats["chart_data"]) == 10
    assert sum(point["amount_cents"] for point in stats["chart_data"]) == 39000
    assert len(stats["recent_logs"]) == 1

    scoped = store.dashboard_stats(
        start_date="2026-03-01",
        end_date="2026-03-10",
        allowed_client_ids=[first_client],
    )
    assert scoped["total_amount_cents"] == 14000
    assert scoped["open_batches"] == 0
    assert scoped["pending_resolutions"] == 0
    assert scoped["recent_logs"] == []


def test_search_donations_and_platforms(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    first_client, _ = _seed(store)

    results = store.search_donations(
        {"combinator": "AND", "rules": [{"field": "clientCode", "operator": "equals", "value": "ONE"}]}
    )
    assert [row["gift_amount_cents"] for row in results] == [4000, 10000]

    by_check = store.search_donations({"rules": [{"field": "checkNumber", "operator": "equals", "value": "77"}]})
    assert by_check[0]["donor_last_name"] == "Ortiz"

    everything = store.search_donations({"rules": []}, allowed_client_ids=[first_client])
    assert len(everything) == 2

    assert store.platforms_in_use() == ["Cage", "Winred"]
