from __future__ import annotations

import pytest

from compass_caging import CagingStore
from compass_caging.imports import (
    apply_mapping_rules,
    import_batch_suffix,
    normalize_date,
    parse_csv_rows,
    parse_import_amount,
)

WINRED_EXPORT = (
    b"First Name,Last Name,Email,Gift Amount,Gift Date,State,Campaign\n"
    b'jane,doe,JANE@EXAMPLE.ORG,"$1,250.00",03/05/2026,texas,\n'
    b"sam,lee,sam@example.org,abc,03/06/2026,OH,\n"
)


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_imports_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _processed_session(store: CagingStore) -> int:
    store.add_mapping_rule("Campaign", "Winred", default_value="SPRING26")
    store.add_mapping_rule("Gift Date", "*", transformation_rule="date_format")
    upload = store.upload_import("winred.csv", "Winred", WINRED_EXPORT)
    store.process_import(upload["session_id"])
    return int(upload["session_id"])


def test_amount_and_date_parsing() -> None:
    assert parse_import_amount("$1,250.00") == 1250.0
    assert parse_import_amount("(12.50)") == -12.5
    assert parse_import_amount("abc") is None
    assert parse_import_amount("") is None
    assert normalize_date("03/05/2026") == "2026-03-05"
    assert normalize_date("not a date") is None


def test_apply_mapping_rules_fills_defaults_and_reports_errors() -> None:
    rules = [
        {"target_column": "Campaign", "default_value": "FALL", "transformation_rule": None},
        {"target_column": "Last Name", "default_value": None, "transformation_rule": "uppercase"},
    ]

    normalized, defaults_applied, errors = apply_mapping_rules(
        {"Last Name": "doe", "Campaign": "", "Gift Date": "2025-11-02", "Gift Amount": "ten"},
        rules,
    )

    assert normalized["Campaign"] == "FALL"
    assert normalized["Last Name"] == "DOE"
    assert normalized["Gift Year"] == 2025
    assert defaults_applied == ["Campaign: FALL (Rule)", "Gift Year: 2025 (Derived)"]
    assert errors == ["Gift Amount 'ten' is not a number."]


def test_import_batch_suffix_prefers_external_batch_id() -> None:
    assert import_batch_suffix("WR-2026-0042917", 3) == "042917"
    assert import_batch_suffix("ABC", 3) == "ABC"
    assert import_batch_suffix(None, 3) == "3"


def test_parse_csv_rows_rejects_empty_upload() -> None:
    assert parse_csv_rows(b"A,B\n 1 , 2 \n") == [{"A": "1", "B": "2"}]
    with pytest.raises(ValueError, match="Failed to parse CSV"):
        parse_csv_rows(b"")


def test_upload_and_process_stage_rows(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    store.add_mapping_rule("Campaign", "Winred", default_value="SPRING26")

    upload = store.upload_import("winred.csv", "Winred", WINRED_EXPORT)
    assert upload["row_count"] == 2
    assert store.get_import_session(upload["session_id"])["status"] == "Pending"

    result = store.process_import(upload["session_id"])
    assert result == {"processed": 2, "invalid": 1}

    staged = store.staging_rows(upload["session_id"])
    assert staged[0]["validation_status"] == "Valid"
    assert staged[0]["normalized_data"]["Campaign"] == "SPRING26"
    assert "Campaign: SPRING26 (Rule)" in staged[0]["defaults_applied"]
    assert staged[1]["validation_status"] == "Invalid"
    assert "Gift Amount 'abc' is not a number." in staged[1]["defaults_applied"]

    with pytest.raises(ValueError):
        store.upload_import("", "Winred", WINRED_EXPORT)


def test_commit_creates_import_batch_and_skips_invalid_rows(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("ABC", "Alpha Beta Committee")
    upload = store.upload_import("winred.csv", "Winred", WINRED_EXPORT)

    with pytest.raises(ValueError, match="processed"):
        store.commit_import(upload["session_id"], client_id)

    store.add_mapping_rule("Campaign", "Winred", default_value="SPRING26")
    store.process_import(upload["session_id"])
    committed = store.commit_import(upload["session_id"], client_id)

    assert committed["donations_created"] == 1
    assert committed["rows_skipped"] == 1
    assert committed["batch_code"].startswith("ABC.WR.")
    assert committed["batch_code"].endswith(f".{upload['session_id']}")

    batch = store.get_batch(committed["batch_id"])
    assert batch["entry_mode"] == "Import"
    assert batch["default_gift_platform"] == "Winred"

    donations = store.list_batch_donations(committed["batch_id"])
    assert len(donations) == 1
    gift = donations[0]
    assert gift["gift_amount_cents"] == 125000
    assert gift["gift_date"] == "2026-03-05"
    assert gift["gift_year"] == 2026
    assert gift["donor_first_name"] == "Jane"
    assert gift["donor_email"] == "jane@example.org"
    assert gift["donor_state"] == "TX"
    assert gift["campaign_id"] == "SPRING26"
    assert gift["gift_method"] == "Credit Card"

    assert store.get_import_session(upload["session_id"])["status"] == "Completed"
    with pytest.raises(ValueError):
        store.process_import(upload["session_id"])

    history = store.import_history()
    assert history[0]["donations_created"] == 1
    assert history[0]["batches_created"] == 1


def test_revert_deletes_imported_batches(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("ABC", "Alpha Beta Committee")
    session_id = _processed_session(store)
    store.commit_import(session_id, client_id)

    assert store.revert_import(session_id) == {"deleted_donations": 1, "deleted_batches": 1}
    assert store.get_import_session(session_id)["status"] == "Reverted"
    assert store.list_batches() == []


def test_revert_is_blocked_once_batch_is_reconciling(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("ABC", "Alpha Beta Committee")
    session_id = _processed_session(store)
    committed = store.commit_import(session_id, client_id)
    store.update_batch_status(committed["batch_id"], "Closed")
    period_id = store.create_period(client_id, "2026-01-01", "2026-12-31")
    store.add_batch_to_period(period_id, committed["batch_id"])

    with pytest.raises(ValueError, match="reconciliation period"):
        store.revert_import(session_id)


def test_import_sources_include_rule_sources(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    store.add_mapping_rule("Campaign", "Revv", default_value="R1")
    store.add_mapping_rule("Campaign", "*", default_value="ANY")

    sources = store.import_sources()

    assert "Revv" in sources
    assert {"Winred", "Stripe", "Anedot", "Cage"} <= set(sources)
    assert "*" not in sources
