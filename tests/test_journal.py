from __future__ import annotations

import pytest

from compass_caging import CagingStore
from compass_caging.journal import JOURNAL_HEADERS, generate_journal_rows

TEMPLATE_ROWS = [
    {
        "JournalNo": "{BatchCode}",
        "JournalDate": "{Date}",
        "AccountName": "Undeposited Funds",
        "Debits": "{Amount}",
        "Description": "{DonorName} {PaymentMethod} #{CheckNumber}",
    },
    {
        "JournalNo": "{BatchCode}",
        "JournalDate": "{Date}",
        "AccountName": "Contributions",
        "Credits": "{Amount}",
        "Class": "{Campaign}",
        "Currency": "USD",
    },
]


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_journal_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _seed(store: CagingStore) -> tuple[int, int, int]:
    client_id = store.add_client("JRN", "Journal Client")
    user_id = store.add_user("bookkeeper", None, role="Admin", initials="BK")
    batch = store.create_batch(client_id, user_id, batch_date="2026-03-05")
    store.save_donation(
        batch["id"],
        {
            "amount": 100,
            "check_number": "1201",
            "gift_date": "2026-03-05",
            "campaign_id": "GALA",
            "donor_first_name": "Lee",
            "donor_last_name": "Park",
        },
    )
    voided = store.save_donation(batch["id"], {"amount": 60, "gift_date": "2026-03-05"})
    store.void_donation(voided["id"])
    template_id = store.add_export_template("QuickBooks", TEMPLATE_ROWS)
    return user_id, int(batch["id"]), template_id


def test_generate_rows_replaces_placeholders() -> None:
    donation = {
        "id": 9,
        "batch_code": "BK.01",
        "gift_date": "2026-11-03",
        "gift_amount_cents": 2550,
        "first_name": None,
        "last_name": None,
        "donor_first_name": "Ada",
        "donor_last_name": "Stone",
        "gift_method": "Cash",
        "check_number": None,
        "gift_platform": "Cage",
        "transaction_type": "Contribution",
        "campaign_id": None,
    }

    rows = generate_journal_rows([donation], TEMPLATE_ROWS)

    assert len(rows) == 2
    assert rows[0]["_donation_id"] == 9
    assert rows[0]["JournalDate"] == "11/3/2026"
    assert rows[0]["Debits"] == "25.50"
    assert rows[0]["Description"] == "Ada Stone Cash #"
    assert rows[1]["Credits"] == "25.50"
    assert rows[1]["Debits"] == ""
    assert set(JOURNAL_HEADERS) <= set(rows[1])


def test_preview_uses_selected_batches(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, batch_id, template_id = _seed(store)

    preview = store.journal_preview(template_id, batch_ids=[batch_id])

    assert preview["count"] == 2
    debit, credit = preview["rows"]
    assert debit["JournalNo"] == "BK.01"
    assert debit["JournalDate"] == "3/5/2026"
    assert debit["Description"] == "Lee Park Check #1201"
    assert credit["Class"] == "GALA"

    with pytest.raises(ValueError, match="Template required"):
        store.journal_preview(None, batch_ids=[batch_id])


def test_export_requires_reconciled_batches_and_logs(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    user_id, batch_id, template_id = _seed(store)

    with pytest.raises(ValueError, match="No reconciled data"):
        store.journal_export(template_id, user_id=user_id, start_date="2026-03-01", end_date="2026-03-31")

    store.update_batch_status(batch_id, "Reconciled")
    csv_text, file_name = store.journal_export(
        template_id,
        user_id=user_id,
        start_date="2026-03-01",
        end_date="2026-03-31",
    )

    lines = csv_text.splitlines()
    assert lines[0] == ",".join(JOURNAL_HEADERS)
    assert len(lines) == 3
    assert "_donation_id" not in lines[0]
    assert file_name.startswith("journal_export_")

    logs = store.list_export_logs()
    assert logs[0]["row_count"] == 2
    assert logs[0]["template_name"] == "QuickBooks"
    assert logs[0]["username"] == "bookkeeper"


def test_export_templates_validate_and_update(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    with pytest.raises(ValueError):
        store.add_export_template("Empty", [])

    template_id = store.add_export_template("Xero", TEMPLATE_ROWS[:1])
    updated = store.update_export_template(template_id, name="Xero v2", mappings=TEMPLATE_ROWS)

    assert updated["name"] == "Xero v2"
    assert len(store.get_export_template(template_id)["mappings"]) == 2
    assert [template["id"] for template in store.list_export_templates()] == [template_id]
