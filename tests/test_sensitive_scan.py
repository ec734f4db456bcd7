from __future__ import annotations

from compass_caging import CagingStore, SensitiveDataScanner
from compass_caging.sensitive_scan import aba_routing_valid, luhn_valid, mask_value


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "sensitive_scan_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def test_scanner_flags_ssn_and_dob_context() -> None:
    scanner = SensitiveDataScanner()
    records = [
        {
            "object_name": "Donor Notes",
            "table_name": "donor_notes",
            "record_id": 42,
            "fields": {
                "content": "Called about receipt. DOB: 01/19/1988. SSN 123-45-6789 was read over the phone.",
            },
        }
    ]

    findings = scanner.scan_records(records)
    signals = {row["signal"] for row in findings}

    assert "SSN" in signals
    assert "Date of Birth" in signals
    assert findings[0]["severity"] == "High"
    ssn = next(row for row in findings if row["signal"] == "SSN")
    assert ssn["matched_text"] == "***6789"
    assert "123-45-6789" not in ssn["context"]


def test_scanner_flags_luhn_valid_card_numbers_only() -> None:
    scanner = SensitiveDataScanner()

    valid = scanner.scan_text("Donor paid with 4111 1111 1111 1111 exp 12/27")
    invalid = scanner.scan_text("Reference 4111 1111 1111 1112 on the envelope")

    assert [row["signal"] for row in valid] == ["Card Number"]
    assert valid[0]["matched_text"] == "***1111"
    assert invalid == []


def test_scanner_flags_routing_and_account_numbers() -> None:
    scanner = SensitiveDataScanner()

    findings = scanner.scan_text("ACH form: routing 021000021 acct 12345678")
    signals = {row["signal"] for row in findings}

    assert signals == {"Routing Number", "Bank Account Number"}

    # Nine digits failing the ABA checksum are not treated as routing numbers.
    assert scanner.scan_text("routing 123456789") == []


def test_scanner_ignores_normal_contact_data() -> None:
    scanner = SensitiveDataScanner()
    records = [
        {
            "object_name": "Donations",
            "table_name": "donations",
            "record_id": 9,
            "fields": {
                "first_name": "Nick",
                "last_name": "Harrison",
                "email": "nick@example.org",
                "phone": "555-2200",
                "comment": "Check #1044 for the spring gala",
            },
        },
        {"object_name": "Broken", "record_id": "x", "fields": {"comment": "SSN 123-45-6789"}},
    ]

    assert scanner.scan_records(records) == []


def test_checksums_and_masking() -> None:
    assert luhn_valid("4111111111111111")
    assert not luhn_valid("4111111111111112")
    assert not luhn_valid("1234")
    assert aba_routing_valid("021000021")
    assert not aba_routing_valid("000000000")
    assert mask_value("4111 1111 1111 1234") == "***1234"
    assert mask_value("abc") == "***"


def test_store_records_for_sensitive_scan_includes_free_text(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("SCN", "Scan Client")
    user_id = store.add_user("scanner", None, role="Admin", initials="SC")
    batch = store.create_batch(client_id, user_id, description="Mail drop 12")
    store.save_donation(batch["id"], {"amount": 25, "comment": "SSN 123-45-6789 written on slip"})
    store.save_donation(batch["id"], {"amount": 25, "comment": "   "})
    donor_id = store.add_donor(first_name="Casey", last_name="Miller")
    store.add_donor_note(donor_id, "DOB 1988-01-19 from reply card", "Admin")
    store.set_donor_alert(donor_id, "Major donor")

    records = store.records_for_sensitive_scan()
    tables = {row["table_name"] for row in records}

    assert {"donations", "donor_notes", "donors", "batches"} <= tables
    assert sum(1 for row in records if row["table_name"] == "donations") == 1

    findings = SensitiveDataScanner().scan_records(records)
    assert {row["table_name"] for row in findings} == {"donations", "donor_notes"}
