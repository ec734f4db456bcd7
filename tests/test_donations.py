from __future__ import annotations

import pytest

from compass_caging import CagingStore, RecordNotFoundError


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_donations_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _seed_batch(store: CagingStore) -> tuple[int, int, int]:
    client_id = store.add_client("DON", "Donation Client")
    user_id = store.add_user("keyer", None, role="Clerk", initials="kx")
    batch = store.create_batch(client_id, user_id, batch_date="2026-04-01")
    return client_id, user_id, int(batch["id"])


def test_update_donation_cleans_fields_and_converts_amounts(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, user_id, batch_id = _seed_batch(store)
    donation = store.save_donation(batch_id, {"amount": 10})

    updated = store.update_donation(
        donation["id"],
        {"amount": 12.34, "gift_fee": 0.5, "donor_city": "san ANTONIO", "comment": "Corrected", "is_inactive": True},
        modified_by=user_id,
    )

    assert updated["gift_amount_cents"] == 1234
    assert updated["gift_fee_cents"] == 50
    assert updated["donor_city"] == "San Antonio"
    assert updated["comment"] == "Corrected"
    assert updated["is_inactive"] == 1
    assert updated["last_modified_by"] == user_id


def test_voided_donations_are_read_only(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, user_id, batch_id = _seed_batch(store)
    donation = store.save_donation(batch_id, {"amount": 10, "resolution_status": "Pending"})
    assert donation["is_flagged"] == 1

    voided = store.void_donation(donation["id"], modified_by=user_id)
    assert voided["resolution_status"] == "Void"
    assert voided["is_flagged"] == 0

    with pytest.raises(ValueError, match="Voided"):
        store.update_donation(donation["id"], {"amount": 20})


def test_void_is_refused_once_batch_is_reconciled(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, _, batch_id = _seed_batch(store)
    donation = store.save_donation(batch_id, {"amount": 10})
    store.update_batch_status(batch_id, "Reconciled")

    with pytest.raises(ValueError, match="reconciled"):
        store.void_donation(donation["id"])


def test_acknowledge_sets_and_clears_timestamps(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, _, batch_id = _seed_batch(store)
    donation = store.save_donation(batch_id, {"amount": 10})

    sent_at = store.acknowledge_donation(donation["id"], "TaxReceipt", True)
    assert sent_at is not None
    assert store.get_donation(donation["id"])["tax_receipt_sent_at"] == sent_at

    assert store.acknowledge_donation(donation["id"], "TaxReceipt", False) is None
    assert store.get_donation(donation["id"])["tax_receipt_sent_at"] is None

    with pytest.raises(ValueError, match="Invalid type"):
        store.acknowledge_donation(donation["id"], "Postcard", True)


def test_list_donations_filters_and_scopes(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id, user_id, batch_id = _seed_batch(store)
    other_client = store.add_client("OTH", "Other Client")
    other_batch = store.create_batch(other_client, user_id)

    flagged = store.save_donation(batch_id, {"amount": 10, "resolution_status": "Pending"})
    store.save_donation(batch_id, {"amount": 20})
    store.save_donation(other_batch["id"], {"amount": 30})

    assert len(store.list_donations()) == 3
    assert [row["id"] for row in store.list_donations(is_flagged=True)] == [flagged["id"]]
    assert len(store.list_donations(allowed_client_ids=[client_id])) == 2
    assert len(store.list_donations(client_id=other_client)) == 1
    assert store.list_donations(allowed_client_ids=[]) == []
    assert store.list_donations()[0]["batch_code"] in ("KX.01", "KX.02")

    cleared = store.resolve_flag(flagged["id"])
    assert cleared["is_flagged"] == 0
    assert store.list_donations(is_flagged=True) == []


def test_missing_donation_raises_not_found(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    with pytest.raises(RecordNotFoundError):
        store.get_donation(404)
    with pytest.raises(RecordNotFoundError):
        store.void_donation(404)
