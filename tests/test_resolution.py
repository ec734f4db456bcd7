from __future__ import annotations

import pytest

from compass_caging import CagingStore, RecordNotFoundError


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_resolution_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _pending_gift(store: CagingStore, **donor_fields: str) -> tuple[int, int]:
    client_id = store.add_client("RES", "Resolution Client")
    user_id = store.add_user("reviewer", None, role="Clerk")
    batch = store.create_batch(client_id, user_id)
    donation = store.save_donation(
        batch["id"],
        {"amount": 40, "resolution_status": "Pending", **donor_fields},
        created_by=user_id,
    )
    return client_id, int(donation["id"])


def test_pending_donation_queues_scored_candidates(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    robert_id = store.add_donor(first_name="Robert", last_name="Jones", email="bob@example.org")
    store.add_donor(first_name="Alice", last_name="Jones")
    store.add_donor(first_name="Zed", last_name="Unrelated")

    client_id, donation_id = _pending_gift(
        store,
        donor_first_name="Bob",
        donor_last_name="Jones",
        donor_email="bob@example.org",
    )

    queue = store.resolution_queue()
    assert [item["id"] for item in queue] == [donation_id]

    candidates = queue[0]["candidates"]
    assert candidates[0]["donor_id"] == robert_id
    assert candidates[0]["reason"] == "Email match"
    assert all(candidate["first_name"] != "Zed" for candidate in candidates)

    assert store.resolution_queue(allowed_client_ids=[client_id]) == queue
    assert store.resolution_queue(allowed_client_ids=[]) == []


def test_link_resolves_to_existing_donor(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    donor_id = store.add_donor(first_name="Robert", last_name="Jones", email="bob@example.org")
    _, donation_id = _pending_gift(store, donor_first_name="Bob", donor_last_name="Jones")

    assert store.resolve_pending(donation_id, "Link", donor_id) == donor_id

    donation = store.get_donation(donation_id)
    assert donation["donor_id"] == donor_id
    assert donation["resolution_status"] == "Resolved"
    assert store.resolution_queue() == []


def test_create_new_adds_donor_from_gift_fields(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, donation_id = _pending_gift(
        store,
        donor_first_name="casey",
        donor_last_name="morgan",
        donor_city="tulsa",
    )

    donor_id = store.resolve_pending(donation_id, "CreateNew")

    donor = store.get_donor(donor_id)
    assert (donor["first_name"], donor["last_name"], donor["city"]) == ("Casey", "Morgan", "Tulsa")
    assert store.get_donation(donation_id)["donor_id"] == donor_id


def test_resolve_rejects_bad_actions(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, donation_id = _pending_gift(store, donor_first_name="Lee", donor_last_name="Smith")

    with pytest.raises(ValueError, match="Invalid Action"):
        store.resolve_pending(donation_id, "Ignore")
    with pytest.raises(ValueError, match="Missing Candidate ID"):
        store.resolve_pending(donation_id, "Link")
    with pytest.raises(RecordNotFoundError):
        store.resolve_pending(donation_id, "Link", 999)
    with pytest.raises(RecordNotFoundError):
        store.resolve_pending(999, "CreateNew")
