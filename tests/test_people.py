from __future__ import annotations

import pytest

from compass_caging import CagingStore, RecordNotFoundError, donor_display_name
from compass_caging.people import donor_search_score


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_people_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def _seed_batch(store: CagingStore) -> tuple[int, int, int]:
    client_id = store.add_client("PPL", "People Client")
    user_id = store.add_user("caseworker", None, role="Clerk", full_name="Casey Worker")
    batch = store.create_batch(client_id, user_id, batch_date="2026-05-01")
    return client_id, user_id, int(batch["id"])


def test_add_donor_requires_name_email_or_organization(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    with pytest.raises(ValueError):
        store.add_donor(first_name="Only")
    with pytest.raises(ValueError):
        store.add_donor(organization_name="  ")

    person_id = store.add_donor(first_name="Avery", last_name="Mills", email="avery@example.org")
    org_id = store.add_donor(organization_name="Community Builders Foundation")
    email_only = store.add_donor(email="anon@example.org")

    ids = {row["id"] for row in store.list_people()["data"]}
    assert {person_id, org_id, email_only} <= ids
    assert donor_display_name(store.get_donor(org_id)) == "Community Builders Foundation"
    assert donor_display_name(store.get_donor(email_only)) == "Unnamed donor"


def test_smart_search_matches_name_variants(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    nick_id = store.add_donor(first_name="Nick", last_name="Harrison", email="nick.h@example.org")
    store.add_donor(first_name="Nicole", last_name="Sanders", email="nicole@example.org")

    default_matches = store.list_people("Nicholas")["data"]
    assert all(row["id"] != nick_id for row in default_matches)

    smart_matches = store.list_people("Nicholas", smart_search=True)["data"]
    assert smart_matches[0]["id"] == nick_id


def test_search_score_rewards_phone_and_exact_name() -> None:
    row = {
        "first_name": "Robert",
        "last_name": "Jones",
        "organization_name": None,
        "email": "bob@example.org",
        "phone": "(555) 123-4567",
    }

    assert donor_search_score(row, "Bob Jones") >= 200
    assert donor_search_score(row, "5551234567") >= 240
    assert donor_search_score(row, "zzz") < 55


def test_list_people_filters_by_city_and_lifetime_total(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, _, batch_id = _seed_batch(store)
    big_id = store.add_donor(first_name="Big", last_name="Giver", city="Austin")
    small_id = store.add_donor(first_name="Small", last_name="Giver", city="Dallas")

    big_gift = store.save_donation(batch_id, {"amount": 500})
    small_gift = store.save_donation(batch_id, {"amount": 5})
    with store._connect() as connection:
        connection.execute("UPDATE donations SET donor_id = ? WHERE id = ?", (big_id, big_gift["id"]))
        connection.execute("UPDATE donations SET donor_id = ? WHERE id = ?", (small_id, small_gift["id"]))

    by_total = store.list_people(min_total=100)["data"]
    assert [row["id"] for row in by_total] == [big_id]
    assert by_total[0]["lifetime_value_cents"] == 50000

    by_city = store.list_people(city="dall")["data"]
    assert [row["id"] for row in by_city] == [small_id]

    detail = store.donor_detail(big_id)
    assert detail["stats"] == {"total_given_cents": 50000, "gift_count": 1, "avg_gift_cents": 50000}

    csv_text, file_name = store.donor_history_csv(big_id)
    assert file_name == "history_Big_Giver.csv"
    assert csv_text.splitlines()[0] == "Date,Amount,Check Number,Category"
    assert "500.00" in csv_text


def test_resolve_batch_donations_links_by_email_then_name(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, _, batch_id = _seed_batch(store)
    existing_id = store.add_donor(first_name="Jordan", last_name="Reyes", email="jordan@example.org")
    named_id = store.add_donor(first_name="Morgan", last_name="Lee")

    by_email = store.save_donation(
        batch_id,
        {"amount": 10, "donor_first_name": "J", "donor_last_name": "R", "donor_email": "JORDAN@example.org"},
    )
    by_name = store.save_donation(batch_id, {"amount": 10, "donor_first_name": "morgan", "donor_last_name": "lee"})
    brand_new = store.save_donation(
        batch_id,
        {"amount": 10, "donor_first_name": "Taylor", "donor_last_name": "Quinn", "donor_city": "reno"},
    )
    anonymous = store.save_donation(batch_id, {"amount": 10})

    assert store.resolve_batch_donations([batch_id]) == 3

    assert store.get_donation(by_email["id"])["donor_id"] == existing_id
    assert store.get_donation(by_name["id"])["donor_id"] == named_id
    new_donor_id = store.get_donation(brand_new["id"])["donor_id"]
    assert new_donor_id not in (existing_id, named_id)
    assert store.get_donor(new_donor_id)["city"] == "Reno"
    assert store.get_donation(anonymous["id"])["donor_id"] is None

    assert store.resolve_batch_donations([]) == 0


def test_duplicate_lookup_and_scan(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    first_id = store.add_donor(first_name="Pat", last_name="Kim", email="pat@example.org", address="10 Elm St")
    second_id = store.add_donor(first_name="Patricia", last_name="Kim", email="PAT@example.org")
    store.add_donor(first_name="Pat", last_name="Kim")

    matches = store.lookup_duplicates(first_name="Pat", last_name="Kim", email="pat@example.org")
    assert matches[0]["confidence"] == 1.0
    assert {row["id"] for row in matches[:2]} == {first_id, second_id}

    assert store.lookup_duplicates() == []

    groups = store.scan_duplicate_donors()
    email_group = next(group for group in groups if group["field"] == "Email")
    name_group = next(group for group in groups if group["field"] == "Name")
    assert email_group["count"] == 2
    assert {donor["id"] for donor in email_group["donors"]} == {first_id, second_id}
    assert name_group["count"] == 2


def test_merge_moves_related_records_to_primary(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, user_id, batch_id = _seed_batch(store)
    primary_id = store.add_donor(first_name="Sam", last_name="Ng")
    duplicate_id = store.add_donor(first_name="Samuel", last_name="Ng")

    donation = store.save_donation(batch_id, {"amount": 25, "donor_first_name": "Samuel", "donor_last_name": "Ng"})
    store.resolve_batch_donations([batch_id])
    assert store.get_donation(donation["id"])["donor_id"] == duplicate_id
    store.add_donor_note(duplicate_id, "Prefers email", "Casey")
    store.add_pledge(duplicate_id, 100, "SPRING")
    store.toggle_subscription(user_id, duplicate_id)

    assert store.merge_donors(primary_id, [duplicate_id, primary_id]) == 1

    assert store.get_donation(donation["id"])["donor_id"] == primary_id
    assert len(store.list_donor_notes(primary_id)) == 1
    assert len(store.list_pledges(primary_id)) == 1
    with pytest.raises(RecordNotFoundError):
        store.get_donor(duplicate_id)

    # Subscription moved, so toggling now unsubscribes.
    assert store.toggle_subscription(user_id, primary_id) is False
    assert store.merge_donors(primary_id, [primary_id]) == 0


def test_notes_tasks_pledges_and_files(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    _, user_id, _ = _seed_batch(store)
    donor_id = store.add_donor(first_name="Riley", last_name="Fox")

    note = store.add_donor_note(donor_id, "Met at gala", None)
    assert note["author_name"] == "Unknown"
    with pytest.raises(ValueError):
        store.add_donor_note(donor_id, "   ", "Casey")

    task_id = store.add_donor_task(donor_id, "Call about pledge", created_by=user_id, due_date="2026-06-01")
    store.set_task_completed(task_id, True)
    tasks = store.list_donor_tasks(donor_id)
    assert tasks[0]["is_completed"] == 1
    assert tasks[0]["created_by_name"] == "caseworker"
    store.delete_donor_task(task_id)
    assert store.list_donor_tasks(donor_id) == []
    with pytest.raises(RecordNotFoundError):
        store.set_task_completed(task_id, False)

    pledge = store.add_pledge(donor_id, 250, "GALA")
    assert pledge["amount_cents"] == 25000
    with pytest.raises(ValueError):
        store.add_pledge(donor_id, 0)

    store.add_donor_file(donor_id, "letter.pdf", b"%PDF", "application/pdf", user_id)
    files = store.list_donor_files(donor_id)
    assert files[0]["size_bytes"] == 4
    assert files[0]["uploaded_by_name"] == "caseworker"

    alerted = store.set_donor_alert(donor_id, "Do not call")
    assert alerted["has_alert"] == 1
    assert store.set_donor_alert(donor_id, "")["has_alert"] == 0


def test_acknowledgement_queue_covers_closed_batches_over_threshold(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id, _, batch_id = _seed_batch(store)
    large = store.save_donation(
        batch_id,
        {"amount": 75, "donor_first_name": "Quinn", "donor_last_name": "Hale", "gift_date": "2026-05-01"},
    )
    store.save_donation(
        batch_id,
        {"amount": 25, "donor_first_name": "Quinn", "donor_last_name": "Hale", "gift_date": "2026-05-01"},
    )
    store.resolve_batch_donations([batch_id])

    assert store.acknowledgement_queue() == []

    store.update_batch_status(batch_id, "Closed")
    queue = store.acknowledgement_queue()
    assert [row["donation_id"] for row in queue] == [large["id"]]
    assert store.acknowledgement_queue(allowed_client_ids=[client_id + 1]) == []

    stats = store.people_stats()
    assert stats["acknowledgements"] == 1

    assert store.mark_acknowledged([large["id"]], "ThankYou") == 1
    assert store.acknowledgement_queue() == []
    with pytest.raises(ValueError):
        store.mark_acknowledged([], "ThankYou")
