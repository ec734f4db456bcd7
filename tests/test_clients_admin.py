from __future__ import annotations

import json

import pytest

from compass_caging import CagingStore, ConflictError, RecordNotFoundError


def _build_store(tmp_path) -> CagingStore:  # type: ignore[no-untyped-def]
    db_path = tmp_path / "compass_caging_admin_test.db"
    store = CagingStore(db_path)
    store.init_db()
    return store


def test_add_client_uppercases_code_and_rejects_duplicates(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)

    client_id = store.add_client("abc", "Alpha Beta Committee")
    assert store.get_client(client_id)["client_code"] == "ABC"

    with pytest.raises(ConflictError):
        store.add_client("ABC", "Another Committee")

    with pytest.raises(ValueError):
        store.add_client("", "Missing Code")


def test_client_scope_limits_listed_clients(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    first_id = store.add_client("AAA", "First")
    store.add_client("BBB", "Second")

    assert len(store.list_clients()) == 2
    assert [row["id"] for row in store.list_clients([first_id])] == [first_id]
    assert store.list_clients([]) == []


def test_delete_client_refuses_when_batches_exist(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("DEL", "Delete Me")
    user_id = store.add_user("clerk", None, role="Clerk", full_name="Dana Price")
    store.create_batch(client_id, user_id)

    with pytest.raises(ValueError, match="has batches"):
        store.delete_client(client_id)

    empty_id = store.add_client("EMP", "Empty")
    store.delete_client(empty_id)
    with pytest.raises(RecordNotFoundError):
        store.get_client(empty_id)


def test_bank_accounts_are_soft_deleted(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("BNK", "Bank Client")
    account_id = store.add_bank_account(client_id, "Operating", bank_name="First Federal", account_last4="1234")

    assert [row["id"] for row in store.list_bank_accounts(client_id=client_id)] == [account_id]

    store.deactivate_bank_account(account_id)
    assert store.list_bank_accounts(client_id=client_id) == []

    with pytest.raises(RecordNotFoundError):
        store.deactivate_bank_account(9999)


def test_users_have_unique_usernames_and_client_links(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    client_id = store.add_client("USR", "User Client")

    user_id = store.add_user("portal", "hash", role="ClientUser", client_ids=[client_id])
    assert store.user_client_ids(user_id) == [client_id]

    with pytest.raises(ConflictError):
        store.add_user("PORTAL", "hash")
    with pytest.raises(ValueError):
        store.add_user("someone", "hash", role="Superuser")

    store.update_user(user_id, client_ids=[])
    assert store.user_client_ids(user_id) == []

    listed = store.list_users()
    assert listed[0]["username"] == "portal"
    assert listed[0]["client_ids"] == []


def test_deactivate_user_blocks_self_removal(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    admin_id = store.add_user("admin", "hash", role="Admin")
    clerk_id = store.add_user("clerk", "hash", role="Clerk")

    with pytest.raises(ValueError):
        store.deactivate_user(admin_id, acting_user_id=admin_id)

    store.deactivate_user(clerk_id, acting_user_id=admin_id)
    assert store.get_user(clerk_id)["is_active"] == 0
    assert [row["username"] for row in store.list_users()] == ["admin"]
    assert len(store.list_users(include_inactive=True)) == 2


def test_password_tokens_are_single_use(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    user_id = store.add_user("newhire", None, role="Clerk")

    token = store.issue_password_token(user_id)
    assert store.consume_password_token(token, "new-hash") == user_id
    assert store.get_user(user_id)["password_hash"] == "new-hash"

    with pytest.raises(ValueError, match="already been used"):
        store.consume_password_token(token, "other-hash")

    expired = store.issue_password_token(user_id, ttl_hours=-1)
    with pytest.raises(ValueError, match="expired"):
        store.consume_password_token(expired, "late-hash")


def test_default_policy_is_pending_until_accepted(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    user_id = store.add_user("reader", "hash")

    pending = store.pending_policies(user_id)
    assert len(pending) == 1
    assert pending[0]["policy_type"] == "AcceptableUse"

    assert store.accept_policies(user_id, [pending[0]["id"]], "10.0.0.1") == 1
    assert store.pending_policies(user_id) == []

    with pytest.raises(RecordNotFoundError):
        store.accept_policies(user_id, [999])
    with pytest.raises(ConflictError):
        store.add_policy("AcceptableUse", "1.0", "Duplicate", "text")


def test_audit_log_serializes_details_and_pages(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    user_id = store.add_user("auditor", "hash", role="Admin")

    store.log_audit(user_id, "CreateBatch", 7, {"batch_code": "AU.01"}, "127.0.0.1", "Batch")
    store.log_audit(user_id, "Login", user_id, None, "127.0.0.1", "User")

    page = store.list_audit_logs(limit=1)
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert page["logs"][0]["username"] == "auditor"

    everything = store.list_audit_logs()["logs"]
    create_entry = next(row for row in everything if row["action"] == "CreateBatch")
    assert create_entry["entity_id"] == "7"
    assert json.loads(create_entry["details"]) == {"batch_code": "AU.01"}


def test_run_maintenance_removes_expired_tokens(tmp_path) -> None:  # type: ignore[no-untyped-def]
    store = _build_store(tmp_path)
    user_id = store.add_user("temp", None)
    store.issue_password_token(user_id, ttl_hours=-2)
    store.issue_password_token(user_id, ttl_hours=24)

    summary = store.run_maintenance()

    assert summary["expired_tokens_deleted"] == 1
    logs = store.list_maintenance_logs()
    assert len(logs) == 1
    assert logs[0]["status"] == "Success"
