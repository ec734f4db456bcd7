"""Bank reconciliation period endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from ...store import CagingStore
from ..deps import (
    CurrentUser,
    as_dict,
    as_dicts,
    client_ip,
    ensure_client_access,
    get_current_user,
    get_store,
    require_staff,
)
from ..schemas import (
    AddBatchRequest,
    BankImportRequest,
    ExceptionResolveRequest,
    MatchRequest,
    PeriodCreate,
    StatementUpdate,
    ToggleItemRequest,
    TransferRequest,
)

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


def _load_period(store: CagingStore, user: CurrentUser, period_id: int) -> dict:
    period = store.get_period(period_id)
    ensure_client_access(user, period["client_id"])
    return period


@router.get("/periods")
def list_periods(
    client_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_periods(client_id, start, end, user.client_scope))


@router.post("/periods", status_code=status.HTTP_201_CREATED)
def create_period(
    payload: PeriodCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    period_id = store.create_period(payload.client_id, payload.start_date, payload.end_date, created_by=user.id)
    return {"success": True, "id": period_id}


@router.get("/periods/{period_id}")
def get_period(
    period_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return _load_period(store, user, period_id)


@router.patch("/periods/{period_id}/statement")
def update_statement(
    period_id: int,
    payload: StatementUpdate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(
        store.update_period_statement(period_id, payload.statement_ending_balance, payload.statement_link)
    )


@router.post("/periods/{period_id}/batches")
def add_batch(
    period_id: int,
    payload: AddBatchRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    totals = store.add_batch_to_period(period_id, payload.batch_id)
    return {"success": True, **totals}


@router.post("/periods/{period_id}/bank-import")
def bank_import(
    period_id: int,
    payload: BankImportRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    transactions = [transaction.model_dump() for transaction in payload.transactions]
    return {"success": True, **store.import_bank_transactions(period_id, transactions)}


@router.post("/periods/{period_id}/match")
def match_transaction(
    period_id: int,
    payload: MatchRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(
        store.match_transaction(
            period_id,
            payload.bank_transaction_id,
            payload.system_item_id,
            payload.system_item_type,
        )
    )


@router.post("/periods/{period_id}/reconcile")
def reconcile(
    period_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.reconcile_period(period_id, raised_by=user.id)


@router.post("/periods/{period_id}/transfer")
def transfer(
    period_id: int,
    payload: TransferRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    if payload.action == "schedule":
        period = store.schedule_transfer(period_id, payload.transfer_date)
    elif payload.action == "complete":
        period = store.complete_transfer(period_id, payload.transfer_date, payload.reference)
    else:
        raise ValueError("Invalid action")
    return as_dict(period)


@router.post("/periods/{period_id}/undo")
def undo_reconciliation(
    period_id: int,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    batch_ids = store.undo_reconciliation(period_id)
    store.log_audit(
        user.id,
        "UNDO_RECONCILIATION",
        period_id,
        {"reverted_batch_ids": batch_ids},
        client_ip(request),
        "ReconciliationPeriod",
    )
    return {"success": True, "batch_ids": batch_ids}


@router.post("/items/toggle")
def toggle_item(
    payload: ToggleItemRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    store.set_item_cleared(payload.type, payload.id, payload.cleared)
    return {"success": True}


@router.get("/periods/{period_id}/exceptions")
def list_exceptions(
    period_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    _load_period(store, user, period_id)
    return as_dicts(store.list_exceptions(period_id))


@router.post("/exceptions/{exception_id}/resolve")
def resolve_exception(
    exception_id: int,
    payload: ExceptionResolveRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.resolve_exception(exception_id, payload.resolution_notes, resolved_by=user.id))
