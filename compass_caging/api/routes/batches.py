"""Batch, batch document, batch donation and deposit slip endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status

from ...config import Settings
from ...store import CagingStore
from ..deps import (
    CurrentUser,
    as_dict,
    as_dicts,
    client_ip,
    ensure_client_access,
    get_current_user,
    get_settings,
    get_store,
    require_staff,
)
from ..schemas import BatchCreate, BatchStatusUpdate, DonationInput, QuickAddDonation

router = APIRouter(prefix="/batches", tags=["Batches"])


def _load_batch(store: CagingStore, user: CurrentUser, batch_id: int) -> dict:
    batch = as_dict(store.get_batch(batch_id))
    ensure_client_access(user, batch["client_id"])
    return batch


def _csv_response(content: str, file_name: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("")
def list_batches(
    client_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_batches(user.client_scope, client_id=client_id, status=status_filter))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_batch(
    payload: BatchCreate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    values = payload.model_dump()
    batch = store.create_batch(
        created_by=user.id,
        batch_date=values.pop("date"),
        **values,
    )
    store.log_audit(
        user.id,
        "CreateBatch",
        batch["id"],
        {"batch_code": batch["batch_code"], "client_id": batch["client_id"]},
        client_ip(request),
        "Batch",
    )
    return as_dict(batch)


@router.get("/{batch_id}")
def get_batch(
    batch_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return _load_batch(store, user, batch_id)


@router.patch("/{batch_id}/status")
def update_batch_status(
    batch_id: int,
    payload: BatchStatusUpdate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_batch(store, user, batch_id)
    batch = store.update_batch_status(batch_id, payload.status)
    store.log_audit(user.id, "UpdateBatchStatus", batch_id, {"status": payload.status}, client_ip(request), "Batch")
    return as_dict(batch)


@router.get("/{batch_id}/documents")
def list_documents(
    batch_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    _load_batch(store, user, batch_id)
    return as_dicts(store.list_batch_documents(batch_id))


@router.post("/{batch_id}/documents", status_code=status.HTTP_201_CREATED)
def upload_document(
    batch_id: int,
    request: Request,
    file: UploadFile = File(...),
    document_type: str = Form(..., alias="type"),
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    _load_batch(store, user, batch_id)
    document = store.add_batch_document(
        batch_id,
        document_type,
        file.filename or "",
        file.file.read(),
        content_type=file.content_type,
        uploaded_by=user.id,
        max_bytes=settings.MAX_DOCUMENT_BYTES,
    )
    store.log_audit(
        user.id,
        "UploadDocument",
        batch_id,
        {"document_id": document["id"], "type": document_type, "file_name": document["file_name"]},
        client_ip(request),
        "Batch",
    )
    return as_dict(document)


@router.get("/documents/{document_id}/download")
def download_document(
    document_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> Response:
    document = store.get_batch_document(document_id)
    _load_batch(store, user, document["batch_id"])
    return Response(
        content=document["content"],
        media_type=document["content_type"] or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{document["file_name"]}"'},
    )


@router.get("/{batch_id}/donations")
def list_batch_donations(
    batch_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    _load_batch(store, user, batch_id)
    return as_dicts(store.list_batch_donations(batch_id))


@router.post("/{batch_id}/donations/quick", status_code=status.HTTP_201_CREATED)
def quick_add_donation(
    batch_id: int,
    payload: QuickAddDonation,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_batch(store, user, batch_id)
    donation = store.quick_add_donation(
        batch_id,
        payload.amount,
        check_number=payload.check_number,
        scan_string=payload.scan_string,
        created_by=user.id,
    )
    store.log_audit(
        user.id,
        "CreateDonation",
        donation["id"],
        {"batch_id": batch_id, "amount_cents": donation["gift_amount_cents"], "mode": "quick"},
        client_ip(request),
        "Donation",
    )
    return as_dict(donation)


@router.post("/{batch_id}/donations", status_code=status.HTTP_201_CREATED)
def save_donation(
    batch_id: int,
    payload: DonationInput,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_batch(store, user, batch_id)
    donation = store.save_donation(batch_id, payload.model_dump(exclude_none=True), created_by=user.id)
    store.log_audit(
        user.id,
        "CreateDonation",
        donation["id"],
        {
            "batch_id": batch_id,
            "amount_cents": donation["gift_amount_cents"],
            "resolution_status": donation["resolution_status"],
        },
        client_ip(request),
        "Donation",
    )
    return as_dict(donation)


@router.get("/{batch_id}/deposit-slip")
def deposit_slip(
    batch_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_batch(store, user, batch_id)
    return store.deposit_slip(batch_id)


@router.get("/{batch_id}/deposit-slip.csv")
def deposit_slip_csv(
    batch_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> Response:
    _load_batch(store, user, batch_id)
    content, file_name = store.deposit_slip_csv(batch_id)
    return _csv_response(content, file_name)
