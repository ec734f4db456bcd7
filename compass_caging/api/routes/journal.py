"""Accounting journal preview and export endpoints."""

from fastapi import APIRouter, Depends, Response

from ...store import CagingStore
from ..deps import CurrentUser, as_dicts, get_store, require_staff
from ..schemas import JournalRequest

router = APIRouter(prefix="/journal", tags=["Journal"])


def _filters(payload: JournalRequest, user: CurrentUser) -> dict:
    return {
        "start_date": payload.start_date,
        "end_date": payload.end_date,
        "client_id": payload.client_id,
        "account_id": payload.account_id,
        "batch_ids": payload.batch_ids,
        "allowed_client_ids": user.client_scope,
    }


@router.post("/preview")
def preview(
    payload: JournalRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.journal_preview(payload.template_id, **_filters(payload, user))


@router.post("/export")
def export(
    payload: JournalRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> Response:
    content, file_name = store.journal_export(payload.template_id, user_id=user.id, **_filters(payload, user))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/logs")
def export_logs(
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_export_logs())
