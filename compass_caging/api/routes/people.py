"""Donor directory, relationship records, dedupe and acknowledgement endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status

from ...store import CagingStore
from ..deps import (
    CurrentUser,
    as_dict,
    as_dicts,
    client_ip,
    get_current_user,
    get_store,
    require_admin,
    require_staff,
)
from ..schemas import (
    BatchIdsRequest,
    BulkAcknowledgeRequest,
    DonorAlertUpdate,
    DonorCreate,
    MergeRequest,
    NoteCreate,
    PledgeCreate,
    TaskCreate,
    TaskUpdate,
)

router = APIRouter(prefix="/people", tags=["People"])


@router.get("")
def search_people(
    q: str = "",
    city: Optional[str] = None,
    min_total: Optional[float] = Query(None, alias="min"),
    page: int = 1,
    smart: bool = False,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.list_people(q, city=city, min_total=min_total, page=page, smart_search=smart)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_donor(
    payload: DonorCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    values = payload.model_dump()
    donor_id = store.add_donor(zip_code=values.pop("zip"), **values)
    return as_dict(store.get_donor(donor_id))


@router.get("/stats")
def people_stats(
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.people_stats(user.client_scope)


@router.get("/duplicates")
def lookup_duplicates(
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.lookup_duplicates(first_name, last_name, email, address)


@router.get("/duplicates/scan")
def scan_duplicates(
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.scan_duplicate_donors()


@router.post("/merge")
def merge_donors(
    payload: MergeRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    merged = store.merge_donors(payload.primary_id, payload.secondary_ids)
    store.log_audit(
        user.id,
        "MergeDonors",
        payload.primary_id,
        {"secondary_ids": payload.secondary_ids},
        client_ip(request),
        "Donor",
    )
    return {"success": True, "merged": merged}


@router.post("/resolve-identities")
def resolve_identities(
    payload: BatchIdsRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, "resolved": store.resolve_batch_donations(payload.batch_ids)}


@router.get("/acknowledgements")
def acknowledgement_queue(
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.acknowledgement_queue(start, end, user.client_scope))


@router.post("/acknowledgements")
def mark_acknowledged(
    payload: BulkAcknowledgeRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, "updated": store.mark_acknowledged(payload.ids, payload.type)}


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: int,
    payload: TaskUpdate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    store.set_task_completed(task_id, payload.is_completed)
    return {"success": True}


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.delete_donor_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{donor_id}")
def donor_detail(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.donor_detail(donor_id)


@router.patch("/{donor_id}")
def update_donor(
    donor_id: int,
    payload: DonorCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.update_donor(donor_id, **payload.model_dump(exclude_unset=True)))


@router.put("/{donor_id}/alert")
def set_alert(
    donor_id: int,
    payload: DonorAlertUpdate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.set_donor_alert(donor_id, payload.message))


@router.get("/{donor_id}/history.csv")
def export_history(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> Response:
    content, file_name = store.donor_history_csv(donor_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/{donor_id}/notes")
def list_notes(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_donor_notes(donor_id))


@router.post("/{donor_id}/notes", status_code=status.HTTP_201_CREATED)
def add_note(
    donor_id: int,
    payload: NoteCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.add_donor_note(donor_id, payload.content, user.username))


@router.get("/{donor_id}/tasks")
def list_tasks(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_donor_tasks(donor_id))


@router.post("/{donor_id}/tasks", status_code=status.HTTP_201_CREATED)
def add_task(
    donor_id: int,
    payload: TaskCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    task_id = store.add_donor_task(
        donor_id,
        payload.description,
        created_by=user.id,
        assigned_to=payload.assigned_to,
        due_date=payload.due_date,
    )
    return {"success": True, "id": task_id}


@router.get("/{donor_id}/pledges")
def list_pledges(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_pledges(donor_id))


@router.post("/{donor_id}/pledges", status_code=status.HTTP_201_CREATED)
def add_pledge(
    donor_id: int,
    payload: PledgeCreate,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.add_pledge(donor_id, payload.amount, payload.campaign_id))


@router.get("/{donor_id}/files")
def list_files(
    donor_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_donor_files(donor_id))


@router.post("/{donor_id}/files", status_code=status.HTTP_201_CREATED)
def upload_file(
    donor_id: int,
    file: UploadFile = File(...),
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    file_id = store.add_donor_file(
        donor_id,
        file.filename or "",
        file.file.read(),
        file.content_type,
        user.id,
    )
    return {"success": True, "id": file_id}


@router.post("/{donor_id}/subscribe")
def toggle_subscription(
    donor_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"subscribed": store.toggle_subscription(user.id, donor_id)}
