"""CSV import pipeline endpoints: upload, process, commit and revert."""

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from ...store import CagingStore
from ..deps import CurrentUser, as_dict, as_dicts, client_ip, get_store, require_admin, require_staff
from ..schemas import ImportCommitRequest

router = APIRouter(prefix="/imports", tags=["Imports"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload(
    file: UploadFile = File(...),
    source: str = Form(...),
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.upload_import(file.filename or "upload.csv", source, file.file.read(), created_by=user.id)


@router.get("/history")
def history(
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.import_history())


@router.get("/sources")
def sources(
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[str]:
    return store.import_sources()


@router.get("/{session_id}")
def get_session(
    session_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.get_import_session(session_id))


@router.get("/{session_id}/staging")
def staging_rows(
    session_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.staging_rows(session_id)


@router.post("/{session_id}/process")
def process(
    session_id: int,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, **store.process_import(session_id)}


@router.post("/{session_id}/commit")
def commit(
    session_id: int,
    payload: ImportCommitRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    result = store.commit_import(session_id, payload.client_id, created_by=user.id)
    store.log_audit(user.id, "CommitImport", session_id, result, client_ip(request), "ImportSession")
    return {"success": True, **result}


@router.post("/{session_id}/revert")
def revert(
    session_id: int,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    result = store.revert_import(session_id)
    store.log_audit(user.id, "RevertImport", session_id, result, client_ip(request), "ImportSession")
    return {"success": True, **result}
