"""
Administration endpoints: users, audit trail, maintenance, migrations and the
sensitive-data scan.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from ...config import Settings
from ...logging_config import get_logger
from ...security import hash_password
from ...sensitive_scan import SensitiveDataScanner
from ...store import CagingStore
from ..deps import (
    CurrentUser,
    as_dicts,
    client_ip,
    get_current_user,
    get_settings,
    get_store,
    require_admin,
)
from ..schemas import AuditCreate, MigrationRequest, UserCreate, UserUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _public_user(store: CagingStore, user_id: int) -> dict:
    user = dict(store.get_user(user_id))
    user.pop("password_hash", None)
    user["client_ids"] = store.user_client_ids(user_id)
    return user


@router.get("/users")
def list_users(
    include_inactive: bool = False,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.list_users(include_inactive=include_inactive)


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    password_hash = (
        hash_password(payload.password, rounds=settings.PASSWORD_HASH_ROUNDS) if payload.password else None
    )
    user_id = store.add_user(
        payload.username,
        password_hash,
        role=payload.role,
        email=payload.email,
        full_name=payload.full_name,
        initials=payload.initials,
        client_ids=payload.client_ids,
    )

    setup_token = None
    if payload.send_setup_token or password_hash is None:
        setup_token = store.issue_password_token(user_id, ttl_hours=settings.PASSWORD_TOKEN_TTL_HOURS)

    store.log_audit(
        user.id,
        "CreateUser",
        user_id,
        {"username": payload.username, "role": payload.role},
        client_ip(request),
        "User",
    )
    return {"user": _public_user(store, user_id), "setup_token": setup_token}


@router.patch("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    if password:
        changes["password_hash"] = hash_password(password, rounds=settings.PASSWORD_HASH_ROUNDS)
    store.update_user(user_id, **changes)

    logged = {key: value for key, value in changes.items() if key != "password_hash"}
    store.log_audit(user.id, "UpdateUser", user_id, logged, client_ip(request), "User")
    return _public_user(store, user_id)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.deactivate_user(user_id, acting_user_id=user.id)
    store.log_audit(user.id, "DeleteUser", user_id, None, client_ip(request), "User")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit")
def list_audit_logs(
    limit: int = 50,
    offset: int = 0,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.list_audit_logs(limit=limit, offset=offset)


@router.post("/audit", status_code=status.HTTP_201_CREATED)
def create_audit_log(
    payload: AuditCreate,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    store.log_audit(
        user.id,
        payload.action,
        payload.entity_id,
        payload.details,
        client_ip(request),
        payload.entity_type,
    )
    return {"success": True}


@router.post("/maintenance")
def run_maintenance(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, **store.run_maintenance()}


@router.get("/maintenance")
def maintenance_logs(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_maintenance_logs())


@router.get("/migrations")
def migration_status(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.migration_status()


@router.post("/migrations")
def apply_migrations(
    payload: MigrationRequest,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    result = store.apply_migrations(dry_run=payload.dry_run)
    logger.info("Migration request by %s: %s", user.username, result["status"])
    return result


@router.get("/schema")
def describe_schema(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.describe_schema()


@router.get("/sensitive-scan")
def sensitive_scan(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    findings = SensitiveDataScanner().scan_records(store.records_for_sensitive_scan())
    logger.info("Sensitive-data scan found %s potential issues", len(findings))
    return {"count": len(findings), "findings": findings}
