"""
Authentication endpoints: login, password setup and policy acceptance.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...config import Settings
from ...logging_config import get_logger
from ...security import create_access_token, hash_password, verify_password
from ...store import CagingStore
from ..deps import CurrentUser, as_dicts, client_ip, get_current_user, get_settings, get_store
from ..schemas import LoginRequest, PolicyAcceptRequest, SetupPasswordRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login")
def login(
    credentials: LoginRequest,
    request: Request,
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Exchange a username and password for a bearer token."""
    user = store.get_user_by_username(credentials.username)
    if user is None or not user["is_active"] or not verify_password(credentials.password, user["password_hash"]):
        logger.warning("Failed login for %s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    user_id = int(user["id"])
    client_ids = store.user_client_ids(user_id)
    store.record_login(user_id)
    store.log_audit(user_id, "Login", user_id, None, client_ip(request), "User")

    return {
        "access_token": create_access_token(settings, user_id, user["username"], user["role"], client_ids),
        "token_type": "bearer",
        "user": {
            "id": user_id,
            "username": user["username"],
            "full_name": user["full_name"],
            "role": user["role"],
            "client_ids": client_ids,
            "pending_policies": len(store.pending_policies(user_id)),
        },
    }


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user)) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role, "client_ids": user.client_ids}


@router.post("/setup-password")
def setup_password(
    payload: SetupPasswordRequest,
    request: Request,
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    password_hash = hash_password(payload.password, rounds=settings.PASSWORD_HASH_ROUNDS)
    user_id = store.consume_password_token(payload.token, password_hash)
    store.log_audit(user_id, "SetupPassword", user_id, None, client_ip(request), "User")
    return {"success": True, "user_id": user_id}


@router.get("/policies")
def pending_policies(
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.pending_policies(user.id))


@router.post("/policies")
def accept_policies(
    payload: PolicyAcceptRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    ip_address = client_ip(request)
    accepted = store.accept_policies(user.id, payload.policy_ids, ip_address)
    store.log_audit(user.id, "AcceptPolicies", None, {"policy_ids": payload.policy_ids}, ip_address, "Policy")
    return {"success": True, "accepted": accepted}
