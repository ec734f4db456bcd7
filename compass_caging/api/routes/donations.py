"""Donation listing, correction, void, acknowledgement and flag endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

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
from ..schemas import AcknowledgeRequest, DonationInput

router = APIRouter(prefix="/donations", tags=["Donations"])


def _load_donation(store: CagingStore, user: CurrentUser, donation_id: int) -> dict:
    donation = as_dict(store.get_donation(donation_id))
    ensure_client_access(user, donation["client_id"])
    return donation


@router.get("")
def list_donations(
    assigned_to_me: bool = False,
    flagged: bool = False,
    client_id: Optional[int] = None,
    resolution_status: Optional[str] = Query(None, alias="status"),
    limit: int = 50,
    offset: int = 0,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(
        store.list_donations(
            allowed_client_ids=user.client_scope,
            assigned_to_user_id=user.id if assigned_to_me else None,
            is_flagged=flagged or None,
            client_id=client_id,
            resolution_status=resolution_status,
            limit=limit,
            offset=offset,
        )
    )


@router.get("/{donation_id}")
def get_donation(
    donation_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return _load_donation(store, user, donation_id)


@router.patch("/{donation_id}")
def update_donation(
    donation_id: int,
    payload: DonationInput,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_donation(store, user, donation_id)
    changes = payload.model_dump(exclude_unset=True)
    changes.pop("resolution_status", None)
    donation = store.update_donation(donation_id, changes, modified_by=user.id)
    store.log_audit(user.id, "UpdateDonation", donation_id, changes, client_ip(request), "Donation")
    return as_dict(donation)


@router.post("/{donation_id}/void")
def void_donation(
    donation_id: int,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_donation(store, user, donation_id)
    donation = store.void_donation(donation_id, modified_by=user.id)
    store.log_audit(user.id, "VoidDonation", donation_id, None, client_ip(request), "Donation")
    return as_dict(donation)


@router.post("/{donation_id}/acknowledge")
def acknowledge_donation(
    donation_id: int,
    payload: AcknowledgeRequest,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_donation(store, user, donation_id)
    timestamp = store.acknowledge_donation(donation_id, payload.type, payload.sent)
    return {"success": True, "date": timestamp}


@router.post("/{donation_id}/resolve-flag")
def resolve_flag(
    donation_id: int,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    _load_donation(store, user, donation_id)
    result = store.resolve_flag(donation_id)
    store.log_audit(
        user.id,
        "RESOLVE_FLAG",
        donation_id,
        "User manually resolved flag via Review Queue",
        client_ip(request),
        "Donation",
    )
    return as_dict(result)
