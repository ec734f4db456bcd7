"""Donor resolution queue endpoints."""

from fastapi import APIRouter, Depends, Request

from ...store import CagingStore
from ..deps import CurrentUser, client_ip, ensure_client_access, get_current_user, get_store, require_staff
from ..schemas import ResolveRequest

router = APIRouter(prefix="/resolution", tags=["Resolution"])


@router.get("")
def resolution_queue(
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.resolution_queue(user.client_scope)


@router.post("/{donation_id}")
def resolve_donation(
    donation_id: int,
    payload: ResolveRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: CagingStore = Depends(get_store),
) -> dict:
    ensure_client_access(user, store.get_donation(donation_id)["client_id"])
    donor_id = store.resolve_pending(donation_id, payload.action, payload.candidate_id)
    store.log_audit(
        user.id,
        "ResolveDonation",
        donation_id,
        {"action": payload.action, "donor_id": donor_id},
        client_ip(request),
        "Donation",
    )
    return {"success": True, "donor_id": donor_id}
