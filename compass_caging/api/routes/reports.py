"""Dashboard statistics, advanced search and reference list endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from ...reports import GIFT_TYPES, METHODS, PLATFORMS, TRANSACTION_TYPES
from ...store import CagingStore
from ..deps import CurrentUser, as_dicts, get_current_user, get_store
from ..schemas import SearchRequest

router = APIRouter(tags=["Reports"])


@router.get("/stats")
def dashboard_stats(
    client_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.dashboard_stats(client_id, start, end, user.client_scope)


@router.post("/search")
def search(
    payload: SearchRequest,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.search_donations(payload.model_dump(), user.client_scope))


@router.get("/platforms")
def platforms(
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[str]:
    in_use = store.platforms_in_use()
    return list(PLATFORMS) + sorted(platform for platform in in_use if platform not in PLATFORMS)


@router.get("/constants")
def constants(user: CurrentUser = Depends(get_current_user)) -> dict:
    return {
        "methods": list(METHODS),
        "platforms": list(PLATFORMS),
        "gift_types": list(GIFT_TYPES),
        "transaction_types": list(TRANSACTION_TYPES),
    }
