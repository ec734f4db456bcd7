"""Client and client bank account endpoints."""

from fastapi import APIRouter, Depends, Request, Response, status

from ...store import CagingStore
from ..deps import (
    CurrentUser,
    as_dict,
    as_dicts,
    client_ip,
    ensure_client_access,
    get_current_user,
    get_store,
    require_admin,
)
from ..schemas import BankAccountCreate, ClientCreate, ClientUpdate

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.get("")
def list_clients(
    include_inactive: bool = False,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_clients(user.client_scope, include_inactive=include_inactive))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    client_id = store.add_client(**payload.model_dump())
    store.log_audit(user.id, "CreateClient", client_id, payload.model_dump(), client_ip(request), "Client")
    return as_dict(store.get_client(client_id))


@router.get("/{client_id}")
def get_client(
    client_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    ensure_client_access(user, client_id)
    return as_dict(store.get_client(client_id))


@router.patch("/{client_id}")
def update_client(
    client_id: int,
    payload: ClientUpdate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    client = store.update_client(client_id, **payload.model_dump(exclude_unset=True))
    store.log_audit(
        user.id,
        "UpdateClient",
        client_id,
        payload.model_dump(exclude_unset=True),
        client_ip(request),
        "Client",
    )
    return as_dict(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: int,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.delete_client(client_id)
    store.log_audit(user.id, "DeleteClient", client_id, None, client_ip(request), "Client")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{client_id}/accounts")
def list_bank_accounts(
    client_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    ensure_client_access(user, client_id)
    return as_dicts(store.list_bank_accounts(client_id=client_id))


@router.post("/{client_id}/accounts", status_code=status.HTTP_201_CREATED)
def create_bank_account(
    client_id: int,
    payload: BankAccountCreate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    account_id = store.add_bank_account(client_id, **payload.model_dump())
    return {"id": account_id, "client_id": client_id, **payload.model_dump()}


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bank_account(
    account_id: int,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.deactivate_bank_account(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{client_id}/campaigns")
def list_campaigns(
    client_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[str]:
    ensure_client_access(user, client_id)
    return store.client_campaigns(client_id)
