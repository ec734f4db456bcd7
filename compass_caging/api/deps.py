"""
Request dependencies: settings, store, the authenticated user and role checks.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Iterable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..base import RecordNotFoundError
from ..config import Settings
from ..security import decode_access_token
from ..store import CagingStore

bearer_scheme = HTTPBearer(auto_error=False)

STAFF_ROLES = ("Admin", "Clerk")


@dataclass
class CurrentUser:
    """User resolved from the bearer token and re-read from the database."""

    id: int
    username: str
    role: str
    client_ids: list[int] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == "Admin"

    @property
    def client_scope(self) -> list[int] | None:
        """Client ids the user is limited to, or None for staff."""
        if self.role in STAFF_ROLES:
            return None
        return self.client_ids


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> CagingStore:
    return request.app.state.store


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: CagingStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """
    Resolve the caller from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing, invalid or the user is inactive
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(settings, credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = store.get_user(int(payload["sub"]))
    except (KeyError, ValueError, RecordNotFoundError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not user["is_active"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    return CurrentUser(
        id=int(user["id"]),
        username=user["username"],
        role=user["role"],
        client_ids=store.user_client_ids(int(user["id"])),
    )


def require_staff(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role not in STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def ensure_client_access(user: CurrentUser, client_id: int | None) -> None:
    scope = user.client_scope
    if scope is not None and client_id not in scope:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def as_dict(row: sqlite3.Row | dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return dict(row)


def as_dicts(rows: Iterable[sqlite3.Row | dict[str, Any]]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]
