"""
Password hashing and bearer tokens.

bcrypt for stored passwords, PyJWT (HS256) for access tokens.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from .config import Settings
from .logging_config import get_logger

logger = get_logger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    if not password or len(password) < 8:
        raise ValueError("Password must be at least 8 characters.")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as exc:
        logger.error("Password verification failed: %s", exc)
        return False


def create_access_token(
    settings: Settings,
    user_id: int,
    username: str,
    role: str,
    client_ids: list[int],
) -> str:
    """
    Create a signed access token.

    Args:
        settings: Settings carrying the secret, algorithm and lifetime
        user_id: Database id of the user
        username: Login name
        role: Admin, Clerk or ClientUser
        client_ids: Clients the user may see

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "client_ids": client_ids,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> dict[str, Any] | None:
    """Return the token payload, or None when it is expired or invalid."""

    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("Access token expired")
        return None
    except InvalidTokenError as exc:
        logger.warning("Invalid access token: %s", exc)
        return None

    if payload.get("type") != "access":
        return None
    return payload
