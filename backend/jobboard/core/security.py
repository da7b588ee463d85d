# jobboard/core/security.py
from __future__ import annotations

from typing import Any

from jose import jwt, JWTError

from jobboard.core.config import require_jwt_secret, settings


def decode_token(token: str) -> dict[str, Any]:
    require_jwt_secret()
    # Let callers decide how to handle JWTError
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def verify_token_purpose(token: str, expected_purpose: str) -> dict[str, Any]:
    """
    Tokens are minted by the identity provider with a `purpose` claim;
    only `access` tokens are accepted by the API.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise ValueError("Invalid or expired token")

    if payload.get("purpose") != expected_purpose:
        raise ValueError("Invalid token purpose")

    return payload
