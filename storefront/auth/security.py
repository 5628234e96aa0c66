from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


class InvalidToken(Exception):
    """Token is missing, malformed, expired, or signed with another key."""


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unrecognized or corrupt hash.
        return False


def create_access_token(
    *,
    secret: str,
    user_id: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    """Issue a signed bearer token for `user_id`."""
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or datetime.now(timezone.utc)
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["exp", "sub"]})


def verify_access_token(*, token: str, secret: str) -> str:
    """Return the user id embedded in `token` or raise InvalidToken."""
    if not token:
        raise InvalidToken("missing_token")
    try:
        payload = decode_access_token(token=token, secret=secret)
    except jwt.ExpiredSignatureError as e:
        raise InvalidToken("token_expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken("token_invalid") from e

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise InvalidToken("token_missing_sub")
    return sub


def generate_reset_token() -> str:
    # 20 random bytes, hex encoded.
    return secrets.token_hex(20)
