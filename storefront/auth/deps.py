from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from storefront.config import Config
from storefront.errors import Forbidden, ServerError, Unauthenticated

from .crud import get_user_by_id, public_user
from .policy import NotAllowed, NotAuthenticated, allowed_roles, authorize
from .security import InvalidToken, verify_access_token


_bearer = HTTPBearer(auto_error=False)


def get_cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise ServerError("server_config_missing")
    return cfg


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ServerError("database_unavailable")
    return db


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Authenticate a request from `Authorization: Bearer <jwt>`.

    Loads the user (without password or reset fields) and attaches it to
    `request.state.user` for anything downstream.
    """

    cfg = get_cfg(request)
    db = get_db(request)

    token = credentials.credentials if credentials is not None else None
    if not token:
        raise Unauthenticated("Not authorized, no token")

    try:
        user_id = verify_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except InvalidToken:
        raise Unauthenticated("Token invalid or expired")

    row = get_user_by_id(db, user_id)
    if row is None:
        raise Unauthenticated("User not found")

    user = public_user(row)
    request.state.user = user
    return user


def require_capability(capability: str) -> Callable[..., Dict[str, Any]]:
    """Build a dependency that gates a route on a policy capability.

    Runs after get_current_user (it depends on it), so the user is always
    attached before the role check.
    """
    # Fail fast on unknown capability names.
    allowed_roles(capability)

    def _dep(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        try:
            return authorize(user, capability)
        except NotAuthenticated:
            raise Unauthenticated("Not authenticated")
        except NotAllowed as e:
            raise Forbidden(str(e))

    _dep.__name__ = f"require_{capability.replace(':', '_')}"
    return _dep
