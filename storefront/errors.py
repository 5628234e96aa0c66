"""Error taxonomy shared by the route handlers.

Each error maps to exactly one HTTP status. The API layer renders them as
`{"message": ...}` (auth flows) or `{"error": ...}` (resource handlers), plus
`"details"` when there is something more specific to show.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    status_code = 500
    key = "error"

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if key is not None:
            self.key = key
        self.detail = detail
        self.headers = headers

    def body(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {self.key: self.message}
        if self.detail is not None:
            out["details"] = self.detail
        return out


class ValidationError(ApiError):
    status_code = 400


class Conflict(ApiError):
    status_code = 400
    key = "message"


class InvalidCredentials(ApiError):
    status_code = 400
    key = "message"


class InvalidOrExpiredToken(ApiError):
    status_code = 400
    key = "message"


class Unauthenticated(ApiError):
    status_code = 401
    key = "message"

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class Forbidden(ApiError):
    status_code = 403
    key = "message"


class NotFound(ApiError):
    status_code = 404


class ServerError(ApiError):
    status_code = 500
