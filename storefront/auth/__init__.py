"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users collection (email/password hash + role)
- JWT access tokens, verified on every request (no server-side sessions)
- A single capability table (`policy.POLICY`) decides which roles may do what

Clients send `Authorization: Bearer <token>`. Logging out is the client
discarding its token.
"""

from .deps import get_current_user, require_capability
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "get_current_user",
    "require_capability",
    "bootstrap_admin_if_needed",
    "create_user",
]
