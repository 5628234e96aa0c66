"""Role-based access policy.

Routes ask for a *capability*; this table is the only place that decides
which roles hold it.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Mapping, Optional

ROLES = ("admin", "vendor", "customer")
DEFAULT_ROLE = "customer"

POLICY: Mapping[str, FrozenSet[str]] = {
    "product:create": frozenset({"admin", "vendor"}),
    "product:update": frozenset({"admin", "vendor"}),
    "product:delete": frozenset({"admin", "vendor"}),
    "product:delete_all": frozenset({"admin"}),
    "category:create": frozenset({"admin", "vendor"}),
    "category:delete": frozenset({"admin", "vendor"}),
    "category:delete_all": frozenset({"admin"}),
    "cart:use": frozenset(ROLES),
    "user:create": frozenset({"admin"}),
}


class NotAuthenticated(Exception):
    pass


class NotAllowed(Exception):
    def __init__(self, role: str, capability: str) -> None:
        super().__init__(f"Access denied. Role '{role}' is not allowed")
        self.role = role
        self.capability = capability


def allowed_roles(capability: str) -> FrozenSet[str]:
    # KeyError on typos, so a misspelled capability fails at route build time.
    return POLICY[capability]


def authorize(user: Optional[Dict[str, Any]], capability: str) -> Dict[str, Any]:
    """Return `user` if it holds `capability`; raise otherwise."""
    roles = allowed_roles(capability)
    if not user:
        raise NotAuthenticated()
    role = str(user.get("role") or "")
    if role not in roles:
        raise NotAllowed(role, capability)
    return user
