from __future__ import annotations

from typing import Any, Dict, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.config import Config
from storefront.db import USERS, id_str, parse_object_id
from storefront.util.time import iso_in, utcnow_iso

from .policy import DEFAULT_ROLE, ROLES
from .security import generate_reset_token, hash_password, verify_password


# Never leaves the store layer.
_PRIVATE_FIELDS = ("password", "reset_password_token", "reset_password_expires")
_PUBLIC_PROJECTION = {f: 0 for f in _PRIVATE_FIELDS}


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    for f in _PRIVATE_FIELDS:
        d.pop(f, None)
    oid = d.pop("_id", None)
    return {
        "id": id_str(oid),
        "name": d.get("name"),
        "email": d.get("email"),
        "role": d.get("role"),
        "createdAt": d.get("created_at"),
        "updatedAt": d.get("updated_at"),
    }


def get_user_by_email(db: Database, email: str) -> Optional[Dict[str, Any]]:
    e = normalize_email(email)
    if not e:
        return None
    return db[USERS].find_one({"email": e})


def get_user_by_id(db: Database, user_id: Any, *, include_private: bool = False) -> Optional[Dict[str, Any]]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    if include_private:
        return db[USERS].find_one({"_id": oid})
    return db[USERS].find_one({"_id": oid}, _PUBLIC_PROJECTION)


def verify_user_credentials(db: Database, email: str, password: str) -> Optional[Dict[str, Any]]:
    row = get_user_by_email(db, email)
    if row is None:
        return None
    if not verify_password(password, str(row.get("password") or "")):
        return None
    return row


def create_user(
    db: Database,
    *,
    name: str,
    email: str,
    password: str,
    role: str = DEFAULT_ROLE,
) -> Dict[str, Any]:
    e = normalize_email(email)
    if not e:
        raise ValueError("email_blank")
    n = (name or "").strip()
    if not n:
        raise ValueError("name_blank")
    if role not in ROLES:
        raise ValueError("invalid_role")

    if db[USERS].find_one({"email": e}, {"_id": 1}) is not None:
        raise ValueError("email_exists")

    now = utcnow_iso()
    doc = {
        "name": n,
        "email": e,
        "password": hash_password(password),
        "role": role,
        "created_at": now,
        "updated_at": now,
    }
    try:
        res = db[USERS].insert_one(doc)
    except DuplicateKeyError as e_dup:
        # Lost a race with a concurrent registration.
        raise ValueError("email_exists") from e_dup
    doc["_id"] = res.inserted_id
    return public_user(doc)


def update_profile(
    db: Database,
    user_id: Any,
    *,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Update name/email. Returns the public user, or None if it doesn't exist."""
    oid = parse_object_id(user_id)
    if oid is None:
        return None

    fields: Dict[str, Any] = {}
    if name is not None:
        n = name.strip()
        if not n:
            raise ValueError("name_blank")
        fields["name"] = n
    if email is not None:
        e = normalize_email(email)
        if not e:
            raise ValueError("email_blank")
        other = db[USERS].find_one({"email": e, "_id": {"$ne": oid}}, {"_id": 1})
        if other is not None:
            raise ValueError("email_exists")
        fields["email"] = e

    if fields:
        fields["updated_at"] = utcnow_iso()
        try:
            db[USERS].update_one({"_id": oid}, {"$set": fields})
        except DuplicateKeyError as e_dup:
            raise ValueError("email_exists") from e_dup

    row = get_user_by_id(db, oid)
    return public_user(row) if row is not None else None


def set_password(db: Database, user_id: Any, new_password: str, *, clear_reset: bool = False) -> None:
    """Replace the stored secret. The only write path for `password`, and it always hashes."""
    oid = parse_object_id(user_id)
    if oid is None:
        raise ValueError("invalid_user_id")

    update: Dict[str, Any] = {
        "$set": {"password": hash_password(new_password), "updated_at": utcnow_iso()},
    }
    if clear_reset:
        # Token and expiry are only ever set or cleared together.
        update["$unset"] = {"reset_password_token": "", "reset_password_expires": ""}
    db[USERS].update_one({"_id": oid}, update)


def issue_reset_token(db: Database, email: str, *, expires_minutes: int) -> Optional[tuple[Dict[str, Any], str]]:
    """Store a fresh reset token on the user. Returns (user, token) or None if unknown."""
    row = get_user_by_email(db, email)
    if row is None:
        return None

    token = generate_reset_token()
    db[USERS].update_one(
        {"_id": row["_id"]},
        {
            "$set": {
                "reset_password_token": token,
                "reset_password_expires": iso_in(minutes=max(1, int(expires_minutes))),
                "updated_at": utcnow_iso(),
            }
        },
    )
    return public_user(row), token


def find_user_by_reset_token(db: Database, token: str) -> Optional[Dict[str, Any]]:
    t = (token or "").strip()
    if not t:
        return None
    # ISO-Z timestamps compare correctly as strings.
    return db[USERS].find_one(
        {
            "reset_password_token": t,
            "reset_password_expires": {"$gt": utcnow_iso()},
        }
    )


def bootstrap_admin_if_needed(db: Database, cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users collection is empty.

    Controlled via environment variables so a new deployment has a deterministic way to log in.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL (default: admin@example.com)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (default: admin)

    This only runs when there are 0 documents in `users`.
    """
    if db[USERS].count_documents({}, limit=1) > 0:
        return None

    email = normalize_email(getattr(cfg, "AUTH_BOOTSTRAP_ADMIN_EMAIL", "") or "")
    password = getattr(cfg, "AUTH_BOOTSTRAP_ADMIN_PASSWORD", None) or ""

    # If env explicitly clears these, don't create anything.
    if not email or not password:
        return None

    name = getattr(cfg, "AUTH_BOOTSTRAP_ADMIN_NAME", "") or "Administrator"
    u = create_user(db, name=name, email=email, password=password, role="admin")
    _debug(f"Bootstrapped admin email={u['email']}")
    return u
