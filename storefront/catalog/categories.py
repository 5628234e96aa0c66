from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from storefront.db import CATEGORIES, id_str
from storefront.util.time import utcnow_iso


def public_category(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": id_str(doc.get("_id")),
        "name": doc.get("name"),
        "description": doc.get("description"),
        "createdAt": doc.get("created_at"),
        "updatedAt": doc.get("updated_at"),
    }


def list_categories(db: Database) -> List[Dict[str, Any]]:
    return [public_category(d) for d in db[CATEGORIES].find().sort("_id", 1)]


def categories_by_id(db: Database, ids: Iterable[ObjectId]) -> Dict[ObjectId, Dict[str, Any]]:
    wanted = list({i for i in ids if i is not None})
    if not wanted:
        return {}
    return {d["_id"]: d for d in db[CATEGORIES].find({"_id": {"$in": wanted}})}


def category_exists(db: Database, oid: ObjectId) -> bool:
    return db[CATEGORIES].find_one({"_id": oid}, {"_id": 1}) is not None


def create_category(db: Database, *, name: str, description: Optional[str] = None) -> Dict[str, Any]:
    n = (name or "").strip()
    if not n:
        raise ValueError("Category name is required")

    now = utcnow_iso()
    doc: Dict[str, Any] = {
        "name": n,
        "description": description,
        "created_at": now,
        "updated_at": now,
    }
    res = db[CATEGORIES].insert_one(doc)
    doc["_id"] = res.inserted_id
    return public_category(doc)


def delete_category(db: Database, oid: ObjectId) -> bool:
    return db[CATEGORIES].delete_one({"_id": oid}).deleted_count > 0


def delete_all_categories(db: Database) -> int:
    return int(db[CATEGORIES].delete_many({}).deleted_count)
