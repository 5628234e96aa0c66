from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from storefront.db import PRODUCTS, id_str
from storefront.util.time import utcnow_iso

from .categories import categories_by_id, public_category


# Client-writable fields (API name -> stored name). `vendor` is set from the token only.
_WRITABLE = {
    "name": "name",
    "price": "price",
    "category": "category",
    "inStock": "in_stock",
}


def public_product(doc: Dict[str, Any], category: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """API shape of a product. With `category`, the reference is inlined."""
    return {
        "id": id_str(doc.get("_id")),
        "name": doc.get("name"),
        "price": doc.get("price"),
        "category": public_category(category) if category is not None else id_str(doc.get("category")),
        "inStock": bool(doc.get("in_stock", True)),
        "vendor": id_str(doc.get("vendor")),
        "createdAt": doc.get("created_at"),
        "updatedAt": doc.get("updated_at"),
    }


def list_products(db: Database) -> List[Dict[str, Any]]:
    docs = list(db[PRODUCTS].find().sort("_id", 1))
    cats = categories_by_id(db, (d.get("category") for d in docs))
    return [public_product(d, cats.get(d.get("category"))) for d in docs]


def get_product(db: Database, oid: ObjectId) -> Optional[Dict[str, Any]]:
    return db[PRODUCTS].find_one({"_id": oid})


def products_by_id(db: Database, ids: List[ObjectId]) -> Dict[ObjectId, Dict[str, Any]]:
    wanted = list({i for i in ids if i is not None})
    if not wanted:
        return {}
    return {d["_id"]: d for d in db[PRODUCTS].find({"_id": {"$in": wanted}})}


def create_product(
    db: Database,
    *,
    name: str,
    price: float,
    category: ObjectId,
    vendor: ObjectId,
    in_stock: bool = True,
) -> Dict[str, Any]:
    """Insert a product. The caller has already checked that `category` exists."""
    n = (name or "").strip()
    if not n:
        raise ValueError("Product name is required")

    now = utcnow_iso()
    doc: Dict[str, Any] = {
        "name": n,
        "price": float(price),
        "category": category,
        "in_stock": bool(in_stock),
        "vendor": vendor,
        "created_at": now,
        "updated_at": now,
    }
    res = db[PRODUCTS].insert_one(doc)
    doc["_id"] = res.inserted_id
    return public_product(doc)


def can_modify(user: Dict[str, Any], product: Dict[str, Any]) -> bool:
    """Ownership policy: admins may modify any product, vendors only their own."""
    role = user.get("role")
    if role == "admin":
        return True
    if role == "vendor":
        return id_str(product.get("vendor")) == str(user.get("id"))
    return False


def update_product(db: Database, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Replace the supplied fields (API names). Returns the updated product or None."""
    fields: Dict[str, Any] = {}
    for api_name, value in changes.items():
        stored = _WRITABLE.get(api_name)
        if stored is None:
            continue
        if stored == "name":
            value = (value or "").strip()
            if not value:
                raise ValueError("Product name is required")
        elif stored == "price":
            value = float(value)
        elif stored == "in_stock":
            value = bool(value)
        fields[stored] = value

    fields["updated_at"] = utcnow_iso()
    doc = db[PRODUCTS].find_one_and_update(
        {"_id": oid},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    return public_product(doc) if doc is not None else None


def delete_product(db: Database, oid: ObjectId) -> bool:
    return db[PRODUCTS].delete_one({"_id": oid}).deleted_count > 0


def delete_all_products(db: Database) -> int:
    return int(db[PRODUCTS].delete_many({}).deleted_count)
