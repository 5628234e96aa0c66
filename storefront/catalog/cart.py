"""Shopping cart, one per user.

Cart items carry the owning `user_id`; every operation filters on it, so a
user can never read or remove someone else's items.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from storefront.db import CART_ITEMS, id_str
from storefront.util.time import utcnow_iso

from .products import products_by_id, public_product


def public_cart_item(doc: Dict[str, Any], product: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "id": id_str(doc.get("_id")),
        "productId": public_product(product) if product is not None else id_str(doc.get("product_id")),
        "quantity": int(doc.get("quantity") or 1),
        "createdAt": doc.get("created_at"),
        "updatedAt": doc.get("updated_at"),
    }


def list_cart(db: Database, user_id: ObjectId) -> List[Dict[str, Any]]:
    docs = list(db[CART_ITEMS].find({"user_id": user_id}).sort("_id", 1))
    prods = products_by_id(db, [d.get("product_id") for d in docs])
    return [public_cart_item(d, prods.get(d.get("product_id"))) for d in docs]


def add_to_cart(db: Database, *, user_id: ObjectId, product_id: ObjectId, quantity: int = 1) -> Dict[str, Any]:
    """Add `quantity` of a product. Adding a product already in the cart bumps its quantity."""
    qty = int(quantity)
    if qty < 1:
        raise ValueError("Quantity must be at least 1")

    now = utcnow_iso()
    doc = db[CART_ITEMS].find_one_and_update(
        {"user_id": user_id, "product_id": product_id},
        {
            "$inc": {"quantity": qty},
            "$set": {"updated_at": now},
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return public_cart_item(doc)


def remove_cart_item(db: Database, user_id: ObjectId, item_id: ObjectId) -> bool:
    return db[CART_ITEMS].delete_one({"_id": item_id, "user_id": user_id}).deleted_count > 0


def clear_cart(db: Database, user_id: ObjectId) -> int:
    return int(db[CART_ITEMS].delete_many({"user_id": user_id}).deleted_count)
