import mongomock
import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from conftest import auth
from storefront.db import CART_ITEMS, CATEGORIES, PRODUCTS
from storefront.notify import LogNotifier, Notifier


def _boom(*args, **kwargs):
    raise PyMongoError("connection reset")


def _fail_find_on(monkeypatch, collection_name):
    """Make `find` raise for one collection only (find_one goes through find too)."""
    original = mongomock.Collection.find

    def find(self, *args, **kwargs):
        if self.name == collection_name:
            raise PyMongoError("connection reset")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(mongomock.Collection, "find", find)


def _vendor_product(client, register, category):
    vendor = register("vendor")
    r = client.post(
        "/products",
        json={"name": "Cake", "price": 10, "category": category["id"]},
        headers=auth(vendor["token"]),
    )
    assert r.status_code == 201, r.text
    return vendor, r.json()["id"]


@pytest.mark.parametrize("path,collection", [("/products", PRODUCTS), ("/categories", CATEGORIES)])
def test_public_listing_store_failure_is_500(client, monkeypatch, path, collection):
    _fail_find_on(monkeypatch, collection)
    r = client.get(path)
    assert r.status_code == 500
    assert r.json() == {"error": "Server error"}


def test_cart_listing_store_failure_is_500(client, monkeypatch, register):
    shopper = register("customer")
    _fail_find_on(monkeypatch, CART_ITEMS)
    r = client.get("/cart", headers=auth(shopper["token"]))
    assert r.status_code == 500
    assert r.json() == {"error": "Server error"}


def test_unexpected_store_failure_is_rendered_as_json(client, monkeypatch, register):
    admin = register("admin")
    monkeypatch.setattr(mongomock.Collection, "insert_one", _boom)
    r = client.post("/categories", json={"name": "X"}, headers=auth(admin["token"]))
    assert r.status_code == 500
    assert r.json() == {"error": "Server error"}


def test_huge_cart_quantity_is_rejected(client, db, register, category):
    _, pid = _vendor_product(client, register, category)
    shopper = register("customer")
    r = client.post("/cart", json={"productId": pid, "quantity": 10**30}, headers=auth(shopper["token"]))
    assert r.status_code == 400
    assert r.json()["error"] == "Validation failed"
    assert db[CART_ITEMS].count_documents({}) == 0


def test_infinite_price_is_rejected_on_create(client, db, register, category):
    vendor = register("vendor")
    raw = '{"name": "Cake", "price": 1e400, "category": "%s"}' % category["id"]
    r = client.post(
        "/products",
        content=raw,
        headers={**auth(vendor["token"]), "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert db[PRODUCTS].count_documents({}) == 0


def test_infinite_price_is_rejected_on_update(client, db, register, category):
    vendor, pid = _vendor_product(client, register, category)
    r = client.put(
        f"/products/{pid}",
        content='{"price": 1e400}',
        headers={**auth(vendor["token"]), "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert db[PRODUCTS].find_one({"_id": ObjectId(pid)})["price"] == 10


def test_unknown_route_uses_message_body(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json() == {"message": "Endpoint not found"}


def test_wrong_method_uses_message_body(client):
    r = client.patch("/products")
    assert r.status_code == 405
    assert set(r.json()) == {"message"}


def test_notifier_interface_is_abstract():
    with pytest.raises(TypeError):
        Notifier()
    LogNotifier().send_password_reset("a@x.com", "abcdef123456")
