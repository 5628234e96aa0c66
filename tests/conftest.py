from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

import mongomock
import pytest
from fastapi.testclient import TestClient

from storefront.api.server import app
from storefront.config import Config
from storefront.notify import Notifier


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    def send_password_reset(self, email: str, token: str) -> None:
        self.sent.append((email, token))


@pytest.fixture
def cfg() -> Config:
    return Config(
        AUTH_JWT_SECRET="test-secret",
        AUTH_BOOTSTRAP_ADMIN_EMAIL="",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(cfg, db, notifier):
    app.state.cfg = cfg
    app.state.db = db
    app.state.notifier = notifier
    try:
        with TestClient(app) as c:
            yield c
    finally:
        for name in ("cfg", "db", "notifier"):
            if getattr(app.state, name, None) is not None:
                delattr(app.state, name)


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client) -> Callable[..., Dict[str, Any]]:
    """Register a user and return the response body (includes `token`)."""
    counter = {"n": 0}

    def _register(role: str = "customer", email: str | None = None, password: str = "pw123456") -> Dict[str, Any]:
        counter["n"] += 1
        body = {
            "name": f"{role.title()} {counter['n']}",
            "email": email or f"{role}{counter['n']}@shop.com",
            "password": password,
            "role": role,
        }
        r = client.post("/auth/register", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _register


@pytest.fixture
def category(client, register) -> Dict[str, Any]:
    admin = register("admin")
    r = client.post("/categories", json={"name": "Cakes", "description": "All kinds"}, headers=auth(admin["token"]))
    assert r.status_code == 201, r.text
    return r.json()
