import mongomock
import pytest

from storefront.auth import crud
from storefront.auth.security import verify_password
from storefront.config import Config
from storefront.db import USERS, init_db


@pytest.fixture
def db():
    d = mongomock.MongoClient()["crud_test"]
    init_db(d)
    return d


def _make(db, email="a@x.com", role="customer"):
    return crud.create_user(db, name="A", email=email, password="pw123456", role=role)


def test_create_user_hashes_and_hides_secret(db):
    u = _make(db)
    assert set(u) == {"id", "name", "email", "role", "createdAt", "updatedAt"}
    stored = db[USERS].find_one({"email": "a@x.com"})
    assert stored["password"] != "pw123456"
    assert verify_password("pw123456", stored["password"])


def test_email_is_normalized_and_unique(db):
    _make(db, email="A@X.com")
    with pytest.raises(ValueError, match="email_exists"):
        _make(db, email="a@x.com ")
    assert db[USERS].count_documents({}) == 1


def test_role_must_be_known(db):
    with pytest.raises(ValueError, match="invalid_role"):
        _make(db, role="superuser")


def test_public_lookup_excludes_private_fields(db):
    u = _make(db)
    crud.issue_reset_token(db, "a@x.com", expires_minutes=60)
    row = crud.get_user_by_id(db, u["id"])
    assert "password" not in row
    assert "reset_password_token" not in row
    assert "reset_password_expires" not in row


def test_get_user_by_id_with_malformed_id(db):
    assert crud.get_user_by_id(db, "not-an-id") is None


def test_verify_credentials(db):
    _make(db)
    assert crud.verify_user_credentials(db, "a@x.com", "pw123456") is not None
    assert crud.verify_user_credentials(db, "a@x.com", "nope") is None
    assert crud.verify_user_credentials(db, "b@x.com", "pw123456") is None


def test_profile_update_does_not_rehash(db):
    u = _make(db)
    before = db[USERS].find_one({"email": "a@x.com"})["password"]
    out = crud.update_profile(db, u["id"], name="Renamed")
    assert out["name"] == "Renamed"
    assert db[USERS].find_one({"email": "a@x.com"})["password"] == before


def test_profile_email_conflict(db):
    u = _make(db)
    _make(db, email="b@x.com")
    with pytest.raises(ValueError, match="email_exists"):
        crud.update_profile(db, u["id"], email="b@x.com")


def test_reset_token_flow_sets_and_clears_both_fields(db):
    _make(db)
    _, token = crud.issue_reset_token(db, "a@x.com", expires_minutes=60)
    row = db[USERS].find_one({"email": "a@x.com"})
    assert row["reset_password_token"] == token
    assert row["reset_password_expires"]

    found = crud.find_user_by_reset_token(db, token)
    assert found is not None
    crud.set_password(db, found["_id"], "newpass99", clear_reset=True)

    row = db[USERS].find_one({"email": "a@x.com"})
    assert "reset_password_token" not in row
    assert "reset_password_expires" not in row
    assert verify_password("newpass99", row["password"])
    assert crud.find_user_by_reset_token(db, token) is None


def test_expired_reset_token_is_not_found(db):
    _make(db)
    _, token = crud.issue_reset_token(db, "a@x.com", expires_minutes=60)
    db[USERS].update_one({"email": "a@x.com"}, {"$set": {"reset_password_expires": "2000-01-01T00:00:00Z"}})
    assert crud.find_user_by_reset_token(db, token) is None


def test_issue_reset_token_unknown_email(db):
    assert crud.issue_reset_token(db, "ghost@x.com", expires_minutes=60) is None


def test_bootstrap_admin_only_when_empty(db):
    cfg = Config(AUTH_BOOTSTRAP_ADMIN_EMAIL="root@x.com", AUTH_BOOTSTRAP_ADMIN_PASSWORD="rootpw")
    u = crud.bootstrap_admin_if_needed(db, cfg)
    assert u["role"] == "admin"
    assert crud.bootstrap_admin_if_needed(db, cfg) is None
    assert db[USERS].count_documents({}) == 1


def test_bootstrap_disabled_without_credentials(db):
    cfg = Config(AUTH_BOOTSTRAP_ADMIN_EMAIL="", AUTH_BOOTSTRAP_ADMIN_PASSWORD="")
    assert crud.bootstrap_admin_if_needed(db, cfg) is None
    assert db[USERS].count_documents({}) == 0
