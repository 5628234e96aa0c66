import pytest

from storefront.auth.policy import POLICY, ROLES, NotAllowed, NotAuthenticated, authorize


def test_every_capability_uses_known_roles():
    for capability, roles in POLICY.items():
        assert roles, capability
        assert roles <= set(ROLES), capability


@pytest.mark.parametrize("role", ["admin", "vendor"])
def test_product_create_allows_admin_and_vendor(role):
    user = {"id": "1", "role": role}
    assert authorize(user, "product:create") is user


def test_customer_cannot_create_products():
    with pytest.raises(NotAllowed) as ei:
        authorize({"id": "1", "role": "customer"}, "product:create")
    assert "customer" in str(ei.value)


def test_delete_all_is_admin_only():
    authorize({"role": "admin"}, "product:delete_all")
    with pytest.raises(NotAllowed):
        authorize({"role": "vendor"}, "product:delete_all")


def test_missing_user_is_not_authenticated():
    with pytest.raises(NotAuthenticated):
        authorize(None, "cart:use")


def test_unknown_capability_is_a_programming_error():
    with pytest.raises(KeyError):
        authorize({"role": "admin"}, "product:explode")
