"""
Integration tests for shop isolation enforced by TenantAwareModel and TenantAwareManager.
"""

from core.context import get_current_shop_id, set_current_shop_id, shop_context
from loyalty.models import Customer
from tests.factories.loyalty import CustomerFactory
from tests.factories.users import ShopFactory


class TestTenantAwareManager:
    def test_manager_enforces_shop_isolation(self):
        """
        Scenario: Two shops each own a customer.
        Expected: With shop A's context active only shop A's customer is visible.
        """
        shop_a, shop_b = ShopFactory(), ShopFactory()
        customer_a = CustomerFactory(shop=shop_a)
        CustomerFactory(shop=shop_b)

        set_current_shop_id(shop_a.id)

        assert list(Customer.objects.all()) == [customer_a]

    def test_manager_returns_all_records_when_no_shop_is_active(self):
        """
        Scenario: System access (management command or background task).
        Expected: The manager returns every shop's records.
        """
        CustomerFactory()
        CustomerFactory()

        assert Customer.objects.count() == 2

    def test_save_assigns_the_active_shop(self):
        shop = ShopFactory()

        with shop_context(shop.id):
            customer = Customer.objects.create(external_id="auto-1")

        assert customer.shop_id == shop.id


class TestShopContext:
    def test_context_is_restored_after_the_block(self):
        outer, inner = ShopFactory(), ShopFactory()
        set_current_shop_id(outer.id)

        with shop_context(inner.id):
            assert get_current_shop_id() == inner.id

        assert get_current_shop_id() == outer.id
