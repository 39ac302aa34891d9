"""
Unit tests for the Shop, ShopApiKey and User models
"""

import pytest
from django.db.utils import IntegrityError

from tests.factories.users import ShopApiKeyFactory, ShopFactory, UserFactory
from users.models import Shop


class TestShop:
    def test_shop_str_is_its_domain(self):
        shop = ShopFactory(domain="coffee.example.com")

        assert str(shop) == "coffee.example.com"
        assert shop.is_active is True

    def test_domain_must_be_unique(self):
        """
        The domain identifies the shop on incoming events; two shops cannot share it.
        """
        ShopFactory(domain="dup.example.com")

        with pytest.raises(IntegrityError):
            ShopFactory(domain="dup.example.com")

    def test_shop_ids_are_uuids(self):
        shop = ShopFactory()

        assert Shop.objects.get(pk=str(shop.id)) == shop


class TestShopApiKey:
    def test_api_key_str_representation(self):
        shop = ShopFactory(domain="coffee.example.com")
        api_key = ShopApiKeyFactory(shop=shop, name="Commerce webhooks")

        assert str(api_key) == "coffee.example.com - Commerce webhooks"

    def test_generated_keys_are_random(self):
        shop = ShopFactory()
        first = shop.api_keys.create(name="One")
        second = shop.api_keys.create(name="Two")

        assert len(first.key) == 64
        assert first.key != second.key

    def test_api_key_uniqueness(self):
        ShopApiKeyFactory(key="unique-key-123")

        with pytest.raises(IntegrityError):
            ShopApiKeyFactory(key="unique-key-123")


class TestUser:
    def test_user_str_representation(self):
        user = UserFactory(email="merchant@example.com")

        assert str(user) == "merchant@example.com"

    def test_merchant_belongs_to_a_shop(self):
        shop = ShopFactory()
        user = UserFactory(shop=shop)

        assert list(shop.users.all()) == [user]
