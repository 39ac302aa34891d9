"""
Unit tests for CustomUserManager (email-based merchant accounts).
"""

import pytest
from django.contrib.auth import get_user_model

from tests.factories.users import ShopFactory

User = get_user_model()


class TestCustomUserManager:
    def test_create_user_without_email_raises_error(self):
        with pytest.raises(ValueError) as exc:
            User.objects.create_user(email=None, password="password123")

        assert "The Email must be set" in str(exc.value)

    def test_create_user_normalizes_email_and_hashes_password(self):
        shop = ShopFactory()

        user = User.objects.create_user(email="Merchant@EXAMPLE.com", password="password123", shop=shop)

        assert user.email == "Merchant@example.com"
        assert user.check_password("password123")
        assert user.shop == shop
        assert user.is_staff is False

    def test_create_superuser_success(self):
        admin_user = User.objects.create_superuser(email="admin@test.com", password="password123")

        assert admin_user.is_staff is True
        assert admin_user.is_superuser is True
        assert admin_user.is_active is True

    @pytest.mark.parametrize("flag", ["is_staff", "is_superuser"])
    def test_create_superuser_requires_flags(self, flag):
        with pytest.raises(ValueError):
            User.objects.create_superuser(email=f"{flag}@test.com", password="password123", **{flag: False})
