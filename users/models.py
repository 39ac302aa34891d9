"""
Models for the users application (Auth and Shop/Tenant)
"""

import secrets
import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models

from users.managers import CustomUserManager


def generate_api_key() -> str:
    return secrets.token_hex(32)


class Shop(models.Model):
    """
    Represents a Tenant (a merchant storefront) in the system.
    `domain` is the identity the commerce platform uses when it sends events.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    domain = models.CharField(max_length=255, unique=True)
    # Shops are never deleted; deactivation freezes their customers and ledger.
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.domain


class ShopApiKey(models.Model):
    """
    Separate model for managing API keys.
    Allows key rotation and multiple keys per shop.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE, related_name="api_keys")
    key = models.CharField(max_length=64, unique=True, db_index=True, default=generate_api_key)
    name = models.CharField(max_length=50, help_text="e.g. 'Storefront' or 'Commerce webhooks'")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.shop.domain} - {self.name}"


class User(AbstractUser):
    """
    Merchant staff account, logging in with email.
    """

    username = None
    email = models.EmailField("email address", unique=True)

    shop = models.ForeignKey("users.Shop", on_delete=models.SET_NULL, null=True, blank=True, related_name="users")

    objects = CustomUserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email
