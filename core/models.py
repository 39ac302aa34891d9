"""
Abstract base models providing multi-tenancy capabilities.
"""

from django.db import models

from core.context import get_current_shop_id
from core.managers import TenantAwareManager


class TenantAwareModel(models.Model):
    """
    Abstract base class for all models that must be isolated by shop.

    It enforces two main behaviors:
    1. Data Isolation: Uses TenantAwareManager to restrict read access.
    2. Auto-Assignment: Automatically links new records to the active shop on save.
    """

    # Shops are deactivated, never deleted; PROTECT keeps ledger rows from being cascaded away.
    # db_index=True is critical for performance as this column is used in almost every WHERE clause.
    shop = models.ForeignKey(
        "users.Shop",
        on_delete=models.PROTECT,
        related_name="%(class)s_set",
        db_index=True,
    )

    objects = TenantAwareManager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Overridden save method to automatically assign the shop.
        """
        if not self.shop_id:
            shop_id = get_current_shop_id()
            if shop_id:
                self.shop_id = shop_id

        super().save(*args, **kwargs)
