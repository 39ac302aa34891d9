"""
Custom Django managers for core functionality (multi-tenancy).
"""

from django.db import models

from core.context import get_current_shop_id


class TenantAwareManager(models.Manager):
    """
    A custom manager that automatically filters querysets based on the current
    active shop context.

    A shop can never read records belonging to another shop while its context is active.
    """

    def get_queryset(self):
        queryset = super().get_queryset()

        shop_id = get_current_shop_id()

        # If a shop context is active, force a filter on the queryset.
        if shop_id:
            return queryset.filter(shop_id=shop_id)

        # No context (system tasks, management commands): unfiltered.
        return queryset
