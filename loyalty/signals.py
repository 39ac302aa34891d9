"""
Signals for the Loyalty application.
Handles cache invalidation when program configuration is updated.
"""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from loyalty.cache import cache_delete, program_tiers_key
from loyalty.models import LoyaltyProgram, Tier


@receiver([post_save, post_delete], sender=Tier)
@receiver([post_save, post_delete], sender=LoyaltyProgram)
def clear_program_tiers_cache(sender, instance, **kwargs):
    """
    Clears the cached tier list whenever a tier or its program is saved or deleted.
    This ensures that tier evaluation always uses up-to-date thresholds.
    """
    cache_delete(program_tiers_key(instance.shop_id))
