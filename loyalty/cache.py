"""
Best-effort caching for read paths of the ledger.

The cache only accelerates reads. Every helper here swallows backend errors so that a cache
outage can never block or fail a ledger operation.
"""

import logging

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from loyalty.models import Tier

logger = logging.getLogger(__name__)


def customer_status_key(customer_id) -> str:
    return f"customer_status:{customer_id}"


def program_tiers_key(shop_id) -> str:
    return f"program_tiers:{shop_id}"


def cache_get(key):
    try:
        return cache.get(key)
    except Exception as e:
        logger.warning("Cache get failed for %s: %s", key, e)
        return None


def cache_set(key, value, timeout):
    try:
        cache.set(key, value, timeout)
    except Exception as e:
        logger.warning("Cache set failed for %s: %s", key, e)


def cache_delete(key):
    try:
        cache.delete(key)
    except Exception as e:
        logger.warning("Cache delete failed for %s: %s", key, e)


def invalidate_customer_status(customer_id):
    """
    Drops the cached status of a customer once the surrounding transaction commits.
    Invalidating before commit would let a concurrent reader re-cache the old balance.
    """
    transaction.on_commit(lambda: cache_delete(customer_status_key(customer_id)))


def get_program_tiers(shop_id):
    """
    Returns the tiers of a shop's program ordered by required_points (ascending).
    Tiers are read-mostly; signals clear the cached list when one changes.
    """
    cache_key = program_tiers_key(shop_id)
    tiers = cache_get(cache_key)
    if tiers is None:
        tiers = list(Tier.objects.filter(shop_id=shop_id).order_by("required_points", "level"))
        cache_set(cache_key, tiers, settings.LOYALTY_TIERS_CACHE_TTL)
    return tiers
