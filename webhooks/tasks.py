"""
Celery tasks that move events from the inbox into the ledger.
"""

import logging
import time

from celery import shared_task
from django.conf import settings

from users.models import Shop
from webhooks.reconciler import EventReconciler

logger = logging.getLogger(__name__)


def deadline_after(seconds: int):
    """
    Returns a should_stop callable that turns true `seconds` from now.
    Batches check it between events, so a task never ends in the middle of one.
    """
    deadline = time.monotonic() + seconds

    def should_stop() -> bool:
        return time.monotonic() >= deadline

    return should_stop


@shared_task
def drain_shop_inbox(shop_id):
    """
    Processes one batch of received events for a shop.
    Enqueued after ingestion commits and by the periodic fan-out.
    """
    if not Shop.objects.filter(pk=shop_id, is_active=True).exists():
        logger.info("Shop %s is missing or inactive, inbox left untouched", shop_id)
        return {"shop_id": str(shop_id), "skipped": True}

    reconciler = EventReconciler()
    result = reconciler.drain_shop(shop_id, should_stop=deadline_after(settings.LOYALTY_INBOX_BATCH_DEADLINE_SECONDS))
    return result.as_dict()


@shared_task
def process_inbox_events():
    """
    Periodic task: queues a drain for every shop with pending events.
    """
    shop_ids = EventReconciler().shops_with_pending_events()
    for shop_id in shop_ids:
        drain_shop_inbox.delay(str(shop_id))

    logger.info("Queued inbox drains for %s shops", len(shop_ids))
    return len(shop_ids)


@shared_task
def retry_failed_inbox_events():
    """
    Periodic task: resubmits failed events within their retry budget, dead-letters the rest.
    """
    reconciler = EventReconciler()
    result = reconciler.retry_failed(should_stop=deadline_after(settings.LOYALTY_INBOX_BATCH_DEADLINE_SECONDS))
    return result.as_dict()
