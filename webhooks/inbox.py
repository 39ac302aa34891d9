"""
Event Inbox: fast, idempotent acceptance of external events.

Ingestion only stores the event. Applying it to the ledger happens later, in the reconciler.
"""

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from core.exceptions import Conflict, InvalidArgument
from webhooks.models import InboxEvent

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
DUPLICATE = "duplicate"

# Normalised platform topics ("orders/create", "ORDERS_CREATE") to event kinds.
TOPIC_KINDS = {
    "orders_create": InboxEvent.ORDER_CREATED,
    "orders_updated": InboxEvent.ORDER_UPDATED,
    "orders_cancelled": InboxEvent.ORDER_CANCELLED,
    "customers_create": InboxEvent.CUSTOMER_CREATED,
    "customers_update": InboxEvent.CUSTOMER_UPDATED,
}

_KIND_VALUES = {value for value, _label in InboxEvent.KINDS}


@dataclass
class IngestResult:
    outcome: str
    event: InboxEvent

    @property
    def accepted(self) -> bool:
        return self.outcome == ACCEPTED


def normalize_topic(topic: str) -> str:
    """
    Maps a platform topic to one of InboxEvent.KINDS. Unknown topics map to UNHANDLED.
    """
    key = (topic or "").strip().lower().replace("/", "_").replace("-", "_")
    if key in _KIND_VALUES:
        return key
    return TOPIC_KINDS.get(key, InboxEvent.UNHANDLED)


def admit(shop_id, external_event_id: str, topic: str, payload: dict) -> InboxEvent:
    """
    Inserts the event, relying on the (shop, external_event_id) constraint for deduplication.

    Raises:
        Conflict: the event was already admitted.
    """
    try:
        # Savepoint, so a rejected insert leaves an enclosing transaction usable.
        with transaction.atomic():
            return InboxEvent.objects.create(
                shop_id=shop_id,
                external_event_id=external_event_id,
                kind=normalize_topic(topic),
                topic=topic,
                payload=payload,
            )
    except IntegrityError:
        raise Conflict(f"Event {external_event_id} already received") from None


def ingest_event(shop, external_event_id: str, topic: str, payload: dict, schedule=None) -> IngestResult:
    """
    Accepts an external event exactly once.

    A duplicate delivery returns the stored event and has no other effect. A new event is
    persisted with status "received" and, once committed, `schedule(shop_id)` is called so a
    worker drains the shop's inbox.
    """
    if not external_event_id:
        raise InvalidArgument("external_event_id is required")
    if not topic:
        raise InvalidArgument("topic is required")

    try:
        event = admit(shop.id, str(external_event_id), topic, payload or {})
    except Conflict:
        existing = InboxEvent.objects.get(shop_id=shop.id, external_event_id=str(external_event_id))
        logger.info("Duplicate event %s for shop %s ignored", external_event_id, shop.domain)
        return IngestResult(outcome=DUPLICATE, event=existing)

    if schedule is not None:
        shop_id = shop.id
        transaction.on_commit(lambda: schedule(shop_id))

    logger.info("Received %s event %s for shop %s", event.kind, external_event_id, shop.domain)
    return IngestResult(outcome=ACCEPTED, event=event)
