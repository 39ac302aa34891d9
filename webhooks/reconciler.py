"""
Event Reconciler: applies inbox events to the ledger, exactly once each.

Each event is processed in its own database transaction. The ledger effect and the event's
"processed" flag commit together, so a crash between them is impossible: either both are
visible or the event is still pending and will be picked up again.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, List

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.context import shop_context
from core.exceptions import InvalidArgument, NotFound
from loyalty.customers import CustomerService
from loyalty.models import CancelledOrder, Customer, LoyaltyProgram, Transaction
from loyalty.services import (
    ORDER_CANCELLED_SOURCE,
    ORDER_SOURCE,
    LedgerService,
    calculate_order_points,
    find_order_transaction,
    store_errors,
)
from webhooks.events import CustomerEvent, OrderEvent, UnhandledEvent, parse_event
from webhooks.models import InboxEvent, InboxLease

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# Outcomes of process_event.
APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


def never_stop() -> bool:
    return False


@dataclass
class BatchResult:
    shop_id: str = None
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    dead_lettered: int = 0
    lease_busy: bool = False
    stopped: bool = False
    event_ids: List[int] = field(default_factory=list)

    def record(self, event_id, outcome):
        self.event_ids.append(event_id)
        if outcome == APPLIED:
            self.processed += 1
        elif outcome == FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def merge(self, other: "BatchResult"):
        self.processed += other.processed
        self.failed += other.failed
        self.skipped += other.skipped
        self.dead_lettered += other.dead_lettered
        self.event_ids.extend(other.event_ids)
        self.stopped = self.stopped or other.stopped

    def as_dict(self) -> dict:
        return {
            "shop_id": str(self.shop_id) if self.shop_id else None,
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "dead_lettered": self.dead_lettered,
            "lease_busy": self.lease_busy,
            "stopped": self.stopped,
        }


class EventReconciler:
    """
    Drains per-shop inboxes, retries failures within a budget and dead-letters the rest.

    Collaborators are injected so tests can swap the ledger, the registry or the clock.
    """

    def __init__(
        self,
        ledger: LedgerService = None,
        customers: CustomerService = None,
        clock=timezone.now,
        max_retries: int = None,
        batch_size: int = None,
        retry_batch_size: int = None,
        retry_window: timedelta = None,
        backoff_seconds: int = None,
        lease_seconds: int = None,
    ):
        self.ledger = ledger or LedgerService(clock=clock)
        self.customers = customers or CustomerService(ledger=self.ledger)
        self.clock = clock
        self.max_retries = settings.LOYALTY_INBOX_MAX_RETRIES if max_retries is None else max_retries
        self.batch_size = batch_size or settings.LOYALTY_INBOX_BATCH_SIZE
        self.retry_batch_size = retry_batch_size or settings.LOYALTY_INBOX_RETRY_BATCH_SIZE
        self.retry_window = retry_window or timedelta(hours=settings.LOYALTY_INBOX_RETRY_WINDOW_HOURS)
        self.backoff_seconds = (
            settings.LOYALTY_INBOX_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.lease_seconds = lease_seconds or settings.LOYALTY_INBOX_LEASE_SECONDS
        self.owner = uuid.uuid4().hex

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: InboxEvent):
        """
        Applies one event. Runs inside the caller's transaction with the shop context active.
        """
        parsed = parse_event(event)

        if isinstance(parsed, OrderEvent):
            if parsed.kind == InboxEvent.ORDER_CREATED:
                self.handle_order_created(event.shop_id, parsed)
            elif parsed.kind == InboxEvent.ORDER_UPDATED:
                self.handle_order_updated(event.shop_id, parsed)
            else:
                self.handle_order_cancelled(event.shop_id, parsed)
        elif isinstance(parsed, CustomerEvent):
            self.customers.upsert_customer(event.shop_id, parsed.customer_id, **parsed.profile())
        elif isinstance(parsed, UnhandledEvent):
            logger.info("Unhandled event topic %s (%s), marking applied", parsed.topic, event.external_event_id)

    def handle_order_created(self, shop_id, order: OrderEvent):
        if not order.is_paid:
            logger.info("Skipping unpaid order %s", order.order_id)
            return
        if order.customer is None:
            logger.info("Skipping order %s - no customer", order.order_id)
            return

        program = LoyaltyProgram.for_shop(shop_id)
        if program is None or not program.active:
            logger.info("Skipping order %s - loyalty program not active", order.order_id)
            return

        if CancelledOrder.is_cancelled(shop_id, order.order_id):
            logger.info("Skipping order %s - already cancelled", order.order_id)
            return

        customer = self.customers.find_by_external_id(shop_id, order.customer.id)
        if customer is None:
            customer, _created = self.customers.upsert_customer(shop_id, order.customer.id, **order.customer.profile())

        # Serializes with any other writer for this customer before the duplicate check.
        customer = Customer.objects.select_for_update().get(pk=customer.pk)

        if find_order_transaction(shop_id, order.order_id) is not None:
            logger.info("Order %s already earned points, skipping", order.order_id)
            return

        tier_multiplier = customer.tier_multiplier
        points = calculate_order_points(order.total_price, program.points_per_dollar, tier_multiplier)
        if points <= 0:
            logger.info("Order %s earns no points", order.order_id)
            return

        self.ledger.earn(
            customer.id,
            points,
            ORDER_SOURCE,
            f"Order #{order.order_number}",
            external_ref=order.order_id,
            external_order_number=order.order_number,
            metadata={
                "order_total": str(order.total_price),
                "tier_multiplier": str(tier_multiplier),
                "order_id": order.order_id,
            },
        )
        self.customers.record_order(customer.id, order.total_price)

        logger.info("Awarded %s points to customer %s for order %s", points, customer.id, order.order_number)

    def handle_order_updated(self, shop_id, order: OrderEvent):
        if order.is_cancelled:
            self.handle_order_cancelled(shop_id, order)
            return

        if order.is_paid and find_order_transaction(shop_id, order.order_id) is None:
            self.handle_order_created(shop_id, order)

    def handle_order_cancelled(self, shop_id, order: OrderEvent):
        # Recorded even when nothing was earned, so a late order-created for it earns nothing.
        CancelledOrder.mark(shop_id, order.order_id)

        original = find_order_transaction(shop_id, order.order_id)
        if original is None:
            logger.info("No transaction found for cancelled order %s", order.order_id)
            return

        Customer.objects.select_for_update().get(pk=original.customer_id)

        reversal = find_order_transaction(
            shop_id, order.order_id, transaction_type=Transaction.ADJUSTED, source=ORDER_CANCELLED_SOURCE
        )
        if reversal is not None:
            logger.info("Order %s cancellation already applied", order.order_id)
            return

        self.ledger.adjust(
            original.customer_id,
            -original.points,
            f"Order #{order.order_number} cancelled",
            actor=SYSTEM_ACTOR,
            source=ORDER_CANCELLED_SOURCE,
            external_ref=order.order_id,
            external_order_number=order.order_number,
        )

        logger.info("Deducted %s points for cancelled order %s", original.points, order.order_number)

    # ------------------------------------------------------------------
    # Per-event processing
    # ------------------------------------------------------------------

    def process_event(self, event_id) -> str:
        """
        Applies one event and marks it applied in the same transaction.

        Returns "applied", "skipped" (already processed) or "failed". Failures never raise;
        they are recorded on the event for the retry sweep.
        """
        try:
            with store_errors(), transaction.atomic():
                try:
                    event = InboxEvent.objects.select_for_update().get(pk=event_id)
                except InboxEvent.DoesNotExist:
                    raise NotFound("Inbox event") from None

                if event.processed:
                    return SKIPPED

                with shop_context(event.shop_id):
                    self.dispatch(event)

                now = self.clock()
                event.status = InboxEvent.APPLIED
                event.processed = True
                event.processed_at = now
                event.last_attempt_at = now
                event.processing_error = None
                event.save(
                    update_fields=["status", "processed", "processed_at", "last_attempt_at", "processing_error"]
                )
        except Exception as e:
            self._record_failure(event_id, e)
            return FAILED

        logger.info("Applied event %s (%s)", event.external_event_id, event.kind)
        return APPLIED

    def _record_failure(self, event_id, error: Exception):
        message = str(error) or error.__class__.__name__

        with transaction.atomic():
            event = InboxEvent.objects.select_for_update().filter(pk=event_id).first()
            if event is None:
                logger.warning("Event %s vanished while recording failure: %s", event_id, message)
                return

            event.retry_count += 1
            event.processing_error = message
            event.last_attempt_at = self.clock()

            if event.retry_count >= self.max_retries:
                event.status = InboxEvent.DEAD_LETTERED
                logger.error(
                    "Event %s dead-lettered after %s attempts: %s",
                    event.external_event_id,
                    event.retry_count,
                    message,
                )
            else:
                event.status = InboxEvent.FAILED
                logger.warning(
                    "Event %s failed (attempt %s of %s): %s",
                    event.external_event_id,
                    event.retry_count,
                    self.max_retries,
                    message,
                )

            event.save(update_fields=["retry_count", "processing_error", "last_attempt_at", "status"])

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def _run_leased(self, shop_id, event_ids, result: BatchResult, should_stop: Callable[[], bool]) -> BatchResult:
        if not InboxLease.claim(shop_id, self.owner, self.lease_seconds, self.clock()):
            logger.info("Inbox of shop %s is being drained elsewhere", shop_id)
            result.lease_busy = True
            return result

        try:
            for event_id in event_ids:
                if should_stop():
                    result.stopped = True
                    logger.info("Stopping batch for shop %s early", shop_id)
                    break
                result.record(event_id, self.process_event(event_id))
        finally:
            InboxLease.release(shop_id, self.owner)

        return result

    def drain_shop(self, shop_id, should_stop: Callable[[], bool] = never_stop) -> BatchResult:
        """
        Processes up to `batch_size` received events of one shop, oldest first.
        Only one batch per shop runs at a time; a busy lease makes this a no-op.
        """
        result = BatchResult(shop_id=shop_id)
        event_ids = list(
            InboxEvent.objects.filter(shop_id=shop_id, status=InboxEvent.RECEIVED, processed=False)
            .order_by("received_at", "id")
            .values_list("id", flat=True)[: self.batch_size]
        )
        if not event_ids:
            return result

        self._run_leased(shop_id, event_ids, result, should_stop)
        logger.info("Drained shop %s: %s", shop_id, result.as_dict())
        return result

    def shops_with_pending_events(self):
        return list(
            InboxEvent.objects.filter(status=InboxEvent.RECEIVED, processed=False)
            .values_list("shop_id", flat=True)
            .distinct()
            .order_by()
        )

    # ------------------------------------------------------------------
    # Retries
    # ------------------------------------------------------------------

    def backoff_for(self, retry_count: int) -> timedelta:
        """
        Exponential backoff after the n-th failed attempt: base, 2*base, 4*base...
        """
        if self.backoff_seconds <= 0 or retry_count <= 0:
            return timedelta(0)
        return timedelta(seconds=self.backoff_seconds * 2 ** (retry_count - 1))

    def is_due(self, event: InboxEvent, now) -> bool:
        if event.last_attempt_at is None:
            return True
        return event.last_attempt_at + self.backoff_for(event.retry_count) <= now

    def dead_letter_exhausted(self, now=None) -> int:
        """
        Moves failed events to the dead-letter state once they have used up their retry budget
        or fallen out of the retry window.
        """
        now = now or self.clock()
        exhausted = InboxEvent.objects.filter(status=InboxEvent.FAILED).filter(
            Q(retry_count__gte=self.max_retries) | Q(received_at__lt=now - self.retry_window)
        )
        count = exhausted.update(status=InboxEvent.DEAD_LETTERED)
        if count:
            logger.error("Dead-lettered %s events over the retry budget or window", count)
        return count

    def retry_failed(self, should_stop: Callable[[], bool] = never_stop) -> BatchResult:
        """
        Resubmits recent failed events whose backoff has elapsed, oldest first.
        """
        now = self.clock()
        total = BatchResult()
        total.dead_lettered = self.dead_letter_exhausted(now)

        candidates = (
            InboxEvent.objects.filter(
                status=InboxEvent.FAILED,
                processed=False,
                received_at__gte=now - self.retry_window,
                retry_count__lt=self.max_retries,
            )
            .order_by("received_at", "id")
        )
        # Backoff depends on each row's retry_count, so it is filtered here rather than in SQL.
        due = []
        for event in candidates.iterator():
            if self.is_due(event, now):
                due.append(event)
            if len(due) >= self.retry_batch_size:
                break

        by_shop = {}
        for event in due:
            by_shop.setdefault(event.shop_id, []).append(event.id)

        for shop_id, event_ids in by_shop.items():
            InboxEvent.objects.filter(id__in=event_ids, status=InboxEvent.FAILED).update(processing_error=None)
            shop_result = self._run_leased(shop_id, event_ids, BatchResult(shop_id=shop_id), should_stop)
            total.merge(shop_result)
            if shop_result.stopped:
                break

        logger.info("Retried %s failed events: %s", len(due), total.as_dict())
        return total

    def replay(self, event: InboxEvent) -> InboxEvent:
        """
        Operator action: puts a failed or dead-lettered event back in the queue with a fresh budget.
        """
        with transaction.atomic():
            event = InboxEvent.objects.select_for_update().get(pk=event.pk)
            if event.processed:
                raise InvalidArgument("Event has already been applied")

            event.status = InboxEvent.RECEIVED
            event.retry_count = 0
            event.processing_error = None
            event.last_attempt_at = None
            event.save(update_fields=["status", "retry_count", "processing_error", "last_attempt_at"])

        logger.info("Event %s queued for replay", event.external_event_id)
        return event
