"""
Models for the Event Inbox: durably stored, deduplicated external events.
"""

from datetime import timedelta

from django.db import models
from django.db.models import Q

from core.models import TenantAwareModel


class InboxEvent(TenantAwareModel):
    """
    One event received from the commerce platform.

    The (shop, external_event_id) uniqueness is the idempotency store: the database rejects a
    second delivery of the same event. Rows are never deleted; they are the audit trail.
    """

    # Kinds (closed set). Topics the ledger does not handle are stored as UNHANDLED.
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_CANCELLED = "order_cancelled"
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    UNHANDLED = "unhandled"

    KINDS = [
        (ORDER_CREATED, "Order created"),
        (ORDER_UPDATED, "Order updated"),
        (ORDER_CANCELLED, "Order cancelled"),
        (CUSTOMER_CREATED, "Customer created"),
        (CUSTOMER_UPDATED, "Customer updated"),
        (UNHANDLED, "Unhandled"),
    ]

    # Processing states. "Processing" only exists inside the per-event database transaction.
    RECEIVED = "received"
    APPLIED = "applied"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"

    STATUSES = [
        (RECEIVED, "Received"),
        (APPLIED, "Applied"),
        (FAILED, "Failed (retryable)"),
        (DEAD_LETTERED, "Dead-lettered"),
    ]

    external_event_id = models.CharField(max_length=255)
    kind = models.CharField(max_length=32, choices=KINDS)
    # Raw topic as sent by the platform, e.g. "orders/create".
    topic = models.CharField(max_length=100)
    payload = models.JSONField(default=dict)

    status = models.CharField(max_length=20, choices=STATUSES, default=RECEIVED)
    processed = models.BooleanField(default=False)
    processing_error = models.TextField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)

    received_at = models.DateTimeField(auto_now_add=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = [("shop", "external_event_id")]
        indexes = [
            models.Index(fields=["shop", "status", "received_at"], name="inbox_drain_idx"),
            models.Index(fields=["status", "received_at"], name="inbox_retry_idx"),
        ]

    def __str__(self):
        return f"{self.topic} {self.external_event_id} ({self.status})"


class InboxLease(TenantAwareModel):
    """
    Per-shop mutual exclusion for inbox batches.

    A batch claims the lease with a conditional UPDATE, so two workers never drain the same
    shop at once. The lease expires on its own if a worker dies mid-batch.
    """

    locked_until = models.DateTimeField(null=True, blank=True)
    owner = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        constraints = [models.UniqueConstraint(fields=["shop"], name="unique_inbox_lease_per_shop")]

    def __str__(self):
        return f"lease {self.shop_id} -> {self.owner or 'free'}"

    @classmethod
    def claim(cls, shop_id, owner: str, seconds: int, now) -> bool:
        cls.objects.get_or_create(shop_id=shop_id)
        claimed = (
            cls.objects.filter(shop_id=shop_id)
            .filter(Q(locked_until__isnull=True) | Q(locked_until__lte=now))
            .update(locked_until=now + timedelta(seconds=seconds), owner=owner)
        )
        return claimed == 1

    @classmethod
    def release(cls, shop_id, owner: str):
        cls.objects.filter(shop_id=shop_id, owner=owner).update(locked_until=None, owner="")
