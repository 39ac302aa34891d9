"""
Service layer for Loyalty business logic.
The ledger service is the only code allowed to change a customer's balance.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError, OperationalError, transaction
from django.utils import timezone

from core.context import get_current_shop_id
from core.exceptions import InsufficientBalance, Internal, InvalidArgument, NotFound
from loyalty.cache import cache_get, cache_set, customer_status_key, get_program_tiers, invalidate_customer_status
from loyalty.models import Customer, Tier, Transaction
from loyalty.tiers import TierEvaluator

logger = logging.getLogger(__name__)

ORDER_SOURCE = "ORDER"
API_SOURCE = "API"
MANUAL_ADJUSTMENT_SOURCE = "MANUAL_ADJUSTMENT"
ORDER_CANCELLED_SOURCE = "ORDER_CANCELLED"
WELCOME_BONUS_SOURCE = "WELCOME_BONUS"
REFERRAL_SOURCE = "REFERRAL"
REDEMPTION_SOURCE = "REDEMPTION"

RECENT_TRANSACTIONS_LIMIT = 10


@dataclass
class CustomerStatus:
    customer: Customer
    points_balance: int
    lifetime_points: int
    current_tier: Optional[Tier]
    next_tier: Optional[Tier]
    points_to_next_tier: int
    recent_transactions: List[Transaction] = field(default_factory=list)


def calculate_order_points(order_total, points_per_dollar, tier_multiplier=Decimal("1")) -> int:
    """
    floor(order_total * points_per_dollar * tier_multiplier), always rounding down.
    Computed in Decimal so that e.g. 19.99 * 1.5 is not skewed by binary floats.
    """
    raw = Decimal(str(order_total)) * Decimal(str(points_per_dollar)) * Decimal(str(tier_multiplier))
    points = int(raw.to_integral_value(rounding=ROUND_FLOOR))
    return max(points, 0)


def _require_positive(points):
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidArgument("Points must be a positive integer")


@contextmanager
def store_errors():
    """
    Translates store failures into the ledger's error taxonomy.
    Wraps the atomic block, so the transaction has already been rolled back when this runs.
    """
    try:
        yield
    except OperationalError as e:
        # Lock waits and statement timeouts: the caller may safely try again.
        raise Internal(f"Store unavailable: {e}", retryable=True) from e
    except DatabaseError as e:
        raise Internal(f"Store failure: {e}") from e


class LedgerService:
    """
    Earns, redeems and adjusts points.

    Every operation runs in one atomic unit that locks the customer row before reading the
    balance, writes exactly one Transaction (plus an optional tier-upgrade row) and updates the
    balance snapshot. Concurrent calls on one customer therefore serialize.
    """

    def __init__(self, tier_evaluator: TierEvaluator = None, clock=timezone.now):
        self.tier_evaluator = tier_evaluator or TierEvaluator()
        self.clock = clock

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_customer(self, customer_id) -> Customer:
        try:
            return Customer.objects.select_for_update().get(pk=customer_id)
        except Customer.DoesNotExist:
            raise NotFound("Customer") from None

    def _append(self, customer, transaction_type, points, source, description, **extra) -> Transaction:
        """
        Writes the ledger row for `points` and moves the in-memory balance snapshot with it.
        The caller saves the customer.
        """
        balance_before = customer.points_balance
        balance_after = balance_before + points

        entry = Transaction.objects.create(
            shop_id=customer.shop_id,
            customer=customer,
            transaction_type=transaction_type,
            points=points,
            balance_before=balance_before,
            balance_after=balance_after,
            source=source,
            description=description,
            **extra,
        )

        customer.points_balance = balance_after
        customer.last_activity_at = self.clock()
        return entry

    def _credit(self, customer_id, points, transaction_type, source, description, **extra) -> Transaction:
        _require_positive(points)

        with store_errors(), transaction.atomic():
            customer = self._lock_customer(customer_id)
            entry = self._append(customer, transaction_type, points, source, description, **extra)
            customer.lifetime_points += points
            customer.save(update_fields=["points_balance", "lifetime_points", "last_activity_at"])

            self.tier_evaluator.apply(customer)
            invalidate_customer_status(customer.id)

        logger.info(
            "Credited %s points (%s) to customer %s, balance %s",
            points,
            transaction_type,
            customer_id,
            entry.balance_after,
        )
        return entry

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def earn(
        self,
        customer_id,
        points: int,
        source: str,
        description: str = "",
        external_ref: str = None,
        external_order_number: str = None,
        metadata: dict = None,
    ) -> Transaction:
        """
        Awards points to a customer and promotes their tier if the new lifetime total qualifies.

        Args:
            customer_id: Primary key of the Customer.
            points: Strictly positive integer.
            source: Origin tag, e.g. "ORDER".
            external_ref: External order id, stored for dedup and cancellation lookups.

        Returns:
            The Earned transaction.
        """
        return self._credit(
            customer_id,
            points,
            Transaction.EARNED,
            source,
            description,
            external_order_id=external_ref,
            external_order_number=external_order_number,
            metadata=metadata or {},
        )

    def award_bonus(self, customer_id, points: int, source: str, description: str = "") -> Transaction:
        """
        Grants promotional points (welcome bonus). Counts towards lifetime points and tiers.
        """
        return self._credit(customer_id, points, Transaction.BONUS, source, description, metadata={})

    def redeem(self, customer_id, points: int, description: str, metadata: dict = None) -> Transaction:
        """
        Spends points. Raises InsufficientBalance when the balance does not cover `points`.
        Lifetime points and tier are left untouched.
        """
        _require_positive(points)

        with store_errors(), transaction.atomic():
            customer = self._lock_customer(customer_id)

            if customer.points_balance < points:
                raise InsufficientBalance(required=points, available=customer.points_balance)

            entry = self._append(
                customer, Transaction.REDEEMED, -points, REDEMPTION_SOURCE, description, metadata=metadata or {}
            )
            customer.save(update_fields=["points_balance", "last_activity_at"])
            invalidate_customer_status(customer.id)

        logger.info("Redeemed %s points from customer %s, balance %s", points, customer_id, entry.balance_after)
        return entry

    def adjust(
        self,
        customer_id,
        points: int,
        reason: str,
        actor: str,
        source: str = MANUAL_ADJUSTMENT_SOURCE,
        external_ref: str = None,
        external_order_number: str = None,
    ) -> Transaction:
        """
        Administrative correction.

        A negative adjustment larger than the balance is clamped: the balance stops at 0.
        The row records the effective delta so the ledger still replays to the balance; the
        requested amount is kept in metadata. Lifetime points grow only for positive amounts.
        """
        if isinstance(points, bool) or not isinstance(points, int) or points == 0:
            raise InvalidArgument("Adjustment must be a non-zero integer")
        if not reason:
            raise InvalidArgument("Adjustment reason is required")

        with store_errors(), transaction.atomic():
            customer = self._lock_customer(customer_id)

            balance_before = customer.points_balance
            effective = max(0, balance_before + points) - balance_before

            entry = self._append(
                customer,
                Transaction.ADJUSTED,
                effective,
                source,
                reason,
                external_order_id=external_ref,
                external_order_number=external_order_number,
                metadata={"actor": actor, "requested_points": points, "clamped": effective != points},
            )

            update_fields = ["points_balance", "last_activity_at"]
            if points > 0:
                customer.lifetime_points += points
                update_fields.append("lifetime_points")
            customer.save(update_fields=update_fields)
            invalidate_customer_status(customer.id)

        logger.info(
            "Adjusted customer %s by %s (requested %s) by %s: %s",
            customer_id,
            effective,
            points,
            actor,
            reason,
        )
        return entry

    def get_status(self, customer_id) -> CustomerStatus:
        """
        Balance, tier, progress to the next tier and recent activity.
        Read through the cache; ledger writes invalidate it on commit.
        """
        cache_key = customer_status_key(customer_id)
        status = cache_get(cache_key)
        if status is None:
            status = self._build_status(customer_id)
            cache_set(cache_key, status, settings.LOYALTY_STATUS_CACHE_TTL)

        # Cached entries are keyed by customer only; never serve one across shops.
        shop_id = get_current_shop_id()
        if shop_id and status.customer.shop_id != shop_id:
            raise NotFound("Customer")
        return status

    def _build_status(self, customer_id) -> CustomerStatus:
        try:
            customer = Customer.objects.select_related("current_tier").get(pk=customer_id)
        except Customer.DoesNotExist:
            raise NotFound("Customer") from None

        current_level = customer.current_tier.level if customer.current_tier else 0
        next_tier = next(
            (tier for tier in get_program_tiers(customer.shop_id) if tier.level > current_level),
            None,
        )
        points_to_next_tier = max(next_tier.required_points - customer.lifetime_points, 0) if next_tier else 0

        return CustomerStatus(
            customer=customer,
            points_balance=customer.points_balance,
            lifetime_points=customer.lifetime_points,
            current_tier=customer.current_tier,
            next_tier=next_tier,
            points_to_next_tier=points_to_next_tier,
            recent_transactions=list(customer.transactions.order_by("-created_at", "-id")[:RECENT_TRANSACTIONS_LIMIT]),
        )


def find_order_transaction(shop_id, external_order_id, transaction_type=Transaction.EARNED, source=None):
    """
    Looks up the ledger row that references an external order.
    """
    queryset = Transaction.objects.filter(
        shop_id=shop_id,
        external_order_id=str(external_order_id),
        transaction_type=transaction_type,
    )
    if source:
        queryset = queryset.filter(source=source)
    return queryset.order_by("created_at", "id").first()
