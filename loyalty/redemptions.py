"""
Redemption engine: exchanges points for a reward as one atomic unit.

Eligibility is a chain of checks. Each check returns an error value or None; the chain stops at
the first error, and only the engine turns that value into a raised exception.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import InsufficientBalance, InvalidArgument, LoyaltyError, NotFound, RewardUnavailable
from loyalty.models import Customer, Redemption, Reward, Transaction
from loyalty.services import LedgerService, store_errors

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    redemption: Redemption
    transaction: Transaction

    @property
    def balance(self) -> int:
        return self.transaction.balance_after


def generate_redemption_code(reward: Reward) -> str:
    """
    Default single-use code issuer. Swap in a platform discount API through RedemptionEngine.
    """
    return f"LOYALTY-{secrets.token_hex(4).upper()}"


# ----------------------------------------------------------------------
# Eligibility chain
# ----------------------------------------------------------------------


def check_active(reward, customer, now) -> Optional[LoyaltyError]:
    if not reward.is_active:
        return RewardUnavailable("reward is inactive")
    return None


def check_validity_window(reward, customer, now) -> Optional[LoyaltyError]:
    if reward.start_date and now < reward.start_date:
        return RewardUnavailable("reward is not yet available")
    if reward.end_date and now > reward.end_date:
        return RewardUnavailable("reward has expired")
    return None


def check_usage_limit(reward, customer, now) -> Optional[LoyaltyError]:
    if reward.usage_limit is not None and reward.total_redemptions >= reward.usage_limit:
        return RewardUnavailable("usage limit reached")
    return None


def check_per_customer_limit(reward, customer, now) -> Optional[LoyaltyError]:
    if reward.per_customer_limit is None:
        return None
    used = Redemption.objects.filter(customer_id=customer.id, reward_id=reward.id).count()
    if used >= reward.per_customer_limit:
        return RewardUnavailable("per-customer limit reached")
    return None


def check_affordable(reward, customer, now) -> Optional[LoyaltyError]:
    if customer.points_balance < reward.points_cost:
        return InsufficientBalance(required=reward.points_cost, available=customer.points_balance)
    return None


ELIGIBILITY_CHECKS = (
    check_active,
    check_validity_window,
    check_usage_limit,
    check_per_customer_limit,
    check_affordable,
)


def first_violation(reward, customer, now) -> Optional[LoyaltyError]:
    """
    Runs the eligibility checks in order and returns the first failure, or None.
    """
    for check in ELIGIBILITY_CHECKS:
        error = check(reward, customer, now)
        if error is not None:
            return error
    return None


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------


class RedemptionEngine:
    def __init__(
        self,
        ledger: LedgerService = None,
        code_generator: Callable[[Reward], str] = generate_redemption_code,
        clock=timezone.now,
    ):
        self.ledger = ledger or LedgerService(clock=clock)
        self.code_generator = code_generator
        self.clock = clock

    def redeem_reward(self, customer_id, reward_id) -> RedemptionResult:
        """
        Validates the reward for the customer, debits the ledger, records the Redemption and
        bumps the reward's counter. Either all of it persists or none of it does.
        """
        with store_errors(), transaction.atomic():
            # Lock order: customer, then reward.
            try:
                customer = Customer.objects.select_for_update().get(pk=customer_id)
            except Customer.DoesNotExist:
                raise NotFound("Customer") from None

            try:
                reward = Reward.objects.select_for_update().get(pk=reward_id, shop_id=customer.shop_id)
            except Reward.DoesNotExist:
                raise NotFound("Reward") from None

            now = self.clock()
            error = first_violation(reward, customer, now)
            if error is not None:
                raise error

            entry = self.ledger.redeem(
                customer.id,
                reward.points_cost,
                f"Redeemed: {reward.name}",
                metadata={"reward_id": reward.id, "reward_name": reward.name, "reward_type": reward.reward_type},
            )

            code = self.code_generator(reward) if reward.reward_type in Reward.CODE_REWARD_TYPES else ""

            redemption = Redemption.objects.create(
                shop_id=customer.shop_id,
                customer=customer,
                reward=reward,
                transaction=entry,
                points_spent=reward.points_cost,
                status=Redemption.PENDING,
                code=code,
                expires_at=now + timedelta(days=settings.LOYALTY_REDEMPTION_EXPIRY_DAYS),
            )

            Reward.objects.filter(pk=reward.pk).update(total_redemptions=F("total_redemptions") + 1)

        logger.info("Customer %s redeemed reward %s for %s points", customer.id, reward.id, reward.points_cost)
        return RedemptionResult(redemption=redemption, transaction=entry)

    def complete(self, redemption_id) -> Redemption:
        return self._transition(redemption_id, Redemption.COMPLETED)

    def fail(self, redemption_id) -> Redemption:
        return self._transition(redemption_id, Redemption.FAILED)

    def _transition(self, redemption_id, target) -> Redemption:
        with transaction.atomic():
            try:
                redemption = Redemption.objects.select_for_update().get(pk=redemption_id)
            except Redemption.DoesNotExist:
                raise NotFound("Redemption") from None

            if redemption.status != Redemption.PENDING:
                raise InvalidArgument(f"Redemption is already {redemption.status}")

            redemption.status = target
            redemption.save(update_fields=["status", "updated_at"])

        logger.info("Redemption %s marked %s", redemption_id, target)
        return redemption
