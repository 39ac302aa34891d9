"""
Tier evaluation: promotes a customer to the highest tier their lifetime points qualify for.

Tiers only ever move up. Losing points (redemptions, cancellations) never demotes a customer.
"""

import logging
from typing import Iterable, Optional

from loyalty.cache import get_program_tiers
from loyalty.models import LoyaltyProgram, Tier, Transaction

logger = logging.getLogger(__name__)

TIER_UPGRADE_SOURCE = "TIER_UPGRADE"


def select_tier(lifetime_points: int, tiers: Iterable[Tier]) -> Optional[Tier]:
    """
    Returns the highest tier whose threshold is met, or None.
    """
    for tier in sorted(tiers, key=lambda t: (t.required_points, t.level), reverse=True):
        if tier.required_points <= lifetime_points:
            return tier
    return None


def ranks_above(candidate: Tier, current: Optional[Tier]) -> bool:
    return current is None or candidate.level > current.level


class TierEvaluator:
    """
    Side-effecting half of tier evaluation. Must run inside the caller's atomic block,
    on a customer row the caller has already locked.
    """

    def apply(self, customer) -> Optional[Transaction]:
        """
        Upgrades `customer` when a higher tier is reached.
        Returns the zero-point Bonus transaction recording the upgrade, or None.
        """
        program = LoyaltyProgram.for_shop(customer.shop_id)
        if program is None or not program.tiers_enabled:
            return None

        qualifying = select_tier(customer.lifetime_points, get_program_tiers(customer.shop_id))
        if qualifying is None or qualifying.id == customer.current_tier_id:
            return None

        if not ranks_above(qualifying, customer.current_tier):
            return None

        previous_tier_id = customer.current_tier_id
        customer.current_tier = qualifying
        customer.save(update_fields=["current_tier"])

        upgrade = Transaction.objects.create(
            shop_id=customer.shop_id,
            customer=customer,
            transaction_type=Transaction.BONUS,
            points=0,
            balance_before=customer.points_balance,
            balance_after=customer.points_balance,
            source=TIER_UPGRADE_SOURCE,
            description=f"Upgraded to {qualifying.name} tier",
            metadata={"previous_tier_id": previous_tier_id, "tier_id": qualifying.id},
        )

        logger.info("Customer %s upgraded to tier %s", customer.id, qualifying.name)
        return upgrade
