"""
Customer registry: profiles synchronised from the commerce platform, enrollment, referrals and
dashboard analytics.
Profile writes never touch the ledger; only enrollment and referrals grant bonuses, through it.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import List

from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from core.exceptions import InvalidArgument, NotFound
from loyalty.models import Customer, LoyaltyProgram
from loyalty.services import REFERRAL_SOURCE, WELCOME_BONUS_SOURCE, LedgerService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("email", "first_name", "last_name", "phone", "birthday")

# Customers with any activity in this window count as active.
ACTIVE_WINDOW = timedelta(days=30)


@dataclass
class CustomerAnalytics:
    total_customers: int
    active_customers: int
    new_this_month: int
    top_customers: List[Customer] = field(default_factory=list)
    tier_distribution: List[dict] = field(default_factory=list)


class CustomerService:
    def __init__(self, ledger: LedgerService = None):
        self.ledger = ledger or LedgerService()

    def find_by_external_id(self, shop_id, external_id):
        return Customer.objects.filter(shop_id=shop_id, external_id=str(external_id)).first()

    def upsert_customer(self, shop_id, external_id, **profile):
        """
        Create or update a customer from platform data.
        Blank profile values never overwrite stored ones.

        Returns:
            (customer, created)
        """
        unknown = set(profile) - set(PROFILE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown customer fields: {', '.join(sorted(unknown))}")

        defaults = {key: value for key, value in profile.items() if value not in (None, "")}
        defaults["last_activity_at"] = timezone.now()

        # update_or_create locks the row and retries the lookup if a concurrent insert wins.
        customer, created = Customer.objects.update_or_create(
            shop_id=shop_id,
            external_id=str(external_id),
            defaults=defaults,
        )

        logger.info("%s customer %s for shop %s", "Created" if created else "Updated", external_id, shop_id)
        return customer, created

    def enroll(self, shop_id, external_id, **profile):
        """
        Registers a customer in the program and grants the shop's welcome bonus once.

        Returns:
            (customer, created, bonus transaction or None)
        """
        with transaction.atomic():
            customer, created = self.upsert_customer(shop_id, external_id, **profile)

            bonus = None
            program = LoyaltyProgram.for_shop(shop_id)
            if created and program and program.active and program.welcome_bonus > 0:
                bonus = self.ledger.award_bonus(
                    customer.id,
                    program.welcome_bonus,
                    WELCOME_BONUS_SOURCE,
                    "Welcome bonus for joining loyalty program",
                )
                customer.refresh_from_db()

        return customer, created, bonus

    def process_referral(self, customer_id, referral_code: str):
        """
        Links a customer to the customer whose referral code they used, and credits the
        referrer with the program's referral bonus.

        Raises:
            NotFound: the customer does not exist.
            InvalidArgument: unknown code, self-referral, another shop's code, a customer who
                already has a referrer, or referrals switched off.

        Returns:
            The referrer's bonus transaction, or None when the program grants no bonus.
        """
        with transaction.atomic():
            try:
                customer = Customer.objects.select_for_update().get(pk=customer_id)
            except Customer.DoesNotExist:
                raise NotFound("Customer") from None

            referrer = Customer.objects.filter(referral_code=(referral_code or "").strip().upper()).first()
            if referrer is None:
                raise InvalidArgument("Invalid referral code")
            if referrer.shop_id != customer.shop_id:
                raise InvalidArgument("Invalid referral - different shops")
            if referrer.pk == customer.pk:
                raise InvalidArgument("Cannot refer yourself")
            if customer.referred_by_id:
                raise InvalidArgument("Customer already has a referrer")

            program = LoyaltyProgram.for_shop(customer.shop_id)
            if program is None or not program.referrals_enabled:
                raise InvalidArgument("Referral program not enabled")

            customer.referred_by = referrer
            customer.save(update_fields=["referred_by"])

            bonus = None
            if program.referral_bonus > 0:
                bonus = self.ledger.award_bonus(
                    referrer.id,
                    program.referral_bonus,
                    REFERRAL_SOURCE,
                    f"Referral bonus for referring {customer.email or customer.external_id}",
                )

        logger.info("Customer %s referred by %s", customer.id, referrer.id)
        return bonus

    def analytics(self, shop_id, now=None) -> CustomerAnalytics:
        """
        Dashboard figures for a shop's customer base.
        """
        now = now or timezone.now()
        month_start = timezone.localtime(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        customers = Customer.objects.filter(shop_id=shop_id)

        tier_distribution = [
            {"tier_id": row["current_tier_id"], "tier_name": row["current_tier__name"], "customers": row["count"]}
            for row in customers.values("current_tier_id", "current_tier__name")
            .annotate(count=Count("id"))
            .order_by("current_tier__required_points", "current_tier_id")
        ]

        return CustomerAnalytics(
            total_customers=customers.count(),
            active_customers=customers.filter(last_activity_at__gte=now - ACTIVE_WINDOW).count(),
            new_this_month=customers.filter(enrolled_at__gte=month_start).count(),
            top_customers=list(customers.select_related("current_tier").order_by("-lifetime_points", "id")[:10]),
            tier_distribution=tier_distribution,
        )

    def record_order(self, customer_id, order_total):
        """
        Bumps the order counters. Counters are statistics, not ledger state.
        """
        Customer.objects.filter(pk=customer_id).update(
            total_orders=F("total_orders") + 1,
            lifetime_spent=F("lifetime_spent") + Decimal(str(order_total)),
            last_activity_at=timezone.now(),
        )
