"""
Custom management command to generate demo data.
"""

import random
from decimal import Decimal

from django.core.management.base import BaseCommand

from loyalty.customers import CustomerService
from loyalty.models import LoyaltyProgram, Reward, Tier
from users.models import Shop
from webhooks.inbox import ingest_event
from webhooks.reconciler import EventReconciler

DEMO_DOMAIN = "demo-shop.example.com"

DEMO_TIERS = [
    ("Bronze", 1, 0, Decimal("1.00")),
    ("Silver", 2, 500, Decimal("1.25")),
    ("Gold", 3, 2000, Decimal("1.50")),
]


class Command(BaseCommand):
    help = "Generates a demo shop with a program, enrolled customers and paid orders"

    def add_arguments(self, parser):
        parser.add_argument("--customers", type=int, default=100, help="Number of customers to generate")
        parser.add_argument("--orders", type=int, default=500, help="Number of order events to generate")

    def handle(self, *args, **options):
        num_customers = options["customers"]
        num_orders = options["orders"]

        self.stdout.write(f" Starting demo data generation (Customers: {num_customers}, Orders: {num_orders})...")

        shop, _ = Shop.objects.get_or_create(domain=DEMO_DOMAIN, defaults={"name": "Demo Shop"})
        program, _ = LoyaltyProgram.objects.get_or_create(
            shop=shop, defaults={"points_per_dollar": Decimal("1.00"), "welcome_bonus": 50}
        )
        for name, level, required_points, multiplier in DEMO_TIERS:
            Tier.objects.get_or_create(
                program=program,
                level=level,
                defaults={
                    "shop": shop,
                    "name": name,
                    "required_points": required_points,
                    "points_multiplier": multiplier,
                },
            )
        Reward.objects.get_or_create(
            shop=shop,
            name="$5 off",
            defaults={"reward_type": Reward.FIXED_DISCOUNT, "reward_value": {"amount": 5}, "points_cost": 500},
        )

        # Customers join through enrollment so the welcome bonus lands in the ledger.
        registry = CustomerService()
        external_ids = []
        for i in range(1, num_customers + 1):
            external_id = f"DEMO_USER_{i}"
            registry.enroll(shop.id, external_id, email=f"customer_{i}@example.com")
            external_ids.append(external_id)

        # Orders go through the inbox like real platform events.
        for i in range(1, num_orders + 1):
            customer_id = random.choice(external_ids)
            payload = {
                "id": f"DEMO_ORDER_{i}",
                "order_number": str(1000 + i),
                "financial_status": "paid",
                "total_price": f"{random.randint(500, 25000) / 100:.2f}",
                "customer": {"id": customer_id},
            }
            ingest_event(shop, f"demo-order-{i}", "orders/create", payload)

        reconciler = EventReconciler(batch_size=max(num_orders, 1))
        result = reconciler.drain_shop(shop.id)

        self.stdout.write(
            self.style.SUCCESS(
                f" Done! {num_customers} customers in {shop.domain}, {result.processed} orders applied"
                f" ({result.failed} failed)."
            )
        )
