"""
Custom management command to drain inbox events synchronously (operators, cron without Celery).
"""

from django.core.management.base import BaseCommand, CommandError

from users.models import Shop
from webhooks.reconciler import EventReconciler


class Command(BaseCommand):
    help = "Applies received inbox events to the ledger and optionally retries failed ones"

    def add_arguments(self, parser):
        parser.add_argument("--shop", help="Shop domain to drain (default: every shop with pending events)")
        parser.add_argument("--retry", action="store_true", help="Also run the retry sweep for failed events")

    def handle(self, *args, **options):
        reconciler = EventReconciler()

        if options["shop"]:
            shop = Shop.objects.filter(domain=options["shop"]).first()
            if shop is None:
                raise CommandError(f"Unknown shop: {options['shop']}")
            shop_ids = [shop.id]
        else:
            shop_ids = reconciler.shops_with_pending_events()

        for shop_id in shop_ids:
            result = reconciler.drain_shop(shop_id)
            self.stdout.write(
                f" Shop {shop_id}: {result.processed} applied, {result.failed} failed, {result.skipped} skipped"
                + (" (lease busy)" if result.lease_busy else "")
            )

        if options["retry"]:
            result = reconciler.retry_failed()
            self.stdout.write(
                f" Retry sweep: {result.processed} applied, {result.failed} failed, "
                f"{result.dead_lettered} dead-lettered"
            )

        self.stdout.write(self.style.SUCCESS(f" Done! Drained {len(shop_ids)} shop inbox(es)."))
