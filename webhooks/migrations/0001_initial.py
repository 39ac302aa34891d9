import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("users", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="InboxEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_event_id", models.CharField(max_length=255)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("order_created", "Order created"),
                            ("order_updated", "Order updated"),
                            ("order_cancelled", "Order cancelled"),
                            ("customer_created", "Customer created"),
                            ("customer_updated", "Customer updated"),
                            ("unhandled", "Unhandled"),
                        ],
                        max_length=32,
                    ),
                ),
                ("topic", models.CharField(max_length=100)),
                ("payload", models.JSONField(default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("applied", "Applied"),
                            ("failed", "Failed (retryable)"),
                            ("dead_lettered", "Dead-lettered"),
                        ],
                        default="received",
                        max_length=20,
                    ),
                ),
                ("processed", models.BooleanField(default=False)),
                ("processing_error", models.TextField(blank=True, null=True)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inboxevent_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "unique_together": {("shop", "external_event_id")},
                "indexes": [
                    models.Index(fields=["shop", "status", "received_at"], name="inbox_drain_idx"),
                    models.Index(fields=["status", "received_at"], name="inbox_retry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InboxLease",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("locked_until", models.DateTimeField(blank=True, null=True)),
                ("owner", models.CharField(blank=True, default="", max_length=64)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inboxlease_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("shop",), name="unique_inbox_lease_per_shop")],
            },
        ),
    ]
