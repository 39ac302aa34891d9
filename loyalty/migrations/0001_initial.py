from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("users", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LoyaltyProgram",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(default="Rewards", max_length=255)),
                ("points_per_dollar", models.DecimalField(decimal_places=2, default=Decimal("1.00"), max_digits=8)),
                ("active", models.BooleanField(default=True)),
                ("tiers_enabled", models.BooleanField(default=True)),
                ("welcome_bonus", models.PositiveIntegerField(default=0)),
                ("points_expiration_enabled", models.BooleanField(default=False)),
                ("points_expiration_days", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="loyaltyprogram_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("shop",), name="unique_program_per_shop")],
            },
        ),
        migrations.CreateModel(
            name="Tier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("level", models.PositiveIntegerField()),
                ("required_points", models.PositiveIntegerField()),
                ("points_multiplier", models.DecimalField(decimal_places=2, default=Decimal("1.00"), max_digits=5)),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="tiers", to="loyalty.loyaltyprogram"
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tier_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["required_points"],
                "unique_together": {("program", "level")},
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("first_name", models.CharField(blank=True, default="", max_length=150)),
                ("last_name", models.CharField(blank=True, default="", max_length=150)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("birthday", models.DateField(blank=True, null=True)),
                ("points_balance", models.PositiveIntegerField(default=0)),
                ("lifetime_points", models.PositiveIntegerField(default=0)),
                ("total_orders", models.PositiveIntegerField(default=0)),
                ("lifetime_spent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("enrolled_at", models.DateTimeField(auto_now_add=True)),
                ("last_activity_at", models.DateTimeField(blank=True, null=True)),
                (
                    "current_tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="customers",
                        to="loyalty.tier",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customer_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "unique_together": {("shop", "external_id")},
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points", models.IntegerField()),
                ("balance_before", models.PositiveIntegerField()),
                ("balance_after", models.PositiveIntegerField()),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("earned", "Earned"),
                            ("redeemed", "Redeemed"),
                            ("adjusted", "Adjusted"),
                            ("bonus", "Bonus"),
                        ],
                        max_length=20,
                    ),
                ),
                ("source", models.CharField(blank=True, default="", max_length=50)),
                ("description", models.TextField(blank=True)),
                ("external_order_id", models.CharField(blank=True, max_length=255, null=True)),
                ("external_order_number", models.CharField(blank=True, max_length=64, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="loyalty.customer"
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transaction_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["shop", "external_order_id", "transaction_type"], name="tx_order_lookup"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("fixed_discount", "Fixed amount discount"),
                            ("percent_discount", "Percentage discount"),
                            ("free_shipping", "Free shipping"),
                            ("free_product", "Free product"),
                        ],
                        default="fixed_discount",
                        max_length=20,
                    ),
                ),
                ("reward_value", models.JSONField(blank=True, default=dict)),
                ("points_cost", models.PositiveIntegerField()),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("per_customer_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("total_redemptions", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reward_set",
                        to="users.shop",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Redemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points_spent", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("code", models.CharField(blank=True, default="", max_length=64)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="redemptions", to="loyalty.customer"
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="redemptions", to="loyalty.reward"
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_set",
                        to="users.shop",
                    ),
                ),
                (
                    "transaction",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption",
                        to="loyalty.transaction",
                    ),
                ),
            ],
        ),
    ]
