import django.db.models.deletion
from django.db import migrations, models

import loyalty.models


def populate_referral_codes(apps, schema_editor):
    Customer = apps.get_model("loyalty", "Customer")
    for customer in Customer.objects.all().only("id"):
        customer.referral_code = loyalty.models.generate_referral_code()
        customer.save(update_fields=["referral_code"])


class Migration(migrations.Migration):
    dependencies = [
        ("loyalty", "0001_initial"),
        ("users", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="loyaltyprogram",
            name="referrals_enabled",
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name="loyaltyprogram",
            name="referral_bonus",
            field=models.PositiveIntegerField(default=0),
        ),
        # Added without the unique index first, so existing rows get distinct codes before it is enforced.
        migrations.AddField(
            model_name="customer",
            name="referral_code",
            field=models.CharField(default=loyalty.models.generate_referral_code, max_length=16),
        ),
        migrations.RunPython(populate_referral_codes, migrations.RunPython.noop),
        migrations.AlterField(
            model_name="customer",
            name="referral_code",
            field=models.CharField(default=loyalty.models.generate_referral_code, max_length=16, unique=True),
        ),
        migrations.AddField(
            model_name="customer",
            name="referred_by",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="referrals",
                to="loyalty.customer",
            ),
        ),
        migrations.CreateModel(
            name="CancelledOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_order_id", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cancelledorder_set",
                        to="users.shop",
                    ),
                ),
            ],
            options={
                "unique_together": {("shop", "external_order_id")},
            },
        ),
    ]
