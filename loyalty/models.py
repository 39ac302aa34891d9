"""
Models for the Loyalty application.
"""

import secrets
from decimal import Decimal

from django.db import models
from django.db.models import Sum

from core.models import TenantAwareModel


def generate_referral_code() -> str:
    return secrets.token_hex(4).upper()


class LoyaltyProgram(TenantAwareModel):
    """
    Per-shop program configuration. One program per shop.
    """

    name = models.CharField(max_length=255, default="Rewards")
    points_per_dollar = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("1.00"))
    active = models.BooleanField(default=True)
    tiers_enabled = models.BooleanField(default=True)
    # Points granted once, when a customer enrolls.
    welcome_bonus = models.PositiveIntegerField(default=0)
    # Points granted to the referrer when a customer signs up with their referral code.
    referrals_enabled = models.BooleanField(default=False)
    referral_bonus = models.PositiveIntegerField(default=0)

    # Expiration is configuration only; no job acts on it.
    points_expiration_enabled = models.BooleanField(default=False)
    points_expiration_days = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        constraints = [models.UniqueConstraint(fields=["shop"], name="unique_program_per_shop")]

    def __str__(self):
        return f"{self.name} ({self.shop_id})"

    @classmethod
    def for_shop(cls, shop_id):
        return cls.objects.filter(shop_id=shop_id).first()


class Tier(TenantAwareModel):
    """
    A qualification level unlocked by lifetime points, granting an earning multiplier.
    """

    program = models.ForeignKey(LoyaltyProgram, on_delete=models.CASCADE, related_name="tiers")
    name = models.CharField(max_length=100)
    level = models.PositiveIntegerField()
    required_points = models.PositiveIntegerField()
    points_multiplier = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("1.00"))

    class Meta:
        ordering = ["required_points"]
        unique_together = [("program", "level")]

    def __str__(self):
        return f"{self.name} (level {self.level}, {self.required_points}+)"


class Customer(TenantAwareModel):
    """
    Represents a shopper of a specific Shop.
    NOT a system user.

    `points_balance` and `lifetime_points` are snapshots maintained by the ledger service;
    they are never written anywhere else.
    """

    # External ID from the commerce platform
    external_id = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    first_name = models.CharField(max_length=150, blank=True, default="")
    last_name = models.CharField(max_length=150, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    birthday = models.DateField(null=True, blank=True)

    points_balance = models.PositiveIntegerField(default=0)
    lifetime_points = models.PositiveIntegerField(default=0)
    current_tier = models.ForeignKey(Tier, on_delete=models.SET_NULL, null=True, blank=True, related_name="customers")

    total_orders = models.PositiveIntegerField(default=0)
    lifetime_spent = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    referral_code = models.CharField(max_length=16, unique=True, default=generate_referral_code)
    referred_by = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="referrals"
    )

    enrolled_at = models.DateTimeField(auto_now_add=True)
    last_activity_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        # Two different shops can have a customer with ID "123", but one shop cannot have duplicates.
        unique_together = [("shop", "external_id")]

    def __str__(self):
        return f"{self.external_id} ({self.shop_id})"

    @property
    def tier_multiplier(self) -> Decimal:
        if self.current_tier_id is None:
            return Decimal("1")
        return self.current_tier.points_multiplier

    def get_balance(self):
        """
        Reconstructs the balance by folding every transaction of this customer from 0.
        Always equals `points_balance` when the ledger is consistent.
        """
        result = self.transactions.aggregate(total=Sum("points"))["total"]

        # If there are no transactions, Sum returns None.
        return result or 0


class Transaction(TenantAwareModel):
    """
    The Ledger (Journal).
    Immutable audit row for every balance-affecting operation.
    balance_after == balance_before + points for every row.
    """

    EARNED = "earned"
    REDEEMED = "redeemed"
    ADJUSTED = "adjusted"
    BONUS = "bonus"

    TRANSACTION_TYPES = [
        (EARNED, "Earned"),
        (REDEEMED, "Redeemed"),
        (ADJUSTED, "Adjusted"),
        (BONUS, "Bonus"),
    ]

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="transactions",  # Allows accessing transactions via customer.transactions.all()
    )

    # Signed delta.
    # Positive (+) = Earn / Bonus / positive Adjustment
    # Negative (-) = Redeem / negative Adjustment
    points = models.IntegerField()
    balance_before = models.PositiveIntegerField()
    balance_after = models.PositiveIntegerField()
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPES)
    source = models.CharField(max_length=50, blank=True, default="")
    description = models.TextField(blank=True)

    # Link to the commerce platform order, used to find the Earned row again on cancellation.
    external_order_id = models.CharField(max_length=255, null=True, blank=True)
    external_order_number = models.CharField(max_length=64, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["shop", "external_order_id", "transaction_type"], name="tx_order_lookup"),
        ]

    def __str__(self):
        return f"{self.customer} {self.points:+d} ({self.get_transaction_type_display()})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Ledger transactions are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger transactions cannot be deleted.")


class CancelledOrder(TenantAwareModel):
    """
    Marks an external order as cancelled, whether or not it had earned points yet.
    An order marked here never earns points afterwards.
    """

    external_order_id = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("shop", "external_order_id")]

    def __str__(self):
        return f"{self.external_order_id} ({self.shop_id})"

    @classmethod
    def mark(cls, shop_id, external_order_id):
        return cls.objects.get_or_create(shop_id=shop_id, external_order_id=str(external_order_id))

    @classmethod
    def is_cancelled(cls, shop_id, external_order_id) -> bool:
        return cls.objects.filter(shop_id=shop_id, external_order_id=str(external_order_id)).exists()


class Reward(TenantAwareModel):
    """
    Represents an item or benefit that customers can purchase using points.
    e.g., "$5 off", "Free shipping".
    """

    FIXED_DISCOUNT = "fixed_discount"
    PERCENT_DISCOUNT = "percent_discount"
    FREE_SHIPPING = "free_shipping"
    FREE_PRODUCT = "free_product"

    REWARD_TYPES = [
        (FIXED_DISCOUNT, "Fixed amount discount"),
        (PERCENT_DISCOUNT, "Percentage discount"),
        (FREE_SHIPPING, "Free shipping"),
        (FREE_PRODUCT, "Free product"),
    ]

    # Reward types redeemed with a single-use checkout code.
    CODE_REWARD_TYPES = {FIXED_DISCOUNT, PERCENT_DISCOUNT}

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    reward_type = models.CharField(max_length=20, choices=REWARD_TYPES, default=FIXED_DISCOUNT)

    # EXAMPLE: {"amount": 5} or {"percent": 10}
    reward_value = models.JSONField(default=dict, blank=True)
    points_cost = models.PositiveIntegerField()

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    per_customer_limit = models.PositiveIntegerField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    total_redemptions = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


class Redemption(TenantAwareModel):
    """
    Record of points exchanged for a reward. Immutable apart from its status.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    STATUSES = [
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
    ]

    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="redemptions")
    reward = models.ForeignKey(Reward, on_delete=models.PROTECT, related_name="redemptions")
    transaction = models.OneToOneField(Transaction, on_delete=models.PROTECT, related_name="redemption")

    # The reward's cost at redemption time.
    points_spent = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUSES, default=PENDING)
    code = models.CharField(max_length=64, blank=True, default="")
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.customer} -> {self.reward} ({self.status})"
