"""
Serializers for the Loyalty application.

Write serializers only validate input shapes; balance changes always go through the services.
"""

from rest_framework import serializers

from loyalty.models import Customer, LoyaltyProgram, Redemption, Reward, Tier, Transaction


class LoyaltyProgramSerializer(serializers.ModelSerializer):
    class Meta:
        model = LoyaltyProgram
        fields = [
            "id",
            "name",
            "points_per_dollar",
            "active",
            "tiers_enabled",
            "welcome_bonus",
            "referrals_enabled",
            "referral_bonus",
            "points_expiration_enabled",
            "points_expiration_days",
        ]
        read_only_fields = ["id"]

    def validate_points_per_dollar(self, value):
        if value < 0:
            raise serializers.ValidationError("Points per dollar cannot be negative.")
        return value


class TierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tier
        fields = ["id", "name", "level", "required_points", "points_multiplier"]
        read_only_fields = ["id"]

    def validate_points_multiplier(self, value):
        if value <= 0:
            raise serializers.ValidationError("Multiplier must be positive.")
        return value

    def validate_level(self, value):
        # Tier is tenant-aware, so this only sees the current shop's program.
        clash = Tier.objects.filter(level=value)
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise serializers.ValidationError("A tier with this level already exists.")
        return value


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "customer",
            "transaction_type",
            "points",
            "balance_before",
            "balance_after",
            "source",
            "description",
            "external_order_id",
            "external_order_number",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    """
    Read-only view of a customer, balance included.
    """

    current_tier = TierSerializer(read_only=True)

    class Meta:
        model = Customer
        fields = [
            "id",
            "external_id",
            "email",
            "first_name",
            "last_name",
            "phone",
            "birthday",
            "points_balance",
            "lifetime_points",
            "current_tier",
            "total_orders",
            "lifetime_spent",
            "referral_code",
            "referred_by",
            "enrolled_at",
            "last_activity_at",
        ]
        read_only_fields = fields


class CustomerStatusSerializer(serializers.Serializer):
    """
    Renders a CustomerStatus.
    """

    customer = CustomerSerializer()
    points_balance = serializers.IntegerField()
    lifetime_points = serializers.IntegerField()
    current_tier = TierSerializer(allow_null=True)
    next_tier = TierSerializer(allow_null=True)
    points_to_next_tier = serializers.IntegerField()
    recent_transactions = TransactionSerializer(many=True)


class RewardSerializer(serializers.ModelSerializer):
    class Meta:
        model = Reward
        fields = [
            "id",
            "name",
            "description",
            "reward_type",
            "reward_value",
            "points_cost",
            "usage_limit",
            "per_customer_limit",
            "start_date",
            "end_date",
            "total_redemptions",
            "is_active",
        ]
        read_only_fields = ["id", "total_redemptions"]

    def validate_points_cost(self, value):
        if value <= 0:
            raise serializers.ValidationError("Points cost must be positive.")
        return value

    def validate(self, data):
        start = data.get("start_date", getattr(self.instance, "start_date", None))
        end = data.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and start > end:
            raise serializers.ValidationError("start_date must be before end_date.")
        return data


class RedemptionSerializer(serializers.ModelSerializer):
    reward = RewardSerializer(read_only=True)
    balance = serializers.IntegerField(source="transaction.balance_after", read_only=True)

    class Meta:
        model = Redemption
        fields = ["id", "customer", "reward", "points_spent", "status", "code", "expires_at", "created_at", "balance"]
        read_only_fields = fields


# ----------------------------------------------------------------------
# Operation inputs
# ----------------------------------------------------------------------


class AccrualSerializer(serializers.Serializer):
    """
    Input for Earn. Either a points amount, or an order `amount` in money converted with the
    program rate and the customer's tier multiplier.
    """

    customer_external_id = serializers.CharField(max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)
    points = serializers.IntegerField(required=False, min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    order_id = serializers.CharField(required=False, allow_blank=True, max_length=255)
    order_number = serializers.CharField(required=False, allow_blank=True, max_length=64)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Accrual amount must be positive.")
        return value

    def validate(self, data):
        if ("points" in data) == ("amount" in data):
            raise serializers.ValidationError("Provide exactly one of 'points' or 'amount'.")
        return data


class SpendSerializer(serializers.Serializer):
    customer_external_id = serializers.CharField(max_length=255)
    points = serializers.IntegerField(min_value=1)
    description = serializers.CharField(required=False, allow_blank=True, default="Points redeemed")


class AdjustmentSerializer(serializers.Serializer):
    customer_external_id = serializers.CharField(max_length=255)
    # Sign carries the direction; zero is rejected by the ledger.
    points = serializers.IntegerField()
    reason = serializers.CharField()


class RedeemRewardSerializer(serializers.Serializer):
    customer_external_id = serializers.CharField(max_length=255)
    reward_id = serializers.IntegerField()


class EnrollSerializer(serializers.Serializer):
    external_id = serializers.CharField(max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    birthday = serializers.DateField(required=False, allow_null=True)


class ReferralSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=16)


class TierCountSerializer(serializers.Serializer):
    tier_id = serializers.IntegerField(allow_null=True)
    tier_name = serializers.CharField(allow_null=True)
    customers = serializers.IntegerField()


class CustomerAnalyticsSerializer(serializers.Serializer):
    """
    Renders CustomerAnalytics for the merchant dashboard.
    """

    total_customers = serializers.IntegerField()
    active_customers = serializers.IntegerField()
    new_this_month = serializers.IntegerField()
    top_customers = CustomerSerializer(many=True)
    tier_distribution = TierCountSerializer(many=True)
