"""
API Views for the Loyalty application.
"""

from django.db import transaction
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import InvalidArgument, NotFound
from core.permissions import HasShopAccess, IsShopMerchant, get_request_actor, get_request_shop
from core.ratelimit import RateLimiter
from loyalty.customers import CustomerService
from loyalty.models import CancelledOrder, Customer, LoyaltyProgram, Redemption, Reward, Tier, Transaction
from loyalty.redemptions import RedemptionEngine
from loyalty.serializers import (
    AccrualSerializer,
    AdjustmentSerializer,
    CustomerAnalyticsSerializer,
    CustomerSerializer,
    CustomerStatusSerializer,
    EnrollSerializer,
    LoyaltyProgramSerializer,
    RedeemRewardSerializer,
    RedemptionSerializer,
    ReferralSerializer,
    RewardSerializer,
    SpendSerializer,
    TierSerializer,
    TransactionSerializer,
)
from loyalty.services import API_SOURCE, ORDER_SOURCE, LedgerService, calculate_order_points, find_order_transaction

# Response body of an accrual that credited nothing.
NO_ACCRUAL = {"points": 0, "transaction": None}


def get_customer(shop, external_id) -> Customer:
    customer = Customer.objects.filter(shop_id=shop.id, external_id=str(external_id)).first()
    if customer is None:
        raise NotFound("Customer")
    return customer


class AccrualViewSet(viewsets.GenericViewSet):
    """
    POST /api/loyalty/accruals/
    Endpoint for accrue (Earn). Unknown customers are registered on the fly.
    """

    permission_classes = [HasShopAccess]
    serializer_class = AccrualSerializer

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        shop = get_request_shop(request)
        order_id = data.get("order_id") or None

        with transaction.atomic():
            customer, _ = CustomerService().upsert_customer(
                shop.id, data["customer_external_id"], email=data.get("email", "")
            )
            # Serializes with other writers for this customer before the order checks.
            customer = Customer.objects.select_for_update().get(pk=customer.pk)

            if order_id:
                existing = find_order_transaction(shop.id, order_id)
                if existing is not None:
                    return Response(TransactionSerializer(existing).data, status=status.HTTP_200_OK)
                if CancelledOrder.is_cancelled(shop.id, order_id):
                    return Response(NO_ACCRUAL, status=status.HTTP_200_OK)

            metadata = {}
            points = data.get("points")
            if points is None:
                program = LoyaltyProgram.for_shop(shop.id)
                if program is None or not program.active:
                    raise InvalidArgument("Loyalty program is not active")
                points = calculate_order_points(data["amount"], program.points_per_dollar, customer.tier_multiplier)
                metadata = {"order_total": str(data["amount"]), "tier_multiplier": str(customer.tier_multiplier)}

            # Small orders round down to zero points.
            if points == 0:
                return Response(NO_ACCRUAL, status=status.HTTP_200_OK)

            entry = LedgerService().earn(
                customer.id,
                points,
                ORDER_SOURCE if order_id else API_SOURCE,
                data["description"],
                external_ref=order_id,
                external_order_number=data.get("order_number") or None,
                metadata=metadata,
            )
        return Response(TransactionSerializer(entry).data, status=status.HTTP_201_CREATED)


class SpendViewSet(viewsets.GenericViewSet):
    """
    POST /api/loyalty/spends/
    Endpoint for spending points outside the reward catalog (Redeem).
    """

    permission_classes = [HasShopAccess]
    serializer_class = SpendSerializer

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = get_customer(get_request_shop(request), data["customer_external_id"])
        entry = LedgerService().redeem(customer.id, data["points"], data["description"])
        return Response(TransactionSerializer(entry).data, status=status.HTTP_201_CREATED)


class AdjustmentViewSet(viewsets.GenericViewSet):
    """
    POST /api/loyalty/adjustments/
    Administrative correction, recorded with the acting merchant.
    """

    permission_classes = [IsShopMerchant]
    serializer_class = AdjustmentSerializer

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = get_customer(get_request_shop(request), data["customer_external_id"])
        entry = LedgerService().adjust(customer.id, data["points"], data["reason"], actor=get_request_actor(request))
        return Response(TransactionSerializer(entry).data, status=status.HTTP_201_CREATED)


class RedemptionViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    POST /api/loyalty/redemptions/
    Exchanges points for a catalog reward. Rate limited per customer.
    """

    permission_classes = [HasShopAccess]
    serializer_class = RedemptionSerializer

    def get_queryset(self):
        return Redemption.objects.select_related("reward", "transaction").order_by("-created_at", "-id")

    def create(self, request):
        serializer = RedeemRewardSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        shop = get_request_shop(request)

        customer = get_customer(shop, data["customer_external_id"])
        RateLimiter.from_settings("redemption").check(f"{shop.id}:{customer.id}")

        result = RedemptionEngine().redeem_reward(customer.id, data["reward_id"])
        return Response(RedemptionSerializer(result.redemption).data, status=status.HTTP_201_CREATED)


class CustomerViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for viewing Customers and their current balance.
    Creation happens through enrollment, accruals and customer events.
    """

    permission_classes = [HasShopAccess]
    serializer_class = CustomerSerializer

    # Enable search functionality (e.g., ?search=CLIENT_ID)
    filter_backends = [filters.SearchFilter]
    search_fields = ["external_id", "email", "first_name", "last_name"]

    def get_queryset(self):
        """
        Return customers belonging ONLY to the current shop.
        """
        return Customer.objects.select_related("current_tier").order_by("id")

    @action(detail=True, methods=["get"])
    def status(self, request, pk=None):
        customer = self.get_object()
        customer_status = LedgerService().get_status(customer.id)
        return Response(CustomerStatusSerializer(customer_status).data)

    @action(detail=False, methods=["post"])
    def enroll(self, request):
        serializer = EnrollSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile = dict(serializer.validated_data)
        external_id = profile.pop("external_id")

        customer, created, bonus = CustomerService().enroll(get_request_shop(request).id, external_id, **profile)

        body = {
            "customer": CustomerSerializer(customer).data,
            "created": created,
            "welcome_bonus": bonus.points if bonus else 0,
        }
        return Response(body, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def referral(self, request, pk=None):
        """
        Records who referred this customer and credits the referrer.
        """
        customer = self.get_object()
        serializer = ReferralSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        bonus = CustomerService().process_referral(customer.id, serializer.validated_data["referral_code"])

        customer.refresh_from_db()
        body = {"customer": CustomerSerializer(customer).data, "referrer_bonus": bonus.points if bonus else 0}
        return Response(body)

    @action(detail=False, methods=["get"], permission_classes=[IsShopMerchant])
    def analytics(self, request):
        analytics = CustomerService().analytics(get_request_shop(request).id)
        return Response(CustomerAnalyticsSerializer(analytics).data)


class TransactionHistoryViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET /api/loyalty/transactions/
    Endpoint for transaction history. Filters: ?customer=<id>&type=<transaction_type>
    """

    permission_classes = [HasShopAccess]
    serializer_class = TransactionSerializer

    def get_queryset(self):
        queryset = Transaction.objects.all().order_by("-created_at", "-id")
        customer_id = self.request.query_params.get("customer")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        transaction_type = self.request.query_params.get("type")
        if transaction_type:
            queryset = queryset.filter(transaction_type=transaction_type)
        return queryset


class RewardViewSet(viewsets.ModelViewSet):
    """
    API endpoint for managing Rewards (the catalog).
    """

    permission_classes = [HasShopAccess]
    serializer_class = RewardSerializer

    def get_queryset(self):
        """
        Return rewards for the CURRENT shop only.
        """
        return Reward.objects.all().order_by("points_cost", "id")

    def perform_create(self, serializer):
        serializer.save(shop=get_request_shop(self.request))


class TierViewSet(viewsets.ModelViewSet):
    """
    API endpoint for managing the program's tiers.
    """

    permission_classes = [HasShopAccess]
    serializer_class = TierSerializer

    def get_queryset(self):
        return Tier.objects.all().order_by("required_points", "level")

    def perform_create(self, serializer):
        shop = get_request_shop(self.request)
        program, _ = LoyaltyProgram.objects.get_or_create(shop=shop)
        serializer.save(shop=shop, program=program)


class LoyaltyProgramView(APIView):
    """
    GET/PATCH /api/loyalty/program/
    The shop's program configuration. Created with defaults on first access.
    """

    permission_classes = [HasShopAccess]

    def get_program(self, request):
        program, _ = LoyaltyProgram.objects.get_or_create(shop=get_request_shop(request))
        return program

    def get(self, request):
        return Response(LoyaltyProgramSerializer(self.get_program(request)).data)

    def patch(self, request):
        serializer = LoyaltyProgramSerializer(self.get_program(request), data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
