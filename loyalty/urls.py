"""
URL routing for the loyalty application API.
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from loyalty.views import (
    AccrualViewSet,
    AdjustmentViewSet,
    CustomerViewSet,
    LoyaltyProgramView,
    RedemptionViewSet,
    RewardViewSet,
    SpendViewSet,
    TierViewSet,
    TransactionHistoryViewSet,
)

router = DefaultRouter()
router.register(r"customers", CustomerViewSet, basename="customers")
router.register(r"transactions", TransactionHistoryViewSet, basename="transactions")  # Read Only
router.register(r"accruals", AccrualViewSet, basename="accruals")  # Write Only (Earn)
router.register(r"spends", SpendViewSet, basename="spends")  # Write Only (Redeem)
router.register(r"adjustments", AdjustmentViewSet, basename="adjustments")  # Merchants only
router.register(r"redemptions", RedemptionViewSet, basename="redemptions")
router.register(r"rewards", RewardViewSet, basename="rewards")
router.register(r"tiers", TierViewSet, basename="tiers")

urlpatterns = [
    path("program/", LoyaltyProgramView.as_view(), name="loyalty_program"),
] + router.urls
