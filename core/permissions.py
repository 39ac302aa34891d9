"""
DRF permissions tied to the shop context.
"""

from rest_framework.permissions import BasePermission

from users.models import ShopApiKey


def get_request_shop(request):
    """
    Returns the Shop the request acts for: the API key's shop, or the merchant user's shop.
    """
    if isinstance(request.auth, ShopApiKey):
        return request.auth.shop
    user = request.user
    if user and user.is_authenticated:
        return user.shop
    return None


def get_request_actor(request) -> str:
    """
    Identifies who performed an administrative operation, for the audit trail.
    """
    if isinstance(request.auth, ShopApiKey):
        return f"api_key:{request.auth.name}"
    if request.user and request.user.is_authenticated:
        return request.user.email
    return "anonymous"


class HasShopAccess(BasePermission):
    """
    Allows requests authenticated by a shop API key, or by a merchant user that belongs to a shop.
    """

    message = "Shop context required."

    def has_permission(self, request, view):
        return get_request_shop(request) is not None


class IsShopMerchant(BasePermission):
    """
    Restricts administrative endpoints (adjustments, inbox replay) to logged-in merchant users.
    """

    message = "Only shop merchants can perform this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.shop_id)
