"""
Middleware for handling shop authentication and context management.
Supports both API Key (storefront/platform integrations) and JWT/Session (merchant dashboard).
"""

from django.http import JsonResponse
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework.exceptions import AuthenticationFailed

from core.context import reset_current_shop_id, set_current_shop_id
from users.models import ShopApiKey

PROTECTED_PREFIXES = ("/api/loyalty/", "/api/webhooks/")


class TenantContextMiddleware:
    """
    Acts as a "Gatekeeper". It determines the current Shop context using two strategies:
    1. 'X-API-KEY' header (commerce platform, storefront widgets).
    2. Authenticated merchant User's Shop (dashboard).
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Always reset context at the start of the request to prevent data leakage
        reset_current_shop_id()

        path = request.path
        if not path.startswith(PROTECTED_PREFIXES):
            return self.get_response(request)

        shop = None

        # ---------------------------------------------------------------------
        # STRATEGY A: API Key (Machine-to-Machine)
        # ---------------------------------------------------------------------
        api_key = request.headers.get("X-API-KEY")

        if api_key:
            try:
                key = ShopApiKey.objects.select_related("shop").get(key=api_key, is_active=True)
            except ShopApiKey.DoesNotExist:
                return JsonResponse({"detail": "Invalid or inactive API Key."}, status=403)
            if not key.shop.is_active:
                return JsonResponse({"detail": "Shop is deactivated."}, status=403)
            shop = key.shop

        # ---------------------------------------------------------------------
        # STRATEGY B: User Authentication (Human-to-Machine)
        # ---------------------------------------------------------------------
        else:
            user = getattr(request, "user", None)

            if not (user and user.is_authenticated):
                try:
                    # Middleware runs BEFORE DRF views, so JWT has to be checked here.
                    auth_result = JWTAuthentication().authenticate(request)
                except (InvalidToken, TokenError, AuthenticationFailed):
                    # Let the view answer 401 later.
                    auth_result = None
                if auth_result:
                    user, _ = auth_result

            if user and user.is_authenticated and user.shop_id:
                shop = user.shop

        if not shop:
            return JsonResponse(
                {"detail": "Shop context required. Provide X-API-KEY header OR login as a shop merchant."},
                status=401,
            )

        set_current_shop_id(shop.id)
        request.tenant = shop

        try:
            return self.get_response(request)
        finally:
            reset_current_shop_id()
