from django.contrib.auth.models import AnonymousUser
from rest_framework import authentication, exceptions

from users.models import ShopApiKey


class ApiKeyAuthentication(authentication.BaseAuthentication):
    """
    Authenticates requests based on the 'X-API-KEY' header.
    The ShopApiKey becomes `request.auth`; there is no user behind a key.
    """

    def authenticate(self, request):
        api_key_header = request.headers.get("X-API-KEY")

        if not api_key_header:
            return None  # Authentication not attempted

        try:
            api_key_obj = ShopApiKey.objects.select_related("shop").get(key=api_key_header, is_active=True)
        except ShopApiKey.DoesNotExist:
            raise exceptions.AuthenticationFailed("Invalid or inactive API Key.") from None

        if not api_key_obj.shop.is_active:
            raise exceptions.AuthenticationFailed("Shop is deactivated.")

        return (AnonymousUser(), api_key_obj)

    def authenticate_header(self, request):
        return "X-API-KEY"
