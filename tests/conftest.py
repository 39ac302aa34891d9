import pytest
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.context import reset_current_shop_id
from tests.factories.loyalty import LoyaltyProgramFactory
from tests.factories.users import ShopApiKeyFactory


@pytest.fixture
def api_client():
    """
    Fixture to provide an instance of DRF APIClient.
    """
    return APIClient()


@pytest.fixture(autouse=True)
def enable_db_access_for_all_tests(db):
    """
    Automatically enables database access for all tests.
    """
    pass


@pytest.fixture(autouse=True)
def clean_state():
    """
    Every test starts without a shop context and with an empty cache.
    """
    reset_current_shop_id()
    cache.clear()
    yield
    reset_current_shop_id()
    cache.clear()


@pytest.fixture
def merchant_client(api_client):
    """
    Returns a callable that authenticates the client as a merchant user via JWT.
    The tenant middleware runs before DRF, so force_authenticate would not reach it.
    """

    def login(user):
        token = RefreshToken.for_user(user)
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        return api_client

    return login


@pytest.fixture
def shop_client(api_client):
    """
    Returns (client, shop): the client sends a valid X-API-KEY for a fresh shop with an active program.
    """
    api_key = ShopApiKeyFactory()
    LoyaltyProgramFactory(shop=api_key.shop)
    api_client.credentials(HTTP_X_API_KEY=api_key.key)
    return api_client, api_key.shop
