"""
Tests for Customer API endpoints (listing, status and enrollment).
"""

from rest_framework import status

from loyalty.services import LedgerService
from tests.factories.loyalty import CustomerFactory, TierFactory
from tests.factories.users import ShopFactory, UserFactory


class TestCustomerAPI:
    """
    Customers are created by enrollment, accruals and customer events, so this ViewSet is read-only.
    """

    url = "/api/loyalty/customers/"

    def test_list_customers_shows_balance(self, shop_client):
        client, shop = shop_client
        customer = CustomerFactory(shop=shop, external_id="C1")
        LedgerService().earn(customer.id, 150, "API")

        response = client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]["external_id"] == "C1"
        assert response.data[0]["points_balance"] == 150
        assert response.data[0]["lifetime_points"] == 150

    def test_customer_isolation(self, shop_client):
        client, shop = shop_client
        CustomerFactory(shop=shop, external_id="MY_CUST")
        CustomerFactory(shop=ShopFactory(), external_id="OTHER_CUST")

        response = client.get(self.url)

        assert [row["external_id"] for row in response.data] == ["MY_CUST"]

    def test_search_by_email(self, shop_client):
        client, shop = shop_client
        CustomerFactory(shop=shop, email="ada@example.com")
        CustomerFactory(shop=shop, email="grace@example.com")

        response = client.get(self.url, {"search": "grace"})

        assert [row["email"] for row in response.data] == ["grace@example.com"]

    def test_customers_cannot_be_created_directly(self, shop_client):
        client, _ = shop_client

        response = client.post(self.url, {"external_id": "X", "points_balance": 1000}, format="json")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


class TestCustomerStatusAPI:
    def test_status_shows_tier_progress(self, shop_client):
        """
        Scenario: Silver at 100 and Gold at 500; the customer has earned 150.
        Expected: Silver is current, Gold is next, 350 points to go.
        """
        client, shop = shop_client
        program = shop.loyaltyprogram_set.get()
        TierFactory(program=program, name="Silver", level=1, required_points=100)
        TierFactory(program=program, name="Gold", level=2, required_points=500)
        customer = CustomerFactory(shop=shop)
        LedgerService().earn(customer.id, 150, "API", "Order #1")

        response = client.get(f"/api/loyalty/customers/{customer.id}/status/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["points_balance"] == 150
        assert response.data["current_tier"]["name"] == "Silver"
        assert response.data["next_tier"]["name"] == "Gold"
        assert response.data["points_to_next_tier"] == 350
        assert len(response.data["recent_transactions"]) == 2

    def test_status_without_tiers(self, shop_client):
        client, shop = shop_client
        customer = CustomerFactory(shop=shop)

        response = client.get(f"/api/loyalty/customers/{customer.id}/status/")

        assert response.data["current_tier"] is None
        assert response.data["next_tier"] is None
        assert response.data["points_to_next_tier"] == 0

    def test_status_of_another_shops_customer(self, shop_client):
        client, _ = shop_client
        stranger = CustomerFactory(shop=ShopFactory())

        response = client.get(f"/api/loyalty/customers/{stranger.id}/status/")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestEnrollAPI:
    url = "/api/loyalty/customers/enroll/"

    def test_enrollment_grants_welcome_bonus_once(self, shop_client):
        client, shop = shop_client
        shop.loyaltyprogram_set.update(welcome_bonus=50)
        payload = {"external_id": "new-1", "email": "new@example.com", "first_name": "Ada"}

        first = client.post(self.url, payload, format="json")
        second = client.post(self.url, payload, format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert first.data["created"] is True
        assert first.data["welcome_bonus"] == 50
        assert first.data["customer"]["points_balance"] == 50
        assert second.status_code == status.HTTP_200_OK
        assert second.data["created"] is False
        assert second.data["welcome_bonus"] == 0
        assert second.data["customer"]["points_balance"] == 50

    def test_invalid_email_rejected(self, shop_client):
        client, _ = shop_client

        response = client.post(self.url, {"external_id": "x", "email": "not-an-email"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestReferralAPI:
    def test_referral_credits_referrer(self, shop_client):
        client, shop = shop_client
        shop.loyaltyprogram_set.update(referrals_enabled=True, referral_bonus=75)
        referrer = CustomerFactory(shop=shop)
        newcomer = CustomerFactory(shop=shop)

        response = client.post(
            f"/api/loyalty/customers/{newcomer.id}/referral/", {"referral_code": referrer.referral_code}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["referrer_bonus"] == 75
        assert response.data["customer"]["referred_by"] == referrer.id
        referrer.refresh_from_db()
        assert referrer.points_balance == 75

    def test_other_shops_codes_are_invisible(self, shop_client):
        client, shop = shop_client
        shop.loyaltyprogram_set.update(referrals_enabled=True, referral_bonus=75)
        stranger = CustomerFactory(shop=ShopFactory())
        newcomer = CustomerFactory(shop=shop)

        response = client.post(
            f"/api/loyalty/customers/{newcomer.id}/referral/", {"referral_code": stranger.referral_code}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "INVALID_ARGUMENT"
        stranger.refresh_from_db()
        assert stranger.points_balance == 0


class TestAnalyticsAPI:
    url = "/api/loyalty/customers/analytics/"

    def test_merchant_sees_dashboard(self, merchant_client):
        user = UserFactory()
        customer = CustomerFactory(shop=user.shop)
        LedgerService().earn(customer.id, 40, "API")
        CustomerFactory(shop=ShopFactory())

        response = merchant_client(user).get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total_customers"] == 1
        assert response.data["active_customers"] == 1
        assert response.data["top_customers"][0]["id"] == customer.id
        assert response.data["tier_distribution"] == [{"tier_id": None, "tier_name": None, "customers": 1}]

    def test_api_keys_cannot_read_dashboard(self, shop_client):
        client, _ = shop_client

        response = client.get(self.url)

        assert response.status_code == status.HTTP_403_FORBIDDEN
