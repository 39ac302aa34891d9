"""
Integration tests for reward redemption over the API.
"""

from rest_framework import status

from loyalty.models import Redemption
from loyalty.services import LedgerService
from tests.factories.loyalty import CustomerFactory, RewardFactory
from tests.factories.users import ShopFactory


class TestRedemptionAPI:
    url = "/api/loyalty/redemptions/"

    def customer_with_points(self, shop, points=500, external_id="C1"):
        customer = CustomerFactory(shop=shop, external_id=external_id)
        LedgerService().earn(customer.id, points, "API")
        return customer

    def test_redeem_reward(self, shop_client):
        client, shop = shop_client
        customer = self.customer_with_points(shop)
        reward = RewardFactory(shop=shop, points_cost=200)

        response = client.post(self.url, {"customer_external_id": "C1", "reward_id": reward.id}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == Redemption.PENDING
        assert response.data["points_spent"] == 200
        assert response.data["balance"] == 300
        assert response.data["code"].startswith("LOYALTY-")
        assert response.data["reward"]["id"] == reward.id
        customer.refresh_from_db()
        assert customer.points_balance == 300

    def test_per_customer_limit(self, shop_client):
        client, shop = shop_client
        self.customer_with_points(shop)
        reward = RewardFactory(shop=shop, points_cost=100, per_customer_limit=1)
        payload = {"customer_external_id": "C1", "reward_id": reward.id}

        client.post(self.url, payload, format="json")
        response = client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "REWARD_UNAVAILABLE"
        assert response.data["detail"] == "Reward unavailable: per-customer limit reached"

    def test_insufficient_points(self, shop_client):
        client, shop = shop_client
        self.customer_with_points(shop, points=50)
        reward = RewardFactory(shop=shop, points_cost=100)

        response = client.post(self.url, {"customer_external_id": "C1", "reward_id": reward.id}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "INSUFFICIENT_POINTS"

    def test_reward_of_another_shop(self, shop_client):
        client, shop = shop_client
        self.customer_with_points(shop)
        foreign = RewardFactory(shop=ShopFactory())

        response = client.post(self.url, {"customer_external_id": "C1", "reward_id": foreign.id}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_rate_limit_per_customer(self, shop_client, settings):
        """
        Scenario: A customer fires more redemption requests than the window allows.
        Expected: The excess request is rejected with 429 before touching the ledger.
        """
        settings.LOYALTY_RATE_LIMITS = {**settings.LOYALTY_RATE_LIMITS, "redemption": (2, 60)}
        client, shop = shop_client
        customer = self.customer_with_points(shop, points=100)
        self.customer_with_points(shop, points=100, external_id="C2")
        reward = RewardFactory(shop=shop, points_cost=10)

        for _ in range(2):
            client.post(self.url, {"customer_external_id": "C1", "reward_id": reward.id}, format="json")
        limited = client.post(self.url, {"customer_external_id": "C1", "reward_id": reward.id}, format="json")
        other = client.post(self.url, {"customer_external_id": "C2", "reward_id": reward.id}, format="json")

        assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert limited.data["code"] == "RATE_LIMIT_EXCEEDED"
        assert other.status_code == status.HTTP_201_CREATED
        customer.refresh_from_db()
        assert customer.points_balance == 80

    def test_list_redemptions(self, shop_client):
        client, shop = shop_client
        self.customer_with_points(shop)
        reward = RewardFactory(shop=shop, points_cost=100)
        client.post(self.url, {"customer_external_id": "C1", "reward_id": reward.id}, format="json")

        response = client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]["balance"] == 400
