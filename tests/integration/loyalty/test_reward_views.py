"""
Tests for the program configuration endpoints: rewards catalog, tiers and program settings.
"""

from rest_framework import status

from loyalty.models import LoyaltyProgram, Reward, Tier
from tests.factories.loyalty import RewardFactory, TierFactory
from tests.factories.users import ShopApiKeyFactory, ShopFactory


class TestRewardAPI:
    url = "/api/loyalty/rewards/"

    def test_list_rewards_isolation(self, shop_client):
        """
        GET /api/loyalty/rewards/
        Ensure we ONLY see rewards belonging to our shop.
        """
        client, shop = shop_client
        RewardFactory(shop=shop, name="My Reward")
        RewardFactory(shop=ShopFactory(), name="Other Reward")

        response = client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert [row["name"] for row in response.data] == ["My Reward"]

    def test_create_reward_is_assigned_to_the_shop(self, shop_client):
        client, shop = shop_client
        payload = {
            "name": "$5 off",
            "reward_type": Reward.FIXED_DISCOUNT,
            "reward_value": {"amount": 5},
            "points_cost": 500,
            "per_customer_limit": 1,
        }

        response = client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        reward = Reward.objects.get()
        assert reward.shop == shop
        assert reward.total_redemptions == 0

    def test_counter_is_read_only(self, shop_client):
        client, shop = shop_client
        reward = RewardFactory(shop=shop)

        response = client.patch(f"{self.url}{reward.id}/", {"total_redemptions": 99, "points_cost": 150}, format="json")

        assert response.status_code == status.HTTP_200_OK
        reward.refresh_from_db()
        assert reward.points_cost == 150
        assert reward.total_redemptions == 0

    def test_invalid_rewards_rejected(self, shop_client):
        client, _ = shop_client

        free = client.post(self.url, {"name": "Free", "points_cost": 0}, format="json")
        backwards = client.post(
            self.url,
            {
                "name": "Backwards",
                "points_cost": 10,
                "start_date": "2026-02-01T00:00:00Z",
                "end_date": "2026-01-01T00:00:00Z",
            },
            format="json",
        )

        assert free.status_code == status.HTTP_400_BAD_REQUEST
        assert backwards.status_code == status.HTTP_400_BAD_REQUEST

    def test_cannot_touch_another_shops_reward(self, shop_client):
        client, _ = shop_client
        foreign = RewardFactory(shop=ShopFactory())

        response = client.patch(f"{self.url}{foreign.id}/", {"points_cost": 1}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestTierAPI:
    url = "/api/loyalty/tiers/"

    def test_create_tier_attaches_to_program(self, shop_client):
        client, shop = shop_client

        response = client.post(
            self.url,
            {"name": "Gold", "level": 3, "required_points": 500, "points_multiplier": "1.50"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        tier = Tier.objects.get()
        assert tier.shop == shop
        assert tier.program == shop.loyaltyprogram_set.get()

    def test_duplicate_level_rejected(self, shop_client):
        client, shop = shop_client
        TierFactory(program=shop.loyaltyprogram_set.get(), level=1)

        response = client.post(
            self.url, {"name": "Again", "level": 1, "required_points": 10, "points_multiplier": "1.00"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "level" in response.data

    def test_same_level_in_another_shop_is_fine(self, shop_client):
        client, _ = shop_client
        TierFactory(level=1)

        response = client.post(
            self.url, {"name": "Silver", "level": 1, "required_points": 100, "points_multiplier": "1.25"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED

    def test_multiplier_must_be_positive(self, shop_client):
        client, _ = shop_client

        response = client.post(
            self.url, {"name": "Zero", "level": 2, "required_points": 100, "points_multiplier": "0"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestProgramAPI:
    url = "/api/loyalty/program/"

    def test_program_is_created_with_defaults(self, api_client):
        api_key = ShopApiKeyFactory()
        api_client.credentials(HTTP_X_API_KEY=api_key.key)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["points_per_dollar"] == "1.00"
        assert response.data["active"] is True
        assert LoyaltyProgram.objects.filter(shop=api_key.shop).count() == 1

    def test_update_program(self, shop_client):
        client, shop = shop_client

        response = client.patch(self.url, {"points_per_dollar": "2.50", "welcome_bonus": 100}, format="json")

        assert response.status_code == status.HTTP_200_OK
        program = shop.loyaltyprogram_set.get()
        assert str(program.points_per_dollar) == "2.50"
        assert program.welcome_bonus == 100

    def test_negative_rate_rejected(self, shop_client):
        client, _ = shop_client

        response = client.patch(self.url, {"points_per_dollar": "-1"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
