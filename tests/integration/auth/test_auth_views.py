"""
Integration tests for merchant authentication (JWT login and profile).
"""

from rest_framework import status

from tests.factories.users import ShopFactory, UserFactory


class TestAuthAPI:
    """
    Merchants log in with email and password and act for their shop with the returned JWT.
    """

    def make_merchant(self, email="merchant@test.com", password="password123", **kwargs):
        user = UserFactory(email=email, **kwargs)
        user.set_password(password)
        user.save()
        return user

    def test_login_gives_jwt_tokens(self, api_client):
        self.make_merchant(email="login@test.com")

        response = api_client.post("/api/auth/login/", data={"email": "login@test.com", "password": "password123"})

        assert response.status_code == status.HTTP_200_OK
        assert "access" in response.data
        assert "refresh" in response.data

    def test_login_invalid_credentials_fails(self, api_client):
        self.make_merchant(email="wrong@test.com")

        response = api_client.post("/api/auth/login/", data={"email": "wrong@test.com", "password": "WRONG"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_token_refresh_flow(self, api_client):
        user = self.make_merchant()
        login_resp = api_client.post("/api/auth/login/", data={"email": user.email, "password": "password123"})

        response = api_client.post("/api/auth/refresh/", data={"refresh": login_resp.data["refresh"]})

        assert response.status_code == status.HTTP_200_OK
        assert "access" in response.data

    def test_get_current_user_profile(self, merchant_client):
        """
        GET /api/auth/me/
        Returns the merchant and the shop they act for.
        """
        shop = ShopFactory(name="My Coffee Shop", domain="coffee.example.com")
        user = UserFactory(first_name="John", shop=shop)

        response = merchant_client(user).get("/api/auth/me/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["email"] == user.email
        assert response.data["shop"]["name"] == "My Coffee Shop"
        assert response.data["shop"]["domain"] == "coffee.example.com"

    def test_profile_requires_login(self, api_client):
        response = api_client.get("/api/auth/me/")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
