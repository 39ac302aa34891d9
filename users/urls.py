"""
Merchant authentication routes. Shops themselves authenticate with API keys, not here.
"""

from django.urls import path
from rest_framework.permissions import AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from users.views import UserProfileView

urlpatterns = [
    # Email + password -> access and refresh JWT
    path("login/", TokenObtainPairView.as_view(permission_classes=[AllowAny]), name="auth_login"),
    path("refresh/", TokenRefreshView.as_view(permission_classes=[AllowAny]), name="auth_refresh"),
    path("me/", UserProfileView.as_view(), name="auth_me"),
]
