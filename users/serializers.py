"""
Serializers for merchant profile.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from users.models import Shop

User = get_user_model()


class ShopSerializer(serializers.ModelSerializer):
    """
    Serializer to display Shop details nested inside User profile.
    """

    class Meta:
        model = Shop
        fields = ["id", "name", "domain", "is_active"]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for viewing the current user's profile (/me/).
    """

    shop = ShopSerializer(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "first_name", "last_name", "shop"]
