"""
Authentication Views.
"""

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from users.serializers import UserDetailSerializer


class UserProfileView(APIView):
    """
    GET /api/auth/me/
    Returns details about the currently logged-in merchant.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = UserDetailSerializer(request.user)
        return Response(serializer.data)
