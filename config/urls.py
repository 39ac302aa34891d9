"""
Root URL configuration.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/", include("users.urls")),
    path("api/loyalty/", include("loyalty.urls")),
    path("api/webhooks/", include("webhooks.urls")),
]
