"""
URL routing for the webhooks application API.
"""

from rest_framework.routers import DefaultRouter

from webhooks.views import InboxEventViewSet

router = DefaultRouter()
router.register(r"events", InboxEventViewSet, basename="events")
urlpatterns = router.urls
