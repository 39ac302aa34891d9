"""
API Views for the Event Inbox.
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.permissions import HasShopAccess, IsShopMerchant, get_request_shop
from core.ratelimit import RateLimiter
from webhooks.inbox import ingest_event
from webhooks.models import InboxEvent
from webhooks.reconciler import EventReconciler
from webhooks.serializers import EventEnvelopeSerializer, InboxEventSerializer
from webhooks.tasks import drain_shop_inbox


def schedule_drain(shop_id):
    drain_shop_inbox.delay(str(shop_id))


class InboxEventViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    POST /api/webhooks/events/             ingest an event (202 accepted, 200 duplicate)
    GET  /api/webhooks/events/?status=...  inspect the inbox
    POST /api/webhooks/events/{id}/replay/ requeue a failed or dead-lettered event
    """

    permission_classes = [HasShopAccess]
    serializer_class = InboxEventSerializer

    def get_queryset(self):
        # InboxEvent is tenant-aware: only the current shop's events are visible.
        queryset = InboxEvent.objects.all().order_by("-received_at", "-id")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def create(self, request, *args, **kwargs):
        shop = get_request_shop(request)
        RateLimiter.from_settings("ingestion").check(str(shop.id))

        envelope = EventEnvelopeSerializer(data=request.data)
        envelope.is_valid(raise_exception=True)

        result = ingest_event(
            shop,
            envelope.validated_data["external_event_id"],
            envelope.validated_data["topic"],
            envelope.validated_data["payload"],
            schedule=schedule_drain,
        )

        body = {"status": result.outcome, "event": InboxEventSerializer(result.event).data}
        return Response(body, status=status.HTTP_202_ACCEPTED if result.accepted else status.HTTP_200_OK)

    @action(detail=True, methods=["post"], permission_classes=[IsShopMerchant])
    def replay(self, request, pk=None):
        event = EventReconciler().replay(self.get_object())
        schedule_drain(event.shop_id)
        return Response(InboxEventSerializer(event).data, status=status.HTTP_202_ACCEPTED)
