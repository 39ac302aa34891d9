"""
Serializers for the Event Inbox API.
"""

from rest_framework import serializers

from webhooks.models import InboxEvent


class EventEnvelopeSerializer(serializers.Serializer):
    """
    What the commerce platform (or its relay) posts for every event.
    """

    external_event_id = serializers.CharField(max_length=255)
    topic = serializers.CharField(max_length=100)
    payload = serializers.DictField()


class InboxEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = InboxEvent
        fields = [
            "id",
            "external_event_id",
            "kind",
            "topic",
            "payload",
            "status",
            "processed",
            "processing_error",
            "retry_count",
            "received_at",
            "last_attempt_at",
            "processed_at",
        ]
        read_only_fields = fields
