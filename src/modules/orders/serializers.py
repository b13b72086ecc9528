"""Order DRF serializers for API input.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py`` and returns Pydantic DTOs that the views
render with ``model_dump(mode="json")``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import COMMENT_MAX_LENGTH

# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    client_id = serializers.IntegerField(min_value=1)
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    comment = serializers.CharField(
        required=False,
        default="",
        allow_blank=True,
        allow_null=True,
        max_length=COMMENT_MAX_LENGTH,
    )


class UpdateStatusSerializer(serializers.Serializer):
    """``status`` is checked against the state machine by the service."""

    status = serializers.CharField()
    version = serializers.IntegerField(min_value=0, required=False)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class UpdateCommentSerializer(serializers.Serializer):
    comment = serializers.CharField(
        allow_blank=True, allow_null=True, max_length=COMMENT_MAX_LENGTH
    )
    version = serializers.IntegerField(min_value=0, required=False)


class CancelOrderSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Query parameters
# ---------------------------------------------------------------------------


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        if attrs["start_date"] > attrs["end_date"]:
            raise serializers.ValidationError(
                {"start_date": "start_date must not be after end_date."}
            )
        return attrs


class ClientStatsQuerySerializer(serializers.Serializer):
    client = serializers.IntegerField(min_value=1, required=False)


class TopClientsQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)
