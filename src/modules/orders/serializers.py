"""Order DRF serializers for API input.

The serializers operate at the Interface layer (API Views) and speak the
API's camelCase field names.  Their validated data is handed to the
Pydantic DTOs from ``dtos.py``; responses are rendered by
``OrderOutputDTO``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import (
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
)


class StrictFieldsMixin:
    """Reject keys that are not declared on the serializer."""

    def validate(self, attrs):
        unknown = sorted(set(self.initial_data) - set(self.fields))
        if unknown:
            raise serializers.ValidationError(
                {name: ["This field cannot be modified."] for name in unknown}
            )
        return super().validate(attrs)


class AddressSerializer(serializers.Serializer):
    firstName = serializers.CharField()
    lastName = serializers.CharField()
    street = serializers.CharField()
    street2 = serializers.CharField(required=False)
    company = serializers.CharField(required=False)
    city = serializers.CharField()
    state = serializers.CharField(required=False, allow_blank=True)
    postalCode = serializers.CharField()
    country = serializers.CharField()
    phone = serializers.CharField(required=False, allow_blank=True)
    deliveryInstructions = serializers.CharField(required=False, allow_blank=True)


class OrderPatchSerializer(StrictFieldsMixin, serializers.Serializer):
    """Allow-listed owner patch (``PUT``/``PATCH``).

    Identity, customer and financial fields are not declared and are
    therefore rejected.
    """

    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    paymentStatus = serializers.ChoiceField(
        choices=PaymentStatus.choices, required=False
    )
    fulfillmentStatus = serializers.ChoiceField(
        choices=FulfillmentStatus.choices, required=False
    )
    carrier = serializers.CharField(required=False, allow_blank=True)
    trackingNumbers = serializers.ListField(
        child=serializers.CharField(), required=False
    )
    shippingMethod = serializers.CharField(required=False)
    shippingAddress = AddressSerializer(required=False)


class CreateRefundSerializer(StrictFieldsMixin, serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    reason = serializers.CharField()
    itemIds = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )


class CreateShipmentSerializer(StrictFieldsMixin, serializers.Serializer):
    trackingNumber = serializers.CharField()
    carrier = serializers.CharField()
    status = serializers.ChoiceField(
        choices=ShipmentStatus.choices, default=ShipmentStatus.SHIPPED
    )
    shippedAt = serializers.DateTimeField(required=False)
    itemIds = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    trackingUrl = serializers.CharField(required=False, allow_blank=True)


class AddNoteSerializer(StrictFieldsMixin, serializers.Serializer):
    content = serializers.CharField()
