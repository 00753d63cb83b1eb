"""
Order API Serializers for Tessera Platform
Request validation and response shapes for order status changes.
"""

from rest_framework import serializers

from apps.orders.models import Order
from apps.orders.status import InvalidOrderStatusError, OrderStatus, parse_status


class OrderStatusChangeInputSerializer(serializers.Serializer):
    """Body of ``PATCH /api/order/<id>/change-status``"""

    status = serializers.CharField(max_length=20, trim_whitespace=True)

    def validate_status(self, value: str) -> str:
        try:
            return str(parse_status(value))
        except InvalidOrderStatusError as e:
            allowed = ', '.join(OrderStatus.values)
            raise serializers.ValidationError(f"Unknown status '{value}'. Allowed: {allowed}") from e


class OrderStatusSerializer(serializers.ModelSerializer):
    """Order id and status after a change"""

    class Meta:
        model = Order
        fields = ['id', 'status']
        read_only_fields = fields
