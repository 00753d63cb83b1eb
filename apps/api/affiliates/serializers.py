"""
Affiliate API Serializers for Tessera Platform
Manual point adjustments and ledger rows.
"""

from typing import Any

from rest_framework import serializers

from apps.affiliates.models import POINTS_DECIMAL_PLACES, POINTS_MAX_DIGITS, SPEND_ACTIONS, PointAction, PointLog
from apps.affiliates.services import LEGACY_REASON_ACTIONS

# Spend actions belong to orders; they are not adjustable by hand
MANUAL_ACTIONS = [action for action in PointAction.values if action not in SPEND_ACTIONS]


class ManualPointsInputSerializer(serializers.Serializer):
    """
    Body of ``POST /api/affiliate/points``.

    ``action`` wins over the legacy ``reason`` field; with neither the award is
    logged as a manual adjustment. Negative ``points`` remove points.
    """

    client_id = serializers.UUIDField()
    points = serializers.DecimalField(max_digits=POINTS_MAX_DIGITS, decimal_places=POINTS_DECIMAL_PLACES)
    action = serializers.ChoiceField(choices=MANUAL_ACTIONS, required=False)
    reason = serializers.ChoiceField(choices=list(LEGACY_REASON_ACTIONS), required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_points(self, value):
        if value == 0:
            raise serializers.ValidationError("Points must not be zero.")
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        reason = attrs.pop('reason', None)
        if 'action' not in attrs:
            attrs['action'] = LEGACY_REASON_ACTIONS[reason] if reason else PointAction.MANUAL_ADJUSTMENT
        return attrs


class PointLogSerializer(serializers.ModelSerializer):
    """Ledger row as returned by the API"""

    client_id = serializers.UUIDField(read_only=True)
    source_client_id = serializers.UUIDField(read_only=True, allow_null=True)
    order_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = PointLog
        fields = [
            'id', 'client_id', 'points', 'action', 'description',
            'source_client_id', 'order_id', 'created_at',
        ]
        read_only_fields = fields
