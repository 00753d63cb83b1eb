"""
Affiliate point ledger for Tessera Platform.
Every point movement writes one PointLog row and adjusts the client's PointBalance
in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, F, Sum, Value
from django.db.models.functions import Greatest

from apps.common.types import ValidationError

from .models import POINTS_DECIMAL_PLACES, POINTS_MAX_DIGITS, SPEND_ACTIONS, PointBalance, PointLog

logger = logging.getLogger(__name__)

ZERO_POINTS = Decimal('0')
POINTS_QUANTUM = Decimal('0.1')

# Legacy "reason" values accepted by the manual adjustment endpoint
LEGACY_REASON_ACTIONS: dict[str, str] = {
    'referral': 'referral_bonus',
    'review': 'review_bonus',
    'spending': 'spending_bonus',
    'group': 'group_join',
}

DEFAULT_DESCRIPTIONS: dict[str, str] = {
    'review_bonus': 'Review bonus',
    'referral_bonus': 'Referral bonus',
    'spending_bonus': 'Spending bonus',
    'group_join': 'Group-join bonus',
}


@dataclass(frozen=True)
class BalanceSnapshot:
    points_current: Decimal
    points_spent: Decimal


def normalize_points(points: Decimal | int | float | str) -> Decimal:
    """Coerce to Decimal and reject more than one decimal place"""
    value = Decimal(str(points))
    if value != value.quantize(POINTS_QUANTUM):
        raise ValidationError('points', 'must have at most one decimal place')
    return value


class PointLedgerService:
    """
    Append-only point ledger with a running balance.

    Spend actions (affiliate purchases, redemptions and their refunds) move
    points between ``points_current`` and ``points_spent``; the spent side is
    floored at zero, so an over-refund cannot produce negative lifetime spend.
    Awards (bonuses, manual adjustments) only move ``points_current``, except
    that a negative award is also counted as spent.
    """

    @staticmethod
    @transaction.atomic
    def record(
        client_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
        points: Decimal | int | str,
        action: str,
        description: str = '',
        source_client_id: uuid.UUID | str | None = None,
        order_id: uuid.UUID | str | None = None,
    ) -> PointLog:
        delta = normalize_points(points)

        log = PointLog.objects.create(
            organization_id=organization_id,
            client_id=client_id,
            points=delta,
            action=action,
            description=description,
            source_client_id=source_client_id,
            order_id=order_id,
        )

        balance, _ = PointBalance.objects.select_for_update().get_or_create(
            client_id=client_id,
            organization_id=organization_id,
        )

        points_field = DecimalField(max_digits=POINTS_MAX_DIGITS, decimal_places=POINTS_DECIMAL_PLACES)
        if action in SPEND_ACTIONS:
            spent_expr = Greatest(
                F('points_spent') - Value(delta, output_field=points_field),
                Value(ZERO_POINTS, output_field=points_field),
                output_field=points_field,
            )
        else:
            spent_increase = -delta if delta < 0 else ZERO_POINTS
            spent_expr = F('points_spent') + Value(spent_increase, output_field=points_field)

        PointBalance.objects.filter(pk=balance.pk).update(
            points_current=F('points_current') + Value(delta, output_field=points_field),
            points_spent=spent_expr,
        )

        logger.info(f"🪙 [Points] {action} {delta:+} for client {client_id} (org {organization_id})")
        return log

    @staticmethod
    def credit(
        client_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
        points: Decimal | int | str,
        action: str,
        description: str = '',
        source_client_id: uuid.UUID | str | None = None,
        order_id: uuid.UUID | str | None = None,
    ) -> PointLog:
        """Add points; ``points`` is a positive amount"""
        amount = normalize_points(points)
        if amount <= 0:
            raise ValidationError('points', 'credit amount must be positive')
        return PointLedgerService.record(
            client_id, organization_id, amount, action, description, source_client_id, order_id
        )

    @staticmethod
    def debit(
        client_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
        points: Decimal | int | str,
        action: str,
        description: str = '',
        source_client_id: uuid.UUID | str | None = None,
        order_id: uuid.UUID | str | None = None,
    ) -> PointLog:
        """Remove points; ``points`` is a positive amount"""
        amount = normalize_points(points)
        if amount <= 0:
            raise ValidationError('points', 'debit amount must be positive')
        return PointLedgerService.record(
            client_id, organization_id, -amount, action, description, source_client_id, order_id
        )

    @staticmethod
    def get_balance(client_id: uuid.UUID | str, organization_id: uuid.UUID | str) -> BalanceSnapshot:
        balance = PointBalance.objects.filter(client_id=client_id, organization_id=organization_id).first()
        if balance is None:
            return BalanceSnapshot(ZERO_POINTS, ZERO_POINTS)
        return BalanceSnapshot(balance.points_current, balance.points_spent)

    @staticmethod
    def total_for_action(client_id: uuid.UUID | str, organization_id: uuid.UUID | str, action: str) -> Decimal:
        """Sum of every logged delta for one action"""
        total = PointLog.objects.filter(
            client_id=client_id,
            organization_id=organization_id,
            action=action,
        ).aggregate(total=Sum('points'))['total']
        return total or ZERO_POINTS
