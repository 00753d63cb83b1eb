"""
Referral and spending-milestone bonuses for Tessera Platform.

Both bonuses are safe to re-run. The referral bonus is guarded by the order's
``referral_awarded`` flag, set under the order row lock, and is withheld
while the order is cancelled, refunded or failed. The spending bonus is
recomputed from scratch each time: the points the client should hold for their
lifetime EUR spend, minus every spending bonus already logged. A second run
with no new paid orders therefore credits nothing.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from apps.billing.models import OrderRevenue
from apps.common.types import NotFoundError
from apps.orders.models import Order
from apps.orders.status import is_active, parse_status

from .models import AffiliateSettings, PointAction, PointBalance
from .services import ZERO_POINTS, PointLedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BonusOutcome:
    referral_points: Decimal = ZERO_POINTS
    spending_points: Decimal = ZERO_POINTS

    @property
    def total(self) -> Decimal:
        return self.referral_points + self.spending_points


class BonusService:

    @staticmethod
    def _settings(organization_id: uuid.UUID | str) -> AffiliateSettings | None:
        return AffiliateSettings.objects.filter(organization_id=organization_id).first()

    @staticmethod
    @transaction.atomic
    def award_referral(order_id: uuid.UUID | str, organization_id: uuid.UUID | str) -> Decimal:
        """Credit the paying client's referrer once per order"""
        order = (
            Order.objects.select_for_update()
            .filter(id=order_id, organization_id=organization_id)
            .first()
        )
        if order is None:
            raise NotFoundError('Order', order_id)
        if order.referral_awarded:
            return ZERO_POINTS
        # Left unflagged so a later return to paid can still award it
        if not is_active(parse_status(order.status)):
            logger.info(f"⏭️ [Bonus] Referral skipped for order {order.id} in status {order.status}")
            return ZERO_POINTS

        referrer_id = order.client.referred_by_id
        if referrer_id is None:
            return ZERO_POINTS

        affiliate_settings = BonusService._settings(organization_id)
        points = affiliate_settings.points_per_referral if affiliate_settings else ZERO_POINTS
        if points <= 0:
            return ZERO_POINTS

        PointLedgerService.credit(
            referrer_id,
            organization_id,
            points,
            PointAction.REFERRAL_BONUS,
            description=f"Referral bonus for order #{order.order_key}",
            source_client_id=order.client_id,
            order_id=order.id,
        )
        Order.objects.filter(pk=order.pk).update(referral_awarded=True)
        logger.info(f"🤝 [Bonus] Referral bonus {points} → client {referrer_id} for order {order.id}")
        return points

    @staticmethod
    def lifetime_spend_eur(client_id: uuid.UUID | str, organization_id: uuid.UUID | str) -> Decimal:
        """EUR total of the client's paid orders that were not later cancelled or refunded"""
        total = OrderRevenue.objects.filter(
            organization_id=organization_id,
            order__client_id=client_id,
            cancelled=False,
            refunded=False,
        ).aggregate(total=Sum('eur_total'))['total']
        return total or Decimal('0')

    @staticmethod
    @transaction.atomic
    def award_spending_milestones(
        client_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
        order_id: uuid.UUID | str | None = None,
    ) -> Decimal:
        """Credit the positive gap between milestone points earned and already logged"""
        affiliate_settings = BonusService._settings(organization_id)
        if (
            affiliate_settings is None
            or affiliate_settings.spending_needed <= 0
            or affiliate_settings.points_per_spending <= 0
        ):
            return ZERO_POINTS

        # Serialize concurrent evaluations for the same client on the balance row
        PointBalance.objects.select_for_update().get_or_create(
            client_id=client_id,
            organization_id=organization_id,
        )

        spend = BonusService.lifetime_spend_eur(client_id, organization_id)
        milestones = int(spend // affiliate_settings.spending_needed)
        should_have = affiliate_settings.points_per_spending * milestones
        already_has = PointLedgerService.total_for_action(
            client_id, organization_id, PointAction.SPENDING_BONUS
        )
        delta = should_have - already_has
        if delta <= 0:
            return ZERO_POINTS

        PointLedgerService.credit(
            client_id,
            organization_id,
            delta,
            PointAction.SPENDING_BONUS,
            description=f"Spending bonus: {milestones} × €{affiliate_settings.spending_needed}",
            order_id=order_id,
        )
        logger.info(f"🎯 [Bonus] Spending bonus {delta} → client {client_id} (lifetime €{spend})")
        return delta

    @staticmethod
    def evaluate(
        order_id: uuid.UUID | str,
        client_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
    ) -> BonusOutcome:
        """Run both bonuses for the client that paid ``order_id``"""
        referral = BonusService.award_referral(order_id, organization_id)
        spending = BonusService.award_spending_milestones(client_id, organization_id, order_id)
        return BonusOutcome(referral_points=referral, spending_points=spending)
