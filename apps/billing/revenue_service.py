"""
Revenue snapshot service for Tessera Platform.

Turns a paid order into one OrderRevenue row plus one CategoryRevenue row per
product category, expressed in USD, GBP and EUR. Every figure of a snapshot is
derived from the same ExchangeRate row, so order-level and category-level
numbers never drift apart.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.types import NotFoundError, ValidationError
from apps.orders.models import CartLine, Order
from apps.orders.status import OrderStatus

from .exchange_rate_service import ExchangeRateService
from .fx_client import PriceAPIClient
from .models import CategoryRevenue, OrderRevenue

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')
PRICE_WINDOW = timedelta(hours=1)

USD = 'USD'
GBP = 'GBP'
EUR = 'EUR'


def truncate_money(value: Decimal) -> Decimal:
    """Two-decimal truncation, applied to every stored figure"""
    return value.quantize(CENT, rounding=ROUND_DOWN)


def home_currency_for(country: str) -> str:
    """GB sells in GBP, the euro area in EUR, everyone else in USD"""
    code = (country or '').upper()
    if code == 'GB':
        return GBP
    if code in settings.EURO_AREA_COUNTRIES:
        return EUR
    return USD


@dataclass(frozen=True)
class CurrencyConverter:
    """Converts home-currency amounts using one USD cross-rate pair"""

    home: str
    usd_eur: Decimal
    usd_gbp: Decimal

    def convert(self, amount: Decimal) -> dict[str, Decimal]:
        amount = Decimal(amount)
        if self.home == GBP:
            usd = amount / self.usd_gbp
            gbp = amount
            eur = amount * (self.usd_eur / self.usd_gbp)
        elif self.home == EUR:
            usd = amount / self.usd_eur
            gbp = amount * (self.usd_gbp / self.usd_eur)
            eur = amount
        else:
            usd = amount
            gbp = amount * self.usd_gbp
            eur = amount * self.usd_eur
        return {
            'usd': truncate_money(usd),
            'gbp': truncate_money(gbp),
            'eur': truncate_money(eur),
        }


@dataclass
class CategoryTotals:
    total: Decimal = ZERO
    cost: Decimal = ZERO


@dataclass
class OrderBreakdown:
    """Home-currency figures gathered from an order's product lines"""
    cost: Decimal = ZERO
    categories: dict[uuid.UUID, CategoryTotals] = field(default_factory=dict)


def crypto_settlement(order: Order) -> tuple[str, Decimal]:
    """(asset, amount) from the order's ``paid`` event"""
    for event in order.order_meta or []:
        if not isinstance(event, dict) or event.get('event') != 'paid':
            continue
        details: dict[str, Any] = event.get('order') or {}
        asset = details.get('asset')
        amount = details.get('amount')
        if asset and amount is not None:
            return str(asset), Decimal(str(amount))
    raise ValidationError('order_meta', 'paid event with settlement asset and amount is missing')


class RevenueSnapshotService:

    @staticmethod
    def build_breakdown(order: Order) -> OrderBreakdown:
        """Sum unit costs and per-category price/cost for the order's product lines"""
        breakdown = OrderBreakdown()
        lines = (
            CartLine.objects
            .filter(cart_id=order.cart_id, product__isnull=False)
            .select_related('product')
            .prefetch_related('product__categories')
        )
        for line in lines:
            product = line.product
            price = product.price_for(order.country) * line.quantity
            cost = product.cost_for(order.country) * line.quantity
            breakdown.cost += cost
            # Uncategorised products count towards order cost only
            for category in product.categories.all():
                totals = breakdown.categories.setdefault(category.id, CategoryTotals())
                totals.total += price
                totals.cost += cost
        return breakdown

    @staticmethod
    def snapshot(order_id: uuid.UUID | str, organization_id: uuid.UUID | str) -> OrderRevenue:
        """
        Create (or return the existing) revenue snapshot for a paid order.

        Idempotent: a second call returns the stored row untouched. Raises
        NotFoundError for an unknown order and ExternalServiceError when a
        price or rate provider fails.
        """
        existing = OrderRevenue.objects.filter(order_id=order_id).first()
        if existing is not None:
            logger.info(f"ℹ️ [Revenue] Snapshot already exists for order {order_id}")
            return existing

        order = Order.objects.filter(id=order_id, organization_id=organization_id).first()
        if order is None:
            raise NotFoundError('Order', order_id)

        paid_at: datetime = order.date_paid or timezone.now()
        breakdown = RevenueSnapshotService.build_breakdown(order)

        # External calls happen before any row is locked
        rate = ExchangeRateService.rate_for(paid_at)
        home = home_currency_for(order.country)
        converter = CurrencyConverter(home, rate.usd_eur, rate.usd_gbp)

        totals = converter.convert(order.total_amount)
        if order.payment_method in settings.CRYPTO_PAYMENT_METHODS:
            asset, amount = crypto_settlement(order)
            price = PriceAPIClient.get_spot_price_usd(asset, paid_at - PRICE_WINDOW, paid_at)
            totals = CurrencyConverter(USD, rate.usd_eur, rate.usd_gbp).convert(amount * price)
            logger.info(f"🪙 [Revenue] Order {order.id} settled {amount} {asset} @ {price} USD")

        discount = converter.convert(order.discount_total)
        shipping = converter.convert(order.shipping_total)
        cost = converter.convert(breakdown.cost)

        with transaction.atomic():
            locked = Order.objects.select_for_update().get(pk=order.pk)
            existing = OrderRevenue.objects.filter(order_id=order.pk).first()
            if existing is not None:
                return existing

            revenue = OrderRevenue.objects.create(
                organization_id=order.organization_id,
                order=order,
                exchange_rate=rate,
                usd_total=totals['usd'], usd_discount=discount['usd'],
                usd_shipping=shipping['usd'], usd_cost=cost['usd'],
                gbp_total=totals['gbp'], gbp_discount=discount['gbp'],
                gbp_shipping=shipping['gbp'], gbp_cost=cost['gbp'],
                eur_total=totals['eur'], eur_discount=discount['eur'],
                eur_shipping=shipping['eur'], eur_cost=cost['eur'],
                # A snapshot taken after the order already left ACTIVE is born void
                cancelled=locked.status in (OrderStatus.CANCELLED, OrderStatus.FAILED),
                refunded=locked.status == OrderStatus.REFUNDED,
            )

            category_rows = []
            for category_id, category_totals in breakdown.categories.items():
                category_total = converter.convert(category_totals.total)
                category_cost = converter.convert(category_totals.cost)
                category_rows.append(CategoryRevenue(
                    organization_id=order.organization_id,
                    order=order,
                    category_id=category_id,
                    usd_total=category_total['usd'], usd_cost=category_cost['usd'],
                    gbp_total=category_total['gbp'], gbp_cost=category_cost['gbp'],
                    eur_total=category_total['eur'], eur_cost=category_cost['eur'],
                ))
            CategoryRevenue.objects.bulk_create(category_rows)

        logger.info(
            f"💰 [Revenue] Snapshot for order {order.id} ({home}): "
            f"{revenue.usd_total} USD / {revenue.gbp_total} GBP / {revenue.eur_total} EUR, "
            f"{len(category_rows)} categories"
        )
        return revenue

    @staticmethod
    def mark_void(order_id: uuid.UUID | str, status: str) -> int:
        """Flag an existing snapshot when its order leaves ACTIVE; rows are never deleted"""
        if status == OrderStatus.REFUNDED:
            return OrderRevenue.objects.filter(order_id=order_id).update(refunded=True)
        return OrderRevenue.objects.filter(order_id=order_id).update(cancelled=True)

    @staticmethod
    def restore(order_id: uuid.UUID | str) -> int:
        """Clear void flags when an order returns to ACTIVE"""
        return OrderRevenue.objects.filter(order_id=order_id).update(cancelled=False, refunded=False)
