"""
Revenue models for Tessera Platform
Exchange-rate rows and point-in-time multi-currency revenue snapshots of paid orders.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.db import models
from django.utils.translation import gettext_lazy as _

MONEY_MAX_DIGITS = 14
MONEY_DECIMAL_PLACES = 2


def money_field(help_text: str = '') -> models.DecimalField:
    return models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        default=Decimal('0.00'),
        help_text=help_text,
    )


# ===============================================================================
# EXCHANGE RATES
# ===============================================================================

class ExchangeRate(models.Model):
    """
    USD cross rates captured at a point in time.
    A revenue snapshot and all of its category rows use exactly one of these.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    usd_eur = models.DecimalField(max_digits=18, decimal_places=8, help_text=_("EUR per 1 USD"))
    usd_gbp = models.DecimalField(max_digits=18, decimal_places=8, help_text=_("GBP per 1 USD"))
    date = models.DateTimeField(db_index=True, help_text=_("Moment the quote applies to"))
    source = models.CharField(max_length=50, default='currencylayer')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'exchange_rates'
        verbose_name = _('Exchange Rate')
        verbose_name_plural = _('Exchange Rates')
        ordering: ClassVar[list[str]] = ['-date']

    def __str__(self) -> str:
        return f"USD→EUR {self.usd_eur} / USD→GBP {self.usd_gbp} @ {self.date:%Y-%m-%d %H:%M}"


# ===============================================================================
# REVENUE SNAPSHOTS
# ===============================================================================

class OrderRevenue(models.Model):
    """
    Revenue of one paid order in USD, GBP and EUR.
    Written once; later cancellation or refund only flips the flags.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='order_revenues'
    )
    order = models.OneToOneField(
        'orders.Order',
        on_delete=models.PROTECT,
        related_name='revenue'
    )
    exchange_rate = models.ForeignKey(
        ExchangeRate,
        on_delete=models.PROTECT,
        related_name='order_revenues'
    )

    usd_total = money_field()
    usd_discount = money_field()
    usd_shipping = money_field()
    usd_cost = money_field()

    gbp_total = money_field()
    gbp_discount = money_field()
    gbp_shipping = money_field()
    gbp_cost = money_field()

    eur_total = money_field()
    eur_discount = money_field()
    eur_shipping = money_field()
    eur_cost = money_field()

    cancelled = models.BooleanField(default=False)
    refunded = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'order_revenue'
        verbose_name = _('Order Revenue')
        verbose_name_plural = _('Order Revenue')
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['organization', 'created_at']),
        )

    def __str__(self) -> str:
        return f"Revenue for order {self.order_id}: {self.usd_total} USD"

    @property
    def is_void(self) -> bool:
        return self.cancelled or self.refunded


class CategoryRevenue(models.Model):
    """Per-category revenue and cost of one paid order, in all three currencies"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='category_revenues'
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.PROTECT,
        related_name='category_revenues'
    )
    category = models.ForeignKey(
        'products.ProductCategory',
        on_delete=models.PROTECT,
        related_name='revenues'
    )

    usd_total = money_field()
    usd_cost = money_field()
    gbp_total = money_field()
    gbp_cost = money_field()
    eur_total = money_field()
    eur_cost = money_field()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'category_revenue'
        verbose_name = _('Category Revenue')
        verbose_name_plural = _('Category Revenue')
        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(fields=['order', 'category'], name='uniq_category_revenue_order_category'),
        ]

    def __str__(self) -> str:
        return f"{self.category_id} / {self.order_id}: {self.usd_total} USD"
