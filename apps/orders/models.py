"""
Order models for Tessera Platform
Carts, orders and the settlement job outbox that drives post-commit work.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .status import ACTIVE_STATUSES, OrderStatus

# ===============================================================================
# CART
# ===============================================================================

class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='carts'
    )
    client = models.ForeignKey(
        'customers.Client',
        on_delete=models.CASCADE,
        related_name='carts'
    )
    country = models.CharField(max_length=2)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'carts'
        verbose_name = _('Cart')
        verbose_name_plural = _('Carts')

    def __str__(self) -> str:
        return f"Cart {self.id}"


class CartLine(models.Model):
    """
    One product or affiliate-product quantity in a cart.
    ``unit_price`` is money for regular products and points for affiliate products.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='lines')
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='cart_lines'
    )
    affiliate_product = models.ForeignKey(
        'products.AffiliateProduct',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='cart_lines'
    )
    variation = models.ForeignKey(
        'products.ProductVariation',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='cart_lines'
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    class Meta:
        db_table = 'cart_lines'
        verbose_name = _('Cart Line')
        verbose_name_plural = _('Cart Lines')
        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=(
                    models.Q(product__isnull=False, affiliate_product__isnull=True)
                    | models.Q(product__isnull=True, affiliate_product__isnull=False)
                ),
                name='cart_line_exactly_one_product',
            ),
        ]

    def __str__(self) -> str:
        return f"x{self.quantity} {self.item_name}"

    @property
    def is_affiliate(self) -> bool:
        return self.affiliate_product_id is not None

    @property
    def item_id(self) -> uuid.UUID | None:
        return self.affiliate_product_id or self.product_id

    @property
    def item_name(self) -> str:
        item = self.affiliate_product if self.is_affiliate else self.product
        return item.name if item else ''


# ===============================================================================
# ORDER
# ===============================================================================

class Order(models.Model):
    """
    Client order. Status changes go through OrderTransitionService only;
    orders are never deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.PROTECT,
        related_name='orders'
    )
    client = models.ForeignKey(
        'customers.Client',
        on_delete=models.PROTECT,
        related_name='orders'
    )
    cart = models.ForeignKey(Cart, on_delete=models.PROTECT, related_name='orders')
    order_key = models.CharField(max_length=50, help_text=_("Human-readable order reference"))

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.OPEN,
        help_text=_("Current order status")
    )
    country = models.CharField(max_length=2)
    payment_method = models.CharField(max_length=50, blank=True, default='')

    # Home-currency amounts (GBP for GB, EUR for the euro area, USD elsewhere)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    shipping_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    points_redeemed = models.DecimalField(
        max_digits=14,
        decimal_places=1,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text=_("Affiliate points redeemed as a discount on this order")
    )

    notified_paid_or_completed = models.BooleanField(default=False)
    referral_awarded = models.BooleanField(default=False)

    order_meta = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Append-only list of payment/status events")
    )

    # First time each status was reached; never overwritten
    date_underpaid = models.DateTimeField(null=True, blank=True)
    date_paid = models.DateTimeField(null=True, blank=True)
    date_completed = models.DateTimeField(null=True, blank=True)
    date_cancelled = models.DateTimeField(null=True, blank=True)
    date_refunded = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering: ClassVar[list[str]] = ['-created_at']
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['organization', 'status']),
            models.Index(fields=['organization', 'client']),
            models.Index(fields=['organization', 'order_key']),
        )

    def __str__(self) -> str:
        return f"Order #{self.order_key} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


# ===============================================================================
# SETTLEMENT JOB OUTBOX
# ===============================================================================

class SettlementJob(models.Model):
    """
    Durable post-commit work for an order (revenue snapshot, bonus evaluation).
    Written in the same transaction as the status change, executed after commit
    and retried with backoff by the scheduled drain.
    """

    class Kind(models.TextChoices):
        REVENUE_SNAPSHOT = 'revenue_snapshot', _('Revenue snapshot')
        BONUS_EVALUATION = 'bonus_evaluation', _('Bonus evaluation')

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        DONE = 'done', _('Done')
        DEAD = 'dead', _('Dead')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='settlement_jobs'
    )
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='settlement_jobs')
    kind = models.CharField(max_length=30, choices=Kind.choices)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=8)
    next_attempt_at = models.DateTimeField(default=timezone.now)
    last_error = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'order_settlement_jobs'
        verbose_name = _('Settlement Job')
        verbose_name_plural = _('Settlement Jobs')
        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(fields=['order', 'kind'], name='uniq_settlement_job_order_kind'),
        ]
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['status', 'next_attempt_at']),
        )

    def __str__(self) -> str:
        return f"{self.kind} for {self.order_id} ({self.status})"

    def schedule_retry(self, error: str, base_delay: int, max_delay: int) -> None:
        """Record a failed attempt; exponential backoff, dead after max_attempts"""
        self.attempts += 1
        self.last_error = error[:2000]
        if self.attempts >= self.max_attempts:
            self.status = self.Status.DEAD
        else:
            delay = min(base_delay * 2 ** (self.attempts - 1), max_delay)
            self.next_attempt_at = timezone.now() + timedelta(seconds=delay)
        self.save(update_fields=['attempts', 'last_error', 'status', 'next_attempt_at', 'updated_at'])
