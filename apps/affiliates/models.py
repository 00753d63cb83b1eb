"""
Affiliate points models for Tessera Platform
Per-client point balances, the append-only point log and per-organization bonus settings.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

POINTS_MAX_DIGITS = 14
POINTS_DECIMAL_PLACES = 1


class PointAction(models.TextChoices):
    PURCHASE_AFFILIATE = 'purchase_affiliate', _('Affiliate purchase')
    REFUND_AFFILIATE = 'refund_affiliate', _('Affiliate purchase refund')
    REDEEM_POINTS = 'redeem_points', _('Redeemed for discount')
    REFUND_REDEEMED_POINTS = 'refund_redeemed_points', _('Redeemed points refund')
    REFERRAL_BONUS = 'referral_bonus', _('Referral bonus')
    SPENDING_BONUS = 'spending_bonus', _('Spending bonus')
    REVIEW_BONUS = 'review_bonus', _('Review bonus')
    GROUP_JOIN = 'group_join', _('Group-join bonus')
    MANUAL_ADJUSTMENT = 'manual_adjustment', _('Manual adjustment')


# Actions that move points between "current" and "spent"
SPEND_ACTIONS: frozenset[str] = frozenset({
    PointAction.PURCHASE_AFFILIATE,
    PointAction.REFUND_AFFILIATE,
    PointAction.REDEEM_POINTS,
    PointAction.REFUND_REDEEMED_POINTS,
})


class AffiliateSettings(models.Model):
    """Bonus configuration for one organization"""

    organization = models.OneToOneField(
        'customers.Organization',
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='affiliate_settings'
    )
    points_per_referral = models.DecimalField(
        max_digits=POINTS_MAX_DIGITS,
        decimal_places=POINTS_DECIMAL_PLACES,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text=_("Points credited to the referrer once per paid order of a referred client")
    )
    spending_needed = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text=_("EUR of lifetime spend per spending milestone (0 disables)")
    )
    points_per_spending = models.DecimalField(
        max_digits=POINTS_MAX_DIGITS,
        decimal_places=POINTS_DECIMAL_PLACES,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text=_("Points credited for every spending milestone reached")
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'affiliate_settings'
        verbose_name = _('Affiliate Settings')
        verbose_name_plural = _('Affiliate Settings')

    def __str__(self) -> str:
        return f"Affiliate settings for {self.organization_id}"


class PointBalance(models.Model):
    """Running balance per (client, organization). Only the ledger service writes it."""

    id = models.BigAutoField(primary_key=True)
    client = models.ForeignKey(
        'customers.Client',
        on_delete=models.CASCADE,
        related_name='point_balances'
    )
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='point_balances'
    )
    points_current = models.DecimalField(
        max_digits=POINTS_MAX_DIGITS,
        decimal_places=POINTS_DECIMAL_PLACES,
        default=Decimal('0')
    )
    points_spent = models.DecimalField(
        max_digits=POINTS_MAX_DIGITS,
        decimal_places=POINTS_DECIMAL_PLACES,
        default=Decimal('0'),
        help_text=_("Lifetime points spent, never below zero")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'affiliate_point_balances'
        verbose_name = _('Point Balance')
        verbose_name_plural = _('Point Balances')
        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(fields=['client', 'organization'], name='uniq_point_balance_client_org'),
        ]

    def __str__(self) -> str:
        return f"{self.client_id}: {self.points_current} (spent {self.points_spent})"


class PointLog(models.Model):
    """Append-only point ledger entry. Never updated or deleted."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='point_logs'
    )
    client = models.ForeignKey(
        'customers.Client',
        on_delete=models.CASCADE,
        related_name='point_logs'
    )
    points = models.DecimalField(
        max_digits=POINTS_MAX_DIGITS,
        decimal_places=POINTS_DECIMAL_PLACES,
        help_text=_("Signed point delta")
    )
    action = models.CharField(max_length=40, choices=PointAction.choices)
    description = models.CharField(max_length=255, blank=True, default='')
    source_client = models.ForeignKey(
        'customers.Client',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sourced_point_logs',
        help_text=_("Client whose activity produced this entry (e.g. the referred client)")
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='point_logs'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'affiliate_point_logs'
        verbose_name = _('Point Log')
        verbose_name_plural = _('Point Logs')
        ordering: ClassVar[list[str]] = ['-created_at']
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['organization', 'client', 'action']),
            models.Index(fields=['order', 'action']),
        )

    def __str__(self) -> str:
        return f"{self.action} {self.points:+} → {self.client_id}"
