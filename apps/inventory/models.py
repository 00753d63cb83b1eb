"""
Warehouse stock models for Tessera Platform
Signed per-country quantity counters for products, affiliate products and variations.
"""

from __future__ import annotations

import uuid
from typing import ClassVar

from django.db import models
from django.utils.translation import gettext_lazy as _


class Warehouse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='warehouses'
    )
    name = models.CharField(max_length=200)
    countries = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'warehouses'
        verbose_name = _('Warehouse')
        verbose_name_plural = _('Warehouses')

    def __str__(self) -> str:
        return self.name


class WarehouseStock(models.Model):
    """
    Stock counter for one (product or affiliate product, variation, country).

    Quantity is signed: products that allow backorders may go below zero.
    When several rows match, the oldest one is the one adjusted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='stock'
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='stock'
    )
    affiliate_product = models.ForeignKey(
        'products.AffiliateProduct',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='stock'
    )
    variation = models.ForeignKey(
        'products.ProductVariation',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='stock'
    )
    country = models.CharField(max_length=2)
    quantity = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'warehouse_stock'
        verbose_name = _('Warehouse Stock')
        verbose_name_plural = _('Warehouse Stock')
        ordering: ClassVar[list[str]] = ['created_at']
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['product', 'country']),
            models.Index(fields=['affiliate_product', 'country']),
            models.Index(fields=['variation', 'country']),
        )

    def __str__(self) -> str:
        item = self.product_id or self.affiliate_product_id
        return f"{item} [{self.country}] = {self.quantity}"
