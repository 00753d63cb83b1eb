"""
Product Catalog models for Tessera Platform
Regular products priced per country, affiliate products priced in points,
variations and categories used for revenue breakdowns.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import ClassVar

from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.validators import country_amount, validate_country_money_map

# ===============================================================================
# CATEGORIES
# ===============================================================================

class ProductCategory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='product_categories'
    )
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100)

    class Meta:
        db_table = 'product_categories'
        verbose_name = _('Product Category')
        verbose_name_plural = _('Product Categories')
        unique_together: ClassVar[tuple[tuple[str, ...], ...]] = (('organization', 'slug'),)

    def __str__(self) -> str:
        return self.name


# ===============================================================================
# STOCK-MANAGED CATALOG BASE
# ===============================================================================

class StockManagedProduct(models.Model):
    """Fields shared by everything the stock adjuster can decrement"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='%(class)ss'
    )
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=100, blank=True, default='')

    manage_stock = models.BooleanField(
        default=False,
        help_text=_("Track warehouse quantities for this product")
    )
    allow_backorders = models.BooleanField(
        default=False,
        help_text=_("Allow stock to go negative instead of rejecting the order")
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self) -> str:
        return self.name


class Product(StockManagedProduct):
    """
    Regular catalog product.
    Prices and unit costs are country-keyed maps in the organization's home
    currency for that country, e.g. {"GB": "10.00", "DE": "11.50"}.
    """

    regular_price = models.JSONField(
        default=dict,
        blank=True,
        validators=[validate_country_money_map],
        help_text=_("Regular price per country")
    )
    cost = models.JSONField(
        default=dict,
        blank=True,
        validators=[validate_country_money_map],
        help_text=_("Unit cost per country")
    )
    categories = models.ManyToManyField(
        ProductCategory,
        blank=True,
        related_name='products'
    )

    class Meta:
        db_table = 'products'
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering: ClassVar[list[str]] = ['name']

    def price_for(self, country: str) -> Decimal:
        return country_amount(self.regular_price, country)

    def cost_for(self, country: str) -> Decimal:
        return country_amount(self.cost, country)


class AffiliateProduct(StockManagedProduct):
    """Product bought with affiliate points instead of money"""

    points_price = models.JSONField(
        default=dict,
        blank=True,
        validators=[validate_country_money_map],
        help_text=_("Price in points per country")
    )

    class Meta:
        db_table = 'affiliate_products'
        verbose_name = _('Affiliate Product')
        verbose_name_plural = _('Affiliate Products')
        ordering: ClassVar[list[str]] = ['name']


class ProductVariation(models.Model):
    """Size/flavour/etc. variant tracked as its own stock line"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='variations'
    )
    affiliate_product = models.ForeignKey(
        AffiliateProduct,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='variations'
    )
    name = models.CharField(max_length=200)
    attributes = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'product_variations'
        verbose_name = _('Product Variation')
        verbose_name_plural = _('Product Variations')

    def __str__(self) -> str:
        return self.name
