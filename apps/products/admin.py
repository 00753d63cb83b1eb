"""
Django admin configuration for Products app
"""

from typing import ClassVar

from django.contrib import admin

from .models import AffiliateProduct, Product, ProductCategory, ProductVariation


class ProductVariationInline(admin.TabularInline):
    model = ProductVariation
    fk_name = 'product'
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = (
        'name', 'organization', 'sku', 'manage_stock', 'allow_backorders', 'is_active'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('organization', 'manage_stock', 'allow_backorders', 'is_active')
    search_fields: ClassVar[tuple[str, ...]] = ('name', 'sku')
    filter_horizontal: ClassVar[tuple[str, ...]] = ('categories',)
    inlines: ClassVar[list] = [ProductVariationInline]


@admin.register(AffiliateProduct)
class AffiliateProductAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('name', 'organization', 'manage_stock', 'allow_backorders')
    search_fields: ClassVar[tuple[str, ...]] = ('name', 'sku')


@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('name', 'slug', 'organization')
    search_fields: ClassVar[tuple[str, ...]] = ('name',)
