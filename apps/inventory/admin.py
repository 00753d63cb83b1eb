"""
Django admin configuration for Inventory app
"""

from typing import ClassVar

from django.contrib import admin

from .models import Warehouse, WarehouseStock


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('name', 'organization', 'created_at')


@admin.register(WarehouseStock)
class WarehouseStockAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = (
        'product', 'affiliate_product', 'variation', 'country', 'quantity', 'updated_at'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('country',)
