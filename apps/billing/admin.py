"""
Django admin configuration for billing models.
Exchange rates and revenue snapshots are written by services; the admin is read-only.
"""

from typing import ClassVar

from django.contrib import admin

from .models import CategoryRevenue, ExchangeRate, OrderRevenue


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('date', 'usd_eur', 'usd_gbp', 'source')
    list_filter: ClassVar[tuple[str, ...]] = ('source',)
    date_hierarchy = 'date'


class CategoryRevenueInline(admin.TabularInline):
    model = CategoryRevenue
    extra = 0
    can_delete = False
    fields: ClassVar[tuple[str, ...]] = ('category', 'usd_total', 'gbp_total', 'eur_total', 'eur_cost')
    readonly_fields = fields


@admin.register(OrderRevenue)
class OrderRevenueAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = (
        'order', 'organization', 'usd_total', 'gbp_total', 'eur_total', 'cancelled', 'refunded', 'created_at'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('cancelled', 'refunded')
    inlines: ClassVar[list[type[admin.TabularInline]]] = [CategoryRevenueInline]

    def has_change_permission(self, request, obj=None) -> bool:
        return False
