"""
Django admin configuration for orders app.
Order lifecycle and settlement job monitoring.
"""

from typing import ClassVar

from django.contrib import admin

from .models import Cart, CartLine, Order, SettlementJob


class CartLineInline(admin.TabularInline):
    model = CartLine
    extra = 0
    fields: ClassVar[tuple[str, ...]] = ('product', 'affiliate_product', 'variation', 'quantity', 'unit_price')


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('id', 'client', 'organization', 'country', 'created_at')
    list_filter: ClassVar[tuple[str, ...]] = ('country',)
    inlines: ClassVar[list[type[admin.TabularInline]]] = [CartLineInline]


class SettlementJobInline(admin.TabularInline):
    model = SettlementJob
    extra = 0
    can_delete = False
    fields: ClassVar[tuple[str, ...]] = ('kind', 'status', 'attempts', 'next_attempt_at', 'last_error')
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Admin interface for orders.
    Status is read-only here: changes must go through OrderTransitionService
    so stock, points and revenue stay in step.
    """

    list_display: ClassVar[tuple[str, ...]] = (
        'order_key', 'client', 'organization', 'status', 'total_amount', 'country', 'created_at'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('status', 'country', 'payment_method', 'created_at')
    search_fields: ClassVar[tuple[str, ...]] = ('order_key', 'client__username', 'client__email')
    readonly_fields: ClassVar[tuple[str, ...]] = (
        'status', 'notified_paid_or_completed', 'referral_awarded', 'order_meta',
        'date_underpaid', 'date_paid', 'date_completed', 'date_cancelled', 'date_refunded',
        'created_at', 'updated_at',
    )
    inlines: ClassVar[list[type[admin.TabularInline]]] = [SettlementJobInline]

    fieldsets: ClassVar[tuple] = (
        ('Order Information', {
            'fields': ('organization', 'client', 'cart', 'order_key', 'status', 'country', 'payment_method')
        }),
        ('Financial Details', {
            'fields': ('subtotal', 'discount_total', 'shipping_total', 'total_amount', 'points_redeemed')
        }),
        ('Settlement', {
            'fields': ('notified_paid_or_completed', 'referral_awarded', 'order_meta'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': (
                'date_underpaid', 'date_paid', 'date_completed', 'date_cancelled', 'date_refunded',
                'created_at', 'updated_at',
            ),
            'classes': ('collapse',)
        }),
    )


@admin.register(SettlementJob)
class SettlementJobAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('order', 'kind', 'status', 'attempts', 'next_attempt_at')
    list_filter: ClassVar[tuple[str, ...]] = ('kind', 'status')
    readonly_fields: ClassVar[tuple[str, ...]] = ('last_error', 'created_at', 'updated_at', 'completed_at')
