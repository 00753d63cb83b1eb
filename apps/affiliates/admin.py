"""
Django admin configuration for Affiliates app
"""

from typing import ClassVar

from django.contrib import admin

from .models import AffiliateSettings, PointBalance, PointLog


@admin.register(AffiliateSettings)
class AffiliateSettingsAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = (
        'organization', 'points_per_referral', 'spending_needed', 'points_per_spending'
    )


@admin.register(PointBalance)
class PointBalanceAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('client', 'organization', 'points_current', 'points_spent')
    search_fields: ClassVar[tuple[str, ...]] = ('client__username',)
    readonly_fields: ClassVar[tuple[str, ...]] = ('points_current', 'points_spent')


@admin.register(PointLog)
class PointLogAdmin(admin.ModelAdmin):
    """Append-only ledger; rows are never edited"""

    list_display: ClassVar[tuple[str, ...]] = ('client', 'points', 'action', 'description', 'order', 'created_at')
    list_filter: ClassVar[tuple[str, ...]] = ('action',)
    search_fields: ClassVar[tuple[str, ...]] = ('client__username', 'description')

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
