"""
Django admin configuration for Customers app
"""

from typing import ClassVar

from django.contrib import admin

from .models import Client, Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('name', 'slug', 'support_email', 'created_at')
    search_fields: ClassVar[tuple[str, ...]] = ('name', 'slug')
    prepopulated_fields: ClassVar[dict[str, tuple[str, ...]]] = {'slug': ('name',)}


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    """Client admin with referral visibility"""

    list_display: ClassVar[tuple[str, ...]] = (
        'username', 'organization', 'email', 'country', 'referred_by', 'created_at'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('organization', 'country')
    search_fields: ClassVar[tuple[str, ...]] = ('username', 'email', 'first_name', 'last_name')
    raw_id_fields: ClassVar[tuple[str, ...]] = ('referred_by',)
