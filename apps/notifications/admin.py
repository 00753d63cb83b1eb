"""
Django admin configuration for Notifications app
"""

from typing import ClassVar

from django.contrib import admin

from .models import InAppNotification, Notification, NotificationOutbox, NotificationTemplate


@admin.register(NotificationTemplate)
class NotificationTemplateAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('type', 'role', 'organization', 'subject', 'updated_at')
    list_filter: ClassVar[tuple[str, ...]] = ('type', 'role', 'organization')
    search_fields: ClassVar[tuple[str, ...]] = ('subject', 'message')


@admin.register(NotificationOutbox)
class NotificationOutboxAdmin(admin.ModelAdmin):
    """Outbox monitor: stuck and dead deliveries"""

    list_display: ClassVar[tuple[str, ...]] = (
        'type', 'channel', 'status', 'attempts', 'max_attempts', 'next_attempt_at', 'order'
    )
    list_filter: ClassVar[tuple[str, ...]] = ('status', 'channel', 'type')
    search_fields: ClassVar[tuple[str, ...]] = ('dedupe_key', 'last_error')
    readonly_fields: ClassVar[tuple[str, ...]] = ('dedupe_key', 'payload', 'last_error', 'created_at', 'updated_at')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('type', 'trigger', 'organization', 'target_client', 'created_at')
    list_filter: ClassVar[tuple[str, ...]] = ('type',)


@admin.register(InAppNotification)
class InAppNotificationAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ('title', 'client', 'read', 'created_at')
    list_filter: ClassVar[tuple[str, ...]] = ('read',)
