"""
Notification models for Tessera Platform
Per-organization templates, the delivery outbox, the dispatch log and in-app messages.
"""

from __future__ import annotations

import uuid
from typing import ClassVar

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class NotificationType(models.TextChoices):
    ORDER_PLACED = 'order_placed', _('Order placed')
    ORDER_PARTIALLY_PAID = 'order_partially_paid', _('Order partially paid')
    ORDER_PAID = 'order_paid', _('Order paid')
    ORDER_COMPLETED = 'order_completed', _('Order completed')
    ORDER_READY = 'order_ready', _('Order ready')
    ORDER_CANCELLED = 'order_cancelled', _('Order cancelled')
    ORDER_REFUNDED = 'order_refunded', _('Order refunded')


class NotificationChannel(models.TextChoices):
    EMAIL = 'email', _('Email')
    IN_APP = 'in_app', _('In-app')
    WEBHOOK = 'webhook', _('Webhook')
    TELEGRAM = 'telegram', _('Telegram')


# ===============================================================================
# TEMPLATES
# ===============================================================================

class NotificationTemplate(models.Model):
    """
    Message template for one notification type and audience.
    Placeholders such as {product_list} and {order_key} are substituted at send time.
    An empty country list makes the template the fallback for every country.
    """

    ROLE_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('user', _('Client')),
        ('admin', _('Merchant admin')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='notification_templates'
    )
    type = models.CharField(max_length=40, choices=NotificationType.choices)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='user')
    countries = models.JSONField(default=list, blank=True)
    subject = models.CharField(max_length=255, blank=True, default='')
    message = models.TextField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notification_templates'
        verbose_name = _('Notification Template')
        verbose_name_plural = _('Notification Templates')
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['organization', 'type']),
        )

    def __str__(self) -> str:
        return f"{self.type} ({self.role})"


# ===============================================================================
# OUTBOX
# ===============================================================================

class NotificationOutbox(models.Model):
    """One pending delivery on one channel, idempotent by ``dedupe_key``"""

    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        ('pending', _('Pending')),
        ('sent', _('Sent')),
        ('dead', _('Dead')),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='notification_outbox'
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notification_outbox'
    )
    type = models.CharField(max_length=40, choices=NotificationType.choices)
    trigger = models.CharField(max_length=50, blank=True, default='')
    channel = models.CharField(max_length=20, choices=NotificationChannel.choices)
    payload = models.JSONField(default=dict, blank=True)
    dedupe_key = models.CharField(max_length=255, unique=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=8)
    next_attempt_at = models.DateTimeField(default=timezone.now)
    last_error = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notification_outbox'
        verbose_name = _('Notification Outbox Entry')
        verbose_name_plural = _('Notification Outbox')
        ordering: ClassVar[list[str]] = ['created_at']
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['status', 'next_attempt_at']),
            models.Index(fields=['order', 'type']),
        )

    def __str__(self) -> str:
        return f"{self.type} via {self.channel} ({self.status})"


# ===============================================================================
# DISPATCH LOG & IN-APP
# ===============================================================================

class Notification(models.Model):
    """Master log of every dispatched notification"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=40, choices=NotificationType.choices)
    trigger = models.CharField(max_length=50, blank=True, default='')
    message = models.TextField()
    channels = models.JSONField(default=list)
    country = models.CharField(max_length=2, blank=True, default='')
    target_client = models.ForeignKey(
        'customers.Client',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        verbose_name = _('Notification')
        verbose_name_plural = _('Notifications')
        ordering: ClassVar[list[str]] = ['-created_at']

    def __str__(self) -> str:
        return f"{self.type} @ {self.created_at:%Y-%m-%d %H:%M}"


class InAppNotification(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'customers.Organization',
        on_delete=models.CASCADE,
        related_name='in_app_notifications'
    )
    client = models.ForeignKey(
        'customers.Client',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='in_app_notifications'
    )
    title = models.CharField(max_length=64)
    message = models.TextField()
    country = models.CharField(max_length=2, blank=True, default='')
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'in_app_notifications'
        verbose_name = _('In-app Notification')
        verbose_name_plural = _('In-app Notifications')
        ordering: ClassVar[list[str]] = ['-created_at']

    def __str__(self) -> str:
        return self.title
