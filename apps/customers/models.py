"""
Tenant and customer models for Tessera Platform
Organizations are the tenant boundary; clients are the shoppers inside them.
"""

from __future__ import annotations

import uuid
from typing import ClassVar

from django.db import models
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# ORGANIZATION (TENANT)
# ===============================================================================

class Organization(models.Model):
    """Merchant tenant. Every order, client and ledger row belongs to one."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    countries = models.JSONField(
        default=list,
        blank=True,
        help_text=_("ISO country codes the organization sells into")
    )

    # Delivery targets for non-email notification channels
    webhook_url = models.URLField(blank=True, default='')
    telegram_chat_id = models.CharField(max_length=64, blank=True, default='')
    support_email = models.EmailField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'organizations'
        verbose_name = _('Organization')
        verbose_name_plural = _('Organizations')
        ordering: ClassVar[list[str]] = ['name']

    def __str__(self) -> str:
        return self.name


# ===============================================================================
# CLIENT
# ===============================================================================

class Client(models.Model):
    """Shopper within an organization, optionally referred by another client"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='clients'
    )
    username = models.CharField(max_length=150)
    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    country = models.CharField(max_length=2, blank=True, default='')

    referred_by = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='referrals',
        help_text=_("Client whose referral brought this client in")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'clients'
        verbose_name = _('Client')
        verbose_name_plural = _('Clients')
        unique_together: ClassVar[tuple[tuple[str, ...], ...]] = (('organization', 'username'),)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=['organization', 'referred_by']),
        )

    def __str__(self) -> str:
        return self.username

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username
