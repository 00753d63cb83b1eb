"""
Notification dispatcher for Tessera Platform.
Resolves templates, substitutes variables and delivers on email, in-app,
webhook and Telegram channels. Delivery errors propagate so the outbox can retry.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import requests
from django.conf import settings
from django.core.mail import send_mail

from apps.customers.models import Client, Organization

from .models import InAppNotification, Notification, NotificationChannel, NotificationTemplate

logger = logging.getLogger(__name__)

IN_APP_TITLE_LENGTH = 64

# ===============================================================================
# TEMPLATE HELPERS
# ===============================================================================

def apply_variables(text: str, variables: dict[str, Any] | None) -> str:
    """Replace every {key} placeholder with its value"""
    rendered = text or ''
    for key, value in (variables or {}).items():
        rendered = rendered.replace(f"{{{key}}}", str(value))
    return rendered


_TELEGRAM_REPLACEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r'<\s*p[^>]*>', re.IGNORECASE), ''),
    (re.compile(r'<\s*/\s*p\s*>', re.IGNORECASE), '\n'),
    (re.compile(r'<\s*br\s*/?>', re.IGNORECASE), '\n'),
    (re.compile(r'<\s*strong\s*>', re.IGNORECASE), '<b>'),
    (re.compile(r'<\s*/\s*strong\s*>', re.IGNORECASE), '</b>'),
    (re.compile(r'<\s*em\s*>', re.IGNORECASE), '<i>'),
    (re.compile(r'<\s*/\s*em\s*>', re.IGNORECASE), '</i>'),
)


def to_telegram_html(html: str) -> str:
    """Reduce HTML to the subset Telegram's HTML parse mode accepts"""
    text = html
    for pattern, replacement in _TELEGRAM_REPLACEMENTS:
        text = pattern.sub(replacement, text)
    return text.strip()


def pick_template(
    role: str, country: str | None, templates: Iterable[NotificationTemplate]
) -> NotificationTemplate | None:
    """Prefer a template listing the country, else a country-agnostic one"""
    candidates = [t for t in templates if t.role == role]
    for template in candidates:
        countries = template.countries or []
        if (country in countries) if country else not countries:
            return template
    for template in candidates:
        if not template.countries:
            return template
    return None


def resolve_subject(template: NotificationTemplate | None, subject: str | None, notification_type: str) -> str:
    raw = (template.subject if template and template.subject else None) or subject or notification_type
    return raw.strip().replace('_', ' ')


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str
    has_template: bool


# ===============================================================================
# DISPATCHER
# ===============================================================================

class NotificationService:

    @staticmethod
    def render(
        role: str,
        templates: Sequence[NotificationTemplate],
        notification_type: str,
        message: str,
        subject: str | None,
        country: str | None,
        variables: dict[str, Any] | None,
    ) -> RenderedMessage:
        template = pick_template(role, country, templates)
        return RenderedMessage(
            subject=resolve_subject(template, subject, notification_type),
            body=apply_variables(template.message if template else message, variables),
            has_template=template is not None,
        )

    @staticmethod
    def send_notification(  # noqa: PLR0913
        organization_id: uuid.UUID | str,
        notification_type: str,
        message: str,
        channels: Sequence[str],
        subject: str | None = None,
        variables: dict[str, Any] | None = None,
        country: str | None = None,
        trigger: str | None = None,
        client_id: uuid.UUID | str | None = None,
    ) -> Notification:
        """
        Deliver one notification on the given channels.

        Email and in-app delivery only happen for audiences that have a
        template; webhook delivery always fires. Exceptions from any channel
        are raised to the caller.
        """
        organization = Organization.objects.get(id=organization_id)
        templates = list(NotificationTemplate.objects.filter(
            organization=organization, type=notification_type
        ))
        user_msg = NotificationService.render(
            'user', templates, notification_type, message, subject, country, variables
        )
        admin_msg = NotificationService.render(
            'admin', templates, notification_type, message, subject, country, variables
        )

        client = Client.objects.filter(id=client_id).first() if client_id else None

        log = Notification.objects.create(
            organization=organization,
            type=notification_type,
            trigger=trigger or '',
            message=user_msg.body,
            channels=list(channels),
            country=country or '',
            target_client=client,
        )

        if NotificationChannel.EMAIL in channels:
            NotificationService._dispatch_email(organization, client, user_msg, admin_msg)
        if NotificationChannel.IN_APP in channels and user_msg.has_template:
            NotificationService._dispatch_in_app(organization, client, user_msg.body, country)
        if NotificationChannel.WEBHOOK in channels:
            NotificationService._dispatch_webhook(organization, notification_type, user_msg.body)
        if NotificationChannel.TELEGRAM in channels and admin_msg.has_template:
            NotificationService._dispatch_telegram(organization, admin_msg.body)

        logger.info(f"📨 [Notifications] {notification_type} dispatched on {', '.join(channels)} for org {organization.id}")
        return log

    @staticmethod
    def _dispatch_email(
        organization: Organization,
        client: Client | None,
        user_msg: RenderedMessage,
        admin_msg: RenderedMessage,
    ) -> None:
        from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', None)
        if admin_msg.has_template and organization.support_email:
            send_mail(admin_msg.subject, admin_msg.body, from_email, [organization.support_email])
        if user_msg.has_template and client is not None and client.email:
            send_mail(user_msg.subject, user_msg.body, from_email, [client.email])

    @staticmethod
    def _dispatch_in_app(organization: Organization, client: Client | None, body: str, country: str | None) -> None:
        InAppNotification.objects.create(
            organization=organization,
            client=client,
            title=body[:IN_APP_TITLE_LENGTH],
            message=body,
            country=country or '',
        )

    @staticmethod
    def _dispatch_webhook(organization: Organization, notification_type: str, body: str) -> None:
        if not organization.webhook_url:
            return
        response = requests.post(
            organization.webhook_url,
            json={'type': notification_type, 'message': body},
            timeout=settings.API_TIMEOUTS['REQUEST_TIMEOUT'],
        )
        response.raise_for_status()

    @staticmethod
    def _dispatch_telegram(organization: Organization, body: str) -> None:
        token = getattr(settings, 'TELEGRAM_BOT_TOKEN', '')
        if not token or not organization.telegram_chat_id or not body.strip():
            return
        response = requests.post(
            f"https://api.telegram.org/bot{token}/sendMessage",
            json={
                'chat_id': organization.telegram_chat_id,
                'text': to_telegram_html(body),
                'parse_mode': 'HTML',
                'disable_web_page_preview': True,
            },
            timeout=settings.API_TIMEOUTS['REQUEST_TIMEOUT'],
        )
        response.raise_for_status()
