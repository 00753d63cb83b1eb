"""
Notification outbox for Tessera Platform.

Rows are written inside the business transaction that caused them and
delivered later, one channel per row. The unique ``dedupe_key`` makes every
enqueue idempotent: a stable key (organization, order, type, channel) means
"at most once per order", while a content hash with a per-event salt lets
repeatable events such as partial payments notify every time.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import uuid
from collections.abc import Sequence
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.orders.models import Order

from .models import NotificationOutbox, NotificationType
from .services import NotificationService

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 15
BACKOFF_MAX_SECONDS = 30 * 60
BACKOFF_JITTER_MS = 5000


def make_dedupe_key(data: dict[str, Any]) -> str:
    """sha256 over sorted-key JSON"""
    encoded = json.dumps(data, sort_keys=True, default=str, separators=(',', ':'))
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def stable_order_key(organization_id: Any, order_id: Any, notification_type: str, channel: str) -> str:
    return f"{organization_id}:{order_id}:{notification_type}:{channel}"


def retry_delay(attempts: int) -> timedelta:
    """15s doubling per attempt, capped at 30 minutes, plus up to 5s jitter"""
    backoff = min(BACKOFF_BASE_SECONDS * 2 ** (attempts - 1), BACKOFF_MAX_SECONDS)
    jitter_ms = secrets.randbelow(BACKOFF_JITTER_MS)
    return timedelta(seconds=backoff, milliseconds=jitter_ms)


class NotificationOutboxService:

    @staticmethod
    def enqueue_fanout(  # noqa: PLR0913
        organization_id: uuid.UUID | str,
        notification_type: str,
        channels: Sequence[str],
        payload: dict[str, Any],
        order_id: uuid.UUID | str | None = None,
        trigger: str = '',
        dedupe_salt: str = '',
        stable: bool = False,
    ) -> list[NotificationOutbox]:
        """
        Queue one row per channel, skipping channels whose dedupe key already exists.
        Returns the rows actually created.
        """
        created_rows: list[NotificationOutbox] = []
        max_attempts = getattr(settings, 'NOTIFICATION_OUTBOX_MAX_ATTEMPTS', 8)

        for channel in channels:
            if stable and order_id:
                dedupe_key = stable_order_key(organization_id, order_id, notification_type, channel)
            else:
                dedupe_key = make_dedupe_key({
                    'org': str(organization_id),
                    'order': str(order_id) if order_id else None,
                    'type': notification_type,
                    'trigger': trigger or None,
                    'channel': channel,
                    'salt': dedupe_salt,
                    'client_id': payload.get('client_id'),
                    'vars': payload.get('variables') or {},
                    'subject': payload.get('subject') or '',
                    'message': payload.get('message') or '',
                })

            if NotificationOutbox.objects.filter(dedupe_key=dedupe_key).exists():
                logger.info(f"⏭️ [Outbox] {notification_type}/{channel} already queued ({dedupe_key[:16]}…)")
                continue

            try:
                with transaction.atomic():
                    row = NotificationOutbox.objects.create(
                        organization_id=organization_id,
                        order_id=order_id,
                        type=notification_type,
                        trigger=trigger,
                        channel=channel,
                        payload=payload,
                        dedupe_key=dedupe_key,
                        max_attempts=max_attempts,
                    )
            except IntegrityError:
                # Concurrent enqueue won the race for this key
                continue
            created_rows.append(row)

        if created_rows:
            logger.info(
                f"📥 [Outbox] Queued {notification_type} on {len(created_rows)} channel(s)"
                f" for order {order_id}"
            )
        return created_rows

    @staticmethod
    def deliver(row: NotificationOutbox) -> None:
        """Send one outbox row on its single channel"""
        payload = row.payload if isinstance(row.payload, dict) else json.loads(row.payload)
        NotificationService.send_notification(
            organization_id=row.organization_id,
            notification_type=row.type,
            message=payload.get('message', ''),
            channels=[row.channel],
            subject=payload.get('subject'),
            variables=payload.get('variables'),
            country=payload.get('country'),
            trigger=row.trigger or None,
            client_id=payload.get('client_id'),
        )

    @staticmethod
    def drain(limit: int = 10, order_id: uuid.UUID | str | None = None) -> dict[str, int]:
        """
        Deliver up to ``limit`` due rows. Failures are recorded on the row with
        exponential backoff; a row is dead once it reaches ``max_attempts``.
        """
        due = NotificationOutbox.objects.filter(status='pending', next_attempt_at__lte=timezone.now())
        if order_id is not None:
            due = due.filter(order_id=order_id)
        row_ids = list(due.order_by('created_at').values_list('id', flat=True)[:limit])

        sent = 0
        failed = 0
        for row_id in row_ids:
            with transaction.atomic():
                row = (
                    NotificationOutbox.objects.select_for_update()
                    .filter(pk=row_id, status='pending')
                    .first()
                )
                if row is None:
                    continue
                try:
                    with transaction.atomic():
                        NotificationOutboxService.deliver(row)
                except Exception as e:
                    failed += 1
                    row.attempts += 1
                    row.last_error = str(e)[:2000]
                    row.next_attempt_at = timezone.now() + retry_delay(row.attempts)
                    if row.attempts >= row.max_attempts:
                        row.status = 'dead'
                    row.save(update_fields=['attempts', 'last_error', 'next_attempt_at', 'status', 'updated_at'])
                    logger.warning(
                        f"⚠️ [Outbox] {row.type}/{row.channel} failed (attempt {row.attempts}/{row.max_attempts}): {e}"
                    )
                    continue

                row.status = 'sent'
                row.last_error = ''
                row.save(update_fields=['status', 'last_error', 'updated_at'])
                if row.order_id and row.type == NotificationType.ORDER_COMPLETED:
                    Order.objects.filter(pk=row.order_id).update(
                        notified_paid_or_completed=True,
                        updated_at=timezone.now(),
                    )
                sent += 1

        if row_ids:
            logger.info(f"📤 [Outbox] Drained {len(row_ids)} row(s): {sent} sent, {failed} failed")
        return {'done': len(row_ids), 'sent': sent, 'failed': failed}
