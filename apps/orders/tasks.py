"""
Order settlement background tasks.

Django-Q2 tasks that run the post-commit work of order status changes:
settlement jobs (revenue snapshots, bonus evaluation) and the notification
outbox. Every entry point is safe to run more than once.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.core.cache import cache
from django_q.models import Schedule
from django_q.tasks import async_task, schedule

from apps.common.logging import clear_request_context, set_request_context
from apps.notifications.outbox import NotificationOutboxService
from apps.orders.services import SettlementJobService

logger = logging.getLogger(__name__)

# Task configuration
TASK_TIME_LIMIT = 300  # 5 minutes
DRAIN_LOCK_TIMEOUT = 120
SETTLEMENT_BATCH_SIZE = 50
OUTBOX_BATCH_SIZE = 25

CLUSTER_NAME = 'tessera-cluster'


def process_order_settlement(order_id: str) -> dict[str, Any]:
    """
    Run the due settlement jobs and pending notifications of one order.

    Queued from ``transaction.on_commit`` after a status change. Failures are
    recorded on the job/outbox rows and picked up again by the scheduled drains.
    """
    set_request_context(request_id=f"job:{uuid.uuid4()}")
    try:
        logger.info(f"🔄 [Settlement] Post-commit work for order {order_id}")
        jobs = SettlementJobService.run_due_jobs(order_id=order_id)
        notifications = NotificationOutboxService.drain(limit=OUTBOX_BATCH_SIZE, order_id=order_id)
        return {'success': True, 'order_id': order_id, 'jobs': jobs, 'notifications': notifications}
    finally:
        clear_request_context()


def _run_locked(lock_key: str, label: str, func: Any) -> dict[str, Any]:
    # cache.add is atomic, so only one worker holds the drain at a time
    if not cache.add(lock_key, True, DRAIN_LOCK_TIMEOUT):
        logger.info(f"⏭️ [{label}] Drain already running, skipping")
        return {'success': True, 'message': 'Already running'}

    set_request_context(request_id=f"job:{uuid.uuid4()}")
    try:
        return {'success': True, 'results': func()}
    finally:
        cache.delete(lock_key)
        clear_request_context()


def drain_settlement_jobs() -> dict[str, Any]:
    """Retry every due settlement job across all organizations."""
    return _run_locked(
        'drain_settlement_jobs_lock',
        'Settlement',
        lambda: SettlementJobService.run_due_jobs(limit=SETTLEMENT_BATCH_SIZE),
    )


def drain_notification_outbox() -> dict[str, Any]:
    """Deliver due notification outbox rows across all organizations."""
    return _run_locked(
        'drain_notification_outbox_lock',
        'Outbox',
        lambda: NotificationOutboxService.drain(limit=OUTBOX_BATCH_SIZE),
    )


# ===============================================================================
# TASK QUEUE WRAPPER FUNCTIONS
# ===============================================================================

def drain_settlement_jobs_async() -> str:
    return async_task('apps.orders.tasks.drain_settlement_jobs', timeout=TASK_TIME_LIMIT)


def drain_notification_outbox_async() -> str:
    return async_task('apps.orders.tasks.drain_notification_outbox', timeout=TASK_TIME_LIMIT)


# ===============================================================================
# SCHEDULED TASKS SETUP
# ===============================================================================

SCHEDULED_TASKS: dict[str, tuple[str, str]] = {
    'drain_settlement_jobs': ('order-drain-settlement-jobs', 'apps.orders.tasks.drain_settlement_jobs'),
    'drain_notification_outbox': ('order-drain-notification-outbox', 'apps.orders.tasks.drain_notification_outbox'),
}


def setup_order_scheduled_tasks() -> dict[str, str]:
    """Set up the every-minute settlement and outbox drains."""
    tasks_created: dict[str, str] = {}

    existing_tasks = set(Schedule.objects.filter(
        name__in=[name for name, _func in SCHEDULED_TASKS.values()]
    ).values_list('name', flat=True))

    for key, (name, func) in SCHEDULED_TASKS.items():
        if name in existing_tasks:
            tasks_created[key] = 'already_exists'
            continue
        schedule(
            func,
            schedule_type=Schedule.MINUTES,
            minutes=1,
            name=name,
            cluster=CLUSTER_NAME,
        )
        tasks_created[key] = 'created'

    logger.info(f"✅ [OrderTasks] Scheduled tasks setup: {tasks_created}")
    return tasks_created
