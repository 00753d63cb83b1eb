"""
Order Management Services for Tessera Platform
Status transitions, checkout and the post-commit settlement job runner.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_q.tasks import async_task

from apps.affiliates.bonus import BonusService
from apps.affiliates.models import PointAction
from apps.affiliates.services import POINTS_QUANTUM, PointLedgerService
from apps.billing.models import OrderRevenue
from apps.billing.revenue_service import RevenueSnapshotService
from apps.common.types import BusinessError, Err, NotFoundError, Ok, Result, ValidationError
from apps.common.validators import log_security_event
from apps.inventory.services import StockService
from apps.notifications.outbox import NotificationOutboxService

from .models import Cart, CartLine, Order, SettlementJob
from .status import (
    Effect,
    NotifyRule,
    OrderStatus,
    StatusNotification,
    TransitionPlan,
    parse_status,
    plan_transition,
)

logger = logging.getLogger(__name__)

NOTIFICATION_TRIGGER = 'order_status_change'


class OrderNotFoundError(NotFoundError):
    """Order missing or owned by another organization"""

    def __init__(self, order_id: Any):
        super().__init__('Order', order_id)


# ===============================================================================
# ORDER SERVICE PARAMETER OBJECTS
# ===============================================================================

@dataclass(frozen=True)
class TransitionOutcome:
    """What a status change did, for the API response and logs"""
    order_id: uuid.UUID
    old_status: str
    new_status: str
    effects: list[str] = field(default_factory=list)
    jobs: list[str] = field(default_factory=list)
    notifications_queued: int = 0


@dataclass
class CheckoutData:
    """Parameter object for placing an order from a cart"""
    cart_id: uuid.UUID | str
    organization_id: uuid.UUID | str
    payment_method: str = ''
    discount_total: Decimal = Decimal('0.00')
    shipping_total: Decimal = Decimal('0.00')
    points_redeemed: Decimal = Decimal('0')
    order_key: str | None = None


# ===============================================================================
# RESERVATION EFFECTS
# ===============================================================================

class ReservationService:
    """
    Stock and point effects of an order's cart.

    ``sign`` is -1 to reserve (take stock, charge points) and +1 to release.
    Both directions walk the same lines so a release restores exactly what the
    reservation took.
    """

    @staticmethod
    def _line_points(line: CartLine) -> Decimal:
        return (line.unit_price * line.quantity).quantize(POINTS_QUANTUM, rounding=ROUND_HALF_UP)

    @staticmethod
    def apply(order: Order, sign: int) -> None:
        reserving = sign < 0
        lines = (
            CartLine.objects
            .filter(cart_id=order.cart_id)
            .select_related('product', 'affiliate_product')
            .order_by('id')
        )
        for line in lines:
            StockService.adjust(line.item_id, line.variation_id, order.country, sign * line.quantity)

            if not line.is_affiliate:
                continue
            points = ReservationService._line_points(line)
            if not points:
                continue
            PointLedgerService.record(
                order.client_id,
                order.organization_id,
                sign * points,
                PointAction.PURCHASE_AFFILIATE if reserving else PointAction.REFUND_AFFILIATE,
                description=(
                    "Spent on affiliate purchase" if reserving else "Refund on cancelled order"
                ),
                order_id=order.id,
            )

        if order.points_redeemed > 0:
            PointLedgerService.record(
                order.client_id,
                order.organization_id,
                sign * order.points_redeemed,
                PointAction.REDEEM_POINTS if reserving else PointAction.REFUND_REDEEMED_POINTS,
                description=(
                    "Redeemed points for discount" if reserving
                    else "Refund redeemed points on cancelled order"
                ),
                order_id=order.id,
            )

        logger.info(f"{'🔒' if reserving else '🔓'} [Orders] {'Reserved' if reserving else 'Released'} order {order.id}")

    @staticmethod
    def reserve(order: Order) -> None:
        ReservationService.apply(order, -1)

    @staticmethod
    def release(order: Order) -> None:
        ReservationService.apply(order, +1)


# ===============================================================================
# ORDER NOTIFICATIONS
# ===============================================================================

class OrderNotificationService:

    @staticmethod
    def product_list(order: Order) -> str:
        lines = (
            CartLine.objects
            .filter(cart_id=order.cart_id)
            .select_related('product', 'affiliate_product')
            .order_by('id')
        )
        return '<br>'.join(f"x{line.quantity} {line.item_name}" for line in lines)

    @staticmethod
    def build_payload(order: Order) -> dict[str, Any]:
        product_list = OrderNotificationService.product_list(order)
        return {
            'subject': f"Order #{order.order_key} {order.status}",
            'message': f"Your order status is now <b>{order.status}</b><br>{product_list}",
            'variables': {
                'product_list': product_list,
                'order_key': order.order_key,
                'status': order.status,
            },
            'country': order.country,
            'client_id': str(order.client_id),
        }

    @staticmethod
    def enqueue(order: Order, notification: StatusNotification) -> int:
        """Queue the status notification if its rule allows; returns rows created"""
        if notification.rule == NotifyRule.NEVER or not notification.notification_type:
            return 0
        if notification.rule == NotifyRule.UNTIL_NOTIFIED and order.notified_paid_or_completed:
            logger.info(f"⏭️ [Orders] Order {order.id} already notified, skipping {notification.notification_type}")
            return 0

        stable = notification.rule in (NotifyRule.FIRST_TIME, NotifyRule.UNTIL_NOTIFIED)
        rows = NotificationOutboxService.enqueue_fanout(
            organization_id=order.organization_id,
            notification_type=notification.notification_type,
            channels=settings.ORDER_NOTIFICATION_CHANNELS,
            payload=OrderNotificationService.build_payload(order),
            order_id=order.id,
            trigger=NOTIFICATION_TRIGGER,
            # Repeatable events get a fresh key per transition
            dedupe_salt='' if stable else uuid.uuid4().hex,
            stable=stable,
        )
        return len(rows)


# ===============================================================================
# SETTLEMENT JOBS
# ===============================================================================

class SettlementJobService:
    """Durable revenue/bonus work written with the transition and run after commit"""

    # Revenue first: the spending bonus reads the snapshot
    KIND_PRIORITY: ClassVar[dict[str, int]] = {
        SettlementJob.Kind.REVENUE_SNAPSHOT: 0,
        SettlementJob.Kind.BONUS_EVALUATION: 1,
    }

    @staticmethod
    def enqueue(order: Order, kind: str) -> SettlementJob:
        """Create the job, or re-arm an existing one for another run"""
        job, created = SettlementJob.objects.get_or_create(
            order=order,
            kind=kind,
            defaults={
                'organization_id': order.organization_id,
                'max_attempts': getattr(settings, 'SETTLEMENT_JOB_MAX_ATTEMPTS', 8),
            },
        )
        if not created:
            job.status = SettlementJob.Status.PENDING
            job.attempts = 0
            job.last_error = ''
            job.next_attempt_at = timezone.now()
            job.save(update_fields=['status', 'attempts', 'last_error', 'next_attempt_at', 'updated_at'])
        return job

    @staticmethod
    def enqueue_for_plan(order: Order, plan: TransitionPlan) -> list[str]:
        kinds: list[str] = []
        if plan.has(Effect.SNAPSHOT_REVENUE):
            kinds.append(SettlementJob.Kind.REVENUE_SNAPSHOT)
        if plan.has(Effect.EVALUATE_BONUS):
            kinds.append(SettlementJob.Kind.BONUS_EVALUATION)
        for kind in kinds:
            SettlementJobService.enqueue(order, kind)
        return [str(kind) for kind in kinds]

    @staticmethod
    def execute(job: SettlementJob) -> None:
        if job.kind == SettlementJob.Kind.REVENUE_SNAPSHOT:
            RevenueSnapshotService.snapshot(job.order_id, job.organization_id)
            return
        if job.kind == SettlementJob.Kind.BONUS_EVALUATION:
            if not OrderRevenue.objects.filter(order_id=job.order_id).exists():
                raise BusinessError(f"revenue snapshot for order {job.order_id} not ready", 'revenue_pending')
            BonusService.evaluate(job.order_id, job.order.client_id, job.organization_id)
            return
        raise ValidationError('kind', f"unknown settlement job kind {job.kind!r}")

    @staticmethod
    def run_due_jobs(order_id: uuid.UUID | str | None = None, limit: int = 50) -> dict[str, int]:
        """
        Run pending jobs whose ``next_attempt_at`` has passed. A failing job is
        logged, kept pending with exponential backoff and marked dead after
        ``max_attempts``; it never affects the other jobs in the batch.
        """
        due = SettlementJob.objects.filter(
            status=SettlementJob.Status.PENDING,
            next_attempt_at__lte=timezone.now(),
        )
        if order_id is not None:
            due = due.filter(order_id=order_id)
        candidates = list(due.order_by('next_attempt_at').values_list('id', 'kind')[:limit])
        candidates.sort(key=lambda item: SettlementJobService.KIND_PRIORITY.get(item[1], 99))

        base_delay = getattr(settings, 'SETTLEMENT_RETRY_BASE_SECONDS', 30)
        max_delay = getattr(settings, 'SETTLEMENT_RETRY_MAX_SECONDS', 3600)
        results = {'done': 0, 'failed': 0, 'dead': 0}

        for job_id, _kind in candidates:
            with transaction.atomic():
                job = (
                    SettlementJob.objects.select_for_update(of=('self',))
                    .select_related('order')
                    .filter(pk=job_id, status=SettlementJob.Status.PENDING)
                    .first()
                )
                if job is None:
                    continue
                try:
                    with transaction.atomic():
                        SettlementJobService.execute(job)
                except Exception as e:
                    logger.exception(f"🔥 [Settlement] {job.kind} for order {job.order_id} failed: {e}")
                    job.schedule_retry(str(e), base_delay, max_delay)
                    if job.status == SettlementJob.Status.DEAD:
                        results['dead'] += 1
                    else:
                        results['failed'] += 1
                    continue

                job.status = SettlementJob.Status.DONE
                job.completed_at = timezone.now()
                job.last_error = ''
                job.save(update_fields=['status', 'completed_at', 'last_error', 'updated_at'])
                results['done'] += 1

        if candidates:
            logger.info(f"✅ [Settlement] Ran {len(candidates)} job(s): {results}")
        return results


# ===============================================================================
# ORDER TRANSITION SERVICE
# ===============================================================================

class OrderTransitionService:

    @staticmethod
    def schedule_settlement(order_id: uuid.UUID) -> None:
        """Hand this order's post-commit work to the task queue once the transaction commits"""
        transaction.on_commit(
            lambda: async_task('apps.orders.tasks.process_order_settlement', str(order_id))
        )

    @staticmethod
    def _persist_status(order: Order, plan: TransitionPlan) -> None:
        now = timezone.now()
        order.status = plan.new
        update_fields = ['status', 'updated_at']

        # First-reached timestamps are never overwritten
        if plan.timestamp_field and getattr(order, plan.timestamp_field) is None:
            setattr(order, plan.timestamp_field, now)
            update_fields.append(plan.timestamp_field)

        if plan.new == OrderStatus.UNDERPAID:
            order.order_meta = [
                *(order.order_meta or []),
                {'event': 'underpaid', 'date': now.isoformat()},
            ]
            update_fields.append('order_meta')

        order.save(update_fields=update_fields)

    @staticmethod
    def change_status(
        order_id: uuid.UUID | str,
        organization_id: uuid.UUID | str,
        new_status: str,
    ) -> Result[TransitionOutcome, str]:
        """
        Move an order to ``new_status`` and settle everything that depends on it.

        Raises InvalidOrderStatusError before touching the database for an
        unknown status and OrderNotFoundError for an order outside the
        organization. Any other failure rolls the whole transition back and
        is returned as Err.
        """
        target = parse_status(new_status)

        try:
            with transaction.atomic():
                order = (
                    Order.objects.select_for_update()
                    .filter(id=order_id, organization_id=organization_id)
                    .first()
                )
                if order is None:
                    raise OrderNotFoundError(order_id)

                plan = plan_transition(order.status, target)

                if plan.became_active:
                    ReservationService.reserve(order)
                if plan.became_inactive:
                    ReservationService.release(order)
                if plan.has(Effect.VOID_REVENUE):
                    RevenueSnapshotService.mark_void(order.id, target)
                if plan.has(Effect.RESTORE_REVENUE):
                    RevenueSnapshotService.restore(order.id)

                OrderTransitionService._persist_status(order, plan)

                jobs = SettlementJobService.enqueue_for_plan(order, plan)
                queued = OrderNotificationService.enqueue(order, plan.notification)
                OrderTransitionService.schedule_settlement(order.id)

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            logger.exception(f"🔥 [Orders] Status change {order_id} → {target} rolled back: {e}")
            return Err(f"Failed to change order status: {e!s}")

        log_security_event(
            'order_status_changed',
            {
                'order_id': str(order.id),
                'organization_id': str(organization_id),
                'old_status': plan.old,
                'new_status': plan.new,
            },
        )
        logger.info(f"🔄 [Orders] Order {order.id}: {plan.old} → {plan.new} (jobs={jobs}, notifications={queued})")

        return Ok(TransitionOutcome(
            order_id=order.id,
            old_status=str(plan.old),
            new_status=str(plan.new),
            effects=sorted(effect.value for effect in plan.effects),
            jobs=jobs,
            notifications_queued=queued,
        ))


# ===============================================================================
# CHECKOUT
# ===============================================================================

class OrderNumberingService:

    @staticmethod
    def next_order_key(organization_id: uuid.UUID | str) -> str:
        """Sequential per-organization key, ``YYYY-000123``"""
        year = timezone.now().year
        count = Order.objects.filter(organization_id=organization_id, created_at__year=year).count()
        return f"{year}-{count + 1:06d}"


class CheckoutService:

    @staticmethod
    def place_order(data: CheckoutData) -> Result[Order, str]:
        """
        Turn a cart into an ``open`` order, reserving stock and points in the
        same transaction, and queue the ``order_placed`` notification.
        """
        try:
            with transaction.atomic():
                cart = (
                    Cart.objects.select_related('client')
                    .filter(id=data.cart_id, organization_id=data.organization_id)
                    .first()
                )
                if cart is None:
                    raise NotFoundError('Cart', data.cart_id)

                lines = list(CartLine.objects.filter(cart=cart))
                if not lines:
                    raise ValidationError('cart', 'cart has no lines')

                # Affiliate lines are priced in points, not money
                subtotal = sum(
                    (line.unit_price * line.quantity for line in lines if not line.is_affiliate),
                    Decimal('0.00'),
                )
                total = subtotal - data.discount_total + data.shipping_total

                order = Order.objects.create(
                    organization_id=data.organization_id,
                    client=cart.client,
                    cart=cart,
                    order_key=data.order_key or OrderNumberingService.next_order_key(data.organization_id),
                    status=OrderStatus.OPEN,
                    country=cart.country,
                    payment_method=data.payment_method,
                    subtotal=subtotal,
                    discount_total=data.discount_total,
                    shipping_total=data.shipping_total,
                    total_amount=max(total, Decimal('0.00')),
                    points_redeemed=data.points_redeemed,
                )

                ReservationService.reserve(order)
                queued = OrderNotificationService.enqueue(
                    order, plan_transition(OrderStatus.OPEN, OrderStatus.OPEN).notification
                )
                OrderTransitionService.schedule_settlement(order.id)

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            logger.exception(f"🔥 [Checkout] Failed to place order for cart {data.cart_id}: {e}")
            return Err(f"Failed to place order: {e!s}")

        log_security_event(
            'order_created',
            {
                'order_id': str(order.id),
                'order_key': order.order_key,
                'organization_id': str(data.organization_id),
                'client_id': str(order.client_id),
                'total_amount': str(order.total_amount),
            },
        )
        logger.info(f"🛒 [Checkout] Placed order #{order.order_key} ({order.id}), {queued} notification(s) queued")
        return Ok(order)
