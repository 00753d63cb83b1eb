"""
Order lifecycle states and the transition table.

Statuses fall into two partitions. ACTIVE orders hold a reservation (stock
taken, points charged); INACTIVE orders hold none. Effects are attached to
crossing the partition boundary, never to the individual status, so a move
inside one partition (open → underpaid, cancelled → refunded) reserves or
releases nothing.

Every (old, new) pair is precomputed into TRANSITIONS at import time. Asking
for a plan with an unknown status raises InvalidOrderStatusError before any
database work happens.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.types import ValidationError


class OrderStatus(models.TextChoices):
    OPEN = 'open', _('Open')
    UNDERPAID = 'underpaid', _('Underpaid')
    PAID = 'paid', _('Paid')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')
    FAILED = 'failed', _('Failed')
    REFUNDED = 'refunded', _('Refunded')


ACTIVE_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.OPEN,
    OrderStatus.UNDERPAID,
    OrderStatus.PAID,
    OrderStatus.COMPLETED,
})
INACTIVE_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.FAILED,
    OrderStatus.REFUNDED,
})


class InvalidOrderStatusError(ValidationError):
    """Status value outside the known lifecycle"""

    def __init__(self, value: object):
        self.value = value
        super().__init__('status', f"unknown order status {value!r}")


class Effect(enum.Enum):
    RESERVE = 'reserve'                      # take stock, charge points
    RELEASE = 'release'                      # restock, refund points
    VOID_REVENUE = 'void_revenue'            # flag an existing snapshot cancelled/refunded
    RESTORE_REVENUE = 'restore_revenue'      # clear those flags on re-activation
    SNAPSHOT_REVENUE = 'snapshot_revenue'    # enqueue revenue snapshot job
    EVALUATE_BONUS = 'evaluate_bonus'        # enqueue referral/spending bonus job


class NotifyRule(enum.Enum):
    NEVER = 'never'
    FIRST_TIME = 'first_time'            # stable dedupe key, so only the first entry delivers
    ALWAYS = 'always'                    # fresh dedupe key on every entry
    UNTIL_NOTIFIED = 'until_notified'    # stable key and skipped once notified_paid_or_completed


@dataclass(frozen=True)
class StatusNotification:
    notification_type: str | None
    rule: NotifyRule


# Notification behaviour on entering each status
STATUS_NOTIFICATIONS: dict[OrderStatus, StatusNotification] = {
    OrderStatus.OPEN: StatusNotification('order_placed', NotifyRule.FIRST_TIME),
    OrderStatus.UNDERPAID: StatusNotification('order_partially_paid', NotifyRule.ALWAYS),
    OrderStatus.PAID: StatusNotification('order_paid', NotifyRule.UNTIL_NOTIFIED),
    OrderStatus.COMPLETED: StatusNotification('order_completed', NotifyRule.UNTIL_NOTIFIED),
    OrderStatus.CANCELLED: StatusNotification('order_cancelled', NotifyRule.ALWAYS),
    OrderStatus.REFUNDED: StatusNotification('order_refunded', NotifyRule.ALWAYS),
    OrderStatus.FAILED: StatusNotification(None, NotifyRule.NEVER),
}

# "First reached" timestamp column per status
STATUS_TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.UNDERPAID: 'date_underpaid',
    OrderStatus.PAID: 'date_paid',
    OrderStatus.COMPLETED: 'date_completed',
    OrderStatus.CANCELLED: 'date_cancelled',
    OrderStatus.REFUNDED: 'date_refunded',
}


@dataclass(frozen=True)
class TransitionPlan:
    old: OrderStatus
    new: OrderStatus
    effects: frozenset[Effect]
    notification: StatusNotification
    timestamp_field: str | None

    @property
    def became_active(self) -> bool:
        return Effect.RESERVE in self.effects

    @property
    def became_inactive(self) -> bool:
        return Effect.RELEASE in self.effects

    def has(self, effect: Effect) -> bool:
        return effect in self.effects


def parse_status(value: object) -> OrderStatus:
    """Coerce a raw value to OrderStatus or raise InvalidOrderStatusError"""
    try:
        return OrderStatus(value)
    except ValueError as e:
        raise InvalidOrderStatusError(value) from e


def is_active(status: OrderStatus) -> bool:
    return status in ACTIVE_STATUSES


def is_inactive(status: OrderStatus) -> bool:
    return status in INACTIVE_STATUSES


def _effects_for(old: OrderStatus, new: OrderStatus) -> frozenset[Effect]:
    effects: set[Effect] = set()
    if is_active(new) and not is_active(old):
        effects.update({Effect.RESERVE, Effect.RESTORE_REVENUE})
    if is_inactive(new) and not is_inactive(old):
        effects.update({Effect.RELEASE, Effect.VOID_REVENUE})
    if new == OrderStatus.PAID:
        effects.add(Effect.SNAPSHOT_REVENUE)
        if old != OrderStatus.PAID:
            effects.add(Effect.EVALUATE_BONUS)
    return frozenset(effects)


def _build_transition_table() -> dict[tuple[OrderStatus, OrderStatus], TransitionPlan]:
    table: dict[tuple[OrderStatus, OrderStatus], TransitionPlan] = {}
    for old in OrderStatus:
        for new in OrderStatus:
            table[(old, new)] = TransitionPlan(
                old=old,
                new=new,
                effects=_effects_for(old, new),
                notification=STATUS_NOTIFICATIONS[new],
                timestamp_field=STATUS_TIMESTAMP_FIELDS.get(new),
            )
    return table


TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], TransitionPlan] = _build_transition_table()


def plan_transition(old: object, new: object) -> TransitionPlan:
    """Look up the plan for moving an order from ``old`` to ``new``"""
    return TRANSITIONS[(parse_status(old), parse_status(new))]
