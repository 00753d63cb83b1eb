"""
Tests for the order status transition table.
Pure lookups, no database access.
"""

from django.test import SimpleTestCase

from apps.orders.status import (
    ACTIVE_STATUSES,
    INACTIVE_STATUSES,
    TRANSITIONS,
    Effect,
    InvalidOrderStatusError,
    NotifyRule,
    OrderStatus,
    parse_status,
    plan_transition,
)


class StatusPartitionTestCase(SimpleTestCase):

    def test_every_status_is_in_exactly_one_partition(self):
        self.assertEqual(ACTIVE_STATUSES | INACTIVE_STATUSES, set(OrderStatus))
        self.assertFalse(ACTIVE_STATUSES & INACTIVE_STATUSES)

    def test_table_covers_every_pair(self):
        self.assertEqual(len(TRANSITIONS), len(OrderStatus) ** 2)

    def test_parse_status_rejects_unknown_values(self):
        with self.assertRaises(InvalidOrderStatusError) as ctx:
            parse_status('shipped')
        self.assertEqual(ctx.exception.value, 'shipped')
        self.assertEqual(ctx.exception.field, 'status')

    def test_parse_status_accepts_raw_strings(self):
        self.assertEqual(parse_status('paid'), OrderStatus.PAID)


class TransitionEffectsTestCase(SimpleTestCase):

    def test_leaving_active_releases_and_voids(self):
        for old in ACTIVE_STATUSES:
            for new in INACTIVE_STATUSES:
                plan = plan_transition(old, new)
                self.assertTrue(plan.became_inactive, f"{old} → {new}")
                self.assertTrue(plan.has(Effect.VOID_REVENUE))
                self.assertFalse(plan.became_active)

    def test_entering_active_reserves_and_restores(self):
        for old in INACTIVE_STATUSES:
            for new in ACTIVE_STATUSES:
                plan = plan_transition(old, new)
                self.assertTrue(plan.became_active, f"{old} → {new}")
                self.assertTrue(plan.has(Effect.RESTORE_REVENUE))
                self.assertFalse(plan.became_inactive)

    def test_moves_inside_a_partition_touch_no_reservation(self):
        plans = [
            plan_transition(OrderStatus.OPEN, OrderStatus.UNDERPAID),
            plan_transition(OrderStatus.PAID, OrderStatus.COMPLETED),
            plan_transition(OrderStatus.CANCELLED, OrderStatus.REFUNDED),
            plan_transition(OrderStatus.FAILED, OrderStatus.CANCELLED),
        ]
        for plan in plans:
            self.assertFalse(plan.became_active)
            self.assertFalse(plan.became_inactive)

    def test_first_entry_to_paid_snapshots_and_evaluates_bonus(self):
        plan = plan_transition(OrderStatus.OPEN, OrderStatus.PAID)
        self.assertTrue(plan.has(Effect.SNAPSHOT_REVENUE))
        self.assertTrue(plan.has(Effect.EVALUATE_BONUS))

    def test_paid_to_paid_snapshots_without_bonus(self):
        plan = plan_transition(OrderStatus.PAID, OrderStatus.PAID)
        self.assertTrue(plan.has(Effect.SNAPSHOT_REVENUE))
        self.assertFalse(plan.has(Effect.EVALUATE_BONUS))

    def test_cancelled_to_paid_reserves_again(self):
        plan = plan_transition(OrderStatus.CANCELLED, OrderStatus.PAID)
        self.assertEqual(
            plan.effects,
            frozenset({Effect.RESERVE, Effect.RESTORE_REVENUE, Effect.SNAPSHOT_REVENUE, Effect.EVALUATE_BONUS}),
        )

    def test_completed_does_not_snapshot(self):
        plan = plan_transition(OrderStatus.PAID, OrderStatus.COMPLETED)
        self.assertFalse(plan.has(Effect.SNAPSHOT_REVENUE))
        self.assertEqual(plan.timestamp_field, 'date_completed')


class TransitionNotificationTestCase(SimpleTestCase):

    def test_notification_rules_per_target(self):
        expected = {
            OrderStatus.OPEN: ('order_placed', NotifyRule.FIRST_TIME),
            OrderStatus.UNDERPAID: ('order_partially_paid', NotifyRule.ALWAYS),
            OrderStatus.PAID: ('order_paid', NotifyRule.UNTIL_NOTIFIED),
            OrderStatus.COMPLETED: ('order_completed', NotifyRule.UNTIL_NOTIFIED),
            OrderStatus.CANCELLED: ('order_cancelled', NotifyRule.ALWAYS),
            OrderStatus.REFUNDED: ('order_refunded', NotifyRule.ALWAYS),
            OrderStatus.FAILED: (None, NotifyRule.NEVER),
        }
        for status, (notification_type, rule) in expected.items():
            notification = plan_transition(OrderStatus.OPEN, status).notification
            self.assertEqual(notification.notification_type, notification_type)
            self.assertEqual(notification.rule, rule)

    def test_open_and_failed_have_no_timestamp(self):
        self.assertIsNone(plan_transition(OrderStatus.PAID, OrderStatus.OPEN).timestamp_field)
        self.assertIsNone(plan_transition(OrderStatus.PAID, OrderStatus.FAILED).timestamp_field)
