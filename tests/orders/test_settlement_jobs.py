"""
Tests for the settlement job outbox and the order background tasks.
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from django_q.models import Schedule

from apps.affiliates.models import PointAction
from apps.affiliates.services import PointLedgerService
from apps.billing.models import OrderRevenue
from apps.common.types import ExternalServiceError
from apps.orders.models import SettlementJob
from apps.orders.services import OrderTransitionService, SettlementJobService
from apps.orders.tasks import (
    drain_settlement_jobs,
    process_order_settlement,
    setup_order_scheduled_tasks,
)
from tests.factories.commerce import (
    create_affiliate_settings,
    create_cart,
    create_client,
    create_exchange_rate,
    create_organization,
    create_product,
    place_order,
)

SNAPSHOT = 'apps.orders.services.RevenueSnapshotService.snapshot'


class SettlementJobTestBase(TestCase):

    def setUp(self):
        self.organization = create_organization()
        self.referrer = create_client(self.organization, 'rita')
        self.client_obj = create_client(self.organization, referred_by=self.referrer)
        self.product = create_product(
            self.organization, prices={'DE': '60.00'}, costs={'DE': '20.00'}, manage_stock=False
        )
        self.order = place_order(create_cart(self.client_obj, 'DE', lines=[(self.product, 2, '60.00')]))
        create_exchange_rate(date=timezone.now() - timedelta(minutes=1))

    def pay(self, order=None):
        order = order or self.order
        return OrderTransitionService.change_status(order.id, self.organization.id, 'paid').unwrap()

    def job(self, kind):
        return SettlementJob.objects.get(order=self.order, kind=kind)


class SettlementExecutionTestCase(SettlementJobTestBase):

    def test_paid_order_is_snapshotted_then_bonuses_awarded(self):
        create_affiliate_settings(self.organization, points_per_referral='10', spending_needed='100')
        self.pay()

        result = process_order_settlement(str(self.order.id))

        self.assertTrue(result['success'])
        self.assertEqual(result['jobs'], {'done': 2, 'failed': 0, 'dead': 0})
        revenue = OrderRevenue.objects.get(order=self.order)
        self.assertEqual(revenue.eur_total, Decimal('120.00'))

        referrer_balance = PointLedgerService.get_balance(self.referrer.id, self.organization.id)
        self.assertEqual(referrer_balance.points_current, Decimal('10.0'))
        spending = PointLedgerService.total_for_action(
            self.client_obj.id, self.organization.id, PointAction.SPENDING_BONUS
        )
        self.assertEqual(spending, Decimal('5.0'))
        self.assertEqual(self.job(SettlementJob.Kind.BONUS_EVALUATION).status, SettlementJob.Status.DONE)

    def test_rerunning_settlement_changes_nothing(self):
        create_affiliate_settings(self.organization)
        self.pay()
        process_order_settlement(str(self.order.id))

        # Re-arm both jobs as a duplicate paid transition would
        self.pay()
        SettlementJobService.enqueue(self.order, SettlementJob.Kind.BONUS_EVALUATION)
        process_order_settlement(str(self.order.id))

        self.assertEqual(OrderRevenue.objects.filter(order=self.order).count(), 1)
        self.assertEqual(
            PointLedgerService.get_balance(self.referrer.id, self.organization.id).points_current,
            Decimal('10.0'),
        )
        self.assertEqual(
            PointLedgerService.total_for_action(self.client_obj.id, self.organization.id, PointAction.SPENDING_BONUS),
            Decimal('5.0'),
        )

    def test_bonus_waits_for_revenue_snapshot(self):
        self.pay()
        with mock.patch(SNAPSHOT, side_effect=ExternalServiceError('currencylayer', 'down')):
            results = SettlementJobService.run_due_jobs(order_id=self.order.id)

        self.assertEqual(results, {'done': 0, 'failed': 2, 'dead': 0})
        bonus_job = self.job(SettlementJob.Kind.BONUS_EVALUATION)
        self.assertEqual(bonus_job.status, SettlementJob.Status.PENDING)
        self.assertIn('not ready', bonus_job.last_error)

    def test_failed_job_backs_off_exponentially(self):
        self.pay()
        with mock.patch(SNAPSHOT, side_effect=ExternalServiceError('coingecko', 'timeout')):
            SettlementJobService.run_due_jobs(order_id=self.order.id)

        job = self.job(SettlementJob.Kind.REVENUE_SNAPSHOT)
        self.assertEqual(job.attempts, 1)
        self.assertIn('coingecko: timeout', job.last_error)
        delay = (job.next_attempt_at - timezone.now()).total_seconds()
        self.assertGreater(delay, 20)
        self.assertLessEqual(delay, 30)

        # Not due yet, so a second run leaves it alone
        self.assertEqual(SettlementJobService.run_due_jobs(order_id=self.order.id)['failed'], 0)

    @override_settings(SETTLEMENT_JOB_MAX_ATTEMPTS=2)
    def test_job_dies_after_max_attempts(self):
        self.pay()
        job = self.job(SettlementJob.Kind.REVENUE_SNAPSHOT)

        with mock.patch(SNAPSHOT, side_effect=RuntimeError('boom')):
            SettlementJobService.run_due_jobs(order_id=self.order.id)
            SettlementJob.objects.filter(pk=job.pk).update(next_attempt_at=timezone.now())
            results = SettlementJobService.run_due_jobs(order_id=self.order.id)

        job.refresh_from_db()
        self.assertEqual(job.status, SettlementJob.Status.DEAD)
        self.assertEqual(job.attempts, 2)
        self.assertEqual(results['dead'], 1)

    def test_failing_job_does_not_block_other_orders(self):
        other = place_order(create_cart(self.client_obj, 'DE', lines=[(self.product, 1, '60.00')]))
        self.pay()
        self.pay(other)
        SettlementJob.objects.filter(order=self.order).delete()
        SettlementJobService.enqueue(self.order, SettlementJob.Kind.BONUS_EVALUATION)

        results = SettlementJobService.run_due_jobs()

        self.assertEqual(results['done'], 2)
        self.assertEqual(results['failed'], 1)
        self.assertTrue(OrderRevenue.objects.filter(order=other).exists())

    def test_enqueue_rearms_an_existing_job(self):
        self.pay()
        job = self.job(SettlementJob.Kind.REVENUE_SNAPSHOT)
        SettlementJob.objects.filter(pk=job.pk).update(status=SettlementJob.Status.DEAD, attempts=8)

        SettlementJobService.enqueue(self.order, SettlementJob.Kind.REVENUE_SNAPSHOT)

        job.refresh_from_db()
        self.assertEqual(job.status, SettlementJob.Status.PENDING)
        self.assertEqual(job.attempts, 0)


class SettlementSchedulingTestCase(SettlementJobTestBase):

    def test_settlement_is_queued_after_commit(self):
        with mock.patch('apps.orders.services.async_task') as async_task_mock:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                self.pay()

        self.assertEqual(len(callbacks), 1)
        async_task_mock.assert_called_once_with(
            'apps.orders.tasks.process_order_settlement', str(self.order.id)
        )

    def test_nothing_is_queued_when_transition_fails(self):
        with mock.patch('apps.orders.services.async_task') as async_task_mock:
            with self.captureOnCommitCallbacks(execute=True):
                with mock.patch(
                    'apps.orders.services.ReservationService.release', side_effect=RuntimeError('db gone')
                ):
                    result = OrderTransitionService.change_status(self.order.id, self.organization.id, 'cancelled')

        self.assertTrue(result.is_err())
        async_task_mock.assert_not_called()

    def test_drain_skips_when_lock_is_held(self):
        cache.add('drain_settlement_jobs_lock', True, 60)
        self.assertEqual(drain_settlement_jobs()['message'], 'Already running')

    def test_drain_runs_due_jobs(self):
        self.pay()
        result = drain_settlement_jobs()
        self.assertEqual(result['results']['done'], 2)
        self.assertIsNone(cache.get('drain_settlement_jobs_lock'))

    def test_scheduled_tasks_setup_is_idempotent(self):
        first = setup_order_scheduled_tasks()
        second = setup_order_scheduled_tasks()

        self.assertEqual(first, {'drain_settlement_jobs': 'created', 'drain_notification_outbox': 'created'})
        self.assertEqual(set(second.values()), {'already_exists'})
        schedule = Schedule.objects.get(name='order-drain-settlement-jobs')
        self.assertEqual(schedule.schedule_type, Schedule.MINUTES)
        self.assertEqual(schedule.minutes, 1)
