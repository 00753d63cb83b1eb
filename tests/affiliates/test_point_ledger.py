"""
Tests for PointLedgerService
Balances, the spent floor and one-decimal point precision.
"""

from decimal import Decimal

from django.test import TestCase

from apps.affiliates.models import PointAction, PointBalance, PointLog
from apps.affiliates.services import PointLedgerService, normalize_points
from apps.common.types import ValidationError
from tests.factories.commerce import create_client, create_organization


class PointLedgerTestCase(TestCase):

    def setUp(self):
        self.organization = create_organization()
        self.client_obj = create_client(self.organization)

    def record(self, points, action, **kwargs):
        return PointLedgerService.record(self.client_obj.id, self.organization.id, points, action, **kwargs)

    def balance(self):
        return PointLedgerService.get_balance(self.client_obj.id, self.organization.id)

    def test_missing_balance_reads_as_zero(self):
        balance = self.balance()
        self.assertEqual(balance.points_current, Decimal('0'))
        self.assertEqual(balance.points_spent, Decimal('0'))

    def test_award_creates_balance_and_log(self):
        log = self.record(Decimal('12.5'), PointAction.REVIEW_BONUS, description='Review bonus')

        self.assertEqual(log.points, Decimal('12.5'))
        self.assertEqual(log.description, 'Review bonus')
        self.assertEqual(PointBalance.objects.count(), 1)
        self.assertEqual(self.balance().points_current, Decimal('12.5'))
        self.assertEqual(self.balance().points_spent, Decimal('0'))

    def test_purchase_moves_points_to_spent(self):
        self.record(50, PointAction.MANUAL_ADJUSTMENT)
        self.record(Decimal('-20.5'), PointAction.PURCHASE_AFFILIATE)

        balance = self.balance()
        self.assertEqual(balance.points_current, Decimal('29.5'))
        self.assertEqual(balance.points_spent, Decimal('20.5'))

    def test_spent_never_goes_below_zero(self):
        self.record(10, PointAction.REFUND_AFFILIATE)

        balance = self.balance()
        self.assertEqual(balance.points_current, Decimal('10'))
        self.assertEqual(balance.points_spent, Decimal('0'))

    def test_negative_manual_award_counts_as_spent(self):
        self.record(30, PointAction.MANUAL_ADJUSTMENT)
        self.record(-5, PointAction.MANUAL_ADJUSTMENT)

        balance = self.balance()
        self.assertEqual(balance.points_current, Decimal('25'))
        self.assertEqual(balance.points_spent, Decimal('5'))

    def test_current_may_go_negative(self):
        self.record(-15, PointAction.REDEEM_POINTS)
        self.assertEqual(self.balance().points_current, Decimal('-15'))

    def test_balance_matches_sum_of_logs(self):
        for points, action in [
            (40, PointAction.REFERRAL_BONUS),
            (Decimal('-12.3'), PointAction.PURCHASE_AFFILIATE),
            (Decimal('12.3'), PointAction.REFUND_AFFILIATE),
            (Decimal('7.7'), PointAction.SPENDING_BONUS),
        ]:
            self.record(points, action)

        logged = sum(PointLog.objects.filter(client=self.client_obj).values_list('points', flat=True))
        self.assertEqual(self.balance().points_current, logged)

    def test_more_than_one_decimal_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.record(Decimal('1.25'), PointAction.MANUAL_ADJUSTMENT)
        self.assertFalse(PointLog.objects.exists())

    def test_credit_and_debit_require_positive_amounts(self):
        with self.assertRaises(ValidationError):
            PointLedgerService.credit(self.client_obj.id, self.organization.id, 0, PointAction.REVIEW_BONUS)
        with self.assertRaises(ValidationError):
            PointLedgerService.debit(self.client_obj.id, self.organization.id, -3, PointAction.REDEEM_POINTS)

        PointLedgerService.debit(self.client_obj.id, self.organization.id, 3, PointAction.REDEEM_POINTS)
        self.assertEqual(self.balance().points_current, Decimal('-3'))

    def test_total_for_action(self):
        self.record(5, PointAction.SPENDING_BONUS)
        self.record(5, PointAction.SPENDING_BONUS)
        self.record(9, PointAction.REVIEW_BONUS)

        total = PointLedgerService.total_for_action(
            self.client_obj.id, self.organization.id, PointAction.SPENDING_BONUS
        )
        self.assertEqual(total, Decimal('10'))

    def test_balances_are_per_organization(self):
        other = create_organization('other')
        PointLedgerService.record(self.client_obj.id, other.id, 8, PointAction.MANUAL_ADJUSTMENT)

        self.assertEqual(self.balance().points_current, Decimal('0'))
        self.assertEqual(
            PointLedgerService.get_balance(self.client_obj.id, other.id).points_current, Decimal('8')
        )


class NormalizePointsTestCase(TestCase):

    def test_accepts_ints_strings_and_floats(self):
        self.assertEqual(normalize_points(3), Decimal('3'))
        self.assertEqual(normalize_points('2.5'), Decimal('2.5'))
        self.assertEqual(normalize_points(0.1), Decimal('0.1'))
