"""
Tests for RevenueSnapshotService
Home-currency conversion, crypto settlements, category breakdowns and idempotency.
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from apps.billing.fx_client import UsdQuotes
from apps.billing.models import CategoryRevenue, ExchangeRate, OrderRevenue
from apps.billing.revenue_service import (
    CurrencyConverter,
    RevenueSnapshotService,
    home_currency_for,
    truncate_money,
)
from apps.common.types import ExternalServiceError, NotFoundError, ValidationError
from tests.factories.commerce import (
    create_cart,
    create_category,
    create_client,
    create_exchange_rate,
    create_order,
    create_organization,
    create_product,
)

SPOT_PRICE = 'apps.billing.revenue_service.PriceAPIClient.get_spot_price_usd'
LIVE_QUOTES = 'apps.billing.exchange_rate_service.CurrencyRateClient.get_live_quotes'


class CurrencyHelpersTestCase(TestCase):

    def test_home_currency_by_country(self):
        self.assertEqual(home_currency_for('GB'), 'GBP')
        self.assertEqual(home_currency_for('de'), 'EUR')
        self.assertEqual(home_currency_for('US'), 'USD')
        self.assertEqual(home_currency_for('CH'), 'USD')

    def test_truncation_never_rounds_up(self):
        self.assertEqual(truncate_money(Decimal('7.779')), Decimal('7.77'))
        self.assertEqual(truncate_money(Decimal('-1.239')), Decimal('-1.23'))

    def test_converter_from_each_home_currency(self):
        rates = {'usd_eur': Decimal('0.90'), 'usd_gbp': Decimal('0.80')}

        gbp = CurrencyConverter('GBP', **rates).convert(Decimal('100'))
        self.assertEqual(gbp, {'usd': Decimal('125.00'), 'gbp': Decimal('100.00'), 'eur': Decimal('112.50')})

        eur = CurrencyConverter('EUR', **rates).convert(Decimal('45'))
        self.assertEqual(eur, {'usd': Decimal('50.00'), 'gbp': Decimal('40.00'), 'eur': Decimal('45.00')})

        usd = CurrencyConverter('USD', **rates).convert(Decimal('10'))
        self.assertEqual(usd, {'usd': Decimal('10.00'), 'gbp': Decimal('8.00'), 'eur': Decimal('9.00')})


class RevenueSnapshotTestBase(TestCase):

    def setUp(self):
        self.organization = create_organization()
        self.client_obj = create_client(self.organization)
        self.coffee = create_category(self.organization, 'Coffee')
        self.product = create_product(self.organization, categories=[self.coffee])
        self.paid_at = timezone.now() - timedelta(minutes=10)
        self.rate = create_exchange_rate(date=self.paid_at - timedelta(minutes=5))

    def paid_order(self, country='GB', total='100.00', lines=None, **kwargs):
        cart = create_cart(self.client_obj, country, lines=lines or [(self.product, 2, '10.00')])
        return create_order(
            cart,
            status=kwargs.pop('status', 'paid'),
            total_amount=Decimal(total),
            date_paid=self.paid_at,
            **kwargs,
        )

    def snapshot(self, order):
        return RevenueSnapshotService.snapshot(order.id, self.organization.id)


class RevenueSnapshotTestCase(RevenueSnapshotTestBase):

    def test_gb_order_is_converted_from_gbp(self):
        order = self.paid_order('GB', '100.00', discount_total=Decimal('8.00'), shipping_total=Decimal('4.00'))
        revenue = self.snapshot(order)

        self.assertEqual(revenue.exchange_rate, self.rate)
        self.assertEqual(revenue.gbp_total, Decimal('100.00'))
        self.assertEqual(revenue.usd_total, Decimal('125.00'))
        self.assertEqual(revenue.eur_total, Decimal('112.50'))
        self.assertEqual(revenue.usd_discount, Decimal('10.00'))
        self.assertEqual(revenue.gbp_shipping, Decimal('4.00'))
        # two units at 4.00 GBP cost
        self.assertEqual(revenue.gbp_cost, Decimal('8.00'))
        self.assertEqual(revenue.usd_cost, Decimal('10.00'))
        self.assertFalse(revenue.is_void)

    def test_euro_area_order_is_converted_from_eur(self):
        revenue = self.snapshot(self.paid_order('DE', '45.00'))

        self.assertEqual(revenue.eur_total, Decimal('45.00'))
        self.assertEqual(revenue.usd_total, Decimal('50.00'))
        self.assertEqual(revenue.gbp_total, Decimal('40.00'))

    def test_other_countries_are_treated_as_usd_and_truncated(self):
        ExchangeRate.objects.filter(pk=self.rate.pk).update(usd_gbp=Decimal('0.7777'))
        revenue = self.snapshot(self.paid_order('US', '10.00'))

        self.assertEqual(revenue.usd_total, Decimal('10.00'))
        self.assertEqual(revenue.gbp_total, Decimal('7.77'))
        self.assertEqual(revenue.eur_total, Decimal('9.00'))

    def test_crypto_order_uses_settled_asset_price(self):
        order = self.paid_order(
            'GB',
            '95.00',
            payment_method='niftipay',
            order_meta=[{'event': 'paid', 'order': {'asset': 'BTC', 'amount': '0.002'}}],
        )
        with mock.patch(SPOT_PRICE, return_value=Decimal('50000')) as price_mock:
            revenue = self.snapshot(order)

        asset, start, end = price_mock.call_args.args
        self.assertEqual(asset, 'BTC')
        self.assertEqual(end - start, timedelta(hours=1))
        self.assertEqual(revenue.usd_total, Decimal('100.00'))
        self.assertEqual(revenue.gbp_total, Decimal('80.00'))
        self.assertEqual(revenue.eur_total, Decimal('90.00'))

    def test_crypto_order_without_paid_event_is_rejected(self):
        order = self.paid_order('GB', payment_method='niftipay')
        with self.assertRaises(ValidationError):
            self.snapshot(order)
        self.assertFalse(OrderRevenue.objects.exists())

    def test_categories_get_their_own_rows(self):
        tea = create_category(self.organization, 'Tea')
        sampler = create_product(self.organization, 'Sampler', categories=[self.coffee, tea])
        plain = create_product(self.organization, 'Plain')
        order = self.paid_order(lines=[(self.product, 2, '10.00'), (sampler, 1, '10.00'), (plain, 1, '10.00')])

        revenue = self.snapshot(order)

        coffee = CategoryRevenue.objects.get(order=order, category=self.coffee)
        self.assertEqual(coffee.gbp_total, Decimal('30.00'))
        self.assertEqual(coffee.gbp_cost, Decimal('12.00'))
        self.assertEqual(coffee.usd_total, Decimal('37.50'))
        tea_row = CategoryRevenue.objects.get(order=order, category=tea)
        self.assertEqual(tea_row.gbp_total, Decimal('10.00'))
        self.assertEqual(CategoryRevenue.objects.filter(order=order).count(), 2)
        # the uncategorised product still counts towards cost
        self.assertEqual(revenue.gbp_cost, Decimal('16.00'))

    def test_snapshot_is_idempotent(self):
        order = self.paid_order()
        first = self.snapshot(order)
        second = self.snapshot(order)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(OrderRevenue.objects.count(), 1)
        self.assertEqual(CategoryRevenue.objects.count(), 1)

    def test_snapshot_of_a_cancelled_order_is_born_void(self):
        revenue = self.snapshot(self.paid_order(status='cancelled'))
        self.assertTrue(revenue.cancelled)

        refunded = self.snapshot(self.paid_order(status='refunded'))
        self.assertTrue(refunded.refunded)

    def test_unknown_order_raises(self):
        with self.assertRaises(NotFoundError):
            RevenueSnapshotService.snapshot(self.rate.pk, self.organization.id)

    def test_mark_void_and_restore(self):
        order = self.paid_order()
        self.snapshot(order)

        RevenueSnapshotService.mark_void(order.id, 'failed')
        self.assertTrue(OrderRevenue.objects.get(order=order).cancelled)

        RevenueSnapshotService.restore(order.id)
        self.assertFalse(OrderRevenue.objects.get(order=order).is_void)


class ExchangeRateLookupTestCase(RevenueSnapshotTestBase):

    def setUp(self):
        super().setUp()
        ExchangeRate.objects.all().delete()

    def test_live_rate_is_fetched_and_stored(self):
        quotes = UsdQuotes(usd_eur=Decimal('0.90'), usd_gbp=Decimal('0.80'))
        with mock.patch(LIVE_QUOTES, return_value=quotes) as quotes_mock:
            first = self.snapshot(self.paid_order())
            second = self.snapshot(self.paid_order())

        quotes_mock.assert_called_once()
        self.assertEqual(ExchangeRate.objects.count(), 1)
        self.assertEqual(first.exchange_rate_id, second.exchange_rate_id)
        self.assertEqual(first.exchange_rate.date, self.paid_at)

    def test_stale_rates_are_not_used(self):
        create_exchange_rate(date=self.paid_at - timedelta(hours=3))
        quotes = UsdQuotes(usd_eur=Decimal('0.95'), usd_gbp=Decimal('0.85'))
        with mock.patch(LIVE_QUOTES, return_value=quotes):
            revenue = self.snapshot(self.paid_order())
        self.assertEqual(revenue.exchange_rate.usd_eur, Decimal('0.95'))

    def test_provider_failure_leaves_no_snapshot(self):
        with mock.patch(LIVE_QUOTES, side_effect=ExternalServiceError('currencylayer', 'HTTP 503')):
            with self.assertRaises(ExternalServiceError):
                self.snapshot(self.paid_order())
        self.assertFalse(OrderRevenue.objects.exists())
