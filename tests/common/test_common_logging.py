"""
Tests for request correlation logging and common validators.
"""

import json
import logging

from django.core.exceptions import ValidationError
from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase

from apps.common.logging import (
    JSONFormatter,
    RequestIDFilter,
    clear_request_context,
    get_request_context,
    set_request_context,
)
from apps.common.middleware import RequestIDMiddleware
from apps.common.validators import country_amount, normalize_country_code, validate_country_money_map


def make_record(message='settled'):
    return logging.LogRecord('apps.orders', logging.INFO, __file__, 1, message, None, None)


class RequestContextLoggingTestCase(SimpleTestCase):

    def tearDown(self):
        clear_request_context()

    def test_filter_injects_context(self):
        set_request_context(request_id='job:abc', organization_id='org-1')
        record = make_record()

        self.assertTrue(RequestIDFilter().filter(record))
        self.assertEqual(record.request_id, 'job:abc')
        self.assertEqual(record.organization_id, 'org-1')

    def test_filter_defaults_without_context(self):
        record = make_record()
        RequestIDFilter().filter(record)
        self.assertEqual(record.request_id, '-')
        self.assertIsNone(record.organization_id)

    def test_json_formatter_emits_one_object(self):
        set_request_context(request_id='req-1')
        record = make_record('order %s paid')
        record.args = ('K-1',)
        RequestIDFilter().filter(record)

        payload = json.loads(JSONFormatter().format(record))

        self.assertEqual(payload['message'], 'order K-1 paid')
        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['request_id'], 'req-1')

    def test_clear_request_context(self):
        set_request_context(request_id='req-2', ip_address='10.0.0.1')
        clear_request_context()
        self.assertEqual(get_request_context()['request_id'], '-')
        self.assertIsNone(get_request_context()['ip_address'])


class RequestIDMiddlewareTestCase(SimpleTestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.seen = {}

        def view(request):
            self.seen.update(get_request_context())
            return HttpResponse('ok')

        self.middleware = RequestIDMiddleware(view)

    def test_upstream_request_id_is_reused(self):
        request = self.factory.get('/', HTTP_X_REQUEST_ID='trace-1', HTTP_X_ORGANIZATION_ID='org-9')
        response = self.middleware(request)

        self.assertEqual(response['X-Request-ID'], 'trace-1')
        self.assertEqual(self.seen['request_id'], 'trace-1')
        self.assertEqual(self.seen['organization_id'], 'org-9')
        self.assertEqual(get_request_context()['request_id'], '-')

    def test_request_id_is_generated(self):
        response = self.middleware(self.factory.get('/'))
        self.assertEqual(len(response['X-Request-ID']), 36)


class CountryValidatorsTestCase(SimpleTestCase):

    def test_normalize_country_code(self):
        self.assertEqual(normalize_country_code(' gb '), 'GB')
        with self.assertRaises(ValidationError):
            normalize_country_code('GBR')

    def test_money_map_validation(self):
        validate_country_money_map({'GB': '10.00', 'DE': 12.5})
        with self.assertRaises(ValidationError):
            validate_country_money_map({'GB': 'ten'})
        with self.assertRaises(ValidationError):
            validate_country_money_map(['GB'])

    def test_country_amount_defaults_to_zero(self):
        self.assertEqual(str(country_amount({'GB': '10.50'}, 'GB')), '10.50')
        self.assertEqual(country_amount({'GB': '10.50'}, 'DE'), 0)
        self.assertEqual(country_amount(None, 'GB'), 0)
