"""
Input validation helpers for Tessera Platform
Country codes, country-keyed money maps and security event logging.
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger(__name__)

COUNTRY_CODE_PATTERN = re.compile(r'^[A-Z]{2}$')


def normalize_country_code(value: str) -> str:
    """Uppercase and validate an ISO 3166-1 alpha-2 code"""
    code = (value or '').strip().upper()
    if not COUNTRY_CODE_PATTERN.match(code):
        raise ValidationError(_('Invalid country code: %(value)s'), params={'value': value})
    return code


def validate_country_money_map(value: Any) -> None:
    """
    Validate a per-country amount map such as {"GB": "10.00", "DE": 12.5}.
    Used by product price and cost fields.
    """
    if not isinstance(value, dict):
        raise ValidationError(_('Expected a mapping of country code to amount'))

    for country, amount in value.items():
        if not COUNTRY_CODE_PATTERN.match(str(country)):
            raise ValidationError(_('Invalid country code: %(value)s'), params={'value': country})
        try:
            Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(
                _('Invalid amount for %(country)s: %(value)s'),
                params={'country': country, 'value': amount},
            ) from e


def country_amount(value: dict[str, Any] | None, country: str) -> Decimal:
    """Amount for a country from a country-keyed map; missing entries count as zero"""
    if not value:
        return Decimal('0')
    raw = value.get(country)
    if raw in (None, ''):
        return Decimal('0')
    return Decimal(str(raw))


def log_security_event(event_type: str, details: dict[str, Any], request_ip: str | None = None) -> None:
    """
    Log security events for monitoring and forensics
    """
    logger.warning(f"🚨 [Security] {event_type}: {details} from IP: {request_ip}")
