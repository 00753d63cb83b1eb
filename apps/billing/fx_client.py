"""
Price and exchange-rate API clients for revenue snapshots.
Both providers are called synchronously with a timeout; any failure is raised
as ExternalServiceError so the calling settlement job can retry later.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from django.conf import settings

from apps.common.types import ExternalServiceError

logger = logging.getLogger(__name__)

# HTTP status codes below this are considered successful
HTTP_SUCCESS_THRESHOLD = 400
HTTP_SERVER_ERROR_THRESHOLD = 500
HTTP_TOO_MANY_REQUESTS = 429

# Settlement asset ticker → price API coin id
COIN_IDS: dict[str, str] = {
    'BTC': 'bitcoin',
    'ETH': 'ethereum',
    'USDT': 'tether',
    'USDT.ERC20': 'tether',
    'USDT.TRC20': 'tether',
    'XRP': 'ripple',
    'SOL': 'solana',
    'ADA': 'cardano',
    'LTC': 'litecoin',
    'DOT': 'polkadot',
    'BCH': 'bitcoin-cash',
    'LINK': 'chainlink',
    'BNB': 'binancecoin',
    'DOGE': 'dogecoin',
    'MATIC': 'matic-network',
    'XMR': 'monero',
}


@dataclass(frozen=True)
class UsdQuotes:
    """Units of EUR and GBP per 1 USD"""
    usd_eur: Decimal
    usd_gbp: Decimal


def get_api_timeouts() -> dict[str, int]:
    """Get API timeout configuration from settings with fallbacks."""
    return getattr(settings, 'API_TIMEOUTS', {
        'REQUEST_TIMEOUT': 10,
        'MAX_RETRIES': 2,
    })


def _to_decimal(service: str, value: Any, label: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ExternalServiceError(service, f"invalid {label}: {value!r}") from e
    if not result.is_finite() or result <= 0:
        raise ExternalServiceError(service, f"invalid {label}: {value!r}")
    return result


def _backoff(attempt: int) -> None:
    """⏳ Exponential wait with jitter between retries"""
    delay = min(2 ** attempt, 8) + secrets.randbelow(1000) / 1000
    time.sleep(delay)


def _get_json(service: str, url: str, params: dict[str, Any]) -> dict[str, Any]:
    """🌐 GET a JSON document, retrying timeouts, connection errors and 5xx/429 responses"""
    timeouts = get_api_timeouts()
    request_timeout = timeouts.get('REQUEST_TIMEOUT', 10)
    max_retries = max(1, timeouts.get('MAX_RETRIES', 2))
    last_error = 'no attempt made'

    for attempt in range(max_retries):
        try:
            logger.info(f"🌐 [FX] GET {service} (attempt {attempt + 1}/{max_retries})")
            response = requests.get(
                url,
                params=params,
                headers={'Accept': 'application/json', 'User-Agent': 'Tessera-Platform/1.0'},
                timeout=request_timeout,
            )
        except requests.exceptions.Timeout:
            last_error = 'request timeout'
            logger.warning(f"⏱️ [FX] Timeout calling {service} (attempt {attempt + 1})")
        except requests.exceptions.ConnectionError as e:
            last_error = f"connection failed: {e}"
            logger.warning(f"🔌 [FX] Connection error calling {service}: {e}")
        else:
            if response.status_code < HTTP_SUCCESS_THRESHOLD:
                try:
                    payload = response.json()
                except ValueError as e:
                    raise ExternalServiceError(service, 'response is not JSON') from e
                if not isinstance(payload, dict):
                    raise ExternalServiceError(service, 'unexpected response shape')
                return payload

            last_error = f"HTTP {response.status_code}"
            logger.warning(f"⚠️ [FX] {service} returned HTTP {response.status_code}")
            retryable = (
                response.status_code >= HTTP_SERVER_ERROR_THRESHOLD
                or response.status_code == HTTP_TOO_MANY_REQUESTS
            )
            if not retryable:
                break

        if attempt < max_retries - 1:
            _backoff(attempt)

    raise ExternalServiceError(service, last_error)


class PriceAPIClient:
    """Historical crypto spot prices"""

    SERVICE = 'coingecko'

    @staticmethod
    def coin_id_for(asset: str) -> str:
        coin_id = COIN_IDS.get((asset or '').upper())
        if coin_id is None:
            raise ExternalServiceError(PriceAPIClient.SERVICE, f"unsupported asset {asset!r}")
        return coin_id

    @staticmethod
    def get_spot_price_usd(asset: str, start: datetime, end: datetime) -> Decimal:
        """USD price of ``asset`` at the start of the [start, end] window"""
        coin_id = PriceAPIClient.coin_id_for(asset)
        base_url = settings.COINGECKO_API_URL.rstrip('/')
        data = _get_json(
            PriceAPIClient.SERVICE,
            f"{base_url}/coins/{coin_id}/market_chart/range",
            {
                'vs_currency': 'usd',
                'from': int(start.timestamp()),
                'to': int(end.timestamp()),
            },
        )
        prices = data.get('prices') or []
        if not prices or len(prices[0]) < 2:  # noqa: PLR2004
            raise ExternalServiceError(PriceAPIClient.SERVICE, f"no price points for {coin_id}")
        return _to_decimal(PriceAPIClient.SERVICE, prices[0][1], 'price')


class CurrencyRateClient:
    """Live USD cross rates"""

    SERVICE = 'currencylayer'

    @staticmethod
    def get_live_quotes() -> UsdQuotes:
        api_key = getattr(settings, 'CURRENCY_LAYER_API_KEY', '')
        if not api_key:
            raise ExternalServiceError(CurrencyRateClient.SERVICE, 'API key not configured')

        data = _get_json(
            CurrencyRateClient.SERVICE,
            settings.CURRENCY_LAYER_API_URL,
            {'access_key': api_key, 'currencies': 'EUR,GBP'},
        )
        quotes = data.get('quotes') or {}
        if quotes.get('USDEUR') is None or quotes.get('USDGBP') is None:
            error = data.get('error') or 'missing USDEUR/USDGBP quotes'
            raise ExternalServiceError(CurrencyRateClient.SERVICE, f"invalid response: {error}")

        return UsdQuotes(
            usd_eur=_to_decimal(CurrencyRateClient.SERVICE, quotes['USDEUR'], 'USDEUR'),
            usd_gbp=_to_decimal(CurrencyRateClient.SERVICE, quotes['USDGBP'], 'USDGBP'),
        )
