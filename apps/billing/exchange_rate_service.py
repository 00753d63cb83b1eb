"""
Exchange-rate lookup for revenue snapshots.
Reads a stored rate close to the requested moment, falling back to a live quote
that is then persisted so every snapshot in the same hour shares one row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.core.cache import cache

from .fx_client import CurrencyRateClient
from .models import ExchangeRate

logger = logging.getLogger(__name__)

RATE_WINDOW = timedelta(hours=1)
RATE_CACHE_TTL = 3600  # seconds


class ExchangeRateService:

    @staticmethod
    def _cache_key(moment: datetime) -> str:
        return f"fx:usd:{int(moment.timestamp()) // 3600}"

    @staticmethod
    def rate_for(moment: datetime) -> ExchangeRate:
        """
        Exchange-rate row applicable to ``moment``.

        Looks for a row dated within the hour before ``moment``; when none
        exists a live quote is fetched and stored with ``moment`` as its date.
        """
        cache_key = ExchangeRateService._cache_key(moment)
        cached_id = cache.get(cache_key)
        if cached_id:
            row = ExchangeRate.objects.filter(pk=cached_id).first()
            if row is not None:
                return row

        row = (
            ExchangeRate.objects
            .filter(date__gte=moment - RATE_WINDOW, date__lte=moment)
            .order_by('-date')
            .first()
        )
        if row is None:
            quotes = CurrencyRateClient.get_live_quotes()
            row = ExchangeRate.objects.create(
                usd_eur=quotes.usd_eur,
                usd_gbp=quotes.usd_gbp,
                date=moment,
            )
            logger.info(f"💱 [FX] Stored live rate USDEUR={row.usd_eur} USDGBP={row.usd_gbp} for {moment.isoformat()}")

        cache.set(cache_key, str(row.pk), RATE_CACHE_TTL)
        return row
