"""
Currency Converter

Converts GBP amounts to INR. The rate used is always returned as an
ExchangeRateSnapshot so callers can store it with what they computed.

Resolution order:
1. Explicit per-request rate
2. Configured static rate
3. Last successfully fetched live rate (cached)
"""

import logging
import threading
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

import requests

from ..config import DISPLAY_FALLBACK_GBP_TO_INR_RATE
from ..errors import RateUnavailableError, ValidationError
from ..models import ExchangeRateSnapshot, RateSource, utc_now
from .pricing import quantize_money

logger = logging.getLogger(__name__)


class RateCache:
    """Remembers the last live rate that was fetched successfully."""

    def __init__(self):
        self._latest: tuple[Decimal, datetime] | None = None
        self._lock = threading.Lock()

    def record(self, rate: Decimal, as_of: datetime) -> None:
        with self._lock:
            self._latest = (rate, as_of)

    def latest(self) -> tuple[Decimal, datetime] | None:
        with self._lock:
            return self._latest


class ExchangeRateClient:
    """Fetches the live GBP to INR rate over HTTP."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def fetch(self) -> Decimal:
        """
        Accepts either {"rate": x} or {"rates": {"INR": x}}.
        Raises requests.RequestException or ValueError on failure.
        """
        response = requests.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()

        raw = payload.get("rate")
        if raw is None:
            raw = payload.get("rates", {}).get("INR")
        if raw is None:
            raise ValueError(f"No INR rate in response from {self.url}")

        rate = Decimal(str(raw))
        if rate <= 0:
            raise ValueError(f"Non-positive rate {rate} from {self.url}")
        return rate


class CurrencyConverter:
    """GBP to INR conversion with an explicit rate snapshot."""

    def __init__(
        self,
        static_rate: Decimal | None = None,
        cache: RateCache | None = None,
        max_age_seconds: int = 3600,
        client: ExchangeRateClient | None = None,
    ):
        if static_rate is not None and static_rate <= 0:
            raise ValidationError(f"static exchange rate must be positive, got: {static_rate}")
        self.static_rate = static_rate
        self.cache = cache or RateCache()
        self.max_age = timedelta(seconds=max_age_seconds)
        self.client = client

    def resolve_rate(
        self,
        as_of: datetime | None = None,
        explicit_rate: Decimal | None = None,
        allow_stale: bool = False,
    ) -> ExchangeRateSnapshot:
        """
        Pick the rate for a calculation at as_of.

        A cached rate older than max_age is stale. Stale rates are only
        returned when allow_stale is set, and are flagged.
        """
        as_of = as_of or utc_now()

        if explicit_rate is not None:
            rate = self._coerce_rate(explicit_rate)
            return ExchangeRateSnapshot(rate=rate, as_of=as_of, source=RateSource.REQUEST)

        if self.static_rate is not None:
            return ExchangeRateSnapshot(rate=self.static_rate, as_of=as_of, source=RateSource.CONFIGURED)

        cached = self.cache.latest()
        if cached is not None:
            rate, fetched_at = cached
            is_stale = as_of - fetched_at > self.max_age
            if is_stale and not allow_stale:
                raise RateUnavailableError(
                    f"Cached exchange rate from {fetched_at.isoformat()} is older than {self.max_age}"
                )
            return ExchangeRateSnapshot(rate=rate, as_of=fetched_at, source=RateSource.CACHED, is_stale=is_stale)

        raise RateUnavailableError("No GBP to INR exchange rate is configured or cached")

    def convert(
        self,
        amount_gbp: Decimal,
        as_of: datetime | None = None,
        explicit_rate: Decimal | None = None,
    ) -> tuple[Decimal, ExchangeRateSnapshot]:
        """Settlement-grade conversion: fails rather than use a stale rate."""
        snapshot = self.resolve_rate(as_of, explicit_rate)
        return quantize_money(amount_gbp * snapshot.rate), snapshot

    def convert_for_display(
        self,
        amount_gbp: Decimal,
        as_of: datetime | None = None,
        explicit_rate: Decimal | None = None,
    ) -> tuple[Decimal, ExchangeRateSnapshot]:
        """Display conversion: degrades to a stale or fallback rate, flagged."""
        try:
            snapshot = self.resolve_rate(as_of, explicit_rate, allow_stale=True)
        except RateUnavailableError:
            logger.warning(f"No exchange rate available, displaying with fallback rate {DISPLAY_FALLBACK_GBP_TO_INR_RATE}")
            snapshot = ExchangeRateSnapshot(
                rate=DISPLAY_FALLBACK_GBP_TO_INR_RATE,
                as_of=as_of or utc_now(),
                source=RateSource.FALLBACK,
                is_stale=True,
            )
        return quantize_money(amount_gbp * snapshot.rate), snapshot

    def refresh(self) -> ExchangeRateSnapshot | None:
        """Fetch and cache the live rate. Returns None if no client or the fetch failed."""
        if self.client is None:
            return None

        try:
            rate = self.client.fetch()
        except (requests.RequestException, ValueError, InvalidOperation) as e:
            logger.warning(f"Failed to fetch exchange rate: {e}")
            return None

        fetched_at = utc_now()
        self.cache.record(rate, fetched_at)
        logger.info(f"Exchange rate refreshed: 1 GBP = {rate} INR")
        return ExchangeRateSnapshot(rate=rate, as_of=fetched_at, source=RateSource.CACHED)

    @staticmethod
    def _coerce_rate(value) -> Decimal:
        try:
            rate = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"exchange rate must be a number, got: {value!r}") from None
        if not rate.is_finite() or rate <= 0:
            raise ValidationError(f"exchange rate must be positive, got: {value!r}")
        return rate
