"""
Active fee-rate configuration with a short-lived in-process cache.

``FeeSettingsProvider`` owns its cache object, so tests can build one with a
fake clock and a stub loader. Production code goes through the module-level
``get_active_rates`` / ``invalidate_fee_settings`` helpers, which share a
single provider per process.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from threading import Lock
from typing import Callable, Optional

from django.conf import settings

from payments.fees import FeeRates

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Loader = Callable[[], Optional[FeeRates]]


@dataclass(frozen=True)
class _CacheEntry:
    expires_at: float
    value: FeeRates


class FeeSettingsCache:
    """Single-slot TTL cache. Writes replace the whole entry under a lock."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entry: _CacheEntry | None = None
        self._lock = Lock()

    def get(self) -> FeeRates | None:
        now = self._clock()
        with self._lock:
            entry = self._entry
            if entry is None:
                return None
            if now >= entry.expires_at:
                self._entry = None
                return None
            return entry.value

    def set(self, value: FeeRates) -> None:
        now = self._clock()
        with self._lock:
            self._entry = _CacheEntry(expires_at=now + self.ttl_seconds, value=value)

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


def default_rates() -> FeeRates:
    """Hard-coded fallback rates from Django settings."""
    return FeeRates(
        service_rate=Decimal(str(settings.DEFAULT_SERVICE_RATE)),
        partner_commission_rate=Decimal(str(settings.DEFAULT_PARTNER_COMMISSION_RATE)),
        processing_rate=Decimal(str(settings.DEFAULT_PROCESSING_RATE)),
        tax_rate=Decimal(str(settings.DEFAULT_TAX_RATE)),
    )


def load_active_fee_config() -> FeeRates | None:
    """Read the single active FeeConfig row, or None when there is none."""
    from django.apps import apps as django_apps

    if not django_apps.ready or not django_apps.is_installed("operator_settings"):
        return None
    FeeConfig = django_apps.get_model("operator_settings", "FeeConfig")
    config = FeeConfig.objects.filter(is_active=True).order_by("-created_at", "-id").first()
    if config is None:
        return None
    return config.as_rates()


class FeeSettingsProvider:
    def __init__(
        self,
        *,
        cache: FeeSettingsCache | None = None,
        loader: Loader = load_active_fee_config,
        defaults: Callable[[], FeeRates] = default_rates,
    ):
        self.cache = cache or FeeSettingsCache(settings.FEE_SETTINGS_CACHE_TTL_SECONDS)
        self._loader = loader
        self._defaults = defaults

    def get_active_rates(self, force_refresh: bool = False) -> FeeRates:
        """
        Current rates. Served from cache unless expired or ``force_refresh``.

        Missing configuration yields the defaults. A failing lookup also yields
        the defaults but is not cached, so the next call retries.
        """
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached

        try:
            rates = self._loader()
        except Exception:
            logger.warning(
                "fee_settings: active config lookup failed; using defaults", exc_info=True
            )
            return self._defaults()

        if rates is None:
            rates = self._defaults()
        self.cache.set(rates)
        return rates

    def invalidate(self) -> None:
        self.cache.invalidate()


_provider: FeeSettingsProvider | None = None
_provider_lock = Lock()


def get_fee_settings_provider() -> FeeSettingsProvider:
    global _provider
    with _provider_lock:
        if _provider is None:
            _provider = FeeSettingsProvider()
        return _provider


def get_active_rates(force_refresh: bool = False) -> FeeRates:
    return get_fee_settings_provider().get_active_rates(force_refresh=force_refresh)


def invalidate_fee_settings() -> None:
    get_fee_settings_provider().invalidate()
