"""Yahoo Finance option-chain provider.

Fetches option chains and the most-active ticker list from Yahoo's public
JSON endpoints. Includes an outbound request throttle, a TTL cache and a
small retry helper shared with the metrics module.

Usage:
    from econopulse.data.yahoo import YahooOptionsProvider
    api = YahooOptionsProvider()
    chain = api.get_option_chain("AAPL")
    movers = api.get_most_active_symbols(20)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, TypeVar
from urllib.parse import quote

import requests

from econopulse.data.base import ChainProvider
from econopulse.data.schema import OptionChain

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = "Mozilla/5.0 (compatible; EconopulseBot/1.0)"


class TTLCache:
    """Simple in-memory cache with TTL (time-to-live).

    Args:
        default_ttl: Default cache duration in seconds.
        clock: Time source in seconds, injectable for tests.
    """

    def __init__(self, default_ttl: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, tuple[float, object]] = {}

    def get(self, key: str) -> object | None:
        """Get cached value if not expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        expiry, value = entry
        if self._clock() < expiry:
            return value
        # Another thread may have evicted it already.
        self._store.pop(key, None)
        return None

    def set(self, key: str, value: object, ttl: float | None = None) -> None:
        """Store value with TTL."""
        ttl = ttl if ttl is not None else self.default_ttl
        self._store[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._store.clear()

    def invalidate(self, key: str) -> None:
        """Remove a specific cache entry."""
        self._store.pop(key, None)


class RequestThrottle:
    """Outbound politeness: keep a minimum interval between upstream calls.

    This protects the upstream provider from us. It has nothing to do with
    admission control of inbound requests (see ``econopulse.ratelimit``).

    Args:
        calls_per_minute: Maximum upstream calls per minute. 0 disables.
    """

    def __init__(self, calls_per_minute: float = 0) -> None:
        self.calls_per_minute = calls_per_minute
        self.min_interval = 60.0 / calls_per_minute if calls_per_minute > 0 else 0.0
        self._last_call_time: float = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until a call is allowed under the throttle."""
        if self.min_interval <= 0:
            return
        with self._lock:
            now = time.time()
            elapsed = now - self._last_call_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last_call_time = time.time()


def with_retry(fn: Callable[[], T], attempts: int = 2, backoff: float = 0.3,
               sleep: Callable[[float], None] = time.sleep) -> T:
    """Call ``fn`` up to ``attempts`` times, sleeping ``backoff`` between tries.

    The last exception is re-raised if every attempt fails.
    """
    last_exc: Exception | None = None
    for i in range(attempts):
        try:
            return fn()
        except Exception as exc:
            last_exc = exc
            if i + 1 < attempts:
                sleep(backoff)
    assert last_exc is not None
    raise last_exc


class YahooOptionsProvider(ChainProvider):
    """Option-chain provider backed by Yahoo Finance JSON endpoints.

    Args:
        timeout: Per-request timeout in seconds.
        calls_per_minute: Outbound throttle; 0 disables it.
        session: Optional ``requests.Session`` to reuse connections.
    """

    OPTIONS_URL = "https://query2.finance.yahoo.com/v7/finance/options/{symbol}"
    SCREENER_URL = "https://query1.finance.yahoo.com/v1/finance/screener/predefined/saved"

    def __init__(
        self,
        timeout: float = 9.0,
        calls_per_minute: float = 0,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self._throttle = RequestThrottle(calls_per_minute)
        self._http = session or requests

    def _get(self, url: str, params: dict | None = None) -> dict:
        """GET a JSON document.

        Raises:
            requests.RequestException: On transport or HTTP errors.
            ValueError: If the body is not JSON.
        """
        self._throttle.wait()
        response = self._http.get(
            url,
            params=params or {},
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def get_option_chain(self, symbol: str, date: int | None = None) -> OptionChain | None:
        """Get the option chain for ``symbol``.

        Args:
            symbol: Underlying ticker.
            date: Optional expiration (epoch seconds).

        Returns:
            OptionChain, or None on HTTP errors, timeouts or empty results.
        """
        symbol = symbol.upper()
        url = self.OPTIONS_URL.format(symbol=quote(symbol, safe=""))
        params = {"date": int(date)} if date else None
        try:
            data = self._get(url, params)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Option chain fetch failed for %s: %s", symbol, exc)
            return None

        results = ((data or {}).get("optionChain") or {}).get("result") or []
        if not results or not isinstance(results[0], dict):
            logger.info("No option chain returned for %s", symbol)
            return None
        return OptionChain.from_yahoo(results[0], symbol)

    def get_most_active_symbols(self, count: int = 20) -> list[str]:
        """Get tickers from Yahoo's ``most_actives`` predefined screener.

        Returns:
            Tickers in Yahoo's order, or an empty list on failure.
        """
        params = {"formatted": "false", "scrIds": "most_actives", "count": count}
        try:
            data = self._get(self.SCREENER_URL, params)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Most-active screener fetch failed: %s", exc)
            return []

        results = ((data or {}).get("finance") or {}).get("result") or []
        quotes = results[0].get("quotes", []) if results and isinstance(results[0], dict) else []
        symbols = [q.get("symbol") for q in quotes if isinstance(q, dict)]
        return [s for s in symbols if s][:count]
