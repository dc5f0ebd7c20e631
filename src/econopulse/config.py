"""Runtime configuration read from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _env(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default


@dataclass
class ScreenerConfig:
    """Settings for the screener pipeline and the HTTP layer.

    Attributes:
        risk_free_rate: Annualized rate used for every Greek (OPTIONS_RF_RATE).
        batch_size: Underlyings fetched concurrently per batch.
        batch_delay: Pause between batches, seconds.
        max_universe: Cap on the number of underlyings per request.
        most_active_count: Tickers requested from the most-active screener.
        fetch_timeout: Per-request upstream timeout, seconds.
        rate_limit: Inbound requests admitted per window and client.
        rate_limit_window_ms: Inbound window length, milliseconds.
        log_level: Root log level name.
    """

    risk_free_rate: float = 0.03
    batch_size: int = 4
    batch_delay: float = 0.2
    max_universe: int = 30
    most_active_count: int = 20
    fetch_timeout: float = 9.0
    rate_limit: int = 60
    rate_limit_window_ms: int = 60_000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> ScreenerConfig:
        """Build a config from the process environment."""
        return cls(
            risk_free_rate=_env("OPTIONS_RF_RATE", cls.risk_free_rate, float),
            batch_size=max(1, _env("OPTIONS_BATCH_SIZE", cls.batch_size, int)),
            batch_delay=max(0.0, _env("OPTIONS_BATCH_DELAY", cls.batch_delay, float)),
            max_universe=max(1, _env("OPTIONS_MAX_UNIVERSE", cls.max_universe, int)),
            most_active_count=max(0, _env("OPTIONS_MOST_ACTIVE_COUNT", cls.most_active_count, int)),
            fetch_timeout=_env("OPTIONS_FETCH_TIMEOUT", cls.fetch_timeout, float),
            rate_limit=max(1, _env("RATE_LIMIT_PER_WINDOW", cls.rate_limit, int)),
            rate_limit_window_ms=max(1, _env("RATE_LIMIT_WINDOW_MS", cls.rate_limit_window_ms, int)),
            log_level=_env("ECONOPULSE_LOG_LEVEL", cls.log_level, str).upper(),
        )
