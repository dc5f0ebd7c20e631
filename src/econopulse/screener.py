"""Options screener.

Builds a bounded universe of liquid underlyings, prices the nearest live
expiration of each one, and ranks the combined contract list into five
views: most active, top gainers, top losers, highest IV, highest OI.

Usage:
    from econopulse.screener import run_screener
    from econopulse.data.yahoo import YahooOptionsProvider

    result = run_screener(YahooOptionsProvider(), user_universe=["PLTR"], limit=25)
    payload = result.to_dict()
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from econopulse.analytics import build_contracts, next_live_expiration, select_nearest_block
from econopulse.config import ScreenerConfig
from econopulse.data.base import ChainProvider
from econopulse.data.schema import OptionContract

logger = logging.getLogger(__name__)

DEFAULT_UNIVERSE = ["AAPL", "MSFT", "TSLA", "NVDA", "AMZN", "META", "GOOGL", "AMD", "SPY", "QQQ"]
MAX_UNIVERSE = 30

DEFAULT_LIMIT = 50
MIN_LIMIT = 10
MAX_LIMIT = 100

VIEW_NAMES = ("mostActive", "topGainers", "topLosers", "highestIV", "highestOI")


def parse_universe(text: str | None) -> list[str]:
    """Split a comma-separated ticker list, upper-casing and dropping blanks."""
    if not text:
        return []
    return [s.strip().upper() for s in text.split(",") if s.strip()]


def build_universe(
    defaults: list[str],
    most_active: list[str],
    user: list[str],
    max_size: int = MAX_UNIVERSE,
) -> list[str]:
    """Union defaults, most-active and caller tickers, in that order.

    Tickers are upper-cased and deduplicated (first occurrence wins), then
    the list is truncated to ``max_size``.
    """
    seen: set[str] = set()
    universe = []
    for symbol in [*defaults, *most_active, *user]:
        symbol = (symbol or "").strip().upper()
        if symbol and symbol not in seen:
            seen.add(symbol)
            universe.append(symbol)
    return universe[:max_size]


def clamp_limit(value, default: int = DEFAULT_LIMIT) -> int:
    """Clamp a requested view length into [10, 100].

    Missing or unparseable values fall back to ``default``.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = float(default)
    if not math.isfinite(number):
        number = float(default)
    return int(min(MAX_LIMIT, max(MIN_LIMIT, number)))


def fetch_contracts(
    universe: list[str],
    provider: ChainProvider,
    *,
    risk_free_rate: float = 0.03,
    batch_size: int = 4,
    batch_delay: float = 0.2,
    now: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[OptionContract]:
    """Fetch and price every underlying, a few at a time.

    Underlyings within a batch are fetched concurrently; batches run one
    after another with ``batch_delay`` seconds between them. A symbol whose
    fetch or pricing fails contributes no contracts.

    Args:
        universe: Tickers to fetch.
        provider: Chain provider.
        risk_free_rate: Annualized risk-free rate.
        batch_size: Concurrent fetches per batch.
        batch_delay: Pause between batches, seconds.
        now: Evaluation time, epoch seconds. Defaults to the current time.
        sleep: Sleep function, injectable for tests.

    Returns:
        Flat contract list, ordered by universe position.
    """
    now = time.time() if now is None else now
    batch_size = max(1, batch_size)

    def fetch_one(symbol: str) -> list[OptionContract]:
        try:
            chain = provider.get_option_chain(symbol)
            if chain is None:
                return []
            if select_nearest_block(chain, now) is None:
                # Default response held only expired blocks; fetch the next listed expiry.
                expiry = next_live_expiration(chain, now)
                if expiry is None:
                    return []
                chain = provider.get_option_chain(symbol, date=expiry)
                if chain is None:
                    return []
            return build_contracts(chain, now=now, risk_free_rate=risk_free_rate)
        except Exception as exc:
            logger.warning("Skipping %s: %s", symbol, exc)
            return []

    contracts: list[OptionContract] = []
    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for i in range(0, len(universe), batch_size):
            batch = universe[i:i + batch_size]
            for rows in executor.map(fetch_one, batch):
                contracts.extend(rows)
            if i + batch_size < len(universe) and batch_delay > 0:
                sleep(batch_delay)
    return contracts


def _finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def rank_contracts(contracts: list[OptionContract], limit: int = DEFAULT_LIMIT) -> dict[str, list[OptionContract]]:
    """Build the five ranked views.

    Ties on the sort key are broken by contract id, ascending.

    Args:
        contracts: Priced contracts.
        limit: Maximum entries per view (already clamped by the caller).

    Returns:
        Dict keyed by view name.
    """
    with_change = [c for c in contracts if _finite(c.change_pct)]
    with_iv = [c for c in contracts if _finite(c.implied_volatility)]
    with_oi = [c for c in contracts if c.open_interest > 0]

    return {
        "mostActive": sorted(contracts, key=lambda c: (-(c.volume or 0), c.contract_id))[:limit],
        "topGainers": sorted(with_change, key=lambda c: (-c.change_pct, c.contract_id))[:limit],
        "topLosers": sorted(with_change, key=lambda c: (c.change_pct, c.contract_id))[:limit],
        "highestIV": sorted(with_iv, key=lambda c: (-c.implied_volatility, c.contract_id))[:limit],
        "highestOI": sorted(with_oi, key=lambda c: (-c.open_interest, c.contract_id))[:limit],
    }


@dataclass
class ScreenerResult:
    """One screener run.

    Attributes:
        as_of: Computation time (UTC).
        universe: Tickers that were fetched.
        contracts: Every priced contract.
        views: Ranked views keyed by name.
    """

    as_of: datetime
    universe: list[str]
    contracts: list[OptionContract] = field(default_factory=list)
    views: dict[str, list[OptionContract]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the JSON envelope returned by the HTTP endpoint."""
        payload = {
            "success": True,
            "asOf": self.as_of.isoformat().replace("+00:00", "Z"),
            "universe": list(self.universe),
            "counts": {"total": len(self.contracts)},
        }
        for name in VIEW_NAMES:
            payload[name] = [c.to_dict() for c in self.views.get(name, [])]
        return payload


def run_screener(
    provider: ChainProvider,
    *,
    user_universe: list[str] | None = None,
    limit=DEFAULT_LIMIT,
    config: ScreenerConfig | None = None,
    now: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ScreenerResult:
    """Run the whole screener: universe, batched fetch, pricing, ranking.

    Args:
        provider: Chain provider.
        user_universe: Extra tickers requested by the caller.
        limit: Requested view length, clamped to [10, 100].
        config: Pipeline settings. Defaults to ``ScreenerConfig()``.
        now: Evaluation time, epoch seconds. Defaults to the current time.
        sleep: Sleep function used between batches.

    Returns:
        ScreenerResult.
    """
    config = config or ScreenerConfig()
    now = time.time() if now is None else now
    limit = clamp_limit(limit)

    try:
        most_active = provider.get_most_active_symbols(config.most_active_count)
    except Exception as exc:
        logger.warning("Most-active list unavailable: %s", exc)
        most_active = []

    universe = build_universe(DEFAULT_UNIVERSE, most_active, user_universe or [], config.max_universe)
    contracts = fetch_contracts(
        universe,
        provider,
        risk_free_rate=config.risk_free_rate,
        batch_size=config.batch_size,
        batch_delay=config.batch_delay,
        now=now,
        sleep=sleep,
    )
    logger.info("Screened %d underlyings, %d contracts", len(universe), len(contracts))

    return ScreenerResult(
        as_of=datetime.fromtimestamp(now, tz=timezone.utc),
        universe=universe,
        contracts=contracts,
        views=rank_contracts(contracts, limit),
    )
