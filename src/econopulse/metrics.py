"""Per-symbol options positioning metrics.

Computes put/call ratios (volume and open interest), an approximate dealer
gamma exposure (GEX), a 25-delta IV skew and the ATM/OTM share of volume
from the nearest expirations of one underlying.

GEX = sum(sign * OI * 100 * S^2 * gamma), calls positive and puts negative.
The sign indicates the dealer positioning regime; the magnitude is only
meaningful relative to the thresholds in ``classify_gex``.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from econopulse.analytics import clamp_iv, year_fraction
from econopulse.data.base import ChainProvider
from econopulse.data.schema import ExpirationBlock, OptionChain
from econopulse.data.yahoo import TTLCache, with_retry
from econopulse.pricing import calculate_greeks

logger = logging.getLogger(__name__)

CONTRACT_MULTIPLIER = 100
TARGET_DELTA = 0.25
ATM_BAND = 0.02
OTM_BAND = 0.05
SKEW_THRESHOLD = 0.02
CACHE_TTL = 120.0

_cache = TTLCache(default_ttl=CACHE_TTL)


@dataclass
class OptionsMetrics:
    """Positioning summary for one underlying."""

    symbol: str
    as_of: datetime
    underlying_price: float
    total_call_volume: int
    total_put_volume: int
    total_call_oi: int
    total_put_oi: int
    put_call_volume_ratio: float | None
    put_call_oi_ratio: float | None
    gex: float | None
    gex_label: str
    iv_call_25d: float | None
    iv_put_25d: float | None
    call_skew: str
    atm_volume_share: float | None
    otm_volume_share: float | None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "asOf": self.as_of.isoformat().replace("+00:00", "Z"),
            "underlyingPrice": self.underlying_price,
            "totalCallVolume": self.total_call_volume,
            "totalPutVolume": self.total_put_volume,
            "totalCallOI": self.total_call_oi,
            "totalPutOI": self.total_put_oi,
            "putCallVolumeRatio": self.put_call_volume_ratio,
            "putCallOIRatio": self.put_call_oi_ratio,
            "gex": self.gex,
            "gexLabel": self.gex_label,
            "ivCall25d": self.iv_call_25d,
            "ivPut25d": self.iv_put_25d,
            "callSkew": self.call_skew,
            "atmVolumeShare": self.atm_volume_share,
            "otmVolumeShare": self.otm_volume_share,
        }


def classify_gex(gex: float | None) -> str:
    """Bucket absolute gamma exposure into Low/Medium/High/Extreme."""
    if gex is None or not math.isfinite(gex):
        return "Unknown"
    magnitude = abs(gex)
    if magnitude > 5e10:
        return "Extreme"
    if magnitude > 1e10:
        return "High"
    if magnitude > 1e9:
        return "Medium"
    return "Low"


def classify_skew(iv_call: float | None, iv_put: float | None) -> str:
    """Compare 25-delta call and put IV."""
    if iv_call is None or iv_put is None:
        return "Neutral"
    diff = iv_call - iv_put
    if diff > SKEW_THRESHOLD:
        return "Call Skew"
    if diff < -SKEW_THRESHOLD:
        return "Put Skew"
    return "Neutral"


class _Accumulator:
    """Running totals over one or more expiration blocks."""

    def __init__(self, spot: float, risk_free_rate: float, now: float) -> None:
        self.spot = spot
        self.r = risk_free_rate
        self.now = now
        self.call_volume = 0
        self.put_volume = 0
        self.call_oi = 0
        self.put_oi = 0
        self.gex = 0.0
        self.atm_volume = 0
        self.otm_volume = 0
        self.best_call: tuple[float, float] | None = None  # (|delta - 0.25|, iv)
        self.best_put: tuple[float, float] | None = None

    @property
    def total_volume(self) -> int:
        return self.call_volume + self.put_volume

    def add_block(self, block: ExpirationBlock) -> None:
        T = year_fraction(block.expiration - self.now)
        S = self.spot
        for option_type, rows in (("call", block.calls), ("put", block.puts)):
            sign = 1.0 if option_type == "call" else -1.0
            for row in rows:
                if option_type == "call":
                    self.call_volume += row.volume
                    self.call_oi += row.open_interest
                else:
                    self.put_volume += row.volume
                    self.put_oi += row.open_interest

                iv = clamp_iv(row.implied_volatility)
                greeks = calculate_greeks(S, row.strike, self.r, iv, T, option_type)
                self.gex += sign * row.open_interest * CONTRACT_MULTIPLIER * S * S * greeks.gamma

                score = abs(greeks.delta - TARGET_DELTA)
                if option_type == "call":
                    if self.best_call is None or score < self.best_call[0]:
                        self.best_call = (score, iv)
                elif self.best_put is None or score < self.best_put[0]:
                    self.best_put = (score, iv)

                distance = abs(row.strike / S - 1.0)
                if distance < ATM_BAND:
                    self.atm_volume += row.volume
                elif distance > OTM_BAND:
                    self.otm_volume += row.volume


def _require_chain(provider: ChainProvider, symbol: str) -> OptionChain:
    chain = provider.get_option_chain(symbol)
    if chain is None:
        raise LookupError(f"no option chain for {symbol}")
    return chain


def _ratio(numerator: int, denominator: int) -> float | None:
    if numerator + denominator <= 0:
        return None
    return numerator / max(1, denominator)


def get_options_metrics(
    symbol: str,
    provider: ChainProvider,
    *,
    expirations_to_use: int = 2,
    risk_free_rate: float = 0.03,
    now: float | None = None,
    cache: TTLCache | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> OptionsMetrics | None:
    """Compute positioning metrics for ``symbol``.

    Args:
        symbol: Underlying ticker.
        provider: Chain provider.
        expirations_to_use: Number of nearest live expirations to include.
        risk_free_rate: Annualized risk-free rate.
        now: Evaluation time, epoch seconds. Defaults to the current time.
        cache: Result cache. Defaults to a module-level two-minute cache.
        sleep: Pause before the retry, injectable for tests.

    Returns:
        OptionsMetrics, or None if the chain is unavailable or unusable.
    """
    symbol = symbol.upper()
    expirations_to_use = max(1, expirations_to_use)
    cache = _cache if cache is None else cache
    cache_key = f"{symbol}:{expirations_to_use}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    now = time.time() if now is None else now
    try:
        chain = with_retry(lambda: _require_chain(provider, symbol), sleep=sleep)
        if chain.spot is None or chain.spot <= 0:
            return None

        future = sorted(ts for ts in chain.expiration_dates if ts > now)
        selected = set(future[:expirations_to_use])
        if selected:
            blocks = [b for b in chain.blocks if b.expiration in selected]
        else:
            blocks = list(chain.blocks)
        blocks = blocks[:expirations_to_use]

        acc = _Accumulator(chain.spot, risk_free_rate, now)
        for block in blocks:
            acc.add_block(block)
        used = {b.expiration for b in blocks}

        # Nothing traded in the nearest block: fold in the next expiry.
        if acc.total_volume == 0 and len(future) > 1 and future[1] not in used:
            second = future[1]
            fallback = provider.get_option_chain(symbol, date=second)
            if fallback is not None:
                for block in fallback.blocks:
                    if block.expiration == second:
                        acc.add_block(block)
    except Exception as exc:
        logger.warning("Options metrics error for %s: %s", symbol, exc)
        return None

    gex = acc.gex if math.isfinite(acc.gex) else None
    total = acc.total_volume
    iv_call = acc.best_call[1] if acc.best_call else None
    iv_put = acc.best_put[1] if acc.best_put else None

    result = OptionsMetrics(
        symbol=symbol,
        as_of=datetime.fromtimestamp(now, tz=timezone.utc),
        underlying_price=chain.spot,
        total_call_volume=acc.call_volume,
        total_put_volume=acc.put_volume,
        total_call_oi=acc.call_oi,
        total_put_oi=acc.put_oi,
        put_call_volume_ratio=_ratio(acc.put_volume, acc.call_volume),
        put_call_oi_ratio=_ratio(acc.put_oi, acc.call_oi),
        gex=gex,
        gex_label=classify_gex(gex),
        iv_call_25d=iv_call,
        iv_put_25d=iv_put,
        call_skew=classify_skew(iv_call, iv_put),
        atm_volume_share=acc.atm_volume / total if total else None,
        otm_volume_share=acc.otm_volume / total if total else None,
    )
    cache.set(cache_key, result)
    return result
