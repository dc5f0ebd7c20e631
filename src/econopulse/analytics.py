"""Per-contract analytics.

Turns one underlying's option chain into priced ``OptionContract`` rows:
nearest live expiration only, clamped IV, floored time-to-expiry, and
Black-Scholes delta/gamma recomputed on every call.
"""

from __future__ import annotations

import logging
import math
import time

from econopulse.data.schema import ExpirationBlock, OptionChain, OptionContract, RawOption
from econopulse.pricing import calculate_greeks

logger = logging.getLogger(__name__)

DEFAULT_IV = 0.25
MIN_IV = 0.01
MAX_IV = 3.0

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
MIN_YEARS = 1.0 / 365.0


def clamp_iv(iv: float | None) -> float:
    """Clamp implied volatility to [1%, 300%], defaulting to 25% if unusable.

    Zero is treated as missing, matching how providers report unquoted IV.
    """
    if iv is None or not math.isfinite(iv) or iv <= 0:
        return DEFAULT_IV
    return min(MAX_IV, max(MIN_IV, iv))


def year_fraction(seconds_to_expiry: float) -> float:
    """Seconds to expiry as a year fraction, floored at one day."""
    return max(MIN_YEARS, seconds_to_expiry / SECONDS_PER_YEAR)


def derive_change_pct(
    percent_change: float | None,
    change: float | None,
    last_price: float | None,
) -> float | None:
    """Percent change, derived from absolute change when not reported.

    Returns None (not 0.0) when it cannot be determined.
    """
    if percent_change is not None and math.isfinite(percent_change):
        return percent_change
    if change is None or last_price is None:
        return None
    previous = last_price - change
    if previous == 0:
        return None
    return change / previous * 100.0


def select_nearest_block(chain: OptionChain, now: float) -> ExpirationBlock | None:
    """Pick the expiration block with the smallest expiry strictly after ``now``.

    Args:
        chain: Option chain.
        now: Evaluation time, epoch seconds.

    Returns:
        The nearest live block, or None if every block has expired.
    """
    live = [b for b in chain.blocks if b.expiration > now]
    if not live:
        return None
    return min(live, key=lambda b: b.expiration)


def next_live_expiration(chain: OptionChain, now: float) -> int | None:
    """Earliest listed expiration strictly after ``now``.

    Looks at ``expiration_dates`` rather than the blocks, since a provider's
    default response may only carry a block for an expiry that has passed.
    """
    live = [ts for ts in chain.expiration_dates if ts > now]
    return min(live) if live else None


def _to_contract(
    row: RawOption,
    option_type: str,
    underlying: str,
    spot: float,
    expiry: int,
    T: float,
    risk_free_rate: float,
) -> OptionContract:
    iv = clamp_iv(row.implied_volatility)
    greeks = calculate_greeks(spot, row.strike, risk_free_rate, iv, T, option_type)
    return OptionContract(
        underlying=underlying,
        contract_id=row.contract_symbol,
        option_type=option_type,
        strike=row.strike,
        expiry=expiry,
        last_price=row.last_price,
        change_abs=row.change,
        change_pct=derive_change_pct(row.percent_change, row.change, row.last_price),
        volume=row.volume,
        open_interest=row.open_interest,
        implied_volatility=iv,
        delta=greeks.delta,
        signed_delta=greeks.signed_delta,
        gamma=greeks.gamma,
    )


def build_contracts(
    chain: OptionChain,
    now: float | None = None,
    risk_free_rate: float = 0.03,
) -> list[OptionContract]:
    """Price every call and put in the nearest live expiration.

    Args:
        chain: Option chain for one underlying.
        now: Evaluation time, epoch seconds. Defaults to the current time.
        risk_free_rate: Annualized risk-free rate.

    Returns:
        Calls followed by puts, in provider order. Empty if the chain has no
        usable spot price or no live expiration.
    """
    now = time.time() if now is None else now
    spot = chain.spot
    if spot is None or not math.isfinite(spot) or spot <= 0:
        return []

    block = select_nearest_block(chain, now)
    if block is None:
        return []

    T = year_fraction(block.expiration - now)
    underlying = chain.symbol.upper()

    contracts = []
    for option_type, rows in (("call", block.calls), ("put", block.puts)):
        for row in rows:
            try:
                contract = _to_contract(row, option_type, underlying, spot, block.expiration, T, risk_free_rate)
            except ValueError as exc:
                logger.debug("Skipping %s %s: %s", underlying, row.contract_symbol, exc)
                continue
            contracts.append(contract)
    return contracts
