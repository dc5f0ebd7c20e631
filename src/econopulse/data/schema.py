"""Canonical data schema for option-chain data.

Raw provider payloads are coerced into these dataclasses once, at the
ingestion boundary. Everything downstream can rely on numeric fields being
either a finite number or ``None``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


def _to_float(value) -> float | None:
    """Coerce a JSON value to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value) -> int:
    """Coerce a JSON count to a non-negative int, defaulting to 0."""
    number = _to_float(value)
    if number is None or number < 0:
        return 0
    return int(number)


@dataclass
class RawOption:
    """One call or put row as reported by the chain provider.

    Attributes:
        contract_symbol: Provider contract id (e.g. AAPL250117C00200000).
        strike: Strike price.
        last_price: Last traded price, None if unquoted.
        change: Absolute price change on the day.
        percent_change: Percent change on the day (e.g. 12.3 for +12.3%).
        volume: Contracts traded today.
        open_interest: Open interest.
        implied_volatility: Decimal IV (0.45 = 45%), unclamped.
        in_the_money: Provider ITM flag.
    """

    contract_symbol: str
    strike: float
    last_price: float | None = None
    change: float | None = None
    percent_change: float | None = None
    volume: int = 0
    open_interest: int = 0
    implied_volatility: float | None = None
    in_the_money: bool | None = None

    @classmethod
    def from_yahoo(cls, row: dict) -> RawOption | None:
        """Parse a Yahoo option row. Rows without a usable strike are dropped."""
        if not isinstance(row, dict):
            return None
        strike = _to_float(row.get("strike"))
        if strike is None or strike <= 0:
            return None
        itm = row.get("inTheMoney")
        return cls(
            contract_symbol=str(row.get("contractSymbol") or ""),
            strike=strike,
            last_price=_to_float(row.get("lastPrice")),
            change=_to_float(row.get("change")),
            percent_change=_to_float(row.get("percentChange")),
            volume=_to_int(row.get("volume")),
            open_interest=_to_int(row.get("openInterest")),
            implied_volatility=_to_float(row.get("impliedVolatility")),
            in_the_money=itm if isinstance(itm, bool) else None,
        )


@dataclass
class ExpirationBlock:
    """Calls and puts sharing one expiration.

    Attributes:
        expiration: Expiration as epoch seconds.
        calls: Call rows.
        puts: Put rows.
    """

    expiration: int
    calls: list[RawOption] = field(default_factory=list)
    puts: list[RawOption] = field(default_factory=list)


@dataclass
class OptionChain:
    """Option chain for one underlying.

    Attributes:
        symbol: Underlying ticker.
        spot: Underlying price, None if the provider did not report one.
        expiration_dates: All listed expirations (epoch seconds).
        blocks: Expiration blocks included in the response.
    """

    symbol: str
    spot: float | None
    expiration_dates: list[int] = field(default_factory=list)
    blocks: list[ExpirationBlock] = field(default_factory=list)

    @classmethod
    def from_yahoo(cls, payload: dict, symbol: str) -> OptionChain:
        """Build a chain from a Yahoo ``optionChain.result[0]`` object."""
        quote = payload.get("quote") or {}
        expirations = []
        for ts in payload.get("expirationDates") or []:
            value = _to_float(ts)
            if value is not None:
                expirations.append(int(value))

        blocks = []
        for raw in payload.get("options") or []:
            expiration = _to_float(raw.get("expirationDate"))
            if expiration is None:
                continue
            blocks.append(
                ExpirationBlock(
                    expiration=int(expiration),
                    calls=[c for c in map(RawOption.from_yahoo, raw.get("calls") or []) if c],
                    puts=[p for p in map(RawOption.from_yahoo, raw.get("puts") or []) if p],
                )
            )

        return cls(
            symbol=symbol.upper(),
            spot=_to_float(quote.get("regularMarketPrice")),
            expiration_dates=sorted(expirations),
            blocks=blocks,
        )


@dataclass
class OptionContract:
    """A priced contract ready for ranking.

    Attributes:
        underlying: Underlying ticker.
        contract_id: Contract symbol, unique per contract.
        option_type: 'call' or 'put'.
        strike: Strike price.
        expiry: Expiration as epoch seconds.
        last_price: Last traded price, None if unquoted.
        change_abs: Absolute change, None if unknown.
        change_pct: Percent change, None if unknown (never defaulted to 0).
        volume: Contracts traded today.
        open_interest: Open interest.
        implied_volatility: Clamped decimal IV.
        delta: Delta magnitude (0-1).
        signed_delta: Signed delta (-1 to 1).
        gamma: Gamma.
    """

    underlying: str
    contract_id: str
    option_type: str  # 'call' or 'put'
    strike: float
    expiry: int
    last_price: float | None
    change_abs: float | None
    change_pct: float | None
    volume: int
    open_interest: int
    implied_volatility: float
    delta: float
    signed_delta: float
    gamma: float

    def to_dict(self) -> dict:
        """Convert to the wire shape used by the screener endpoint."""
        return {
            "symbol": self.underlying,
            "option": self.contract_id,
            "type": "Call" if self.option_type == "call" else "Put",
            "last": self.last_price,
            "changeAbs": self.change_abs,
            "changePct": self.change_pct,
            "volume": self.volume,
            "oi": self.open_interest,
            "ivPct": round(self.implied_volatility * 100.0, 4),
            "strike": self.strike,
            "expiry": self.expiry,
            "delta": round(self.delta, 6),
            "signedDelta": round(self.signed_delta, 6),
            "gamma": round(self.gamma, 6),
        }
