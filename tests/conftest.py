"""Shared test fixtures for econopulse tests."""

from __future__ import annotations

import pytest

from econopulse import metrics, ratelimit
from econopulse.data.base import ChainProvider
from econopulse.data.schema import ExpirationBlock, OptionChain, RawOption

NOW = 1_700_000_000.0  # 2023-11-14T22:13:20Z
DAY = 86_400


def make_option(
    underlying: str,
    expiry: int,
    option_type: str,
    strike: float,
    *,
    last_price: float | None = 2.0,
    change: float | None = 0.1,
    percent_change: float | None = None,
    volume: int = 100,
    open_interest: int = 500,
    iv: float | None = 0.30,
) -> RawOption:
    """Build a raw option row with an OCC-style contract symbol."""
    cp = "C" if option_type == "call" else "P"
    return RawOption(
        contract_symbol=f"{underlying}{expiry}{cp}{int(strike * 1000):08d}",
        strike=strike,
        last_price=last_price,
        change=change,
        percent_change=percent_change,
        volume=volume,
        open_interest=open_interest,
        implied_volatility=iv,
    )


def make_chain(
    symbol: str = "SPY",
    spot: float | None = 100.0,
    expiries: list[int] | None = None,
    strikes: list[float] | None = None,
) -> OptionChain:
    """Build a chain with calls and puts at every strike and expiry."""
    expiries = expiries or [int(NOW + 7 * DAY), int(NOW + 14 * DAY)]
    strikes = strikes or [90.0, 95.0, 100.0, 105.0, 110.0]
    blocks = []
    for expiry in expiries:
        blocks.append(
            ExpirationBlock(
                expiration=expiry,
                calls=[make_option(symbol, expiry, "call", k) for k in strikes],
                puts=[make_option(symbol, expiry, "put", k) for k in strikes],
            )
        )
    return OptionChain(symbol=symbol, spot=spot, expiration_dates=list(expiries), blocks=blocks)


class MockChainProvider(ChainProvider):
    """In-memory chain provider for tests.

    Args:
        chains: Chains keyed by upper-case symbol. Missing symbols return None.
        most_active: Tickers returned by ``get_most_active_symbols``.
        failing: Symbols whose fetch raises ``ConnectionError``.
    """

    def __init__(
        self,
        chains: dict[str, OptionChain] | None = None,
        most_active: list[str] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.chains = chains or {}
        self.most_active = most_active or []
        self.failing = failing or set()
        self.requested: list[tuple[str, int | None]] = []

    def get_option_chain(self, symbol: str, date: int | None = None) -> OptionChain | None:
        self.requested.append((symbol, date))
        if symbol in self.failing:
            raise ConnectionError(f"upstream down for {symbol}")
        return self.chains.get(symbol.upper())

    def get_most_active_symbols(self, count: int = 20) -> list[str]:
        return self.most_active[:count]


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Module-level caches and stores must not leak between tests."""
    metrics._cache.clear()
    ratelimit._default_store.clear()
    yield
    metrics._cache.clear()
    ratelimit._default_store.clear()


@pytest.fixture
def chain():
    """A five-strike SPY chain with two live expirations."""
    return make_chain()


@pytest.fixture
def mock_provider():
    """Provider with SPY and QQQ chains."""
    return MockChainProvider(
        chains={
            "SPY": make_chain("SPY", spot=100.0),
            "QQQ": make_chain("QQQ", spot=102.0),
        },
        most_active=["PLTR", "SPY"],
    )
