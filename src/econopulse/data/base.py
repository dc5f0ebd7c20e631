"""Abstract base class for option-chain providers.

The screener and the metrics module talk to market data exclusively
through this abstraction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from econopulse.data.schema import OptionChain


class ChainProvider(ABC):
    """Abstract interface for option-chain data providers."""

    @abstractmethod
    def get_option_chain(self, symbol: str, date: int | None = None) -> OptionChain | None:
        """Get the option chain for an underlying.

        Args:
            symbol: Underlying ticker (e.g. 'AAPL').
            date: Optional expiration (epoch seconds) to request. None means
                the provider's default, usually the nearest expiration.

        Returns:
            OptionChain, or None if the provider has no data.

        Raises:
            Any transport error. Callers decide whether a failure is fatal.
        """

    @abstractmethod
    def get_most_active_symbols(self, count: int = 20) -> list[str]:
        """List the provider's most active tickers, most active first.

        Args:
            count: Maximum number of tickers.

        Returns:
            List of tickers, possibly empty.
        """
