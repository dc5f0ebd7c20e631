"""Data providers for option-chain data."""

from econopulse.data.base import ChainProvider
from econopulse.data.schema import ExpirationBlock, OptionChain, OptionContract, RawOption

__all__ = ["ChainProvider", "ExpirationBlock", "OptionChain", "OptionContract", "RawOption"]
