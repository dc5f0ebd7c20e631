"""EconoPulse options analytics: Greeks, screener, metrics and rate limiting."""

__version__ = "1.0.0"
