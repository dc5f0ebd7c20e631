"""
FastAPI server for the options screener and options metrics endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from econopulse.config import ScreenerConfig
from econopulse.data.base import ChainProvider
from econopulse.data.yahoo import YahooOptionsProvider
from econopulse.metrics import get_options_metrics
from econopulse.ratelimit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitResult,
    get_client_ip,
    rate_limit_headers,
)
from econopulse.screener import parse_universe, run_screener

logger = logging.getLogger(__name__)


def _client_key(request: Request, endpoint: str) -> str:
    ip = get_client_ip(request.headers)
    if ip == "unknown" and request.client is not None:
        ip = request.client.host
    return f"{endpoint}:{ip}"


def _rate_limited(result: RateLimitResult) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "rate_limited"},
        headers=rate_limit_headers(result),
    )


def create_app(
    provider: ChainProvider | None = None,
    config: ScreenerConfig | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        provider: Chain provider. Defaults to Yahoo Finance.
        config: Settings. Defaults to ``ScreenerConfig.from_env()``.
        limiter: Inbound limiter shared by all endpoints. Defaults to an
            in-memory limiter using the configured policy.
    """
    config = config or ScreenerConfig.from_env()
    provider = provider or YahooOptionsProvider(timeout=config.fetch_timeout)
    limiter = limiter or RateLimiter(
        config.rate_limit,
        config.rate_limit_window_ms,
        store=InMemoryRateLimitStore(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown events."""
        logger.info("Starting EconoPulse options API...")
        yield
        logger.info("Shutting down EconoPulse options API...")

    app = FastAPI(
        title="EconoPulse Options API",
        description="Options screener and positioning metrics",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.provider = provider
    app.state.config = config
    app.state.limiter = limiter

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/api/options-screener")
    def options_screener(
        request: Request,
        universe: str | None = Query(default=None, description="Comma-separated extra tickers"),
        limit: str | None = Query(default=None, description="Rows per view, clamped to 10..100"),
    ):
        """Rank nearest-expiry contracts across a liquid universe into five views."""
        rl = limiter.check(_client_key(request, "options-screener"))
        if not rl.ok:
            return _rate_limited(rl)

        headers = rate_limit_headers(rl)
        try:
            result = run_screener(
                provider,
                user_universe=parse_universe(universe),
                limit=limit if limit is not None else 50,
                config=config,
            )
        except Exception:
            logger.exception("Options screener failed")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "internal_error"},
                headers=headers,
            )

        headers["Cache-Control"] = "no-store"
        return JSONResponse(content=result.to_dict(), headers=headers)

    @app.get("/api/options-metrics/{symbol}")
    def options_metrics(
        request: Request,
        symbol: str,
        expirations: int = Query(default=2, ge=1, le=6),
    ):
        """Put/call ratios, gamma exposure and skew for one underlying."""
        rl = limiter.check(_client_key(request, "options-metrics"))
        if not rl.ok:
            return _rate_limited(rl)

        headers = rate_limit_headers(rl)
        metrics = get_options_metrics(
            symbol,
            provider,
            expirations_to_use=expirations,
            risk_free_rate=config.risk_free_rate,
        )
        if metrics is None:
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": "no_data"},
                headers=headers,
            )
        return JSONResponse(content={"success": True, **metrics.to_dict()}, headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "internal_error"},
        )

    return app
