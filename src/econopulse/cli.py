"""CLI interface for the EconoPulse options tools.

Usage:
    econopulse serve --port 8000
    econopulse screen --universe PLTR,COIN --limit 20
    econopulse greeks 100 100 0.25 0.5 --rate 0.03 --type put
    econopulse metrics NVDA --expirations 2
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from econopulse.config import ScreenerConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _output(data: dict | list) -> None:
    """Print structured output as JSON."""
    print(json.dumps(data, indent=2, default=str))


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


# ─── Serve ─────────────────────────────────────────────────────

def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API."""
    import uvicorn

    from econopulse.api import create_app

    uvicorn.run(create_app(config=args.config), host=args.host, port=args.port)


# ─── Screen ────────────────────────────────────────────────────

def cmd_screen(args: argparse.Namespace) -> None:
    """Run the options screener once and print the views."""
    from econopulse.data.yahoo import YahooOptionsProvider
    from econopulse.screener import parse_universe, run_screener

    config = args.config
    provider = YahooOptionsProvider(timeout=config.fetch_timeout)
    result = run_screener(
        provider,
        user_universe=parse_universe(args.universe),
        limit=args.limit,
        config=config,
    )
    _output(result.to_dict())


# ─── Greeks ────────────────────────────────────────────────────

def cmd_greeks(args: argparse.Namespace) -> None:
    """Compute Black-Scholes delta and gamma."""
    from econopulse.pricing import calculate_greeks

    rate = args.rate if args.rate is not None else args.config.risk_free_rate
    greeks = calculate_greeks(args.spot, args.strike, rate, args.sigma, args.years, args.type)
    _output({
        "spot": args.spot,
        "strike": args.strike,
        "rate": rate,
        "sigma": args.sigma,
        "years": args.years,
        "option_type": args.type,
        **greeks.to_dict(),
    })


# ─── Metrics ───────────────────────────────────────────────────

def cmd_metrics(args: argparse.Namespace) -> None:
    """Compute positioning metrics for one underlying."""
    from econopulse.data.yahoo import YahooOptionsProvider
    from econopulse.metrics import get_options_metrics

    config = args.config
    provider = YahooOptionsProvider(timeout=config.fetch_timeout)
    metrics = get_options_metrics(
        args.symbol,
        provider,
        expirations_to_use=args.expirations,
        risk_free_rate=config.risk_free_rate,
    )
    if metrics is None:
        _output({"error": f"No options data for {args.symbol.upper()}"})
        sys.exit(1)
    _output(metrics.to_dict())


# ─── Parser ────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="econopulse",
        description="EconoPulse options analytics — screener, Greeks and positioning metrics",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    p_serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    p_serve.set_defaults(func=cmd_serve)

    # screen
    p_screen = subparsers.add_parser("screen", help="Run the options screener once")
    p_screen.add_argument("--universe", "-u", help="Extra comma-separated tickers")
    p_screen.add_argument("--limit", "-l", type=int, default=50, help="Rows per view (10-100, default: 50)")
    p_screen.set_defaults(func=cmd_screen)

    # greeks
    p_greeks = subparsers.add_parser("greeks", help="Black-Scholes delta and gamma")
    p_greeks.add_argument("spot", type=float, help="Underlying price")
    p_greeks.add_argument("strike", type=float, help="Strike price")
    p_greeks.add_argument("sigma", type=float, help="Volatility, decimal (0.25 = 25%%)")
    p_greeks.add_argument("years", type=float, help="Time to expiry in years")
    p_greeks.add_argument("--rate", "-r", type=float, help="Risk-free rate (default: OPTIONS_RF_RATE or 0.03)")
    p_greeks.add_argument("--type", "-t", default="call", choices=["call", "put"])
    p_greeks.set_defaults(func=cmd_greeks)

    # metrics
    p_metrics = subparsers.add_parser("metrics", help="Put/call, GEX and skew for one ticker")
    p_metrics.add_argument("symbol", help="Underlying symbol")
    p_metrics.add_argument("--expirations", "-e", type=int, default=2, help="Nearest expirations to use (default: 2)")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.config = ScreenerConfig.from_env()
    _configure_logging(args.config.log_level)

    try:
        args.func(args)
    except ValueError as e:
        _output({"error": str(e)})
        sys.exit(1)
    except Exception as e:
        _output({"error": str(e), "type": type(e).__name__})
        sys.exit(1)


if __name__ == "__main__":
    main()
