"""Tests for CLI commands.

Tests the CLI argument parsing and command routing.
Uses mocked providers — no real network calls.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from econopulse.cli import build_parser, cmd_greeks, cmd_metrics, main
from econopulse.config import ScreenerConfig


class TestCLIParser:
    """Tests for CLI argument parsing."""

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert args.host == "127.0.0.1"
        assert args.port == 8000

    def test_screen_options(self):
        args = build_parser().parse_args(["screen", "--universe", "PLTR,COIN", "--limit", "20"])
        assert args.universe == "PLTR,COIN"
        assert args.limit == 20

    def test_greeks_positional(self):
        args = build_parser().parse_args(["greeks", "100", "95", "0.3", "0.25", "--type", "put"])
        assert (args.spot, args.strike, args.sigma, args.years) == (100.0, 95.0, 0.3, 0.25)
        assert args.type == "put"
        assert args.rate is None

    def test_greeks_rejects_unknown_type(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["greeks", "100", "100", "0.2", "1", "--type", "straddle"])

    def test_metrics_expirations(self):
        args = build_parser().parse_args(["metrics", "NVDA", "-e", "3"])
        assert args.symbol == "NVDA"
        assert args.expirations == 3


class TestGreeksCommand:
    """Tests for the greeks command output."""

    def test_reference_values(self, capsys):
        args = build_parser().parse_args(["greeks", "100", "100", "0.25", "0.5", "--rate", "0.03"])
        args.config = ScreenerConfig()
        cmd_greeks(args)

        data = json.loads(capsys.readouterr().out)
        assert data["option_type"] == "call"
        assert data["delta"] == pytest.approx(0.56877, abs=1e-4)
        assert data["gamma"] == pytest.approx(0.022232, abs=1e-5)

    def test_rate_defaults_to_config(self, capsys):
        args = build_parser().parse_args(["greeks", "100", "100", "0.25", "0.5"])
        args.config = ScreenerConfig(risk_free_rate=0.05)
        cmd_greeks(args)
        assert json.loads(capsys.readouterr().out)["rate"] == 0.05

    def test_invalid_input_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["greeks", "100", "100", "0", "0.5"])
        assert exc.value.code == 1
        assert "error" in json.loads(capsys.readouterr().out)


class TestMetricsCommand:

    def test_no_data_exits(self, capsys):
        args = build_parser().parse_args(["metrics", "zzzz"])
        args.config = ScreenerConfig()
        with patch("econopulse.metrics.get_options_metrics", return_value=None), \
                patch("econopulse.data.yahoo.YahooOptionsProvider"):
            with pytest.raises(SystemExit) as exc:
                cmd_metrics(args)
        assert exc.value.code == 1
        assert "ZZZZ" in json.loads(capsys.readouterr().out)["error"]


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
