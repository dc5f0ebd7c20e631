"""Tests for per-contract analytics assembly."""

from __future__ import annotations

import math

import pytest

from econopulse.analytics import (
    DEFAULT_IV,
    build_contracts,
    clamp_iv,
    derive_change_pct,
    next_live_expiration,
    select_nearest_block,
    year_fraction,
)
from econopulse.data.schema import ExpirationBlock, OptionChain
from econopulse.pricing import calculate_greeks
from tests.conftest import DAY, NOW, make_chain, make_option


class TestClampIV:
    """Tests for IV clamping and defaulting."""

    @pytest.mark.parametrize("iv", [None, float("nan"), float("inf"), 0.0, -0.5])
    def test_missing_defaults(self, iv):
        assert clamp_iv(iv) == DEFAULT_IV == 0.25

    def test_low_clamped(self):
        assert clamp_iv(0.001) == 0.01

    def test_high_clamped(self):
        assert clamp_iv(7.5) == 3.0

    def test_in_range_untouched(self):
        assert clamp_iv(0.42) == 0.42


class TestYearFraction:

    def test_floor_one_day(self):
        assert year_fraction(60.0) == pytest.approx(1 / 365)
        assert year_fraction(-100.0) == pytest.approx(1 / 365)

    def test_half_year(self):
        assert year_fraction(182.5 * DAY) == pytest.approx(0.5)


class TestDeriveChangePct:
    """Percent change is reported, derived, or left as None."""

    def test_reported_value_wins(self):
        assert derive_change_pct(12.5, 0.1, 1.0) == 12.5

    def test_derived_from_change(self):
        # previous = 2.0 - 0.5 = 1.5, 0.5 / 1.5 = 33.33%
        assert derive_change_pct(None, 0.5, 2.0) == pytest.approx(33.3333, abs=1e-3)

    def test_zero_change_is_zero_not_none(self):
        assert derive_change_pct(None, 0.0, 2.0) == 0.0

    def test_missing_inputs_none(self):
        assert derive_change_pct(None, None, 2.0) is None
        assert derive_change_pct(None, 0.5, None) is None

    def test_zero_denominator_none(self):
        assert derive_change_pct(None, 2.0, 2.0) is None

    def test_non_finite_reported_falls_back(self):
        assert derive_change_pct(float("nan"), 0.5, 2.0) == pytest.approx(33.3333, abs=1e-3)


class TestSelectNearestBlock:

    def test_skips_expired(self):
        chain = make_chain(expiries=[int(NOW - DAY), int(NOW + 3 * DAY), int(NOW + DAY)])
        block = select_nearest_block(chain, NOW)
        assert block.expiration == int(NOW + DAY)

    def test_expiry_equal_to_now_is_expired(self):
        chain = make_chain(expiries=[int(NOW)])
        assert select_nearest_block(chain, NOW) is None

    def test_no_blocks(self):
        chain = OptionChain(symbol="SPY", spot=100.0)
        assert select_nearest_block(chain, NOW) is None


class TestNextLiveExpiration:

    def test_uses_listed_dates(self):
        chain = OptionChain(
            symbol="SPY",
            spot=100.0,
            expiration_dates=[int(NOW - 3600), int(NOW + 3 * DAY), int(NOW + DAY)],
        )
        assert next_live_expiration(chain, NOW) == int(NOW + DAY)

    def test_none_listed(self):
        chain = OptionChain(symbol="SPY", spot=100.0, expiration_dates=[int(NOW)])
        assert next_live_expiration(chain, NOW) is None


class TestBuildContracts:
    """Tests for turning a chain into priced contracts."""

    def test_nearest_block_only(self, chain):
        contracts = build_contracts(chain, now=NOW)
        assert len(contracts) == 10
        assert {c.expiry for c in contracts} == {int(NOW + 7 * DAY)}

    def test_calls_then_puts(self, chain):
        contracts = build_contracts(chain, now=NOW)
        assert [c.option_type for c in contracts] == ["call"] * 5 + ["put"] * 5

    def test_expiry_in_future(self):
        chain = make_chain(expiries=[int(NOW - 3600), int(NOW + 3600)])
        contracts = build_contracts(chain, now=NOW)
        assert contracts
        assert all(c.expiry > NOW for c in contracts)

    def test_all_expired_yields_nothing(self):
        chain = make_chain(expiries=[int(NOW - DAY)])
        assert build_contracts(chain, now=NOW) == []

    @pytest.mark.parametrize("spot", [None, 0.0, -5.0])
    def test_unusable_spot_yields_nothing(self, spot):
        assert build_contracts(make_chain(spot=spot), now=NOW) == []

    def test_greeks_match_pricing(self):
        expiry = int(NOW + 182.5 * DAY)
        chain = OptionChain(
            symbol="spy",
            spot=100.0,
            blocks=[ExpirationBlock(
                expiration=expiry,
                calls=[make_option("SPY", expiry, "call", 100.0, iv=0.25)],
                puts=[make_option("SPY", expiry, "put", 100.0, iv=0.25)],
            )],
        )
        call, put = build_contracts(chain, now=NOW, risk_free_rate=0.03)
        expected = calculate_greeks(100.0, 100.0, 0.03, 0.25, 0.5, "call")
        assert call.underlying == "SPY"
        assert call.delta == pytest.approx(expected.delta)
        assert call.gamma == pytest.approx(expected.gamma)
        assert put.delta == pytest.approx(1 - expected.delta)
        assert put.signed_delta == pytest.approx(expected.delta - 1)
        assert put.gamma == pytest.approx(call.gamma)

    def test_iv_clamped_and_defaulted(self):
        expiry = int(NOW + 30 * DAY)
        chain = OptionChain(
            symbol="SPY",
            spot=100.0,
            blocks=[ExpirationBlock(
                expiration=expiry,
                calls=[
                    make_option("SPY", expiry, "call", 95.0, iv=None),
                    make_option("SPY", expiry, "call", 100.0, iv=9.0),
                    make_option("SPY", expiry, "call", 105.0, iv=0.0001),
                ],
            )],
        )
        ivs = [c.implied_volatility for c in build_contracts(chain, now=NOW)]
        assert ivs == [0.25, 3.0, 0.01]

    def test_expiry_within_a_day_uses_floor(self):
        """Contracts minutes from expiry still price with finite Greeks."""
        chain = make_chain(expiries=[int(NOW + 60)])
        contracts = build_contracts(chain, now=NOW)
        assert contracts
        assert all(math.isfinite(c.delta) and math.isfinite(c.gamma) for c in contracts)

    def test_bad_row_skipped_not_whole_chain(self):
        expiry = int(NOW + 7 * DAY)
        chain = OptionChain(
            symbol="SPY",
            spot=100.0,
            blocks=[ExpirationBlock(
                expiration=expiry,
                calls=[
                    make_option("SPY", expiry, "call", 0.0),
                    make_option("SPY", expiry, "call", 100.0),
                ],
                puts=[make_option("SPY", expiry, "put", 100.0)],
            )],
        )
        contracts = build_contracts(chain, now=NOW)
        assert [(c.option_type, c.strike) for c in contracts] == [("call", 100.0), ("put", 100.0)]

    def test_change_pct_none_preserved(self):
        expiry = int(NOW + 7 * DAY)
        chain = OptionChain(
            symbol="SPY",
            spot=100.0,
            blocks=[ExpirationBlock(
                expiration=expiry,
                calls=[make_option("SPY", expiry, "call", 100.0, last_price=None, change=None)],
            )],
        )
        (contract,) = build_contracts(chain, now=NOW)
        assert contract.change_pct is None
        assert contract.to_dict()["changePct"] is None
