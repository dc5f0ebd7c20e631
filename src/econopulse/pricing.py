"""Black-Scholes delta and gamma.

Pure-Python closed-form Greeks for European options. Callers are expected
to pre-clamp volatility and floor time-to-expiry; anything degenerate is
rejected with ``ValueError`` rather than turned into NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Standard normal CDF and PDF using math.erf
_SQRT2 = math.sqrt(2.0)
_SQRT2PI = math.sqrt(2.0 * math.pi)


def norm_cdf(x: float) -> float:
    """Standard normal cumulative distribution function."""
    return 0.5 * (1.0 + math.erf(x / _SQRT2))


def norm_pdf(x: float) -> float:
    """Standard normal probability density function."""
    return math.exp(-0.5 * x * x) / _SQRT2PI


@dataclass
class Greeks:
    """Delta and gamma for one contract.

    Attributes:
        delta: Delta magnitude (0-1). Puts report ``abs(signed_delta)``.
        signed_delta: Black-Scholes delta with its sign (-1 to 1).
        gamma: Rate of change of delta w.r.t. underlying price.
    """

    delta: float
    signed_delta: float
    gamma: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "delta": round(self.delta, 6),
            "signed_delta": round(self.signed_delta, 6),
            "gamma": round(self.gamma, 6),
        }


def _check_inputs(S: float, K: float, sigma: float, T: float) -> None:
    for name, value in (("S", S), ("K", K), ("sigma", sigma), ("T", T)):
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{name} must be a positive finite number, got {value!r}")


def d1(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Calculate d1 for the Black-Scholes formula.

    Args:
        S: Underlying price.
        K: Strike price.
        r: Risk-free interest rate (annualized).
        sigma: Volatility (annualized, e.g. 0.25 for 25%).
        T: Time to expiry in years.

    Returns:
        d1.

    Raises:
        ValueError: If S, K, sigma or T is not a positive finite number.
    """
    _check_inputs(S, K, sigma, T)
    return (math.log(S / K) + (r + 0.5 * sigma * sigma) * T) / (sigma * math.sqrt(T))


def d2(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Calculate d2 = d1 - sigma * sqrt(T)."""
    return d1(S, K, r, sigma, T) - sigma * math.sqrt(T)


def call_delta(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Call delta, N(d1)."""
    return norm_cdf(d1(S, K, r, sigma, T))


def put_delta(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Signed put delta, N(d1) - 1."""
    return call_delta(S, K, r, sigma, T) - 1.0


def gamma(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Gamma, identical for calls and puts."""
    return norm_pdf(d1(S, K, r, sigma, T)) / (S * sigma * math.sqrt(T))


def calculate_greeks(
    S: float,
    K: float,
    r: float,
    sigma: float,
    T: float,
    option_type: str = "call",
) -> Greeks:
    """Calculate delta and gamma for an option.

    Args:
        S: Underlying price.
        K: Strike price.
        r: Risk-free rate (annualized).
        sigma: Volatility (annualized).
        T: Time to expiry in years.
        option_type: 'call' or 'put'.

    Returns:
        Greeks with magnitude delta, signed delta and gamma.

    Raises:
        ValueError: On degenerate inputs or an unknown option type.
    """
    if option_type not in ("call", "put"):
        raise ValueError(f"option_type must be 'call' or 'put', got {option_type!r}")

    _d1 = d1(S, K, r, sigma, T)
    sqrt_T = math.sqrt(T)

    # Gamma (same for calls and puts)
    g = norm_pdf(_d1) / (S * sigma * sqrt_T)

    if option_type == "call":
        signed = norm_cdf(_d1)
    else:
        signed = norm_cdf(_d1) - 1.0

    return Greeks(delta=abs(signed), signed_delta=signed, gamma=g)
