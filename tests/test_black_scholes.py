"""
Tests for Black-Scholes pricing and delta.
"""

import math

import pytest

from options_strategy_bt.pricing.black_scholes import (
    RISK_FREE_RATE,
    black_scholes,
    intrinsic_value,
    norm_cdf,
    option_delta,
    option_price,
)


def test_norm_cdf_reference_points():
    assert norm_cdf(0.0) == pytest.approx(0.5)
    assert norm_cdf(1.96) == pytest.approx(0.9750021, abs=1e-6)
    assert norm_cdf(-1.96) == pytest.approx(1 - 0.9750021, abs=1e-6)


@pytest.mark.parametrize("spot", [70.0, 95.0, 100.0, 105.0, 140.0])
@pytest.mark.parametrize("vol", [0.1, 0.3, 0.8, 1.5])
@pytest.mark.parametrize("dte", [1, 30, 365])
def test_put_call_parity(spot, vol, dte):
    strike = 100.0
    T = dte / 365.0
    call = option_price("call", spot, strike, dte, vol)
    put = option_price("put", spot, strike, dte, vol)
    assert call - put == pytest.approx(spot - strike * math.exp(-RISK_FREE_RATE * T), abs=1e-6)


@pytest.mark.parametrize("spot,strike", [(110.0, 100.0), (90.0, 100.0), (100.0, 100.0)])
def test_prices_converge_to_intrinsic_near_expiry(spot, strike):
    tiny = 1e-8
    assert option_price("call", spot, strike, tiny, 0.3) == pytest.approx(max(spot - strike, 0.0), abs=1e-3)
    assert option_price("put", spot, strike, tiny, 0.3) == pytest.approx(max(strike - spot, 0.0), abs=1e-3)


def test_degenerate_inputs_fall_back_to_intrinsic():
    assert option_price("call", 110, 100, 0, 0.3) == 10
    assert option_price("put", 90, 100, 0, 0.3) == 10
    assert option_price("put", 110, 100, -5, 0.3) == 0
    assert option_price("call", 110, 100, 30, 0.0) == 10
    assert option_price("call", 0, 100, 30, 0.3) == 0
    assert option_price("put", 0, 100, 30, 0.3) == 100
    assert option_price("call", 100, 0, 30, 0.3) == 100


def test_degenerate_delta_by_moneyness():
    assert option_delta("call", 110, 100, 0, 0.3) == 1.0
    assert option_delta("call", 90, 100, 0, 0.3) == 0.0
    assert option_delta("put", 90, 100, 0, 0.3) == -1.0
    assert option_delta("put", 110, 100, 0, 0.3) == 0.0
    assert option_delta("call", 100, 100, 30, 0.0) == 0.0


@pytest.mark.parametrize("spot", [50.0, 90.0, 100.0, 110.0, 200.0])
@pytest.mark.parametrize("strike", [60.0, 100.0, 150.0])
@pytest.mark.parametrize("dte", [1, 30, 180])
def test_delta_bounds(spot, strike, dte):
    call = option_delta("call", spot, strike, dte, 0.4)
    put = option_delta("put", spot, strike, dte, 0.4)
    assert 0.0 <= call <= 1.0
    assert -1.0 <= put <= 0.0
    assert call - put == pytest.approx(1.0)


def test_atm_call_delta_slightly_above_half():
    assert 0.5 < option_delta("call", 100, 100, 30, 0.2) < 0.6


def test_price_increases_with_volatility():
    low = option_price("call", 100, 105, 30, 0.15)
    high = option_price("call", 100, 105, 30, 0.45)
    assert high > low > 0


def test_black_scholes_returns_price_and_delta():
    result = black_scholes("put", 100, 95, 30, 0.25)
    assert result.price == pytest.approx(option_price("put", 100, 95, 30, 0.25))
    assert result.delta == pytest.approx(option_delta("put", 100, 95, 30, 0.25))


def test_intrinsic_value():
    assert intrinsic_value("call", 105, 100) == 5
    assert intrinsic_value("call", 95, 100) == 0
    assert intrinsic_value("put", 95, 100) == 5
    assert intrinsic_value("put", 105, 100) == 0
