"""Tests for the position reward calculator."""

from __future__ import annotations

import logging

import pytest

from stakeledger.core.rewards import (
    Estimated,
    Exact,
    FallbackPolicy,
    PositionPhase,
    compute_reward,
    fallback_estimate,
    position_phase,
    position_reward,
)
from stakeledger.state.rates import ExchangeRate
from stakeledger.state.records import StakePosition


def _rate(native: int, token: int) -> ExchangeRate:
    return ExchangeRate(native_amount=native, pool_token_amount=token)


def _pos(principal: int = 1_000_000, activation: int = 10) -> StakePosition:
    return StakePosition(object_id="0xstake", principal=principal, activation_epoch=activation)


# ---------------------------------------------------------------------------
# compute_reward
# ---------------------------------------------------------------------------

def test_ten_percent_growth_is_exact() -> None:
    assert compute_reward(1_000_000, _rate(110, 100), _rate(100, 100)) == 100_000


def test_multiply_before_divide_keeps_precision() -> None:
    # Dividing first would give principal * (1_000_000_007 // 1_000_000_000) = principal.
    principal = 10**18
    reward = compute_reward(principal, _rate(1_000_000_007, 1_000_000_000), _rate(1, 1))
    assert reward == 7 * 10**9


@pytest.mark.parametrize(
    "current,deposit",
    [
        ((110, 0), (100, 100)),
        ((110, 100), (100, 0)),
        ((110, 100), (0, 100)),
        ((0, 0), (0, 0)),
    ],
)
def test_degenerate_rates_yield_zero(current, deposit) -> None:
    assert compute_reward(5_000, _rate(*current), _rate(*deposit)) == 0


def test_rate_drop_clamps_to_zero() -> None:
    assert compute_reward(1_000, _rate(90, 100), _rate(100, 100)) == 0


def test_rejects_negative_principal() -> None:
    with pytest.raises(ValueError):
        compute_reward(-1, _rate(1, 1), _rate(1, 1))


def test_exchange_rate_rejects_bool() -> None:
    with pytest.raises(TypeError):
        ExchangeRate(native_amount=True, pool_token_amount=1)  # type: ignore[arg-type]


def test_exchange_rate_display() -> None:
    assert _rate(110, 100).display() == pytest.approx(1.1)
    assert _rate(5, 0).display() == 1.0


# ---------------------------------------------------------------------------
# phases
# ---------------------------------------------------------------------------

def test_position_phase_boundaries() -> None:
    assert position_phase(10, 9) is PositionPhase.PENDING
    assert position_phase(10, 10) is PositionPhase.ACTIVE_NOT_EARNING
    assert position_phase(10, 11) is PositionPhase.ACTIVE_EARNING
    assert not PositionPhase.PENDING.is_active
    assert PositionPhase.ACTIVE_NOT_EARNING.is_active


def test_activation_epoch_itself_earns_nothing() -> None:
    r = position_reward(_pos(activation=10), current_epoch=10, current_rate=_rate(110, 100), deposit_rate=_rate(100, 100))
    assert r == Exact(0)


def test_one_epoch_after_activation_earns() -> None:
    r = position_reward(_pos(activation=9), current_epoch=10, current_rate=_rate(110, 100), deposit_rate=_rate(100, 100))
    assert isinstance(r, Exact)
    assert r.amount > 0


def test_pending_position_has_no_reward() -> None:
    r = position_reward(_pos(activation=12), current_epoch=10, current_rate=_rate(110, 100), deposit_rate=None)
    assert r == Exact(0)


# ---------------------------------------------------------------------------
# fallback policy
# ---------------------------------------------------------------------------

def test_missing_rate_after_two_epochs_is_estimated(caplog) -> None:
    policy = FallbackPolicy(accrual_ppm=14, min_epochs=2)
    with caplog.at_level(logging.WARNING, logger="stakeledger.core.rewards"):
        r = position_reward(
            _pos(principal=1_000_000_000, activation=10),
            current_epoch=15,
            current_rate=_rate(110, 100),
            deposit_rate=None,
            policy=policy,
        )
    assert isinstance(r, Estimated)
    assert r.estimated
    assert r.amount == fallback_estimate(1_000_000_000, 5, policy) == 70_000
    assert "fallback estimate" in caplog.text


def test_missing_rate_under_two_epochs_reports_zero() -> None:
    r = position_reward(_pos(activation=10), current_epoch=11, current_rate=_rate(110, 100), deposit_rate=None)
    assert r == Exact(0)
    assert not r.estimated


def test_undefined_deposit_rate_uses_fallback() -> None:
    r = position_reward(
        _pos(principal=1_000_000, activation=1),
        current_epoch=11,
        current_rate=_rate(110, 100),
        deposit_rate=_rate(100, 0),
    )
    assert isinstance(r, Estimated)


def test_exact_and_estimated_are_distinct_values() -> None:
    assert Exact(5) != Estimated(5)


def test_fallback_policy_validation() -> None:
    with pytest.raises(ValueError):
        FallbackPolicy(accrual_ppm=-1)
    with pytest.raises(ValueError):
        FallbackPolicy(accrual_ppm=2_000_000)
    with pytest.raises(TypeError):
        FallbackPolicy(min_epochs=True)  # type: ignore[arg-type]
