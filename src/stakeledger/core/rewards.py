"""
Position reward calculation (deterministic, integer-only).

The reward of a stake position is what it is worth today minus what was put
in, measured by the validator pool's exchange rate at the deposit epoch and at
the current epoch:

    current_value = principal * current.native * deposit.pool_token
                    // (current.pool_token * deposit.native)

Multiplying before dividing is required: dividing first truncates by an amount
proportional to the position size.

When the deposit-epoch snapshot is missing the caller may fall back to a
linear estimate. Estimated figures are returned as `Estimated`, never as a bare
int, so they cannot be silently summed with exact ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional, Union

from ..state.records import StakePosition
from ..state.rates import ExchangeRate


logger = logging.getLogger(__name__)

PPM_DENOM = 1_000_000

# ~5% APY spread over daily epochs. Display-only; the contract never settles it.
DEFAULT_FALLBACK_ACCRUAL_PPM = 14
DEFAULT_FALLBACK_MIN_EPOCHS = 2


@unique
class PositionPhase(Enum):
    PENDING = "pending"
    ACTIVE_NOT_EARNING = "active_not_earning"
    ACTIVE_EARNING = "active_earning"

    @property
    def is_active(self) -> bool:
        return self is not PositionPhase.PENDING


def position_phase(activation_epoch: int, current_epoch: int) -> PositionPhase:
    """Rewards start the epoch after activation; the activation epoch itself earns nothing."""
    if current_epoch < activation_epoch:
        return PositionPhase.PENDING
    if current_epoch == activation_epoch:
        return PositionPhase.ACTIVE_NOT_EARNING
    return PositionPhase.ACTIVE_EARNING


@dataclass(frozen=True)
class Exact:
    amount: int

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError("amount must be an int")
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative: {self.amount}")

    @property
    def estimated(self) -> bool:
        return False


@dataclass(frozen=True)
class Estimated:
    amount: int

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError("amount must be an int")
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative: {self.amount}")

    @property
    def estimated(self) -> bool:
        return True


Reward = Union[Exact, Estimated]


@dataclass(frozen=True)
class FallbackPolicy:
    """Linear accrual used only when the deposit-epoch rate cannot be found."""

    accrual_ppm: int = DEFAULT_FALLBACK_ACCRUAL_PPM
    min_epochs: int = DEFAULT_FALLBACK_MIN_EPOCHS

    def __post_init__(self) -> None:
        for name, v in (("accrual_ppm", self.accrual_ppm), ("min_epochs", self.min_epochs)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.accrual_ppm > PPM_DENOM:
            raise ValueError(f"accrual_ppm must be <= {PPM_DENOM}: {self.accrual_ppm}")


def compute_reward(principal: int, current_rate: ExchangeRate, deposit_rate: ExchangeRate) -> int:
    """Realized reward of `principal` deposited at `deposit_rate`, valued at `current_rate`."""
    if not isinstance(principal, int) or isinstance(principal, bool) or principal < 0:
        raise ValueError(f"principal must be a non-negative int, got {principal}")
    if (
        deposit_rate.pool_token_amount == 0
        or deposit_rate.native_amount == 0
        or current_rate.pool_token_amount == 0
    ):
        return 0

    numerator = principal * current_rate.native_amount * deposit_rate.pool_token_amount
    denominator = current_rate.pool_token_amount * deposit_rate.native_amount
    current_value = numerator // denominator
    reward = current_value - principal
    return reward if reward > 0 else 0


def fallback_estimate(principal: int, epochs_earning: int, policy: FallbackPolicy) -> int:
    return (principal * epochs_earning * policy.accrual_ppm) // PPM_DENOM


def position_reward(
    position: StakePosition,
    *,
    current_epoch: int,
    current_rate: ExchangeRate,
    deposit_rate: Optional[ExchangeRate],
    policy: FallbackPolicy = FallbackPolicy(),
) -> Reward:
    """
    Reward of one position at `current_epoch`.

    - pending / activation epoch: Exact(0)
    - earning with a usable deposit rate: Exact(compute_reward(...))
    - earning, rate missing, >= policy.min_epochs elapsed: Estimated(linear accrual)
    - earning, rate missing, fewer epochs: Exact(0)
    """
    phase = position_phase(position.activation_epoch, current_epoch)
    if phase is not PositionPhase.ACTIVE_EARNING:
        return Exact(0)

    if deposit_rate is not None and deposit_rate.is_defined:
        return Exact(compute_reward(position.principal, current_rate, deposit_rate))

    epochs_earning = current_epoch - position.activation_epoch
    if epochs_earning < policy.min_epochs:
        return Exact(0)

    estimate = fallback_estimate(position.principal, epochs_earning, policy)
    logger.warning(
        f"Using fallback estimate for stake {position.object_id} "
        f"(activation epoch {position.activation_epoch}, {epochs_earning} epochs): {estimate}"
    )
    return Estimated(estimate)
