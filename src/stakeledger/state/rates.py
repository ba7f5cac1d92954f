"""
Exchange-rate value type.

A validator staking pool records, per epoch, how much native asset backs how
many pool tokens. The ratio only ever matters as an exact integer pair; the
float view exists for display.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ExchangeRate:
    native_amount: int
    pool_token_amount: int

    def __post_init__(self) -> None:
        for name, v in (
            ("native_amount", self.native_amount),
            ("pool_token_amount", self.pool_token_amount),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")

    @property
    def is_defined(self) -> bool:
        return self.pool_token_amount > 0

    def display(self) -> float:
        """Native per pool token, for presentation only (1.0 when undefined)."""
        if self.pool_token_amount == 0:
            return 1.0
        return self.native_amount / self.pool_token_amount


ZERO_RATE = ExchangeRate(native_amount=0, pool_token_amount=0)
