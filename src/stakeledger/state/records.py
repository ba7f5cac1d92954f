"""
Immutable records of the staking pool's on-chain layout.

Everything here is a read-only snapshot of chain objects; nothing in this
package writes them back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .rates import ZERO_RATE, ExchangeRate


MAX_PERCENT = 10_000
UNKNOWN_REGISTRATION_ORDER = 999


def _require_int(value: object, *, name: str, non_negative: bool = True) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if non_negative and value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return int(value)


def _require_str(value: object, *, name: str, non_empty: bool = True) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    if non_empty and not value:
        raise ValueError(f"{name} must be non-empty")
    return value


def normalize_address(address: str) -> str:
    """Addresses are compared case-insensitively; store them lower-case."""
    return _require_str(address, name="address").strip().lower()


@dataclass(frozen=True)
class PoolState:
    """Snapshot of the native pool object."""

    total_staked: int = 0
    pending: int = 0
    total_rewards: int = 0
    collected_rewards: int = 0
    collectable_fee: int = 0
    rewards_update_ts: int = 0
    rewards_threshold: int = 100
    base_reward_fee: int = 500
    min_stake: int = 1_000_000_000
    max_validator_stake_per_epoch: int = 0
    paused: bool = False
    version: int = 1

    def __post_init__(self) -> None:
        for name in (
            "total_staked",
            "pending",
            "total_rewards",
            "collected_rewards",
            "collectable_fee",
            "rewards_update_ts",
            "rewards_threshold",
            "base_reward_fee",
            "min_stake",
            "max_validator_stake_per_epoch",
            "version",
        ):
            _require_int(getattr(self, name), name=name)
        if not isinstance(self.paused, bool):
            raise TypeError("paused must be a bool")


@dataclass(frozen=True)
class ValidatorRecord:
    address: str
    priority: int = 0
    registration_order: int = UNKNOWN_REGISTRATION_ORDER
    voting_power: int = 0
    name: str = "Unknown"
    staking_pool_id: str = ""
    exchange_rates_id: str = ""
    current_rate: ExchangeRate = ZERO_RATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))
        _require_int(self.priority, name="priority")
        _require_int(self.registration_order, name="registration_order")
        _require_int(self.voting_power, name="voting_power")
        if not isinstance(self.current_rate, ExchangeRate):
            raise TypeError("current_rate must be an ExchangeRate")


@dataclass(frozen=True)
class StakePosition:
    object_id: str
    principal: int
    activation_epoch: int
    staking_pool_id: str = ""

    def __post_init__(self) -> None:
        _require_str(self.object_id, name="object_id")
        _require_int(self.principal, name="principal")
        _require_int(self.activation_epoch, name="activation_epoch")

    @property
    def rewards_start_epoch(self) -> int:
        return self.activation_epoch + 1


def order_positions(positions) -> Tuple[StakePosition, ...]:
    return tuple(sorted(positions, key=lambda p: (p.activation_epoch, p.object_id)))


@dataclass(frozen=True)
class Vault:
    """The pool's aggregate holding at one validator."""

    validator_address: str
    total_staked: int = 0
    stake_epoch: int = 0
    staked_in_epoch: int = 0
    stakes_table_id: str = ""
    positions: Tuple[StakePosition, ...] = ()
    synthetic: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "validator_address", normalize_address(self.validator_address))
        _require_int(self.total_staked, name="total_staked")
        _require_int(self.stake_epoch, name="stake_epoch")
        _require_int(self.staked_in_epoch, name="staked_in_epoch")
        if not isinstance(self.positions, tuple):
            raise TypeError("positions must be a tuple")

    @classmethod
    def empty(cls, validator_address: str) -> "Vault":
        return cls(validator_address=validator_address, synthetic=True)

    @property
    def position_principal(self) -> int:
        return sum(p.principal for p in self.positions)


@dataclass(frozen=True)
class PositionTree:
    """
    Everything the aggregator needs for one pool, as read at roughly one moment.

    `skipped` counts entries excluded because a fetch or parse failed, and
    `complete` is False when some table walk stopped early.
    """

    pool: PoolState
    current_epoch: int
    validators: Mapping[str, ValidatorRecord] = field(default_factory=dict)
    vaults: Tuple[Vault, ...] = ()
    skipped: int = 0
    complete: bool = True
    epoch_start_timestamp_ms: int = 0
    epoch_duration_ms: int = 0

    def validator(self, address: str) -> Optional[ValidatorRecord]:
        return self.validators.get(normalize_address(address))

    @property
    def position_count(self) -> int:
        return sum(len(v.positions) for v in self.vaults)
