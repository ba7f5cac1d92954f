"""
Per-validator stake roster.

A flat view of how much the pool holds at every registered validator, with the
network's voting power alongside, used to pick where the next deposit goes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from ..state.records import UNKNOWN_REGISTRATION_ORDER, PositionTree


@dataclass(frozen=True)
class ValidatorStake:
    address: str
    total_staked: int
    priority: int
    voting_power: int
    registration_order: int
    staked_in_epoch: int
    stake_epoch: int
    epoch_cap_reached: bool = False


def build_roster(tree: PositionTree, *, max_stake_per_epoch: int = 0) -> List[ValidatorStake]:
    """
    One row per vault (synthetic zero vaults included), by voting power descending.

    `staked_in_epoch` only counts deposits made in the current epoch; an older
    `stake_epoch` means the per-epoch cap has already reset.
    """
    if not isinstance(max_stake_per_epoch, int) or isinstance(max_stake_per_epoch, bool) or max_stake_per_epoch < 0:
        raise ValueError(f"max_stake_per_epoch must be a non-negative int, got {max_stake_per_epoch}")

    rows: List[ValidatorStake] = []
    for vault in tree.vaults:
        record = tree.validator(vault.validator_address)
        in_epoch = vault.staked_in_epoch if vault.stake_epoch == tree.current_epoch else 0
        rows.append(
            ValidatorStake(
                address=vault.validator_address,
                total_staked=vault.total_staked,
                priority=record.priority if record is not None else 0,
                voting_power=record.voting_power if record is not None else 0,
                registration_order=(
                    record.registration_order if record is not None else UNKNOWN_REGISTRATION_ORDER
                ),
                staked_in_epoch=in_epoch,
                stake_epoch=vault.stake_epoch,
                epoch_cap_reached=max_stake_per_epoch > 0 and in_epoch >= max_stake_per_epoch,
            )
        )
    rows.sort(key=lambda r: r.voting_power, reverse=True)
    return rows


def total_protocol_stake(rows: Sequence[ValidatorStake]) -> int:
    return sum(r.total_staked for r in rows)
