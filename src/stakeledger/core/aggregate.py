"""
Fold a position tree into per-validator and protocol-wide totals.

Pure: the tree and the resolved deposit rates go in, summaries come out.
Exact and estimated rewards are tracked separately and only added together in
`reward` (which always has a matching `estimated_reward` alongside).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from ..state.rates import ZERO_RATE, ExchangeRate
from ..state.records import PositionTree, StakePosition, Vault
from .rewards import FallbackPolicy, PositionPhase, Reward, position_phase, position_reward


# (validator address, activation epoch) -> deposit-epoch rate
DepositRates = Mapping[Tuple[str, int], ExchangeRate]


@dataclass(frozen=True)
class PositionReward:
    position: StakePosition
    phase: PositionPhase
    reward: Reward

    @property
    def current_value(self) -> int:
        return self.position.principal + self.reward.amount


@dataclass(frozen=True)
class ValidatorSummary:
    address: str
    name: str
    staking_pool_id: str
    principal: int
    exact_reward: int
    estimated_reward: int
    stakes_count: int
    active_stakes: int
    pending_stakes: int
    estimated_stakes: int
    earliest_activation_epoch: Optional[int]
    current_rate: ExchangeRate
    positions: Tuple[PositionReward, ...] = ()

    @property
    def reward(self) -> int:
        return self.exact_reward + self.estimated_reward

    @property
    def current_value(self) -> int:
        return self.principal + self.reward

    @property
    def current_exchange_rate(self) -> float:
        return self.current_rate.display()


@dataclass(frozen=True)
class ProtocolSummary:
    current_epoch: int
    validators: Tuple[ValidatorSummary, ...]
    total_principal: int
    total_exact_reward: int
    total_estimated_reward: int
    stakes_count: int
    active_stakes: int
    pending_stakes: int
    estimated_stakes: int
    skipped: int = 0
    complete: bool = True

    @property
    def total_reward(self) -> int:
        return self.total_exact_reward + self.total_estimated_reward

    @property
    def total_value(self) -> int:
        return self.total_principal + self.total_reward

    @property
    def has_estimates(self) -> bool:
        return self.estimated_stakes > 0


def summarize_vault(
    vault: Vault,
    *,
    current_epoch: int,
    current_rate: ExchangeRate,
    deposit_rates: DepositRates,
    policy: FallbackPolicy,
    name: str = "Unknown",
    staking_pool_id: str = "",
) -> ValidatorSummary:
    principal = 0
    exact = 0
    estimated = 0
    active = 0
    pending = 0
    estimated_count = 0
    earliest: Optional[int] = None
    rows: List[PositionReward] = []

    for pos in vault.positions:
        principal += pos.principal
        if earliest is None or pos.activation_epoch < earliest:
            earliest = pos.activation_epoch

        phase = position_phase(pos.activation_epoch, current_epoch)
        if phase.is_active:
            active += 1
        else:
            pending += 1

        reward = position_reward(
            pos,
            current_epoch=current_epoch,
            current_rate=current_rate,
            deposit_rate=deposit_rates.get((vault.validator_address, pos.activation_epoch)),
            policy=policy,
        )
        if reward.estimated:
            estimated += reward.amount
            estimated_count += 1
        else:
            exact += reward.amount
        rows.append(PositionReward(position=pos, phase=phase, reward=reward))

    return ValidatorSummary(
        address=vault.validator_address,
        name=name,
        staking_pool_id=staking_pool_id,
        principal=principal,
        exact_reward=exact,
        estimated_reward=estimated,
        stakes_count=len(vault.positions),
        active_stakes=active,
        pending_stakes=pending,
        estimated_stakes=estimated_count,
        earliest_activation_epoch=earliest,
        current_rate=current_rate,
        positions=tuple(rows),
    )


def aggregate(
    tree: PositionTree,
    deposit_rates: DepositRates,
    *,
    policy: FallbackPolicy = FallbackPolicy(),
) -> ProtocolSummary:
    summaries: List[ValidatorSummary] = []
    for vault in tree.vaults:
        record = tree.validator(vault.validator_address)
        summaries.append(
            summarize_vault(
                vault,
                current_epoch=tree.current_epoch,
                current_rate=record.current_rate if record is not None else ZERO_RATE,
                deposit_rates=deposit_rates,
                policy=policy,
                name=record.name if record is not None else "Unknown",
                staking_pool_id=record.staking_pool_id if record is not None else "",
            )
        )

    # sorted() is stable, so equal principals keep roster order.
    summaries = sorted(summaries, key=lambda s: s.principal, reverse=True)

    return ProtocolSummary(
        current_epoch=tree.current_epoch,
        validators=tuple(summaries),
        total_principal=sum(s.principal for s in summaries),
        total_exact_reward=sum(s.exact_reward for s in summaries),
        total_estimated_reward=sum(s.estimated_reward for s in summaries),
        stakes_count=sum(s.stakes_count for s in summaries),
        active_stakes=sum(s.active_stakes for s in summaries),
        pending_stakes=sum(s.pending_stakes for s in summaries),
        estimated_stakes=sum(s.estimated_stakes for s in summaries),
        skipped=tree.skipped,
        complete=tree.complete,
    )
