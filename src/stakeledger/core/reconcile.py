"""
Reconcile computed rewards against the operator-reported figure.

The delta is kept signed. A report above what the chain shows is its own
status (`OVER_REPORTED`) and never folds into "up to date".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique

from ..state.records import MAX_PERCENT, PoolState


# Reports can be submitted at most once every 12 hours.
DEFAULT_REWARD_UPDATE_COOLDOWN_MS = 12 * 60 * 60 * 1000


@unique
class ReconciliationStatus(Enum):
    UP_TO_DATE = "up_to_date"
    NEEDS_UPDATE = "needs_update"
    OVER_REPORTED = "over_reported"


@dataclass(frozen=True)
class Reconciliation:
    computed: int
    reported: int
    delta: int
    status: ReconciliationStatus

    @property
    def needs_update(self) -> bool:
        return self.delta > 0

    @property
    def is_anomaly(self) -> bool:
        return self.status is ReconciliationStatus.OVER_REPORTED


def reconcile(computed_total_reward: int, reported_total_reward: int) -> Reconciliation:
    for name, v in (("computed_total_reward", computed_total_reward), ("reported_total_reward", reported_total_reward)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")
        if v < 0:
            raise ValueError(f"{name} must be non-negative: {v}")

    delta = computed_total_reward - reported_total_reward
    if delta > 0:
        status = ReconciliationStatus.NEEDS_UPDATE
    elif delta < 0:
        status = ReconciliationStatus.OVER_REPORTED
    else:
        status = ReconciliationStatus.UP_TO_DATE
    return Reconciliation(
        computed=computed_total_reward,
        reported=reported_total_reward,
        delta=delta,
        status=status,
    )


@dataclass(frozen=True)
class UpdateAdvisory:
    """
    Whether an operator report would currently be accepted.

    Mirrors the contract's gates: the new figure must exceed the old one, stay
    within `rewards_threshold` of total stake, and respect the cooldown.
    """

    needs_update: bool
    cooldown_elapsed: bool
    next_allowed_ms: int
    within_threshold: bool
    max_reportable: int

    @property
    def can_submit(self) -> bool:
        return self.needs_update and self.cooldown_elapsed and self.within_threshold


def update_advisory(
    reconciliation: Reconciliation,
    pool: PoolState,
    *,
    now_ms: int,
    cooldown_ms: int = DEFAULT_REWARD_UPDATE_COOLDOWN_MS,
) -> UpdateAdvisory:
    if not isinstance(now_ms, int) or isinstance(now_ms, bool) or now_ms < 0:
        raise ValueError(f"now_ms must be a non-negative int, got {now_ms}")
    if not isinstance(cooldown_ms, int) or isinstance(cooldown_ms, bool) or cooldown_ms < 0:
        raise ValueError(f"cooldown_ms must be a non-negative int, got {cooldown_ms}")

    if pool.rewards_update_ts == 0:
        next_allowed = 0
    else:
        next_allowed = pool.rewards_update_ts + cooldown_ms
    max_reportable = reconciliation.reported + (pool.total_staked * pool.rewards_threshold) // MAX_PERCENT

    return UpdateAdvisory(
        needs_update=reconciliation.needs_update,
        cooldown_elapsed=now_ms >= next_allowed,
        next_allowed_ms=next_allowed,
        within_threshold=reconciliation.computed <= max_reportable,
        max_reportable=max_reportable,
    )
