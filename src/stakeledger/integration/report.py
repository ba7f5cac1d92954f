"""
JSON rendering of pool snapshots for reporting jobs.

Amounts are emitted as decimal strings (u64 products overflow JSON numbers in
most consumers). Output goes through canonical JSON, so an unchanged chain
yields an unchanged fingerprint.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from ..core.aggregate import PositionReward, ValidatorSummary
from ..core.roster import ValidatorStake, total_protocol_stake
from ..state.canonical import canonical_json_bytes, fingerprint
from ..state.rates import ExchangeRate
from .engine import PoolSnapshot
from .history import StakeHistoryEvent


REPORT_VERSION = 1


def _amt(v: int) -> str:
    return str(int(v))


def _rate(rate: ExchangeRate) -> Dict[str, str]:
    return {"native_amount": _amt(rate.native_amount), "pool_token_amount": _amt(rate.pool_token_amount)}


def _position(row: PositionReward) -> Dict[str, Any]:
    return {
        "object_id": row.position.object_id,
        "principal": _amt(row.position.principal),
        "activation_epoch": row.position.activation_epoch,
        "phase": row.phase.value,
        "reward": _amt(row.reward.amount),
        "estimated": row.reward.estimated,
    }


def _validator(v: ValidatorSummary) -> Dict[str, Any]:
    return {
        "address": v.address,
        "name": v.name,
        "staking_pool_id": v.staking_pool_id,
        "principal": _amt(v.principal),
        "reward": _amt(v.reward),
        "estimated_reward": _amt(v.estimated_reward),
        "current_value": _amt(v.current_value),
        "stakes_count": v.stakes_count,
        "active_stakes": v.active_stakes,
        "pending_stakes": v.pending_stakes,
        "estimated_stakes": v.estimated_stakes,
        "earliest_activation_epoch": v.earliest_activation_epoch,
        "current_rate": _rate(v.current_rate),
        "positions": [_position(p) for p in v.positions],
    }


def _roster_row(r: ValidatorStake) -> Dict[str, Any]:
    return {
        "address": r.address,
        "total_staked": _amt(r.total_staked),
        "priority": r.priority,
        "voting_power": r.voting_power,
        "registration_order": r.registration_order,
        "staked_in_epoch": _amt(r.staked_in_epoch),
        "stake_epoch": r.stake_epoch,
        "epoch_cap_reached": r.epoch_cap_reached,
    }


def _event(e: StakeHistoryEvent) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "kind": e.kind.value,
        "timestamp_ms": e.timestamp_ms,
        "staker": e.staker,
        "native_amount": _amt(e.native_amount),
        "cert_amount": _amt(e.cert_amount),
        "tx_digest": e.tx_digest,
    }
    if e.validators is not None:
        out["validators"] = list(e.validators)
    return out


def snapshot_to_dict(
    snapshot: PoolSnapshot,
    *,
    history: Optional[Iterable[StakeHistoryEvent]] = None,
) -> Dict[str, Any]:
    s = snapshot.summary
    r = snapshot.reconciliation
    a = snapshot.advisory
    data: Dict[str, Any] = {
        "version": REPORT_VERSION,
        "pool_id": snapshot.pool_id,
        "current_epoch": s.current_epoch,
        "epoch": {
            "start_timestamp_ms": snapshot.epoch_start_timestamp_ms,
            "duration_ms": snapshot.epoch_duration_ms,
            "end_ms": snapshot.epoch_end_ms,
        },
        "calculation_method": "exchange_rates",
        "totals": {
            "principal": _amt(s.total_principal),
            "reward": _amt(s.total_reward),
            "exact_reward": _amt(s.total_exact_reward),
            "estimated_reward": _amt(s.total_estimated_reward),
            "value": _amt(s.total_value),
            "stakes_count": s.stakes_count,
            "active_stakes": s.active_stakes,
            "pending_stakes": s.pending_stakes,
            "estimated_stakes": s.estimated_stakes,
        },
        "reconciliation": {
            "computed": _amt(r.computed),
            "reported": _amt(r.reported),
            "delta": str(r.delta),
            "status": r.status.value,
            "needs_update": r.needs_update,
        },
        "advisory": {
            "cooldown_elapsed": a.cooldown_elapsed,
            "next_allowed_ms": a.next_allowed_ms,
            "within_threshold": a.within_threshold,
            "max_reportable": _amt(a.max_reportable),
            "can_submit": a.can_submit,
        },
        "pool": {
            "total_staked": _amt(snapshot.pool.total_staked),
            "pending": _amt(snapshot.pool.pending),
            "total_rewards": _amt(snapshot.pool.total_rewards),
            "collected_rewards": _amt(snapshot.pool.collected_rewards),
            "rewards_update_ts": snapshot.pool.rewards_update_ts,
            "paused": snapshot.pool.paused,
        },
        "validators": [_validator(v) for v in s.validators],
        "roster": [_roster_row(row) for row in snapshot.roster],
        "roster_total_staked": _amt(total_protocol_stake(snapshot.roster)),
        "skipped": s.skipped,
        "complete": s.complete,
        "violations": list(snapshot.violations),
    }
    if snapshot.cert_ratio is not None:
        data["cert_ratio"] = _amt(snapshot.cert_ratio)
    if history is not None:
        data["history"] = [_event(e) for e in history]
    return data


def report_bytes(data: Dict[str, Any]) -> bytes:
    return canonical_json_bytes(data)


def report_fingerprint(data: Dict[str, Any]) -> str:
    return fingerprint("pool_report", data, version=REPORT_VERSION)
