"""
Functional core: reward math, aggregation, reconciliation
"""

from .aggregate import PositionReward, ProtocolSummary, ValidatorSummary, aggregate
from .pool_ratio import RATIO_MAX, cert_ratio
from .reconcile import Reconciliation, ReconciliationStatus, UpdateAdvisory, reconcile, update_advisory
from .rewards import (
    Estimated,
    Exact,
    FallbackPolicy,
    PositionPhase,
    compute_reward,
    position_phase,
    position_reward,
)
from .roster import ValidatorStake, build_roster

__all__ = [
    "PositionReward",
    "ProtocolSummary",
    "ValidatorSummary",
    "aggregate",
    "RATIO_MAX",
    "cert_ratio",
    "Reconciliation",
    "ReconciliationStatus",
    "UpdateAdvisory",
    "reconcile",
    "update_advisory",
    "Estimated",
    "Exact",
    "FallbackPolicy",
    "PositionPhase",
    "compute_reward",
    "position_phase",
    "position_reward",
    "ValidatorStake",
    "build_roster",
]
