"""
On-chain records of the staking pool
"""

from .rates import ExchangeRate
from .records import PoolState, PositionTree, StakePosition, ValidatorRecord, Vault

__all__ = [
    "ExchangeRate",
    "PoolState",
    "PositionTree",
    "StakePosition",
    "ValidatorRecord",
    "Vault",
]
