"""
stakeledger: position aggregation and reward reconciliation for a liquid-staking pool
"""

from .config import EngineConfig, load_config
from .errors import ConfigError, MalformedObjectError, RpcError, StakeLedgerError
from .integration.engine import PoolSnapshot, compute_pool_snapshot

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "load_config",
    "ConfigError",
    "MalformedObjectError",
    "RpcError",
    "StakeLedgerError",
    "PoolSnapshot",
    "compute_pool_snapshot",
]
