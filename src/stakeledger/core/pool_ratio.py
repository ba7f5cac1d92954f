"""
Receipt-token (cert) exchange ratio.

ratio = cert_supply * RATIO_MAX / tvl, where tvl counts staked principal, the
undeployed balance and rewards not yet collected as fees.
"""

from __future__ import annotations

import logging

from ..state.records import PoolState


logger = logging.getLogger(__name__)

RATIO_MAX = 1_000_000_000_000_000_000


def net_rewards(pool: PoolState) -> int:
    if pool.total_rewards >= pool.collected_rewards:
        return pool.total_rewards - pool.collected_rewards
    return 0


def total_value_locked(pool: PoolState) -> int:
    return pool.total_staked + pool.pending + net_rewards(pool)


def cert_ratio(pool: PoolState, total_supply: int) -> int:
    """Cert per native asset scaled by RATIO_MAX (1:1 for an empty pool)."""
    if not isinstance(total_supply, int) or isinstance(total_supply, bool) or total_supply < 0:
        raise ValueError(f"total_supply must be a non-negative int, got {total_supply}")
    if total_supply == 0:
        return RATIO_MAX
    tvl = total_value_locked(pool)
    if tvl > 0:
        return (total_supply * RATIO_MAX) // tvl
    logger.warning("Invalid pool state: supply exists but TVL is 0. Using 1:1 ratio as fallback.")
    return RATIO_MAX
