"""
Pool snapshot query: the one entry point callers use.

`compute_pool_snapshot` is a fresh pull every time. It keeps no state between
calls and mutates nothing shared, so a caller may abandon it mid-flight.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import EngineConfig
from ..core.aggregate import ProtocolSummary, aggregate
from ..core.invariants import check_all
from ..core.pool_ratio import cert_ratio
from ..core.reconcile import Reconciliation, UpdateAdvisory, reconcile, update_advisory
from ..core.roster import ValidatorStake, build_roster
from ..state.parsing import parse_token_supply
from ..state.records import PoolState
from .assembler import assemble_position_tree
from .client import ObjectClient
from .deposit_rates import resolve_deposit_rates


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolSnapshot:
    pool_id: str
    pool: PoolState
    summary: ProtocolSummary
    reconciliation: Reconciliation
    advisory: UpdateAdvisory
    roster: Tuple[ValidatorStake, ...]
    cert_ratio: Optional[int] = None
    violations: Tuple[str, ...] = ()
    epoch_start_timestamp_ms: int = 0
    epoch_duration_ms: int = 0

    @property
    def current_epoch(self) -> int:
        return self.summary.current_epoch

    @property
    def epoch_end_ms(self) -> int:
        """Expected end of the current epoch (0 when the node gave no timing)."""
        if not self.epoch_start_timestamp_ms or not self.epoch_duration_ms:
            return 0
        return self.epoch_start_timestamp_ms + self.epoch_duration_ms

    @property
    def skipped(self) -> int:
        return self.summary.skipped

    @property
    def complete(self) -> bool:
        return self.summary.complete

    @property
    def has_estimates(self) -> bool:
        return self.summary.has_estimates

    @property
    def best_effort(self) -> bool:
        """True when any figure is under-counted or estimated."""
        return self.skipped > 0 or not self.complete or self.has_estimates


def _fetch_cert_ratio(client: ObjectClient, metadata_id: str, pool: PoolState) -> Optional[int]:
    try:
        obj = client.get_object(metadata_id)
        if obj is None:
            logger.warning(f"Metadata object {metadata_id} not found")
            return None
        return cert_ratio(pool, parse_token_supply(obj))
    except Exception as e:
        logger.error(f"Error fetching cert supply from {metadata_id}: {e}")
        return None


def compute_pool_snapshot(
    client: ObjectClient,
    pool_id: str,
    *,
    config: EngineConfig = EngineConfig(),
    now_ms: Optional[int] = None,
) -> Optional[PoolSnapshot]:
    """
    Current position/reward snapshot of `pool_id`, or None if the pool has no data.

    Figures are best-effort: entries that failed to load are excluded and
    counted in `skipped`, estimated rewards are tallied apart from exact ones.
    """
    if not pool_id:
        raise ValueError("pool_id must be non-empty")
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    tree = assemble_position_tree(
        client,
        pool_id,
        page_size=config.page_size,
        max_workers=config.max_concurrency,
    )
    if tree is None:
        return None

    rates = resolve_deposit_rates(client, tree, max_workers=config.max_concurrency)
    summary = aggregate(tree, rates, policy=config.fallback_policy)

    recon = reconcile(summary.total_reward, tree.pool.total_rewards)
    if recon.is_anomaly:
        logger.warning(
            f"Reported rewards exceed computed rewards for pool {pool_id}: "
            f"reported={recon.reported} computed={recon.computed} delta={recon.delta}"
        )
    advisory = update_advisory(recon, tree.pool, now_ms=now_ms, cooldown_ms=config.reward_update_cooldown_ms)

    cap = config.max_stake_per_epoch or tree.pool.max_validator_stake_per_epoch
    roster = tuple(build_roster(tree, max_stake_per_epoch=cap))

    ratio = _fetch_cert_ratio(client, config.metadata_id, tree.pool) if config.metadata_id else None

    violations = tuple(check_all(tree, summary))
    for inv_id in violations:
        logger.warning(f"Invariant {inv_id} violated for pool {pool_id}")

    logger.info(
        f"Pool {pool_id} epoch {summary.current_epoch}: principal={summary.total_principal} "
        f"reward={summary.total_reward} (estimated {summary.total_estimated_reward}) "
        f"status={recon.status.value} skipped={summary.skipped} complete={summary.complete}"
    )

    return PoolSnapshot(
        pool_id=pool_id,
        pool=tree.pool,
        summary=summary,
        reconciliation=recon,
        advisory=advisory,
        roster=roster,
        cert_ratio=ratio,
        violations=violations,
        epoch_start_timestamp_ms=tree.epoch_start_timestamp_ms,
        epoch_duration_ms=tree.epoch_duration_ms,
    )
