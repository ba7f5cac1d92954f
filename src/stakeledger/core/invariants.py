"""Invariant checkers for an assembled snapshot.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass).

These are cross-checks over an eventually-consistent read: a violation is
reported alongside the snapshot, never raised.
"""

from __future__ import annotations

from typing import Callable

from ..state.records import PositionTree
from .aggregate import ProtocolSummary


def inv_vault_principal_matches_pool(tree: PositionTree, summary: ProtocolSummary) -> bool:
    # A partial walk cannot be expected to add up.
    if not tree.complete or tree.skipped:
        return True
    return sum(v.total_staked for v in tree.vaults) == tree.pool.total_staked


def inv_positions_ordered(tree: PositionTree, summary: ProtocolSummary) -> bool:
    for vault in tree.vaults:
        epochs = [p.activation_epoch for p in vault.positions]
        if epochs != sorted(epochs):
            return False
    return True


def inv_rewards_non_negative(tree: PositionTree, summary: ProtocolSummary) -> bool:
    return all(
        row.reward.amount >= 0
        for validator in summary.validators
        for row in validator.positions
    )


def inv_principal_conserved(tree: PositionTree, summary: ProtocolSummary) -> bool:
    return summary.total_principal == sum(v.position_principal for v in tree.vaults)


def inv_phase_counts_consistent(tree: PositionTree, summary: ProtocolSummary) -> bool:
    return summary.active_stakes + summary.pending_stakes == summary.stakes_count


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[PositionTree, ProtocolSummary], bool]] = {
    "inv_vault_principal_matches_pool": inv_vault_principal_matches_pool,
    "inv_positions_ordered": inv_positions_ordered,
    "inv_rewards_non_negative": inv_rewards_non_negative,
    "inv_principal_conserved": inv_principal_conserved,
    "inv_phase_counts_consistent": inv_phase_counts_consistent,
}


def check_all(tree: PositionTree, summary: ProtocolSummary) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(tree, summary)
    ]
