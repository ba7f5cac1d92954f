"""
Deposit-epoch exchange-rate lookups.

Rates are point lookups into each validator's epoch-indexed `exchange_rates`
table, one per distinct (table, epoch) pair rather than one per position.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from ..core.aggregate import DepositRates
from ..state.parsing import parse_exchange_rate
from ..state.rates import ExchangeRate
from ..state.records import PositionTree
from .client import ObjectClient, epoch_key
from .table_walker import DEFAULT_MAX_WORKERS, fetch_all


logger = logging.getLogger(__name__)


def distinct_rate_keys(tree: PositionTree) -> List[Tuple[str, int]]:
    """(exchange_rates_id, epoch) pairs needed by earning positions, first-seen order."""
    keys: List[Tuple[str, int]] = []
    seen: Set[Tuple[str, int]] = set()
    for vault in tree.vaults:
        record = tree.validator(vault.validator_address)
        if record is None or not record.exchange_rates_id:
            continue
        for pos in vault.positions:
            # Pending and activation-epoch positions never read a deposit rate.
            if pos.activation_epoch >= tree.current_epoch:
                continue
            key = (record.exchange_rates_id, pos.activation_epoch)
            if key not in seen:
                seen.add(key)
                keys.append(key)
    return keys


def resolve_deposit_rates(
    client: ObjectClient,
    tree: PositionTree,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> DepositRates:
    """
    Look up the rate at each position's activation epoch.

    A missing entry is normal for a very recent epoch; a failed lookup is
    logged. Either way the key is simply absent and the reward calculator's
    fallback policy applies.
    """
    keys = distinct_rate_keys(tree)

    def _lookup(key: Tuple[str, int]) -> Optional[ExchangeRate]:
        table, epoch = key
        obj = client.get_dynamic_field_object(table, epoch_key(epoch))
        if obj is None:
            logger.warning(f"No exchange rate recorded for epoch {epoch} in {table}; stake may be too new")
            return None
        return parse_exchange_rate(obj)

    batch = fetch_all(keys, _lookup, max_workers=max_workers, label="exchange rate")
    by_table: Dict[Tuple[str, int], ExchangeRate] = dict(batch.results)

    rates: Dict[Tuple[str, int], ExchangeRate] = {}
    for address, record in tree.validators.items():
        if not record.exchange_rates_id:
            continue
        for (table, epoch), rate in by_table.items():
            if table == record.exchange_rates_id:
                rates[(address, epoch)] = rate
    return rates
