"""
Position tree assembly: pool -> vaults -> stake positions.

Reads are grouped into tiers; each tier is a table walk followed by a bounded
fan-out of object fetches:

    system state + pool object
    vaults table walk   -> vault objects   (fan-out)
    stakes table walks  -> stake objects   (fan-out, all vaults at once)

Every failure below the pool object is contained to the entry it hit and
counted in `PositionTree.skipped`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from ..errors import MalformedObjectError
from ..state.parsing import (
    DynamicFieldEntry,
    SystemState,
    parse_pool_state,
    parse_stake,
    parse_system_state,
    parse_validator_priorities,
    parse_vault,
    parse_vaults_table_id,
)
from ..state.records import (
    UNKNOWN_REGISTRATION_ORDER,
    PoolState,
    PositionTree,
    StakePosition,
    ValidatorRecord,
    Vault,
    normalize_address,
    order_positions,
)
from .client import ObjectClient
from .table_walker import DEFAULT_MAX_WORKERS, DEFAULT_PAGE_SIZE, TableWalk, fetch_all, walk_table


logger = logging.getLogger(__name__)


def _validator_record(
    address: str,
    *,
    priority: int,
    order: int,
    system: SystemState,
) -> ValidatorRecord:
    info = system.validators.get(address)
    if info is None:
        return ValidatorRecord(address=address, priority=priority, registration_order=order)
    return ValidatorRecord(
        address=address,
        priority=priority,
        registration_order=order,
        voting_power=info.voting_power,
        name=info.name,
        staking_pool_id=info.staking_pool_id,
        exchange_rates_id=info.exchange_rates_id,
        current_rate=info.current_rate,
    )


def _vault_address(entry: DynamicFieldEntry) -> Optional[str]:
    if isinstance(entry.name, str) and entry.name:
        return normalize_address(entry.name)
    return None


def _tree(
    pool: PoolState,
    system: SystemState,
    validators: Dict[str, ValidatorRecord],
    *,
    vaults: Tuple[Vault, ...] = (),
    skipped: int = 0,
    complete: bool = True,
) -> PositionTree:
    return PositionTree(
        pool=pool,
        current_epoch=system.epoch,
        validators=validators,
        vaults=vaults,
        skipped=skipped,
        complete=complete,
        epoch_start_timestamp_ms=system.epoch_start_timestamp_ms,
        epoch_duration_ms=system.epoch_duration_ms,
    )


def assemble_position_tree(
    client: ObjectClient,
    pool_id: str,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Optional[PositionTree]:
    """
    Rebuild every vault and stake position the pool holds.

    Returns None when the pool object (or the system state giving the current
    epoch) cannot be read. A pool whose vaults table cannot be located yields
    an empty tree, which is how a freshly deployed pool looks.
    """
    try:
        system = parse_system_state(client.get_latest_system_state())
    except Exception as e:
        logger.error(f"Error fetching system state: {e}")
        return None

    try:
        pool_obj = client.get_object(pool_id)
    except Exception as e:
        logger.error(f"Error fetching pool {pool_id}: {e}")
        return None
    if pool_obj is None:
        logger.info(f"Pool {pool_id} not found or not a Move object")
        return None

    try:
        pool = parse_pool_state(pool_obj)
    except MalformedObjectError as e:
        logger.error(f"Error parsing pool {pool_id}: {e}")
        return None

    skipped = system.skipped
    try:
        parsed = parse_validator_priorities(pool_obj)
        priorities = list(parsed.entries)
        skipped += parsed.skipped
    except MalformedObjectError as e:
        logger.error(f"Error parsing validator set of pool {pool_id}: {e}")
        priorities = []
        skipped += 1

    validators: Dict[str, ValidatorRecord] = {}
    for order, (address, priority) in enumerate(priorities):
        validators[address] = _validator_record(address, priority=priority, order=order, system=system)

    vaults_table_id = parse_vaults_table_id(pool_obj)
    if not vaults_table_id:
        logger.info(f"Pool {pool_id} has no vaults table yet")
        return _tree(pool, system, validators, skipped=skipped)

    complete = True

    # Tier 1: vaults.
    vault_walk = walk_table(client, vaults_table_id, page_size=page_size)
    skipped += vault_walk.skipped
    complete = complete and vault_walk.complete

    vault_entries: List[Tuple[str, DynamicFieldEntry]] = []
    for entry in vault_walk.entries:
        address = _vault_address(entry)
        if address is None:
            logger.warning(f"Skipping vault entry {entry.object_id}: no validator address in name")
            skipped += 1
            continue
        vault_entries.append((address, entry))

    def _fetch_vault(item: Tuple[str, DynamicFieldEntry]) -> Optional[Vault]:
        address, entry = item
        obj = client.get_object(entry.object_id)
        if obj is None:
            return None
        return parse_vault(obj, address)

    vault_batch = fetch_all(vault_entries, _fetch_vault, max_workers=max_workers, label="vault")
    skipped += vault_batch.failed

    vaults: List[Vault] = []
    seen = set()
    for vault in vault_batch.values():
        if vault.validator_address in seen:
            logger.warning(f"Duplicate vault for validator {vault.validator_address}; keeping the first")
            skipped += 1
            continue
        seen.add(vault.validator_address)
        vaults.append(vault)

    # Tier 2: stakes of every kept vault.
    def _walk_stakes(index: int) -> TableWalk:
        return walk_table(client, vaults[index].stakes_table_id, page_size=page_size)

    with_tables = [i for i, v in enumerate(vaults) if v.stakes_table_id]
    walk_batch = fetch_all(with_tables, _walk_stakes, max_workers=max_workers, label="stakes table")
    skipped += walk_batch.failed
    if walk_batch.failed:
        complete = False

    stake_items: List[Tuple[int, DynamicFieldEntry]] = []
    for index, walk in walk_batch.results:
        skipped += walk.skipped
        complete = complete and walk.complete
        stake_items.extend((index, e) for e in walk.entries)

    def _fetch_stake(item: Tuple[int, DynamicFieldEntry]) -> Optional[StakePosition]:
        _index, entry = item
        obj = client.get_object(entry.object_id)
        if obj is None:
            return None
        return parse_stake(obj, object_id=entry.object_id)

    stake_batch = fetch_all(stake_items, _fetch_stake, max_workers=max_workers, label="stake")
    skipped += stake_batch.failed

    positions: Dict[int, List[StakePosition]] = {}
    for (index, _entry), position in stake_batch.results:
        positions.setdefault(index, []).append(position)

    assembled: List[Vault] = []
    for index, vault in enumerate(vaults):
        assembled.append(replace(vault, positions=order_positions(positions.get(index, ()))))
        if vault.validator_address not in validators:
            validators[vault.validator_address] = _validator_record(
                vault.validator_address,
                priority=0,
                order=UNKNOWN_REGISTRATION_ORDER,
                system=system,
            )

    for address, _priority in priorities:
        if address not in seen:
            seen.add(address)
            assembled.append(Vault.empty(address))

    tree = _tree(pool, system, validators, vaults=tuple(assembled), skipped=skipped, complete=complete)
    logger.debug(
        f"Assembled pool {pool_id}: {len(tree.vaults)} vaults, "
        f"{tree.position_count} positions, {skipped} skipped"
    )
    return tree
