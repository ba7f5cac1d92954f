"""
Parsers from Move object JSON into stakeledger records.

Node responses encode u64 values as decimal strings and frequently wrap a
table value as ``{"value": {"fields": {...}}}``. Missing numeric fields default
to zero (the contract initializes them that way); present but ill-formed ones
raise `MalformedObjectError` so the caller can skip the single entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import MalformedObjectError
from .rates import ExchangeRate
from .records import PoolState, StakePosition, Vault, normalize_address


logger = logging.getLogger(__name__)

U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class MoveObject:
    object_id: str
    type: str = ""
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DynamicFieldEntry:
    """One child entry of a dynamic-field table (name key + the field object id)."""

    name: Any
    object_id: str
    object_type: str = ""


@dataclass(frozen=True)
class ValidatorInfo:
    """What the system state says about one active validator."""

    address: str
    voting_power: int
    name: str
    staking_pool_id: str
    exchange_rates_id: str
    current_rate: ExchangeRate


@dataclass(frozen=True)
class SystemState:
    epoch: int
    validators: Mapping[str, ValidatorInfo] = field(default_factory=dict)
    epoch_start_timestamp_ms: int = 0
    epoch_duration_ms: int = 0
    skipped: int = 0


def parse_u64(value: Any, *, name: str, object_id: Optional[str] = None, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise MalformedObjectError(object_id, f"{name} must be an integer, got bool")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        n = int(value.strip(), 10)
    else:
        raise MalformedObjectError(object_id, f"{name} must be a u64 string, got {value!r}")
    if not 0 <= n <= U64_MAX:
        raise MalformedObjectError(object_id, f"{name} out of u64 range: {n}")
    return n


def _nested(obj: Any, *path: str) -> Any:
    cur = obj
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def unwrap_fields(obj: MoveObject) -> Mapping[str, Any]:
    """Table entries are `Field<K, V>` objects; the payload sits under value.fields."""
    inner = _nested(obj.fields, "value", "fields")
    if isinstance(inner, Mapping):
        return inner
    return obj.fields


def table_id(fields: Mapping[str, Any], key: str) -> Optional[str]:
    """Resolve `fields[key].fields.id.id`, the UID of an embedded Table."""
    tid = _nested(fields, key, "fields", "id", "id")
    if isinstance(tid, str) and tid:
        return tid
    return None


def parse_pool_state(obj: MoveObject) -> PoolState:
    f = obj.fields
    oid = obj.object_id
    paused = f.get("paused", False)
    if not isinstance(paused, bool):
        raise MalformedObjectError(oid, f"paused must be a bool, got {paused!r}")
    return PoolState(
        total_staked=parse_u64(f.get("total_staked"), name="total_staked", object_id=oid),
        pending=parse_u64(f.get("pending"), name="pending", object_id=oid),
        total_rewards=parse_u64(f.get("total_rewards"), name="total_rewards", object_id=oid),
        collected_rewards=parse_u64(f.get("collected_rewards"), name="collected_rewards", object_id=oid),
        collectable_fee=parse_u64(f.get("collectable_fee"), name="collectable_fee", object_id=oid),
        rewards_update_ts=parse_u64(f.get("rewards_update_ts"), name="rewards_update_ts", object_id=oid),
        rewards_threshold=parse_u64(
            f.get("rewards_threshold"), name="rewards_threshold", object_id=oid, default=100
        ),
        base_reward_fee=parse_u64(f.get("base_reward_fee"), name="base_reward_fee", object_id=oid, default=500),
        min_stake=parse_u64(f.get("min_stake"), name="min_stake", object_id=oid, default=1_000_000_000),
        max_validator_stake_per_epoch=parse_u64(
            f.get("max_validator_stake_per_epoch"), name="max_validator_stake_per_epoch", object_id=oid
        ),
        paused=paused,
        version=parse_u64(f.get("version"), name="version", object_id=oid, default=1),
    )


@dataclass(frozen=True)
class ValidatorPriorities:
    entries: Tuple[Tuple[str, int], ...] = ()
    skipped: int = 0


def parse_validator_priorities(obj: MoveObject) -> ValidatorPriorities:
    """
    (address, priority) pairs from the pool's `validator_set.validators` VecMap.

    Order is registration order. Entries without a key are dropped; entries
    with a malformed priority are logged and counted in `skipped`.
    """
    contents = _nested(obj.fields, "validator_set", "fields", "validators", "fields", "contents")
    if contents is None:
        return ValidatorPriorities()
    if not isinstance(contents, list):
        raise MalformedObjectError(obj.object_id, "validator_set.validators.contents must be a list")
    out: List[Tuple[str, int]] = []
    skipped = 0
    for entry in contents:
        address = _nested(entry, "fields", "key")
        if not isinstance(address, str) or not address:
            continue
        try:
            priority = parse_u64(_nested(entry, "fields", "value"), name="priority", object_id=address)
        except MalformedObjectError as e:
            logger.warning(f"Skipping validator entry of pool {obj.object_id}: {e}")
            skipped += 1
            continue
        out.append((normalize_address(address), priority))
    return ValidatorPriorities(entries=tuple(out), skipped=skipped)


def parse_vaults_table_id(obj: MoveObject) -> Optional[str]:
    validator_set = _nested(obj.fields, "validator_set", "fields")
    if not isinstance(validator_set, Mapping):
        return None
    return table_id(validator_set, "vaults")


def parse_dynamic_field_entry(raw: Any) -> DynamicFieldEntry:
    if not isinstance(raw, Mapping):
        raise MalformedObjectError(None, "dynamic field entry must be an object")
    object_id = raw.get("objectId")
    if not isinstance(object_id, str) or not object_id:
        raise MalformedObjectError(None, "dynamic field entry has no objectId")
    name = raw.get("name")
    name_value = name.get("value") if isinstance(name, Mapping) else None
    object_type = raw.get("objectType") or ""
    return DynamicFieldEntry(name=name_value, object_id=object_id, object_type=str(object_type))


def parse_vault(obj: MoveObject, validator_address: str) -> Vault:
    data = unwrap_fields(obj)
    oid = obj.object_id
    return Vault(
        validator_address=validator_address,
        total_staked=parse_u64(data.get("total_staked"), name="total_staked", object_id=oid),
        stake_epoch=parse_u64(data.get("stake_epoch"), name="stake_epoch", object_id=oid),
        staked_in_epoch=parse_u64(data.get("staked_in_epoch"), name="staked_in_epoch", object_id=oid),
        stakes_table_id=table_id(data, "stakes") or "",
    )


def parse_stake(obj: MoveObject, *, object_id: Optional[str] = None) -> StakePosition:
    """
    Parse a `StakedIota` (id, pool_id, stake_activation_epoch, principal).

    `object_id` is the dynamic-field object id the stake was reached through;
    it identifies the position when the payload carries no id of its own.
    """
    data = unwrap_fields(obj)
    oid = object_id or obj.object_id
    pool_id = data.get("pool_id") or ""
    if not isinstance(pool_id, str):
        raise MalformedObjectError(oid, "pool_id must be a string")
    return StakePosition(
        object_id=oid,
        principal=parse_u64(data.get("principal"), name="principal", object_id=oid),
        activation_epoch=parse_u64(
            data.get("stake_activation_epoch"), name="stake_activation_epoch", object_id=oid
        ),
        staking_pool_id=pool_id,
    )


def parse_exchange_rate(obj: MoveObject) -> ExchangeRate:
    f = obj.fields
    value = f.get("value")
    if isinstance(value, Mapping) and isinstance(value.get("fields"), Mapping):
        data: Mapping[str, Any] = value["fields"]
    elif isinstance(value, Mapping):
        data = value
    else:
        data = f
    return ExchangeRate(
        native_amount=parse_u64(data.get("iota_amount"), name="iota_amount", object_id=obj.object_id),
        pool_token_amount=parse_u64(
            data.get("pool_token_amount"), name="pool_token_amount", object_id=obj.object_id
        ),
    )


def parse_token_supply(obj: MoveObject) -> int:
    return parse_u64(
        _nested(obj.fields, "total_supply", "fields", "value"), name="total_supply", object_id=obj.object_id
    )


def _parse_validator_info(v: Mapping[str, Any], addr: str) -> ValidatorInfo:
    return ValidatorInfo(
        address=addr,
        voting_power=parse_u64(v.get("votingPower"), name="votingPower", object_id=addr),
        name=str(v.get("name") or "Unknown"),
        staking_pool_id=str(v.get("stakingPoolId") or ""),
        exchange_rates_id=str(v.get("exchangeRatesId") or ""),
        current_rate=ExchangeRate(
            native_amount=parse_u64(v.get("stakingPoolIotaBalance"), name="stakingPoolIotaBalance", object_id=addr),
            pool_token_amount=parse_u64(v.get("poolTokenBalance"), name="poolTokenBalance", object_id=addr),
        ),
    )


def _epoch_timing(raw: Mapping[str, Any], key: str) -> int:
    # Informational only; a bad value reads as 0.
    try:
        return parse_u64(raw.get(key), name=key, object_id="system_state")
    except MalformedObjectError as e:
        logger.warning(f"Ignoring epoch timing: {e}")
        return 0


def parse_system_state(raw: Mapping[str, Any]) -> SystemState:
    """
    Current epoch, epoch timing and the active validator set.

    Only a missing or malformed epoch fails the whole state. A validator with a
    malformed field is logged and counted in `skipped`.
    """
    if not isinstance(raw, Mapping):
        raise MalformedObjectError("system_state", "system state must be an object")
    epoch = parse_u64(raw.get("epoch"), name="epoch", object_id="system_state")
    validators: Dict[str, ValidatorInfo] = {}
    skipped = 0
    active = raw.get("activeValidators") or []
    if not isinstance(active, list):
        logger.error("Ignoring activeValidators: not a list")
        active = []
        skipped += 1
    for v in active:
        if not isinstance(v, Mapping):
            continue
        address = v.get("iotaAddress")
        if not isinstance(address, str) or not address:
            continue
        addr = normalize_address(address)
        try:
            validators[addr] = _parse_validator_info(v, addr)
        except MalformedObjectError as e:
            logger.warning(f"Skipping active validator: {e}")
            skipped += 1
    return SystemState(
        epoch=epoch,
        validators=validators,
        epoch_start_timestamp_ms=_epoch_timing(raw, "epochStartTimestampMs"),
        epoch_duration_ms=_epoch_timing(raw, "epochDurationMs"),
        skipped=skipped,
    )
