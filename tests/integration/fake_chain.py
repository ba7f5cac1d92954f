"""In-memory chain implementing the ObjectClient protocol, for integration tests."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from stakeledger.errors import RpcError
from stakeledger.integration.client import DynamicFieldPage
from stakeledger.state.parsing import MoveObject


def addr(n: int) -> str:
    return "0x" + f"{n:02x}" * 32


class FakeChain:
    def __init__(self, *, epoch: int, max_page: int = 50) -> None:
        self.epoch = epoch
        self.max_page = max_page
        self.epoch_start_ms = 0
        self.epoch_duration_ms = 86_400_000
        self.objects: Dict[str, MoveObject] = {}
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.dynamic_objects: Dict[Tuple[str, str], MoveObject] = {}
        self.active_validators: List[Dict[str, Any]] = []
        self.events: Dict[str, List[Dict[str, Any]]] = {}

        self.fail_objects: Set[str] = set()
        self.fail_tables: Set[str] = set()
        self.fail_events: Set[str] = set()
        self.fail_system_state = False

        self.calls: List[Tuple[str, Any]] = []
        self._lock = threading.Lock()
        self._next_id = 0

    # -- builders ------------------------------------------------------------

    def new_id(self, prefix: str = "ob") -> str:
        with self._lock:
            self._next_id += 1
            return f"0x{prefix}{self._next_id:06d}"

    def add_validator(
        self,
        address: str,
        *,
        voting_power: int = 100,
        current_rate: Tuple[int, int] = (1_000, 1_000),
        rates: Optional[Mapping[int, Tuple[int, int]]] = None,
        name: str = "Validator",
    ) -> str:
        rates_id = self.new_id("rates")
        self.active_validators.append(
            {
                "iotaAddress": address,
                "votingPower": str(voting_power),
                "name": name,
                "stakingPoolId": self.new_id("spool"),
                "exchangeRatesId": rates_id,
                "stakingPoolIotaBalance": str(current_rate[0]),
                "poolTokenBalance": str(current_rate[1]),
            }
        )
        for epoch, (native, token) in (rates or {}).items():
            self.set_rate(rates_id, epoch, native, token)
        return rates_id

    def set_rate(self, rates_id: str, epoch: int, native: int, token: int) -> None:
        self.dynamic_objects[(rates_id, str(epoch))] = MoveObject(
            object_id=self.new_id("rate"),
            fields={
                "name": str(epoch),
                "value": {"fields": {"iota_amount": str(native), "pool_token_amount": str(token)}},
            },
        )

    def add_pool(
        self,
        pool_id: str,
        *,
        validators: Iterable[Tuple[str, int]] = (),
        total_staked: int = 0,
        total_rewards: int = 0,
        with_vaults_table: bool = True,
        **extra: Any,
    ) -> Optional[str]:
        vaults_id = self.new_id("vaults") if with_vaults_table else None
        validator_set: Dict[str, Any] = {
            "validators": {
                "fields": {
                    "contents": [
                        {"fields": {"key": a, "value": str(p)}} for a, p in validators
                    ]
                }
            }
        }
        if vaults_id is not None:
            validator_set["vaults"] = {"fields": {"id": {"id": vaults_id}, "size": "0"}}
            self.tables[vaults_id] = []
        fields: Dict[str, Any] = {
            "total_staked": str(total_staked),
            "total_rewards": str(total_rewards),
            "pending": "0",
            "paused": False,
            "validator_set": {"fields": validator_set},
        }
        fields.update({k: (v if isinstance(v, bool) else str(v)) for k, v in extra.items()})
        self.objects[pool_id] = MoveObject(object_id=pool_id, type="native_pool::NativePool", fields=fields)
        return vaults_id

    def add_vault(
        self,
        vaults_id: str,
        validator: str,
        *,
        stakes: Iterable[Tuple[int, int]] = (),
        stake_epoch: int = 0,
        staked_in_epoch: int = 0,
        total_staked: Optional[int] = None,
    ) -> Tuple[str, str, List[str]]:
        """Add a vault with (principal, activation_epoch) stakes. Returns (field id, stakes table id, stake ids)."""
        stakes = list(stakes)
        field_id = self.new_id("vault")
        stakes_id = self.new_id("stakes")
        self.tables[vaults_id].append(
            {"name": {"type": "address", "value": validator}, "objectId": field_id, "objectType": "Vault"}
        )
        self.tables[stakes_id] = []
        self.objects[field_id] = MoveObject(
            object_id=field_id,
            fields={
                "name": validator,
                "value": {
                    "fields": {
                        "total_staked": str(total_staked if total_staked is not None else sum(p for p, _ in stakes)),
                        "stake_epoch": str(stake_epoch),
                        "staked_in_epoch": str(staked_in_epoch),
                        "stakes": {"fields": {"id": {"id": stakes_id}, "size": str(len(stakes))}},
                    }
                },
            },
        )
        stake_ids = [self.add_stake(stakes_id, principal, activation) for principal, activation in stakes]
        return field_id, stakes_id, stake_ids

    def add_stake(self, stakes_id: str, principal: int, activation_epoch: int) -> str:
        sid = self.new_id("stake")
        self.tables[stakes_id].append({"name": {"type": "u64", "value": sid}, "objectId": sid})
        self.objects[sid] = MoveObject(
            object_id=sid,
            fields={
                "name": sid,
                "value": {
                    "fields": {
                        "principal": str(principal),
                        "stake_activation_epoch": str(activation_epoch),
                        "pool_id": "0xspool",
                    }
                },
            },
        )
        return sid

    # -- ObjectClient ----------------------------------------------------------

    def _record(self, name: str, arg: Any) -> None:
        with self._lock:
            self.calls.append((name, arg))

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)

    def get_object(self, object_id: str) -> Optional[MoveObject]:
        self._record("get_object", object_id)
        if object_id in self.fail_objects:
            raise RpcError(f"injected failure for {object_id}")
        return self.objects.get(object_id)

    def get_dynamic_fields(
        self, parent_id: str, cursor: Optional[str] = None, limit: int = 50
    ) -> DynamicFieldPage:
        self._record("get_dynamic_fields", (parent_id, cursor))
        if parent_id in self.fail_tables:
            raise RpcError(f"injected failure for table {parent_id}")
        rows = self.tables.get(parent_id, [])
        start = int(cursor) if cursor else 0
        size = min(limit, self.max_page)
        page = rows[start : start + size]
        end = start + len(page)
        has_next = end < len(rows)
        return DynamicFieldPage(
            data=tuple(page),
            next_cursor=str(end) if has_next else None,
            has_next_page=has_next,
        )

    def get_dynamic_field_object(self, parent_id: str, name: Mapping[str, Any]) -> Optional[MoveObject]:
        self._record("get_dynamic_field_object", (parent_id, name.get("value")))
        if parent_id in self.fail_tables:
            raise RpcError(f"injected failure for table {parent_id}")
        return self.dynamic_objects.get((parent_id, str(name.get("value"))))

    def get_latest_system_state(self) -> Mapping[str, Any]:
        self._record("get_latest_system_state", None)
        if self.fail_system_state:
            raise RpcError("injected system state failure")
        return {
            "epoch": str(self.epoch),
            "epochStartTimestampMs": str(self.epoch_start_ms),
            "epochDurationMs": str(self.epoch_duration_ms),
            "activeValidators": list(self.active_validators),
        }

    def query_events(self, event_type: str, *, limit: int = 50, descending: bool = True) -> List[Mapping[str, Any]]:
        self._record("query_events", event_type)
        if event_type in self.fail_events:
            raise RpcError(f"injected failure for {event_type}")
        return list(self.events.get(event_type, []))[:limit]

    def close(self) -> None:
        self._record("close", None)
