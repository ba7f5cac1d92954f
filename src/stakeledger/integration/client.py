"""
Remote object client: read-only access to chain objects.

`ObjectClient` is the contract the engine calls. `JsonRpcObjectClient` talks to
an IOTA full node over HTTP JSON-RPC; tests substitute an in-memory chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import requests

from ..errors import RpcError
from ..state.parsing import MoveObject


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0
USER_AGENT = "stakeledger/0.1"


@dataclass(frozen=True)
class DynamicFieldPage:
    data: Sequence[Any] = field(default_factory=tuple)
    next_cursor: Optional[str] = None
    has_next_page: bool = False


class ObjectClient(Protocol):
    def get_object(self, object_id: str) -> Optional[MoveObject]:
        ...

    def get_dynamic_fields(
        self, parent_id: str, cursor: Optional[str] = None, limit: int = 50
    ) -> DynamicFieldPage:
        ...

    def get_dynamic_field_object(self, parent_id: str, name: Mapping[str, Any]) -> Optional[MoveObject]:
        ...

    def get_latest_system_state(self) -> Mapping[str, Any]:
        ...

    def query_events(self, event_type: str, *, limit: int = 50, descending: bool = True) -> List[Mapping[str, Any]]:
        ...


def move_object_from_response(result: Any) -> Optional[MoveObject]:
    """
    Map an `iota_getObject`-shaped response to a MoveObject.

    Returns None for not-found / deleted objects and for non-Move content
    (packages), which the engine treats the same way.
    """
    if not isinstance(result, Mapping):
        return None
    if result.get("error") is not None:
        return None
    data = result.get("data")
    if not isinstance(data, Mapping):
        return None
    content = data.get("content")
    if not isinstance(content, Mapping) or content.get("dataType") != "moveObject":
        return None
    fields = content.get("fields")
    return MoveObject(
        object_id=str(data.get("objectId") or ""),
        type=str(content.get("type") or ""),
        fields=fields if isinstance(fields, Mapping) else {},
    )


class JsonRpcObjectClient:
    """ObjectClient over IOTA JSON-RPC (`iota_*` / `iotax_*` methods)."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not rpc_url:
            raise ValueError("rpc_url must be non-empty")
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.session.headers.update({"content-type": "application/json", "user-agent": USER_AGENT})
        self._id = 0

    def call(self, method: str, params: list) -> Any:
        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        try:
            resp = self.session.post(self.rpc_url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise RpcError(f"RPC transport error calling {method}: {e}") from e
        if resp.status_code != 200:
            raise RpcError(f"HTTP {resp.status_code} calling {method}", code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"invalid JSON-RPC response from {method}: {resp.text[:200]!r}") from e

        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise RpcError(f"{method}: {message}", code=code if isinstance(code, int) else None)
        return data.get("result") if isinstance(data, dict) else data

    def get_object(self, object_id: str) -> Optional[MoveObject]:
        result = self.call("iota_getObject", [object_id, {"showContent": True, "showType": True}])
        return move_object_from_response(result)

    def get_dynamic_fields(
        self, parent_id: str, cursor: Optional[str] = None, limit: int = 50
    ) -> DynamicFieldPage:
        result = self.call("iotax_getDynamicFields", [parent_id, cursor, limit])
        if not isinstance(result, Mapping):
            raise RpcError(f"iotax_getDynamicFields returned {type(result).__name__}")
        data = result.get("data") or []
        if not isinstance(data, list):
            raise RpcError("iotax_getDynamicFields data must be a list")
        return DynamicFieldPage(
            data=tuple(data),
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    def get_dynamic_field_object(self, parent_id: str, name: Mapping[str, Any]) -> Optional[MoveObject]:
        result = self.call("iotax_getDynamicFieldObject", [parent_id, dict(name)])
        return move_object_from_response(result)

    def get_latest_system_state(self) -> Mapping[str, Any]:
        result = self.call("iotax_getLatestIotaSystemState", [])
        if not isinstance(result, Mapping):
            raise RpcError("iotax_getLatestIotaSystemState returned a non-object")
        return result

    def query_events(self, event_type: str, *, limit: int = 50, descending: bool = True) -> List[Mapping[str, Any]]:
        result = self.call("iotax_queryEvents", [{"MoveEventType": event_type}, None, limit, descending])
        if not isinstance(result, Mapping):
            raise RpcError("iotax_queryEvents returned a non-object")
        data = result.get("data") or []
        return [e for e in data if isinstance(e, Mapping)]

    def close(self) -> None:
        self.session.close()


def epoch_key(epoch: int) -> Dict[str, str]:
    """Dynamic field name of an epoch-indexed table entry."""
    return {"type": "u64", "value": str(int(epoch))}
