"""
Stake / unstake event history of the pool package.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, List, Mapping, Optional, Tuple

from ..errors import MalformedObjectError
from ..state.parsing import parse_u64
from .client import ObjectClient


logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@unique
class StakeEventKind(Enum):
    STAKE = "stake"
    STAKE_TO_VALIDATORS = "stake_to_validators"
    UNSTAKE = "unstake"


_EVENT_TYPES: Tuple[Tuple[StakeEventKind, str], ...] = (
    (StakeEventKind.STAKE, "native_pool::StakedEvent"),
    (StakeEventKind.STAKE_TO_VALIDATORS, "native_pool::StakedToValidatorsEvent"),
    (StakeEventKind.UNSTAKE, "native_pool::UnstakedEvent"),
)


@dataclass(frozen=True)
class StakeHistoryEvent:
    kind: StakeEventKind
    timestamp_ms: int
    staker: str
    native_amount: int
    cert_amount: int
    tx_digest: str
    validators: Optional[Tuple[str, ...]] = None


def parse_stake_event(kind: StakeEventKind, raw: Mapping[str, Any]) -> StakeHistoryEvent:
    event_id = raw.get("id") if isinstance(raw.get("id"), Mapping) else {}
    digest = str(event_id.get("txDigest") or "")
    parsed = raw.get("parsedJson")
    if not isinstance(parsed, Mapping):
        raise MalformedObjectError(digest or None, "event has no parsedJson")

    validators: Optional[Tuple[str, ...]] = None
    if kind is StakeEventKind.STAKE_TO_VALIDATORS:
        vs = parsed.get("validators") or []
        if not isinstance(vs, list):
            raise MalformedObjectError(digest or None, "validators must be a list")
        validators = tuple(str(v) for v in vs)

    return StakeHistoryEvent(
        kind=kind,
        timestamp_ms=parse_u64(raw.get("timestampMs"), name="timestampMs", object_id=digest),
        staker=str(parsed.get("staker") or ""),
        native_amount=parse_u64(parsed.get("iota_amount"), name="iota_amount", object_id=digest),
        cert_amount=parse_u64(parsed.get("cert_amount"), name="cert_amount", object_id=digest),
        tx_digest=digest,
        validators=validators,
    )


def fetch_stake_history(
    client: ObjectClient,
    package_id: str,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> List[StakeHistoryEvent]:
    """Latest `limit` events of each kind, newest first. A failing kind is skipped."""
    if not package_id:
        raise ValueError("package_id must be non-empty")

    history: List[StakeHistoryEvent] = []
    for kind, suffix in _EVENT_TYPES:
        event_type = f"{package_id}::{suffix}"
        try:
            raw_events = client.query_events(event_type, limit=limit, descending=True)
        except Exception as e:
            logger.error(f"Error fetching {event_type}: {e}")
            continue
        for raw in raw_events:
            try:
                history.append(parse_stake_event(kind, raw))
            except MalformedObjectError as e:
                logger.warning(f"Skipping {kind.value} event: {e}")

    history.sort(key=lambda e: e.timestamp_ms, reverse=True)
    return history
