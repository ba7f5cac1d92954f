"""Exception types for stakeledger.

Parsers raise these at entry scope; the integration shell catches them per
entry so one bad object never blanks a whole snapshot.
"""

from __future__ import annotations


class StakeLedgerError(Exception):
    """Base class for every error raised by this package."""


class MalformedObjectError(StakeLedgerError):
    """Raised when a fetched object does not have the expected field shape."""

    def __init__(self, object_id: str | None, reason: str) -> None:
        self.object_id = object_id
        self.reason = reason
        where = object_id if object_id else "<unknown>"
        super().__init__(f"malformed object {where}: {reason}")


class RpcError(StakeLedgerError):
    """Transport or JSON-RPC level failure talking to the node."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class ConfigError(StakeLedgerError):
    """Raised when configuration cannot be parsed or is out of range."""
