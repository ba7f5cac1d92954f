"""
Canonical JSON for reports.

A report is a tree of dicts, lists, strings, ints, bools and None. Encoding it
canonically (sorted keys, no whitespace, UTF-8) makes two runs over an
unchanged chain byte-identical, so the fingerprint can be compared across runs.
Amounts are carried as decimal strings, and floats are refused outright.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


REPORT_ENCODING_VERSION = 1


class CanonicalEncodingError(TypeError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path


def _check_text(s: str, path: str) -> None:
    if any(0xD800 <= ord(ch) <= 0xDFFF for ch in s):
        raise CanonicalEncodingError(path, "lone surrogate in string")


def _check(value: Any, path: str) -> None:
    if value is None or isinstance(value, (bool, int)):
        return
    if isinstance(value, float):
        raise CanonicalEncodingError(path, "float values are not encodable; use a decimal string")
    if isinstance(value, str):
        _check_text(value, path)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise CanonicalEncodingError(path, f"non-string key {key!r}")
            _check_text(key, path)
            _check(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check(item, f"{path}[{i}]")
        return
    raise CanonicalEncodingError(path, f"unsupported type {type(value).__name__}")


def canonical_json_bytes(value: Any) -> bytes:
    _check(value, "$")
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode(
        "utf-8"
    )


def domain_sep_bytes(domain: str, *, version: int = REPORT_ENCODING_VERSION) -> bytes:
    """Prefix binding a digest to one kind of document: `stakeledger:<domain>:v<n>` plus NUL."""
    if not isinstance(domain, str) or not domain or ":" in domain:
        raise ValueError(f"invalid domain {domain!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError(f"version must be a positive int, got {version!r}")
    return b"stakeledger:" + domain.encode("utf-8") + b":v" + str(version).encode("ascii") + b"\x00"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def fingerprint(domain: str, value: Any, *, version: int = REPORT_ENCODING_VERSION) -> str:
    """sha256 over the domain prefix followed by the canonical encoding of `value`."""
    return sha256_hex(domain_sep_bytes(domain, version=version) + canonical_json_bytes(value))
