"""
Engine configuration.

Values come from keyword arguments, `STAKELEDGER_*` environment variables, or
a YAML mapping. Integer knobs are range-checked; the environment parser falls
back to defaults on garbage the way a container entrypoint should.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .core.reconcile import DEFAULT_REWARD_UPDATE_COOLDOWN_MS
from .core.rewards import DEFAULT_FALLBACK_ACCRUAL_PPM, DEFAULT_FALLBACK_MIN_EPOCHS, FallbackPolicy
from .errors import ConfigError


ENV_PREFIX = "STAKELEDGER_"

_INT_BOUNDS: dict[str, tuple[int, int]] = {
    "page_size": (1, 1000),
    "max_concurrency": (1, 64),
    "fallback_accrual_ppm": (0, 1_000_000),
    "fallback_min_epochs": (0, 10_000),
    "reward_update_cooldown_ms": (0, 30 * 24 * 60 * 60 * 1000),
    "max_stake_per_epoch": (0, 2**64 - 1),
    "history_limit": (1, 1000),
}


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except Exception:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return float(default)
    try:
        v = float(raw.strip())
    except Exception:
        return float(default)
    return min(max(v, lo), hi)


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


@dataclass(frozen=True)
class EngineConfig:
    rpc_url: str = "https://api.testnet.iota.cafe"
    pool_id: str = ""
    package_id: str = ""
    metadata_id: str = ""
    page_size: int = 50
    max_concurrency: int = 8
    timeout_s: float = 30.0
    fallback_accrual_ppm: int = DEFAULT_FALLBACK_ACCRUAL_PPM
    fallback_min_epochs: int = DEFAULT_FALLBACK_MIN_EPOCHS
    reward_update_cooldown_ms: int = DEFAULT_REWARD_UPDATE_COOLDOWN_MS
    # 0 = use the pool's own max_validator_stake_per_epoch
    max_stake_per_epoch: int = 0
    history_limit: int = 50

    def __post_init__(self) -> None:
        for name, (lo, hi) in _INT_BOUNDS.items():
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise ConfigError(f"{name} must be an int")
            if not (lo <= v <= hi):
                raise ConfigError(f"{name} must be in [{lo}, {hi}]: {v}")
        if isinstance(self.timeout_s, bool) or not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigError(f"timeout_s must be a positive number: {self.timeout_s}")
        for name in ("rpc_url", "pool_id", "package_id", "metadata_id"):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string")

    @property
    def fallback_policy(self) -> FallbackPolicy:
        return FallbackPolicy(accrual_ppm=self.fallback_accrual_ppm, min_epochs=self.fallback_min_epochs)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        d = cls()
        kwargs: dict[str, Any] = {
            "rpc_url": _env_str(ENV_PREFIX + "RPC_URL", d.rpc_url),
            "pool_id": _env_str(ENV_PREFIX + "POOL_ID", d.pool_id),
            "package_id": _env_str(ENV_PREFIX + "PACKAGE_ID", d.package_id),
            "metadata_id": _env_str(ENV_PREFIX + "METADATA_ID", d.metadata_id),
            "timeout_s": _env_float(ENV_PREFIX + "TIMEOUT_S", d.timeout_s, lo=0.1, hi=600.0),
        }
        for name, (lo, hi) in _INT_BOUNDS.items():
            kwargs[name] = _env_int(ENV_PREFIX + name.upper(), getattr(d, name), lo=lo, hi=hi)
        return cls(**kwargs)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base: "EngineConfig | None" = None) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        start = base if base is not None else cls()
        merged = {f.name: getattr(start, f.name) for f in fields(cls)}
        merged.update(data)
        return cls(**merged)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return EngineConfig.from_mapping(
            {k: v for k, v in overrides.items() if v is not None},
            base=self,
        )


def load_config(path: str | Path, *, base: EngineConfig | None = None) -> EngineConfig:
    """Load a YAML mapping of EngineConfig fields on top of `base` (defaults if None)."""
    p = Path(path)
    try:
        obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config {p}: {exc}") from exc
    if obj is None:
        obj = {}
    if not isinstance(obj, Mapping):
        raise ConfigError("config YAML must be a mapping")
    return EngineConfig.from_mapping(obj, base=base)
