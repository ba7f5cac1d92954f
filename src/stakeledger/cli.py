#!/usr/bin/env python3
"""
Reporting job: print the current reward snapshot of a staking pool as JSON.

Exit codes: 0 ok, 1 configuration error, 2 pool has no data.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional, Sequence

from .config import EngineConfig, load_config
from .errors import ConfigError
from .integration.client import JsonRpcObjectClient
from .integration.engine import compute_pool_snapshot
from .integration.history import fetch_stake_history
from .integration.report import report_bytes, report_fingerprint, snapshot_to_dict


logger = logging.getLogger("stakeledger.cli")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="stakeledger-report", description=__doc__.strip().splitlines()[0])
    ap.add_argument("--config", default=None, help="YAML config file (fields of EngineConfig)")
    ap.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint of a full node")
    ap.add_argument("--pool-id", default=None, help="Native pool object id")
    ap.add_argument("--package-id", default=None, help="Pool package id (needed for --history)")
    ap.add_argument("--metadata-id", default=None, help="Cert metadata object id (enables cert ratio)")
    ap.add_argument("--history", action="store_true", help="Include recent stake/unstake events")
    ap.add_argument("--pretty", action="store_true", help="Indent output instead of canonical JSON")
    ap.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Logging level (default: STAKELEDGER_LOG_LEVEL or WARNING)",
    )
    return ap


def _resolve_config(args: argparse.Namespace) -> EngineConfig:
    cfg = EngineConfig.from_env()
    if args.config:
        cfg = load_config(args.config, base=cfg)
    return cfg.with_overrides(
        rpc_url=args.rpc_url,
        pool_id=args.pool_id,
        package_id=args.package_id,
        metadata_id=args.metadata_id,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_level = os.environ.get("STAKELEDGER_LOG_LEVEL", "WARNING").strip().upper()
    level = args.log_level or (env_level if env_level in LOG_LEVELS else "WARNING")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    if not args.log_level and env_level not in LOG_LEVELS:
        logger.warning(f"Ignoring unknown STAKELEDGER_LOG_LEVEL {env_level!r}; using WARNING")

    try:
        cfg = _resolve_config(args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    if not cfg.pool_id:
        logger.error("Configuration error: pool_id is required (--pool-id or STAKELEDGER_POOL_ID)")
        return 1
    if args.history and not cfg.package_id:
        logger.error("Configuration error: --history needs package_id")
        return 1

    client = JsonRpcObjectClient(cfg.rpc_url, timeout_s=cfg.timeout_s)
    try:
        snapshot = compute_pool_snapshot(client, cfg.pool_id, config=cfg)
        if snapshot is None:
            print(json.dumps({"pool_id": cfg.pool_id, "data": None}))
            return 2
        history = fetch_stake_history(client, cfg.package_id, limit=cfg.history_limit) if args.history else None
    finally:
        client.close()

    data = snapshot_to_dict(snapshot, history=history)
    fingerprint = report_fingerprint(data)
    if args.pretty:
        print(json.dumps(data, indent=2, sort_keys=True))
    else:
        print(report_bytes(data).decode("utf-8"))
    print(f"fingerprint={fingerprint}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
