"""
Chain integration layer: object client, table walking, snapshot assembly
"""

from .assembler import assemble_position_tree
from .client import DynamicFieldPage, JsonRpcObjectClient, ObjectClient
from .engine import PoolSnapshot, compute_pool_snapshot
from .table_walker import fetch_all, walk_table

__all__ = [
    "assemble_position_tree",
    "DynamicFieldPage",
    "JsonRpcObjectClient",
    "ObjectClient",
    "PoolSnapshot",
    "compute_pool_snapshot",
    "fetch_all",
    "walk_table",
]
