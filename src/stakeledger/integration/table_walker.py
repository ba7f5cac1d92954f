"""
Dynamic-field table walking and bounded fan-out.

Two pipeline stages:
1. `walk_table` drains a paginated table into an ordered list of entries by
   following the node's cursor until it reports no further page.
2. `fetch_all` resolves a list of items (object ids, epochs, ...) on a bounded
   thread pool, keeping input order and dropping only the items that fail.

Neither stage retries; that is the caller's policy.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, Set, Tuple, TypeVar

from ..errors import MalformedObjectError
from ..state.parsing import DynamicFieldEntry, parse_dynamic_field_entry
from .client import ObjectClient


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_WORKERS = 8

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class TableWalk:
    entries: Tuple[DynamicFieldEntry, ...] = ()
    skipped: int = 0
    complete: bool = True


def walk_table(client: ObjectClient, parent_id: str, *, page_size: int = DEFAULT_PAGE_SIZE) -> TableWalk:
    if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
        raise ValueError(f"page_size must be a positive int, got {page_size}")

    entries: List[DynamicFieldEntry] = []
    skipped = 0
    cursor: Optional[str] = None
    seen_cursors: Set[str] = set()
    pages = 0

    while True:
        try:
            page = client.get_dynamic_fields(parent_id, cursor=cursor, limit=page_size)
        except Exception as e:
            logger.error(
                f"Error fetching page {pages + 1} of table {parent_id} "
                f"(cursor={cursor}): {e}. Returning {len(entries)} entries gathered so far."
            )
            return TableWalk(entries=tuple(entries), skipped=skipped, complete=False)
        pages += 1

        for raw in page.data:
            try:
                entries.append(parse_dynamic_field_entry(raw))
            except MalformedObjectError as e:
                skipped += 1
                logger.warning(f"Skipping entry in table {parent_id}: {e}")

        if not page.has_next_page or not page.next_cursor:
            break
        if page.next_cursor in seen_cursors:
            logger.error(f"Table {parent_id} returned cursor {page.next_cursor} twice; stopping walk")
            return TableWalk(entries=tuple(entries), skipped=skipped, complete=False)
        seen_cursors.add(page.next_cursor)
        cursor = page.next_cursor

    logger.debug(f"Walked table {parent_id}: {len(entries)} entries over {pages} page(s)")
    return TableWalk(entries=tuple(entries), skipped=skipped, complete=True)


@dataclass(frozen=True)
class FetchBatch(Generic[T, R]):
    results: Tuple[Tuple[T, R], ...] = ()
    failures: Tuple[T, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def values(self) -> List[R]:
        return [r for _item, r in self.results]


def fetch_all(
    items: Sequence[T],
    fetch: Callable[[T], Optional[R]],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    label: str = "entry",
) -> FetchBatch[T, R]:
    """
    Run `fetch(item)` for every item with at most `max_workers` in flight.

    An exception from one item is logged and that item lands in `failures`;
    a `None` result (not found) is dropped silently.
    """
    if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers <= 0:
        raise ValueError(f"max_workers must be a positive int, got {max_workers}")
    if not items:
        return FetchBatch()

    def _guarded(item: T) -> Tuple[bool, Optional[R]]:
        try:
            return True, fetch(item)
        except Exception as e:
            logger.error(f"Error fetching {label} {item!r}: {e}")
            return False, None

    workers = min(max_workers, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"stakeledger-{label}") as pool:
        outcomes = list(pool.map(_guarded, items))

    results: List[Tuple[T, R]] = []
    failures: List[T] = []
    for item, (ok, value) in zip(items, outcomes):
        if not ok:
            failures.append(item)
        elif value is not None:
            results.append((item, value))
    return FetchBatch(results=tuple(results), failures=tuple(failures))
