"""Keyed query cache with prefix invalidation.

Each resource lives in one slot keyed by a tuple, e.g. ``("tasks",)`` or
``("issues", "task", "3")``. A slot keeps its last good data until a newer
fetch succeeds, so a failed refetch never blanks what the user is looking
at. Only a slot that has never loaded can end up in the error state.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from src.taskboard.events import Observable

logger = logging.getLogger(__name__)

Key = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]

TASKS_KEY: Key = ("tasks",)
CURRENT_TASK_KEY: Key = ("tasks", "current")
ISSUES_KEY: Key = ("issues",)


def issue_key(issue_id: str) -> Key:
    return ("issues", issue_id)


def task_issues_key(task_id: str) -> Key:
    return ("issues", "task", str(task_id))


class SlotStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CacheSlot:
    key: Key
    data: Any = None
    has_data: bool = False
    status: SlotStatus = SlotStatus.IDLE
    stale: bool = False
    error: Optional[BaseException] = None
    fetcher: Optional[Fetcher] = None
    in_flight: Optional[asyncio.Task] = None
    refetch_requested: bool = False
    last_fetch_failed: bool = False
    updated_at: float = 0.0

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()


def _has_prefix(key: Key, prefix: Key) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """One slot per key. At most one request is outstanding per slot."""

    def __init__(self) -> None:
        self._slots: Dict[Key, CacheSlot] = {}
        self.changed: Observable[Key] = Observable("cache")

    def subscribe(self, handler: Callable[[Key], None]) -> Callable[[], None]:
        return self.changed.subscribe(handler)

    def slot(self, key: Key) -> CacheSlot:
        key = tuple(key)
        slot = self._slots.get(key)
        if slot is None:
            slot = CacheSlot(key=key)
            self._slots[key] = slot
        return slot

    def keys(self) -> List[Key]:
        return list(self._slots)

    def register(self, key: Key, fetcher: Fetcher) -> CacheSlot:
        slot = self.slot(key)
        slot.fetcher = fetcher
        return slot

    def get_data(self, key: Key, default: Any = None) -> Any:
        slot = self._slots.get(tuple(key))
        if slot is None or not slot.has_data:
            return default
        return slot.data

    def snapshot(self, key: Key) -> Tuple[bool, Any]:
        """Deep copy of a slot's data for later rollback."""
        slot = self._slots.get(tuple(key))
        if slot is None or not slot.has_data:
            return False, None
        return True, copy.deepcopy(slot.data)

    def restore(self, key: Key, snapshot: Tuple[bool, Any]) -> None:
        has_data, data = snapshot
        if has_data:
            self.set_data(key, data)
        else:
            slot = self.slot(key)
            slot.data = None
            slot.has_data = False
            slot.status = SlotStatus.IDLE
            self.changed.emit(slot.key)

    def set_data(self, key: Key, data: Any) -> None:
        slot = self.slot(key)
        slot.data = data
        slot.has_data = True
        slot.status = SlotStatus.SUCCESS
        slot.stale = False
        slot.error = None
        slot.updated_at = time.monotonic()
        self.changed.emit(slot.key)

    async def ensure(self, key: Key, fetcher: Optional[Fetcher] = None) -> Any:
        """Data for ``key``, fetching only when the slot is empty or stale."""
        slot = self.register(key, fetcher) if fetcher else self.slot(key)
        if slot.has_data and not slot.stale:
            return slot.data
        return await self.fetch(key)

    async def fetch(self, key: Key) -> Any:
        """Run (or join) the slot's fetch and return its data.

        Raises the fetch error when the slot ended without usable data, and
        ``asyncio.CancelledError`` when ``cancel_queries`` stopped a first load.
        A cancelled refetch returns the data the slot already had.
        """
        slot = self.slot(key)
        task = self._start_fetch(slot)
        await asyncio.wait([task])
        if task.cancelled() and not slot.has_data:
            raise asyncio.CancelledError(f"Fetch of {slot.key} was cancelled")
        if slot.last_fetch_failed and slot.error is not None and not slot.has_data:
            raise slot.error
        return slot.data

    async def retry(self, key: Key) -> Any:
        return await self.fetch(key)

    def _start_fetch(self, slot: CacheSlot) -> asyncio.Task:
        if slot.fetcher is None:
            raise LookupError(f"No fetcher registered for {slot.key}")
        if slot.is_fetching:
            return slot.in_flight  # type: ignore[return-value]
        slot.refetch_requested = False
        if not slot.has_data:
            slot.status = SlotStatus.LOADING
        task = asyncio.get_running_loop().create_task(self._run_fetch(slot))
        slot.in_flight = task
        return task

    async def _run_fetch(self, slot: CacheSlot) -> None:
        while True:
            fetcher = slot.fetcher
            try:
                data = await fetcher()  # type: ignore[misc]
            except asyncio.CancelledError:
                if slot.status == SlotStatus.LOADING:
                    slot.status = SlotStatus.IDLE
                raise
            except Exception as exc:
                slot.error = exc
                slot.last_fetch_failed = True
                if slot.has_data:
                    logger.warning("Refetch of %s failed, keeping stale data: %s", slot.key, exc)
                else:
                    logger.error("Initial load of %s failed: %s", slot.key, exc)
                    slot.status = SlotStatus.ERROR
                self.changed.emit(slot.key)
            else:
                slot.last_fetch_failed = False
                self.set_data(slot.key, data)
            if not slot.refetch_requested:
                break
            slot.refetch_requested = False

    def invalidate(self, prefix: Key = ()) -> int:
        """Mark every slot under ``prefix`` stale and refetch the registered ones."""
        prefix = tuple(prefix)
        count = 0
        for slot in list(self._slots.values()):
            if not _has_prefix(slot.key, prefix):
                continue
            slot.stale = True
            count += 1
            if slot.fetcher is None:
                continue
            if slot.is_fetching:
                slot.refetch_requested = True
            else:
                self._start_fetch(slot)
        logger.debug("Invalidated %d slots under %s", count, prefix)
        return count

    async def cancel_queries(self, prefix: Key = ()) -> None:
        """Cancel outstanding fetches under ``prefix`` (slot data is left as is)."""
        prefix = tuple(prefix)
        tasks = []
        for slot in self._slots.values():
            if _has_prefix(slot.key, prefix) and slot.is_fetching:
                slot.in_flight.cancel()  # type: ignore[union-attr]
                tasks.append(slot.in_flight)
                slot.in_flight = None
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_idle(self) -> None:
        """Wait until no slot has a fetch outstanding."""
        while True:
            tasks = [slot.in_flight for slot in self._slots.values() if slot.is_fetching]
            if not tasks:
                return
            await asyncio.wait(tasks)
