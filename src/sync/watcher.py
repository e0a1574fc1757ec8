"""
tasks.json の変更監視

watchdog でファイル変更を受け取り、デバウンス後に TaskStore を再読み込みして
changed / failed の購読者へ通知する。

State machine:
    IDLE -> WATCHING -> DEBOUNCING -> RELOADING -> WATCHING
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from src.taskboard.config import WatcherConfig
from src.taskboard.events import Observable
from src.tracker.models import Task
from src.tracker.task_store import TaskStore

logger = logging.getLogger(__name__)

_RELEVANT_EVENTS = {"modified", "created", "moved"}


class WatcherState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    DEBOUNCING = "debouncing"
    RELOADING = "reloading"


class _TaskFileHandler(FileSystemEventHandler):
    """Runs on watchdog's thread; only forwards events for the watched file."""

    def __init__(self, target: Path, notify: Callable[[], None]) -> None:
        super().__init__()
        self._target = os.path.abspath(target)
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and os.path.abspath(os.fsdecode(p)) == self._target for p in paths):
            self._notify()


class TaskFileWatcher:
    """Debounced reload of the task document.

    Every raw change notification restarts a cancelable timer; when the timer
    fires the file is given time to settle, then reloaded through the store.
    Reload failures are reported through ``failed`` and never escape the
    timer callback; the store keeps serving its previous snapshot.
    """

    def __init__(
        self,
        store: TaskStore,
        debounce_seconds: float = 0.3,
        stability_threshold_seconds: float = 0.1,
        poll_interval_seconds: float = 0.05,
        max_stability_wait_seconds: float = 2.0,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.stability_threshold_seconds = stability_threshold_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.max_stability_wait_seconds = max_stability_wait_seconds
        self._observer_factory = observer_factory

        self.changed: Observable[List[Task]] = Observable("tasks:changed")
        self.failed: Observable[Exception] = Observable("tasks:error")

        self._state = WatcherState.IDLE
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Any = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._reload_task: Optional[asyncio.Task] = None
        self._reload_tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, store: TaskStore, config: WatcherConfig, **kwargs: Any) -> "TaskFileWatcher":
        return cls(
            store,
            debounce_seconds=config.debounce_seconds,
            stability_threshold_seconds=config.stability_threshold_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
            max_stability_wait_seconds=config.max_stability_wait_seconds,
            **kwargs,
        )

    @property
    def path(self) -> Path:
        return self.store.tasks_path

    @property
    def state(self) -> WatcherState:
        return self._state

    def start(self) -> None:
        """Begin watching. Must be called from the running event loop."""
        if self._state is not WatcherState.IDLE:
            logger.warning("Watcher already started")
            return

        self._loop = asyncio.get_running_loop()
        watch_dir = self.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        observer = self._observer_factory()
        observer.schedule(_TaskFileHandler(self.path, self._notify_threadsafe), str(watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        self._state = WatcherState.WATCHING
        logger.info("Started watching %s", self.path)

    def _notify_threadsafe(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self.notify_change)
        except RuntimeError:
            logger.debug("Event loop closed; dropping change notification")

    def notify_change(self) -> None:
        """Register one raw change notification and restart the debounce timer."""
        if self._state is WatcherState.IDLE or self._loop is None:
            return
        logger.debug("tasks.json changed, debouncing reload...")
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.debounce_seconds, self._on_debounce_elapsed)
        if self._state is not WatcherState.RELOADING:
            self._state = WatcherState.DEBOUNCING

    def _on_debounce_elapsed(self) -> None:
        self._timer = None
        previous = self._reload_task
        if previous is not None and previous.done():
            previous = None
        task = self._loop.create_task(self._reload(previous))
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)
        self._reload_task = task

    async def _reload(self, previous: Optional[asyncio.Task] = None) -> None:
        if previous is not None:
            await asyncio.wait([previous])

        self._state = WatcherState.RELOADING
        try:
            await self._wait_until_stable()
            tasks = await self.store.load_all()
        except Exception as exc:
            logger.error("Error reloading tasks: %s", exc)
            self.failed.emit(exc)
        else:
            self.changed.emit(tasks)
            logger.info("Emitted change event with %d tasks", len(tasks))
        finally:
            if self._state is WatcherState.RELOADING:
                self._state = WatcherState.DEBOUNCING if self._timer is not None else WatcherState.WATCHING

    def _stat(self) -> Optional[Tuple[int, int]]:
        try:
            st = self.path.stat()
        except OSError:
            return None
        return st.st_size, st.st_mtime_ns

    async def _wait_until_stable(self) -> None:
        """Wait until size and mtime stop changing for the stability threshold."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_stability_wait_seconds
        last = self._stat()
        stable_since = loop.time()
        while loop.time() - stable_since < self.stability_threshold_seconds:
            if loop.time() >= deadline:
                logger.warning("%s kept changing; reloading anyway", self.path)
                return
            await asyncio.sleep(self.poll_interval_seconds)
            current = self._stat()
            if current != last:
                last = current
                stable_since = loop.time()

    async def stop(self) -> None:
        """Release the OS watch, the debounce timer and any in-flight reload."""
        if self._state is WatcherState.IDLE:
            return
        self._state = WatcherState.IDLE

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self._reload_task = None
        pending = [task for task in self._reload_tasks if not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join, 5)

        self._loop = None
        logger.info("Watcher closed")
