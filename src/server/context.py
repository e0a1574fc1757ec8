"""Process-wide services, created at startup and torn down at shutdown."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from src.sync.broadcaster import Broadcaster
from src.sync.watcher import TaskFileWatcher
from src.taskboard.config import Config
from src.tracker.exceptions import TrackerError
from src.tracker.repository import IssueRepository
from src.tracker.task_store import TaskStore

logger = logging.getLogger(__name__)


class AppContext:
    """Owns the task store, issue repository, file watcher and broadcaster.

    ``init()`` loads the task document, starts watching it and starts the
    heartbeat; ``shutdown()`` stops all of it again. The FastAPI lifespan
    calls both and routes reach the instance through ``app.state``.
    """

    def __init__(self, config: Config, observer_factory: Optional[Callable[[], Any]] = None) -> None:
        self.config = config
        self.task_store = TaskStore(config.tasks_path)
        self.issues = IssueRepository(config.issues_dir)
        watcher_options = {"observer_factory": observer_factory} if observer_factory else {}
        self.watcher = TaskFileWatcher.from_config(self.task_store, config.watcher, **watcher_options)
        self.broadcaster = Broadcaster(heartbeat_interval=config.realtime.heartbeat_interval_seconds)
        self.started_at = time.time()
        self._initialized = False

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.started_at

    async def init(self) -> None:
        if self._initialized:
            logger.warning("AppContext already initialized")
            return
        try:
            await self.task_store.load_all()
        except TrackerError as exc:
            # The watcher picks the file up again once it is fixed.
            logger.error("Initial task load failed: %s", exc)
        self.broadcaster.attach(self.watcher)
        self.watcher.start()
        self.broadcaster.start_heartbeat()
        self._initialized = True
        logger.info("AppContext initialized (%d tasks)", self.task_store.count)

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self.watcher.stop()
        await self.broadcaster.shutdown()
        self._initialized = False
        logger.info("AppContext shut down")
