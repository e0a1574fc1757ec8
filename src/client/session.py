"""Client-side wiring of API, cache, realtime sync, mutations and list views."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from src.search.pipeline import issue_pipeline, task_pipeline
from src.taskboard.config import Config

from .api import DashboardApiClient
from .cache import CURRENT_TASK_KEY, ISSUES_KEY, TASKS_KEY, QueryCache, issue_key, task_issues_key
from .mutations import IssueMutations
from .realtime import RealtimeSync
from .views import ListView

logger = logging.getLogger(__name__)


def websocket_url(base_url: str) -> str:
    """http(s)://host -> ws(s)://host/ws"""
    if base_url.startswith("https://"):
        scheme, rest = "wss://", base_url[len("https://"):]
    elif base_url.startswith("http://"):
        scheme, rest = "ws://", base_url[len("http://"):]
    else:
        scheme, rest = "ws://", base_url
    return f"{scheme}{rest.rstrip('/')}/ws"


class DashboardSession:
    """Everything a dashboard front end needs, sharing one cache."""

    def __init__(
        self,
        api: DashboardApiClient,
        realtime_url: Optional[str] = None,
        config: Optional[Config] = None,
        **realtime_kwargs: Any,
    ) -> None:
        self.config = config or Config()
        self.api = api
        self.cache = QueryCache()
        self.mutations = IssueMutations(api, self.cache)
        self.tasks = ListView(self.cache, TASKS_KEY, api.get_tasks, task_pipeline(self.config.search))
        self.issues = ListView(self.cache, ISSUES_KEY, api.get_issues, issue_pipeline(self.config.search))
        self.cache.register(CURRENT_TASK_KEY, api.get_current_task)
        self.realtime: Optional[RealtimeSync] = None
        if realtime_url:
            self.realtime = RealtimeSync.from_config(
                realtime_url, self.cache, self.config.realtime, **realtime_kwargs
            )
        self._issue_views: Dict[str, ListView] = {}

    async def current_task(self) -> Optional[Dict[str, Any]]:
        return await self.cache.ensure(CURRENT_TASK_KEY)

    async def issue(self, issue_id: str) -> Dict[str, Any]:
        async def fetch() -> Dict[str, Any]:
            return await self.api.get_issue(issue_id)

        return await self.cache.ensure(issue_key(issue_id), fetch)

    def issues_for_task(self, task_id: Any) -> ListView:
        task_id = str(task_id)
        view = self._issue_views.get(task_id)
        if view is None:

            async def fetch() -> Any:
                return await self.api.get_issues(task_id)

            view = ListView(
                self.cache, task_issues_key(task_id), fetch, issue_pipeline(self.config.search)
            )
            self._issue_views[task_id] = view
        return view

    async def start(self) -> None:
        await self.tasks.load()
        await self.issues.load()
        if self.realtime is not None:
            self.realtime.start()

    async def close(self) -> None:
        if self.realtime is not None:
            await self.realtime.stop()
        await self.cache.cancel_queries()
        await self.api.aclose()
        logger.info("Dashboard session closed")
