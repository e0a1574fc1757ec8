"""HTTP client for the dashboard REST API.

Usage:
    async with DashboardApiClient("http://localhost:5000") as api:
        tasks = await api.get_tasks()
        issue = await api.create_issue({"title": "...", ...})

Responses are returned as plain JSON dicts (camelCase keys), the same shape
the realtime cache stores.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from src.tracker.exceptions import TrackerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiError(TrackerError):
    """Non-2xx response or transport failure from the dashboard API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors: List[Dict[str, Any]] = list(errors or [])

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class DashboardApiClient:
    """Thin async wrapper over ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "DashboardApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"{method} {path} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            errors = body.get("errors") if isinstance(body, dict) else None
            raise ApiError(
                message or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                errors=errors,
            )
        return body

    # ---- tasks -------------------------------------------------------------

    async def get_tasks(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/api/tasks")
        return body["tasks"]

    async def get_current_task(self) -> Optional[Dict[str, Any]]:
        """Current task, or None when nothing is pending / in progress."""
        try:
            body = await self._request("GET", "/api/tasks/current")
        except ApiError as exc:
            if exc.is_not_found:
                return None
            raise
        return body["task"]

    async def get_task(self, task_id: Any) -> Dict[str, Any]:
        body = await self._request("GET", f"/api/tasks/{task_id}")
        return body["task"]

    # ---- issues ------------------------------------------------------------

    async def get_issues(self, task_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"taskId": task_id} if task_id else None
        body = await self._request("GET", "/api/issues", params=params)
        return body["issues"]

    async def get_issue(self, issue_id: str) -> Dict[str, Any]:
        body = await self._request("GET", f"/api/issues/{issue_id}")
        return body["issue"]

    async def create_issue(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        body = await self._request("POST", "/api/issues", json=data)
        return body["issue"]

    async def update_issue(self, issue_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        body = await self._request("PUT", f"/api/issues/{issue_id}", json=changes)
        return body["issue"]

    async def delete_issue(self, issue_id: str) -> None:
        await self._request("DELETE", f"/api/issues/{issue_id}")
