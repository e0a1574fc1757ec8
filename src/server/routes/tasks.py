"""Task endpoints (read-only view of tasks.json)."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI

from ..context import AppContext
from ..dependencies import get_context
from ..errors import error_response
from ..schemas import ErrorResponse, TaskResponse, TasksResponse

logger = logging.getLogger(__name__)


def register_task_routes(app: FastAPI) -> None:
    """Register task read endpoints."""

    @app.get("/api/tasks", response_model=TasksResponse)
    async def list_tasks(context: AppContext = Depends(get_context)) -> TasksResponse:
        tasks = context.task_store.get_tasks()
        return TasksResponse(tasks=[task.to_dict() for task in tasks])

    # /current must be declared before /{task_id}
    @app.get(
        "/api/tasks/current",
        response_model=TaskResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def current_task(context: AppContext = Depends(get_context)):
        """First in-progress task, otherwise the first pending one."""
        task = context.task_store.get_current_task()
        if task is None:
            return error_response(404, "No current task found")
        return TaskResponse(task=task.to_dict())

    @app.get(
        "/api/tasks/{task_id}",
        response_model=TaskResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def get_task(task_id: str, context: AppContext = Depends(get_context)):
        """Look up a task at any depth ("1", "3.2", "3.2.1")."""
        task = context.task_store.get(task_id)
        if task is None:
            return error_response(404, f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())
