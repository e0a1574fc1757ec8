"""Health, statistics and activity endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import Depends, FastAPI

from src.sync.messages import timestamp
from src.tracker.models import IssueSeverity, IssueStatus, TaskStatus

from ..context import AppContext
from ..dependencies import get_context, get_metrics
from ..metrics import RequestMetrics
from ..schemas import (
    ActivityItem,
    ActivityResponse,
    HealthResponse,
    PerformanceMetrics,
    PerformanceResponse,
    StatsResponse,
    SystemHealthResponse,
    TaskStats,
)

logger = logging.getLogger(__name__)

RECENT_TASKS = 5
RECENT_ISSUES = 5
MAX_ACTIVITY = 10


def register_system_routes(app: FastAPI) -> None:
    """Register health / stats / activity endpoints."""

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Simple liveness check."""
        return HealthResponse(status="ok", timestamp=timestamp())

    @app.get("/api/system/health", response_model=SystemHealthResponse)
    async def system_health(context: AppContext = Depends(get_context)) -> SystemHealthResponse:
        return SystemHealthResponse(
            status={
                "api": "healthy",
                "tasks": "active" if context.task_store.tasks_path.exists() else "missing",
                "watcher": context.watcher.state.value,
            },
            timestamp=timestamp(),
            uptime=int(context.uptime_seconds),
            connections=context.broadcaster.connection_count,
        )

    @app.get("/api/system/stats", response_model=StatsResponse)
    async def system_stats(context: AppContext = Depends(get_context)) -> StatsResponse:
        """Counts over top-level tasks and all issues."""
        tasks = context.task_store.get_tasks()
        issues = await asyncio.to_thread(context.issues.list)
        stats = TaskStats(
            totalTasks=len(tasks),
            pendingTasks=sum(1 for task in tasks if task.status is TaskStatus.PENDING),
            inProgressTasks=sum(1 for task in tasks if task.status is TaskStatus.IN_PROGRESS),
            completedTasks=sum(1 for task in tasks if task.status is TaskStatus.DONE),
            totalIssues=len(issues),
            openIssues=sum(1 for issue in issues if issue.status is IssueStatus.OPEN),
            criticalIssues=sum(1 for issue in issues if issue.severity is IssueSeverity.CRITICAL),
        )
        return StatsResponse(stats=stats, timestamp=timestamp())

    @app.get("/api/system/activity", response_model=ActivityResponse)
    async def system_activity(context: AppContext = Depends(get_context)) -> ActivityResponse:
        """Last tasks in document order plus the most recently updated issues."""
        now = timestamp()
        tasks = context.task_store.get_tasks()[-RECENT_TASKS:]
        issues = await asyncio.to_thread(context.issues.list)
        issues.sort(key=lambda issue: issue.updated_at, reverse=True)

        activity = [
            ActivityItem(
                id=f"task-{task.id}",
                time=now,
                action=f"Task #{task.id}: {task.status.value}",
                type="task",
                title=task.title,
            )
            for task in reversed(tasks)
        ]
        activity.extend(
            ActivityItem(
                id=f"issue-{issue.id}",
                time=issue.to_dict()["updatedAt"],
                action=f"Issue #{issue.id}: {issue.status.value}",
                type="issue",
                title=issue.title,
            )
            for issue in issues[:RECENT_ISSUES]
        )
        return ActivityResponse(activity=activity[:MAX_ACTIVITY], timestamp=now)

    @app.get("/api/system/performance", response_model=PerformanceResponse)
    async def system_performance(metrics: RequestMetrics = Depends(get_metrics)) -> PerformanceResponse:
        return PerformanceResponse(
            metrics=PerformanceMetrics(
                avgResponseTime=round(metrics.average_response_ms),
                requestCount=metrics.request_count,
                errorCount=metrics.error_count,
                uptime=metrics.uptime_seconds,
                timestamp=timestamp(),
            )
        )
