"""Client data layer: API access, query cache, optimistic mutations and realtime sync."""

from .api import ApiError, DashboardApiClient
from .cache import (
    CURRENT_TASK_KEY,
    ISSUES_KEY,
    TASKS_KEY,
    CacheSlot,
    QueryCache,
    SlotStatus,
    issue_key,
    task_issues_key,
)
from .mutations import IssueMutations
from .realtime import ConnectionState, RealtimeSync
from .session import DashboardSession, websocket_url
from .views import ListView

__all__ = [
    "ApiError",
    "CURRENT_TASK_KEY",
    "CacheSlot",
    "ConnectionState",
    "DashboardApiClient",
    "DashboardSession",
    "ISSUES_KEY",
    "IssueMutations",
    "ListView",
    "QueryCache",
    "RealtimeSync",
    "SlotStatus",
    "TASKS_KEY",
    "issue_key",
    "task_issues_key",
    "websocket_url",
]
