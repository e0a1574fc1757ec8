"""Task / issue domain shared by the server and the client data layer."""

from .exceptions import NotFoundError, StorageError, TrackerError, TransportError, ValidationError
from .models import (
    Issue,
    IssueCreate,
    IssueSeverity,
    IssueStatus,
    IssueUpdate,
    Task,
    TaskPriority,
    TaskStatus,
)
from .repository import IssueRepository
from .task_store import TaskStore, iter_tasks

__all__ = [
    "Issue",
    "IssueCreate",
    "IssueRepository",
    "IssueSeverity",
    "IssueStatus",
    "IssueUpdate",
    "NotFoundError",
    "StorageError",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskStore",
    "TrackerError",
    "TransportError",
    "ValidationError",
    "iter_tasks",
]
