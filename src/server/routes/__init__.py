"""Route registration helpers."""

from .issues import register_issue_routes
from .realtime import register_realtime_routes
from .system import register_system_routes
from .tasks import register_task_routes

__all__ = [
    "register_issue_routes",
    "register_realtime_routes",
    "register_system_routes",
    "register_task_routes",
]
