"""WebSocket message shapes exchanged on /ws."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Sequence, Union

CONNECTED = "connected"
PING = "ping"
PONG = "pong"
TASKS_UPDATE = "tasks:update"
TASKS_ERROR = "tasks:error"


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def connected_message() -> Dict[str, Any]:
    return {"type": CONNECTED, "message": "WebSocket connected"}


def ping_message() -> Dict[str, Any]:
    return {"type": PING}


def pong_message() -> Dict[str, Any]:
    return {"type": PONG}


def tasks_update_message(tasks: Sequence[Any]) -> Dict[str, Any]:
    """Only a cheap summary travels; clients refetch the full list."""
    return {
        "type": TASKS_UPDATE,
        "timestamp": timestamp(),
        "data": {"tasksCount": len(tasks)},
    }


def tasks_error_message(error: Union[BaseException, str]) -> Dict[str, Any]:
    return {
        "type": TASKS_ERROR,
        "timestamp": timestamp(),
        "error": str(error) or type(error).__name__,
    }
