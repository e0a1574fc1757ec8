"""Server-side change detection and realtime fan-out."""

from .broadcaster import Broadcaster, Connection, WebSocketConnection
from .watcher import TaskFileWatcher, WatcherState

__all__ = [
    "Broadcaster",
    "Connection",
    "TaskFileWatcher",
    "WatcherState",
    "WebSocketConnection",
]
