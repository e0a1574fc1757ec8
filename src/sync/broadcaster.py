"""Connection registry that fans watcher events out to WebSocket clients."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Callable, Coroutine, Dict, List, Optional, Protocol, Set

from starlette.websockets import WebSocket, WebSocketState

from src.tracker.models import Task

from .messages import ping_message, tasks_error_message, tasks_update_message
from .watcher import TaskFileWatcher

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """What the broadcaster needs from a live duplex connection."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """Adapter over a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def send_json(self, message: Dict[str, Any]) -> None:
        await self.send_text(json.dumps(message))

    async def close(self) -> None:
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close()


class Broadcaster:
    """Registry of open connections plus an independent heartbeat.

    Each connection carries an "alive" flag. Any inbound frame sets it; every
    heartbeat tick clears it and sends a ping, and a connection still
    unconfirmed at the following tick is pruned.
    """

    def __init__(self, heartbeat_interval: float = 30.0) -> None:
        self.heartbeat_interval = heartbeat_interval
        self._connections: Dict[Connection, bool] = {}
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: Connection) -> None:
        self._connections[connection] = True
        logger.info("Client connected (%d active)", len(self._connections))

    def unregister(self, connection: Connection) -> None:
        if self._connections.pop(connection, None) is not None:
            logger.info("Client disconnected (%d active)", len(self._connections))

    def mark_alive(self, connection: Connection) -> None:
        if connection in self._connections:
            self._connections[connection] = True

    async def _send(self, connection: Connection, text: str) -> bool:
        try:
            await connection.send_text(text)
        except Exception as exc:
            logger.warning("Error sending to client, dropping it: %s", exc)
            self.unregister(connection)
            return False
        return True

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` to every open connection; returns how many received it."""
        text = json.dumps(message)
        targets: List[Connection] = []
        for connection in list(self._connections):
            if connection.is_open:
                targets.append(connection)
            else:
                self.unregister(connection)
        if not targets:
            return 0
        results = await asyncio.gather(*(self._send(connection, text) for connection in targets))
        return sum(results)

    def attach(self, watcher: TaskFileWatcher) -> None:
        """Forward the watcher's changed/failed events to all clients."""
        self._unsubscribers.append(watcher.changed.subscribe(self._on_tasks_changed))
        self._unsubscribers.append(watcher.failed.subscribe(self._on_tasks_error))

    def _on_tasks_changed(self, tasks: List[Task]) -> None:
        logger.info("Broadcasting tasks update to %d clients", len(self._connections))
        self._spawn(self.broadcast(tasks_update_message(tasks)))

    def _on_tasks_error(self, error: Exception) -> None:
        logger.info("Broadcasting tasks error to %d clients", len(self._connections))
        self._spawn(self.broadcast(tasks_error_message(error)))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for broadcasts scheduled by watcher events."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def start_heartbeat(self) -> None:
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            logger.warning("Heartbeat already running")
            return
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat_loop())

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await self.check_connections()

    async def check_connections(self) -> int:
        """One heartbeat tick. Returns the number of pruned connections."""
        stale: List[Connection] = []
        targets: List[Connection] = []
        for connection, alive in list(self._connections.items()):
            if not alive or not connection.is_open:
                stale.append(connection)
            else:
                self._connections[connection] = False
                targets.append(connection)

        for connection in stale:
            self.unregister(connection)
            await self._close_quietly(connection)

        if targets:
            text = json.dumps(ping_message())
            await asyncio.gather(*(self._send(connection, text) for connection in targets))
        return len(stale)

    async def _close_quietly(self, connection: Connection) -> None:
        try:
            await connection.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing connection: %s", exc)

    async def shutdown(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self.flush()
        for connection in list(self._connections):
            self.unregister(connection)
            await self._close_quietly(connection)
        logger.info("Broadcaster shut down")
