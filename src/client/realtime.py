"""WebSocket sync client: turns server change notifications into cache invalidations.

Usage:
    sync = RealtimeSync("ws://localhost:5000/ws", cache)
    runner = asyncio.create_task(sync.run())
    ...
    await sync.stop()

Every successful (re)connect invalidates the whole cache because the server
does not replay missed updates. Dropped connections are retried with
exponential backoff; once the attempts are used up the client stays in the
``disconnected`` state until ``run()`` is called again.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import WebSocketException

from src.sync.messages import CONNECTED, PING, PONG, TASKS_ERROR, TASKS_UPDATE, ping_message, pong_message
from src.taskboard.config import RealtimeConfig
from src.taskboard.events import Observable
from src.tracker.exceptions import TransportError

from .cache import TASKS_KEY, QueryCache

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


class RealtimeSync:
    """Keeps one WebSocket open and feeds it into a ``QueryCache``."""

    def __init__(
        self,
        url: str,
        cache: QueryCache,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Sleep = asyncio.sleep,
        max_attempts: int = 10,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        heartbeat_interval: float = 30.0,
    ) -> None:
        self.url = url
        self.cache = cache
        self._connect = connect
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.heartbeat_interval = heartbeat_interval

        self.attempts = 0
        self.state = ConnectionState.IDLE
        self.last_error: Optional[str] = None
        self.state_changed: Observable[ConnectionState] = Observable("realtime-state")
        self.sync_errors: Observable[str] = Observable("sync-error")
        self._stopping = False
        self._runner: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls, url: str, cache: QueryCache, config: RealtimeConfig, **kwargs: Any
    ) -> "RealtimeSync":
        return cls(
            url,
            cache,
            max_attempts=config.reconnect_max_attempts,
            base_delay=config.reconnect_base_delay_seconds,
            max_delay=config.reconnect_max_delay_seconds,
            heartbeat_interval=config.heartbeat_interval_seconds,
            **kwargs,
        )

    def backoff_delay(self, attempt: int) -> float:
        """base * 2**attempt, capped at max_delay."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            self.state = state
            self.state_changed.emit(state)

    def start(self) -> asyncio.Task:
        if self._runner is not None and not self._runner.done():
            logger.warning("Realtime sync already running")
            return self._runner
        self._runner = asyncio.get_running_loop().create_task(self.run())
        return self._runner

    async def run(self) -> None:
        """Connect, consume messages, and reconnect until stopped or exhausted."""
        self._stopping = False
        self.attempts = 0
        while not self._stopping:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._session()
            except (OSError, asyncio.TimeoutError, WebSocketException, TransportError) as exc:
                logger.warning("WebSocket connection error: %s", exc)
            if self._stopping:
                break

            if self.attempts >= self.max_attempts:
                logger.error("Max reconnection attempts reached (%d)", self.max_attempts)
                self._set_state(ConnectionState.DISCONNECTED)
                return

            delay = self.backoff_delay(self.attempts)
            logger.info(
                "Reconnecting in %.0fms (attempt %d/%d)",
                delay * 1000,
                self.attempts + 1,
                self.max_attempts,
            )
            self._set_state(ConnectionState.RECONNECTING)
            await self._sleep(delay)
            self.attempts += 1
        self._set_state(ConnectionState.STOPPED)

    async def _session(self) -> None:
        async with self._connect(self.url) as websocket:
            logger.info("WebSocket connected to %s", self.url)
            self.attempts = 0
            self._set_state(ConnectionState.CONNECTED)
            self.cache.invalidate(())

            heartbeat = asyncio.get_running_loop().create_task(self._heartbeat(websocket))
            try:
                async for raw in websocket:
                    reply = self.handle_message(raw)
                    if reply is not None:
                        await websocket.send(json.dumps(reply))
            finally:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat
        logger.info("WebSocket connection closed")

    async def _heartbeat(self, websocket: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await websocket.send(json.dumps(ping_message()))
            except (OSError, WebSocketException) as exc:
                logger.debug("Heartbeat ping failed: %s", exc)
                return

    def handle_message(self, raw: Any) -> Optional[Dict[str, Any]]:
        """Apply one server message. Returns a reply to send back, if any."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error("Error parsing WebSocket message: %s", exc)
            return None
        if not isinstance(message, dict):
            logger.warning("Unknown WebSocket message: %r", message)
            return None

        kind = message.get("type")
        if kind == TASKS_UPDATE:
            logger.info("Tasks updated, invalidating cache")
            self.last_error = None
            self.cache.invalidate(TASKS_KEY)
        elif kind == TASKS_ERROR:
            error = str(message.get("error") or "Unknown error")
            logger.error("Server error: %s", error)
            self.last_error = error
            self.sync_errors.emit(error)
        elif kind == PING:
            return pong_message()
        elif kind == CONNECTED:
            logger.info("%s", message.get("message", "WebSocket connected"))
        elif kind == PONG:
            pass
        else:
            logger.warning("Unknown WebSocket message type: %s", kind)
        return None

    async def stop(self) -> None:
        self._stopping = True
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        self._set_state(ConnectionState.STOPPED)
