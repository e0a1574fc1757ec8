"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

from fastapi import Request, WebSocket

from .context import AppContext
from .metrics import RequestMetrics


def get_context(request: Request) -> AppContext:
    """AppContext installed by the lifespan handler."""
    return request.app.state.context


def get_ws_context(websocket: WebSocket) -> AppContext:
    return websocket.app.state.context


def get_metrics(request: Request) -> RequestMetrics:
    return request.app.state.metrics
