"""FastAPI application bootstrap."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.taskboard.config import Config

from .context import AppContext
from .errors import register_error_handlers
from .metrics import RequestMetrics
from .routes import (
    register_issue_routes,
    register_realtime_routes,
    register_system_routes,
    register_task_routes,
)

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, context: Optional[AppContext] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: 設定（省略時は Config.from_yaml()）
        context: 事前に組み立てた AppContext（テスト用）
    """
    config = config or (context.config if context else Config.from_yaml())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_context = context or AppContext(config)
        await app_context.init()
        app.state.context = app_context
        try:
            yield
        finally:
            await app_context.shutdown()

    app = FastAPI(title="TaskMaster Dashboard API", version="1.0.0", lifespan=lifespan)
    app.state.config = config
    app.state.metrics = RequestMetrics()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # The catch-all handler answers outside this middleware.
            app.state.metrics.record(500, (time.perf_counter() - start) * 1000)
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        app.state.metrics.record(response.status_code, duration_ms)
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_error_handlers(app)
    register_task_routes(app)
    register_issue_routes(app)
    register_system_routes(app)
    register_realtime_routes(app)

    return app
