"""Shared configuration, logging and observer helpers."""

from .config import Config, RealtimeConfig, SearchConfig, ServerConfig, WatcherConfig
from .events import Observable
from .logger import setup_logger

__all__ = [
    "Config",
    "RealtimeConfig",
    "SearchConfig",
    "ServerConfig",
    "WatcherConfig",
    "Observable",
    "setup_logger",
]
