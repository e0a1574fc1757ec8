"""Minimal observer used for change propagation between components."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Handler = Callable[[T], None]


class Observable(Generic[T]):
    """Ordered list of handlers called synchronously on ``emit``.

    A handler that raises is logged and does not stop delivery to the
    remaining handlers.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` and return a function that removes it again."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, value: T) -> None:
        for handler in list(self._handlers):
            try:
                handler(value)
            except Exception:
                logger.exception("Handler for %s failed", self.name)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)
