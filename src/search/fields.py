"""Field access shared by search and filters (works on models and plain dicts)."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


def resolve_field(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def plain_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value
