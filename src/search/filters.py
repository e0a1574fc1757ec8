"""Multi-category filtering: AND across categories, OR within one category."""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple

from .fields import plain_value, resolve_field

TASK_FILTER_CATEGORIES: Tuple[str, ...] = ("status", "priority")
ISSUE_FILTER_CATEGORIES: Tuple[str, ...] = ("status", "priority", "severity")

FilterSpec = Mapping[str, Optional[Iterable[Any]]]
NormalizedFilters = Tuple[Tuple[str, FrozenSet[Any]], ...]


def normalize_filters(spec: Optional[FilterSpec]) -> NormalizedFilters:
    """Drop empty categories and turn the rest into a hashable, ordered form."""
    if not spec:
        return ()
    active: Dict[str, FrozenSet[Any]] = {}
    for category, values in spec.items():
        if not values:
            continue
        accepted = frozenset(plain_value(value) for value in values)
        if accepted:
            active[category] = accepted
    return tuple(sorted(active.items()))


def _value_matches(value: Any, accepted: FrozenSet[Any]) -> bool:
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(plain_value(element) in accepted for element in value)
    return plain_value(value) in accepted


def matches_filters(item: Any, filters: NormalizedFilters) -> bool:
    for category, accepted in filters:
        if not _value_matches(resolve_field(item, category), accepted):
            return False
    return True


def apply_filters(items: Sequence[Any], spec: Optional[FilterSpec]) -> Sequence[Any]:
    """Items matching every active category.

    With no active category the input collection itself is returned.
    """
    filters = spec if isinstance(spec, tuple) else normalize_filters(spec)
    if not filters:
        return items
    return [item for item in items if matches_filters(item, filters)]
