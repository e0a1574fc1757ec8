"""Fuzzy search over task / issue collections.

Usage:
    engine = FuzzySearch(ISSUE_SEARCH_OPTIONS)
    ranked = engine.search(issues, "memroy leak")

An empty or blank query returns the input collection itself. The index is
rebuilt only when a different collection object is passed in.
"""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.taskboard.config import SearchConfig

from .fields import plain_value, resolve_field
from .fuzzy import BitapMatcher, MatchResult

logger = logging.getLogger(__name__)

EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class SearchOptions:
    keys: Tuple[str, ...]
    threshold: float = 0.3
    distance: int = 100
    min_match_char_length: int = 2
    location: int = 0

    def with_config(self, config: SearchConfig) -> "SearchOptions":
        """Same keys, tuning taken from the search section of the config."""
        return replace(
            self,
            threshold=config.threshold,
            distance=config.distance,
            min_match_char_length=config.min_match_char_length,
        )


TASK_SEARCH_OPTIONS = SearchOptions(keys=("id", "title", "description"))
ISSUE_SEARCH_OPTIONS = SearchOptions(keys=("id", "title", "description", "tags"))


_norm_cache: Dict[int, float] = {}


def field_norm(text: str) -> float:
    """Longer fields weigh less: 1/sqrt(word count), rounded to 3 places."""
    tokens = len([token for token in text.split(" ") if token]) or 1
    norm = _norm_cache.get(tokens)
    if norm is None:
        norm = round(1 / math.sqrt(tokens), 3)
        _norm_cache[tokens] = norm
    return norm


@dataclass(frozen=True)
class IndexedValue:
    text: str
    norm: float


def _index_values(value: Any) -> List[IndexedValue]:
    values = value if isinstance(value, (list, tuple)) else [value]
    indexed: List[IndexedValue] = []
    for raw in values:
        raw = plain_value(raw)
        if raw is None or isinstance(raw, bool):
            continue
        if isinstance(raw, (int, float)):
            raw = str(raw)
        if not isinstance(raw, str) or not raw.strip():
            continue
        indexed.append(IndexedValue(raw.lower(), field_norm(raw)))
    return indexed


class SearchIndex:
    """Lower-cased searchable values of one collection, per key."""

    def __init__(self, items: Sequence[Any], options: SearchOptions) -> None:
        self.items = items
        self.options = options
        self._weight = 1 / len(options.keys) if options.keys else 1.0
        self._records: List[List[List[IndexedValue]]] = [
            [_index_values(resolve_field(item, key)) for key in options.keys] for item in items
        ]

    def search(self, query: str) -> List[Any]:
        """Items with at least one matching field, best match first (stable)."""
        options = self.options
        matcher = BitapMatcher(
            query.strip(),
            threshold=options.threshold,
            distance=options.distance,
            location=options.location,
            min_match_char_length=options.min_match_char_length,
        )
        weight = self._weight
        # Repeated values (shared descriptions, tags) are matched once per query.
        seen: Dict[str, MatchResult] = {}

        scored: List[Tuple[float, int]] = []
        for position, fields in enumerate(self._records):
            total = 1.0
            matched = False
            for values in fields:
                for value in values:
                    result = seen.get(value.text)
                    if result is None:
                        result = seen[value.text] = matcher.match(value.text)
                    if result.is_match:
                        matched = True
                        score = EPSILON if result.score == 0 else result.score
                        total *= score ** (weight * value.norm)
            if matched:
                scored.append((total, position))

        scored.sort()
        return [self.items[position] for _, position in scored]


class FuzzySearch:
    """Keeps the index of the last collection it saw."""

    def __init__(self, options: SearchOptions) -> None:
        self.options = options
        self._index: Optional[SearchIndex] = None
        self.index_builds = 0

    def index_for(self, items: Sequence[Any]) -> SearchIndex:
        if self._index is None or self._index.items is not items:
            self._index = SearchIndex(items, self.options)
            self.index_builds += 1
            logger.debug("Built search index over %d items", len(items))
        return self._index

    def search(self, items: Sequence[Any], query: Optional[str]) -> Sequence[Any]:
        if not query or not query.strip():
            return items
        return self.index_for(items).search(query)


def search(items: Sequence[Any], query: Optional[str], options: SearchOptions) -> Sequence[Any]:
    """One-off search without keeping an index around."""
    return FuzzySearch(options).search(items, query)
