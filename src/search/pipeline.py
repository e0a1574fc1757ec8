"""Search-then-filter composition with per-stage memoization."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from src.taskboard.config import SearchConfig

from .engine import ISSUE_SEARCH_OPTIONS, TASK_SEARCH_OPTIONS, FuzzySearch, SearchOptions
from .filters import FilterSpec, NormalizedFilters, apply_filters, normalize_filters

_UNSET = object()


class SearchFilterPipeline:
    """Runs fuzzy search, then filters the searched result.

    Stage 1 is recomputed only when the collection object or the query
    changes; stage 2 only when the stage 1 result object or the normalized
    filters change.
    """

    def __init__(self, options: SearchOptions) -> None:
        self.engine = FuzzySearch(options)
        self.search_runs = 0
        self.filter_runs = 0
        self._search_input: Any = _UNSET
        self._query: Optional[str] = None
        self._searched: Sequence[Any] = ()
        self._filter_input: Any = _UNSET
        self._filters: Optional[NormalizedFilters] = None
        self._filtered: Sequence[Any] = ()

    def _search_stage(self, items: Sequence[Any], query: str) -> Sequence[Any]:
        if self._search_input is not items or self._query != query:
            self._searched = self.engine.search(items, query)
            self._search_input = items
            self._query = query
            self.search_runs += 1
        return self._searched

    def _filter_stage(self, searched: Sequence[Any], filters: NormalizedFilters) -> Sequence[Any]:
        if self._filter_input is not searched or self._filters != filters:
            self._filtered = apply_filters(searched, filters)
            self._filter_input = searched
            self._filters = filters
            self.filter_runs += 1
        return self._filtered

    def run(
        self,
        items: Sequence[Any],
        query: Optional[str] = "",
        filters: Optional[FilterSpec] = None,
    ) -> Sequence[Any]:
        searched = self._search_stage(items, (query or "").strip())
        return self._filter_stage(searched, normalize_filters(filters))


def task_pipeline(config: Optional[SearchConfig] = None) -> SearchFilterPipeline:
    options = TASK_SEARCH_OPTIONS.with_config(config) if config else TASK_SEARCH_OPTIONS
    return SearchFilterPipeline(options)


def issue_pipeline(config: Optional[SearchConfig] = None) -> SearchFilterPipeline:
    options = ISSUE_SEARCH_OPTIONS.with_config(config) if config else ISSUE_SEARCH_OPTIONS
    return SearchFilterPipeline(options)
