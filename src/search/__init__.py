"""Client-side fuzzy search and filtering."""

from .engine import (
    ISSUE_SEARCH_OPTIONS,
    TASK_SEARCH_OPTIONS,
    FuzzySearch,
    SearchIndex,
    SearchOptions,
    search,
)
from .filters import (
    ISSUE_FILTER_CATEGORIES,
    TASK_FILTER_CATEGORIES,
    apply_filters,
    matches_filters,
    normalize_filters,
)
from .fuzzy import BitapMatcher, MatchResult
from .pipeline import SearchFilterPipeline, issue_pipeline, task_pipeline

__all__ = [
    "BitapMatcher",
    "FuzzySearch",
    "ISSUE_FILTER_CATEGORIES",
    "ISSUE_SEARCH_OPTIONS",
    "MatchResult",
    "SearchFilterPipeline",
    "SearchIndex",
    "SearchOptions",
    "TASK_FILTER_CATEGORIES",
    "TASK_SEARCH_OPTIONS",
    "apply_filters",
    "issue_pipeline",
    "matches_filters",
    "normalize_filters",
    "search",
]
