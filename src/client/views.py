"""List views: one cache slot run through the search/filter pipeline."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from src.search.pipeline import SearchFilterPipeline

from .cache import CacheSlot, Fetcher, Key, QueryCache

_EMPTY: tuple = ()


class ListView:
    """What a task or issue list screen renders.

    The query and filter selections live here; the data lives in the cache,
    so a refetch after ``tasks:update`` shows up on the next ``items()`` call.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: Key,
        fetcher: Fetcher,
        pipeline: SearchFilterPipeline,
    ) -> None:
        self.cache = cache
        self.key = tuple(key)
        self.pipeline = pipeline
        self.query = ""
        self.filters: Dict[str, List[Any]] = {}
        cache.register(self.key, fetcher)

    @property
    def slot(self) -> CacheSlot:
        return self.cache.slot(self.key)

    async def load(self) -> Any:
        return await self.cache.ensure(self.key)

    def set_query(self, query: Optional[str]) -> None:
        self.query = query or ""

    def set_filter(self, category: str, values: Iterable[Any]) -> None:
        self.filters[category] = list(values)

    def toggle_filter(self, category: str, value: Any) -> None:
        selected = self.filters.setdefault(category, [])
        if value in selected:
            selected.remove(value)
        else:
            selected.append(value)

    def clear_filters(self) -> None:
        self.filters = {}

    def items(self) -> Sequence[Any]:
        data = self.cache.get_data(self.key, default=_EMPTY)
        return self.pipeline.run(data, self.query, self.filters)
