"""Optimistic issue mutations.

Every mutation follows the same three phases:

1. cancel outgoing issue fetches, snapshot the affected slots and write the
   speculative value into the cache
2. on failure restore the snapshots (deep-equal to the pre-mutation state)
3. whatever the outcome, invalidate the issue slots so the server state wins
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Tuple

from .api import DashboardApiClient
from .cache import ISSUES_KEY, Key, QueryCache, issue_key

logger = logging.getLogger(__name__)

Snapshots = List[Tuple[Key, Tuple[bool, Any]]]


def _iso(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IssueMutations:
    """Create / update / delete issues through the API with optimistic cache writes."""

    def __init__(
        self,
        api: DashboardApiClient,
        cache: QueryCache,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.api = api
        self.cache = cache
        self.clock = clock

    def _snapshot(self, *keys: Key) -> Snapshots:
        return [(key, self.cache.snapshot(key)) for key in keys]

    def _rollback(self, snapshots: Snapshots) -> None:
        for key, snapshot in snapshots:
            self.cache.restore(key, snapshot)

    def _settle(self) -> None:
        # ("issues",) is a prefix of every issue slot, single-issue ones included.
        self.cache.invalidate(ISSUES_KEY)

    async def create_issue(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        await self.cache.cancel_queries(ISSUES_KEY)
        snapshots = self._snapshot(ISSUES_KEY)

        now = self.clock()
        stamp = _iso(now)
        placeholder = {
            "tags": [],
            "attachments": [],
            **data,
            "id": f"temp-{int(now * 1000)}",
            "createdAt": stamp,
            "updatedAt": stamp,
        }
        existing = self.cache.get_data(ISSUES_KEY) or []
        self.cache.set_data(ISSUES_KEY, [placeholder, *existing])

        try:
            created = await self.api.create_issue(data)
        except Exception as exc:
            logger.warning("Failed to create issue, rolling back: %s", exc)
            self._rollback(snapshots)
            raise
        finally:
            self._settle()
        return created

    async def update_issue(self, issue_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        single = issue_key(issue_id)
        await self.cache.cancel_queries(ISSUES_KEY)
        snapshots = self._snapshot(ISSUES_KEY, single)

        stamp = _iso(self.clock())
        existing = self.cache.get_data(ISSUES_KEY)
        if existing is not None:
            self.cache.set_data(
                ISSUES_KEY,
                [
                    {**issue, **changes, "updatedAt": stamp} if issue.get("id") == issue_id else issue
                    for issue in existing
                ],
            )
        current = self.cache.get_data(single)
        if current:
            self.cache.set_data(single, {**current, **changes, "updatedAt": stamp})

        try:
            updated = await self.api.update_issue(issue_id, changes)
        except Exception as exc:
            logger.warning("Failed to update issue %s, rolling back: %s", issue_id, exc)
            self._rollback(snapshots)
            raise
        finally:
            self._settle()
        return updated

    async def delete_issue(self, issue_id: str) -> None:
        await self.cache.cancel_queries(ISSUES_KEY)
        snapshots = self._snapshot(ISSUES_KEY)

        existing = self.cache.get_data(ISSUES_KEY)
        if existing is not None:
            self.cache.set_data(
                ISSUES_KEY, [issue for issue in existing if issue.get("id") != issue_id]
            )

        try:
            await self.api.delete_issue(issue_id)
        except Exception as exc:
            logger.warning("Failed to delete issue %s, rolling back: %s", issue_id, exc)
            self._rollback(snapshots)
            raise
        finally:
            self._settle()
