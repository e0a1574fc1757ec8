import asyncio
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.client.api import ApiError
from src.client.cache import ISSUES_KEY, QueryCache, issue_key
from src.client.mutations import IssueMutations

EXISTING = [
    {
        "id": "issue-1",
        "title": "Login fails",
        "description": "500 on submit",
        "severity": "high",
        "status": "open",
        "tags": ["auth"],
        "attachments": [],
        "createdAt": "2025-12-31T09:30:00.000Z",
        "updatedAt": "2025-12-31T09:30:00.000Z",
    }
]

NEW_ISSUE = {
    "title": "Slow search",
    "description": "Takes seconds on 10k items",
    "severity": "medium",
    "status": "open",
}


def make_mutations(api):
    cache = QueryCache()
    cache.set_data(ISSUES_KEY, copy.deepcopy(EXISTING))
    return IssueMutations(api, cache, clock=lambda: 1767225600.0), cache


def test_create_failure_rolls_back_to_deep_equal_state():
    api = MagicMock()
    seen_during_request = []

    async def failing_create(data):
        seen_during_request.append(copy.deepcopy(cache.get_data(ISSUES_KEY)))
        raise ApiError("Invalid issue data", status_code=400)

    api.create_issue = AsyncMock(side_effect=failing_create)
    mutations, cache = make_mutations(api)
    before = copy.deepcopy(cache.get_data(ISSUES_KEY))

    async def scenario():
        with pytest.raises(ApiError):
            await mutations.create_issue(NEW_ISSUE)
        return copy.deepcopy(cache.get_data(ISSUES_KEY))

    after = asyncio.run(scenario())

    optimistic = seen_during_request[0]
    assert optimistic[0]["id"] == "temp-1767225600000"
    assert optimistic[0]["createdAt"] == optimistic[0]["updatedAt"] == "2026-01-01T00:00:00.000Z"
    assert optimistic[1:] == before
    assert after == before


def test_create_success_invalidates_issue_slots():
    created = {**NEW_ISSUE, "id": "issue-2", "tags": [], "attachments": []}
    api = MagicMock()
    api.create_issue = AsyncMock(return_value=created)
    api.get_issues = AsyncMock(return_value=EXISTING + [created])
    mutations, cache = make_mutations(api)
    cache.register(ISSUES_KEY, api.get_issues)

    async def scenario():
        result = await mutations.create_issue(NEW_ISSUE)
        await cache.wait_idle()
        return result

    result = asyncio.run(scenario())

    assert result == created
    api.get_issues.assert_awaited_once()
    assert [issue["id"] for issue in cache.get_data(ISSUES_KEY)] == ["issue-1", "issue-2"]


def test_update_applies_optimistically_and_rolls_back_both_slots():
    api = MagicMock()
    observed = {}

    async def failing_update(issue_id, changes):
        observed["list"] = copy.deepcopy(cache.get_data(ISSUES_KEY))
        observed["single"] = copy.deepcopy(cache.get_data(issue_key(issue_id)))
        raise ApiError("Issue issue-1 not found", status_code=404)

    api.update_issue = AsyncMock(side_effect=failing_update)
    mutations, cache = make_mutations(api)
    cache.set_data(issue_key("issue-1"), copy.deepcopy(EXISTING[0]))

    async def scenario():
        with pytest.raises(ApiError):
            await mutations.update_issue("issue-1", {"status": "resolved"})

    asyncio.run(scenario())

    assert observed["list"][0]["status"] == "resolved"
    assert observed["single"]["status"] == "resolved"
    assert observed["single"]["updatedAt"] != EXISTING[0]["updatedAt"]
    assert cache.get_data(ISSUES_KEY) == EXISTING
    assert cache.get_data(issue_key("issue-1")) == EXISTING[0]


def test_delete_removes_optimistically():
    api = MagicMock()
    observed = []

    async def delete(issue_id):
        observed.append(copy.deepcopy(cache.get_data(ISSUES_KEY)))

    api.delete_issue = AsyncMock(side_effect=delete)
    mutations, cache = make_mutations(api)

    asyncio.run(mutations.delete_issue("issue-1"))

    assert observed == [[]]
    api.delete_issue.assert_awaited_once_with("issue-1")
