import json
import re

import pytest

from src.tracker.exceptions import NotFoundError, ValidationError
from src.tracker.models import IssueSeverity, IssueStatus
from src.tracker.repository import IssueRepository


def issue_payload(**overrides):
    payload = {
        "title": "Login button broken",
        "description": "Clicking login does nothing",
        "severity": "high",
        "status": "open",
        "relatedTaskId": "2",
        "tags": ["auth", "ui"],
    }
    payload.update(overrides)
    return payload


def test_issue_repository_crud_cycle(tmp_path):
    repo = IssueRepository(tmp_path / "issues")

    created = repo.create(issue_payload())
    assert re.match(r"^issue-\d+-[a-z0-9]{5}$", created.id)
    assert created.created_at == created.updated_at
    assert created.severity is IssueSeverity.HIGH
    assert created.attachments == []

    on_disk = json.loads((tmp_path / "issues" / f"{created.id}.json").read_text(encoding="utf-8"))
    assert on_disk["relatedTaskId"] == "2"
    assert "createdAt" in on_disk and "updatedAt" in on_disk

    assert [issue.id for issue in repo.list()] == [created.id]
    assert repo.get(created.id) == created

    updated = repo.update(created.id, {"status": "resolved", "id": "hijack", "createdAt": "2000-01-01T00:00:00Z"})
    assert updated.id == created.id
    assert updated.status is IssueStatus.RESOLVED
    assert updated.title == created.title
    assert updated.created_at == created.created_at
    assert updated.updated_at > created.updated_at

    assert repo.delete(created.id) is True
    assert repo.delete(created.id) is False
    assert repo.get(created.id) is None
    assert repo.list() == []


def test_create_rejects_invalid_fields(tmp_path):
    repo = IssueRepository(tmp_path)

    with pytest.raises(ValidationError) as excinfo:
        repo.create(issue_payload(severity="apocalyptic", title=None))

    assert set(excinfo.value.fields) >= {"severity", "title"}
    assert list(tmp_path.glob("*.json")) == []


def test_update_missing_issue_raises_not_found(tmp_path):
    repo = IssueRepository(tmp_path)
    with pytest.raises(NotFoundError):
        repo.update("issue-1-abcde", {"status": "resolved"})


def test_update_rejects_invalid_value_and_keeps_file(tmp_path):
    repo = IssueRepository(tmp_path)
    created = repo.create(issue_payload())

    with pytest.raises(ValidationError):
        repo.update(created.id, {"status": "closed"})

    assert repo.get(created.id).status is IssueStatus.OPEN


def test_list_by_task(tmp_path):
    repo = IssueRepository(tmp_path)
    first = repo.create(issue_payload(relatedTaskId="2"))
    repo.create(issue_payload(relatedTaskId="3"))
    repo.create(issue_payload(relatedTaskId=None))

    assert [issue.id for issue in repo.list_by_task("2")] == [first.id]
    assert repo.list_by_task("42") == []


def test_invalid_record_fails_whole_listing(tmp_path):
    repo = IssueRepository(tmp_path)
    repo.create(issue_payload())
    (tmp_path / "issue-broken.json").write_text("{}", encoding="utf-8")

    with pytest.raises(ValidationError):
        repo.list()


def test_path_traversal_is_not_found(tmp_path):
    repo = IssueRepository(tmp_path / "issues")
    (tmp_path / "secret.json").write_text("{}", encoding="utf-8")

    assert repo.get("../secret") is None
    assert repo.delete("../secret") is False
    assert (tmp_path / "secret.json").exists()


def test_issues_dir_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TASKBOARD_ISSUES_DIR", str(tmp_path / "env-issues"))
    repo = IssueRepository()
    assert repo.issues_dir == tmp_path / "env-issues"
    assert repo.issues_dir.is_dir()
