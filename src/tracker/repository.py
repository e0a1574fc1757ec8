from __future__ import annotations

import json
import logging
import os
import random
import re
import string
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .exceptions import NotFoundError, StorageError, ValidationError
from .models import Issue, IssueCreate, IssueUpdate

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_ID_ALPHABET = string.ascii_lowercase + string.digits


class IssueRepository:
    """JSONファイルベースのイシュー管理。1イシュー = <id>.json"""

    def __init__(self, issues_dir: Optional[Path] = None):
        default_path = Path.cwd() / ".taskmaster" / "issues"
        env_path = os.getenv("TASKBOARD_ISSUES_DIR")
        if issues_dir:
            self.issues_dir = Path(issues_dir)
        elif env_path:
            self.issues_dir = Path(env_path)
        else:
            self.issues_dir = default_path
        self.initialize()

    def initialize(self) -> None:
        try:
            self.issues_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Failed to initialize issues directory: {exc}", path=self.issues_dir
            ) from exc

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def generate_id() -> str:
        """issue-{epoch ms}-{5 random base36 chars}"""
        suffix = "".join(random.choices(_ID_ALPHABET, k=5))
        return f"issue-{int(time.time() * 1000)}-{suffix}"

    def _path(self, issue_id: str) -> Optional[Path]:
        if not _SAFE_ID.match(issue_id) or ".." in issue_id:
            return None
        return self.issues_dir / f"{issue_id}.json"

    def _read(self, issue_id: str) -> Optional[Issue]:
        path = self._path(issue_id)
        if path is None:
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read issue {issue_id}: {exc}", path=path) from exc
        try:
            return Issue.model_validate(json.loads(content))
        except json.JSONDecodeError as exc:
            raise ValidationError(
                f"Issue {issue_id} is not valid JSON",
                [{"field": "<document>", "message": str(exc)}],
            ) from exc
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(f"Issue {issue_id} failed validation", exc) from exc

    def _write(self, issue: Issue) -> None:
        path = self._path(issue.id)
        if path is None:
            raise ValidationError("Invalid issue id", [{"field": "id", "message": issue.id}])
        tmp_path = path.with_name(f".{path.name}.tmp")
        payload = json.dumps(issue.to_dict(), ensure_ascii=False, indent=2)
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"Failed to write issue {issue.id}: {exc}", path=path) from exc
        logger.debug("Wrote issue to file: %s", issue.id)

    def list(self) -> List[Issue]:
        """全イシューを読み込む。1件でも不正なら全体を失敗させる"""
        try:
            paths = sorted(self.issues_dir.glob("*.json"))
        except OSError as exc:
            raise StorageError(f"Failed to list issues: {exc}", path=self.issues_dir) from exc

        issues: List[Issue] = []
        for path in paths:
            issue = self._read(path.stem)
            if issue:
                issues.append(issue)
        logger.debug("Retrieved %d issues", len(issues))
        return issues

    def get(self, issue_id: str) -> Optional[Issue]:
        return self._read(issue_id)

    def create(self, data: Union[IssueCreate, Mapping[str, Any]]) -> Issue:
        try:
            fields = data if isinstance(data, IssueCreate) else IssueCreate.model_validate(data)
            now = self._now()
            issue = Issue.model_validate(
                {
                    **fields.model_dump(),
                    "id": self.generate_id(),
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic("Invalid issue data", exc) from exc

        self._write(issue)
        logger.info("Created new issue: %s", issue.id)
        return issue

    def update(self, issue_id: str, changes: Union[IssueUpdate, Mapping[str, Any]]) -> Issue:
        existing = self._read(issue_id)
        if existing is None:
            raise NotFoundError("Issue", issue_id)

        try:
            update = changes if isinstance(changes, IssueUpdate) else IssueUpdate.model_validate(changes)
            updated_at = self._now()
            if updated_at <= existing.updated_at:
                updated_at = existing.updated_at + timedelta(microseconds=1)
            issue = Issue.model_validate(
                {
                    **existing.model_dump(),
                    **update.changes(),
                    "id": existing.id,
                    "created_at": existing.created_at,
                    "updated_at": updated_at,
                }
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic("Invalid issue data", exc) from exc

        self._write(issue)
        logger.info("Updated issue: %s", issue_id)
        return issue

    def delete(self, issue_id: str) -> bool:
        path = self._path(issue_id)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("Issue not found for deletion: %s", issue_id)
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete issue {issue_id}: {exc}", path=path) from exc
        logger.info("Deleted issue: %s", issue_id)
        return True

    def list_by_task(self, task_id: str) -> List[Issue]:
        related = [issue for issue in self.list() if issue.related_task_id == task_id]
        logger.debug("Found %d issues for task %s", len(related), task_id)
        return related
