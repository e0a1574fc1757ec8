"""Task / Issue のデータモデル定義

JSON（ディスク・API）上のキーは camelCase、Python 側は snake_case。

関連モジュール:
- src/tracker/task_store.py - tasks.json の読み込み
- src/tracker/repository.py - イシューの永続化
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator


class TaskStatus(str, Enum):
    """TaskMaster のタスクステータス"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


TaskId = Union[StrictInt, str]


class Task(BaseModel):
    """タスクツリーのノード。subtasks は同じ形の子タスク（深さ無制限）"""

    model_config = ConfigDict(extra="ignore")

    id: TaskId
    title: str
    description: str
    status: TaskStatus
    priority: Optional[TaskPriority] = None
    dependencies: Optional[List[TaskId]] = None
    subtasks: Optional[List[Task]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


Task.model_rebuild()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class IssueFields(BaseModel):
    """イシューの入力フィールド（id と timestamps を除く）"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    description: str
    severity: IssueSeverity
    status: IssueStatus
    related_task_id: Optional[str] = Field(default=None, alias="relatedTaskId")
    tags: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)


class IssueCreate(IssueFields):
    """POST /api/issues の入力"""


class IssueUpdate(BaseModel):
    """PUT /api/issues/{id} の部分更新入力"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[IssueSeverity] = None
    status: Optional[IssueStatus] = None
    related_task_id: Optional[str] = Field(default=None, alias="relatedTaskId")
    tags: Optional[List[str]] = None
    attachments: Optional[List[str]] = None

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class Issue(IssueFields):
    """永続化済みイシュー。1 イシュー = 1 JSON ファイル"""

    id: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Issue":
        if self.created_at > self.updated_at:
            raise ValueError("updatedAt must not be earlier than createdAt")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
