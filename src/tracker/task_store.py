"""Read-only access to TaskMaster's shared task document (tasks.json)."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import StorageError, ValidationError
from .models import Task, TaskStatus

logger = logging.getLogger(__name__)

_TASK_LIST = TypeAdapter(List[Task])


def _extract_tasks(raw: Any) -> Any:
    """TaskMaster keeps tasks under the "master" tag; older files use a top-level "tasks" key."""
    if not isinstance(raw, dict):
        return []
    master = raw.get("master")
    tasks = master.get("tasks") if isinstance(master, dict) else None
    return tasks or raw.get("tasks") or []


def iter_tasks(tasks: Iterable[Task]) -> Iterator[Task]:
    """Depth-first walk over a task tree, parents before their subtasks."""
    for task in tasks:
        yield task
        if task.subtasks:
            yield from iter_tasks(task.subtasks)


class TaskStore:
    """Holds the last valid snapshot of tasks.json.

    The snapshot is replaced only by ``load_all``; every accessor returns deep
    copies so callers can never mutate the held state.
    """

    def __init__(self, tasks_path: Path):
        self.tasks_path = Path(tasks_path)
        self._tasks: List[Task] = []
        logger.info("TaskStore initialized with tasks path: %s", self.tasks_path)

    @classmethod
    def from_project_root(cls, project_root: Union[str, Path]) -> "TaskStore":
        return cls(Path(project_root) / ".taskmaster" / "tasks" / "tasks.json")

    def read_document(self) -> List[Task]:
        """Read, parse and validate the task document without touching the snapshot.

        Raises:
            StorageError: the file exists but cannot be read
            ValidationError: invalid JSON or any task failing the schema
        """
        try:
            content = self.tasks_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning(
                "tasks.json not found at %s. Starting with empty task list.", self.tasks_path
            )
            return []
        except OSError as exc:
            raise StorageError(f"Failed to read {self.tasks_path}: {exc}", path=self.tasks_path) from exc

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValidationError(
                "tasks.json is not valid JSON",
                [{"field": "<document>", "message": str(exc)}],
            ) from exc

        try:
            return _TASK_LIST.validate_python(_extract_tasks(raw))
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic("Task validation failed", exc) from exc

    async def load_all(self) -> List[Task]:
        """Reload the document; the previous snapshot survives any failure."""
        tasks = await asyncio.to_thread(self.read_document)
        self._tasks = tasks
        logger.info("Loaded %d tasks from %s", len(tasks), self.tasks_path)
        return self.get_tasks()

    @property
    def count(self) -> int:
        return len(self._tasks)

    def get_tasks(self) -> List[Task]:
        return [task.model_copy(deep=True) for task in self._tasks]

    def get(self, task_id: Union[int, str]) -> Optional[Task]:
        """Find a task anywhere in the tree; ids are compared as strings."""
        search_id = str(task_id)
        for task in iter_tasks(self._tasks):
            if str(task.id) == search_id:
                return task.model_copy(deep=True)
        return None

    def get_current_task(self) -> Optional[Task]:
        """First in-progress task (depth-first), otherwise the first pending one."""
        for status in (TaskStatus.IN_PROGRESS, TaskStatus.PENDING):
            for task in iter_tasks(self._tasks):
                if task.status is status:
                    return task.model_copy(deep=True)
        return None
