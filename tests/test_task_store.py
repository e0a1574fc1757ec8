import asyncio

import pytest

from conftest import write_tasks
from src.tracker.exceptions import StorageError, ValidationError
from src.tracker.models import TaskStatus
from src.tracker.task_store import TaskStore, iter_tasks


def load(store):
    return asyncio.run(store.load_all())


def test_load_all_reads_master_tasks(tasks_path):
    store = TaskStore(tasks_path)
    tasks = load(store)

    assert [task.id for task in tasks] == [1, 2, 3]
    assert store.count == 3
    # extra keys such as "details" are ignored
    assert "details" not in tasks[0].to_dict()


def test_load_all_falls_back_to_top_level_tasks(tmp_path):
    path = tmp_path / "tasks.json"
    write_tasks(path, {"tasks": [{"id": 7, "title": "t", "description": "d", "status": "done"}]})

    tasks = load(TaskStore(path))

    assert [task.id for task in tasks] == [7]


def test_missing_document_loads_empty(tmp_path):
    store = TaskStore(tmp_path / "nope" / "tasks.json")
    assert load(store) == []


def test_recursive_lookup(tasks_path):
    store = TaskStore(tasks_path)
    load(store)

    nested = store.get("3.2.1")
    assert nested is not None
    assert nested.title == "Issue form"
    assert store.get(2).title == "Implement authentication"
    assert store.get("2").title == "Implement authentication"
    assert store.get("999") is None


def test_current_task_prefers_in_progress_depth_first(tasks_path):
    store = TaskStore(tasks_path)
    load(store)

    current = store.get_current_task()
    assert current.id == "3.2.1"
    assert current.status is TaskStatus.IN_PROGRESS


def test_current_task_falls_back_to_pending(tmp_path):
    path = tmp_path / "tasks.json"
    write_tasks(
        path,
        {
            "master": {
                "tasks": [
                    {"id": 1, "title": "a", "description": "", "status": "done"},
                    {"id": 2, "title": "b", "description": "", "status": "pending"},
                    {"id": 3, "title": "c", "description": "", "status": "pending"},
                ]
            }
        },
    )
    store = TaskStore(path)
    load(store)

    assert store.get_current_task().id == 2


def test_current_task_none_when_everything_done(tmp_path):
    path = tmp_path / "tasks.json"
    write_tasks(path, {"master": {"tasks": [{"id": 1, "title": "a", "description": "", "status": "done"}]}})
    store = TaskStore(path)
    load(store)

    assert store.get_current_task() is None


def test_snapshots_are_copies(tasks_path):
    store = TaskStore(tasks_path)
    tasks = load(store)

    tasks[2].subtasks[0].title = "mutated"
    store.get("3").subtasks.clear()

    assert store.get("3.1").title == "Task list"
    assert len(store.get("3").subtasks) == 2


def test_invalid_document_keeps_previous_snapshot(tasks_path):
    store = TaskStore(tasks_path)
    load(store)

    write_tasks(tasks_path, {"master": {"tasks": [{"id": 1, "title": "no status", "description": ""}]}})
    with pytest.raises(ValidationError) as excinfo:
        load(store)
    assert any(field.endswith("status") for field in excinfo.value.fields)
    assert store.count == 3

    write_tasks(tasks_path, "{not json")
    with pytest.raises(ValidationError) as excinfo:
        load(store)
    assert excinfo.value.fields == ["<document>"]
    assert store.get("3.2.1") is not None


def test_unreadable_document_is_storage_error(tmp_path):
    # a directory where the file should be
    path = tmp_path / "tasks.json"
    path.mkdir()
    with pytest.raises(StorageError):
        load(TaskStore(path))


def test_iter_tasks_is_depth_first(tasks_path):
    store = TaskStore(tasks_path)
    tasks = load(store)

    assert [str(task.id) for task in iter_tasks(tasks)] == ["1", "2", "3", "3.1", "3.2", "3.2.1"]
