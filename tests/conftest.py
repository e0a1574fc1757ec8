"""Shared fixtures: a TaskMaster project tree under tmp_path."""

import json
from pathlib import Path

import pytest

from src.taskboard.config import Config, WatcherConfig

TASKS_DOCUMENT = {
    "master": {
        "tasks": [
            {
                "id": 1,
                "title": "Set up project",
                "description": "Create the repository layout",
                "status": "done",
                "priority": "high",
                "dependencies": [],
                "details": "ignored extra key",
            },
            {
                "id": 2,
                "title": "Implement authentication",
                "description": "JWT based login",
                "status": "pending",
                "priority": "high",
                "dependencies": [1],
            },
            {
                "id": 3,
                "title": "Build dashboard",
                "description": "Task and issue views",
                "status": "pending",
                "priority": "medium",
                "dependencies": [1],
                "subtasks": [
                    {
                        "id": "3.1",
                        "title": "Task list",
                        "description": "Render tasks",
                        "status": "done",
                    },
                    {
                        "id": "3.2",
                        "title": "Issue tracker",
                        "description": "Render issues",
                        "status": "pending",
                        "subtasks": [
                            {
                                "id": "3.2.1",
                                "title": "Issue form",
                                "description": "Create and edit issues",
                                "status": "in-progress",
                            }
                        ],
                    },
                ],
            },
        ]
    }
}


def write_tasks(path: Path, document) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(document, str):
        path.write_text(document, encoding="utf-8")
    else:
        path.write_text(json.dumps(document), encoding="utf-8")


@pytest.fixture
def project_root(tmp_path):
    write_tasks(tmp_path / ".taskmaster" / "tasks" / "tasks.json", TASKS_DOCUMENT)
    return tmp_path


@pytest.fixture
def tasks_path(project_root):
    return project_root / ".taskmaster" / "tasks" / "tasks.json"


@pytest.fixture
def app_config(project_root):
    return Config(
        project_root=str(project_root),
        watcher=WatcherConfig(
            debounce_seconds=0.05,
            stability_threshold_seconds=0.01,
            poll_interval_seconds=0.005,
            max_stability_wait_seconds=0.5,
        ),
        log_file="",
    )


class FakeObserver:
    """Stands in for watchdog's Observer; events are injected by the test."""

    instances = []

    def __init__(self):
        self.handler = None
        self.path = None
        self.started = False
        self.stopped = False
        FakeObserver.instances.append(self)

    def schedule(self, handler, path, recursive=False):
        self.handler = handler
        self.path = path

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


@pytest.fixture
def fake_observer():
    FakeObserver.instances.clear()
    return FakeObserver
