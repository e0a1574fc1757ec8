"""Deterministic task/issue fixtures for tests and performance checks."""

from __future__ import annotations

import random
import statistics
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List

from .models import Issue, IssueSeverity, IssueStatus, Task, TaskPriority, TaskStatus

SAMPLE_TITLES = [
    "Implement user authentication",
    "Fix database connection issue",
    "Add search functionality",
    "Update documentation",
    "Refactor API endpoints",
    "Optimize performance",
    "Add unit tests",
    "Fix memory leak",
    "Implement caching layer",
    "Update dependencies",
]

SAMPLE_DESCRIPTIONS = [
    "Need to implement JWT-based authentication system",
    "Database connection drops after 5 minutes of inactivity",
    "Users should be able to search across all content",
    "Documentation is outdated and needs refresh",
    "Current API structure is not RESTful",
    "Application is slow on large datasets",
    "Test coverage is below 50%",
    "Memory usage grows over time",
    "Add Redis caching for frequently accessed data",
    "Several packages have security vulnerabilities",
]


def generate_tasks(count: int, seed: int = 42) -> List[Task]:
    rng = random.Random(seed)
    tasks: List[Task] = []
    for index in range(count):
        task_id = str(index + 1)
        tasks.append(
            Task(
                id=task_id,
                title=f"{rng.choice(SAMPLE_TITLES)} (Task {task_id})",
                description=rng.choice(SAMPLE_DESCRIPTIONS),
                status=rng.choice(list(TaskStatus)),
                priority=rng.choice(list(TaskPriority)),
                dependencies=[],
                subtasks=[],
            )
        )
    return tasks


def generate_issues(count: int, seed: int = 42) -> List[Issue]:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    issues: List[Issue] = []
    for index in range(count):
        issue_id = f"issue-{index + 1}"
        severity = rng.choice(list(IssueSeverity))
        related = str(rng.randint(1, count)) if rng.random() > 0.5 else None
        issues.append(
            Issue(
                id=issue_id,
                title=f"{rng.choice(SAMPLE_TITLES)} (Issue {issue_id})",
                description=rng.choice(SAMPLE_DESCRIPTIONS),
                severity=severity,
                status=rng.choice(list(IssueStatus)),
                tags=["test", "generated", severity.value],
                attachments=[],
                related_task_id=related,
                created_at=now,
                updated_at=now,
            )
        )
    return issues


def benchmark(fn: Callable[[], object], iterations: int = 10) -> Dict[str, float]:
    """Time ``fn`` (after one warm-up call) and return avg/min/max/median/p95 in ms."""
    fn()
    durations: List[float] = []
    for _ in range(iterations):
        start = time.perf_counter()
        fn()
        durations.append((time.perf_counter() - start) * 1000)

    ordered = sorted(durations)
    return {
        "avg": statistics.fmean(durations),
        "min": ordered[0],
        "max": ordered[-1],
        "median": ordered[len(ordered) // 2],
        "p95": ordered[int(len(ordered) * 0.95)] if len(ordered) > 1 else ordered[0],
    }
