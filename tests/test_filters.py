import time

from src.search.filters import apply_filters, normalize_filters
from src.search.pipeline import SearchFilterPipeline, task_pipeline
from src.search.engine import TASK_SEARCH_OPTIONS
from src.tracker.models import TaskPriority, TaskStatus
from src.tracker.sample_data import benchmark, generate_tasks

FOUR_ITEMS = [
    {"id": 1, "status": "pending", "priority": "high"},
    {"id": 2, "status": "in-progress", "priority": "high"},
    {"id": 3, "status": "pending", "priority": "low"},
    {"id": 4, "status": "done", "priority": "high"},
]


def test_no_active_filter_returns_the_input_object():
    assert apply_filters(FOUR_ITEMS, {}) is FOUR_ITEMS
    assert apply_filters(FOUR_ITEMS, None) is FOUR_ITEMS
    assert apply_filters(FOUR_ITEMS, {"status": [], "priority": None}) is FOUR_ITEMS


def test_and_across_categories_or_within():
    result = apply_filters(FOUR_ITEMS, {"status": ["pending", "in-progress"], "priority": ["high"]})
    assert [item["id"] for item in result] == [1, 2]


def test_enum_values_and_models():
    tasks = generate_tasks(50)
    result = apply_filters(tasks, {"status": [TaskStatus.DONE]})
    assert result
    assert all(task.status is TaskStatus.DONE for task in result)


def test_list_valued_fields_match_any_element():
    issues = [
        {"id": "a", "tags": ["ui", "mobile"]},
        {"id": "b", "tags": ["backend"]},
        {"id": "c", "tags": []},
    ]
    assert [issue["id"] for issue in apply_filters(issues, {"tags": ["mobile", "cli"]})] == ["a"]


def test_normalize_filters_is_order_independent():
    assert normalize_filters({"status": ["done", "pending"], "priority": []}) == normalize_filters(
        {"status": ["pending", "done"]}
    )


def test_pipeline_memoizes_each_stage():
    pipeline = SearchFilterPipeline(TASK_SEARCH_OPTIONS)
    items = list(FOUR_ITEMS)

    assert pipeline.run(items) is items
    pipeline.run(items, "", {})
    assert (pipeline.search_runs, pipeline.filter_runs) == (1, 1)

    filtered = pipeline.run(items, "", {"status": ["pending"]})
    assert [item["id"] for item in filtered] == [1, 3]
    assert (pipeline.search_runs, pipeline.filter_runs) == (1, 2)

    # an equal filter spec built from a fresh dict hits the memo
    assert pipeline.run(items, "", {"status": ["pending"]}) is filtered
    assert (pipeline.search_runs, pipeline.filter_runs) == (1, 2)

    pipeline.run(list(items), "", {"status": ["pending"]})
    assert (pipeline.search_runs, pipeline.filter_runs) == (2, 3)


def test_pipeline_searches_before_filtering():
    tasks = [
        {"id": 1, "title": "Fix memory leak", "description": "", "status": "pending", "priority": "high"},
        {"id": 2, "title": "Fix memory leak in cache", "description": "", "status": "done", "priority": "high"},
        {"id": 3, "title": "Write docs", "description": "", "status": "pending", "priority": "high"},
    ]
    result = task_pipeline().run(tasks, "memory", {"status": ["pending"]})
    assert [task["id"] for task in result] == [1]


def test_thousand_tasks_end_to_end_filter():
    tasks = generate_tasks(1000)
    pipeline = task_pipeline()
    spec = {"status": ["pending", "in-progress"], "priority": ["high"]}

    start = time.perf_counter()
    result = pipeline.run(tasks, "", spec)
    elapsed_ms = (time.perf_counter() - start) * 1000

    assert 0 < len(result) < len(tasks)
    assert all(task.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS) for task in result)
    assert all(task.priority is TaskPriority.HIGH for task in result)
    assert elapsed_ms < 100

    timings = benchmark(lambda: apply_filters(tasks, spec), iterations=10)
    assert timings["median"] < 100
