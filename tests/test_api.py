import pytest
from fastapi.testclient import TestClient
from watchdog.events import FileModifiedEvent

from conftest import FakeObserver, write_tasks
from src.server.app import create_app
from src.server.context import AppContext


@pytest.fixture
def context(app_config, fake_observer):
    return AppContext(app_config, observer_factory=fake_observer)


@pytest.fixture
def client(context):
    with TestClient(create_app(context=context)) as test_client:
        yield test_client


def issue_payload(**overrides):
    payload = {
        "title": "Login fails",
        "description": "500 on submit",
        "severity": "high",
        "status": "open",
        "relatedTaskId": "2",
        "tags": ["auth"],
    }
    payload.update(overrides)
    return payload


def test_task_endpoints(client):
    resp = client.get("/api/tasks")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [task["id"] for task in body["tasks"]] == [1, 2, 3]
    assert body["tasks"][2]["subtasks"][1]["subtasks"][0]["id"] == "3.2.1"

    resp = client.get("/api/tasks/current")
    assert resp.status_code == 200
    assert resp.json()["task"]["id"] == "3.2.1"

    resp = client.get("/api/tasks/3.2.1")
    assert resp.status_code == 200
    assert resp.json()["task"]["title"] == "Issue form"

    resp = client.get("/api/tasks/999")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Task 999 not found"}


def test_current_task_404_when_nothing_is_open(app_config, fake_observer):
    write_tasks(app_config.tasks_path, {"master": {"tasks": [{"id": 1, "title": "a", "description": "", "status": "done"}]}})
    context = AppContext(app_config, observer_factory=fake_observer)
    with TestClient(create_app(context=context)) as client:
        resp = client.get("/api/tasks/current")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "No current task found"}


def test_issue_api_crud_flow(client):
    resp = client.get("/api/issues")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "issues": []}

    resp = client.post("/api/issues", json=issue_payload())
    assert resp.status_code == 201
    issue = resp.json()["issue"]
    assert issue["id"].startswith("issue-")
    assert issue["createdAt"] == issue["updatedAt"]
    assert issue["relatedTaskId"] == "2"
    issue_id = issue["id"]

    client.post("/api/issues", json=issue_payload(relatedTaskId="3", title="Other"))

    resp = client.get("/api/issues", params={"taskId": "2"})
    assert [item["id"] for item in resp.json()["issues"]] == [issue_id]

    resp = client.get(f"/api/issues/{issue_id}")
    assert resp.status_code == 200
    assert resp.json()["issue"]["title"] == "Login fails"

    resp = client.put(f"/api/issues/{issue_id}", json={"status": "resolved"})
    assert resp.status_code == 200
    updated = resp.json()["issue"]
    assert updated["status"] == "resolved"
    assert updated["createdAt"] == issue["createdAt"]
    assert updated["updatedAt"] != issue["updatedAt"]

    resp = client.delete(f"/api/issues/{issue_id}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Issue deleted successfully"}

    resp = client.get(f"/api/issues/{issue_id}")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_issue_validation_errors(client):
    resp = client.post("/api/issues", json=issue_payload(severity="apocalyptic"))
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Invalid issue data"
    assert [error["field"] for error in body["errors"]] == ["severity"]

    resp = client.post("/api/issues", json=["not", "an", "object"])
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    created = client.post("/api/issues", json=issue_payload()).json()["issue"]
    resp = client.put(f"/api/issues/{created['id']}", json={"status": "closed"})
    assert resp.status_code == 400


def test_issue_not_found_errors(client):
    resp = client.put("/api/issues/issue-0-zzzzz", json={"status": "resolved"})
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Issue issue-0-zzzzz not found"}

    resp = client.delete("/api/issues/issue-0-zzzzz")
    assert resp.status_code == 404


def test_issue_attachment_upload(client, app_config):
    resp = client.post(
        "/api/issues/upload",
        files=[
            ("attachments", ("trace.txt", b"hello", "text/plain")),
            ("attachments", ("screen.png", b"\x89PNG....", "image/png")),
        ],
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [f["originalName"] for f in body["files"]] == ["trace.txt", "screen.png"]
    assert [f["size"] for f in body["files"]] == [5, 8]
    stored = app_config.attachments_dir / body["files"][0]["name"]
    assert stored.name.endswith("-trace.txt")
    assert stored.read_bytes() == b"hello"

    # Attachments live beside the issue files without showing up as issues.
    assert client.get("/api/issues").json()["issues"] == []


def test_issue_attachment_upload_rejections(client, app_config):
    resp = client.post("/api/issues/upload")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "No files uploaded"}

    too_many = [("attachments", (f"note{i}.md", b"#", "text/markdown")) for i in range(6)]
    resp = client.post("/api/issues/upload", files=too_many)
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = client.post(
        "/api/issues/upload", files=[("attachments", ("run.sh", b"rm -rf /", "text/x-shellscript"))]
    )
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Invalid file type")

    assert not app_config.attachments_dir.exists()


def test_system_endpoints(client):
    client.post("/api/issues", json=issue_payload(severity="critical"))

    resp = client.get("/health")
    assert resp.json()["status"] == "ok"

    resp = client.get("/api/system/health")
    body = resp.json()
    assert body["status"]["api"] == "healthy"
    assert body["status"]["tasks"] == "active"
    assert body["status"]["watcher"] == "watching"

    stats = client.get("/api/system/stats").json()["stats"]
    assert stats == {
        "totalTasks": 3,
        "pendingTasks": 2,
        "inProgressTasks": 0,
        "completedTasks": 1,
        "totalIssues": 1,
        "openIssues": 1,
        "criticalIssues": 1,
    }

    activity = client.get("/api/system/activity").json()["activity"]
    assert [item["id"] for item in activity[:3]] == ["task-3", "task-2", "task-1"]
    assert activity[3]["type"] == "issue"

    metrics = client.get("/api/system/performance").json()["metrics"]
    assert metrics["requestCount"] >= 5
    assert metrics["errorCount"] == 0


def test_unexpected_errors_are_counted_in_performance_metrics(context, monkeypatch):
    def broken_list():
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(context.issues, "list", broken_list)
    with TestClient(create_app(context=context), raise_server_exceptions=False) as client:
        resp = client.get("/api/issues")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Internal Server Error"}

        metrics = client.get("/api/system/performance").json()["metrics"]
    assert metrics["requestCount"] == 1
    assert metrics["errorCount"] == 1


def test_websocket_handshake_and_ping(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"type": "connected", "message": "WebSocket connected"}
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_websocket_accepts_binary_frames(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_bytes(b'{"type": "ping"}')
        assert ws.receive_json() == {"type": "pong"}

        ws.send_bytes(b"not json")
        ws.send_text("still not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_task_file_change_is_broadcast(client, context, tasks_path):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()

        write_tasks(tasks_path, {"master": {"tasks": [{"id": 1, "title": "a", "description": "", "status": "pending"}]}})
        client.portal.call(context.watcher.notify_change)
        message = ws.receive_json()
        assert message["type"] == "tasks:update"
        assert message["data"] == {"tasksCount": 1}

        write_tasks(tasks_path, "{ not json")
        FakeObserver.instances[0].handler.dispatch(FileModifiedEvent(str(tasks_path)))
        message = ws.receive_json()
        assert message["type"] == "tasks:error"
        assert "not valid JSON" in message["error"]

    # the last good snapshot is still served
    assert [task["id"] for task in client.get("/api/tasks").json()["tasks"]] == [1]
