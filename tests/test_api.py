"""Test FastAPI endpoints."""

import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tasklane.events import EventBus
from tasklane.runtime import Runtime
from tasklane.server import create_app

PLAN = {
    "intent": "calculate",
    "steps": [
        {"id": "step_1", "tool": "calculate", "params": {"expression": "6 * 7"}},
        {"id": "step_2", "tool": "check_completion", "params": {"expected_outcome": "answer", "step_id": "step_1"},
         "depends_on": ["step_1"]},
    ],
}


@pytest.fixture
def client():
    runtime = Runtime(event_bus=EventBus(), use_default_provider=False, concurrency=1)
    with TestClient(create_app(runtime)) as c:
        yield c


def _create(client, **overrides):
    body = {"chat_id": "chat-1", "user_id": "user-1", "intent_text": "what is 6 times 7", "plan": PLAN,
            "auto_start": False, **overrides}
    return client.post("/tasks", json=body)


def _wait_for_status(client, task_id, *statuses, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        task = client.get(f"/tasks/{task_id}").json()
        if task["status"] in statuses:
            return task
        time.sleep(0.02)
    raise AssertionError(f"task {task_id} never reached {statuses}")


def test_create_and_get_task(client):
    resp = _create(client)
    assert resp.status_code == 201
    task = resp.json()
    assert task["status"] == "PENDING"
    assert task["total_steps"] == 2
    assert task["title"] == "what is 6 times 7"

    fetched = client.get(f"/tasks/{task['id']}").json()
    assert fetched["id"] == task["id"]
    assert [t["id"] for t in client.get("/chats/chat-1/tasks").json()] == [task["id"]]
    assert client.get("/chats/other/tasks").json() == []


def test_task_runs_to_completion(client):
    task = _create(client, auto_start=True).json()
    assert task["status"] == "RUNNING"

    done = _wait_for_status(client, task["id"], "SUCCEEDED", "FAILED")
    assert done["status"] == "SUCCEEDED"
    assert done["result"]["results"][0]["result"]["data"]["result"] == 42
    assert done["current_step"] == 2

    events = client.get(f"/tasks/{task['id']}/events").json()
    assert events[-1]["type"] == "task.completed"
    logs = client.get(f"/tasks/{task['id']}/logs").json()
    assert logs[-1]["message"] == "Task completed successfully"


def test_generated_plan_from_classification(client):
    resp = client.post("/tasks", json={
        "chat_id": "c", "user_id": "u", "intent_text": "weather in Oslo",
        "classification": {"intent": "get_weather", "params": {"location": "Oslo"}},
        "auto_start": False,
    })
    assert resp.status_code == 201
    assert resp.json()["plan"]["steps"][0]["tool_name"] == "get_weather"


def test_lifecycle_endpoints(client):
    task_id = _create(client).json()["id"]

    assert client.post(f"/tasks/{task_id}/cancel").json()["status"] == "CANCELLED"

    resp = client.post(f"/tasks/{task_id}/resume")
    assert resp.status_code == 409
    assert resp.json()["current"] == "CANCELLED"
    assert resp.json()["valid_next"] == []


def test_pause_pending_is_conflict(client):
    task_id = _create(client).json()["id"]
    resp = client.post(f"/tasks/{task_id}/pause")
    assert resp.status_code == 409
    assert resp.json()["valid_next"] == ["RUNNING", "CANCELLED"]


def test_unknown_task_is_404(client):
    assert client.get("/tasks/nope").status_code == 404
    assert client.post("/tasks/nope/cancel").status_code == 404
    assert client.get("/tasks/nope/logs").status_code == 404
    assert client.get("/tasks/nope/events").status_code == 404


def test_invalid_plan_is_422(client):
    plan = {"intent": "calculate", "steps": [{"id": "a", "tool": "teleport", "params": {}}]}
    resp = _create(client, plan=plan)
    assert resp.status_code == 422
    assert resp.json()["validation"]["errors"][0]["code"] == "INVALID_TOOL"


def test_missing_plan_and_classification_is_400(client):
    resp = client.post("/tasks", json={"chat_id": "c", "user_id": "u", "intent_text": "?"})
    assert resp.status_code == 400


def test_validate_plan_endpoint(client):
    ok = client.post("/plans/validate", json={"plan": PLAN}).json()
    assert ok["valid"] is True

    cyclic = {
        "intent": "browser_action",
        "steps": [
            {"id": "a", "tool": "take_screenshot", "depends_on": ["b"]},
            {"id": "b", "tool": "take_screenshot", "depends_on": ["a"]},
        ],
    }
    result = client.post("/plans/validate", json={"plan": cyclic}).json()
    assert not result["valid"]
    assert "CIRCULAR_DEPENDENCY" in {e["code"] for e in result["errors"]}

    assert client.post("/plans/validate", json={"plan": {"steps": []}}).status_code == 422


def test_tools_endpoint(client):
    tools = {t["name"]: t for t in client.get("/tools").json()}
    assert len(tools) == 19
    assert tools["calculate"]["available"] is True
    assert tools["book_flight"]["available"] is False
    assert tools["book_flight"]["requires_auth"] is True


def test_event_stream_rejects_unknown_task(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/tasks/nope/events") as ws:
            ws.receive_json()
    assert exc_info.value.code == 4004
