"""HTTP routes with the driver dependency overridden and Celery tasks patched."""
import base64
from unittest.mock import patch
import pytest
from fastapi.testclient import TestClient
from conftest import FakeExecutor
from virtual_staging.core.config import settings
from virtual_staging.core.factory import get_driver
from virtual_staging.main import app


@pytest.fixture
def driver(make_driver):
    return make_driver(executor=FakeExecutor(supports_webhooks=True), callback_url="https://staging.test/v1/webhooks/fake")


@pytest.fixture
def client(driver):
    app.dependency_overrides[get_driver] = lambda: driver
    # No context manager: the lifespan (database wait + migrations) is not needed here.
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_create_run_enqueues_start(client):
    with patch("virtual_staging.api.routes_runs.start_staging_run") as task:
        r = client.post("/v1/runs", json={
            "image_url": "https://uploads.test/room.jpg",
            "room_category": "living_room",
            "style_profile": "modern",
        })

    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "pending"
    assert data["stage_count"] == 4
    assert data["current_stage_index"] == -1
    task.delay.assert_called_once_with(data["id"])


def test_create_run_from_base64_with_selection(client):
    encoded = base64.b64encode(b"raw image bytes").decode()
    with patch("virtual_staging.api.routes_runs.start_staging_run"):
        r = client.post("/v1/runs", json={
            "image_base64": encoded,
            "room_category": "bedroom",
            "style_profile": "coastal",
            "stage_selection": {"window_treatment": False},
        })

    assert r.status_code == 201
    assert r.json()["stage_count"] == 3


def test_get_run_reflects_progress(client, driver):
    run = driver.create_run("https://uploads.test/room.jpg", "living_room", "modern")
    driver.start_run(run.id)
    driver.on_provider_callback("job-1", "succeeded", "https://provider.test/a.jpg")

    r = client.get(f"/v1/runs/{run.id}")

    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "running"
    assert data["current_stage_kind"] == "complementary"
    assert len(data["stage_results"]) == 1
    assert data["stage_results"][0]["succeeded"] is True
    assert data["stage_results"][0]["result_image"]["width"] == 1024


def test_get_unknown_run(client):
    assert client.get("/v1/runs/does-not-exist").status_code == 404


@pytest.mark.parametrize("payload", [
    {"room_category": "living_room", "style_profile": "modern"},
    {"image_url": "https://u.test/a.jpg", "image_base64": "AAAA", "room_category": "living_room", "style_profile": "modern"},
    {"image_url": "https://u.test/a.jpg", "room_category": "garage", "style_profile": "modern"},
])
def test_invalid_requests_are_rejected(client, payload):
    with patch("virtual_staging.api.routes_runs.start_staging_run") as task:
        r = client.post("/v1/runs", json=payload)
    assert r.status_code == 422
    task.delay.assert_not_called()


def test_empty_selection_is_bad_request(client):
    with patch("virtual_staging.api.routes_runs.start_staging_run") as task:
        r = client.post("/v1/runs", json={
            "image_url": "https://u.test/a.jpg",
            "room_category": "living_room",
            "style_profile": "modern",
            "stage_selection": {
                "primary_furniture": False, "complementary": False, "window_treatment": False, "wall_decor": False,
            },
        })
    assert r.status_code == 400
    assert r.json()["detail"]["error_code"] == "INVALID_INPUT"
    task.delay.assert_not_called()


def test_webhook_enqueues_transition(client):
    with patch("virtual_staging.api.routes_webhooks.process_provider_callback") as task:
        r = client.post("/v1/webhooks/fake", json={
            "task_id": "job-1", "status": "SUCCESS", "result": {"sample": "https://cdn.test/out.jpg"},
        })

    assert r.status_code == 202
    assert r.json() == {"accepted": True, "job_handle": "job-1", "kind": "succeeded"}
    task.delay.assert_called_once_with("job-1", "succeeded", result_ref="https://cdn.test/out.jpg")


def test_webhook_failure_and_progress(client):
    with patch("virtual_staging.api.routes_webhooks.process_provider_callback") as task:
        failed = client.post("/v1/webhooks/fake", json={"id": "job-1", "status": "Error"})
        progress = client.post("/v1/webhooks/fake", json={"id": "job-1", "status": "Pending", "progress": 0.3})

    assert failed.status_code == 202 and progress.status_code == 202
    assert progress.json()["kind"] == "pending"
    task.delay.assert_called_once_with("job-1", "failed", reason="Provider reported status Error")


def test_webhook_rejects_unknown_provider_and_bad_body(client):
    with patch("virtual_staging.api.routes_webhooks.process_provider_callback") as task:
        assert client.post("/v1/webhooks/nobody", json={"id": "x", "status": "Ready"}).status_code == 404
        assert client.post("/v1/webhooks/fake", json={"status": "Ready"}).status_code == 422
    task.delay.assert_not_called()


def test_webhook_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "provider_webhook_secret", "s3cret")
    body = {"id": "job-1", "status": "Error"}
    with patch("virtual_staging.api.routes_webhooks.process_provider_callback") as task:
        assert client.post("/v1/webhooks/fake", json=body).status_code == 401
        assert client.post("/v1/webhooks/fake", json=body, headers={"X-Webhook-Secret": "nope"}).status_code == 401
        assert client.post("/v1/webhooks/fake", json=body, headers={"X-Webhook-Secret": "s3cret"}).status_code == 202
        assert client.post("/v1/webhooks/fake?secret=s3cret", json=body).status_code == 202
        assert client.post("/v1/webhooks/fake?secret=nope", json=body).status_code == 401
    assert task.delay.call_count == 2


def test_instant_deco_webhook_body(make_driver):
    deco = FakeExecutor(supports_webhooks=True)
    deco.name = "instant-deco"
    driver = make_driver(executor=deco, callback_url="https://staging.test/v1/webhooks/{provider}")
    app.dependency_overrides[get_driver] = lambda: driver
    try:
        with patch("virtual_staging.api.routes_webhooks.process_provider_callback") as task:
            r = TestClient(app).post("/v1/webhooks/instant-deco", json={
                "request_id": "req-1", "status": "succeeded", "output": ["https://cdn.test/a.jpg"],
            })
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 202
    task.delay.assert_called_once_with("req-1", "succeeded", result_ref="https://cdn.test/a.jpg")
