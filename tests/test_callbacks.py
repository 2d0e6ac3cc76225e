"""Webhook bodies are parsed into tagged variants before any workflow logic."""
import pytest
from pydantic import ValidationError
from virtual_staging.schemas.callbacks import (
    CallbackFailed,
    CallbackPending,
    CallbackSucceeded,
    parse_provider_callback,
)


def test_success_with_url_object():
    cb = parse_provider_callback({
        "task_id": "abc",
        "status": "SUCCESS",
        "result": {"sample": {"url": "https://cdn.test/out.jpg"}},
    })
    assert cb == CallbackSucceeded(job_handle="abc", result_ref="https://cdn.test/out.jpg")


def test_ready_with_plain_sample_and_id_field():
    cb = parse_provider_callback({"id": "xyz", "status": "Ready", "result": {"sample": "https://cdn.test/o.jpg"}})
    assert isinstance(cb, CallbackSucceeded)
    assert cb.job_handle == "xyz"


def test_error_status_is_failed():
    cb = parse_provider_callback({"id": "xyz", "status": "Error"})
    assert isinstance(cb, CallbackFailed)
    assert "Error" in cb.reason


def test_success_without_image_is_failed():
    cb = parse_provider_callback({"id": "xyz", "status": "SUCCESS", "result": None})
    assert isinstance(cb, CallbackFailed)


def test_progress_update_is_pending():
    cb = parse_provider_callback({"id": "xyz", "status": "Pending", "progress": 0.4})
    assert cb == CallbackPending(job_handle="xyz", progress=0.4)


@pytest.mark.parametrize("body", [{"status": "Ready"}, {"id": "", "status": "Error"}, {}])
def test_missing_job_id_is_rejected(body):
    with pytest.raises(ValidationError):
        parse_provider_callback(body)


def test_instant_deco_body():
    cb = parse_provider_callback(
        {"request_id": "req-9", "status": "succeeded", "output": ["https://cdn.test/one.jpg"]},
        "instant-deco",
    )
    assert cb == CallbackSucceeded(job_handle="req-9", result_ref="https://cdn.test/one.jpg")


def test_instant_deco_failure_and_missing_id():
    cb = parse_provider_callback({"request_id": "req-9", "status": "failed"}, "instant-deco")
    assert isinstance(cb, CallbackFailed)

    with pytest.raises(ValidationError):
        parse_provider_callback({"task_id": "abc", "status": "succeeded", "output": "x"}, "instant-deco")
