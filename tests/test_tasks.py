"""Celery task bodies called directly, with the driver patched in and .delay mocked."""
from unittest.mock import patch
from conftest import Clock, FakeExecutor
from virtual_staging.core.workflow import RunStatus
from virtual_staging.providers.base import JobPending
from virtual_staging.tasks import runs as tasks

IMAGE = "https://uploads.test/empty-room.jpg"


def test_sweep_times_out_a_callback_run_without_webhook(make_driver):
    clock = Clock()
    executor = FakeExecutor(supports_webhooks=True, poll_script=lambda handle: JobPending())
    driver = make_driver(executor=executor, callback_url="https://staging.test/hook",
                         poll_interval=10, poll_max_attempts=3, clock=clock)
    run = driver.create_run(IMAGE, "living_room", "modern")
    driver.start_run(run.id)
    clock.advance(60)

    with patch.object(tasks, "get_driver", return_value=driver), \
            patch.object(tasks, "start_staging_run") as start, \
            patch.object(tasks, "drive_staging_run") as drive:
        first = tasks.sweep_staging_runs()
        clock.advance(60)
        second = tasks.sweep_staging_runs()

    assert first == {"unstarted": 0, "orphaned": 0, "expired": 1}
    assert second["expired"] == 1
    assert driver.get_run_status(run.id).status is RunStatus.FAILED
    start.delay.assert_not_called()
    drive.delay.assert_not_called()


def test_sweep_restarts_stalled_runs(make_driver):
    clock = Clock()
    driver = make_driver(poll_interval=10, clock=clock)
    unstarted = driver.create_run(IMAGE, "bedroom", "modern")
    orphaned = driver.create_run(IMAGE, "kitchen", "modern")
    driver.start_run(orphaned.id)
    clock.advance(600)

    with patch.object(tasks, "get_driver", return_value=driver), \
            patch.object(tasks, "start_staging_run") as start, \
            patch.object(tasks, "drive_staging_run") as drive:
        counts = tasks.sweep_staging_runs()

    assert counts == {"unstarted": 1, "orphaned": 1, "expired": 0}
    start.delay.assert_called_once_with(unstarted.id)
    drive.delay.assert_called_once_with(orphaned.id)


def test_sweep_leaves_polled_runs_alone(make_driver, repo):
    clock = Clock()
    driver = make_driver(poll_interval=10, clock=clock)
    run = driver.create_run(IMAGE, "kitchen", "modern")
    driver.start_run(run.id)
    clock.advance(600)
    repo.mark_polled(run.id, clock())

    with patch.object(tasks, "get_driver", return_value=driver), \
            patch.object(tasks, "drive_staging_run") as drive:
        counts = tasks.sweep_staging_runs()

    assert counts["orphaned"] == 0
    drive.delay.assert_not_called()

