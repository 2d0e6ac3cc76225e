"""Per-run serialization of concurrent transitions against a file-backed SQLite store."""
import random
import threading
from concurrent.futures import ThreadPoolExecutor
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import sessionmaker
from conftest import FakeExecutor, MemoryImageStore, ScriptedValidator
from virtual_staging.core.engine import WorkflowDriver
from virtual_staging.core.workflow import RunStatus
from virtual_staging.db import models  # noqa
from virtual_staging.db.repository import RunRepository, select_run_for_update
from virtual_staging.db.session import Base
from virtual_staging.providers.registry import ProviderRegistry

IMAGE = "https://uploads.test/empty-room.jpg"


@pytest.fixture
def file_repo(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'runs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _no_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # SQLite has no row locks; its write lock, taken at BEGIN, stands in for FOR UPDATE.
    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    yield RunRepository(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))
    engine.dispose()


def test_lock_statement_is_select_for_update():
    sql = str(select_run_for_update("run-1").compile(dialect=postgresql.dialect()))

    assert "FROM staging_runs" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


def test_parallel_duplicate_callbacks_advance_once(file_repo):
    executor = FakeExecutor(supports_webhooks=True)
    validator = ScriptedValidator()
    driver = WorkflowDriver(
        runs=file_repo,
        providers=ProviderRegistry.single(executor),
        validator=validator,
        images=MemoryImageStore(),
        rng=random.Random(7),
        callback_url="https://staging.test/hook",
        sleep=lambda seconds: None,
    )
    run = driver.create_run(IMAGE, "living_room", "modern")
    driver.start_run(run.id)
    barrier = threading.Barrier(2)

    def deliver():
        barrier.wait()
        return driver.on_provider_callback("job-1", "succeeded", "https://provider.test/a.jpg")

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(deliver) for _ in range(2)]
        outcomes = [f.result(timeout=60) for f in futures]

    assert sorted(outcomes) == [False, True]
    snap = driver.get_run_status(run.id)
    assert snap.status is RunStatus.RUNNING
    assert snap.current_stage_index == 1
    assert len(snap.stage_results) == 1
    assert len(validator.calls) == 1
    assert len(executor.calls) == 2
