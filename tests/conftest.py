"""Shared fixtures: SQLite run store, scripted provider/validator, in-memory images."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import random
from datetime import datetime, timedelta
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from virtual_staging.core.engine import WorkflowDriver
from virtual_staging.core.errors import ImageStoreError, ProviderError
from virtual_staging.core.workflow import ImageRef, ValidationVerdict, Violation, ViolationTag
from virtual_staging.db.repository import RunRepository
from virtual_staging.db.session import Base
from virtual_staging.db import models  # noqa
from virtual_staging.providers.base import ImmediateResult, JobHandle, JobSucceeded, StageExecutor
from virtual_staging.providers.registry import ProviderRegistry
from virtual_staging.storage.images import ImageStore


class FakeExecutor(StageExecutor):
    """Records every dispatch; jobs succeed on first poll unless scripted otherwise."""
    name = "fake"

    def __init__(self, supports_webhooks=False, immediate=False, failing_calls=(), poll_script=None, prefix="job"):
        self.supports_webhooks = supports_webhooks
        self.immediate = immediate
        self.failing_calls = set(failing_calls)
        self.poll_script = poll_script
        self.prefix = prefix
        self.calls = []
        self.polls = []

    def dispatch(self, image, stage, instruction=None, callback_url=None, plan=None):
        self.calls.append({
            "image": image,
            "kind": stage.kind,
            "instruction": instruction,
            "callback_url": callback_url,
            "plan": plan,
        })
        n = len(self.calls)
        if n in self.failing_calls:
            raise ProviderError("provider returned 503")
        if self.immediate:
            return ImmediateResult(result_ref=f"https://provider.test/out-{n}.jpg")
        return JobHandle(handle=f"{self.prefix}-{n}")

    def poll_status(self, handle):
        self.polls.append(handle)
        if self.poll_script is not None:
            return self.poll_script(handle)
        return JobSucceeded(result_ref=f"https://provider.test/{handle}.jpg")


class Clock:
    """Settable stand-in for datetime.utcnow."""

    def __init__(self, start=None):
        self.now = start or datetime.utcnow()

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class ScriptedValidator:
    """Returns the scripted verdicts in order, then passes everything."""

    def __init__(self, script=()):
        self.script = list(script)
        self.calls = []

    def validate(self, before, after, stage):
        self.calls.append((before, after, stage.kind))
        tags = self.script.pop(0) if self.script else ()
        return ValidationVerdict(
            item_count_estimate=stage.min_items,
            detected_violations=tuple(Violation(ViolationTag(t), f"{t} detected") for t in tags),
        )


class MemoryImageStore(ImageStore):
    def __init__(self):
        self.blobs = {}

    def ingest(self, run_id, source, name):
        if not source.startswith(("http://", "https://", "data:")):
            raise ImageStoreError(f"Unsupported image source: {source}")
        return self.ingest_bytes(run_id, source.encode(), name)

    def ingest_bytes(self, run_id, data, name):
        url = f"mem://{run_id}/{name}"
        self.blobs[url] = data
        return ImageRef(url=url, width=1024, height=768)

    def load(self, ref):
        return self.blobs[ref.url]

    def discard(self, run_id):
        prefix = f"mem://{run_id}/"
        for url in [u for u in self.blobs if u.startswith(prefix)]:
            del self.blobs[url]


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def repo(session_factory):
    return RunRepository(session_factory)


@pytest.fixture
def images():
    return MemoryImageStore()


@pytest.fixture
def make_driver(repo, images):
    def _make(executor=None, validator=None, callback_url=None, poll_max_attempts=3, poll_interval=0,
              clock=None, providers=None):
        return WorkflowDriver(
            runs=repo,
            providers=providers or ProviderRegistry.single(executor or FakeExecutor()),
            validator=validator or ScriptedValidator(),
            images=images,
            rng=random.Random(7),
            callback_url=callback_url,
            poll_interval=poll_interval,
            poll_max_attempts=poll_max_attempts,
            sleep=lambda seconds: None,
            clock=clock or datetime.utcnow,
        )
    return _make
