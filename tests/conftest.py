"""Shared fixtures: an event-recording sink, a tracer and a store on tmp_path."""

from pathlib import Path

import pytest

from taskkeeper.infra.storage.task_store import TaskStore
from taskkeeper.observability.outcomes import OutcomeEvent
from taskkeeper.observability.tracer import OperationTracer
from taskkeeper.services.task_service import TaskService


class RecordingSink:
    """Collects outcome events instead of logging them."""

    def __init__(self) -> None:
        self.events: list[OutcomeEvent] = []

    def __call__(self, event: OutcomeEvent) -> None:
        self.events.append(event)

    def for_operation(self, name: str) -> list[OutcomeEvent]:
        return [e for e in self.events if e.operation == name]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def tracer(sink: RecordingSink) -> OperationTracer:
    return OperationTracer(sink)


@pytest.fixture
def tasks_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tasks.json"


@pytest.fixture
def store(tasks_path: Path) -> TaskStore:
    return TaskStore(tasks_path)


@pytest.fixture
def service(store: TaskStore, tracer: OperationTracer) -> TaskService:
    return TaskService(store, tracer)
