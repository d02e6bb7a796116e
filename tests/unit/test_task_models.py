"""Tests for task record validation and serialized shape."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from taskkeeper.domain.task_models import (
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskValidationError,
    new_task_id,
    validate_priority,
    validate_title,
)


@pytest.mark.unit
@pytest.mark.parametrize("title", ["a", "Buy milk", "x" * 100, "  padded  "])
def test_validate_title_accepts_non_blank_up_to_100(title: str) -> None:
    assert validate_title(title) == title


@pytest.mark.unit
@pytest.mark.parametrize("title", ["", "   ", "\t\n", None, "x" * 101])
def test_validate_title_rejects_blank_or_oversized(title) -> None:
    with pytest.raises(TaskValidationError) as exc_info:
        validate_title(title)
    assert exc_info.value.field == "title"


@pytest.mark.unit
def test_validate_priority_is_case_insensitive_and_defaults_to_medium() -> None:
    assert validate_priority("High") is TaskPriority.high
    assert validate_priority(TaskPriority.critical) is TaskPriority.critical
    assert validate_priority(None) is TaskPriority.medium


@pytest.mark.unit
def test_validate_priority_rejects_unknown_value() -> None:
    with pytest.raises(TaskValidationError) as exc_info:
        validate_priority("urgent")
    assert exc_info.value.field == "priority"


@pytest.mark.unit
def test_record_defaults_and_camel_case_dump() -> None:
    created = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    record = TaskRecord(id=new_task_id(), title="Buy milk", created_at=created)

    assert record.priority is TaskPriority.medium
    assert record.status is TaskStatus.pending
    assert record.completed_at is None

    dumped = record.model_dump(mode="json", by_alias=True)
    assert set(dumped) == {"id", "title", "description", "priority", "status", "createdAt", "completedAt"}
    assert dumped["priority"] == "medium"
    assert dumped["status"] == "pending"


@pytest.mark.unit
def test_record_is_immutable() -> None:
    record = TaskRecord(id=new_task_id(), title="t", created_at=datetime.now(timezone.utc))
    with pytest.raises(ValidationError):
        record.title = "changed"  # type: ignore[misc]


@pytest.mark.unit
def test_record_rejects_blank_title_even_when_built_directly() -> None:
    with pytest.raises(ValidationError):
        TaskRecord(id=new_task_id(), title="   ", created_at=datetime.now(timezone.utc))


@pytest.mark.unit
def test_new_task_ids_are_unique() -> None:
    assert len({new_task_id() for _ in range(500)}) == 500
