from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from enum import Enum
from datetime import datetime, timezone
from typing import Optional
import uuid

TITLE_MAX_LENGTH = 100


class TaskValidationError(ValueError):
    """Raised when task input is rejected before anything is stored."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class TaskStatus(str, Enum):
    # only `pending` is ever assigned; the rest round-trip through storage
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class TaskCreate(BaseModel):
    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.medium


class TaskRecord(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = ""
    priority: TaskPriority = TaskPriority.medium
    status: TaskStatus = TaskStatus.pending
    created_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise TaskValidationError("title", "Task title must not be empty or whitespace.")
    if len(title) > TITLE_MAX_LENGTH:
        raise TaskValidationError(
            "title", f"Task title must be at most {TITLE_MAX_LENGTH} characters (got {len(title)})."
        )
    return title


def new_task_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_priority(priority) -> TaskPriority:
    if priority is None:
        return TaskPriority.medium
    if isinstance(priority, TaskPriority):
        return priority
    try:
        return TaskPriority(str(priority).strip().lower())
    except ValueError:
        allowed = ", ".join(p.value for p in TaskPriority)
        raise TaskValidationError("priority", f"Unknown priority {priority!r}; expected one of: {allowed}.") from None
