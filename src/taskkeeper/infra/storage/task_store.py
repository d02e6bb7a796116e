from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from taskkeeper.domain.task_models import (
    TaskPriority,
    TaskRecord,
    TaskStatus,
    new_task_id,
    utcnow,
    validate_priority,
    validate_title,
)

logger = logging.getLogger("taskkeeper.store")

_records_adapter = TypeAdapter(List[TaskRecord])


class TaskStorageError(Exception):
    """Load/save failure. Always contained inside the store."""


class TaskStore:
    """
    In-memory task collection mirrored to a single JSON file.

    Every mutation rewrites the whole file (temp file + os.replace).
    Save/load failures are logged and swallowed; memory stays authoritative.
    """

    def __init__(self, path: Union[str, Path], *, autoload: bool = True):
        self.path = Path(path)
        self._tasks: List[TaskRecord] = []
        self._lock = threading.RLock()
        if autoload:
            self.load()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def add(
        self,
        title: str,
        description: Optional[str] = "",
        priority: Union[TaskPriority, str] = TaskPriority.medium,
    ) -> TaskRecord:
        validate_title(title)
        priority = validate_priority(priority)
        task = TaskRecord(
            id=new_task_id(),
            title=title,
            description=description or "",
            priority=priority,
            status=TaskStatus.pending,
            created_at=utcnow(),
        )
        with self._lock:
            self._tasks.append(task)
            self.save()
        logger.info(
            "task.added",
            extra={"category": "tasks", "event": "task.added", "task_id": task.id, "title": task.title},
        )
        return task

    def get(self, task_id: str) -> Optional[TaskRecord]:
        with self._lock:
            return next((t for t in self._tasks if t.id == task_id), None)

    def remove_by_id(self, task_id: str) -> bool:
        with self._lock:
            for i, task in enumerate(self._tasks):
                if task.id == task_id:
                    return self._remove_at(i)
        return False

    def remove_by_title(self, title: str) -> bool:
        if title is None:
            return False
        wanted = title.casefold()
        with self._lock:
            for i, task in enumerate(self._tasks):
                if task.title.casefold() == wanted:
                    return self._remove_at(i)
        return False

    def _remove_at(self, index: int) -> bool:
        task = self._tasks.pop(index)
        self.save()
        logger.info(
            "task.removed",
            extra={"category": "tasks", "event": "task.removed", "task_id": task.id, "title": task.title},
        )
        return True

    def list(self) -> Tuple[TaskRecord, ...]:
        # records are frozen, so a shallow copy of the sequence is enough
        with self._lock:
            return tuple(self._tasks)

    def load(self) -> None:
        with self._lock:
            if not self.path.exists():
                self._tasks = []
                logger.info(
                    "store.load.missing",
                    extra={"category": "storage", "event": "store.load.missing", "path": str(self.path)},
                )
                return
            try:
                loaded = self._read()
            except TaskStorageError as e:
                self._tasks = []
                logger.error(
                    "store.load.failed",
                    exc_info=e.__cause__ or e,
                    extra={"category": "storage", "event": "store.load.failed", "path": str(self.path)},
                )
                return
            self._tasks = self._dedupe(loaded)
            logger.info(
                "store.loaded",
                extra={"category": "storage", "event": "store.loaded", "path": str(self.path), "total": len(self._tasks)},
            )

    def save(self) -> bool:
        with self._lock:
            try:
                self._write(self._tasks)
            except TaskStorageError as e:
                logger.error(
                    "store.save.failed",
                    exc_info=e.__cause__ or e,
                    extra={"category": "storage", "event": "store.save.failed", "path": str(self.path)},
                )
                return False
            return True

    def _read(self) -> List[TaskRecord]:
        try:
            raw = self.path.read_bytes()
            return _records_adapter.validate_json(raw)
        except (OSError, ValidationError, ValueError) as e:
            raise TaskStorageError(f"Cannot load tasks from {self.path}: {e}") from e

    def _write(self, tasks: List[TaskRecord]) -> None:
        tmp_name = None
        try:
            payload = _records_adapter.dump_json(tasks, by_alias=True, indent=2)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, ValueError) as e:
            raise TaskStorageError(f"Cannot save tasks to {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    @staticmethod
    def _dedupe(tasks: List[TaskRecord]) -> List[TaskRecord]:
        seen = set()
        out: List[TaskRecord] = []
        for task in tasks:
            if task.id in seen:
                logger.warning(
                    "store.load.duplicate_id",
                    extra={"category": "storage", "event": "store.load.duplicate_id", "task_id": task.id},
                )
                continue
            seen.add(task.id)
            out.append(task)
        return out
