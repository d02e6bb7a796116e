from __future__ import annotations

from typing import Optional, Sequence

from taskkeeper.domain.task_models import TaskCreate, TaskRecord, TaskValidationError
from taskkeeper.infra.storage.task_store import TaskStore
from taskkeeper.observability.outcomes import OutcomeResult
from taskkeeper.observability.tracer import OperationTracer


class TaskService:
    """
    Wraps every store call in a traced operation.

    Validation failures and misses end as `warning` outcomes, unexpected
    exceptions end as `error` outcomes and keep propagating.
    """

    def __init__(self, store: TaskStore, tracer: OperationTracer):
        self.store = store
        self.tracer = tracer

    def create_task(self, data: TaskCreate, correlation_id: Optional[str] = None) -> TaskRecord:
        with self.tracer.start("AddTask", data.title, correlation_id) as op:
            try:
                task = self.store.add(data.title, data.description, data.priority)
            except TaskValidationError as e:
                op.stop(OutcomeResult.warning, e.message)
                raise
            op.stop(OutcomeResult.success, f"id={task.id}")
            return task

    def get_task(self, task_id: str, correlation_id: Optional[str] = None) -> Optional[TaskRecord]:
        with self.tracer.start("GetTask", task_id, correlation_id) as op:
            task = self.store.get(task_id)
            if task is None:
                op.stop(OutcomeResult.warning, f"id={task_id} not found")
            return task

    def list_tasks(self, correlation_id: Optional[str] = None) -> Sequence[TaskRecord]:
        with self.tracer.start("ListTasks", "", correlation_id) as op:
            tasks = self.store.list()
            op.stop(OutcomeResult.success, f"count={len(tasks)}")
            return tasks

    def remove_task(self, task_id: str, correlation_id: Optional[str] = None) -> bool:
        with self.tracer.start("RemoveTask", task_id, correlation_id) as op:
            removed = self.store.remove_by_id(task_id)
            self._finish_remove(op, removed, f"id={task_id}")
            return removed

    def remove_task_by_title(self, title: str, correlation_id: Optional[str] = None) -> bool:
        with self.tracer.start("RemoveTaskByTitle", title, correlation_id) as op:
            if not title or not title.strip():
                op.stop(OutcomeResult.warning, "empty title")
                return False
            removed = self.store.remove_by_title(title)
            self._finish_remove(op, removed, f"title={title!r}")
            return removed

    @staticmethod
    def _finish_remove(op, removed: bool, target: str) -> None:
        if removed:
            op.stop(OutcomeResult.success, f"{target} removed")
        else:
            op.stop(OutcomeResult.warning, f"{target} not found")
