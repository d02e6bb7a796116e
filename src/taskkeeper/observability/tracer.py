from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from taskkeeper.observability.outcomes import LoggingOutcomeSink, OutcomeEvent, OutcomeResult, OutcomeSink

logger = logging.getLogger("taskkeeper.ops")

TimerKey = Tuple[str, Optional[str]]


@dataclass
class _Timer:
    started: float
    context: str


class OperationHandle:
    """
    Scoped handle returned by `OperationTracer.start`.

    Closing it (stop/fail, or leaving the `with` block) ends the timer exactly once.
    """

    def __init__(self, tracer: "OperationTracer", name: str, correlation_id: Optional[str]):
        self.tracer = tracer
        self.name = name
        self.correlation_id = correlation_id
        self.closed = False

    def stop(self, result: Union[OutcomeResult, str] = OutcomeResult.success, details: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.tracer.stop(self.name, result, details, correlation_id=self.correlation_id)

    def fail(self, error: BaseException, context: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.tracer.stop_with_error(self.name, error, context, correlation_id=self.correlation_id)

    def __enter__(self) -> "OperationHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.fail(exc)
        else:
            self.stop(OutcomeResult.success)
        return False


class OperationTracer:
    """
    Registry of in-flight named timers.

    Timers are keyed by (name, correlation_id). Callers that never pass a
    correlation id share one timer per name, so a second start for the same
    name silently replaces the first.
    """

    def __init__(self, sink: Optional[OutcomeSink] = None):
        self.sink: OutcomeSink = sink or LoggingOutcomeSink()
        self._timers: Dict[TimerKey, _Timer] = {}
        self._lock = threading.Lock()

    def start(self, name: str, context: str = "", correlation_id: Optional[str] = None) -> OperationHandle:
        key = (name, correlation_id)
        with self._lock:
            replaced = key in self._timers
            self._timers[key] = _Timer(started=time.perf_counter(), context=context)
        if replaced:
            logger.debug(
                "op.restart",
                extra={"category": "ops", "event": "op.restart", "operation": name, "correlation_id": correlation_id},
            )
        return OperationHandle(self, name, correlation_id)

    def scope(self, name: str, context: str = "") -> OperationHandle:
        return self.start(name, context, correlation_id=str(uuid.uuid4()))

    def _pop(self, name: str, correlation_id: Optional[str]) -> Tuple[Optional[_Timer], Optional[float]]:
        with self._lock:
            timer = self._timers.pop((name, correlation_id), None)
        if timer is None:
            return None, None
        return timer, round((time.perf_counter() - timer.started) * 1000, 2)

    def stop(
        self,
        name: str,
        result: Union[OutcomeResult, str] = OutcomeResult.success,
        details: str = "",
        correlation_id: Optional[str] = None,
    ) -> None:
        timer, elapsed_ms = self._pop(name, correlation_id)
        if timer is None:
            return
        self._emit(
            OutcomeEvent(
                operation=name,
                result=OutcomeResult.parse(result),
                elapsed_ms=elapsed_ms,
                details=details,
                context=timer.context,
                correlation_id=correlation_id,
            )
        )

    def stop_with_error(
        self,
        name: str,
        error: BaseException,
        context: str = "",
        correlation_id: Optional[str] = None,
    ) -> None:
        timer, elapsed_ms = self._pop(name, correlation_id)
        if not context and timer is not None:
            context = timer.context
        self._emit(
            OutcomeEvent(
                operation=name,
                result=OutcomeResult.error,
                elapsed_ms=elapsed_ms,
                details=str(error),
                context=context,
                correlation_id=correlation_id,
                error_type=type(error).__name__,
                error_message=str(error),
            )
        )

    def active_count(self) -> int:
        with self._lock:
            return len(self._timers)

    def is_active(self, name: str, correlation_id: Optional[str] = None) -> bool:
        with self._lock:
            return (name, correlation_id) in self._timers

    def _emit(self, event: OutcomeEvent) -> None:
        try:
            self.sink(event)
        except Exception:
            logger.exception(
                "op.sink_failed",
                extra={"category": "ops", "event": "op.sink_failed", "operation": event.operation},
            )
