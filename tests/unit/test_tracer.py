"""Tests for named operation timers and their outcome events."""

import logging
import threading

import pytest

from taskkeeper.observability.outcomes import LoggingOutcomeSink, OutcomeEvent, OutcomeResult
from taskkeeper.observability.tracer import OperationTracer


@pytest.mark.unit
def test_start_stop_emits_one_event(tracer: OperationTracer, sink) -> None:
    tracer.start("AddTask", "Buy milk")
    tracer.stop("AddTask", "success", "id=1")

    assert len(sink.events) == 1
    event = sink.events[0]
    assert event.operation == "AddTask"
    assert event.result is OutcomeResult.success
    assert event.details == "id=1"
    assert event.context == "Buy milk"
    assert event.elapsed_ms is not None and event.elapsed_ms >= 0
    assert tracer.active_count() == 0


@pytest.mark.unit
def test_stop_without_start_is_a_silent_noop(tracer: OperationTracer, sink) -> None:
    tracer.stop("NeverStarted", "success")
    tracer.stop("AddTask", "error")

    assert sink.events == []


@pytest.mark.unit
def test_second_stop_is_a_noop(tracer: OperationTracer, sink) -> None:
    tracer.start("ListTasks")
    tracer.stop("ListTasks", "success")
    tracer.stop("ListTasks", "success")

    assert len(sink.events) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("success", OutcomeResult.success),
        ("WARNING", OutcomeResult.warning),
        ("error", OutcomeResult.error),
        ("fatal", OutcomeResult.fatal),
        ("weird", OutcomeResult.info),
        ("", OutcomeResult.info),
    ],
)
def test_result_classification(tracer: OperationTracer, sink, raw: str, expected: OutcomeResult) -> None:
    tracer.start("op")
    tracer.stop("op", raw)
    assert sink.events[0].result is expected


@pytest.mark.unit
def test_restart_overwrites_without_event(tracer: OperationTracer, sink) -> None:
    tracer.start("RemoveTask", "first")
    tracer.start("RemoveTask", "second")

    assert tracer.active_count() == 1
    assert tracer.is_active("RemoveTask")
    assert sink.events == []

    tracer.stop("RemoveTask", "success")
    assert [e.context for e in sink.events] == ["second"]
    assert not tracer.is_active("RemoveTask")


@pytest.mark.unit
def test_stop_with_error_after_start_includes_elapsed(tracer: OperationTracer, sink) -> None:
    tracer.start("AddTask")
    tracer.stop_with_error("AddTask", KeyError("boom"), "ctx")

    event = sink.events[0]
    assert event.result is OutcomeResult.error
    assert event.error_type == "KeyError"
    assert event.error_message == "'boom'"
    assert event.context == "ctx"
    assert event.elapsed_ms is not None
    assert tracer.active_count() == 0


@pytest.mark.unit
def test_stop_with_error_without_timer_still_emits(tracer: OperationTracer, sink) -> None:
    tracer.stop_with_error("AddTask", RuntimeError("late"))

    event = sink.events[0]
    assert event.result is OutcomeResult.error
    assert event.elapsed_ms is None
    assert event.error_message == "late"


@pytest.mark.unit
def test_correlation_ids_keep_concurrent_calls_apart(tracer: OperationTracer, sink) -> None:
    tracer.start("AddTask", "a", correlation_id="req-1")
    tracer.start("AddTask", "b", correlation_id="req-2")
    assert tracer.active_count() == 2

    tracer.stop("AddTask", "success", correlation_id="req-2")
    tracer.stop("AddTask", "warning", correlation_id="req-1")

    assert [(e.context, e.result, e.correlation_id) for e in sink.events] == [
        ("b", OutcomeResult.success, "req-2"),
        ("a", OutcomeResult.warning, "req-1"),
    ]


@pytest.mark.unit
def test_handle_closes_on_success(tracer: OperationTracer, sink) -> None:
    with tracer.start("ListTasks") as op:
        assert not op.closed

    assert op.closed
    assert sink.events[0].result is OutcomeResult.success
    assert tracer.active_count() == 0


@pytest.mark.unit
def test_handle_records_error_and_reraises(tracer: OperationTracer, sink) -> None:
    with pytest.raises(ZeroDivisionError):
        with tracer.start("Divide"):
            1 / 0

    assert len(sink.events) == 1
    assert sink.events[0].result is OutcomeResult.error
    assert sink.events[0].error_type == "ZeroDivisionError"
    assert tracer.active_count() == 0


@pytest.mark.unit
def test_explicit_stop_wins_over_context_exit(tracer: OperationTracer, sink) -> None:
    with pytest.raises(ValueError):
        with tracer.start("AddTask") as op:
            op.stop(OutcomeResult.warning, "bad title")
            raise ValueError("bad title")

    assert [e.result for e in sink.events] == [OutcomeResult.warning]


@pytest.mark.unit
def test_scope_uses_unique_correlation_ids(tracer: OperationTracer, sink) -> None:
    a = tracer.scope("Sync")
    b = tracer.scope("Sync")
    assert a.correlation_id != b.correlation_id
    assert tracer.active_count() == 2

    a.stop()
    b.stop()
    assert len(sink.events) == 2


@pytest.mark.unit
def test_failing_sink_does_not_break_caller(caplog: pytest.LogCaptureFixture) -> None:
    def exploding(event: OutcomeEvent) -> None:
        raise RuntimeError("sink down")

    tracer = OperationTracer(exploding)
    tracer.start("op")
    with caplog.at_level(logging.ERROR, logger="taskkeeper.ops"):
        tracer.stop("op", "success")

    assert any(r.getMessage() == "op.sink_failed" for r in caplog.records)


@pytest.mark.unit
def test_threads_with_correlation_ids_do_not_leak_timers(tracer: OperationTracer, sink) -> None:
    def worker(n: int) -> None:
        for i in range(20):
            with tracer.start("AddTask", correlation_id=f"{n}-{i}"):
                pass

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert tracer.active_count() == 0
    assert len(sink.events) == 80


@pytest.mark.unit
@pytest.mark.parametrize(
    ("result", "level"),
    [
        (OutcomeResult.success, logging.INFO),
        (OutcomeResult.info, logging.INFO),
        (OutcomeResult.warning, logging.WARNING),
        (OutcomeResult.error, logging.ERROR),
        (OutcomeResult.fatal, logging.CRITICAL),
    ],
)
def test_logging_sink_levels(caplog: pytest.LogCaptureFixture, result: OutcomeResult, level: int) -> None:
    with caplog.at_level(logging.DEBUG, logger="taskkeeper.ops"):
        LoggingOutcomeSink()(OutcomeEvent(operation="AddTask", result=result, elapsed_ms=1.5, details="d"))

    record = caplog.records[-1]
    assert record.levelno == level
    assert record.operation == "AddTask"
    assert record.result == result.value
    assert record.elapsed_ms == 1.5
    assert record.getMessage() == f"AddTask {result.value} in 1.5ms: d"
