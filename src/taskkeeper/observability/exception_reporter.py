from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Any, Optional

from taskkeeper.observability.outcomes import LoggingOutcomeSink, OutcomeEvent, OutcomeResult, OutcomeSink

logger = logging.getLogger("taskkeeper.system")

UNHANDLED_OPERATION = "process.unhandled"
UNOBSERVED_OPERATION = "async.unobserved"

_installed: Optional["ExceptionReporter"] = None


class ExceptionReporter:
    """
    Last-resort reporting for failures that escaped every operation boundary.

    - main thread: fatal event, then the previous excepthook runs and the process exits
    - worker threads: fatal event, the process keeps running
    - asyncio: unobserved task failures become error events and are marked retrieved
    """

    def __init__(self, sink: Optional[OutcomeSink] = None):
        self.sink: OutcomeSink = sink or LoggingOutcomeSink()
        self._prev_excepthook = None
        self._prev_threading_hook = None

    def install(self) -> bool:
        """Register process-wide hooks. Only the first reporter ever installed wins."""
        global _installed
        if _installed is not None:
            return _installed is self
        self._prev_excepthook = sys.excepthook
        self._prev_threading_hook = threading.excepthook
        sys.excepthook = self.handle_exception
        threading.excepthook = self.handle_thread_exception
        _installed = self
        logger.info("reporter.installed", extra={"category": "system", "event": "reporter.installed"})
        return True

    def install_loop_handler(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()
        loop.set_exception_handler(self.handle_loop_exception)

    def handle_exception(self, exc_type, exc, tb) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            self._report(OutcomeResult.fatal, UNHANDLED_OPERATION, exc, terminating=True)
        prev = self._prev_excepthook or sys.__excepthook__
        prev(exc_type, exc, tb)

    def handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            thread = args.thread.name if args.thread is not None else "?"
            self._report(
                OutcomeResult.fatal,
                UNHANDLED_OPERATION,
                args.exc_value,
                terminating=False,
                context=f"thread={thread}",
            )
        prev = self._prev_threading_hook or threading.__excepthook__
        prev(args)

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        future = context.get("future") or context.get("task")
        if future is not None and future.done() and not future.cancelled():
            # retrieving the exception marks it observed
            retrieved = future.exception()
            if exc is None:
                exc = retrieved
        if exc is None:
            exc = RuntimeError(context.get("message", "unhandled error in event loop"))
        self._report(
            OutcomeResult.error,
            UNOBSERVED_OPERATION,
            exc,
            terminating=False,
            context=str(context.get("message", "")),
        )

    def _report(
        self,
        result: OutcomeResult,
        operation: str,
        exc: BaseException,
        *,
        terminating: bool,
        context: str = "",
    ) -> None:
        event = OutcomeEvent(
            operation=operation,
            result=result,
            details=f"terminating={terminating}",
            context=context,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        try:
            self.sink(event)
        except Exception:
            logger.exception("reporter.sink_failed", extra={"category": "system", "event": "reporter.sink_failed"})
