from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Union

logger = logging.getLogger("taskkeeper.ops")


class OutcomeResult(str, Enum):
    success = "success"
    warning = "warning"
    error = "error"
    fatal = "fatal"
    info = "info"

    @classmethod
    def parse(cls, raw: Union["OutcomeResult", str, None]) -> "OutcomeResult":
        """Unknown or missing classifications are treated as informational."""
        if isinstance(raw, cls):
            return raw
        if not raw:
            return cls.info
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.info


@dataclass(frozen=True)
class OutcomeEvent:
    operation: str
    result: OutcomeResult
    elapsed_ms: Optional[float] = None
    details: str = ""
    context: str = ""
    correlation_id: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_extra(self) -> dict[str, Any]:
        return {
            "category": "ops",
            "event": f"op.{self.result.value}",
            "operation": self.operation,
            "result": self.result.value,
            "elapsed_ms": self.elapsed_ms,
            "details": self.details,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class OutcomeSink(Protocol):
    def __call__(self, event: OutcomeEvent) -> None: ...


_LEVELS = {
    OutcomeResult.success: logging.INFO,
    OutcomeResult.info: logging.INFO,
    OutcomeResult.warning: logging.WARNING,
    OutcomeResult.error: logging.ERROR,
    OutcomeResult.fatal: logging.CRITICAL,
}


class LoggingOutcomeSink:
    """Writes each outcome event to the `taskkeeper.ops` logger at a matching level."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, event: OutcomeEvent) -> None:
        level = _LEVELS[event.result]
        if event.elapsed_ms is not None:
            msg = f"{event.operation} {event.result.value} in {event.elapsed_ms}ms"
        else:
            msg = f"{event.operation} {event.result.value}"
        if event.details:
            msg = f"{msg}: {event.details}"
        self.log.log(level, msg, extra=event.to_extra())
