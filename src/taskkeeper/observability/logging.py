from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, Union

LOG_FILENAME = "taskkeeper.jsonl"

_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime", "taskName"}
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # everything passed via `extra={...}`
        for k, v in record.__dict__.items():
            if k in _RESERVED:
                continue
            payload[k] = v

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def log_path(log_dir: Optional[Union[str, Path]] = None, filename: str = LOG_FILENAME) -> Path:
    return Path(log_dir or os.getenv("LOG_DIR", "./logs")) / filename


def setup_logging(
    *,
    level: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
    filename: str = LOG_FILENAME,
    max_bytes: int = 10_000_000,
    backup_count: int = 10,
) -> Path:
    """Install JSON console and rotating-file handlers on the root logger; returns the log file path."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    path = log_path(log_dir, filename)
    path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()  # avoids duplicate handlers during reload

    fmt = JsonFormatter()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # the access middleware traces requests itself
    logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.error").setLevel(level)
    return path
