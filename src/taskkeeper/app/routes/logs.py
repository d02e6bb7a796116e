from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from taskkeeper.observability.logging import log_path

router = APIRouter(prefix="/api/logs", tags=["logs"])


def _tail_lines(path: Path, n: int) -> list[str]:
    text = path.read_text(encoding="utf-8", errors="replace")
    lines = text.splitlines()
    return lines[-n:] if n > 0 else lines


def _matches(
    obj: dict,
    operation: Optional[str],
    result: Optional[str],
    level: Optional[str],
    request_id: Optional[str],
    q: Optional[str],
) -> bool:
    if operation and obj.get("operation") != operation:
        return False
    if result and str(obj.get("result", "")).lower() != result.lower():
        return False
    if level and str(obj.get("level", "")).upper() != level.upper():
        return False
    if request_id and request_id not in (obj.get("request_id"), obj.get("correlation_id")):
        return False
    if q and q.lower() not in json.dumps(obj).lower():
        return False
    return True


@router.get("")
def get_logs(
    request: Request,
    tail: int = 300,
    operation: Optional[str] = None,
    result: Optional[str] = None,
    level: Optional[str] = None,
    request_id: Optional[str] = None,
    q: Optional[str] = None,
):
    path = getattr(request.app.state, "log_path", None) or log_path()
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Log file not found: {path}")

    tail = max(1, min(tail, 5000))
    raw = _tail_lines(path, tail)

    items = []
    for line in raw:
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if _matches(obj, operation, result, level, request_id, q):
            items.append(obj)

    return {"returned": len(items), "tail": tail, "items": items}
