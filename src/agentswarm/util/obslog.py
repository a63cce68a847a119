from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional, TextIO


LEVEL_ENV = "AGENTSWARM_LOG_LEVEL"

# Pane and watcher context accepted through `logger.*(..., extra={...})`.
CONTEXT_FIELDS = ("session", "pane", "scope", "state", "pid", "reason")

_HANDLER_MARK = "_agentswarm_jsonl"


def _stamp(created: float) -> str:
    """UTC ISO-8601 with milliseconds, e.g. 2026-01-02T03:04:05.678Z."""
    whole = int(created)
    millis = int(round((created - whole) * 1000)) % 1000
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(whole)) + f".{millis:03d}Z"


def _context(record: logging.LogRecord) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for name in CONTEXT_FIELDS:
        raw = record.__dict__.get(name)
        text = "" if raw is None else str(raw).strip()
        if text:
            out[name] = text
    return out


class JsonlFormatter(logging.Formatter):
    """Render each record as one JSON line.

    The base fields are always present; context fields appear only when a
    caller passed a non-empty value for them.
    """

    def __init__(self, *, component: str):
        super().__init__()
        self.component = str(component or "").strip() or "agentswarm"

    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = dict(
            ts=_stamp(record.created),
            level=record.levelname,
            logger=record.name,
            component=self.component,
            msg=record.getMessage(),
        )
        doc.update(_context(record))
        if record.exc_info:
            doc["exc"] = self.formatException(record.exc_info)
        # default=str keeps odd message args from breaking the line.
        return json.dumps(doc, ensure_ascii=False, default=str)


def _parse_level(level: str, default: int = logging.INFO) -> int:
    name = str(level or "").strip().upper()
    value = logging.getLevelName(name) if name else default
    return value if isinstance(value, int) else default


def default_level() -> str:
    return os.environ.get(LEVEL_ENV, "").strip() or "INFO"


def _ours(handler: logging.Handler) -> bool:
    return bool(getattr(handler, _HANDLER_MARK, False))


def setup_root_json_logging(
    *,
    component: str,
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """Route root logging through a single JSONL stream handler.

    Calling it again only adjusts the level. With `force=True` every root
    handler is dropped and a fresh one is installed.
    """
    root = logging.getLogger()
    lvl = _parse_level(level)
    root.setLevel(lvl)

    if force:
        for h in list(root.handlers):
            root.removeHandler(h)

    mine = [h for h in root.handlers if _ours(h)]
    if mine:
        for h in mine:
            h.setLevel(lvl)
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    setattr(handler, _HANDLER_MARK, True)
    handler.setLevel(lvl)
    handler.setFormatter(JsonlFormatter(component=component))
    root.addHandler(handler)
