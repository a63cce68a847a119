"""Append-only action log.

Human-readable, one line per event: `YYYY-MM-DD HH:MM:SS KIND message`.
Writers only append and readers only tail, so no locking is needed.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .paths import action_log_path
from .util.time import local_stamp

TRIGGERED = "TRIGGERED"
PENDING = "PENDING"
WATCH_START = "WATCH_START"
WATCH_STOP = "WATCH_STOP"
KILLED = "KILLED"
PAUSED = "PAUSED"
RESUMED = "RESUMED"


def append_action(kind: str, message: str, *, path: Optional[Path] = None, ts: Optional[float] = None) -> str:
    p = path or action_log_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    msg = " ".join(str(message or "").split())
    line = f"{local_stamp(ts)} {str(kind).strip().upper()} {msg}".rstrip()
    with p.open("a", encoding="utf-8") as f:
        f.write(line + "\n")
    return line


def read_last_lines(path: Path, n: int) -> List[str]:
    if n <= 0:
        return []
    if not path.exists():
        return []
    try:
        with path.open("rb") as f:
            f.seek(0, 2)
            size = f.tell()
            block = 8192
            data = b""
            while size > 0 and data.count(b"\n") <= n:
                step = min(block, size)
                f.seek(size - step)
                data = f.read(step) + data
                size -= step
        lines = data.splitlines()[-n:]
        return [ln.decode("utf-8", errors="replace") for ln in lines]
    except OSError:
        return []


def tail_actions(n: int, *, path: Optional[Path] = None) -> List[str]:
    return read_last_lines(path or action_log_path(), n)
