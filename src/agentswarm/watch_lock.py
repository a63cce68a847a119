"""Crash-safe single-instance lock files.

The unit of exclusion is a whole OS process, so the lock is a file created
with O_EXCL holding the owner's pid. A lock whose pid is dead is stale and
may be taken over.
"""
from __future__ import annotations

import logging
import os
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .util.fs import create_exclusive, read_text, remove_file

logger = logging.getLogger("agentswarm.watch_lock")

# An empty lock file younger than this is treated as being written right now.
FRESH_LOCK_GRACE_SECONDS = 2.0


class WatchLockHeld(RuntimeError):
    """Raised when a strict acquire finds a live owner."""

    def __init__(self, path: Path, owner: Optional[int]):
        super().__init__(f"{path} is held by pid {owner}")
        self.path = path
        self.owner = owner


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except PermissionError:
        # Exists, owned by someone else.
        return True
    except OSError:
        return False


def read_lock_pid(path: Path) -> Optional[int]:
    raw = read_text(path).strip()
    return int(raw) if raw.isdigit() else None


def _recently_created(path: Path) -> bool:
    try:
        return (time.time() - path.stat().st_mtime) < FRESH_LOCK_GRACE_SECONDS
    except OSError:
        return False


@dataclass
class WatchLock:
    path: Path
    pid: int = field(default_factory=os.getpid)

    def acquire(self, *, strict: bool = False) -> bool:
        if create_exclusive(self.path, f"{self.pid}\n"):
            return True

        owner = read_lock_pid(self.path)
        if owner == self.pid:
            return True
        if owner is not None and pid_alive(owner):
            return self._held(owner, strict)
        if owner is None and _recently_created(self.path):
            # Another process won the O_EXCL race and has not written its pid yet.
            return self._held(None, strict)

        logger.info("removing stale lock %s (pid %s)", self.path, owner, extra={"pid": owner})
        remove_file(self.path)
        if create_exclusive(self.path, f"{self.pid}\n"):
            return True
        return self._held(read_lock_pid(self.path), strict)

    def _held(self, owner: Optional[int], strict: bool) -> bool:
        if strict:
            raise WatchLockHeld(self.path, owner)
        return False

    def owned(self) -> bool:
        return read_lock_pid(self.path) == self.pid

    def release(self) -> bool:
        """Delete the lock file only if it still names this process."""
        if not self.owned():
            return False
        return remove_file(self.path)

    def __enter__(self) -> "WatchLock":
        self.acquire(strict=True)
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


@dataclass(frozen=True)
class KillResult:
    pid: Optional[int]
    signaled: bool
    stopped: bool
    removed: bool

    @property
    def ok(self) -> bool:
        return self.stopped or not self.signaled


def kill_existing_watch(
    path: Path,
    *,
    attempts: int = 20,
    wait_seconds: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> KillResult:
    """Stop whoever holds `path`, then remove the file regardless.

    Unreadable or non-numeric content means there is nothing to kill.
    """
    pid = read_lock_pid(path)
    signaled = False
    stopped = True
    if pid is not None and pid != os.getpid() and pid_alive(pid):
        try:
            os.kill(pid, signal.SIGTERM)
            signaled = True
        except OSError as e:
            logger.warning("SIGTERM to %s failed: %s", pid, e, extra={"pid": pid})
        if signaled:
            stopped = False
            for _ in range(max(0, attempts)):
                if not pid_alive(pid):
                    stopped = True
                    break
                sleep(wait_seconds)
            else:
                stopped = not pid_alive(pid)
            if not stopped:
                logger.warning("pid %s still alive after SIGTERM", pid, extra={"pid": pid})
    removed = remove_file(path)
    return KillResult(pid=pid, signaled=signaled, stopped=stopped, removed=removed)
