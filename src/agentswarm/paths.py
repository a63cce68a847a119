from __future__ import annotations

import os
import re
from pathlib import Path


def swarm_home() -> Path:
    env = os.environ.get("AGENTSWARM_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".agentswarm").resolve()


def ensure_home() -> Path:
    home = swarm_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def scope_slug(name: str) -> str:
    """File-name-safe form of a session name (tmux allows almost anything)."""
    s = _UNSAFE.sub("_", str(name or "").strip()).strip("._")
    return s or "default"


def locks_dir() -> Path:
    return ensure_home() / "locks"


def watch_lock_path(session: str) -> Path:
    return locks_dir() / f"watch-{scope_slug(session)}.lock"


def conductor_lock_path() -> Path:
    return locks_dir() / "conductor.lock"


def conductor_dir() -> Path:
    return ensure_home() / "conductor"


def pause_flag_path() -> Path:
    return conductor_dir() / "paused"


def pending_path() -> Path:
    return conductor_dir() / "pending.txt"


def last_trigger_path() -> Path:
    return conductor_dir() / "last_trigger"


def trigger_summary_path() -> Path:
    return conductor_dir() / "trigger.md"


def status_report_path() -> Path:
    return conductor_dir() / "status.md"


def action_log_path() -> Path:
    return ensure_home() / "actions.log"


def logs_dir() -> Path:
    return ensure_home() / "logs"
