"""User settings for agentswarm.

Settings live in ~/.agentswarm/settings.yaml (or $AGENTSWARM_HOME). Every key
is optional; anything missing or malformed falls back to the defaults below.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml  # type: ignore

from .paths import ensure_home
from .util.conv import coerce_bool, coerce_float, coerce_int, coerce_str_list
from .util.fs import atomic_write_text


# Polling cadence of a per-session watcher.
WATCH_INTERVAL_SECONDS = 5.0
# Polling cadence of the cross-session conductor watcher.
CONDUCTOR_INTERVAL_SECONDS = 10.0
# Minimum gap between two deliveries to the conductor.
CONDUCTOR_MIN_INTERVAL_SECONDS = 30.0
# Consecutive raw-IDLE ticks needed before WORKING -> IDLE is confirmed.
IDLE_CONFIRM_TICKS = 2

DEFAULT_SHELL_COMMANDS = ["bash", "zsh", "sh"]
DEFAULT_INTERRUPT_MARKERS = ["esc to interrupt"]
DEFAULT_SHORTCUTS_MARKERS = ["? for shortcuts"]
DEFAULT_PROMPT_GLYPHS = [">", "❯"]
DEFAULT_ERROR_KEYWORDS = ["error", "failed", "exception", "traceback", "warning", "denied"]


@dataclass(frozen=True)
class SwarmSettings:
    watch_interval_seconds: float = WATCH_INTERVAL_SECONDS
    conductor_interval_seconds: float = CONDUCTOR_INTERVAL_SECONDS
    conductor_min_interval_seconds: float = CONDUCTOR_MIN_INTERVAL_SECONDS
    idle_confirm_ticks: int = IDLE_CONFIRM_TICKS

    shell_commands: List[str] = field(default_factory=lambda: list(DEFAULT_SHELL_COMMANDS))
    interrupt_markers: List[str] = field(default_factory=lambda: list(DEFAULT_INTERRUPT_MARKERS))
    shortcuts_markers: List[str] = field(default_factory=lambda: list(DEFAULT_SHORTCUTS_MARKERS))
    prompt_glyphs: List[str] = field(default_factory=lambda: list(DEFAULT_PROMPT_GLYPHS))

    prompt_check_lines: int = 5
    report_tail_lines: int = 15
    summary_tail_lines: int = 1
    report_log_lines: int = 20
    error_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_ERROR_KEYWORDS))

    auto_focus: bool = True
    bell: bool = True
    window_labels: bool = True

    kill_wait_attempts: int = 20
    kill_wait_seconds: float = 0.1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SwarmSettings":
        base = cls()
        return cls(
            watch_interval_seconds=coerce_float(
                d.get("watch_interval_seconds"), default=base.watch_interval_seconds, min_value=0.2, max_value=3600.0
            ),
            conductor_interval_seconds=coerce_float(
                d.get("conductor_interval_seconds"), default=base.conductor_interval_seconds, min_value=0.2, max_value=3600.0
            ),
            conductor_min_interval_seconds=coerce_float(
                d.get("conductor_min_interval_seconds"),
                default=base.conductor_min_interval_seconds,
                min_value=0.0,
                max_value=86400.0,
            ),
            idle_confirm_ticks=coerce_int(d.get("idle_confirm_ticks"), default=base.idle_confirm_ticks, min_value=1, max_value=20),
            shell_commands=coerce_str_list(d.get("shell_commands"), default=base.shell_commands),
            interrupt_markers=coerce_str_list(d.get("interrupt_markers"), default=base.interrupt_markers),
            shortcuts_markers=coerce_str_list(d.get("shortcuts_markers"), default=base.shortcuts_markers),
            prompt_glyphs=coerce_str_list(d.get("prompt_glyphs"), default=base.prompt_glyphs),
            prompt_check_lines=coerce_int(d.get("prompt_check_lines"), default=base.prompt_check_lines, min_value=1, max_value=50),
            report_tail_lines=coerce_int(d.get("report_tail_lines"), default=base.report_tail_lines, min_value=1, max_value=200),
            summary_tail_lines=coerce_int(d.get("summary_tail_lines"), default=base.summary_tail_lines, min_value=1, max_value=20),
            report_log_lines=coerce_int(d.get("report_log_lines"), default=base.report_log_lines, min_value=0, max_value=500),
            error_keywords=coerce_str_list(d.get("error_keywords"), default=base.error_keywords),
            auto_focus=coerce_bool(d.get("auto_focus"), default=base.auto_focus),
            bell=coerce_bool(d.get("bell"), default=base.bell),
            window_labels=coerce_bool(d.get("window_labels"), default=base.window_labels),
            kill_wait_attempts=coerce_int(d.get("kill_wait_attempts"), default=base.kill_wait_attempts, min_value=0, max_value=600),
            kill_wait_seconds=coerce_float(d.get("kill_wait_seconds"), default=base.kill_wait_seconds, min_value=0.0, max_value=5.0),
        )


def _settings_path() -> Path:
    return ensure_home() / "settings.yaml"


def load_settings_doc() -> Dict[str, Any]:
    """Load the raw settings document; {} when missing or unreadable."""
    p = _settings_path()
    if not p.exists():
        return {}
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        return doc if isinstance(doc, dict) else {}
    except Exception:
        return {}


def load_settings() -> SwarmSettings:
    return SwarmSettings.from_dict(load_settings_doc())


def save_settings(settings: SwarmSettings) -> Path:
    p = _settings_path()
    atomic_write_text(p, yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False))
    return p
